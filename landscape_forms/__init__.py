"""
Landscape Forms persistence and authorization layer.
"""

__version__ = "0.1.0"
