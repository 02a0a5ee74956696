"""
SQLAlchemy ORM Models for Landscape Forms

Pure database models using SQLAlchemy 2.0 declarative style.
These models define the database schema and relationships.

For API schemas (Create/Update/View), see contracts/
"""

from landscape_forms.models.orm.base import Base
from landscape_forms.models.orm.chemicals import Chemical
from landscape_forms.models.orm.forms import Form, LawnDetails, PesticideApplication, ShrubDetails
from landscape_forms.models.orm.users import User

# Registers the server-side triggers on metadata.create_all
from landscape_forms.models.orm import triggers  # noqa: F401, E402

__all__ = [
    # Base
    "Base",
    # Users
    "User",
    # Chemicals
    "Chemical",
    # Forms
    "Form",
    "ShrubDetails",
    "LawnDetails",
    "PesticideApplication",
]
