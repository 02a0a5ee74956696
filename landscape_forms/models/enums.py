"""
Enumeration types used across the application.

Values match the strings stored in (and checked by) the database schema.
"""

from enum import Enum


class FormType(str, Enum):
    """Form discriminator. LAWN is the pesticide/lawn treatment form."""
    SHRUB = "shrub"
    LAWN = "lawn"


class UserRole(str, Enum):
    """Account roles"""
    EMPLOYEE = "employee"
    ADMIN = "admin"


class ApprovalState(str, Enum):
    """Account approval state"""
    PENDING = "pending"
    APPROVED = "approved"


class ChemicalCategory(str, Enum):
    """Chemical catalog categories"""
    LAWN = "lawn"
    SHRUB = "shrub"


class FormSortField(str, Enum):
    """Sortable columns for form listings"""
    FIRST_NAME = "first_name"
    LAST_NAME = "last_name"
    CREATED_AT = "created_at"
    FIRST_APP_DATE = "first_app_date"


class SortOrder(str, Enum):
    """Sort direction"""
    ASC = "ASC"
    DESC = "DESC"
