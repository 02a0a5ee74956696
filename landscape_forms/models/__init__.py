"""
Landscape Forms Models

ORM models (database tables):
    from landscape_forms.models import Form, ShrubDetails, LawnDetails
    from landscape_forms.models.orm.forms import Form  # Granular access

Pydantic contracts (repository inputs and views):
    from landscape_forms.models import FormCreate, FormUpdate, FormView
    from landscape_forms.models.contracts.forms import ShrubFormView

Enums:
    from landscape_forms.models import FormType
    from landscape_forms.models.enums import FormType
"""

# ORM models (database tables)
from landscape_forms.models.orm import (
    Base,
    Chemical,
    Form,
    LawnDetails,
    PesticideApplication,
    ShrubDetails,
    User,
)

# Pydantic contracts
from landscape_forms.models.contracts import *  # noqa: F401, F403
from landscape_forms.models.contracts import __all__ as _contracts_all

# Enums
from landscape_forms.models.enums import (
    ApprovalState,
    ChemicalCategory,
    FormSortField,
    FormType,
    SortOrder,
    UserRole,
)

__all__ = [
    # Base
    "Base",
    # ORM models
    "Chemical",
    "Form",
    "LawnDetails",
    "PesticideApplication",
    "ShrubDetails",
    "User",
    # Enums
    "ApprovalState",
    "ChemicalCategory",
    "FormSortField",
    "FormType",
    "SortOrder",
    "UserRole",
] + list(_contracts_all)
