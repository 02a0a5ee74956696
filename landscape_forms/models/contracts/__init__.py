"""
Pydantic contracts (repository inputs and read-side views).
"""

from landscape_forms.models.contracts.forms import (
    COMMON_FIELDS,
    FormCommonFields,
    FormCreate,
    FormUpdate,
    FormView,
    FormViewBase,
    LawnDetailsInput,
    LawnDetailsPublic,
    LawnDetailsUpdate,
    LawnFormView,
    ListFormsOptions,
    PesticideApplicationInput,
    PesticideApplicationPublic,
    ShrubDetailsInput,
    ShrubDetailsPublic,
    ShrubDetailsUpdate,
    ShrubFormView,
    form_view_adapter,
)

__all__ = [
    "COMMON_FIELDS",
    "FormCommonFields",
    "FormCreate",
    "FormUpdate",
    "FormView",
    "FormViewBase",
    "LawnDetailsInput",
    "LawnDetailsPublic",
    "LawnDetailsUpdate",
    "LawnFormView",
    "ListFormsOptions",
    "PesticideApplicationInput",
    "PesticideApplicationPublic",
    "ShrubDetailsInput",
    "ShrubDetailsPublic",
    "ShrubDetailsUpdate",
    "ShrubFormView",
    "form_view_adapter",
]
