"""
Form contract models for Landscape Forms.

Inputs (create/update/list) and the read-side FormView union. A FormView is
either a ShrubFormView or a LawnFormView, selected by ``form_type``; each
variant carries only its own detail payload.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, computed_field

from landscape_forms.models.enums import FormType
from landscape_forms.models.orm.forms import ZIP_CODE_PATTERN

# Base-row columns a caller may set; everything else on the row is owned by storage
COMMON_FIELDS = frozenset({
    "first_name",
    "last_name",
    "street_number",
    "street_name",
    "town",
    "zip_code",
    "home_phone",
    "other_phone",
    "call_before",
    "is_holiday",
})


# ==================== APPLICATION LINE ITEMS ====================


class PesticideApplicationInput(BaseModel):
    """Chemical application recorded on a form"""
    chem_used: int = Field(..., ge=1, description="Chemical catalog ID")
    app_timestamp: datetime
    rate: str = Field(..., min_length=1)
    amount_applied: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)
    location_code: str = Field(..., min_length=1, max_length=2, description="Site code")


class PesticideApplicationPublic(BaseModel):
    """Stored application line item"""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    chem_used: int
    app_timestamp: datetime
    rate: str
    amount_applied: Decimal
    location_code: str


# ==================== DETAIL PAYLOADS ====================


class ShrubDetailsInput(BaseModel):
    """Shrub-only fields supplied on create"""
    num_shrubs: int = Field(default=0, ge=0)
    flea_only: bool = False


class LawnDetailsInput(BaseModel):
    """Lawn-only fields supplied on create"""
    lawn_area_sq_ft: int = Field(..., ge=0)
    fert_only: bool = False


class ShrubDetailsUpdate(BaseModel):
    """Partial update of shrub-only fields"""
    model_config = ConfigDict(extra="forbid")

    num_shrubs: int | None = Field(default=None, ge=0)
    flea_only: bool | None = None


class LawnDetailsUpdate(BaseModel):
    """Partial update of lawn-only fields"""
    model_config = ConfigDict(extra="forbid")

    lawn_area_sq_ft: int | None = Field(default=None, ge=0)
    fert_only: bool | None = None


class ShrubDetailsPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    num_shrubs: int
    flea_only: bool


class LawnDetailsPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    lawn_area_sq_ft: int
    fert_only: bool


# ==================== CREATE / UPDATE ====================


class FormCommonFields(BaseModel):
    """Client and scheduling fields shared by every form type"""
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    street_number: str
    street_name: str
    town: str
    zip_code: str = Field(..., pattern=ZIP_CODE_PATTERN)
    home_phone: str
    other_phone: str = ""
    call_before: bool = False
    is_holiday: bool = False


class FormCreate(FormCommonFields):
    """
    Input for creating a form.

    Exactly one of ``shrub`` / ``lawn`` must be supplied and it must match
    ``form_type``; the repository rejects anything else before writing.
    """
    model_config = ConfigDict(extra="forbid")

    form_type: FormType
    shrub: ShrubDetailsInput | None = None
    lawn: LawnDetailsInput | None = None
    applications: list[PesticideApplicationInput] = Field(default_factory=list)

    def common_values(self) -> dict[str, Any]:
        return self.model_dump(include=set(COMMON_FIELDS))


class FormUpdate(BaseModel):
    """
    Input for updating a form.

    Every field is optional; only fields that are set are written. There is
    deliberately no ``form_type`` field and extra fields are rejected, so the
    discriminator cannot be part of an update.
    """
    model_config = ConfigDict(extra="forbid")

    first_name: str | None = Field(default=None, min_length=1)
    last_name: str | None = Field(default=None, min_length=1)
    street_number: str | None = None
    street_name: str | None = None
    town: str | None = None
    zip_code: str | None = Field(default=None, pattern=ZIP_CODE_PATTERN)
    home_phone: str | None = None
    other_phone: str | None = None
    call_before: bool | None = None
    is_holiday: bool | None = None

    shrub: ShrubDetailsUpdate | None = None
    lawn: LawnDetailsUpdate | None = None
    applications: list[PesticideApplicationInput] | None = Field(
        default=None, description="When set, replaces every application on the form")

    def common_changes(self) -> dict[str, Any]:
        return self.model_dump(include=set(COMMON_FIELDS), exclude_unset=True, exclude_none=True)


# ==================== LISTING ====================


class ListFormsOptions(BaseModel):
    """
    Filtering, sorting and pagination for form listings.

    ``sort_by`` and ``order`` are free-form: unknown values fall back to
    ``created_at`` / ``DESC`` instead of failing. ``holiday`` accepts
    ``yes`` or ``no``; anything else leaves holidays unfiltered.
    """
    sort_by: str | None = None
    order: str | None = None

    form_type: FormType | None = None
    search_name: str | None = None
    chemical_ids: list[int] = Field(default_factory=list)
    date_low: datetime | None = Field(default=None, description="First application on or after")
    date_high: datetime | None = Field(default=None, description="Last application on or before")
    zip_code: str | None = None
    holiday: str | None = None

    limit: int | None = None
    offset: int | None = None


# ==================== VIEWS ====================


class FormViewBase(BaseModel):
    """Fields common to every form view"""
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    created_by: UUID
    created_at: datetime
    updated_at: datetime

    first_name: str
    last_name: str
    street_number: str
    street_name: str
    town: str
    zip_code: str
    home_phone: str
    other_phone: str
    call_before: bool
    is_holiday: bool

    applications: list[PesticideApplicationPublic] = Field(default_factory=list)

    @computed_field
    @property
    def first_app_date(self) -> datetime | None:
        if not self.applications:
            return None
        return min(app.app_timestamp for app in self.applications)

    @computed_field
    @property
    def last_app_date(self) -> datetime | None:
        if not self.applications:
            return None
        return max(app.app_timestamp for app in self.applications)


class ShrubFormView(FormViewBase):
    form_type: Literal["shrub"] = "shrub"
    shrub: ShrubDetailsPublic


class LawnFormView(FormViewBase):
    form_type: Literal["lawn"] = "lawn"
    lawn: LawnDetailsPublic


FormView = Annotated[ShrubFormView | LawnFormView, Field(discriminator="form_type")]

form_view_adapter: TypeAdapter[ShrubFormView | LawnFormView] = TypeAdapter(FormView)
