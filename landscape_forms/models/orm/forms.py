"""
Form, ShrubDetails, LawnDetails, and PesticideApplication ORM models.

A form is a base row in ``forms`` plus exactly one detail row in the table
matching its ``form_type``. Application line items hang off the base row.
"""

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    FetchedValue,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    SmallInteger,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from landscape_forms.models.orm.base import Base

if TYPE_CHECKING:
    from landscape_forms.models.orm.users import User

ZIP_CODE_PATTERN = r"^\d{5}(-\d{4})?$"


class Form(Base):
    """Base form database table."""

    __tablename__ = "forms"

    id: Mapped[UUID] = mapped_column(
        primary_key=True, default=uuid4, server_default=text("gen_random_uuid()")
    )
    created_by: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=text("NOW()")
    )
    # Maintained by trg_forms_updated_at on every insert and update
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=text("NOW()"),
        server_onupdate=FetchedValue(),
    )
    form_type: Mapped[str] = mapped_column(Text, nullable=False)

    # Client info
    first_name: Mapped[str] = mapped_column(Text)
    last_name: Mapped[str] = mapped_column(Text)
    street_number: Mapped[str] = mapped_column(Text)
    street_name: Mapped[str] = mapped_column(Text)
    town: Mapped[str] = mapped_column(Text)
    zip_code: Mapped[str] = mapped_column(Text)
    home_phone: Mapped[str] = mapped_column(Text)
    other_phone: Mapped[str] = mapped_column(Text)

    # Scheduling flags
    call_before: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("FALSE")
    )
    is_holiday: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("FALSE")
    )

    # Relationships
    owner: Mapped["User"] = relationship(back_populates="forms")
    shrub: Mapped["ShrubDetails | None"] = relationship(
        back_populates="form",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    lawn: Mapped["LawnDetails | None"] = relationship(
        back_populates="form",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    applications: Mapped[list["PesticideApplication"]] = relationship(
        back_populates="form",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="PesticideApplication.app_timestamp",
    )

    __table_args__ = (
        CheckConstraint("form_type IN ('shrub', 'lawn')", name="form_type"),
        CheckConstraint(f"zip_code ~ '{ZIP_CODE_PATTERN}'", name="zip_code"),
        Index("ix_forms_created_by_created_at", "created_by", "created_at"),
        Index("ix_forms_zip_code", "zip_code"),
    )
    __mapper_args__ = {"eager_defaults": True}


class ShrubDetails(Base):
    """Shrub form detail table (1:1 with a shrub-typed form)."""

    __tablename__ = "shrub_forms"

    form_id: Mapped[UUID] = mapped_column(
        ForeignKey("forms.id", ondelete="CASCADE"), primary_key=True
    )
    num_shrubs: Mapped[int] = mapped_column(
        Integer, default=0, server_default=text("0")
    )
    flea_only: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("FALSE")
    )

    form: Mapped["Form"] = relationship(back_populates="shrub")

    __table_args__ = (
        CheckConstraint("num_shrubs >= 0", name="num_shrubs_non_negative"),
    )


class LawnDetails(Base):
    """Lawn (pesticide) form detail table (1:1 with a lawn-typed form)."""

    __tablename__ = "lawn_forms"

    form_id: Mapped[UUID] = mapped_column(
        ForeignKey("forms.id", ondelete="CASCADE"), primary_key=True
    )
    lawn_area_sq_ft: Mapped[int] = mapped_column(Integer, nullable=False)
    fert_only: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=text("FALSE")
    )

    form: Mapped["Form"] = relationship(back_populates="lawn")

    __table_args__ = (
        CheckConstraint("lawn_area_sq_ft >= 0", name="lawn_area_non_negative"),
    )


class PesticideApplication(Base):
    """Chemical application line item recorded on a form."""

    __tablename__ = "pesticide_applications"

    id: Mapped[UUID] = mapped_column(
        primary_key=True, default=uuid4, server_default=text("gen_random_uuid()")
    )
    form_id: Mapped[UUID] = mapped_column(
        ForeignKey("forms.id", ondelete="CASCADE"), nullable=False
    )
    chem_used: Mapped[int] = mapped_column(
        SmallInteger, ForeignKey("chemicals.id"), nullable=False
    )
    app_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    rate: Mapped[str] = mapped_column(Text)
    amount_applied: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    location_code: Mapped[str] = mapped_column(String(2))

    form: Mapped["Form"] = relationship(back_populates="applications")

    __table_args__ = (
        CheckConstraint("amount_applied >= 0", name="amount_applied_non_negative"),
        Index("ix_pesticide_applications_form_id", "form_id"),
        Index("ix_pesticide_applications_chem_used", "chem_used"),
    )


# Case-insensitive name search and sort
Index("ix_forms_name_lower", func.lower(Form.first_name), func.lower(Form.last_name))
