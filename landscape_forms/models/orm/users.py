"""
User ORM model.

Accounts are managed elsewhere; forms only reference them as owners.
"""

from datetime import date, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import Boolean, CheckConstraint, Date, DateTime, FetchedValue, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from landscape_forms.models.enums import ApprovalState, UserRole
from landscape_forms.models.orm.base import Base

if TYPE_CHECKING:
    from landscape_forms.models.orm.forms import Form


class User(Base):
    """User database table."""

    __tablename__ = "users"

    id: Mapped[UUID] = mapped_column(
        primary_key=True, default=uuid4, server_default=text("gen_random_uuid()")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=text("NOW()")
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=text("NOW()"),
        server_onupdate=FetchedValue(),
    )
    pending: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=text("TRUE")
    )
    role: Mapped[str] = mapped_column(
        Text, default=UserRole.EMPLOYEE.value, server_default=text("'employee'")
    )
    first_name: Mapped[str] = mapped_column(Text)
    last_name: Mapped[str] = mapped_column(Text)
    date_of_birth: Mapped[date] = mapped_column(
        Date, default=date(2000, 1, 1), server_default=text("'2000-01-01'")
    )
    username: Mapped[str] = mapped_column(String(255), unique=True)
    password_hash: Mapped[str] = mapped_column(Text)

    # Relationships
    forms: Mapped[list["Form"]] = relationship(
        back_populates="owner", passive_deletes=True
    )

    __table_args__ = (
        CheckConstraint("role IN ('employee', 'admin')", name="role"),
    )
    __mapper_args__ = {"eager_defaults": True}

    @property
    def approval(self) -> ApprovalState:
        """Approval state derived from the pending flag."""
        return ApprovalState.PENDING if self.pending else ApprovalState.APPROVED
