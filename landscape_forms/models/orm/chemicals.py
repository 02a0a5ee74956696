"""
Chemical ORM model.

Reference catalog used by pesticide application line items.
"""

from sqlalchemy import CheckConstraint, SmallInteger, Text
from sqlalchemy.orm import Mapped, mapped_column

from landscape_forms.models.orm.base import Base


class Chemical(Base):
    """Chemical catalog database table."""

    __tablename__ = "chemicals"

    id: Mapped[int] = mapped_column(SmallInteger, primary_key=True, autoincrement=True)
    category: Mapped[str] = mapped_column(Text)
    brand_name: Mapped[str] = mapped_column(Text)
    chemical_name: Mapped[str] = mapped_column(Text)
    epa_reg_no: Mapped[str] = mapped_column(Text)
    recipe: Mapped[str] = mapped_column(Text)
    unit: Mapped[str] = mapped_column(Text)

    __table_args__ = (
        CheckConstraint("category IN ('lawn', 'shrub')", name="category"),
    )
