"""
Owner-Scoped Repository

Base repository for rows that belong to a single user. Ownership is part of
the statement itself (``WHERE created_by = :owner_id``), so a row that
exists but belongs to someone else is indistinguishable from a missing one.
"""

from typing import Any, Generic, TypeVar
from uuid import UUID

from landscape_forms.models import Base
from landscape_forms.repositories.base import BaseRepository

ModelT = TypeVar("ModelT", bound=Base)
StatementT = TypeVar("StatementT")


def _owner_filter(model: Any, owner_id: UUID) -> Any:
    """Filter by created_by - bypasses type checking for generic model."""
    return model.created_by == owner_id


class OwnerScopedRepository(BaseRepository[ModelT], Generic[ModelT]):
    """
    Repository with an ownership predicate helper.

    Example usage:
        class FormRepository(OwnerScopedRepository[Form]):
            model = Form

            async def get(self, owner_id: UUID, form_id: UUID) -> Form | None:
                query = select(self.model).where(self.model.id == form_id)
                query = self.filter_owned(query, owner_id)
                result = await self.session.execute(query)
                return result.scalar_one_or_none()
    """

    def filter_owned(self, statement: StatementT, owner_id: UUID) -> StatementT:
        """
        Restrict a SELECT, UPDATE or DELETE to rows owned by one user.

        The resulting statement: ... WHERE created_by = :owner_id

        Args:
            statement: SQLAlchemy select/update/delete statement
            owner_id: Owning user's UUID

        Returns:
            Statement with the ownership predicate applied
        """
        return statement.where(_owner_filter(self.model, owner_id))  # type: ignore[attr-defined]
