"""
Base Repository

Shared plumbing for repositories: the session handle, the transaction
boundary every public operation runs inside, and identifier parsing.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from landscape_forms.core.exceptions import FormsError, ValidationFailure, translate_db_error
from landscape_forms.models import Base

ModelT = TypeVar("ModelT", bound=Base)


def parse_id(value: Any, label: str = "id") -> UUID:
    """
    Coerce an identifier to a UUID.

    Args:
        value: UUID or its string form
        label: Name used in the error message

    Returns:
        Parsed UUID

    Raises:
        ValidationFailure: If the value is not a well-formed UUID
    """
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationFailure(f"Invalid {label}: {value!r}") from None


class BaseRepository(Generic[ModelT]):
    """
    Base repository bound to one AsyncSession.

    Subclasses set ``model`` and wrap each public operation in
    ``self._transaction()``.
    """

    model: type[ModelT]

    def __init__(self, session: AsyncSession):
        """
        Initialize repository with database session.

        Args:
            session: SQLAlchemy async session
        """
        self.session = session

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        """
        Run a block as one atomic unit.

        Opens a transaction on the session, or a SAVEPOINT when the caller
        already holds one. Any exception (cancellation included) rolls the
        unit back; database errors are re-raised as FormsError subclasses.
        """
        if self.session.in_transaction():
            txn = self.session.begin_nested()
        else:
            txn = self.session.begin()

        try:
            async with txn:
                yield self.session
        except FormsError:
            raise
        except (SQLAlchemyError, OSError, TimeoutError) as exc:
            raise translate_db_error(exc) from exc

    async def create(self, entity: ModelT) -> ModelT:
        """
        Add an entity and flush it so server-generated columns are populated.

        Must be called inside ``_transaction()``.

        Args:
            entity: New ORM instance (related objects cascade with it)

        Returns:
            The same instance, now persistent
        """
        self.session.add(entity)
        await self.session.flush()
        return entity
