"""
Core Exceptions

Typed failures raised by the forms layer, plus the translation of database
driver errors into them.

Every repository call ends in one of three failure kinds:

- ValidationFailure: the input is malformed or contradictory, or the storage
  layer rejected it (check, foreign key, unique or trigger violation)
- NotFoundOrUnauthorized: no row matched the identifier *and* the caller's
  ownership predicate. Absent and foreign rows are deliberately the same
  failure with the same message.
- TransientInfrastructureFailure: the store was unreachable or the
  transaction could not complete. Nothing was committed, so the whole
  operation may be retried.
"""

from sqlalchemy import exc as sa_exc


class AccessDeniedError(Exception):
    """
    Raised by the authorization gate when a caller may not use an operation.

    Used by require_approved() and require_admin() when:
    - The caller's account is still pending approval
    - The caller lacks the admin role for an administrative listing

    Usage:
        grant = require_admin(caller)
        # Raises AccessDeniedError if the caller is not an approved admin
    """

    def __init__(self, message: str = "Access denied"):
        self.message = message
        super().__init__(self.message)


class FormsError(Exception):
    """Base class for failures surfaced by the forms repository."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)


class ValidationFailure(FormsError):
    """Malformed or contradictory input, or a storage constraint violation."""


class NotFoundOrUnauthorized(FormsError):
    """
    The form does not exist or is not owned by the caller.

    The message is fixed so callers cannot tell the two cases apart.
    """

    MESSAGE = "Form not found"

    def __init__(self) -> None:
        super().__init__(self.MESSAGE)


class TransientInfrastructureFailure(FormsError):
    """Connection or transaction failure; safe to retry the whole operation."""


# SQLSTATE classes
_VALIDATION_CLASSES = ("22", "23")  # data exception, integrity constraint violation
_VALIDATION_CODES = ("P0001",)  # raise_exception from a trigger
_TRANSIENT_CLASSES = ("08", "40", "53", "57")  # connection, rollback, resources, operator intervention


def _sqlstate(error: sa_exc.DBAPIError) -> str | None:
    """Extract the SQLSTATE from a wrapped driver error (asyncpg or psycopg)."""
    orig = error.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    if code is None:
        # asyncpg exposes the original exception one level down
        code = getattr(getattr(orig, "__cause__", None), "sqlstate", None)
    return code


def translate_db_error(error: BaseException) -> FormsError:
    """
    Map a database error onto the forms failure taxonomy.

    Args:
        error: Exception raised while talking to the database

    Returns:
        The typed failure to raise in its place (chain it with ``from``)
    """
    if isinstance(error, FormsError):
        return error

    if isinstance(error, sa_exc.DBAPIError):
        if error.connection_invalidated:
            return TransientInfrastructureFailure("Database connection was lost")

        code = _sqlstate(error)
        if code is not None:
            if code in _VALIDATION_CODES or code[:2] in _VALIDATION_CLASSES:
                return ValidationFailure(_describe(error))
            if code[:2] in _TRANSIENT_CLASSES:
                return TransientInfrastructureFailure(_describe(error))

        if isinstance(error, (sa_exc.IntegrityError, sa_exc.DataError)):
            return ValidationFailure(_describe(error))
        return TransientInfrastructureFailure(_describe(error))

    if isinstance(error, sa_exc.StatementError):
        # Bind-parameter processing failed before reaching the server
        return ValidationFailure(str(error.orig or error))

    if isinstance(error, (sa_exc.TimeoutError, sa_exc.DisconnectionError, TimeoutError, OSError)):
        return TransientInfrastructureFailure(f"Database unavailable: {error}")

    return TransientInfrastructureFailure(f"Database operation failed: {error}")


def _describe(error: sa_exc.DBAPIError) -> str:
    """First line of the driver message, without the SQL statement."""
    detail = str(error.orig) if error.orig is not None else str(error)
    return detail.strip().splitlines()[0] if detail.strip() else type(error).__name__
