"""
Authorization Gate

Callers arrive with an identity that was already authenticated elsewhere
(token validation and account lookup are not part of this package). The gate
turns that identity into permission decisions *before* a repository method
runs; repository methods then take the caller's user id as an explicit
argument and fold it into their SQL.
"""

import logging
from dataclasses import dataclass
from uuid import UUID

from landscape_forms.core.exceptions import AccessDeniedError
from landscape_forms.models.enums import ApprovalState, UserRole

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallerIdentity:
    """
    Resolved caller identity.

    Represents a user whose credentials have already been validated, with the
    role and approval state current at lookup time.
    """
    user_id: UUID
    role: UserRole = UserRole.EMPLOYEE
    approval: ApprovalState = ApprovalState.PENDING

    @property
    def is_admin(self) -> bool:
        """Check if caller holds the admin role."""
        return self.role == UserRole.ADMIN

    @property
    def is_approved(self) -> bool:
        """Check if caller's account has been approved."""
        return self.approval == ApprovalState.APPROVED


@dataclass(frozen=True)
class AdminGrant:
    """
    Proof that the admin check passed for a caller.

    Only require_admin() should construct one; FormRepository.list_all_forms()
    requires it, which keeps the role check strictly upstream of the
    unfiltered query.
    """
    caller_id: UUID


def require_approved(caller: CallerIdentity) -> CallerIdentity:
    """
    Ensure the caller's account has been approved.

    Args:
        caller: Resolved caller identity

    Returns:
        The same caller, for chaining

    Raises:
        AccessDeniedError: If the account is still pending approval
    """
    if not caller.is_approved:
        logger.info(f"Rejected pending account {caller.user_id}")
        raise AccessDeniedError("Account pending approval")
    return caller


def require_admin(caller: CallerIdentity) -> AdminGrant:
    """
    Ensure the caller is an approved admin.

    Args:
        caller: Resolved caller identity

    Returns:
        AdminGrant to pass to administrative repository methods

    Raises:
        AccessDeniedError: If the caller is pending or not an admin
    """
    require_approved(caller)
    if not caller.is_admin:
        logger.info(f"Rejected non-admin {caller.user_id} for admin operation")
        raise AccessDeniedError("Admin access required")
    return AdminGrant(caller_id=caller.user_id)
