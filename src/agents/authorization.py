"""
Authorization Gate
Pure policy: (caller role, intent, optional target) -> Allow | Deny(reason).

Rules, in priority order:
1. Mutating intents need a staff-tier role; user administration needs admin or master-admin.
2. A master-admin account is never a valid target. Other admin-tier accounts
   are protected from everyone except a master-admin.
3. A regular admin may only move a user between applicant and viewer.
   Nobody grants master-admin through this path.
4. Read-only intents are open to every authenticated role.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from ..core.errors import PermissionDeniedError
from ..core.schema import ROLE_RANK, STAFF_TIER, Role, parse_role
from .intents import USER_ADMIN_INTENTS, Intent, is_mutating
from util.logging import logger

# Roles a non-master admin may move a user between
ADMIN_MANAGED_ROLES = frozenset({Role.APPLICANT, Role.VIEWER})


class DenyReason(str, Enum):
    INSUFFICIENT_ROLE = "insufficient_role"
    PROTECTED_TARGET = "protected_target"
    DISALLOWED_TRANSITION = "disallowed_transition"


@dataclass(frozen=True)
class Allow:
    allowed = True


@dataclass(frozen=True)
class Deny:
    reason: DenyReason
    message: str
    allowed = False


Decision = Union[Allow, Deny]

ALLOW = Allow()


@dataclass(frozen=True)
class AuthorizationTarget:
    """The user account a role change or deletion acts on."""
    role: Optional[Role] = None
    is_master_admin: bool = False
    requested_role: Optional[str] = None

    @property
    def protected_master(self) -> bool:
        return self.is_master_admin or self.role == Role.MASTER_ADMIN


def authorize(role, intent: Intent, target: Optional[AuthorizationTarget] = None,
              caller_is_master_admin: bool = False) -> Decision:
    """Decide whether a caller may run an intent. No side effects."""
    caller_role = parse_role(role)
    if caller_role is None:
        return Deny(DenyReason.INSUFFICIENT_ROLE, "Your account has no recognized role.")

    if not is_mutating(intent):
        return ALLOW

    caller_master = caller_is_master_admin or caller_role == Role.MASTER_ADMIN
    if not caller_master and ROLE_RANK[caller_role] < STAFF_TIER:
        return Deny(DenyReason.INSUFFICIENT_ROLE, "Your role does not allow changes to records.")

    user_admin = intent in USER_ADMIN_INTENTS
    if user_admin and not caller_master and caller_role != Role.ADMIN:
        return Deny(DenyReason.INSUFFICIENT_ROLE, "Only administrators can manage user accounts.")

    if target is not None:
        if target.protected_master:
            return Deny(DenyReason.PROTECTED_TARGET, "The master admin account cannot be modified or deleted.")
        target_rank = ROLE_RANK.get(target.role, 0) if target.role else 0
        if user_admin and not caller_master and target_rank >= STAFF_TIER:
            return Deny(DenyReason.PROTECTED_TARGET, "Only the master admin can modify admin-tier accounts.")

    if intent == Intent.SET_USER_ROLE:
        requested = parse_role(target.requested_role) if target else None
        if requested == Role.MASTER_ADMIN:
            return Deny(DenyReason.DISALLOWED_TRANSITION, "The master admin role cannot be granted.")
        if not caller_master:
            current = target.role if target else None
            if requested not in ADMIN_MANAGED_ROLES or (current is not None and current not in ADMIN_MANAGED_ROLES):
                return Deny(
                    DenyReason.DISALLOWED_TRANSITION,
                    "Admins may only move users between applicant and viewer.",
                )

    return ALLOW


def require(role, intent: Intent, target: Optional[AuthorizationTarget] = None,
            caller_is_master_admin: bool = False) -> None:
    """Authorize or raise PermissionDeniedError carrying the reason tag."""
    decision = authorize(role, intent, target, caller_is_master_admin)
    role_label = role.value if isinstance(role, Role) else str(role)
    if isinstance(decision, Deny):
        logger.log_authorization(role_label, intent.value, False, decision.reason.value)
        raise PermissionDeniedError(decision.message, decision.reason.value, {"intent": intent.value})
    logger.log_authorization(role_label, intent.value, True)
