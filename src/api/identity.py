"""
Identity provider collaborator.
Resolves a bearer token to the caller's Identity (uid, role, master-admin flag).
"""

from typing import Optional

from ..core.schema import USERS, Identity, parse_role
from util.logging import logger


class IdentityProvider:
    """Interface: return the Identity for a token, or None if it is not valid."""

    def resolve(self, token: str) -> Optional[Identity]:
        raise NotImplementedError


class StoreIdentityProvider(IdentityProvider):
    """Looks tokens up in the users collection (``apiToken`` field)."""

    def __init__(self, store):
        self.store = store

    def resolve(self, token: str) -> Optional[Identity]:
        if not token:
            return None

        users = self.store.query(USERS, "apiToken", token)
        if len(users) != 1:
            if users:
                logger.warning("Bearer token matches more than one user; rejecting")
            return None

        user = users[0]
        role = parse_role(user.get("role"))
        if role is None:
            logger.warning(f"User {user['id']} has no recognized role")
            return None

        return Identity(
            uid=user["id"],
            role=role,
            email=user.get("email", ""),
            is_master_admin=bool(user.get("isMasterAdmin")),
        )
