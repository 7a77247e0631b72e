"""
Request dependencies shared by the API routers.
"""

from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..agents.orchestrator import CommandOrchestrator
from ..core.errors import UnauthenticatedError
from ..core.schema import Identity

security = HTTPBearer(auto_error=False)


def get_orchestrator(request: Request) -> CommandOrchestrator:
    return request.app.state.orchestrator


def get_identity(request: Request,
                 credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> Identity:
    """Resolve the bearer token to an Identity, or fail with UNAUTHENTICATED."""
    if credentials is None or not credentials.credentials:
        raise UnauthenticatedError("A bearer token is required.")

    identity = request.app.state.identity_provider.resolve(credentials.credentials)
    if identity is None:
        raise UnauthenticatedError("The bearer token is not valid.")
    return identity
