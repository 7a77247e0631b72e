"""
User administration API
Role changes and account deletion, authorized by the same gate as commands.
"""

from fastapi import APIRouter, Depends

from .commands import ERROR_RESPONSES
from .deps import get_identity, get_orchestrator
from .schemas import CommandResponse, SetUserRoleRequest
from ..agents.intents import Intent, get_declaration
from ..agents.operations import IdentifierPayload, OperationRequest, RoleChangePayload
from ..agents.orchestrator import CommandOrchestrator
from ..core.schema import Identity

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/{user_id}/role", response_model=CommandResponse, responses=ERROR_RESPONSES)
def set_user_role(user_id: str, body: SetUserRoleRequest,
                  identity: Identity = Depends(get_identity),
                  orchestrator: CommandOrchestrator = Depends(get_orchestrator)):
    """Change a user's role."""
    request = OperationRequest(
        intent=Intent.SET_USER_ROLE,
        payload=RoleChangePayload(user_identifier=user_id, role=body.role),
        response_text=get_declaration(Intent.SET_USER_ROLE).default_response,
    )
    envelope = orchestrator.execute(request, identity)
    return CommandResponse(data=envelope.to_dict())


@router.delete("/{user_id}", response_model=CommandResponse, responses=ERROR_RESPONSES)
def delete_user(user_id: str,
                identity: Identity = Depends(get_identity),
                orchestrator: CommandOrchestrator = Depends(get_orchestrator)):
    """Delete a user account."""
    request = OperationRequest(
        intent=Intent.DELETE_USER,
        payload=IdentifierPayload(identifier=user_id),
        response_text=get_declaration(Intent.DELETE_USER).default_response,
    )
    envelope = orchestrator.execute(request, identity)
    return CommandResponse(data=envelope.to_dict())
