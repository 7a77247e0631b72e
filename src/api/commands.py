"""
Command API
Natural-language command endpoint: {command} -> {data: {intent, responseText, success, ...}}.
"""

from fastapi import APIRouter, Depends

from .deps import get_identity, get_orchestrator
from .schemas import CommandRequest, CommandResponse, ErrorResponse
from ..agents.orchestrator import CommandOrchestrator
from ..core.schema import Identity

router = APIRouter(tags=["commands"])

ERROR_RESPONSES = {
    400: {"model": ErrorResponse},
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


@router.post("/command", response_model=CommandResponse, responses=ERROR_RESPONSES)
def run_command(body: CommandRequest,
                identity: Identity = Depends(get_identity),
                orchestrator: CommandOrchestrator = Depends(get_orchestrator)):
    """
    Interpret one free-text command and execute the operation it maps to.

    Oracle timeouts surface as 503 ORACLE_UNAVAILABLE with retryable=true;
    authorization denials as 403 PERMISSION_DENIED with a reason tag.
    """
    envelope = orchestrator.process_command(body.command, identity)
    return CommandResponse(data=envelope.to_dict())
