"""
Command Orchestrator
Runs one command through the pipeline: route -> authorize -> dispatch.

This is the entry point used by the HTTP layer. The CommandOrchestrator:

1. Rejects blank commands
2. Routes the command through the oracle into one OperationRequest
3. Resolves the target account for user-administration intents
4. Authorizes the request; a denial never reaches the dispatcher
5. Dispatches and audits mutating operations
"""

from typing import Any, Dict, Optional

from ..core.errors import InvalidArgumentError
from ..core.schema import Identity, parse_role
from .authorization import AuthorizationTarget, Deny, DenyReason, authorize, require
from .dispatcher import OperationDispatcher
from .intents import USER_ADMIN_INTENTS, Intent, is_mutating
from .operations import OperationRequest, ResponseEnvelope
from .router import CommandRouter, RoutingTrace
from util.logging import audit_event, logger


class CommandOrchestrator:
    """
    Coordinates the router, authorization gate and dispatcher for each command.
    Holds no per-command state; every call is independent.
    """

    def __init__(self, router: CommandRouter, dispatcher: OperationDispatcher, store=None):
        self.router = router
        self.dispatcher = dispatcher
        self.store = store if store is not None else dispatcher.store

    def process_command(self, command: Optional[str], identity: Identity) -> ResponseEnvelope:
        """
        Interpret and execute a free-text command for an authenticated caller.

        Args:
            command: Raw command text
            identity: Caller identity from the identity provider

        Returns:
            ResponseEnvelope for the single operation the command mapped to
        """
        if command is None or not str(command).strip():
            raise InvalidArgumentError("A command is required.")

        command = str(command).strip()
        logger.log_command(identity.uid, identity.role.value, command)

        trace = RoutingTrace()
        request = self.router.route(command, trace)
        if trace.notes:
            logger.debug(f"Routing notes for {identity.uid}: {trace.notes}")

        return self.execute(request, identity)

    def execute(self, request: OperationRequest, identity: Identity) -> ResponseEnvelope:
        """Authorize and dispatch an already-built request."""
        # The caller's role alone can decide the denial; only then read the target account
        decision = authorize(identity.role, request.intent, None, identity.is_master_admin)
        if isinstance(decision, Deny) and decision.reason == DenyReason.INSUFFICIENT_ROLE:
            require(identity.role, request.intent, None, identity.is_master_admin)

        target = self._authorization_target(request)
        require(identity.role, request.intent, target, identity.is_master_admin)

        envelope = self.dispatcher.dispatch(request, identity)

        if is_mutating(request.intent):
            audit_event(
                "command.mutation",
                {"uid": identity.uid, "intent": request.intent.value, "success": envelope.success},
                payload=request.payload.to_dict(),
            )
        return envelope

    def _authorization_target(self, request: OperationRequest) -> Optional[AuthorizationTarget]:
        """Read the affected account for user-administration intents."""
        if request.intent not in USER_ADMIN_INTENTS:
            return None

        if request.intent == Intent.SET_USER_ROLE:
            identifier = request.payload.user_identifier
            requested_role = request.payload.role
        else:
            identifier = request.payload.identifier
            requested_role = None

        user = self.dispatcher.resolve_user(identifier)
        if user is None:
            if requested_role is None:
                return None
            return AuthorizationTarget(requested_role=requested_role)

        return AuthorizationTarget(
            role=parse_role(user.get("role")),
            is_master_admin=bool(user.get("isMasterAdmin")),
            requested_role=requested_role,
        )

    def health_check(self) -> Dict[str, Any]:
        """Health of the collaborators the pipeline depends on."""
        oracle = self.router.oracle
        return {
            "store": self.store.health_check() if self.store is not None else False,
            "oracle": oracle.health_check() if oracle is not None and hasattr(oracle, "health_check") else False,
        }
