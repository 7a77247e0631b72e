"""
Command Router
State machine turning one oracle reply into exactly one typed OperationRequest.

    AWAITING_ORACLE -> CLASSIFIED -> NORMALIZED -> TERMINAL
    AWAITING_ORACLE -> GENERAL_QUERY (terminal)

The router is permissive: missing required fields are not rejected here, the
dispatcher reports them. Unknown tool names and free-text replies end in the
GENERAL_QUERY state and are never dispatched as CRM operations.
"""

import json
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from ..core.errors import OracleUnavailableError
from .intents import (
    FALLBACK_NAMES,
    Intent,
    IntentDeclaration,
    PayloadKind,
    get_declaration,
)
from .normalizer import REMOVE, normalize_value
from .operations import (
    AttendeePayload,
    CountPayload,
    CreatePayload,
    EmptyPayload,
    IdentifierPayload,
    InteractionPayload,
    LookupPayload,
    MetricsPayload,
    OperationRequest,
    Payload,
    RoleChangePayload,
    UpdatePayload,
)
from .oracle import OracleReply
from util.logging import logger

GENERIC_RESPONSE = "Working on it."


class RouterState(str, Enum):
    AWAITING_ORACLE = "AWAITING_ORACLE"
    CLASSIFIED = "CLASSIFIED"
    NORMALIZED = "NORMALIZED"
    GENERAL_QUERY = "GENERAL_QUERY"
    TERMINAL = "TERMINAL"


@dataclass
class RoutingTrace:
    """Ordered record of the states one command passed through."""
    states: List[RouterState] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    def enter(self, state: RouterState, intent: Optional[Intent] = None, details: Dict[str, Any] = None):
        self.states.append(state)
        logger.log_routing(state.value, intent.value if intent else "unknown", details)

    def note(self, message: str):
        self.notes.append(message)
        logger.info(f"Router: {message}")

    @property
    def final_state(self) -> Optional[RouterState]:
        return self.states[-1] if self.states else None


# Payload attribute -> argument field name used by the normalizer
_FIELD_NAMES = {
    "event_identifier": "eventIdentifier",
    "contact_identifier": "contactIdentifier",
    "user_identifier": "userIdentifier",
}


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _as_mapping(value: Any, trace: RoutingTrace, name: str, keep_invalid: bool = False) -> Dict[str, Any]:
    """Coerce a nested argument object. Small models often send it JSON-encoded."""
    if value is None:
        return {}
    if isinstance(value, str):
        try:
            value = json.loads(value) if value.strip() else {}
        except json.JSONDecodeError:
            pass
    if isinstance(value, dict):
        return dict(value)
    if keep_invalid:
        # Kept under its own name so the dispatcher reports it as an ignored filter
        trace.note(f"'{name}' is not an object and cannot be applied")
        return {name: value}
    trace.note(f"'{name}' is not an object and was dropped")
    return {}


def _first(args: Dict[str, Any], *names: str) -> Any:
    """Pop the first present alias, removing every alias from args."""
    found = None
    for name in names:
        value = args.pop(name, None)
        if found is None and value is not None:
            found = value
    return found


def _lookup(declaration: IntentDeclaration, args: Dict[str, Any], trace: RoutingTrace) -> Payload:
    identifier = _as_text(args.pop("identifier", None))
    filters = _as_mapping(args.pop("filters", None), trace, "filters", keep_invalid=True)
    # Stray top-level arguments are treated as filters
    return LookupPayload(identifier=identifier, filters={**args, **filters})


def _identifier(declaration: IntentDeclaration, args: Dict[str, Any], trace: RoutingTrace) -> Payload:
    return IdentifierPayload(
        identifier=_as_text(_first(args, "identifier", "userIdentifier", "contactIdentifier", "email"))
    )


def _update(declaration: IntentDeclaration, args: Dict[str, Any], trace: RoutingTrace) -> Payload:
    identifier = _as_text(args.pop("identifier", None))
    updates = _as_mapping(args.pop("updates", None), trace, "updates")
    return UpdatePayload(identifier=identifier, updates={**args, **updates})


def _create(declaration: IntentDeclaration, args: Dict[str, Any], trace: RoutingTrace) -> Payload:
    nested = _as_mapping(_first(args, "fields", "data"), trace, "fields")
    return CreatePayload(fields={**args, **nested})


def _count(declaration: IntentDeclaration, args: Dict[str, Any], trace: RoutingTrace) -> Payload:
    target = args.pop("target", None)
    if declaration.fixed_target:
        target = declaration.fixed_target
    limit = args.pop("limit", None)
    filters = _as_mapping(args.pop("filters", None), trace, "filters", keep_invalid=True)
    return CountPayload(target=_as_text(target), filters={**args, **filters}, limit=limit)


def _metrics(declaration: IntentDeclaration, args: Dict[str, Any], trace: RoutingTrace) -> Payload:
    return MetricsPayload(
        target=_as_text(args.get("target")),
        metric=_as_text(args.get("metric")),
        limit=args.get("limit"),
    )


def _attendee(declaration: IntentDeclaration, args: Dict[str, Any], trace: RoutingTrace) -> Payload:
    return AttendeePayload(
        event_identifier=_as_text(_first(args, "eventIdentifier", "eventName")),
        contact_identifier=_as_text(_first(args, "contactIdentifier", "identifier", "contactName")),
    )


def _interaction(declaration: IntentDeclaration, args: Dict[str, Any], trace: RoutingTrace) -> Payload:
    identifier = _as_text(_first(args, "identifier", "contactIdentifier"))
    nested = _as_mapping(args.pop("fields", None), trace, "fields")
    return InteractionPayload(identifier=identifier, fields={**args, **nested})


def _role_change(declaration: IntentDeclaration, args: Dict[str, Any], trace: RoutingTrace) -> Payload:
    return RoleChangePayload(
        user_identifier=_as_text(_first(args, "userIdentifier", "identifier", "email")),
        role=_as_text(args.get("role")),
    )


def _empty(declaration: IntentDeclaration, args: Dict[str, Any], trace: RoutingTrace) -> Payload:
    return EmptyPayload()


_PAYLOAD_BUILDERS = {
    PayloadKind.LOOKUP: _lookup,
    PayloadKind.IDENTIFIER: _identifier,
    PayloadKind.UPDATE: _update,
    PayloadKind.CREATE: _create,
    PayloadKind.COUNT: _count,
    PayloadKind.METRICS: _metrics,
    PayloadKind.ATTENDEE: _attendee,
    PayloadKind.INTERACTION: _interaction,
    PayloadKind.ROLE_CHANGE: _role_change,
    PayloadKind.EMPTY: _empty,
}

assert set(_PAYLOAD_BUILDERS) == set(PayloadKind), "every payload kind needs a builder"


def normalize_payload(payload: Payload) -> Payload:
    """Run every payload field through the normalizer, keyed by its argument name."""
    changes = {}
    for payload_field in fields(payload):
        value = getattr(payload, payload_field.name)
        normalized = normalize_value(_FIELD_NAMES.get(payload_field.name, payload_field.name), value)
        if normalized is REMOVE:
            normalized = {} if isinstance(value, dict) else None
        changes[payload_field.name] = normalized
    return replace(payload, **changes)


class CommandRouter:
    """
    Classifies commands through the oracle and emits OperationRequests.

    The oracle is injected; any object with ``ask(command) -> OracleReply`` works.
    """

    def __init__(self, oracle=None):
        self.oracle = oracle

    def route(self, command: str, trace: Optional[RoutingTrace] = None) -> OperationRequest:
        """Ask the oracle about one command and route its reply."""
        trace = trace if trace is not None else RoutingTrace()
        trace.enter(RouterState.AWAITING_ORACLE)
        if self.oracle is None:
            raise OracleUnavailableError("No language model is configured.")

        # OracleUnavailableError propagates unchanged; the router never retries
        reply = self.oracle.ask(command)
        return self.route_reply(reply, trace)

    def route_reply(self, reply: OracleReply, trace: Optional[RoutingTrace] = None) -> OperationRequest:
        """Turn an oracle reply into exactly one OperationRequest."""
        trace = trace if trace is not None else RoutingTrace()

        declaration = self._classify(reply)
        if declaration is None:
            return self._general_query(reply, trace)

        raw_args = reply.arguments if isinstance(reply.arguments, dict) else {}
        payload = _PAYLOAD_BUILDERS[declaration.payload_kind](declaration, dict(raw_args), trace)
        trace.enter(RouterState.CLASSIFIED, declaration.intent, {"tool": reply.tool_name})

        payload = normalize_payload(payload)
        if isinstance(payload, LookupPayload) and payload.identifier is not None and payload.filters:
            trace.note(
                f"{declaration.intent.value}: identifier and filters both supplied; "
                f"using identifier, dropping filters {sorted(payload.filters)}"
            )
            payload = replace(payload, filters={})
        trace.enter(RouterState.NORMALIZED, declaration.intent)

        request = OperationRequest(
            intent=declaration.intent,
            payload=payload,
            response_text=(reply.text or "").strip() or declaration.default_response or GENERIC_RESPONSE,
        )
        trace.enter(RouterState.TERMINAL, declaration.intent)
        return request

    def _classify(self, reply: OracleReply) -> Optional[IntentDeclaration]:
        if not reply.tool_name:
            return None
        if reply.tool_name.strip().lower() in FALLBACK_NAMES:
            return None
        declaration = get_declaration(reply.tool_name)
        if declaration is None:
            logger.warning(f"Oracle called unknown tool '{reply.tool_name}'; treating as a general query")
            return None
        if declaration.intent == Intent.GENERAL_QUERY:
            return None
        return declaration

    def _general_query(self, reply: OracleReply, trace: RoutingTrace) -> OperationRequest:
        declaration = get_declaration(Intent.GENERAL_QUERY)
        trace.enter(RouterState.GENERAL_QUERY, Intent.GENERAL_QUERY,
                    {"tool": reply.tool_name} if reply.tool_name else None)
        return OperationRequest(
            intent=Intent.GENERAL_QUERY,
            payload=EmptyPayload(),
            response_text=(reply.text or "").strip() or declaration.default_response,
        )
