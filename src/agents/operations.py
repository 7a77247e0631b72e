"""
Operation Request types.
The router's typed output and the dispatcher's uniform response envelope.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, Optional, Union

from .intents import Intent
from .normalizer import PriceRange


def to_jsonable(value: Any) -> Any:
    """Convert normalized values (ranges, dates) into JSON-safe primitives."""
    if isinstance(value, PriceRange):
        return value.to_dict()
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    return value


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    return {k: to_jsonable(v) for k, v in data.items() if v is not None}


@dataclass(frozen=True)
class LookupPayload:
    """Find by identifier, or list by filters. Never both."""
    identifier: Optional[str] = None
    filters: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        if self.identifier is not None:
            return _compact({"identifier": self.identifier})
        return _compact({"filters": self.filters})


@dataclass(frozen=True)
class IdentifierPayload:
    identifier: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({"identifier": self.identifier})


@dataclass(frozen=True)
class UpdatePayload:
    identifier: Optional[str] = None
    updates: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return _compact({"identifier": self.identifier, "updates": self.updates})


@dataclass(frozen=True)
class CreatePayload:
    fields: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return _compact({"fields": self.fields})


@dataclass(frozen=True)
class CountPayload:
    target: Optional[str] = None
    filters: Dict[str, Any] = field(default_factory=dict)
    limit: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({"target": self.target, "filters": self.filters, "limit": self.limit})


@dataclass(frozen=True)
class MetricsPayload:
    target: Optional[str] = None
    metric: Optional[str] = None
    limit: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({"target": self.target, "metric": self.metric, "limit": self.limit})


@dataclass(frozen=True)
class AttendeePayload:
    event_identifier: Optional[str] = None
    contact_identifier: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({
            "eventIdentifier": self.event_identifier,
            "contactIdentifier": self.contact_identifier,
        })


@dataclass(frozen=True)
class InteractionPayload:
    identifier: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return _compact({"identifier": self.identifier, "fields": self.fields})


@dataclass(frozen=True)
class RoleChangePayload:
    user_identifier: Optional[str] = None
    role: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _compact({"userIdentifier": self.user_identifier, "role": self.role})


@dataclass(frozen=True)
class EmptyPayload:
    def to_dict(self) -> Dict[str, Any]:
        return {}


Payload = Union[
    LookupPayload, IdentifierPayload, UpdatePayload, CreatePayload, CountPayload,
    MetricsPayload, AttendeePayload, InteractionPayload, RoleChangePayload, EmptyPayload,
]


@dataclass(frozen=True)
class OperationRequest:
    """One classified command. Built once, never mutated."""
    intent: Intent
    payload: Payload
    response_text: str

    def __post_init__(self):
        if not self.response_text or not self.response_text.strip():
            raise ValueError("OperationRequest.response_text must not be empty")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intent": self.intent.value,
            "payload": self.payload.to_dict(),
            "responseText": self.response_text,
        }


@dataclass
class ResponseEnvelope:
    """Uniform dispatch result: {intent, responseText, success, ...data}."""
    intent: Intent
    response_text: str
    success: bool = True
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        body = to_jsonable(self.data)
        body.update({
            "intent": self.intent.value,
            "responseText": self.response_text,
            "success": self.success,
        })
        return body
