"""
Structured logging for the command pipeline.
Every stage (oracle, routing, authorization, dispatch, store) logs through one named logger.
"""

import logging
from typing import Any, Dict, List

# Fields never written to logs verbatim
SENSITIVE_FIELDS = ['email', 'phone', 'apiToken', 'notes', 'password', 'secret']


class StructuredLogger:
    """Structured logger for command interpreter operations."""

    def __init__(self, name: str = "crm_assistant"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(logging.INFO)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        self.logger.info(message)

    def log_command(self, uid: str, role: str, command: str, status: str = "received"):
        """Log an inbound command. Command text is truncated."""
        details = {
            "uid": uid,
            "role": role,
            "command": command[:80] + "..." if len(command) > 80 else command,
        }
        self.log_operation("command", status, details)

    def log_oracle_call(self, model: str, duration_ms: float, status: str = "success", details: Dict[str, Any] = None):
        """Log a call to the generative oracle."""
        log_details = {"model": model, "duration_ms": round(duration_ms, 2)}
        if details:
            log_details.update(details)

        self.log_operation("oracle.chat", status, log_details)

    def log_routing(self, state: str, intent: str, details: Dict[str, Any] = None):
        """Log a router state transition."""
        log_details = {"intent": intent}
        if details:
            log_details.update(details)

        self.log_operation(f"router.{state.lower()}", "transition", log_details)

    def log_authorization(self, role: str, intent: str, allowed: bool, reason: str = None):
        """Log an authorization decision."""
        details = {"role": role, "intent": intent}
        if reason:
            details["reason"] = reason

        self.log_operation("authorization", "allow" if allowed else "deny", details)

    def log_dispatch(self, intent: str, success: bool, details: Dict[str, Any] = None):
        """Log the outcome of a dispatched operation."""
        self.log_operation(f"dispatch.{intent}", "success" if success else "no_match",
                           sanitize_payload(details) if details else None)

    def log_store_operation(self, operation: str, collection: str, doc_id: str = None, status: str = "success"):
        """Log a document store operation."""
        details = {"collection": collection}
        if doc_id is not None:
            details["id"] = doc_id

        self.log_operation(f"store.{operation}", status, details)

    def warning(self, message: str) -> None:
        """Log a warning message."""
        self.logger.warning(message)

    def info(self, message: str) -> None:
        """Log an info message."""
        self.logger.info(message)

    def error(self, message: str) -> None:
        """Log an error message."""
        self.logger.error(message)

    def exception(self, message: str) -> None:
        """Log an error message with the active traceback."""
        self.logger.exception(message)

    def debug(self, message: str) -> None:
        """Log a debug message."""
        self.logger.debug(message)


# Global logger instance
logger = StructuredLogger()


def audit_event(event_type: str, identifiers: Dict[str, Any], payload: Dict[str, Any] = None, sensitive_fields: List[str] = None):
    """General audit event logging with privacy controls."""
    log_details = identifiers.copy() if identifiers else {}

    if payload:
        log_details["payload"] = sanitize_payload(payload, sensitive_fields=sensitive_fields)

    logger.log_operation(event_type.replace(".", "_"), "audit", log_details)


def sanitize_payload(payload: Any, reveal_sensitive: bool = False, sensitive_fields: List[str] = None) -> Any:
    """Sanitize payloads for audit logging."""
    if sensitive_fields is None:
        sensitive_fields = SENSITIVE_FIELDS

    if isinstance(payload, dict):
        sanitized = {}
        for k, v in payload.items():
            if reveal_sensitive or k not in sensitive_fields:
                sanitized[k] = sanitize_payload(v, reveal_sensitive, sensitive_fields)
            else:
                sanitized[k] = "[REDACTED]"
        return sanitized
    elif isinstance(payload, str):
        # Truncate long strings
        return payload[:100] + "..." if len(payload) > 100 else payload
    elif isinstance(payload, list):
        return [sanitize_payload(item, reveal_sensitive, sensitive_fields) for item in payload]
    else:
        return payload
