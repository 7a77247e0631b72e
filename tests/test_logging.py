"""
Tests for structured logging and audit sanitization.
"""

import logging
from unittest.mock import patch

from util.logging import StructuredLogger, audit_event, logger, sanitize_payload


class TestStructuredLogger:

    def test_single_handler_per_logger(self):
        first = StructuredLogger("crm_assistant_test")
        second = StructuredLogger("crm_assistant_test")
        assert first.logger is second.logger
        assert len(second.logger.handlers) == 1

    def test_log_command_truncates_long_commands(self, caplog):
        with caplog.at_level(logging.INFO, logger="crm_assistant"):
            logger.log_command("u-staff", "staff", "x" * 200)

        message = caplog.records[-1].getMessage()
        assert "Operation: command, Status: received" in message
        assert "x" * 80 + "..." in message
        assert "x" * 81 not in message

    def test_log_authorization_includes_reason(self, caplog):
        with caplog.at_level(logging.INFO, logger="crm_assistant"):
            logger.log_authorization("viewer", "DELETE_CONTACT", False, "insufficient_role")

        message = caplog.records[-1].getMessage()
        assert "Status: deny" in message
        assert "insufficient_role" in message

    def test_log_routing_names_the_state(self, caplog):
        with caplog.at_level(logging.INFO, logger="crm_assistant"):
            logger.log_routing("NORMALIZED", "COUNT_DATA")
        assert "router.normalized" in caplog.records[-1].getMessage()

    def test_dispatch_details_are_sanitized(self, caplog):
        with caplog.at_level(logging.INFO, logger="crm_assistant"):
            logger.log_dispatch("FIND_CONTACT", True, {"email": "alice@example.com", "matches": 1})

        message = caplog.records[-1].getMessage()
        assert "alice@example.com" not in message
        assert "[REDACTED]" in message


class TestSanitizePayload:

    def test_sensitive_fields_are_redacted(self):
        payload = {"fields": {"firstName": "Alice", "email": "alice@example.com", "phone": "555-0100"}}
        assert sanitize_payload(payload) == {
            "fields": {"firstName": "Alice", "email": "[REDACTED]", "phone": "[REDACTED]"}
        }

    def test_lists_and_long_strings(self):
        result = sanitize_payload([{"apiToken": "tok"}, "y" * 150])
        assert result[0] == {"apiToken": "[REDACTED]"}
        assert result[1] == "y" * 100 + "..."

    def test_reveal_sensitive(self):
        assert sanitize_payload({"email": "a@b.c"}, reveal_sensitive=True) == {"email": "a@b.c"}

    @patch("util.logging.logger")
    def test_audit_event(self, mock_logger):
        audit_event("command.mutation", {"uid": "u-staff", "intent": "ADD_CONTACT"},
                    payload={"fields": {"email": "sam@example.com"}})

        mock_logger.log_operation.assert_called_once_with("command_mutation", "audit", {
            "uid": "u-staff",
            "intent": "ADD_CONTACT",
            "payload": {"fields": {"email": "[REDACTED]"}},
        })
