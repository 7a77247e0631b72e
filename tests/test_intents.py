"""
Tests for the intent schema: declarations, tool catalogue and argument validation.
"""

import pytest

from src.agents.intents import (
    COUNT_TARGETS,
    INTENT_SCHEMA,
    Intent,
    build_tool_catalogue,
    get_declaration,
    is_mutating,
    validate_arguments,
)


class TestDeclarations:
    """Every intent is declared exactly once and can be looked up."""

    def test_every_intent_has_a_declaration(self):
        assert set(INTENT_SCHEMA) == set(Intent)

    def test_tool_names_are_unique(self):
        names = [d.tool_name.lower() for d in INTENT_SCHEMA.values()]
        assert len(names) == len(set(names))

    def test_lookup_by_tool_name_is_case_insensitive(self):
        assert get_declaration("countExpenseReports").intent == Intent.COUNT_EXPENSE_REPORTS
        assert get_declaration("COUNTEXPENSEREPORTS").intent == Intent.COUNT_EXPENSE_REPORTS

    def test_lookup_by_intent_tag(self):
        assert get_declaration("COUNT_DATA").intent == Intent.COUNT_DATA
        assert get_declaration(Intent.DELETE_USER).tool_name == "deleteUser"

    def test_unknown_names_fail_closed(self):
        assert get_declaration("launchRocket") is None
        assert get_declaration("") is None
        assert get_declaration(None) is None

    def test_every_declaration_has_a_default_response(self):
        for declaration in INTENT_SCHEMA.values():
            assert declaration.default_response.strip()

    @pytest.mark.parametrize("intent", [
        Intent.ADD_CONTACT, Intent.UPDATE_BOOK, Intent.DELETE_EVENT, Intent.ADD_ATTENDEE,
        Intent.CREATE_EXPENSE_REPORT, Intent.LOG_INTERACTION, Intent.SET_USER_ROLE, Intent.DELETE_USER,
    ])
    def test_mutating_intents(self, intent):
        assert is_mutating(intent)

    @pytest.mark.parametrize("intent", [
        Intent.FIND_CONTACT, Intent.COUNT_DATA, Intent.METRICS_DATA, Intent.GET_CUSTOMER_SUMMARY,
        Intent.COUNT_EXPENSE_REPORTS, Intent.GENERAL_QUERY,
    ])
    def test_read_only_intents(self, intent):
        assert not is_mutating(intent)


class TestToolCatalogue:
    """The catalogue handed to the oracle."""

    def test_general_query_is_not_offered_as_a_tool(self):
        names = [tool["function"]["name"] for tool in build_tool_catalogue()]
        assert "generalQuery" not in names
        assert len(names) == len(Intent) - 1

    def test_entries_are_function_declarations(self):
        for tool in build_tool_catalogue():
            assert tool["type"] == "function"
            assert tool["function"]["description"]
            assert tool["function"]["parameters"]["type"] == "object"

    def test_enum_constraints_are_published(self):
        tools = {t["function"]["name"]: t["function"] for t in build_tool_catalogue()}
        target = tools["countData"]["parameters"]["properties"]["target"]
        assert target["enum"] == COUNT_TARGETS
        role = tools["setUserRole"]["parameters"]["properties"]["role"]
        assert "master-admin" in role["enum"]

    def test_required_fields_use_argument_names(self):
        tools = {t["function"]["name"]: t["function"] for t in build_tool_catalogue()}
        assert tools["addBook"]["parameters"]["required"] == ["title"]
        assert tools["updateContact"]["parameters"]["required"] == ["identifier", "updates"]
        # "at least one of" requirements are not expressible as required
        assert tools["addContact"]["parameters"]["required"] == []


class TestValidateArguments:
    """Validation the dispatcher applies before running a handler."""

    def test_missing_required_field(self):
        problems = validate_arguments(Intent.COUNT_DATA, {})
        assert problems == ["target is required"]

    def test_one_of_requirement(self):
        assert validate_arguments(Intent.ADD_CONTACT, {"fields": {"name": "Sam Reed"}}) == []
        assert validate_arguments(Intent.ADD_CONTACT, {"fields": {"city": "Mobile"}})

    def test_closed_enum_rejects_unknown_target(self):
        problems = validate_arguments(Intent.COUNT_DATA, {"target": "widgets"})
        assert len(problems) == 1
        assert "widgets" in problems[0]

    def test_closed_enum_on_update_category(self):
        payload = {"identifier": "John", "updates": {"category": "Client"}}
        assert validate_arguments(Intent.UPDATE_CONTACT, payload)

    def test_closed_enum_accepts_lists_of_known_values(self):
        payload = {"fields": {"firstName": "Sam", "category": ["Customer", "Vendor"]}}
        assert validate_arguments(Intent.ADD_CONTACT, payload) == []

    def test_metric_must_belong_to_target(self):
        problems = validate_arguments(Intent.METRICS_DATA, {"target": "books", "metric": "top-spending"})
        assert any("top-selling" in p for p in problems)
        assert validate_arguments(Intent.METRICS_DATA, {"target": "books", "metric": "lowest-stock"}) == []

    def test_unknown_role(self):
        assert validate_arguments(Intent.SET_USER_ROLE, {"userIdentifier": "bob", "role": "superuser"})

    def test_lookups_need_no_arguments(self):
        assert validate_arguments(Intent.FIND_BOOK, {}) == []
