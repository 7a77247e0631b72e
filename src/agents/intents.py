"""
Intent Schema
Declarative catalogue of every supported CRM operation and the argument shape it takes.

The same declarations build the oracle's tool catalogue and, independently,
validate what comes back before dispatch. An intent tag or tool name missing
from the catalogue is unknown and never dispatched.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from ..core.schema import Category, ExpenseStatus, Role


class Intent(str, Enum):
    ADD_CONTACT = "ADD_CONTACT"
    FIND_CONTACT = "FIND_CONTACT"
    UPDATE_CONTACT = "UPDATE_CONTACT"
    DELETE_CONTACT = "DELETE_CONTACT"
    ADD_BOOK = "ADD_BOOK"
    FIND_BOOK = "FIND_BOOK"
    UPDATE_BOOK = "UPDATE_BOOK"
    DELETE_BOOK = "DELETE_BOOK"
    ADD_EVENT = "ADD_EVENT"
    FIND_EVENT = "FIND_EVENT"
    UPDATE_EVENT = "UPDATE_EVENT"
    DELETE_EVENT = "DELETE_EVENT"
    ADD_ATTENDEE = "ADD_ATTENDEE"
    REMOVE_ATTENDEE = "REMOVE_ATTENDEE"
    CREATE_TRANSACTION = "CREATE_TRANSACTION"
    COUNT_DATA = "COUNT_DATA"
    METRICS_DATA = "METRICS_DATA"
    FIND_EXPENSE_REPORT = "FIND_EXPENSE_REPORT"
    COUNT_EXPENSE_REPORTS = "COUNT_EXPENSE_REPORTS"
    CREATE_EXPENSE_REPORT = "CREATE_EXPENSE_REPORT"
    LOG_INTERACTION = "LOG_INTERACTION"
    GET_CUSTOMER_SUMMARY = "GET_CUSTOMER_SUMMARY"
    SET_USER_ROLE = "SET_USER_ROLE"
    DELETE_USER = "DELETE_USER"
    GENERAL_QUERY = "GENERAL_QUERY"


class PayloadKind(str, Enum):
    """Shape of the payload an intent carries."""
    LOOKUP = "lookup"
    IDENTIFIER = "identifier"
    UPDATE = "update"
    CREATE = "create"
    COUNT = "count"
    METRICS = "metrics"
    ATTENDEE = "attendee"
    INTERACTION = "interaction"
    ROLE_CHANGE = "role_change"
    EMPTY = "empty"


COUNT_TARGETS = ["contacts", "books", "events", "expenseReports", "transactions"]

# target -> metrics available for it
METRICS = {
    "customers": ["top-spending"],
    "books": ["top-selling", "lowest-stock"],
    "expenseReports": ["total-by-status"],
}

INTERACTION_TYPES = ["Call", "Email", "Meeting", "Note", "Visit"]

CATEGORY_VALUES = [c.value for c in Category]
EXPENSE_STATUS_VALUES = [s.value for s in ExpenseStatus]
ROLE_VALUES = [r.value for r in Role]


@dataclass(frozen=True)
class ParameterSpec:
    """One argument field of an intent declaration."""
    type: str
    description: str
    enum: Optional[Tuple[str, ...]] = None
    properties: Optional[Dict[str, "ParameterSpec"]] = None
    items: Optional["ParameterSpec"] = None

    def to_json_schema(self) -> Dict[str, Any]:
        schema: Dict[str, Any] = {"type": self.type, "description": self.description}
        if self.enum:
            schema["enum"] = list(self.enum)
        if self.properties:
            schema["properties"] = {name: spec.to_json_schema() for name, spec in self.properties.items()}
        if self.items:
            schema["items"] = self.items.to_json_schema()
        return schema


@dataclass(frozen=True)
class IntentDeclaration:
    intent: Intent
    tool_name: str
    description: str
    payload_kind: PayloadKind
    parameters: Dict[str, ParameterSpec] = field(default_factory=dict)
    # Payload keys that must be present. A tuple entry means "at least one of".
    required: Tuple[Union[str, Tuple[str, ...]], ...] = ()
    # Payload paths whose values must come from a closed set.
    closed_enums: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    mutating: bool = False
    default_response: str = ""
    # Count intents that always count the same collection.
    fixed_target: Optional[str] = None

    def tool_schema(self) -> Dict[str, Any]:
        """Function declaration in the tool-calling format."""
        return {
            "type": "function",
            "function": {
                "name": self.tool_name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {name: spec.to_json_schema() for name, spec in self.parameters.items()},
                    "required": [
                        name for name in (r.split(".")[-1] for r in self.required if isinstance(r, str))
                        if name in self.parameters
                    ],
                },
            },
        }


def _string(description: str, enum: Optional[List[str]] = None) -> ParameterSpec:
    return ParameterSpec("string", description, tuple(enum) if enum else None)


def _object(description: str, properties: Dict[str, ParameterSpec]) -> ParameterSpec:
    return ParameterSpec("object", description, properties=properties)


CONTACT_PROPERTIES = {
    "honorific": _string("The contact's honorific (e.g., Mr., Ms., Dr.)."),
    "firstName": _string("The contact's first name."),
    "lastName": _string("The contact's last name."),
    "category": _string("The category of the contact.", CATEGORY_VALUES),
    "company": _string("The contact's company."),
    "jobTitle": _string("The contact's job title."),
    "phone": _string("The contact's phone number."),
    "email": _string("The contact's email address."),
    "address1": _string("Street address."),
    "city": _string("City."),
    "state": _string("Two-letter state code."),
    "zip": _string("ZIP code."),
    "notes": _string("Any notes about the contact."),
    "sendTNSBNewsletter": _string("Whether the contact receives the newsletter.", ["true", "false"]),
}

CONTACT_FILTERS = {
    "category": _string("Contact category.", CATEGORY_VALUES),
    "city": _string("City."),
    "state": _string("Two-letter state code."),
    "zip": _string("ZIP code."),
    "company": _string("Company name."),
    "sendTNSBNewsletter": _string("Newsletter subscription.", ["true", "false"]),
}

BOOK_PROPERTIES = {
    "title": _string("The book title."),
    "author": _string("The book's author."),
    "isbn": _string("ISBN."),
    "publisher": _string("Publisher."),
    "price": ParameterSpec("number", "Price in dollars."),
    "stock": ParameterSpec("integer", "Copies in stock."),
    "genre": _string("Genre."),
    "publicationYear": ParameterSpec("integer", "Year of publication."),
}

BOOK_FILTERS = {
    "author": _string("Author name."),
    "genre": _string("Genre."),
    "publisher": _string("Publisher."),
    "publicationYear": ParameterSpec("integer", "Year of publication."),
    "stock": ParameterSpec("integer", "Exact stock level, e.g. 0 for out of stock."),
    "priceFilter": _string("Price constraint: '<N', '>N' or 'A-B'."),
    "inStock": _string("Only books with stock on hand.", ["true", "false"]),
}

EVENT_PROPERTIES = {
    "name": _string("Event name."),
    "date": _string("Event date as YYYY-MM-DD."),
    "time": _string("Start time."),
    "location": _string("Where the event takes place."),
    "description": _string("Event description."),
    "author": _string("Featured author, if any."),
}

EVENT_FILTERS = {
    "name": _string("Part of the event name."),
    "location": _string("Location."),
    "author": _string("Featured author."),
    "startDate": _string("Earliest event date, YYYY-MM-DD."),
    "endDate": _string("Latest event date, YYYY-MM-DD."),
}

EXPENSE_FILTERS = {
    "status": _string("Report status.", EXPENSE_STATUS_VALUES),
    "staffName": _string("Staff member who filed the report."),
    "startDate": _string("Earliest report date, YYYY-MM-DD."),
    "endDate": _string("Latest report date, YYYY-MM-DD."),
    "amountFilter": _string("Total amount constraint: '<N', '>N' or 'A-B'."),
}

EXPENSE_ITEM = _object("One expense line.", {
    "itemDate": _string("Date of the expense, YYYY-MM-DD."),
    "description": _string("What the expense was for."),
    "cashAmount": ParameterSpec("number", "Amount in dollars."),
})

IDENTIFIER = _string("Name, title or email identifying one record, e.g. \"John Smith\" or \"jane.doe@example.com\".")


def _lookup(intent, tool, noun, filters, default_response):
    return IntentDeclaration(
        intent=intent,
        tool_name=tool,
        description=f"Find {noun} by identifier, or list {noun} matching filters.",
        payload_kind=PayloadKind.LOOKUP,
        parameters={"identifier": IDENTIFIER, "filters": _object(f"Filters for listing {noun}.", filters)},
        default_response=default_response,
    )


def _update(intent, tool, noun, properties, closed_enums=None):
    return IntentDeclaration(
        intent=intent,
        tool_name=tool,
        description=f"Update fields of an existing {noun}.",
        payload_kind=PayloadKind.UPDATE,
        parameters={"identifier": IDENTIFIER, "updates": _object("Fields to change.", properties)},
        required=("identifier", "updates"),
        closed_enums=closed_enums or {},
        mutating=True,
        default_response=f"Updating the {noun}.",
    )


def _delete(intent, tool, noun):
    return IntentDeclaration(
        intent=intent,
        tool_name=tool,
        description=f"Delete an existing {noun}.",
        payload_kind=PayloadKind.IDENTIFIER,
        parameters={"identifier": IDENTIFIER},
        required=("identifier",),
        mutating=True,
        default_response=f"Deleting the {noun}.",
    )


_DECLARATIONS = [
    IntentDeclaration(
        intent=Intent.ADD_CONTACT,
        tool_name="addContact",
        description="Add a new person or organisation to the contacts list.",
        payload_kind=PayloadKind.CREATE,
        parameters={"name": _string("Full name when first and last name are not given separately."),
                    **CONTACT_PROPERTIES},
        required=(("fields.firstName", "fields.lastName", "fields.name"),),
        closed_enums={"fields.category": tuple(CATEGORY_VALUES)},
        mutating=True,
        default_response="Adding the contact.",
    ),
    _lookup(Intent.FIND_CONTACT, "findContact", "contacts", CONTACT_FILTERS, "Looking up contacts."),
    _update(Intent.UPDATE_CONTACT, "updateContact", "contact", CONTACT_PROPERTIES,
            {"updates.category": tuple(CATEGORY_VALUES)}),
    _delete(Intent.DELETE_CONTACT, "deleteContact", "contact"),
    IntentDeclaration(
        intent=Intent.ADD_BOOK,
        tool_name="addBook",
        description="Add a new book to the inventory.",
        payload_kind=PayloadKind.CREATE,
        parameters=BOOK_PROPERTIES,
        required=("fields.title",),
        mutating=True,
        default_response="Adding the book.",
    ),
    _lookup(Intent.FIND_BOOK, "findBook", "books", BOOK_FILTERS, "Looking up books."),
    _update(Intent.UPDATE_BOOK, "updateBook", "book", BOOK_PROPERTIES),
    _delete(Intent.DELETE_BOOK, "deleteBook", "book"),
    IntentDeclaration(
        intent=Intent.ADD_EVENT,
        tool_name="addEvent",
        description="Schedule a new event.",
        payload_kind=PayloadKind.CREATE,
        parameters=EVENT_PROPERTIES,
        required=("fields.name",),
        mutating=True,
        default_response="Scheduling the event.",
    ),
    _lookup(Intent.FIND_EVENT, "findEvent", "events", EVENT_FILTERS, "Looking up events."),
    _update(Intent.UPDATE_EVENT, "updateEvent", "event", EVENT_PROPERTIES),
    _delete(Intent.DELETE_EVENT, "deleteEvent", "event"),
    IntentDeclaration(
        intent=Intent.ADD_ATTENDEE,
        tool_name="addAttendee",
        description="Add a contact to an event's attendee list.",
        payload_kind=PayloadKind.ATTENDEE,
        parameters={"eventIdentifier": _string("Name of the event."),
                    "contactIdentifier": _string("Name or email of the contact.")},
        required=("eventIdentifier", "contactIdentifier"),
        mutating=True,
        default_response="Adding the attendee.",
    ),
    IntentDeclaration(
        intent=Intent.REMOVE_ATTENDEE,
        tool_name="removeAttendee",
        description="Remove a contact from an event's attendee list.",
        payload_kind=PayloadKind.ATTENDEE,
        parameters={"eventIdentifier": _string("Name of the event."),
                    "contactIdentifier": _string("Name or email of the contact.")},
        required=("eventIdentifier", "contactIdentifier"),
        mutating=True,
        default_response="Removing the attendee.",
    ),
    IntentDeclaration(
        intent=Intent.CREATE_TRANSACTION,
        tool_name="createTransaction",
        description="Record a sale. Sales are entered through the transaction form.",
        payload_kind=PayloadKind.EMPTY,
        default_response="Sales are recorded through the transaction form.",
    ),
    IntentDeclaration(
        intent=Intent.COUNT_DATA,
        tool_name="countData",
        description="Count contacts, books, events, expense reports or transactions, optionally filtered.",
        payload_kind=PayloadKind.COUNT,
        parameters={
            "target": _string("What to count.", COUNT_TARGETS),
            "filters": _object("Field constraints, e.g. {\"state\": \"AL\"} or {\"priceFilter\": \">20\"}.",
                               {**CONTACT_FILTERS, **BOOK_FILTERS, **EVENT_FILTERS}),
        },
        required=("target",),
        closed_enums={"target": tuple(COUNT_TARGETS)},
        default_response="Counting records.",
    ),
    IntentDeclaration(
        intent=Intent.METRICS_DATA,
        tool_name="getMetrics",
        description="Ranked metrics such as top customers by spending or best-selling books.",
        payload_kind=PayloadKind.METRICS,
        parameters={
            "target": _string("What to rank.", list(METRICS)),
            "metric": _string("Which metric.", sorted({m for ms in METRICS.values() for m in ms})),
            "limit": ParameterSpec("integer", "How many results to return."),
        },
        required=("target", "metric"),
        closed_enums={"target": tuple(METRICS)},
        default_response="Calculating metrics.",
    ),
    _lookup(Intent.FIND_EXPENSE_REPORT, "findExpenseReports", "expense reports", EXPENSE_FILTERS,
            "Looking up expense reports."),
    IntentDeclaration(
        intent=Intent.COUNT_EXPENSE_REPORTS,
        tool_name="countExpenseReports",
        description="Count expense reports, optionally filtered by status, staff member, date or amount.",
        payload_kind=PayloadKind.COUNT,
        parameters=EXPENSE_FILTERS,
        default_response="Counting expense reports.",
        fixed_target="expenseReports",
    ),
    IntentDeclaration(
        intent=Intent.CREATE_EXPENSE_REPORT,
        tool_name="createExpenseReport",
        description="Start a new expense report for a staff member.",
        payload_kind=PayloadKind.CREATE,
        parameters={
            "staffName": _string("Staff member the report belongs to."),
            "reportDate": _string("Report date, YYYY-MM-DD."),
            "dateSubmitted": _string("Submission date, YYYY-MM-DD, if already submitted."),
            "items": ParameterSpec("array", "Expense lines.", items=EXPENSE_ITEM),
            "totalAmount": ParameterSpec("number", "Total amount, if no lines are given."),
        },
        required=("fields.staffName",),
        closed_enums={"fields.status": tuple(EXPENSE_STATUS_VALUES)},
        mutating=True,
        default_response="Creating the expense report.",
    ),
    IntentDeclaration(
        intent=Intent.LOG_INTERACTION,
        tool_name="logInteraction",
        description="Record a call, email, meeting or note with a contact.",
        payload_kind=PayloadKind.INTERACTION,
        parameters={
            "identifier": IDENTIFIER,
            "type": _string("Kind of interaction.", INTERACTION_TYPES),
            "notes": _string("What happened."),
            "interactionDate": _string("When it happened, YYYY-MM-DD."),
        },
        required=("identifier",),
        mutating=True,
        default_response="Logging the interaction.",
    ),
    IntentDeclaration(
        intent=Intent.GET_CUSTOMER_SUMMARY,
        tool_name="getCustomerSummary",
        description="Summarise one customer: purchases, spending and recent interactions.",
        payload_kind=PayloadKind.IDENTIFIER,
        parameters={"identifier": IDENTIFIER},
        required=("identifier",),
        default_response="Summarising the customer.",
    ),
    IntentDeclaration(
        intent=Intent.SET_USER_ROLE,
        tool_name="setUserRole",
        description="Change an application user's role.",
        payload_kind=PayloadKind.ROLE_CHANGE,
        parameters={"userIdentifier": _string("Email or id of the user."),
                    "role": _string("New role.", ROLE_VALUES)},
        required=("userIdentifier", "role"),
        closed_enums={"role": tuple(ROLE_VALUES)},
        mutating=True,
        default_response="Updating the user's role.",
    ),
    IntentDeclaration(
        intent=Intent.DELETE_USER,
        tool_name="deleteUser",
        description="Delete an application user account.",
        payload_kind=PayloadKind.IDENTIFIER,
        parameters={"userIdentifier": _string("Email or id of the user.")},
        required=("identifier",),
        mutating=True,
        default_response="Deleting the user.",
    ),
    IntentDeclaration(
        intent=Intent.GENERAL_QUERY,
        tool_name="generalQuery",
        description="Anything that is not a CRM operation.",
        payload_kind=PayloadKind.EMPTY,
        default_response="I'm not sure how to help with that. Try asking about contacts, books, events or expense reports.",
    ),
]

INTENT_SCHEMA: Dict[Intent, IntentDeclaration] = {d.intent: d for d in _DECLARATIONS}
_BY_TOOL_NAME: Dict[str, IntentDeclaration] = {d.tool_name.lower(): d for d in _DECLARATIONS}

# Names the oracle may use when it cannot classify the command
FALLBACK_NAMES = {"unsure", "general_query", "generalquery"}

USER_ADMIN_INTENTS = frozenset({Intent.SET_USER_ROLE, Intent.DELETE_USER})


def get_declaration(name: Union[Intent, str, None]) -> Optional[IntentDeclaration]:
    """Look up a declaration by intent tag or tool name. Unknown names return None."""
    if name is None:
        return None
    if isinstance(name, Intent):
        return INTENT_SCHEMA.get(name)
    key = str(name).strip()
    if key.upper() in Intent.__members__:
        return INTENT_SCHEMA.get(Intent(key.upper()))
    return _BY_TOOL_NAME.get(key.lower())


def is_mutating(intent: Intent) -> bool:
    return INTENT_SCHEMA[intent].mutating


def build_tool_catalogue() -> List[Dict[str, Any]]:
    """Tool/function catalogue handed to the oracle. GENERAL_QUERY is answered as free text."""
    return [d.tool_schema() for d in _DECLARATIONS if d.intent != Intent.GENERAL_QUERY]


def _lookup_path(data: Dict[str, Any], path: str) -> Any:
    value: Any = data
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _present(value: Any) -> bool:
    return value is not None and value != "" and value != {} and value != []


def validate_arguments(intent: Intent, payload: Dict[str, Any]) -> List[str]:
    """Check a payload against its declaration.

    Returns a list of problems; empty when the payload may be dispatched.
    """
    declaration = INTENT_SCHEMA[intent]
    problems = []

    for requirement in declaration.required:
        if isinstance(requirement, tuple):
            if not any(_present(_lookup_path(payload, path)) for path in requirement):
                problems.append(f"one of {', '.join(requirement)} is required")
        elif not _present(_lookup_path(payload, requirement)):
            problems.append(f"{requirement} is required")

    for path, allowed in declaration.closed_enums.items():
        value = _lookup_path(payload, path)
        if value is None:
            continue
        values = value if isinstance(value, list) else [value]
        for item in values:
            if item not in allowed:
                problems.append(f"{path} must be one of: {', '.join(allowed)} (got {item!r})")

    if intent == Intent.METRICS_DATA:
        target, metric = payload.get("target"), payload.get("metric")
        if target in METRICS and metric is not None and metric not in METRICS[target]:
            problems.append(f"metric for {target} must be one of: {', '.join(METRICS[target])} (got {metric!r})")

    return problems


SYSTEM_INSTRUCTION = """You are the command interpreter for a small-business CRM that manages contacts, books, events, expense reports, transactions and user accounts.
- Translate the user's command into exactly one function call from the provided tools.
- Differentiate the entities: "add a book" uses addBook, "add a person" uses addContact, "schedule an event" uses addEvent.
- For find commands about one specific record put its name, title or email in 'identifier'. For list or filter commands use 'filters'. Never send both.
- For counts use countData with a 'target'; for expense report counts use countExpenseReports.
- Price and amount constraints are strings: "<15", ">20.00" or "10-25".
- Dates are YYYY-MM-DD. Boolean filters are the strings "true" or "false".
- Only use enum values listed in the tool definitions.
- If the command is not a CRM operation, do not call a tool; answer briefly in plain text."""
