"""
Operation Dispatcher
Routes a validated, authorized OperationRequest to the document store and shapes the result.

The handler table is keyed by Intent and checked for completeness at
construction, so adding an intent without a handler fails immediately.

Lookups by identifier are fuzzy (case-insensitive substring of the record's
display fields). Updates and deletes need exactly one match; zero matches is
a normal not-found envelope and several matches an ambiguity envelope.

Filters fail open: an unknown filter key, or a range/date filter the
normalizer could not parse, is ignored and reported under ``ignoredFilters``.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..core import config
from ..core.errors import InvalidArgumentError
from ..core.schema import (
    BOOKS,
    CONTACTS,
    EVENTS,
    EXPENSE_REPORTS,
    INTERACTIONS,
    TRANSACTIONS,
    USERS,
    Category,
    ExpenseStatus,
    Identity,
    Role,
)
from .intents import (
    CATEGORY_VALUES,
    EXPENSE_STATUS_VALUES,
    Intent,
    validate_arguments,
)
from .normalizer import PriceRange, parse_local_date
from .operations import OperationRequest, ResponseEnvelope, to_jsonable
from util.logging import logger

TRANSACTION_FORM_MESSAGE = "Please use the 'New Transaction' form to log a sale."

NOUNS = {
    CONTACTS: ("contact", "contacts"),
    BOOKS: ("book", "books"),
    EVENTS: ("event", "events"),
    EXPENSE_REPORTS: ("expense report", "expense reports"),
    TRANSACTIONS: ("transaction", "transactions"),
    USERS: ("user", "users"),
}


def _text(value: Any) -> str:
    return "" if value is None else str(value).strip().lower()


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    return list(value) if isinstance(value, (list, tuple)) else [value]


def _record_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        parsed = parse_local_date(value[:10])
        return parsed if isinstance(parsed, date) else None
    return None


def _contact_name(record: Dict[str, Any]) -> str:
    return f"{record.get('firstName', '')} {record.get('lastName', '')}".strip()


# Fields an identifier is matched against, per collection
DISPLAY_FIELDS: Dict[str, Callable[[Dict[str, Any]], List[Any]]] = {
    CONTACTS: lambda r: [_contact_name(r), r.get("email")],
    BOOKS: lambda r: [r.get("title"), r.get("author"), r.get("isbn")],
    EVENTS: lambda r: [r.get("name"), r.get("description"), r.get("author")],
    EXPENSE_REPORTS: lambda r: [r.get("reportNumber"), r.get("staffName")],
    USERS: lambda r: [r.get("email"), r.get("displayName"), r.get("id")],
}

LABELS: Dict[str, Callable[[Dict[str, Any]], str]] = {
    CONTACTS: _contact_name,
    BOOKS: lambda r: str(r.get("title", "")),
    EVENTS: lambda r: str(r.get("name", "")),
    EXPENSE_REPORTS: lambda r: f"#{r.get('reportNumber')} ({r.get('staffName', '')})",
    USERS: lambda r: str(r.get("email") or r.get("id")),
}


def fuzzy_match(collection: str, records: List[Dict[str, Any]], identifier: str) -> List[Dict[str, Any]]:
    """Records whose display fields contain the identifier. An exact id match wins outright."""
    exact = [r for r in records if r.get("id") == identifier]
    if exact:
        return exact
    needle = _text(identifier)
    if not needle:
        return []
    display = DISPLAY_FIELDS[collection]
    return [r for r in records if any(needle in _text(v) for v in display(r) if v is not None)]


@dataclass(frozen=True)
class FilterSpec:
    """How one filter key constrains one record field."""
    field: str
    kind: str
    allowed: Optional[Tuple[str, ...]] = None


def _exact(record_value, filter_value):
    return _text(record_value) == _text(filter_value)


def _contains(record_value, filter_value):
    return _text(filter_value) in _text(record_value)


def _membership(record_value, filter_value):
    wanted = {_text(v) for v in _as_list(filter_value)}
    return any(_text(v) in wanted for v in _as_list(record_value))


def _equals(record_value, filter_value):
    return record_value == filter_value


def _in_range(record_value, filter_value):
    return filter_value.contains(record_value)


def _date_from(record_value, filter_value):
    record_date = _record_date(record_value)
    return record_date is not None and record_date >= _record_date(filter_value)


def _date_to(record_value, filter_value):
    record_date = _record_date(record_value)
    return record_date is not None and record_date <= _record_date(filter_value)


def _in_stock(record_value, filter_value):
    stocked = isinstance(record_value, (int, float)) and record_value > 0
    return stocked if filter_value else not stocked


PREDICATES = {
    "exact": _exact,
    "contains": _contains,
    "membership": _membership,
    "equals": _equals,
    "range": _in_range,
    "date_from": _date_from,
    "date_to": _date_to,
    "in_stock": _in_stock,
}


def _usable(spec: FilterSpec, value: Any) -> bool:
    """Whether the normalizer produced a value this filter kind can apply."""
    if spec.kind == "range":
        return isinstance(value, PriceRange)
    if spec.kind in ("date_from", "date_to"):
        return isinstance(value, date)
    if spec.kind == "in_stock":
        return isinstance(value, bool)
    if spec.kind == "equals":
        return isinstance(value, (bool, int, float))
    return True


FILTER_SPECS: Dict[str, Dict[str, FilterSpec]] = {
    CONTACTS: {
        "category": FilterSpec("category", "membership", tuple(CATEGORY_VALUES)),
        "city": FilterSpec("city", "exact"),
        "state": FilterSpec("state", "exact"),
        "zip": FilterSpec("zip", "exact"),
        "company": FilterSpec("company", "contains"),
        "firstName": FilterSpec("firstName", "contains"),
        "lastName": FilterSpec("lastName", "contains"),
        "email": FilterSpec("email", "contains"),
        "sendTNSBNewsletter": FilterSpec("sendTNSBNewsletter", "equals"),
    },
    BOOKS: {
        "author": FilterSpec("author", "contains"),
        "title": FilterSpec("title", "contains"),
        "genre": FilterSpec("genre", "exact"),
        "publisher": FilterSpec("publisher", "exact"),
        "publicationYear": FilterSpec("publicationYear", "equals"),
        "stock": FilterSpec("stock", "equals"),
        "priceFilter": FilterSpec("price", "range"),
        "inStock": FilterSpec("stock", "in_stock"),
    },
    EVENTS: {
        "name": FilterSpec("name", "contains"),
        "location": FilterSpec("location", "exact"),
        "author": FilterSpec("author", "exact"),
        "startDate": FilterSpec("date", "date_from"),
        "endDate": FilterSpec("date", "date_to"),
    },
    EXPENSE_REPORTS: {
        "status": FilterSpec("status", "exact", tuple(EXPENSE_STATUS_VALUES)),
        "staffName": FilterSpec("staffName", "contains"),
        "startDate": FilterSpec("reportDate", "date_from"),
        "endDate": FilterSpec("reportDate", "date_to"),
        "amountFilter": FilterSpec("totalAmount", "range"),
    },
    TRANSACTIONS: {
        "contactName": FilterSpec("contactName", "contains"),
        "amountFilter": FilterSpec("totalPrice", "range"),
        "startDate": FilterSpec("transactionDate", "date_from"),
        "endDate": FilterSpec("transactionDate", "date_to"),
    },
}


@dataclass
class FilterOutcome:
    records: List[Dict[str, Any]]
    applied: Dict[str, Any] = field(default_factory=dict)
    ignored: List[str] = field(default_factory=list)
    unrecognized: List[str] = field(default_factory=list)

    def report(self) -> Dict[str, Any]:
        data = {}
        if self.ignored:
            data["ignoredFilters"] = self.ignored
        if self.unrecognized:
            data["unrecognized"] = self.unrecognized
        return data


def apply_filters(collection: str, records: List[Dict[str, Any]], filters: Dict[str, Any]) -> FilterOutcome:
    """Apply every usable filter; ignore (and report) the rest."""
    specs = FILTER_SPECS.get(collection, {})
    outcome = FilterOutcome(records=list(records))

    for key, value in (filters or {}).items():
        spec = specs.get(key)
        if spec is None or not _usable(spec, value):
            outcome.ignored.append(key)
            continue
        if spec.allowed and any(v not in spec.allowed for v in _as_list(value)):
            # Applied anyway: an unknown enum value simply matches nothing
            outcome.unrecognized.append(key)
        predicate = PREDICATES[spec.kind]
        outcome.records = [r for r in outcome.records if predicate(r.get(spec.field), value)]
        outcome.applied[key] = value

    if outcome.ignored:
        logger.warning(f"Ignored filters on '{collection}': {outcome.ignored}")
    return outcome


def describe_filters(filters: Dict[str, Any]) -> str:
    parts = []
    for key, value in filters.items():
        if isinstance(value, PriceRange):
            value = value.to_filter_string()
        parts.append(f"{key} is '{to_jsonable(value)}'")
    return " and ".join(parts)


class OperationDispatcher:
    """
    Dispatches OperationRequests to store operations.

    Handles:
    - Contact, book and event create/find/update/delete
    - Event attendee management
    - Counts and ranked metrics
    - Expense reports with atomic numbering
    - Interactions and customer summaries
    - User role changes and deletion
    """

    def __init__(self, store):
        self.store = store
        self._register_handlers()

    def _register_handlers(self):
        """Register the handler for every intent."""
        self.handlers: Dict[Intent, Callable[[OperationRequest, Identity], ResponseEnvelope]] = {
            Intent.ADD_CONTACT: self._add_contact,
            Intent.FIND_CONTACT: lambda req, actor: self._find(req, CONTACTS),
            Intent.UPDATE_CONTACT: lambda req, actor: self._update(req, CONTACTS),
            Intent.DELETE_CONTACT: lambda req, actor: self._delete(req, CONTACTS),
            Intent.ADD_BOOK: self._add_book,
            Intent.FIND_BOOK: lambda req, actor: self._find(req, BOOKS),
            Intent.UPDATE_BOOK: lambda req, actor: self._update(req, BOOKS),
            Intent.DELETE_BOOK: lambda req, actor: self._delete(req, BOOKS),
            Intent.ADD_EVENT: self._add_event,
            Intent.FIND_EVENT: lambda req, actor: self._find(req, EVENTS),
            Intent.UPDATE_EVENT: lambda req, actor: self._update(req, EVENTS),
            Intent.DELETE_EVENT: lambda req, actor: self._delete(req, EVENTS),
            Intent.ADD_ATTENDEE: lambda req, actor: self._attendee(req, add=True),
            Intent.REMOVE_ATTENDEE: lambda req, actor: self._attendee(req, add=False),
            Intent.CREATE_TRANSACTION: self._create_transaction,
            Intent.COUNT_DATA: self._count,
            Intent.METRICS_DATA: self._metrics,
            Intent.FIND_EXPENSE_REPORT: lambda req, actor: self._find(req, EXPENSE_REPORTS),
            Intent.COUNT_EXPENSE_REPORTS: self._count,
            Intent.CREATE_EXPENSE_REPORT: self._create_expense_report,
            Intent.LOG_INTERACTION: self._log_interaction,
            Intent.GET_CUSTOMER_SUMMARY: self._customer_summary,
            Intent.SET_USER_ROLE: self._set_user_role,
            Intent.DELETE_USER: self._delete_user,
            Intent.GENERAL_QUERY: self._general_query,
        }

        missing = set(Intent) - set(self.handlers)
        if missing:
            raise RuntimeError(f"No dispatcher handler for intents: {sorted(i.value for i in missing)}")

    def dispatch(self, request: OperationRequest, actor: Identity) -> ResponseEnvelope:
        """Validate arguments, run the intent's handler, and log the outcome."""
        problems = validate_arguments(request.intent, request.payload.to_dict())
        if problems:
            logger.warning(f"Rejected {request.intent.value}: {problems}")
            raise InvalidArgumentError(
                f"Missing or invalid information for {request.intent.value}: {'; '.join(problems)}",
                {"intent": request.intent.value, "problems": problems},
            )

        envelope = self.handlers[request.intent](request, actor)
        logger.log_dispatch(request.intent.value, envelope.success, {
            k: v for k, v in envelope.data.items() if k in ("matches", "count", "id", "ignoredFilters")
        })
        return envelope

    # Resolution helpers

    def resolve(self, collection: str, identifier: str) -> Tuple[Optional[Dict[str, Any]], List[Dict[str, Any]]]:
        """Return (the single match or None, every match)."""
        matches = fuzzy_match(collection, self.store.list(collection), identifier)
        return (matches[0] if len(matches) == 1 else None), matches

    def resolve_user(self, identifier: Optional[str]) -> Optional[Dict[str, Any]]:
        """Find exactly one user account, or None."""
        if not identifier:
            return None
        user, _ = self.resolve(USERS, identifier)
        return user

    def _not_resolved(self, request: OperationRequest, collection: str, identifier: str,
                      matches: List[Dict[str, Any]]) -> ResponseEnvelope:
        singular, plural = NOUNS[collection]
        if not matches:
            return ResponseEnvelope(
                request.intent, f'I couldn\'t find any {singular} matching "{identifier}".',
                success=False, data={"matches": 0},
            )
        label = LABELS[collection]
        return ResponseEnvelope(
            request.intent,
            f'I found {len(matches)} {plural} matching "{identifier}". Can you be more specific?',
            success=False,
            data={"matches": len(matches), "candidates": [label(m) for m in matches]},
        )

    # Generic record handlers

    def _find(self, request: OperationRequest, collection: str) -> ResponseEnvelope:
        payload = request.payload
        singular, plural = NOUNS[collection]
        records = self.store.list(collection)

        if payload.identifier is not None:
            matches = fuzzy_match(collection, records, payload.identifier)
            if not matches:
                return self._not_resolved(request, collection, payload.identifier, matches)
            data = {"results": matches, "matches": len(matches)}
        else:
            outcome = apply_filters(collection, records, payload.filters)
            data = {"results": outcome.records, "matches": len(outcome.records), **outcome.report()}

        if collection == EVENTS:
            data["results"] = [self._with_attendees(event) for event in data["results"]]

        count = data["matches"]
        noun = singular if count == 1 else plural
        return ResponseEnvelope(request.intent, f"I found {count} {noun}.", data=data)

    def _with_attendees(self, event: Dict[str, Any]) -> Dict[str, Any]:
        attendees = []
        for contact_id in event.get("attendeeIds") or []:
            contact = self.store.get(CONTACTS, contact_id)
            if contact:
                attendees.append({"id": contact["id"], "firstName": contact.get("firstName"),
                                  "lastName": contact.get("lastName"), "email": contact.get("email")})
        return {**event, "attendees": attendees}

    def _update(self, request: OperationRequest, collection: str) -> ResponseEnvelope:
        payload = request.payload
        record, matches = self.resolve(collection, payload.identifier)
        if record is None:
            return self._not_resolved(request, collection, payload.identifier, matches)

        updates = dict(payload.updates)
        if collection == CONTACTS and "category" in updates:
            updates["category"] = _as_list(updates["category"])
        updated = self.store.update(collection, record["id"], updates)
        if updated is None:
            return self._not_resolved(request, collection, payload.identifier, [])
        return ResponseEnvelope(
            request.intent, f'Successfully updated "{LABELS[collection](updated)}".',
            data={"id": updated["id"], "record": updated, "updatedFields": sorted(updates)},
        )

    def _delete(self, request: OperationRequest, collection: str) -> ResponseEnvelope:
        identifier = request.payload.identifier
        record, matches = self.resolve(collection, identifier)
        if record is None:
            return self._not_resolved(request, collection, identifier, matches)
        if not self.store.delete(collection, record["id"]):
            return self._not_resolved(request, collection, identifier, [])
        return ResponseEnvelope(
            request.intent, f'Successfully deleted "{LABELS[collection](record)}".',
            data={"id": record["id"]},
        )

    # Create handlers

    def _add_contact(self, request: OperationRequest, actor: Identity) -> ResponseEnvelope:
        fields = dict(request.payload.fields)
        name_parts = str(fields.pop("name", "")).split()
        first_name = fields.get("firstName") or (name_parts[0] if name_parts else "Unknown")
        last_name = fields.get("lastName") or (" ".join(name_parts[1:]) if len(name_parts) > 1 else "Contact")

        contact = {
            **fields,
            "firstName": first_name,
            "lastName": last_name,
            "category": _as_list(fields.get("category")) or [Category.OTHER.value],
            "phone": fields.get("phone") or "N/A",
            "email": fields.get("email") or f"{first_name.lower()}.{last_name.lower()}@default.com",
            "notes": fields.get("notes") or "Added via the command assistant.",
            "createdDate": date.today(),
            "createdBy": actor.uid,
        }
        created = self.store.create_numbered(CONTACTS, contact, counter=CONTACTS, field="contactNumber", start=0)
        return ResponseEnvelope(
            request.intent, f"Successfully added {first_name} {last_name} to your contacts.",
            data={"id": created["id"], "contactNumber": created["contactNumber"], "record": created},
        )

    def _add_book(self, request: OperationRequest, actor: Identity) -> ResponseEnvelope:
        fields = request.payload.fields
        book = {
            **fields,
            "title": fields.get("title") or "Untitled",
            "author": fields.get("author") or "Unknown Author",
            "isbn": fields.get("isbn") or "",
            "publisher": fields.get("publisher") or "",
            "price": fields.get("price") or 0,
            "stock": fields.get("stock") or 0,
            "genre": fields.get("genre") or "",
        }
        created = self.store.create(BOOKS, book)
        return ResponseEnvelope(
            request.intent, f'Successfully added the book "{book["title"]}".',
            data={"id": created["id"], "record": created},
        )

    def _add_event(self, request: OperationRequest, actor: Identity) -> ResponseEnvelope:
        fields = request.payload.fields
        event = {
            **fields,
            "name": fields.get("name") or "Untitled Event",
            "date": fields.get("date") or date.today(),
            "author": fields.get("author") or "",
            "description": fields.get("description") or "",
            "attendeeIds": [],
        }
        created = self.store.create(EVENTS, event)
        return ResponseEnvelope(
            request.intent, f'Successfully scheduled the event "{event["name"]}".',
            data={"id": created["id"], "record": created},
        )

    def _attendee(self, request: OperationRequest, add: bool) -> ResponseEnvelope:
        payload = request.payload
        event, event_matches = self.resolve(EVENTS, payload.event_identifier)
        if event is None:
            return self._not_resolved(request, EVENTS, payload.event_identifier, event_matches)
        contact, contact_matches = self.resolve(CONTACTS, payload.contact_identifier)
        if contact is None:
            return self._not_resolved(request, CONTACTS, payload.contact_identifier, contact_matches)

        self.store.array_update(EVENTS, event["id"], "attendeeIds", contact["id"], add=add)
        action = "added" if add else "removed"
        preposition = "to" if add else "from"
        return ResponseEnvelope(
            request.intent,
            f'Successfully {action} {_contact_name(contact)} {preposition} the event "{event.get("name")}".',
            data={"eventId": event["id"], "contactId": contact["id"]},
        )

    def _create_transaction(self, request: OperationRequest, actor: Identity) -> ResponseEnvelope:
        return ResponseEnvelope(request.intent, TRANSACTION_FORM_MESSAGE, success=False)

    # Counts and metrics

    def _count(self, request: OperationRequest, actor: Identity) -> ResponseEnvelope:
        payload = request.payload
        target = payload.target
        outcome = apply_filters(target, self.store.list(target), payload.filters)
        count = len(outcome.records)

        _, plural = NOUNS[target]
        where = describe_filters(outcome.applied)
        message = f"There are {count} {plural}{f' where {where}' if where else ' in total'}."
        return ResponseEnvelope(
            request.intent, message,
            data={"target": target, "count": count, **outcome.report()},
        )

    def _metrics(self, request: OperationRequest, actor: Identity) -> ResponseEnvelope:
        payload = request.payload
        limit = payload.limit
        if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
            limit = config.DEFAULT_METRICS_LIMIT

        calculators = {
            ("customers", "top-spending"): (self._top_customers, "Here are the top {limit} customers by spending."),
            ("books", "top-selling"): (self._top_selling_books, "Here are the top {limit} best-selling books."),
            ("books", "lowest-stock"): (self._lowest_stock_books, "Here are the {limit} books with the lowest stock."),
            ("expenseReports", "total-by-status"): (self._expense_totals, "Here are expense report totals by status."),
        }
        calculator = calculators.get((payload.target, payload.metric))
        if calculator is None:
            raise InvalidArgumentError(
                f"Cannot calculate '{payload.metric}' for '{payload.target}'.",
                {"target": payload.target, "metric": payload.metric},
            )
        compute, message = calculator
        results = compute(limit)
        return ResponseEnvelope(
            request.intent, message.format(limit=limit),
            data={"target": payload.target, "metric": payload.metric, "limit": limit, "results": results},
        )

    def _top_customers(self, limit: int) -> List[Dict[str, Any]]:
        spending: Dict[str, Dict[str, Any]] = {}
        for transaction in self.store.list(TRANSACTIONS):
            entry = spending.setdefault(
                transaction.get("contactId"), {"name": transaction.get("contactName"), "total": 0}
            )
            entry["total"] += transaction.get("totalPrice") or 0
        return sorted(spending.values(), key=lambda e: e["total"], reverse=True)[:limit]

    def _top_selling_books(self, limit: int) -> List[Dict[str, Any]]:
        titles = {book["id"]: book.get("title") for book in self.store.list(BOOKS)}
        sales: Dict[str, Dict[str, Any]] = {}
        for transaction in self.store.list(TRANSACTIONS):
            for line in transaction.get("books") or []:
                entry = sales.setdefault(
                    line.get("id"),
                    {"title": titles.get(line.get("id")) or line.get("title") or "Unknown Book", "quantity": 0},
                )
                entry["quantity"] += line.get("quantity") or 0
        return sorted(sales.values(), key=lambda e: e["quantity"], reverse=True)[:limit]

    def _lowest_stock_books(self, limit: int) -> List[Dict[str, Any]]:
        books = sorted(self.store.list(BOOKS), key=lambda b: b.get("stock") or 0)
        return [{"title": b.get("title"), "stock": b.get("stock") or 0} for b in books[:limit]]

    def _expense_totals(self, limit: int) -> List[Dict[str, Any]]:
        totals = defaultdict(lambda: {"count": 0, "total": 0})
        for report in self.store.list(EXPENSE_REPORTS):
            bucket = totals[report.get("status") or ExpenseStatus.DRAFT.value]
            bucket["count"] += 1
            bucket["total"] += report.get("totalAmount") or 0
        order = {status: i for i, status in enumerate(EXPENSE_STATUS_VALUES)}
        return [
            {"status": status, **totals[status]}
            for status in sorted(totals, key=lambda s: order.get(s, len(order)))
        ]

    # Expense reports, interactions, summaries

    def _create_expense_report(self, request: OperationRequest, actor: Identity) -> ResponseEnvelope:
        fields = dict(request.payload.fields)
        items = [dict(item) for item in fields.pop("items", None) or [] if isinstance(item, dict)]
        total = fields.get("totalAmount")
        if not isinstance(total, (int, float)) or isinstance(total, bool):
            total = round(sum(
                i["cashAmount"] for i in items
                if isinstance(i.get("cashAmount"), (int, float)) and not isinstance(i.get("cashAmount"), bool)
            ), 2)

        status = fields.get("status") or (
            ExpenseStatus.SUBMITTED.value if fields.get("dateSubmitted") else ExpenseStatus.DRAFT.value
        )
        report = {
            **fields,
            "reportDate": fields.get("reportDate") or date.today(),
            "items": items,
            "totalAmount": total,
            "status": status,
            "createdBy": actor.uid,
        }
        created = self.store.create_numbered(
            EXPENSE_REPORTS, report, counter=EXPENSE_REPORTS, field="reportNumber",
            start=config.EXPENSE_REPORT_NUMBER_START,
        )
        return ResponseEnvelope(
            request.intent,
            f"Created expense report #{created['reportNumber']} for {report.get('staffName')} ({status}).",
            data={"id": created["id"], "reportNumber": created["reportNumber"], "status": status,
                  "totalAmount": total},
        )

    def _log_interaction(self, request: OperationRequest, actor: Identity) -> ResponseEnvelope:
        payload = request.payload
        contact, matches = self.resolve(CONTACTS, payload.identifier)
        if contact is None:
            return self._not_resolved(request, CONTACTS, payload.identifier, matches)

        interaction = {
            **payload.fields,
            "contactId": contact["id"],
            "contactName": _contact_name(contact),
            "type": payload.fields.get("type") or "Note",
            "interactionDate": payload.fields.get("interactionDate") or date.today(),
            "loggedBy": actor.uid,
        }
        created = self.store.create(INTERACTIONS, interaction)
        return ResponseEnvelope(
            request.intent,
            f"Logged a {str(interaction['type']).lower()} with {interaction['contactName']}.",
            data={"id": created["id"], "contactId": contact["id"]},
        )

    def _customer_summary(self, request: OperationRequest, actor: Identity) -> ResponseEnvelope:
        identifier = request.payload.identifier
        contact, matches = self.resolve(CONTACTS, identifier)
        if contact is None:
            return self._not_resolved(request, CONTACTS, identifier, matches)

        transactions = self.store.query(TRANSACTIONS, "contactId", contact["id"])
        interactions = self.store.query(INTERACTIONS, "contactId", contact["id"])
        purchase_dates = [d for d in (_record_date(t.get("transactionDate")) for t in transactions) if d]
        interactions.sort(key=lambda i: str(i.get("interactionDate") or ""), reverse=True)

        summary = {
            "contactId": contact["id"],
            "name": _contact_name(contact),
            "email": contact.get("email"),
            "category": contact.get("category"),
            "purchaseCount": len(transactions),
            "totalSpent": round(sum(t.get("totalPrice") or 0 for t in transactions), 2),
            "lastPurchaseDate": max(purchase_dates) if purchase_dates else None,
            "recentInteractions": interactions[:5],
        }
        return ResponseEnvelope(
            request.intent,
            f"{summary['name']} has made {summary['purchaseCount']} purchases totaling ${summary['totalSpent']:.2f}.",
            data={"summary": summary},
        )

    # User administration

    def _set_user_role(self, request: OperationRequest, actor: Identity) -> ResponseEnvelope:
        payload = request.payload
        user, matches = self.resolve(USERS, payload.user_identifier)
        if user is None:
            return self._not_resolved(request, USERS, payload.user_identifier, matches)

        updated = self.store.update(USERS, user["id"], {"role": payload.role, "isAdmin": payload.role == Role.ADMIN.value})
        if updated is None:
            return self._not_resolved(request, USERS, payload.user_identifier, [])
        return ResponseEnvelope(
            request.intent, f"Successfully updated role for {LABELS[USERS](user)} to {payload.role}.",
            data={"id": user["id"], "role": payload.role},
        )

    def _delete_user(self, request: OperationRequest, actor: Identity) -> ResponseEnvelope:
        identifier = request.payload.identifier
        user, matches = self.resolve(USERS, identifier)
        if user is None:
            return self._not_resolved(request, USERS, identifier, matches)
        self.store.delete(USERS, user["id"])
        return ResponseEnvelope(
            request.intent, f"Successfully deleted user {LABELS[USERS](user)}.",
            data={"id": user["id"]},
        )

    def _general_query(self, request: OperationRequest, actor: Identity) -> ResponseEnvelope:
        return ResponseEnvelope(request.intent, request.response_text)

