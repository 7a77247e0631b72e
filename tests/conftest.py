"""
Shared fixtures: temporary document stores, seeded CRM data, identities and a scripted oracle.
"""

import os
import tempfile
from pathlib import Path

# Point the default store at a throwaway file before any src module reads config
os.environ.setdefault("DB_PATH", str(Path(tempfile.mkdtemp(prefix="crm_test_")) / "crm.db"))
os.environ.setdefault("COUNTER_RETRY_BACKOFF_SEC", "0.01")

import pytest

from src.agents.oracle import OracleReply
from src.core.schema import Identity, Role
from src.core.store import DocumentStore


class ScriptedOracle:
    """Oracle double returning a fixed reply (or raising a fixed error)."""

    model = "scripted-model"

    def __init__(self, reply=None, error=None):
        self.reply = reply if reply is not None else OracleReply(text="Hello! How can I help?")
        self.error = error
        self.calls = []

    def ask(self, command):
        self.calls.append(command)
        if self.error is not None:
            raise self.error
        return self.reply

    def health_check(self):
        return True


@pytest.fixture
def oracle_factory():
    """Build a ScriptedOracle: oracle_factory(tool, args) or oracle_factory(text=...)."""
    def make(tool_name=None, arguments=None, text="", error=None):
        return ScriptedOracle(OracleReply(tool_name=tool_name, arguments=arguments or {}, text=text), error)
    return make


@pytest.fixture
def store(tmp_path):
    """Empty document store backed by a temporary SQLite file."""
    return DocumentStore(str(tmp_path / "crm.db"))


@pytest.fixture
def seeded_store(store):
    """Store with a small, known CRM data set."""
    store.set("contacts", "c-alice", {
        "firstName": "Alice", "lastName": "Johnson", "email": "alice@example.com",
        "category": ["Customer"], "city": "Mobile", "state": "AL", "sendTNSBNewsletter": True,
    })
    store.set("contacts", "c-john", {
        "firstName": "John", "lastName": "Smith", "email": "john.smith@example.com",
        "category": ["Customer"], "city": "Birmingham", "state": "AL", "sendTNSBNewsletter": False,
    })
    store.set("contacts", "c-jane", {
        "firstName": "Jane", "lastName": "Doe", "email": "jane.doe@example.com",
        "category": ["Vendor"], "city": "Atlanta", "state": "GA",
    })

    store.set("books", "b-dune", {"title": "Dune", "author": "Frank Herbert", "price": 18.99, "stock": 4})
    store.set("books", "b-it", {"title": "It", "author": "Stephen King", "price": 12.5, "stock": 0})
    store.set("books", "b-shining", {"title": "The Shining", "author": "Stephen King", "price": 22.0, "stock": 3})

    store.set("events", "e-slam", {"name": "Poetry Slam", "date": "2024-03-15", "location": "Main Library",
                                   "attendeeIds": []})
    store.set("events", "e-signing", {"name": "Author Signing", "date": "2024-05-01", "author": "Stephen King",
                                      "location": "Main Store", "attendeeIds": []})

    store.set("transactions", "t-1", {
        "contactId": "c-alice", "contactName": "Alice Johnson", "totalPrice": 37.98,
        "books": [{"id": "b-dune", "title": "Dune", "price": 18.99, "quantity": 2}],
        "transactionDate": "2024-01-10",
    })
    store.set("transactions", "t-2", {
        "contactId": "c-john", "contactName": "John Smith", "totalPrice": 12.5,
        "books": [{"id": "b-it", "title": "It", "price": 12.5, "quantity": 1}],
        "transactionDate": "2024-01-12",
    })
    store.set("transactions", "t-3", {
        "contactId": "c-alice", "contactName": "Alice Johnson", "totalPrice": 22.0,
        "books": [{"id": "b-shining", "title": "The Shining", "price": 22.0, "quantity": 1}],
        "transactionDate": "2024-02-03",
    })

    for staff_name, status, total, report_date in [
        ("Mary Jones", "Draft", 42.5, "2024-02-01"),
        ("Bob Lee", "Submitted", 100.0, "2024-02-10"),
        ("Mary Jones", "Draft", 10.0, "2024-03-01"),
    ]:
        store.create_numbered("expenseReports", {
            "staffName": staff_name, "status": status, "totalAmount": total, "reportDate": report_date,
        }, counter="expenseReports", field="reportNumber", start=1000)

    for uid, email, role, token in [
        ("u-master", "owner@example.com", "master-admin", "tok-master"),
        ("u-admin", "admin@example.com", "admin", "tok-admin"),
        ("u-staff", "staff@example.com", "staff", "tok-staff"),
        ("u-viewer", "bob@example.com", "viewer", "tok-viewer"),
        ("u-applicant", "carol@example.com", "applicant", "tok-applicant"),
    ]:
        store.set("users", uid, {
            "email": email, "role": role, "apiToken": token,
            "isAdmin": role in ("admin", "master-admin"), "isMasterAdmin": role == "master-admin",
        })

    return store


@pytest.fixture
def staff_identity():
    return Identity(uid="u-staff", role=Role.STAFF, email="staff@example.com")


@pytest.fixture
def viewer_identity():
    return Identity(uid="u-viewer", role=Role.VIEWER, email="bob@example.com")


@pytest.fixture
def admin_identity():
    return Identity(uid="u-admin", role=Role.ADMIN, email="admin@example.com")


@pytest.fixture
def master_identity():
    return Identity(uid="u-master", role=Role.MASTER_ADMIN, email="owner@example.com", is_master_admin=True)
