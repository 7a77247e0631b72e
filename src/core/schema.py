"""
Domain vocabulary shared by the interpreter and the store.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Category(str, Enum):
    CUSTOMER = "Customer"
    STAFF = "Staff"
    VENDOR = "Vendor"
    MEDIA = "Media"
    OTHER = "Other"


class ExpenseStatus(str, Enum):
    DRAFT = "Draft"
    SUBMITTED = "Submitted"
    APPROVED = "Approved"
    PAID = "Paid"


class Role(str, Enum):
    MASTER_ADMIN = "master-admin"
    ADMIN = "admin"
    BOOKKEEPER = "bookkeeper"
    STAFF = "staff"
    VIEWER = "viewer"
    APPLICANT = "applicant"


# applicant < viewer < bookkeeper/staff/admin < master-admin
ROLE_RANK = {
    Role.APPLICANT: 0,
    Role.VIEWER: 1,
    Role.BOOKKEEPER: 2,
    Role.STAFF: 2,
    Role.ADMIN: 2,
    Role.MASTER_ADMIN: 3,
}

STAFF_TIER = 2


def parse_role(value) -> Optional[Role]:
    """Return the Role for a claim value, or None if it is not a known role."""
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value).strip().lower())
    except ValueError:
        return None


@dataclass(frozen=True)
class Identity:
    """Caller identity supplied by the identity provider."""
    uid: str
    role: Role
    email: str = ""
    is_master_admin: bool = False


# Collections in the document store
CONTACTS = "contacts"
BOOKS = "books"
EVENTS = "events"
TRANSACTIONS = "transactions"
EXPENSE_REPORTS = "expenseReports"
INTERACTIONS = "interactions"
USERS = "users"
