"""
Domain models - Registration record, persisted profile and workflow snapshot.

All models are frozen dataclasses. The workflow never mutates a record
in place; every change produces a new record via dataclasses.replace(),
so a snapshot handed to a caller can never change under it.
"""

from collections.abc import Mapping
from dataclasses import dataclass, fields
from datetime import UTC, datetime
from enum import Enum, IntEnum
from types import MappingProxyType

from .validators import ErrorKind


class AccountType(str, Enum):
    """Kind of account being registered."""

    DEALER = "dealer"
    WHOLESALER = "wholesaler"


class WorkflowStep(IntEnum):
    """Ordered registration steps (1..N)."""

    CONTACT = 1
    BUSINESS = 2
    LICENSE = 3
    PAYMENT = 4

    @classmethod
    def first(cls) -> "WorkflowStep":
        return min(cls)

    @classmethod
    def last(cls) -> "WorkflowStep":
        return max(cls)


class FieldGroup(str, Enum):
    """Set of fields verified together against the registry."""

    BUSINESS = "business"
    LICENSE = "license"


class VerificationStatus(str, Enum):
    """
    Verification lifecycle of one field group.

    Transitions:
    - UNVERIFIED -> PENDING (lookup issued)
    - PENDING -> VERIFIED | FAILED (lookup resolved or timed out)
    - any -> UNVERIFIED (trigger field edited)

    PENDING exists only while a lookup is in flight.
    """

    UNVERIFIED = "unverified"
    PENDING = "pending"
    VERIFIED = "verified"
    FAILED = "failed"


@dataclass(frozen=True)
class FieldError:
    """Field-local error surfaced to the UI."""

    kind: ErrorKind
    message: str


@dataclass(frozen=True)
class RegistrationRecord:
    """
    Working draft of the entity being registered.

    Holds raw user input. Auto-filled fields (legal_name through
    business_postcode, license_type through license_expiry) are written
    only by a successful registry lookup.
    """

    # Contact
    full_name: str = ""
    email: str = ""
    phone: str = ""
    password: str = ""

    # Business
    business_number: str = ""
    legal_name: str = ""
    trading_name: str = ""
    business_address: str = ""
    business_jurisdiction: str = ""
    business_postcode: str = ""

    # License
    license_number: str = ""
    license_jurisdiction: str = ""
    license_type: str = ""
    license_holder: str = ""
    license_expiry: str = ""

    # Payment
    card_number: str = ""
    cardholder_name: str = ""
    expiry: str = ""
    cvv: str = ""
    billing_postcode: str = ""
    save_card: bool = False


RECORD_FIELDS = frozenset(f.name for f in fields(RegistrationRecord))


@dataclass(frozen=True)
class PersistedProfile:
    """
    Durable identity record created on successful submission.

    Sensitive inputs are never stored raw: the password is kept as a
    bcrypt hash, the card as a masked reference, and the CVV not at all.
    """

    id: str
    account_type: AccountType
    created_at: datetime
    updated_at: datetime

    full_name: str
    email: str
    phone: str
    password_hash: str

    business_number: str = ""
    legal_name: str = ""
    trading_name: str = ""
    business_address: str = ""
    business_jurisdiction: str = ""
    business_postcode: str = ""

    license_number: str = ""
    license_jurisdiction: str = ""
    license_type: str = ""
    license_holder: str = ""
    license_expiry: str = ""

    card_reference: str = ""
    card_network: str = ""
    cardholder_name: str = ""
    card_expiry: str = ""
    billing_postcode: str = ""
    save_card: bool = False

    business_verified: bool = False
    license_verified: bool = False
    email_verified: bool = False
    phone_verified: bool = False
    payment_method_added: bool = False


PROFILE_FIELDS = frozenset(f.name for f in fields(PersistedProfile))


@dataclass(frozen=True)
class WorkflowSnapshot:
    """
    Immutable view of the workflow returned by every inbound operation.

    Attributes:
        record: Current registration draft
        errors: Field name -> error for every field currently in error
        verification: Status per field group
        current_step: Step the user is on
        submitted: True once the terminal submit succeeded
        rejection: Set when the call that produced this snapshot was rejected
        profile: Persisted profile, only after a successful submit
    """

    record: RegistrationRecord
    errors: Mapping[str, FieldError]
    verification: Mapping[FieldGroup, VerificationStatus]
    current_step: WorkflowStep
    submitted: bool = False
    rejection: ErrorKind | None = None
    profile: PersistedProfile | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "errors", MappingProxyType(dict(self.errors)))
        object.__setattr__(self, "verification", MappingProxyType(dict(self.verification)))


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)
