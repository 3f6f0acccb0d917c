"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from .models import PersistedProfile


@dataclass(frozen=True)
class BusinessEntity:
    """Business details returned by a registry lookup."""

    business_number: str
    legal_name: str
    trading_name: str
    address: str
    jurisdiction: str
    postcode: str
    entity_type: str = ""
    gst_registered: bool = False


class LicenseStatus(str, Enum):
    """Registry status of a dealer license."""

    ACTIVE = "active"
    EXPIRED = "expired"
    SUSPENDED = "suspended"
    INVALID = "invalid"


@dataclass(frozen=True)
class LicenseCheck:
    """Result of a license status lookup."""

    valid: bool
    status: LicenseStatus
    license_number: str
    jurisdiction: str
    license_type: str = ""
    holder: str = ""
    expiry: str = ""


class VerificationClient(Protocol):
    """
    Port interface for the external registry.

    Both lookups are asynchronous and expected to resolve within their
    latency bounds (business 1000-2000ms, license 1200-2000ms). The
    caller enforces its own timeout; adapters raise RegistryUnavailable
    for transport failures rather than returning a fake result.
    """

    async def lookup_business(self, business_number: str) -> BusinessEntity | None:
        """
        Look up a business by its normalized 11-digit number.

        Args:
            business_number: Digits-only business number

        Returns:
            BusinessEntity if registered, None if not found
        """
        ...

    async def lookup_license(self, license_number: str, jurisdiction: str) -> LicenseCheck:
        """
        Look up the status of a dealer license.

        Args:
            license_number: Normalized license number (uppercase, no spaces)
            jurisdiction: Issuing state/territory code

        Returns:
            LicenseCheck describing validity and status
        """
        ...


class ProfileStore(Protocol):
    """
    Port interface for profile persistence.

    Implementations must be atomic with respect to partial writes: a
    crash in the middle of save() must leave either the previous or the
    new record visible to the next load(), never a mix. Concurrent
    save() calls for the same profile id are serialized.
    """

    def load(self) -> PersistedProfile | None:
        """Return the stored profile, or None if nothing is stored."""
        ...

    def save(self, profile: PersistedProfile) -> None:
        """Upsert the full profile record."""
        ...

    def clear(self) -> None:
        """Remove the stored profile (no-op when empty)."""
        ...
