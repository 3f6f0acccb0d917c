"""
Mock registry adapter - Implements VerificationClient protocol.

This module provides an in-memory stand-in for the business register
and the state dealer-license registries, with jittered latency inside
the contract's bounds. For development and demos; swap for a real
registry integration without touching the workflow.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable

from src.domain.checksums import business_number_checksum
from src.domain.ports import BusinessEntity, LicenseCheck, LicenseStatus

logger = logging.getLogger(__name__)

MOCK_BUSINESSES: dict[str, BusinessEntity] = {
    entity.business_number: entity
    for entity in (
        BusinessEntity(
            business_number="53004085616",
            legal_name="Toyota Motor Corporation Australia",
            trading_name="Toyota Australia",
            address="29-39 Lexia Place, Mulgrave VIC 3170",
            jurisdiction="VIC",
            postcode="3170",
            entity_type="Australian Public Company",
            gst_registered=True,
        ),
        BusinessEntity(
            business_number="51824753556",
            legal_name="Sydney Premium Motors Pty Ltd",
            trading_name="Sydney Premium Motors",
            address="123 Parramatta Road, Auburn NSW 2144",
            jurisdiction="NSW",
            postcode="2144",
            entity_type="Australian Private Company",
            gst_registered=True,
        ),
        BusinessEntity(
            business_number="33051775556",
            legal_name="Melbourne Auto Traders Pty Ltd",
            trading_name="Melbourne Auto Traders",
            address="456 Bourke Street, Melbourne VIC 3000",
            jurisdiction="VIC",
            postcode="3000",
            entity_type="Australian Private Company",
            gst_registered=True,
        ),
        BusinessEntity(
            business_number="88000014675",
            legal_name="Brisbane Vehicle Solutions Pty Ltd",
            trading_name="Brisbane Vehicle Solutions",
            address="789 Queen Street, Brisbane QLD 4000",
            jurisdiction="QLD",
            postcode="4000",
            entity_type="Australian Private Company",
            gst_registered=True,
        ),
    )
}

# Licenses with a non-active registry status; anything else well-formed is active.
MOCK_LICENSE_STATUSES: dict[str, LicenseStatus] = {
    "LMCT000001": LicenseStatus.EXPIRED,
    "MD0000002": LicenseStatus.SUSPENDED,
}

MOCK_LICENSE_EXPIRY = "2026-12-31"
MOCK_LICENSE_HOLDER = "License Holder Name"


def _generic_business(business_number: str) -> BusinessEntity:
    return BusinessEntity(
        business_number=business_number,
        legal_name="Generic Motors Pty Ltd",
        trading_name="Generic Motors",
        address="1 Business Street, Sydney NSW 2000",
        jurisdiction="NSW",
        postcode="2000",
        entity_type="Australian Private Company",
        gst_registered=True,
    )


class MockRegistryClient:
    """
    Implements VerificationClient protocol with canned registry data.

    Uses structural subtyping - no explicit inheritance from Protocol.

    Business lookup: table hit returns the entity; any other number with a
    valid checksum returns a generic entity; the rest is not found.
    License lookup: fewer than 6 characters is invalid, table entries keep
    their status, everything else is active.

    Latency bounds are in milliseconds. `sleep` and `rng` are injectable so
    tests run without real delays.
    """

    def __init__(
        self,
        business_latency_ms: tuple[int, int] = (1000, 2000),
        license_latency_ms: tuple[int, int] = (1200, 2000),
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._business_latency_ms = business_latency_ms
        self._license_latency_ms = license_latency_ms
        self._sleep = sleep
        self._rng = rng or random.Random()

    async def lookup_business(self, business_number: str) -> BusinessEntity | None:
        """Simulate a business register lookup by normalized number."""
        await self._delay(self._business_latency_ms)

        entity = MOCK_BUSINESSES.get(business_number)
        if entity is not None:
            return entity
        if business_number_checksum(business_number):
            return _generic_business(business_number)

        logger.info("Mock registry: business number not found")
        return None

    async def lookup_license(self, license_number: str, jurisdiction: str) -> LicenseCheck:
        """Simulate a state dealer-license lookup."""
        await self._delay(self._license_latency_ms)

        license_type = "Motor Dealer License" if jurisdiction == "QLD" else "LMCT License"
        if len(license_number) < 6:
            return LicenseCheck(
                valid=False,
                status=LicenseStatus.INVALID,
                license_number=license_number,
                jurisdiction=jurisdiction,
                license_type=license_type,
            )

        status = MOCK_LICENSE_STATUSES.get(license_number, LicenseStatus.ACTIVE)
        return LicenseCheck(
            valid=status == LicenseStatus.ACTIVE,
            status=status,
            license_number=license_number,
            jurisdiction=jurisdiction,
            license_type=license_type,
            holder=MOCK_LICENSE_HOLDER,
            expiry=MOCK_LICENSE_EXPIRY,
        )

    async def _delay(self, bounds_ms: tuple[int, int]) -> None:
        low, high = bounds_ms
        await self._sleep(self._rng.uniform(low, high) / 1000)
