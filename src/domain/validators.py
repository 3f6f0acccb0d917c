"""
Format validators - Normalization and validation of user-entered identifiers.

Every validator is a total function: it takes the raw string the user
typed (plus explicit context where the rule needs it) and returns an
IdentifierValue. Nothing here raises on malformed input and nothing
depends on UI state.

Normalization is idempotent: validating a value's own normalized form
returns the same normalized form.
"""

import re
from dataclasses import dataclass
from datetime import date
from enum import Enum

from email_validator import EmailNotValidError
from email_validator import validate_email as check_email_syntax

from .checksums import (
    BUSINESS_NUMBER_LENGTH,
    CARD_NUMBER_MAX_LENGTH,
    CARD_NUMBER_MIN_LENGTH,
    business_number_checksum,
    luhn_checksum,
)

_NON_DIGITS = re.compile(r"[^0-9]")
_WHITESPACE = re.compile(r"\s+")
_LICENSE_CHARSET = re.compile(r"^[A-Z0-9]+$")

DEFAULT_MOBILE_PREFIX = "04"
PHONE_LENGTH = 10
LICENSE_MIN_LENGTH = 6
PASSWORD_MIN_LENGTH = 8
POSTCODE_LENGTH = 4

JURISDICTIONS = ("NSW", "VIC", "QLD", "SA", "WA", "TAS", "NT", "ACT")

# Accepted license prefixes per jurisdiction; absent means no prefix rule.
LICENSE_PREFIXES: dict[str, tuple[str, ...]] = {
    "NSW": ("LMCT", "MD"),
    "VIC": ("LMCT", "MD"),
    "QLD": ("MD",),
}


class ErrorKind(str, Enum):
    """
    Validation and workflow error taxonomy.

    Field-level kinds are returned as data by validators; GATE_BLOCKED
    marks a rejected workflow transition; TIMEOUT, NOT_FOUND and
    UNAVAILABLE come from registry verification.
    """

    REQUIRED = "REQUIRED"
    LENGTH = "LENGTH"
    FORMAT = "FORMAT"
    CHARSET = "CHARSET"
    PREFIX = "PREFIX"
    RANGE = "RANGE"
    CHECKSUM = "CHECKSUM"
    EXPIRED = "EXPIRED"
    COMPLEXITY = "COMPLEXITY"
    TIMEOUT = "TIMEOUT"
    NOT_FOUND = "NOT_FOUND"
    UNAVAILABLE = "UNAVAILABLE"
    GATE_BLOCKED = "GATE_BLOCKED"


class CardNetwork(str, Enum):
    """Card network inferred from leading digits (display only)."""

    VISA = "visa"
    MASTERCARD = "mastercard"
    AMEX = "amex"
    UNKNOWN = "unknown"


class PasswordStrength(str, Enum):
    """Advisory password strength for UI feedback."""

    WEAK = "weak"
    MEDIUM = "medium"
    STRONG = "strong"


@dataclass(frozen=True)
class IdentifierValue:
    """
    Result of validating one raw field value.

    Attributes:
        raw: Input exactly as entered
        normalized: Canonical form (digits-only, uppercase, trimmed...)
        valid: Whether the normalized form passes all rules
        error: First failing rule, None when valid
        message: Human-readable explanation of the error
        display: Grouped display form, not part of validity
    """

    raw: str
    normalized: str
    valid: bool
    error: ErrorKind | None = None
    message: str | None = None
    display: str | None = None


def _coerce(raw: object) -> str:
    return raw if isinstance(raw, str) else ""


def _digits(raw: str) -> str:
    return _NON_DIGITS.sub("", raw)


def _ok(raw: str, normalized: str, display: str | None = None) -> IdentifierValue:
    return IdentifierValue(raw=raw, normalized=normalized, valid=True, display=display)


def _fail(
    raw: str, normalized: str, error: ErrorKind, message: str, display: str | None = None
) -> IdentifierValue:
    return IdentifierValue(
        raw=raw,
        normalized=normalized,
        valid=False,
        error=error,
        message=message,
        display=display,
    )


def _group(digits: str, sizes: tuple[int, ...]) -> str:
    parts = []
    start = 0
    for size in sizes:
        if start >= len(digits):
            break
        parts.append(digits[start : start + size])
        start += size
    if start < len(digits):
        parts.append(digits[start:])
    return " ".join(parts)


def format_business_number(digits: str) -> str:
    """Format business number digits as XX XXX XXX XXX."""
    return _group(digits, (2, 3, 3, 3))


def format_phone(digits: str) -> str:
    """Format phone digits as XXXX XXX XXX."""
    return _group(digits, (4, 3, 3))


def format_card_number(digits: str) -> str:
    """Format card digits in groups of four."""
    return _group(digits, (4, 4, 4, 4))


def mask_card_number(digits: str) -> str:
    """Masked card reference showing only the last four digits."""
    return f"•••• {digits[-4:]}" if len(digits) >= 4 else ""


def validate_business_number(raw: object) -> IdentifierValue:
    """Validate an 11-digit business number (length, then mod-89 checksum)."""
    raw = _coerce(raw)
    normalized = _digits(raw)
    display = format_business_number(normalized)

    if not normalized:
        return _fail(raw, normalized, ErrorKind.REQUIRED, "Business number is required")
    if len(normalized) != BUSINESS_NUMBER_LENGTH:
        return _fail(
            raw, normalized, ErrorKind.LENGTH, "Business number must be 11 digits", display
        )
    if not business_number_checksum(normalized):
        return _fail(
            raw, normalized, ErrorKind.CHECKSUM, "Invalid business number checksum", display
        )
    return _ok(raw, normalized, display)


def validate_phone(raw: object, mobile_prefix: str = DEFAULT_MOBILE_PREFIX) -> IdentifierValue:
    """
    Validate a mobile phone number.

    Non-digits are stripped and the result truncated to 10 digits. The
    number must start with the mobile prefix (04 by default).
    """
    raw = _coerce(raw)
    normalized = _digits(raw)[:PHONE_LENGTH]
    display = format_phone(normalized)

    if not normalized:
        return _fail(raw, normalized, ErrorKind.REQUIRED, "Phone number is required")
    if len(normalized) != PHONE_LENGTH:
        return _fail(raw, normalized, ErrorKind.LENGTH, "Phone number must be 10 digits", display)
    if not normalized.startswith(mobile_prefix):
        return _fail(
            raw,
            normalized,
            ErrorKind.PREFIX,
            f"Phone number must start with {mobile_prefix}",
            display,
        )
    return _ok(raw, normalized, display)


def validate_jurisdiction(raw: object) -> IdentifierValue:
    """Validate a state/territory code against the known jurisdictions."""
    raw = _coerce(raw)
    normalized = raw.strip().upper()

    if not normalized:
        return _fail(raw, normalized, ErrorKind.REQUIRED, "Jurisdiction is required")
    if normalized not in JURISDICTIONS:
        return _fail(
            raw,
            normalized,
            ErrorKind.RANGE,
            f"Jurisdiction must be one of {', '.join(JURISDICTIONS)}",
        )
    return _ok(raw, normalized)


def validate_license(raw: object, jurisdiction: str | None = None) -> IdentifierValue:
    """
    Validate a dealer license number.

    Whitespace is removed and letters uppercased. Jurisdiction-specific
    prefix rules come from LICENSE_PREFIXES; an unknown or missing
    jurisdiction applies no prefix rule.
    """
    raw = _coerce(raw)
    normalized = _WHITESPACE.sub("", raw).upper()

    if not normalized:
        return _fail(raw, normalized, ErrorKind.REQUIRED, "License number is required")
    if len(normalized) < LICENSE_MIN_LENGTH:
        return _fail(
            raw, normalized, ErrorKind.LENGTH, "License number must be at least 6 characters"
        )
    if not _LICENSE_CHARSET.match(normalized):
        return _fail(
            raw,
            normalized,
            ErrorKind.CHARSET,
            "License number must contain only letters and numbers",
        )

    state = (jurisdiction or "").strip().upper()
    prefixes = LICENSE_PREFIXES.get(state)
    if prefixes and not normalized.startswith(prefixes):
        return _fail(
            raw,
            normalized,
            ErrorKind.PREFIX,
            f"{state} license should start with {' or '.join(prefixes)}",
        )
    return _ok(raw, normalized)


def detect_card_network(digits: str) -> CardNetwork:
    """Infer the card network from leading digits."""
    if digits.startswith("4"):
        return CardNetwork.VISA
    if re.match(r"^(5[1-5]|2[2-7])", digits):
        return CardNetwork.MASTERCARD
    if re.match(r"^3[47]", digits):
        return CardNetwork.AMEX
    return CardNetwork.UNKNOWN


def validate_card_number(raw: object) -> IdentifierValue:
    """Validate a payment card number (13-19 digits, Luhn checksum)."""
    raw = _coerce(raw)
    normalized = _digits(raw)[:CARD_NUMBER_MAX_LENGTH]
    display = format_card_number(normalized)

    if not normalized:
        return _fail(raw, normalized, ErrorKind.REQUIRED, "Card number is required")
    if not CARD_NUMBER_MIN_LENGTH <= len(normalized) <= CARD_NUMBER_MAX_LENGTH:
        return _fail(raw, normalized, ErrorKind.LENGTH, "Card number must be 13-19 digits", display)
    if not luhn_checksum(normalized):
        return _fail(raw, normalized, ErrorKind.CHECKSUM, "Invalid card number", display)
    return _ok(raw, normalized, display)


def validate_expiry(raw: object, today: date | None = None) -> IdentifierValue:
    """
    Validate a card expiry entered as MM/YY.

    The card is usable through the end of its expiry month, so only a
    month strictly before the current one is EXPIRED.
    """
    raw = _coerce(raw)
    normalized = _digits(raw)[:4]
    display = f"{normalized[:2]}/{normalized[2:]}" if len(normalized) > 2 else normalized

    if not normalized:
        return _fail(raw, normalized, ErrorKind.REQUIRED, "Expiry date is required")
    if len(normalized) != 4:
        return _fail(raw, normalized, ErrorKind.FORMAT, "Enter valid expiry (MM/YY)", display)

    month = int(normalized[:2])
    year = 2000 + int(normalized[2:])
    if not 1 <= month <= 12:
        return _fail(raw, normalized, ErrorKind.RANGE, "Invalid month", display)

    today = today or date.today()
    if (year, month) < (today.year, today.month):
        return _fail(raw, normalized, ErrorKind.EXPIRED, "Card has expired", display)
    return _ok(raw, normalized, display)


def validate_cvv(raw: object, network: CardNetwork = CardNetwork.UNKNOWN) -> IdentifierValue:
    """Validate a CVV: 4 digits for amex, 3 digits for every other network."""
    raw = _coerce(raw)
    normalized = _digits(raw)
    expected = 4 if network == CardNetwork.AMEX else 3

    if not normalized:
        return _fail(raw, normalized, ErrorKind.REQUIRED, "CVV is required")
    if len(normalized) != expected:
        return _fail(raw, normalized, ErrorKind.LENGTH, f"Enter {expected}-digit CVV")
    return _ok(raw, normalized)


def validate_password(raw: object) -> IdentifierValue:
    """Validate password policy: at least 8 characters with a letter and a digit."""
    raw = _coerce(raw)

    if not raw:
        return _fail(raw, raw, ErrorKind.REQUIRED, "Password is required")
    if len(raw) < PASSWORD_MIN_LENGTH:
        return _fail(raw, raw, ErrorKind.LENGTH, "Password must be at least 8 characters")
    if not re.search(r"[a-zA-Z]", raw) or not re.search(r"[0-9]", raw):
        return _fail(raw, raw, ErrorKind.COMPLEXITY, "Password must contain letters and numbers")
    return _ok(raw, raw)


def password_strength(raw: object) -> PasswordStrength:
    """
    Score a password for UI feedback.

    Never affects validity; validate_password() alone decides pass/fail.
    """
    password = _coerce(raw)
    if len(password) < 6:
        return PasswordStrength.WEAK

    score = 0
    score += len(password) >= 8
    score += len(password) >= 12
    score += bool(re.search(r"[a-z]", password))
    score += bool(re.search(r"[A-Z]", password))
    score += bool(re.search(r"[0-9]", password))
    score += bool(re.search(r"[^a-zA-Z0-9]", password))

    if score <= 2:
        return PasswordStrength.WEAK
    if score <= 4:
        return PasswordStrength.MEDIUM
    return PasswordStrength.STRONG


def validate_email(raw: object) -> IdentifierValue:
    """
    Validate an email address with email-validator's syntax rules.

    Same acceptance as the API's EmailStr; no DNS lookup is made.
    """
    raw = _coerce(raw)
    normalized = raw.strip().lower()

    if not normalized:
        return _fail(raw, normalized, ErrorKind.REQUIRED, "Email is required")
    try:
        check_email_syntax(normalized, check_deliverability=False)
    except EmailNotValidError:
        return _fail(raw, normalized, ErrorKind.FORMAT, "Please enter a valid email address")
    return _ok(raw, normalized)


def validate_postcode(raw: object) -> IdentifierValue:
    raw = _coerce(raw)
    normalized = _digits(raw)

    if not normalized:
        return _fail(raw, normalized, ErrorKind.REQUIRED, "Postcode is required")
    if len(normalized) != POSTCODE_LENGTH:
        return _fail(raw, normalized, ErrorKind.LENGTH, "Postcode must be 4 digits")
    return _ok(raw, normalized)


def validate_text(raw: object, label: str = "This field") -> IdentifierValue:
    raw = _coerce(raw)
    normalized = raw.strip()

    if not normalized:
        return _fail(raw, normalized, ErrorKind.REQUIRED, f"{label} is required")
    return _ok(raw, normalized)
