"""
Profile document - Pydantic envelope for serialized profiles.

Shared by the file and PostgreSQL stores so both persist the same JSON
shape. Pydantic validates the stdlib PersistedProfile dataclass directly,
which keeps the domain free of framework imports.
"""

from pydantic import BaseModel, ValidationError

from src.domain.exceptions import ProfileStoreError
from src.domain.models import PersistedProfile

SCHEMA_VERSION = 1


class ProfileDocument(BaseModel):
    """Versioned wrapper around a persisted profile."""

    version: int = SCHEMA_VERSION
    profile: PersistedProfile


def dump_profile(profile: PersistedProfile) -> str:
    """Serialize a profile to a JSON document."""
    return ProfileDocument(profile=profile).model_dump_json()


def parse_profile(data: str | bytes | dict) -> PersistedProfile:
    """
    Parse a stored document back into a profile.

    Raises:
        ProfileStoreError: Document is malformed or from an unknown version
    """
    try:
        if isinstance(data, dict):
            document = ProfileDocument.model_validate(data)
        else:
            document = ProfileDocument.model_validate_json(data)
    except ValidationError as e:
        raise ProfileStoreError(f"Stored profile is corrupt: {e.error_count()} error(s)") from e

    if document.version != SCHEMA_VERSION:
        raise ProfileStoreError(f"Unsupported profile document version: {document.version}")
    return document.profile
