"""
Profile service - Session profile lifecycle after registration.

Loads the persisted profile at session start, applies explicit
merge-patch updates, and clears it on sign-out. Profiles are only ever
changed through update_profile(); there is no per-field side channel.
"""

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, fields, replace
from datetime import datetime

from .exceptions import InvalidProfilePatch, ProfileNotFound
from .models import PersistedProfile, utcnow
from .ports import ProfileStore
from .validators import validate_email, validate_phone, validate_text

logger = logging.getLogger(__name__)

# Fields a profile update may change. Identity, credentials, verified
# registry data and derived verification flags are not patchable.
EDITABLE_PROFILE_FIELDS = frozenset(
    {
        "full_name",
        "email",
        "phone",
        "trading_name",
        "business_address",
        "cardholder_name",
        "save_card",
    }
)

_BOOL_FIELDS = frozenset(f.name for f in fields(PersistedProfile) if f.type in (bool, "bool"))


@dataclass
class ProfileService:
    """
    Domain service for the persisted profile.

    Updates run load-merge-save under a lock, so concurrent patches are
    applied one after another on top of each other's result.
    """

    store: ProfileStore
    clock: Callable[[], datetime] = utcnow
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False, repr=False)

    def load(self) -> PersistedProfile | None:
        """Load the stored profile at session start."""
        profile = self.store.load()
        if profile is None:
            logger.info("No stored profile")
        else:
            logger.info("Loaded profile %s", profile.id)
        return profile

    def update_profile(self, patch: Mapping[str, object]) -> PersistedProfile:
        """
        Merge `patch` into the stored profile and persist the result.

        Args:
            patch: Field name -> new value; only EDITABLE_PROFILE_FIELDS

        Returns:
            The updated profile

        Raises:
            InvalidProfilePatch: Unknown/protected field or invalid value
            ProfileNotFound: No profile is stored
        """
        changes = self._validate_patch(patch)

        with self._lock:
            current = self.store.load()
            if current is None:
                raise ProfileNotFound("No profile to update")

            updated = replace(current, **changes, updated_at=self.clock())
            self.store.save(updated)

        logger.info("Updated profile %s: %s", updated.id, sorted(changes))
        return updated

    def sign_out(self) -> None:
        """Remove the stored profile."""
        with self._lock:
            self.store.clear()
        logger.info("Signed out, profile cleared")

    def _validate_patch(self, patch: Mapping[str, object]) -> dict[str, object]:
        rejected = sorted(set(patch) - EDITABLE_PROFILE_FIELDS)
        if rejected:
            raise InvalidProfilePatch(f"Fields cannot be updated: {', '.join(rejected)}")

        changes: dict[str, object] = {}
        for name, value in patch.items():
            if name in _BOOL_FIELDS:
                if not isinstance(value, bool):
                    raise InvalidProfilePatch(f"{name} must be a boolean")
                changes[name] = value
                continue

            if not isinstance(value, str):
                raise InvalidProfilePatch(f"{name} must be a string")

            if name == "email":
                checked = validate_email(value)
                normalized = checked.normalized
            elif name == "phone":
                checked = validate_phone(value)
                normalized = checked.display or ""
            elif name in ("full_name", "cardholder_name"):
                checked = validate_text(value, name)
                normalized = checked.normalized
            else:
                changes[name] = value.strip()
                continue

            if not checked.valid:
                raise InvalidProfilePatch(f"{name}: {checked.message}")
            changes[name] = normalized

        return changes
