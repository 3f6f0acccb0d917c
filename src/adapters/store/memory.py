"""
In-memory profile store adapter - Implements ProfileStore protocol.

Keeps a single profile slot behind a lock. Used by tests and by the
`memory` backend for local development; nothing survives a restart.
"""

import logging
import threading

from src.domain.models import PersistedProfile

logger = logging.getLogger(__name__)


class InMemoryProfileStore:
    """
    Implements ProfileStore protocol with a locked in-process slot.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Profiles are frozen dataclasses, so storing the reference is safe.
    """

    def __init__(self, profile: PersistedProfile | None = None) -> None:
        self._lock = threading.Lock()
        self._profile = profile

    def load(self) -> PersistedProfile | None:
        with self._lock:
            return self._profile

    def save(self, profile: PersistedProfile) -> None:
        with self._lock:
            self._profile = profile
        logger.info("Profile %s saved (memory)", profile.id)

    def clear(self) -> None:
        with self._lock:
            self._profile = None
