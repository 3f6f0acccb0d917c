"""
JSON file profile store adapter - Implements ProfileStore protocol.

Atomic write design:
--------------------
save() never writes the target file in place. It writes the full
document to a temporary file in the same directory, fsyncs it, then
os.replace()s it over the target. os.replace is atomic on POSIX and
Windows when source and target share a filesystem, so a crash leaves
either the old document or the new one for the next load(), never a
truncated mix. Leftover temp files from a crash are ignored by load().

Saves are serialized by a lock shared by every store instance pointing
at the same path (one critical section per profile file).
"""

import logging
import os
import tempfile
import threading
from pathlib import Path

from src.domain.exceptions import ProfileStoreError
from src.domain.models import PersistedProfile

from .document import dump_profile, parse_profile

logger = logging.getLogger(__name__)

_path_locks: dict[Path, threading.Lock] = {}
_path_locks_guard = threading.Lock()


def _lock_for(path: Path) -> threading.Lock:
    with _path_locks_guard:
        return _path_locks.setdefault(path, threading.Lock())


class JsonFileProfileStore:
    """
    Implements ProfileStore protocol backed by one JSON file.

    Uses structural subtyping - no explicit inheritance from Protocol.
    """

    def __init__(self, path: str | Path) -> None:
        """
        Initialize store for a document path.

        Args:
            path: Location of the profile document; parent dirs are created on save
        """
        self._path = Path(path).resolve()
        self._lock = _lock_for(self._path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> PersistedProfile | None:
        """
        Read the stored profile.

        Raises:
            ProfileStoreError: File unreadable or corrupt
        """
        with self._lock:
            try:
                data = self._path.read_text(encoding="utf-8")
            except FileNotFoundError:
                return None
            except OSError as e:
                logger.error(f"Profile read failed: {self._path} - {e}")
                raise ProfileStoreError(f"Cannot read profile: {self._path}") from e

        return parse_profile(data)

    def save(self, profile: PersistedProfile) -> None:
        """Atomically replace the stored profile."""
        payload = dump_profile(profile)

        with self._lock:
            try:
                self._path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    prefix=f".{self._path.name}.", suffix=".tmp", dir=self._path.parent
                )
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as tmp:
                        tmp.write(payload)
                        tmp.flush()
                        os.fsync(tmp.fileno())
                    os.replace(tmp_name, self._path)
                except BaseException:
                    Path(tmp_name).unlink(missing_ok=True)
                    raise
            except OSError as e:
                logger.error(f"Profile write failed: {self._path} - {e}")
                raise ProfileStoreError(f"Cannot write profile: {self._path}") from e

        logger.info("Profile %s saved to %s", profile.id, self._path)

    def clear(self) -> None:
        """Delete the stored profile document."""
        with self._lock:
            try:
                self._path.unlink(missing_ok=True)
            except OSError as e:
                logger.error(f"Profile delete failed: {self._path} - {e}")
                raise ProfileStoreError(f"Cannot delete profile: {self._path}") from e

        logger.info("Profile cleared at %s", self._path)
