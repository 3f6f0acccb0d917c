"""
Workflow session registry - In-process registration sessions.

Each HTTP client drives its own RegistrationWorkflow, addressed by an
opaque session id. A session lives until its registration is submitted.
"""

import logging
import secrets
import threading
from collections.abc import Callable

from src.domain.models import AccountType
from src.domain.registration import RegistrationWorkflow

logger = logging.getLogger(__name__)


class SessionNotFound(KeyError):
    """No workflow session with the given id."""

    pass


class WorkflowSessions:
    """Maps session ids to workflows created by `factory`."""

    def __init__(self, factory: Callable[[AccountType], RegistrationWorkflow]) -> None:
        self._factory = factory
        self._sessions: dict[str, RegistrationWorkflow] = {}
        self._lock = threading.Lock()

    def create(self, account_type: AccountType) -> tuple[str, RegistrationWorkflow]:
        """Start a new registration session."""
        session_id = secrets.token_urlsafe(16)
        workflow = self._factory(account_type)
        with self._lock:
            self._sessions[session_id] = workflow
        logger.info("Registration session started (%s)", account_type.value)
        return session_id, workflow

    def get(self, session_id: str) -> RegistrationWorkflow:
        with self._lock:
            try:
                return self._sessions[session_id]
            except KeyError:
                raise SessionNotFound(session_id) from None

    def discard(self, session_id: str) -> None:
        """Forget a session; unknown ids are ignored."""
        with self._lock:
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.info("Registration session closed")

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
