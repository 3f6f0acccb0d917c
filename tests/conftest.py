"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- A controllable fake registry client
- In-memory profile store and workflow wiring
"""

import pytest

from src.adapters.store.memory import InMemoryProfileStore
from src.domain.registration import RegistrationWorkflow
from src.domain.steps import FieldRules
from tests.fakes import TODAY, FakeRegistryClient


@pytest.fixture
def registry() -> FakeRegistryClient:
    return FakeRegistryClient()


@pytest.fixture
def store() -> InMemoryProfileStore:
    return InMemoryProfileStore()


@pytest.fixture
def workflow(registry: FakeRegistryClient, store: InMemoryProfileStore) -> RegistrationWorkflow:
    """Workflow with fast bcrypt, fixed date and a short verification timeout."""
    return RegistrationWorkflow(
        verification_client=registry,
        profile_store=store,
        verification_timeout=1.0,
        rules=FieldRules(today=TODAY),
        bcrypt_cost=4,
    )
