"""
Shared fixtures for adversarial tests.

Provides common test infrastructure for race condition tests against
the profile stores and the registration workflow.
"""

from pathlib import Path

import pytest

from src.adapters.store.json_file import JsonFileProfileStore
from src.domain.profile import ProfileService
from tests.fakes import make_profile

# Module-level marker for all adversarial tests
pytestmark = pytest.mark.adversarial


@pytest.fixture
def file_store(tmp_path: Path) -> JsonFileProfileStore:
    """File store in a fresh directory for each test."""
    return JsonFileProfileStore(tmp_path / "profile.json")


@pytest.fixture
def seeded_service(file_store: JsonFileProfileStore) -> ProfileService:
    """Profile service over a file store that already holds a profile."""
    file_store.save(make_profile())
    return ProfileService(store=file_store)
