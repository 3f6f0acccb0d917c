"""
Unit tests for ProfileService.

Tests verify:
- Session-start load and sign-out
- Merge-patch updates restricted to editable fields
- Patch values are validated and normalized
- updated_at refreshed on every update
"""

from datetime import UTC, datetime
from unittest.mock import Mock

import pytest

from src.adapters.store.memory import InMemoryProfileStore
from src.domain.exceptions import InvalidProfilePatch, ProfileNotFound
from src.domain.profile import EDITABLE_PROFILE_FIELDS, ProfileService
from tests.fakes import make_profile

LATER = datetime(2026, 10, 19, 8, 0, tzinfo=UTC)


@pytest.fixture
def service() -> ProfileService:
    return ProfileService(store=InMemoryProfileStore(make_profile()), clock=lambda: LATER)


class TestLoadAndSignOut:
    """Tests for load() and sign_out()."""

    def test_load_returns_stored_profile(self, service: ProfileService) -> None:
        assert service.load() == make_profile()

    def test_load_when_empty(self) -> None:
        assert ProfileService(store=InMemoryProfileStore()).load() is None

    def test_sign_out_clears_store(self, service: ProfileService) -> None:
        service.sign_out()

        assert service.load() is None

    def test_sign_out_delegates_to_store(self) -> None:
        store = Mock()

        ProfileService(store=store).sign_out()

        store.clear.assert_called_once_with()


class TestUpdateProfile:
    """Tests for update_profile()."""

    def test_merges_patch(self, service: ProfileService) -> None:
        updated = service.update_profile({"trading_name": "Toyota Mulgrave"})

        assert updated.trading_name == "Toyota Mulgrave"
        assert updated.legal_name == "Toyota Motor Corporation Australia"
        assert service.load() == updated

    def test_refreshes_updated_at(self, service: ProfileService) -> None:
        updated = service.update_profile({"full_name": "Janet Citizen"})

        assert updated.updated_at == LATER
        assert updated.created_at == make_profile().created_at

    def test_empty_patch_only_touches_timestamp(self, service: ProfileService) -> None:
        updated = service.update_profile({})

        assert updated.full_name == "Jane Citizen"
        assert updated.updated_at == LATER

    def test_email_normalized(self, service: ProfileService) -> None:
        updated = service.update_profile({"email": " Janet@Example.COM "})

        assert updated.email == "janet@example.com"

    def test_phone_stored_in_display_form(self, service: ProfileService) -> None:
        updated = service.update_profile({"phone": "0498765432"})

        assert updated.phone == "0498 765 432"

    @pytest.mark.parametrize("field", ["email_verified", "phone_verified"])
    def test_verification_flags_not_patchable(self, service: ProfileService, field: str) -> None:
        """Derived flags are not client input."""
        with pytest.raises(InvalidProfilePatch, match=field):
            service.update_profile({field: True})

        assert getattr(service.load(), field) is False

    def test_invalid_email_rejected(self, service: ProfileService) -> None:
        with pytest.raises(InvalidProfilePatch, match="email"):
            service.update_profile({"email": "not-an-email"})

        assert service.load().email == "jane@example.com"

    def test_invalid_phone_rejected(self, service: ProfileService) -> None:
        with pytest.raises(InvalidProfilePatch):
            service.update_profile({"phone": "0212345678"})

    def test_blank_name_rejected(self, service: ProfileService) -> None:
        with pytest.raises(InvalidProfilePatch):
            service.update_profile({"full_name": "   "})

    @pytest.mark.parametrize(
        "field",
        ["id", "password_hash", "business_verified", "license_number", "card_reference", "bogus"],
    )
    def test_protected_or_unknown_field_rejected(
        self, service: ProfileService, field: str
    ) -> None:
        with pytest.raises(InvalidProfilePatch, match=field):
            service.update_profile({field: "x"})

        assert service.load() == make_profile()

    def test_bool_field_requires_bool(self, service: ProfileService) -> None:
        with pytest.raises(InvalidProfilePatch, match="boolean"):
            service.update_profile({"save_card": "yes"})

    def test_string_field_requires_string(self, service: ProfileService) -> None:
        with pytest.raises(InvalidProfilePatch, match="string"):
            service.update_profile({"trading_name": 42})

    def test_no_profile(self) -> None:
        service = ProfileService(store=InMemoryProfileStore())

        with pytest.raises(ProfileNotFound):
            service.update_profile({"full_name": "Jane"})

    def test_rejected_patch_does_not_hit_store(self) -> None:
        store = Mock()

        with pytest.raises(InvalidProfilePatch):
            ProfileService(store=store).update_profile({"password_hash": "x"})

        store.load.assert_not_called()
        store.save.assert_not_called()

    def test_editable_fields_exist_on_profile(self) -> None:
        profile = make_profile()

        for name in EDITABLE_PROFILE_FIELDS:
            assert hasattr(profile, name)
