"""
Unit tests for API v1 routes.

Tests endpoint responses with in-memory collaborators and mocked
dependencies.
"""

from unittest.mock import MagicMock, Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.adapters.store.memory import InMemoryProfileStore
from src.api.dependencies import get_profile_service, get_sessions
from src.api.sessions import WorkflowSessions
from src.api.v1.routes import router
from src.domain.exceptions import ProfileStoreError
from src.domain.models import AccountType
from src.domain.profile import ProfileService
from src.domain.registration import RegistrationWorkflow
from src.domain.steps import FieldRules
from tests.fakes import (
    TODAY,
    VALID_CONTACT,
    VALID_LICENSE,
    VALID_PAYMENT,
    FakeRegistryClient,
    make_profile,
)


def make_sessions(store) -> WorkflowSessions:
    def factory(account_type: AccountType) -> RegistrationWorkflow:
        return RegistrationWorkflow(
            verification_client=FakeRegistryClient(),
            profile_store=store,
            account_type=account_type,
            rules=FieldRules(today=TODAY),
            bcrypt_cost=4,
        )

    return WorkflowSessions(factory)


@pytest.fixture
def store() -> InMemoryProfileStore:
    return InMemoryProfileStore()


@pytest.fixture
def app(store: InMemoryProfileStore) -> FastAPI:
    """Create test FastAPI application."""
    test_app = FastAPI()
    test_app.include_router(router, prefix="/v1")

    test_app.state.sessions = make_sessions(store)
    test_app.state.profile_service = ProfileService(store=store)

    return test_app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create test client for the application."""
    return TestClient(app)


def start(client: TestClient, **body) -> str:
    response = client.post("/v1/registrations", json=body)
    assert response.status_code == 201
    return response.json()["session_id"]


def put_fields(client: TestClient, session_id: str, step: int, values: dict) -> dict:
    body = {}
    for name, value in values.items():
        response = client.put(
            f"/v1/registrations/{session_id}/fields",
            json={"step": step, "field": name, "value": value},
        )
        assert response.status_code == 200, response.text
        body = response.json()
    return body


def walk_to_payment(client: TestClient, session_id: str) -> None:
    put_fields(client, session_id, 1, VALID_CONTACT)
    for _ in range(2):
        assert client.post(f"/v1/registrations/{session_id}/advance").json()["rejection"] is None
    put_fields(client, session_id, 3, VALID_LICENSE)
    assert client.post(f"/v1/registrations/{session_id}/advance").json()["current_step"] == 4


class TestStartRegistration:
    """Tests for POST /v1/registrations."""

    def test_returns_201_with_initial_state(self, client: TestClient) -> None:
        response = client.post("/v1/registrations", json={})

        assert response.status_code == 201
        body = response.json()
        assert body["session_id"]
        assert body["current_step"] == 1
        assert body["submitted"] is False
        assert body["rejection"] is None
        assert body["errors"] == {}
        assert body["verification"] == {"business": "unverified", "license": "unverified"}

    def test_accepts_wholesaler(self, client: TestClient, app: FastAPI) -> None:
        session_id = start(client, account_type="wholesaler")

        assert app.state.sessions.get(session_id).account_type == AccountType.WHOLESALER

    def test_rejects_unknown_account_type(self, client: TestClient) -> None:
        response = client.post("/v1/registrations", json={"account_type": "broker"})

        assert response.status_code == 422

    def test_unknown_session_returns_404(self, client: TestClient) -> None:
        response = client.get("/v1/registrations/nope")

        assert response.status_code == 404
        assert response.json() == {"detail": "Registration session not found"}


class TestUpdateFieldEndpoint:
    """Tests for PUT /v1/registrations/{id}/fields."""

    def test_valid_field(self, client: TestClient) -> None:
        session_id = start(client)

        body = put_fields(client, session_id, 1, {"phone": "0412345678"})

        assert body["record"]["phone"] == "0412345678"
        assert "phone" not in body["errors"]

    def test_invalid_field_reported(self, client: TestClient) -> None:
        session_id = start(client)

        body = put_fields(client, session_id, 2, {"business_number": "12 345 678 900"})

        assert body["errors"]["business_number"]["kind"] == "CHECKSUM"

    def test_secrets_not_echoed(self, client: TestClient) -> None:
        session_id = start(client)

        put_fields(client, session_id, 1, {"password": "secret123"})
        body = put_fields(client, session_id, 4, {"cvv": "123"})

        assert "password" not in body["record"]
        assert "cvv" not in body["record"]
        assert body["password_strength"] == "medium"

    def test_card_network_reported(self, client: TestClient) -> None:
        session_id = start(client)

        body = put_fields(client, session_id, 4, {"card_number": "3782 822463 10005"})

        assert body["card_network"] == "amex"

    def test_unknown_field_returns_400(self, client: TestClient) -> None:
        session_id = start(client)

        response = client.put(
            f"/v1/registrations/{session_id}/fields",
            json={"step": 1, "field": "legal_name", "value": "x"},
        )

        assert response.status_code == 400

    def test_autofill_field_returns_400(self, client: TestClient) -> None:
        session_id = start(client)

        response = client.put(
            f"/v1/registrations/{session_id}/fields",
            json={"step": 2, "field": "legal_name", "value": "x"},
        )

        assert response.status_code == 400

    def test_invalid_step_returns_422(self, client: TestClient) -> None:
        session_id = start(client)

        response = client.put(
            f"/v1/registrations/{session_id}/fields",
            json={"step": 7, "field": "full_name", "value": "Jane"},
        )

        assert response.status_code == 422


class TestNavigationEndpoints:
    """Tests for advance, retreat and verify."""

    def test_advance_blocked_is_200_with_rejection(self, client: TestClient) -> None:
        session_id = start(client)

        response = client.post(f"/v1/registrations/{session_id}/advance")

        assert response.status_code == 200
        body = response.json()
        assert body["rejection"] == "GATE_BLOCKED"
        assert body["current_step"] == 1
        assert set(body["errors"]) == {"full_name", "email", "phone", "password"}

    def test_retreat_on_first_step_returns_409(self, client: TestClient) -> None:
        session_id = start(client)

        response = client.post(f"/v1/registrations/{session_id}/retreat")

        assert response.status_code == 409

    def test_verify_business(self, client: TestClient) -> None:
        session_id = start(client)
        put_fields(client, session_id, 2, {"business_number": "53 004 085 616"})

        response = client.post(f"/v1/registrations/{session_id}/verify", json={"step": 2})

        assert response.status_code == 200
        body = response.json()
        assert body["verification"]["business"] == "verified"
        assert body["record"]["legal_name"] == "Toyota Motor Corporation Australia"

    def test_verify_step_without_group_returns_409(self, client: TestClient) -> None:
        session_id = start(client)

        response = client.post(f"/v1/registrations/{session_id}/verify", json={"step": 1})

        assert response.status_code == 409

    def test_submit_off_last_step_returns_409(self, client: TestClient) -> None:
        session_id = start(client)

        response = client.post(f"/v1/registrations/{session_id}/submit")

        assert response.status_code == 409


class TestSubmitEndpoint:
    """Tests for POST /v1/registrations/{id}/submit."""

    def test_submit_success(self, client: TestClient, store: InMemoryProfileStore) -> None:
        session_id = start(client)
        walk_to_payment(client, session_id)
        put_fields(client, session_id, 4, VALID_PAYMENT)

        response = client.post(f"/v1/registrations/{session_id}/submit")

        assert response.status_code == 200
        body = response.json()
        assert body["submitted"] is True
        profile = body["profile"]
        assert profile["email"] == "jane@example.com"
        assert profile["card_reference"] == "•••• 4242"
        assert "password_hash" not in profile
        assert store.load().id == profile["id"]

    def test_submit_with_invalid_fields(self, client: TestClient) -> None:
        session_id = start(client)
        walk_to_payment(client, session_id)

        body = client.post(f"/v1/registrations/{session_id}/submit").json()

        assert body["rejection"] == "GATE_BLOCKED"
        assert body["submitted"] is False
        assert "card_number" in body["errors"]

    def test_session_closed_after_submit(self, client: TestClient, app: FastAPI) -> None:
        """The draft with raw credentials is dropped once the profile is saved."""
        session_id = start(client)
        walk_to_payment(client, session_id)
        put_fields(client, session_id, 4, VALID_PAYMENT)
        assert len(app.state.sessions) == 1

        client.post(f"/v1/registrations/{session_id}/submit")

        assert len(app.state.sessions) == 0
        assert client.get(f"/v1/registrations/{session_id}").status_code == 404
        response = client.put(
            f"/v1/registrations/{session_id}/fields",
            json={"step": 1, "field": "full_name", "value": "Other"},
        )
        assert response.status_code == 404

    def test_rejected_submit_keeps_session(self, client: TestClient, app: FastAPI) -> None:
        session_id = start(client)
        walk_to_payment(client, session_id)

        client.post(f"/v1/registrations/{session_id}/submit")

        assert client.get(f"/v1/registrations/{session_id}").status_code == 200
        assert len(app.state.sessions) == 1

    def test_card_number_masked_in_snapshot(self, client: TestClient) -> None:
        session_id = start(client)

        body = put_fields(client, session_id, 4, {"card_number": "4242 4242 4242 4242"})

        assert body["record"]["card_number"] == "•••• 4242"
        assert "4242424242424242" not in str(body)
        assert "4242 4242 4242 4242" not in str(body)

    def test_store_failure_returns_503(self, app: FastAPI) -> None:
        failing_store = Mock()
        failing_store.save.side_effect = ProfileStoreError("disk full")
        sessions = make_sessions(failing_store)

        app.dependency_overrides[get_sessions] = lambda: sessions
        client = TestClient(app)

        try:
            session_id = start(client)
            walk_to_payment(client, session_id)
            put_fields(client, session_id, 4, VALID_PAYMENT)

            response = client.post(f"/v1/registrations/{session_id}/submit")

            assert response.status_code == 503
            assert response.json() == {"detail": "Profile storage unavailable"}
        finally:
            app.dependency_overrides.clear()


class TestProfileEndpoints:
    """Tests for /v1/profile."""

    def test_get_without_profile_returns_404(self, client: TestClient) -> None:
        response = client.get("/v1/profile")

        assert response.status_code == 404

    def test_get_profile(self, client: TestClient, store: InMemoryProfileStore) -> None:
        store.save(make_profile())

        response = client.get("/v1/profile")

        assert response.status_code == 200
        body = response.json()
        assert body["full_name"] == "Jane Citizen"
        assert body["account_type"] == "dealer"
        assert "password_hash" not in body

    def test_patch_profile(self, client: TestClient, store: InMemoryProfileStore) -> None:
        store.save(make_profile())

        response = client.patch("/v1/profile", json={"email": "Janet@Example.com"})

        assert response.status_code == 200
        body = response.json()
        assert body["email"] == "janet@example.com"
        assert body["email_verified"] is False
        assert body["full_name"] == "Jane Citizen"

    @pytest.mark.parametrize("field", ["email_verified", "phone_verified"])
    def test_patch_rejects_verification_flags(
        self, client: TestClient, store: InMemoryProfileStore, field: str
    ) -> None:
        store.save(make_profile())

        response = client.patch("/v1/profile", json={field: True})

        assert response.status_code == 422
        assert getattr(store.load(), field) is False

    def test_patch_rejects_protected_field(
        self, client: TestClient, store: InMemoryProfileStore
    ) -> None:
        store.save(make_profile())

        response = client.patch("/v1/profile", json={"business_verified": False})

        assert response.status_code == 422

    def test_patch_invalid_phone_returns_400(
        self, client: TestClient, store: InMemoryProfileStore
    ) -> None:
        store.save(make_profile())

        response = client.patch("/v1/profile", json={"phone": "0212345678"})

        assert response.status_code == 400

    def test_patch_without_profile_returns_404(self, client: TestClient) -> None:
        response = client.patch("/v1/profile", json={"full_name": "Jane"})

        assert response.status_code == 404

    def test_sign_out(self, client: TestClient, store: InMemoryProfileStore) -> None:
        store.save(make_profile())

        response = client.delete("/v1/profile")

        assert response.status_code == 204
        assert store.load() is None
        assert client.get("/v1/profile").status_code == 404

    def test_store_failure_returns_503(self, app: FastAPI) -> None:
        mock_service = MagicMock(spec=ProfileService)
        mock_service.load.side_effect = ProfileStoreError("corrupt")

        app.dependency_overrides[get_profile_service] = lambda: mock_service
        client = TestClient(app)

        try:
            response = client.get("/v1/profile")

            assert response.status_code == 503
        finally:
            app.dependency_overrides.clear()
