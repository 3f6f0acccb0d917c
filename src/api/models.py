"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
Raw passwords, CVVs, full card numbers and password hashes never appear
in responses.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from src.domain.models import (
    AccountType,
    PersistedProfile,
    VerificationStatus,
    WorkflowSnapshot,
    WorkflowStep,
)
from src.domain.validators import (
    CardNetwork,
    ErrorKind,
    PasswordStrength,
    detect_card_network,
    mask_card_number,
    password_strength,
    validate_card_number,
)


class StartRegistrationRequest(BaseModel):
    """Request model for starting a registration session."""

    account_type: AccountType = AccountType.DEALER


class UpdateFieldRequest(BaseModel):
    """Request model for editing one field."""

    step: WorkflowStep
    field: str = Field(..., min_length=1, description="Field name on the given step")
    value: str | bool = Field(..., description="Raw user input (bool for save_card)")


class VerifyRequest(BaseModel):
    """Request model for registry verification of a step."""

    step: WorkflowStep


class FieldErrorModel(BaseModel):
    kind: ErrorKind
    message: str


class RecordModel(BaseModel):
    """Registration draft as shown to the client (card number masked)."""

    full_name: str
    email: str
    phone: str
    business_number: str
    legal_name: str
    trading_name: str
    business_address: str
    business_jurisdiction: str
    business_postcode: str
    license_number: str
    license_jurisdiction: str
    license_type: str
    license_holder: str
    license_expiry: str
    card_number: str
    cardholder_name: str
    expiry: str
    billing_postcode: str
    save_card: bool

    @field_validator("card_number")
    @classmethod
    def mask_card(cls, value: str) -> str:
        """Only the last four digits of the card leave the server."""
        return mask_card_number(validate_card_number(value).normalized)


class ProfileModel(BaseModel):
    """Persisted profile without credential material."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    account_type: AccountType
    created_at: datetime
    updated_at: datetime
    full_name: str
    email: str
    phone: str
    business_number: str
    legal_name: str
    trading_name: str
    business_address: str
    business_jurisdiction: str
    business_postcode: str
    license_number: str
    license_jurisdiction: str
    license_type: str
    license_holder: str
    license_expiry: str
    card_reference: str
    card_network: str
    cardholder_name: str
    card_expiry: str
    billing_postcode: str
    save_card: bool
    business_verified: bool
    license_verified: bool
    email_verified: bool
    phone_verified: bool
    payment_method_added: bool

    @classmethod
    def from_profile(cls, profile: PersistedProfile) -> "ProfileModel":
        return cls.model_validate(profile)


class SnapshotResponse(BaseModel):
    """Response model for every workflow operation."""

    session_id: str
    current_step: WorkflowStep
    submitted: bool
    rejection: ErrorKind | None = None
    record: RecordModel
    errors: dict[str, FieldErrorModel]
    verification: dict[str, VerificationStatus]
    password_strength: PasswordStrength | None = None
    card_network: CardNetwork = CardNetwork.UNKNOWN
    profile: ProfileModel | None = None

    @classmethod
    def from_snapshot(cls, session_id: str, snapshot: WorkflowSnapshot) -> "SnapshotResponse":
        record = snapshot.record
        return cls(
            session_id=session_id,
            current_step=snapshot.current_step,
            submitted=snapshot.submitted,
            rejection=snapshot.rejection,
            record=RecordModel.model_validate(record, from_attributes=True),
            errors={
                name: FieldErrorModel(kind=error.kind, message=error.message)
                for name, error in snapshot.errors.items()
            },
            verification={group.value: status for group, status in snapshot.verification.items()},
            password_strength=password_strength(record.password) if record.password else None,
            card_network=detect_card_network(validate_card_number(record.card_number).normalized),
            profile=ProfileModel.from_profile(snapshot.profile) if snapshot.profile else None,
        )


class ProfilePatchRequest(BaseModel):
    """Merge-patch for the persisted profile; only sent fields change."""

    model_config = ConfigDict(extra="forbid")

    full_name: str | None = Field(None, min_length=1)
    email: EmailStr | None = None
    phone: str | None = None
    trading_name: str | None = None
    business_address: str | None = None
    cardholder_name: str | None = Field(None, min_length=1)
    save_card: bool | None = None


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
