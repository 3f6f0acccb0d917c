"""
Workflow step definitions - Field tables and gate predicates.

Each WorkflowStep owns an explicit list of fields. Inbound edits are
checked against this table at the boundary, so the rest of the domain
never deals with arbitrary string-keyed updates.

Gate predicates decide whether the user may leave a step:

    CONTACT   name, email, phone and password present and valid
    BUSINESS  business number optional, but if entered it must be verified
    LICENSE   license number and jurisdiction valid, no failed/pending lookup
    PAYMENT   every earlier gate plus all payment fields valid
"""

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import date

from .models import (
    FieldError,
    FieldGroup,
    RegistrationRecord,
    VerificationStatus,
    WorkflowStep,
)
from .validators import (
    DEFAULT_MOBILE_PREFIX,
    ErrorKind,
    IdentifierValue,
    detect_card_network,
    validate_business_number,
    validate_card_number,
    validate_cvv,
    validate_email,
    validate_expiry,
    validate_jurisdiction,
    validate_license,
    validate_password,
    validate_phone,
    validate_postcode,
    validate_text,
)


@dataclass(frozen=True)
class FieldRules:
    """Context shared by field validators (not UI state)."""

    mobile_prefix: str = DEFAULT_MOBILE_PREFIX
    today: date | None = None


FieldValidator = Callable[[RegistrationRecord, FieldRules], IdentifierValue]


def _cvv(record: RegistrationRecord, rules: FieldRules) -> IdentifierValue:
    network = detect_card_network(validate_card_number(record.card_number).normalized)
    return validate_cvv(record.cvv, network)


VALIDATORS: dict[str, FieldValidator] = {
    "full_name": lambda r, _: validate_text(r.full_name, "Full name"),
    "email": lambda r, _: validate_email(r.email),
    "phone": lambda r, rules: validate_phone(r.phone, rules.mobile_prefix),
    "password": lambda r, _: validate_password(r.password),
    "business_number": lambda r, _: validate_business_number(r.business_number),
    "license_number": lambda r, _: validate_license(r.license_number, r.license_jurisdiction),
    "license_jurisdiction": lambda r, _: validate_jurisdiction(r.license_jurisdiction),
    "card_number": lambda r, _: validate_card_number(r.card_number),
    "cardholder_name": lambda r, _: validate_text(r.cardholder_name, "Cardholder name"),
    "expiry": lambda r, rules: validate_expiry(r.expiry, rules.today),
    "cvv": _cvv,
    "billing_postcode": lambda r, _: validate_postcode(r.billing_postcode),
}

# Editing the key re-validates the dependents (their rules read the key).
DEPENDENTS: dict[str, tuple[str, ...]] = {
    "card_number": ("cvv",),
    "license_jurisdiction": ("license_number",),
}


@dataclass(frozen=True)
class GroupDefinition:
    """Fields verified together and the auto-filled fields a lookup writes."""

    group: FieldGroup
    step: WorkflowStep
    key_field: str
    trigger_fields: tuple[str, ...]
    autofill_fields: tuple[str, ...]


GROUPS: dict[FieldGroup, GroupDefinition] = {
    FieldGroup.BUSINESS: GroupDefinition(
        group=FieldGroup.BUSINESS,
        step=WorkflowStep.BUSINESS,
        key_field="business_number",
        trigger_fields=("business_number",),
        autofill_fields=(
            "legal_name",
            "trading_name",
            "business_address",
            "business_jurisdiction",
            "business_postcode",
        ),
    ),
    FieldGroup.LICENSE: GroupDefinition(
        group=FieldGroup.LICENSE,
        step=WorkflowStep.LICENSE,
        key_field="license_number",
        trigger_fields=("license_number", "license_jurisdiction"),
        autofill_fields=("license_type", "license_holder", "license_expiry"),
    ),
}


@dataclass(frozen=True)
class StepDefinition:
    """
    Static description of one workflow step.

    Attributes:
        step: Position in the workflow
        fields: Every field shown on the step (editable or auto-filled)
        required: Fields that must be present and valid to leave the step
        group: Field group verified on this step, if any
    """

    step: WorkflowStep
    fields: tuple[str, ...]
    required: tuple[str, ...]
    group: FieldGroup | None = None

    @property
    def editable(self) -> tuple[str, ...]:
        autofill = GROUPS[self.group].autofill_fields if self.group else ()
        return tuple(name for name in self.fields if name not in autofill)


STEPS: dict[WorkflowStep, StepDefinition] = {
    WorkflowStep.CONTACT: StepDefinition(
        step=WorkflowStep.CONTACT,
        fields=("full_name", "email", "phone", "password"),
        required=("full_name", "email", "phone", "password"),
    ),
    WorkflowStep.BUSINESS: StepDefinition(
        step=WorkflowStep.BUSINESS,
        fields=("business_number",) + GROUPS[FieldGroup.BUSINESS].autofill_fields,
        required=(),
        group=FieldGroup.BUSINESS,
    ),
    WorkflowStep.LICENSE: StepDefinition(
        step=WorkflowStep.LICENSE,
        fields=("license_number", "license_jurisdiction")
        + GROUPS[FieldGroup.LICENSE].autofill_fields,
        required=("license_number", "license_jurisdiction"),
        group=FieldGroup.LICENSE,
    ),
    WorkflowStep.PAYMENT: StepDefinition(
        step=WorkflowStep.PAYMENT,
        fields=("card_number", "cardholder_name", "expiry", "cvv", "billing_postcode", "save_card"),
        required=("card_number", "cardholder_name", "expiry", "cvv", "billing_postcode"),
    ),
}


def group_for_trigger(field: str) -> GroupDefinition | None:
    """Return the group whose verification an edit to `field` invalidates."""
    for definition in GROUPS.values():
        if field in definition.trigger_fields:
            return definition
    return None


def validate_field(
    field: str, record: RegistrationRecord, rules: FieldRules
) -> IdentifierValue | None:
    """Validate one field of the record; None for fields without rules."""
    validator = VALIDATORS.get(field)
    if validator is None:
        return None
    return validator(record, rules)


def field_error(
    field: str, record: RegistrationRecord, rules: FieldRules, required: bool
) -> FieldError | None:
    """
    Error to show for a field, or None.

    An empty optional field is never in error.
    """
    value = validate_field(field, record, rules)
    if value is None or value.valid:
        return None
    if value.error == ErrorKind.REQUIRED and not required:
        return None
    return FieldError(kind=value.error, message=value.message or value.error.value)


def _verification_gate(
    definition: GroupDefinition,
    record: RegistrationRecord,
    verification: Mapping[FieldGroup, VerificationStatus],
    verification_errors: Mapping[FieldGroup, FieldError],
    require_verified: bool,
) -> FieldError | None:
    status = verification.get(definition.group, VerificationStatus.UNVERIFIED)
    if status == VerificationStatus.PENDING:
        return FieldError(ErrorKind.GATE_BLOCKED, "Verification in progress")
    if status == VerificationStatus.FAILED:
        return verification_errors.get(definition.group) or FieldError(
            ErrorKind.GATE_BLOCKED, "Verification failed"
        )
    if require_verified and status != VerificationStatus.VERIFIED:
        return FieldError(ErrorKind.GATE_BLOCKED, "Verify to continue")
    return None


def step_errors(
    step: WorkflowStep,
    record: RegistrationRecord,
    verification: Mapping[FieldGroup, VerificationStatus],
    verification_errors: Mapping[FieldGroup, FieldError],
    rules: FieldRules,
) -> dict[str, FieldError]:
    """
    Evaluate the gate predicate of a single step.

    Returns:
        Offending field -> error; an empty dict means the gate is open
    """
    definition = STEPS[step]
    errors: dict[str, FieldError] = {}

    for name in definition.editable:
        error = field_error(name, record, rules, required=name in definition.required)
        if error is not None:
            errors[name] = error

    if definition.group is not None:
        group = GROUPS[definition.group]
        key_present = bool(getattr(record, group.key_field).strip())
        if group.key_field not in errors and (key_present or group.key_field in definition.required):
            # The business number is optional, but gating once entered.
            gate_error = _verification_gate(
                group,
                record,
                verification,
                verification_errors,
                require_verified=group.group == FieldGroup.BUSINESS,
            )
            if gate_error is not None:
                errors[group.key_field] = gate_error

    return errors


def gate_errors(
    step: WorkflowStep,
    record: RegistrationRecord,
    verification: Mapping[FieldGroup, VerificationStatus],
    verification_errors: Mapping[FieldGroup, FieldError],
    rules: FieldRules,
) -> dict[str, FieldError]:
    """
    Errors blocking departure from `step`.

    The final step's gate covers every step, so submission reports all
    offending fields of the whole record at once.
    """
    if step != WorkflowStep.last():
        return step_errors(step, record, verification, verification_errors, rules)

    errors: dict[str, FieldError] = {}
    for each in WorkflowStep:
        errors.update(step_errors(each, record, verification, verification_errors, rules))
    return errors
