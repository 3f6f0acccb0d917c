"""
Registration workflow - Step state machine with registry verification.

This module contains the core business logic for dealer registration:
an ordered, resumable sequence of steps gated by field validation and
asynchronous registry lookups, ending in a persisted profile.

Registration State Machine
==========================

States:
- CONTACT -> BUSINESS -> LICENSE -> PAYMENT (ordered steps)
- SUBMITTED (terminal, profile persisted)

Transitions:
    advance()   Step[i] -> Step[i+1]  only if the gate of Step[i] holds
    retreat()   Step[i] -> Step[i-1]  always (i > 1), fields kept
    submit()    PAYMENT -> SUBMITTED  only if every gate holds

A rejected advance()/submit() is returned as data (snapshot.rejection
== GATE_BLOCKED) together with every offending field.

Verification (per field group: business, license)
=================================================

    UNVERIFIED -> PENDING -> VERIFIED | FAILED
    any -> UNVERIFIED when a trigger field is edited

- At most one lookup in flight per group; a second request while
  PENDING waits for the first one instead of issuing another call.
- Each trigger-field edit bumps the group's generation. A lookup only
  applies its result if the generation it started with is still current
  (last issued call wins); older results are discarded.
- Auto-filled fields are set as one group on success and cleared as one
  group when a verified trigger field is edited.
- A lookup exceeding the timeout resolves as FAILED(TIMEOUT).
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime

import bcrypt

from .exceptions import FieldNotEditable, InvalidTransition, RegistryUnavailable, UnknownField
from .models import (
    AccountType,
    FieldError,
    FieldGroup,
    PersistedProfile,
    RegistrationRecord,
    VerificationStatus,
    WorkflowSnapshot,
    WorkflowStep,
    utcnow,
)
from .ports import LicenseStatus, ProfileStore, VerificationClient
from .steps import (
    DEPENDENTS,
    GROUPS,
    STEPS,
    FieldRules,
    GroupDefinition,
    field_error,
    gate_errors,
    group_for_trigger,
    validate_field,
)
from .validators import (
    ErrorKind,
    detect_card_network,
    format_business_number,
    mask_card_number,
    validate_card_number,
    validate_email,
    validate_expiry,
    validate_jurisdiction,
    validate_license,
    validate_phone,
    validate_postcode,
)

logger = logging.getLogger(__name__)

DEFAULT_VERIFICATION_TIMEOUT = 10.0

_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True)
class _Outcome:
    """Resolution of one lookup: record changes on success, error on failure."""

    changes: dict[str, str] = field(default_factory=dict)
    error: FieldError | None = None


def _mask(value: str) -> str:
    """Mask an identifier for logging, keeping the last three characters."""
    return f"***{value[-3:]}" if len(value) > 3 else "***"


@dataclass
class RegistrationWorkflow:
    """
    Domain service driving one registration session.

    Inbound operations (update_field, request_verification, advance,
    retreat, submit) each return an immutable WorkflowSnapshot. The
    workflow runs on a single event loop; verification lookups are
    asyncio tasks so other operations stay available while one is in
    flight.
    """

    verification_client: VerificationClient
    profile_store: ProfileStore
    account_type: AccountType = AccountType.DEALER
    verification_timeout: float = DEFAULT_VERIFICATION_TIMEOUT
    rules: FieldRules = field(default_factory=FieldRules)
    bcrypt_cost: int = 10
    clock: Callable[[], datetime] = utcnow

    _record: RegistrationRecord = field(default_factory=RegistrationRecord, init=False, repr=False)
    _step: WorkflowStep = field(default=WorkflowStep.CONTACT, init=False)
    _errors: dict[str, FieldError] = field(default_factory=dict, init=False, repr=False)
    _verification: dict[FieldGroup, VerificationStatus] = field(init=False, repr=False)
    _verification_errors: dict[FieldGroup, FieldError] = field(
        default_factory=dict, init=False, repr=False
    )
    _generations: dict[FieldGroup, int] = field(init=False, repr=False)
    _in_flight: dict[FieldGroup, asyncio.Task] = field(default_factory=dict, init=False, repr=False)
    _submitting: bool = field(default=False, init=False, repr=False)
    _profile: PersistedProfile | None = field(default=None, init=False, repr=False)

    def __post_init__(self) -> None:
        self._verification = {group: VerificationStatus.UNVERIFIED for group in FieldGroup}
        self._generations = {group: 0 for group in FieldGroup}

    @property
    def current_step(self) -> WorkflowStep:
        return self._step

    @property
    def record(self) -> RegistrationRecord:
        return self._record

    def snapshot(self, rejection: ErrorKind | None = None) -> WorkflowSnapshot:
        """Immutable view of the current state."""
        return WorkflowSnapshot(
            record=self._record,
            errors=self._errors,
            verification=self._verification,
            current_step=self._step,
            submitted=self._profile is not None,
            rejection=rejection,
            profile=self._profile,
        )

    def update_field(
        self, step: WorkflowStep | int, field_name: str, raw_value: str | bool
    ) -> WorkflowSnapshot:
        """
        Set one field from raw user input.

        Editing a trigger field (business number, license number or
        license jurisdiction) with a new value invalidates that group's
        verification: status goes back to UNVERIFIED, any in-flight
        result is discarded, and previously auto-filled fields are
        cleared in the same record replacement.

        Args:
            step: Step the field belongs to
            field_name: Field name from the step's field table
            raw_value: Raw input (bool accepted for save_card)

        Returns:
            Snapshot after the edit

        Raises:
            UnknownField: Field is not on the step
            FieldNotEditable: Field is auto-filled by verification
            InvalidTransition: Registration already submitted
        """
        self._ensure_open()
        definition = STEPS[self._coerce_step(step, UnknownField)]
        if field_name not in definition.fields:
            raise UnknownField(f"{field_name!r} is not a field of step {definition.step.name}")
        if field_name not in definition.editable:
            raise FieldNotEditable(field_name)

        value = self._coerce_value(field_name, raw_value)
        previous = getattr(self._record, field_name)
        changes: dict[str, object] = {field_name: value}

        group = group_for_trigger(field_name)
        if group is not None and value != previous:
            self._invalidate(group, changes)

        self._record = replace(self._record, **changes)
        self._revalidate(field_name)
        return self.snapshot()

    async def request_verification(self, step: WorkflowStep | int) -> WorkflowSnapshot:
        """
        Verify the step's field group against the registry.

        Sets the group PENDING, awaits the lookup (bounded by
        verification_timeout) and returns the snapshot after resolution.
        The lookup runs as its own task: cancelling the caller does not
        cancel the lookup. If a lookup for the group is already pending,
        this call waits for it instead of starting another.

        A key field that fails format validation resolves FAILED with the
        validator's error without calling the registry.

        Raises:
            InvalidTransition: Step has no verifiable group, or already submitted
        """
        self._ensure_open()
        definition = STEPS[self._coerce_step(step, InvalidTransition)]
        if definition.group is None:
            raise InvalidTransition(f"Step {definition.step.name} has nothing to verify")
        group = GROUPS[definition.group]

        in_flight = self._in_flight.get(group.group)
        if (
            in_flight is not None
            and not in_flight.done()
            and self._verification[group.group] == VerificationStatus.PENDING
        ):
            logger.info("Joining in-flight %s verification", group.group.value)
            await asyncio.shield(in_flight)
            return self.snapshot()

        generation = self._generations[group.group]
        precheck = self._precheck(group)
        if precheck is not None:
            self._resolve(group, generation, _Outcome(error=precheck))
            return self.snapshot()

        self._verification[group.group] = VerificationStatus.PENDING
        self._verification_errors.pop(group.group, None)
        self._errors.pop(group.key_field, None)

        task = asyncio.create_task(self._verify(group, generation, self._record))
        self._in_flight[group.group] = task
        await asyncio.shield(task)
        return self.snapshot()

    def advance(self) -> WorkflowSnapshot:
        """
        Move to the next step if the current step's gate holds.

        Returns:
            Snapshot on the next step, or on the same step with
            rejection=GATE_BLOCKED and the offending fields in errors

        Raises:
            InvalidTransition: On the final step (use submit), or submitted
        """
        self._ensure_open()
        if self._step == WorkflowStep.last():
            raise InvalidTransition("Final step is left through submit()")

        blocking = self._gate(self._step)
        if blocking:
            self._errors.update(blocking)
            logger.info("Advance from %s blocked by %s", self._step.name, sorted(blocking))
            return self.snapshot(rejection=ErrorKind.GATE_BLOCKED)

        self._step = WorkflowStep(self._step + 1)
        logger.info("Advanced to step %s", self._step.name)
        return self.snapshot()

    def retreat(self) -> WorkflowSnapshot:
        """
        Move back one step. Field values and in-flight lookups are kept.

        Raises:
            InvalidTransition: Already on the first step, or submitted
        """
        self._ensure_open()
        if self._step == WorkflowStep.first():
            raise InvalidTransition("Already on the first step")

        self._step = WorkflowStep(self._step - 1)
        logger.info("Retreated to step %s", self._step.name)
        return self.snapshot()

    async def submit(self) -> WorkflowSnapshot:
        """
        Validate the whole record, persist the profile and finish.

        On validation failure the record and step are unchanged and the
        snapshot lists every offending field across all steps. Storage
        errors propagate and leave the workflow on the final step.

        Raises:
            InvalidTransition: Not on the final step, already submitted,
                or a submission is already in progress
        """
        self._ensure_open()
        if self._step != WorkflowStep.last():
            raise InvalidTransition("Submit is only allowed from the final step")
        if self._submitting:
            raise InvalidTransition("Submission already in progress")

        blocking = self._gate(self._step)
        if blocking:
            self._errors.update(blocking)
            logger.info("Submit blocked by %s", sorted(blocking))
            return self.snapshot(rejection=ErrorKind.GATE_BLOCKED)

        self._submitting = True
        try:
            record = self._record
            profile = await asyncio.to_thread(self._build_profile, record)
            await asyncio.to_thread(self.profile_store.save, profile)
        finally:
            self._submitting = False

        self._profile = profile
        self._errors.clear()
        logger.info("Registration submitted: profile %s", profile.id)
        return self.snapshot()

    # Internals

    def _ensure_open(self) -> None:
        if self._profile is not None:
            raise InvalidTransition("Registration already submitted")

    @staticmethod
    def _coerce_step(step: WorkflowStep | int, error: type[Exception]) -> WorkflowStep:
        try:
            return WorkflowStep(step)
        except ValueError:
            raise error(f"Unknown step: {step!r}") from None

    @staticmethod
    def _coerce_value(field_name: str, raw_value: object) -> str | bool:
        if field_name == "save_card":
            if isinstance(raw_value, bool):
                return raw_value
            return isinstance(raw_value, str) and raw_value.strip().lower() in _TRUE_STRINGS
        return raw_value if isinstance(raw_value, str) else ""

    def _invalidate(self, group: GroupDefinition, changes: dict[str, object]) -> None:
        """
        Reset a group after a trigger edit; clears auto-fill into `changes`.

        Auto-filled values belong to the number they were looked up for,
        so they go whenever present, including while a re-verification of
        that number is pending or after it failed.
        """
        self._generations[group.group] += 1
        status = self._verification[group.group]

        if any(getattr(self._record, name) for name in group.autofill_fields):
            changes.update({name: "" for name in group.autofill_fields})
        if status != VerificationStatus.UNVERIFIED:
            logger.info(
                "%s verification reset after edit (was %s)", group.group.value, status.value
            )

        self._verification[group.group] = VerificationStatus.UNVERIFIED
        self._verification_errors.pop(group.group, None)
        self._errors.pop(group.key_field, None)

    def _revalidate(self, field_name: str) -> None:
        """Refresh errors for an edited field and the fields that depend on it."""
        names = [field_name]
        for dependent in DEPENDENTS.get(field_name, ()):
            if getattr(self._record, dependent) or dependent in self._errors:
                names.append(dependent)

        for name in names:
            required = any(name in definition.required for definition in STEPS.values())
            error = field_error(name, self._record, self.rules, required=required)
            if error is None:
                self._errors.pop(name, None)
            else:
                self._errors[name] = error

    def _gate(self, step: WorkflowStep) -> dict[str, FieldError]:
        return gate_errors(
            step, self._record, self._verification, self._verification_errors, self.rules
        )

    def _precheck(self, group: GroupDefinition) -> FieldError | None:
        """Format errors that make a lookup pointless."""
        checks = [group.key_field]
        if group.group == FieldGroup.LICENSE:
            checks.insert(0, "license_jurisdiction")
        for name in checks:
            value = validate_field(name, self._record, self.rules)
            if value is not None and not value.valid:
                return FieldError(kind=value.error, message=value.message or value.error.value)
        return None

    async def _verify(
        self, group: GroupDefinition, generation: int, record: RegistrationRecord
    ) -> None:
        logger.info("%s verification started (generation %d)", group.group.value, generation)
        try:
            outcome = await asyncio.wait_for(
                self._lookup(group, record), timeout=self.verification_timeout
            )
        except TimeoutError:
            logger.warning(
                "%s verification timed out after %.1fs",
                group.group.value,
                self.verification_timeout,
            )
            outcome = _Outcome(error=FieldError(ErrorKind.TIMEOUT, "Verification timed out"))
        except RegistryUnavailable as e:
            logger.error("%s registry unavailable: %s", group.group.value, e)
            outcome = _Outcome(
                error=FieldError(ErrorKind.UNAVAILABLE, "Registry is unavailable, try again")
            )
        except (Exception, asyncio.CancelledError):
            self._resolve(
                group,
                generation,
                _Outcome(error=FieldError(ErrorKind.UNAVAILABLE, "Verification did not complete")),
            )
            raise

        self._resolve(group, generation, outcome)

    async def _lookup(self, group: GroupDefinition, record: RegistrationRecord) -> _Outcome:
        if group.group == FieldGroup.BUSINESS:
            number = validate_field("business_number", record, self.rules).normalized
            entity = await self.verification_client.lookup_business(number)
            if entity is None:
                return _Outcome(
                    error=FieldError(ErrorKind.NOT_FOUND, "No business found for this number")
                )
            return _Outcome(
                changes={
                    "legal_name": entity.legal_name,
                    "trading_name": entity.trading_name,
                    "business_address": entity.address,
                    "business_jurisdiction": entity.jurisdiction,
                    "business_postcode": entity.postcode,
                }
            )

        jurisdiction = validate_jurisdiction(record.license_jurisdiction).normalized
        number = validate_license(record.license_number, jurisdiction).normalized
        check = await self.verification_client.lookup_license(number, jurisdiction)
        if check.valid and check.status == LicenseStatus.ACTIVE:
            return _Outcome(
                changes={
                    "license_type": check.license_type,
                    "license_holder": check.holder,
                    "license_expiry": check.expiry,
                }
            )
        if check.status == LicenseStatus.EXPIRED:
            return _Outcome(error=FieldError(ErrorKind.EXPIRED, "License has expired"))
        if check.status == LicenseStatus.SUSPENDED:
            return _Outcome(error=FieldError(ErrorKind.NOT_FOUND, "License is suspended"))
        return _Outcome(error=FieldError(ErrorKind.NOT_FOUND, "License not found"))

    def _resolve(self, group: GroupDefinition, generation: int, outcome: _Outcome) -> None:
        """Apply a lookup outcome unless a newer edit made it stale."""
        current = self._generations[group.group]
        if generation != current or self._profile is not None:
            logger.warning(
                "Discarding stale %s verification result (generation %d, current %d)",
                group.group.value,
                generation,
                current,
            )
            return

        if outcome.error is None:
            self._record = replace(self._record, **outcome.changes)
            self._verification[group.group] = VerificationStatus.VERIFIED
            self._verification_errors.pop(group.group, None)
            self._errors.pop(group.key_field, None)
            logger.info(
                "%s verified for %s",
                group.group.value,
                _mask(getattr(self._record, group.key_field)),
            )
        else:
            self._verification[group.group] = VerificationStatus.FAILED
            self._verification_errors[group.group] = outcome.error
            self._errors[group.key_field] = outcome.error
            logger.info("%s verification failed: %s", group.group.value, outcome.error.kind.value)

    def _build_profile(self, record: RegistrationRecord) -> PersistedProfile:
        now = self.clock()
        card_digits = validate_card_number(record.card_number).normalized
        business_digits = validate_field("business_number", record, self.rules).normalized
        business_verified = self._verification[FieldGroup.BUSINESS] == VerificationStatus.VERIFIED
        jurisdiction = validate_jurisdiction(record.license_jurisdiction).normalized

        return PersistedProfile(
            id=uuid.uuid4().hex,
            account_type=self.account_type,
            created_at=now,
            updated_at=now,
            full_name=record.full_name.strip(),
            email=validate_email(record.email).normalized,
            phone=validate_phone(record.phone, self.rules.mobile_prefix).display or "",
            password_hash=self._hash_password(record.password),
            business_number=format_business_number(business_digits),
            legal_name=record.legal_name,
            trading_name=record.trading_name,
            business_address=record.business_address,
            business_jurisdiction=record.business_jurisdiction,
            business_postcode=record.business_postcode,
            license_number=validate_license(record.license_number, jurisdiction).normalized,
            license_jurisdiction=jurisdiction,
            license_type=record.license_type,
            license_holder=record.license_holder,
            license_expiry=record.license_expiry,
            card_reference=mask_card_number(card_digits),
            card_network=detect_card_network(card_digits).value,
            cardholder_name=record.cardholder_name.strip(),
            card_expiry=validate_expiry(record.expiry, self.rules.today).display or "",
            billing_postcode=validate_postcode(record.billing_postcode).normalized,
            save_card=record.save_card,
            business_verified=business_verified,
            license_verified=self._verification[FieldGroup.LICENSE] == VerificationStatus.VERIFIED,
            payment_method_added=True,
        )

    def _hash_password(self, password: str) -> str:
        """
        Hash password using bcrypt with the configured cost factor.

        Cost defaults to 10; tests lower it to keep suites fast.
        """
        return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=self.bcrypt_cost)).decode()
