"""
Domain layer - Pure business logic with zero framework imports.

This package contains the dealer registration workflow: identifier
validators and checksums, the step state machine with registry
verification, and the profile lifecycle. It defines its own port
interfaces for infrastructure abstraction, ensuring true hexagonal
architecture decoupling.
"""

from .exceptions import (
    FieldNotEditable,
    InvalidProfilePatch,
    InvalidTransition,
    ProfileNotFound,
    ProfileStoreError,
    RegistrationError,
    RegistryUnavailable,
    UnknownField,
)
from .models import (
    AccountType,
    FieldError,
    FieldGroup,
    PersistedProfile,
    RegistrationRecord,
    VerificationStatus,
    WorkflowSnapshot,
    WorkflowStep,
)
from .ports import BusinessEntity, LicenseCheck, LicenseStatus, ProfileStore, VerificationClient
from .profile import ProfileService
from .registration import RegistrationWorkflow
from .validators import ErrorKind

__all__ = [
    "AccountType",
    "BusinessEntity",
    "ErrorKind",
    "FieldError",
    "FieldGroup",
    "FieldNotEditable",
    "InvalidProfilePatch",
    "InvalidTransition",
    "LicenseCheck",
    "LicenseStatus",
    "PersistedProfile",
    "ProfileNotFound",
    "ProfileService",
    "ProfileStore",
    "ProfileStoreError",
    "RegistrationError",
    "RegistrationRecord",
    "RegistrationWorkflow",
    "RegistryUnavailable",
    "UnknownField",
    "VerificationClient",
    "VerificationStatus",
    "WorkflowSnapshot",
    "WorkflowStep",
]
