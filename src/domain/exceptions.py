"""
Domain exceptions - Semantic error types for registration.

This module defines domain-specific exceptions that communicate
workflow misuse and collaborator failures without leaking
infrastructure details.

Field validation problems are never raised: validators return them
as data (see validators.ErrorKind).
"""


class RegistrationError(Exception):
    """Base class for registration domain errors."""

    pass


class UnknownField(RegistrationError):
    """Field does not exist on the given workflow step."""

    pass


class FieldNotEditable(RegistrationError):
    """Field is auto-filled by verification and cannot be edited directly."""

    pass


class InvalidTransition(RegistrationError):
    """Operation is not allowed from the current workflow state."""

    pass


class ProfileNotFound(RegistrationError):
    """No persisted profile exists (signed out or never registered)."""

    pass


class InvalidProfilePatch(RegistrationError):
    """Profile update touches unknown or protected fields."""

    pass


class RegistryUnavailable(RegistrationError):
    """External registry could not be reached or returned garbage."""

    pass


class ProfileStoreError(RegistrationError):
    """Profile storage failed to read or write a record."""

    pass
