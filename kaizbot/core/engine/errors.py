# kaizbot/core/engine/errors.py
"""
Typed errors for the dispatch core.

- ``ValidationError`` and ``CapabilityError`` are recovered inside the
  dispatch engine: the user gets a friendly message and the event completes.
- ``DeliveryError`` propagates to the webhook loop, which logs it and moves
  on to the next event.
- ``StateError`` subtypes come from the user store; the engine treats an
  invalid transition as a no-op, the registration endpoint maps them to
  HTTP statuses.
"""
from __future__ import annotations


class GatewayError(Exception):
    """Base class for all gateway errors."""


class ValidationError(GatewayError):
    """User-supplied argument is missing or malformed. No capability is called.

    ``reply`` holds the messages that explain the rejection to the user.
    """

    def __init__(self, feature: str, reason: str, reply: list | None = None):
        self.feature = feature
        self.reason = reason
        self.reply = reply or []
        super().__init__(f"{feature}: {reason}")


class CapabilityError(GatewayError):
    """External capability call failed or returned an unexpected shape."""

    def __init__(self, capability_id: str, cause: str, *, feature: str | None = None):
        self.capability_id = capability_id
        self.cause = cause
        self.feature = feature  # overrides the catalogue feature name in apologies
        super().__init__(f"Capability '{capability_id}' failed: {cause}")


class DeliveryError(GatewayError):
    """Outbound send failed.

    Attributes:
        status:     HTTP status code (0 for connection-level errors).
        error_code: Platform error code from the response body.
        retryable:  Whether a later retry could succeed.
    """

    def __init__(
        self,
        recipient_id: str,
        message: str,
        *,
        status: int = 0,
        error_code: int | None = None,
        retryable: bool = False,
    ):
        self.recipient_id = recipient_id
        self.status = status
        self.error_code = error_code
        self.retryable = retryable
        super().__init__(f"Delivery failed {status} (code={error_code}): {message}")


class StateError(GatewayError):
    """Invalid registration state transition."""

    status_code: int = 409


class UserNotFoundError(StateError):
    status_code = 404


class RegistrationNotFoundError(StateError):
    """Reference code is unknown or its registration was already completed."""

    status_code = 404


class TermsNotAcceptedError(StateError):
    status_code = 409


class ReferenceCodeExhaustedError(StateError):
    """No unique reference code could be generated."""

    status_code = 503
