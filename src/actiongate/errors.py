"""Typed failures raised inside the action pipeline.

Every failure carries the HTTP status the gateway answers with, so the
pipeline can map exceptions to responses in one place.
"""

from __future__ import annotations

from typing import Any


class GatewayError(RuntimeError):
    """Base class for pipeline failures."""

    status_code = 500
    public_message: str | None = None

    def __init__(self, message: str, *, details: list[Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def caller_message(self) -> str:
        """Message safe to return to the caller."""
        return self.public_message or self.message


class BadRequestError(GatewayError):
    """Body missing or not parseable as JSON."""

    status_code = 400


class AuthenticationError(GatewayError):
    """Missing or invalid signature or gateway key."""

    status_code = 401


class ValidationFailure(GatewayError):
    """Envelope or params failed schema validation."""

    status_code = 422


class UnknownActionError(GatewayError):
    """Action name is not registered."""

    status_code = 422

    def __init__(self, action: str) -> None:
        super().__init__(f"Unknown action: {action}")
        self.action = action


class ActionValidationError(GatewayError):
    """Params are well-formed but violate a business rule of the action."""

    status_code = 422


class DownstreamError(GatewayError):
    """An outbound call failed or the downstream system rejected it."""

    status_code = 500
    public_message = "Downstream request failed"


class ConfigurationError(GatewayError):
    """A required secret or credential is missing from the environment."""

    status_code = 500
    public_message = "Gateway is not configured for this request"


class InternalError(GatewayError):
    """Anything an executor raised that is not a GatewayError."""

    status_code = 500
    public_message = "Internal server error"
