"""Recovery flow state and data contract types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TypedDict


@dataclass(frozen=True)
class Idle:
    """Initial state, also reached through ``clear_state``."""


@dataclass(frozen=True)
class Loading:
    """An operation is in flight."""


@dataclass(frozen=True)
class OtpSent:
    """The one-time code was dispatched to the session email."""


@dataclass(frozen=True)
class OtpVerified:
    """The submitted code was accepted."""


@dataclass(frozen=True)
class PasswordResetSuccess:
    """The password was changed."""


@dataclass(frozen=True)
class Error:
    """Failure carrying a user-displayable message."""

    message: str


UiState = Idle | Loading | OtpSent | OtpVerified | PasswordResetSuccess | Error


class ErrorKind(Enum):
    """Classified collaborator failure."""

    NETWORK_UNREACHABLE = "network_unreachable"
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    SERVER_ERROR = "server_error"
    UNKNOWN = "unknown"


class ForgotPasswordPayload(TypedDict):
    """Body of the send-code request."""

    email: str


class VerifyOtpPayload(TypedDict):
    """Body of the verify-code request."""

    email: str
    otp: str


class ResetPasswordPayload(TypedDict):
    """Body of the reset-password request."""

    email: str
    otp: str
    new_password: str
    confirm_password: str
