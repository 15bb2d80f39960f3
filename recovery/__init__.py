"""Public recovery SDK exports."""

from recovery.client import RecoveryClient
from recovery.controller import PasswordRecoveryController, RecoveryGateway, create_controller
from recovery.exceptions import (
    RecoveryError,
    RecoveryServiceResponseError,
    RecoveryServiceUnavailableError,
    RecoveryServiceUnreachableError,
)
from recovery.storage import InMemoryPreferences, PreferenceStore, RedisPreferences
from recovery.types import (
    Error,
    ErrorKind,
    Idle,
    Loading,
    OtpSent,
    OtpVerified,
    PasswordResetSuccess,
    UiState,
)

__all__ = [
    "Error",
    "ErrorKind",
    "Idle",
    "InMemoryPreferences",
    "Loading",
    "OtpSent",
    "OtpVerified",
    "PasswordRecoveryController",
    "PasswordResetSuccess",
    "PreferenceStore",
    "RecoveryClient",
    "RecoveryError",
    "RecoveryGateway",
    "RecoveryServiceResponseError",
    "RecoveryServiceUnavailableError",
    "RecoveryServiceUnreachableError",
    "RedisPreferences",
    "UiState",
    "create_controller",
]
