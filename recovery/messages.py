"""Error classification and localized user-facing messages."""

from __future__ import annotations

from typing import Literal

from recovery.exceptions import RecoveryServiceUnreachableError
from recovery.types import ErrorKind

Locale = Literal["en", "vi"]

DEFAULT_LOCALE: Locale = "en"

INVALID_CODE = "invalid_code"
SESSION_EMAIL_MISSING = "session_email_missing"

MESSAGES: dict[str, dict[str, str]] = {
    "en": {
        ErrorKind.NOT_FOUND.value: "This email is not registered.",
        ErrorKind.UNAUTHORIZED.value: "The verification code is incorrect or has expired.",
        ErrorKind.SERVER_ERROR.value: "The system is under maintenance, please try again later.",
        ErrorKind.NETWORK_UNREACHABLE.value: "No internet connection.",
        ErrorKind.UNKNOWN.value: "Something went wrong. Please try again.",
        INVALID_CODE: "The OTP code is incorrect. Please check it again.",
        SESSION_EMAIL_MISSING: "Email not found. Please go back to the previous step.",
    },
    "vi": {
        ErrorKind.NOT_FOUND.value: "Email này chưa được đăng ký trong hệ thống.",
        ErrorKind.UNAUTHORIZED.value: "Mã xác thực không chính xác hoặc đã hết hạn.",
        ErrorKind.SERVER_ERROR.value: "Hệ thống đang bảo trì, vui lòng thử lại sau.",
        ErrorKind.NETWORK_UNREACHABLE.value: "Không có kết nối internet.",
        ErrorKind.UNKNOWN.value: "Đã có lỗi xảy ra. Vui lòng thử lại.",
        INVALID_CODE: "Mã OTP không đúng. Vui lòng kiểm tra lại.",
        SESSION_EMAIL_MISSING: "Không tìm thấy email. Vui lòng quay lại bước trước.",
    },
}

# Checked in order; the first substring found wins.
_SUBSTRING_KINDS: tuple[tuple[str, ErrorKind], ...] = (
    ("404", ErrorKind.NOT_FOUND),
    ("401", ErrorKind.UNAUTHORIZED),
    ("500", ErrorKind.SERVER_ERROR),
    ("Unable to resolve host", ErrorKind.NETWORK_UNREACHABLE),
)

_STATUS_KINDS: dict[int, ErrorKind] = {
    404: ErrorKind.NOT_FOUND,
    401: ErrorKind.UNAUTHORIZED,
    500: ErrorKind.SERVER_ERROR,
}


def classify_text(text: str) -> ErrorKind:
    """Classify a raw error message by substring."""
    for needle, kind in _SUBSTRING_KINDS:
        if needle in text:
            return kind
    return ErrorKind.UNKNOWN


def classify_error(exc: BaseException) -> ErrorKind:
    """Classify an exception, preferring structured fields over its message."""
    if isinstance(exc, RecoveryServiceUnreachableError):
        return ErrorKind.NETWORK_UNREACHABLE
    status_code = getattr(exc, "status_code", None)
    if isinstance(status_code, int) and status_code in _STATUS_KINDS:
        return _STATUS_KINDS[status_code]
    return classify_text(str(exc))


def lookup(key: str, locale: str = DEFAULT_LOCALE) -> str:
    """Return catalog text for key, falling back to the default locale."""
    catalog = MESSAGES.get(locale, MESSAGES[DEFAULT_LOCALE])
    return catalog.get(key, MESSAGES[DEFAULT_LOCALE][key])


def message_for_kind(kind: ErrorKind, locale: str = DEFAULT_LOCALE) -> str:
    """Return the user-facing message for a classified failure."""
    return lookup(kind.value, locale)


def message_for_text(text: str, locale: str = DEFAULT_LOCALE) -> str:
    """Map a raw error message to a user-facing message."""
    return message_for_kind(classify_text(text), locale)


def message_for(exc: BaseException, locale: str = DEFAULT_LOCALE) -> str:
    """Map an exception to a user-facing message."""
    return message_for_kind(classify_error(exc), locale)
