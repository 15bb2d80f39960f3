"""Async HTTP client for the password-recovery endpoints."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from recovery.exceptions import (
    RecoveryServiceResponseError,
    RecoveryServiceUnavailableError,
    RecoveryServiceUnreachableError,
)
from recovery.types import ForgotPasswordPayload, ResetPasswordPayload, VerifyOtpPayload

DEFAULT_TIMEOUT = httpx.Timeout(connect=2.0, read=5.0, write=5.0, pool=5.0)

FORGOT_PASSWORD_PATH = "/auth/password/forgot"
VERIFY_OTP_PATH = "/auth/password/verify-otp"
RESET_PASSWORD_PATH = "/auth/password/reset"

logger = structlog.get_logger(__name__)


class RecoveryClient:
    """Async client for the forgot / verify / reset endpoints.

    The caller owns the session email and passes it to every call. The client
    only remembers which code the service accepted for which email, because
    the reset endpoint needs that code again.
    """

    def __init__(
        self,
        base_url: str,
        timeout: httpx.Timeout | float | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Create client with sane defaults and optional injected transport."""
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout or DEFAULT_TIMEOUT,
        )
        self._verified: tuple[str, str] | None = None

    async def send_otp(self, email: str) -> None:
        """Ask the service to email a one-time code."""
        self._verified = None
        payload: ForgotPasswordPayload = {"email": email}
        await self._request("POST", FORGOT_PASSWORD_PATH, json=payload)

    async def verify_otp(self, email: str, code: str) -> bool:
        """Check a one-time code sent to email; no email means no match."""
        if not email.strip():
            return False
        payload: VerifyOtpPayload = {"email": email, "otp": code}
        response = await self._request("POST", VERIFY_OTP_PATH, json=payload)
        is_valid = self._verification_result(response)
        if is_valid:
            self._verified = (email, code)
        return is_valid

    async def reset_password(self, email: str, new_password: str, confirm_password: str) -> None:
        """Submit the new password, with the code accepted for email if any."""
        otp = self._verified[1] if self._verified and self._verified[0] == email else ""
        payload: ResetPasswordPayload = {
            "email": email,
            "otp": otp,
            "new_password": new_password,
            "confirm_password": confirm_password,
        }
        await self._request("POST", RESET_PASSWORD_PATH, json=payload)

    async def aclose(self) -> None:
        """Close the HTTP client unless it was injected."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> RecoveryClient:
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        del exc_type, exc, tb
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Execute request and normalize upstream failures."""
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.ConnectError as exc:
            logger.warning("recovery_request_unreachable", path=path, error=str(exc))
            raise RecoveryServiceUnreachableError(f"Unable to resolve host for {path}.") from exc
        except httpx.RequestError as exc:
            logger.warning(
                "recovery_request_failed", path=path, error_type=type(exc).__name__
            )
            raise RecoveryServiceUnavailableError(
                f"Recovery service request to {path} failed: {type(exc).__name__}."
            ) from exc

        if response.status_code >= 400:
            logger.warning("recovery_request_rejected", path=path, status_code=response.status_code)
            raise RecoveryServiceResponseError(
                f"Recovery service request failed with status {response.status_code}.",
                response.status_code,
            )
        return response

    @staticmethod
    def _verification_result(response: httpx.Response) -> bool:
        """Read the ``valid`` flag of a verify-otp response."""
        try:
            body = response.json()
        except ValueError as exc:
            raise RecoveryServiceResponseError(
                "Recovery service returned invalid JSON.", response.status_code
            ) from exc
        is_valid = body.get("valid") if isinstance(body, dict) else None
        if not isinstance(is_valid, bool):
            raise RecoveryServiceResponseError(
                "Invalid verification response payload.", response.status_code
            )
        return is_valid
