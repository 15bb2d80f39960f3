"""Unit tests for the recovery REST client."""

from __future__ import annotations

import json

import httpx
import pytest

from recovery.client import RecoveryClient
from recovery.controller import PasswordRecoveryController
from recovery.exceptions import (
    RecoveryServiceResponseError,
    RecoveryServiceUnavailableError,
    RecoveryServiceUnreachableError,
)
from recovery.messages import classify_error
from recovery.storage import InMemoryPreferences
from recovery.types import Error, ErrorKind, OtpVerified


@pytest.mark.asyncio
async def test_send_verify_reset_carry_session_email_and_code() -> None:
    """Reset request reuses the email from send and the code accepted by verify."""
    requests: list[tuple[str, dict[str, str]]] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        requests.append((request.url.path, body))
        if request.url.path == "/auth/password/verify-otp":
            return httpx.Response(status_code=200, json={"valid": True})
        return httpx.Response(status_code=200, json={"ok": True})

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(base_url="https://api.local", transport=transport) as http_client:
        client = RecoveryClient(base_url="https://api.local", http_client=http_client)
        await client.send_otp("a@b.com")
        assert await client.verify_otp("a@b.com", "123456") is True
        await client.reset_password("a@b.com", "NewPass123!", "NewPass123!")

    assert requests == [
        ("/auth/password/forgot", {"email": "a@b.com"}),
        ("/auth/password/verify-otp", {"email": "a@b.com", "otp": "123456"}),
        (
            "/auth/password/reset",
            {
                "email": "a@b.com",
                "otp": "123456",
                "new_password": "NewPass123!",
                "confirm_password": "NewPass123!",
            },
        ),
    ]


@pytest.mark.asyncio
async def test_verify_otp_returns_false_for_rejected_code() -> None:
    """A valid=false payload is a normal negative answer, not an error."""

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/password/verify-otp":
            return httpx.Response(status_code=200, json={"valid": False})
        return httpx.Response(status_code=200, json={})

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(base_url="https://api.local", transport=transport) as http_client:
        client = RecoveryClient(base_url="https://api.local", http_client=http_client)
        await client.send_otp("a@b.com")
        assert await client.verify_otp("a@b.com", "000000") is False


@pytest.mark.asyncio
async def test_verify_otp_without_session_skips_network() -> None:
    """No code can match without an email."""
    calls = 0

    async def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(status_code=200, json={"valid": True})

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(base_url="https://api.local", transport=transport) as http_client:
        client = RecoveryClient(base_url="https://api.local", http_client=http_client)
        assert await client.verify_otp("", "123456") is False
        assert await client.verify_otp("   ", "123456") is False

    assert calls == 0


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [401, 404, 500, 503])
async def test_error_status_raises_response_error_with_status(status_code: int) -> None:
    """HTTP failures keep the status both as a field and in the message."""

    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code=status_code, json={"detail": "nope"})

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(base_url="https://api.local", transport=transport) as http_client:
        client = RecoveryClient(base_url="https://api.local", http_client=http_client)
        with pytest.raises(RecoveryServiceResponseError) as exc_info:
            await client.send_otp("a@b.com")

    assert exc_info.value.status_code == status_code
    assert str(status_code) in str(exc_info.value)


@pytest.mark.asyncio
async def test_connect_error_raises_unreachable_with_host_message() -> None:
    """Connection failures map to RecoveryServiceUnavailableError."""

    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("name resolution failed", request=request)

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(base_url="https://api.local", transport=transport) as http_client:
        client = RecoveryClient(base_url="https://api.local", http_client=http_client)
        with pytest.raises(RecoveryServiceUnreachableError) as exc_info:
            await client.send_otp("a@b.com")

    assert str(exc_info.value).startswith("Unable to resolve host")
    assert classify_error(exc_info.value) is ErrorKind.NETWORK_UNREACHABLE


@pytest.mark.asyncio
async def test_timeout_raises_unavailable_but_not_unreachable() -> None:
    """Timeouts are not a missing connection and classify as unknown."""

    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(base_url="https://api.local", transport=transport) as http_client:
        client = RecoveryClient(base_url="https://api.local", http_client=http_client)
        with pytest.raises(RecoveryServiceUnavailableError) as exc_info:
            await client.reset_password("a@b.com", "a", "a")

    assert not isinstance(exc_info.value, RecoveryServiceUnreachableError)
    assert classify_error(exc_info.value) is ErrorKind.UNKNOWN


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(status_code=200, json={"valid": "yes"}),
        httpx.Response(status_code=200, json=["valid"]),
        httpx.Response(status_code=200, content=b"not json"),
    ],
)
async def test_verify_otp_rejects_malformed_payload(response: httpx.Response) -> None:
    """Malformed verification payloads are rejected."""

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/password/verify-otp":
            return response
        return httpx.Response(status_code=200, json={})

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(base_url="https://api.local", transport=transport) as http_client:
        client = RecoveryClient(base_url="https://api.local", http_client=http_client)
        await client.send_otp("a@b.com")
        with pytest.raises(RecoveryServiceResponseError):
            await client.verify_otp("a@b.com", "123456")


async def test_aclose_leaves_injected_client_open() -> None:
    """Only a client created by RecoveryClient itself is closed."""
    transport = httpx.MockTransport(lambda request: httpx.Response(status_code=200))
    async with httpx.AsyncClient(base_url="https://api.local", transport=transport) as http_client:
        async with RecoveryClient(base_url="https://api.local", http_client=http_client):
            pass
        assert http_client.is_closed is False

    owned = RecoveryClient(base_url="https://api.local/")
    await owned.aclose()
    assert owned._client.is_closed is True


@pytest.mark.asyncio
async def test_reset_omits_code_accepted_for_another_email() -> None:
    """A code verified for one address is never sent with another."""
    resets: list[dict[str, str]] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/auth/password/verify-otp":
            return httpx.Response(status_code=200, json={"valid": True})
        if request.url.path == "/auth/password/reset":
            resets.append(json.loads(request.content))
        return httpx.Response(status_code=200, json={})

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(base_url="https://api.local", transport=transport) as http_client:
        client = RecoveryClient(base_url="https://api.local", http_client=http_client)
        await client.verify_otp("a@b.com", "123456")
        await client.reset_password("c@d.com", "x", "x")

    assert resets[0]["email"] == "c@d.com"
    assert resets[0]["otp"] == ""


@pytest.mark.asyncio
async def test_controller_targets_latest_email_after_failed_send() -> None:
    """After a failed send to a new address, verify and reset use that address."""
    requests: list[tuple[str, dict[str, str]]] = []

    async def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        requests.append((request.url.path, body))
        if request.url.path == "/auth/password/forgot" and body["email"] == "c@d.com":
            return httpx.Response(status_code=500, json={"detail": "boom"})
        if request.url.path == "/auth/password/verify-otp":
            return httpx.Response(status_code=200, json={"valid": True})
        return httpx.Response(status_code=200, json={})

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(base_url="https://api.local", transport=transport) as http_client:
        client = RecoveryClient(base_url="https://api.local", http_client=http_client)
        async with PasswordRecoveryController(client, InMemoryPreferences()) as controller:
            await controller.send_otp("a@b.com")
            await controller.send_otp("c@d.com")
            assert controller.state == Error(
                "The system is under maintenance, please try again later."
            )
            await controller.verify_otp("123456")
            assert controller.state == OtpVerified()
            await controller.reset_password("NewPass123!", "NewPass123!")

    assert controller.session_email == "c@d.com"
    assert requests[2] == ("/auth/password/verify-otp", {"email": "c@d.com", "otp": "123456"})
    assert requests[3][0] == "/auth/password/reset"
    assert requests[3][1]["email"] == "c@d.com"
    assert requests[3][1]["otp"] == "123456"


@pytest.mark.asyncio
async def test_controller_shows_generic_message_for_timeout() -> None:
    """Only connection failures produce the no-internet message."""

    async def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("slow", request=request)

    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(base_url="https://api.local", transport=transport) as http_client:
        client = RecoveryClient(base_url="https://api.local", http_client=http_client)
        async with PasswordRecoveryController(client, InMemoryPreferences()) as controller:
            await controller.send_otp("a@b.com")

    assert controller.state == Error("Something went wrong. Please try again.")
