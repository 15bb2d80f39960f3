"""Password-recovery flow controller driving a single recovery screen."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Coroutine
from functools import lru_cache
from typing import Any, Protocol

import structlog
from redis import Redis

from recovery.client import RecoveryClient
from recovery.config import Settings, get_settings
from recovery.cooldown import (
    DEFAULT_COOLDOWN_SECONDS,
    LAST_NO_CODE_TIME_KEY,
    CooldownTimer,
    remaining_seconds,
)
from recovery.messages import (
    DEFAULT_LOCALE,
    INVALID_CODE,
    SESSION_EMAIL_MISSING,
    classify_error,
    lookup,
    message_for_kind,
)
from recovery.storage import InMemoryPreferences, PreferenceStore, RedisPreferences
from recovery.types import (
    Error,
    Idle,
    Loading,
    OtpSent,
    OtpVerified,
    PasswordResetSuccess,
    UiState,
)

logger = structlog.get_logger(__name__)


class RecoveryGateway(Protocol):
    """Contract for the remote side of the recovery flow."""

    async def send_otp(self, email: str) -> None:
        """Dispatch a one-time code, raising on failure."""

    async def verify_otp(self, email: str, code: str) -> bool:
        """Return whether the code sent to email is accepted."""

    async def reset_password(self, email: str, new_password: str, confirm_password: str) -> None:
        """Change the password of email, raising on failure."""


class PasswordRecoveryController:
    """Own the UI state, resend cooldown and session email of one recovery screen.

    Network operations run as tasks owned by the controller and are returned to
    the caller; ``aclose`` cancels whatever is still running. The session email
    lives only here and is passed to the gateway on every call. A persisted
    cooldown is restored at construction; its countdown starts right away inside
    a running event loop, otherwise on the first subscription or operation.
    """

    def __init__(
        self,
        gateway: RecoveryGateway,
        preferences: PreferenceStore,
        cooldown_seconds: int = DEFAULT_COOLDOWN_SECONDS,
        storage_key: str = LAST_NO_CODE_TIME_KEY,
        locale: str = DEFAULT_LOCALE,
        now: Callable[[], float] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
        close_gateway: bool = False,
    ) -> None:
        self._gateway = gateway
        self._preferences = preferences
        self._cooldown_seconds = cooldown_seconds
        self._storage_key = storage_key
        self._locale = locale
        self._now = now or time.time
        self._close_gateway = close_gateway

        self._state: UiState = Idle()
        self._cooldown = 0
        self._session_email = ""
        self._state_listeners: list[Callable[[UiState], None]] = []
        self._cooldown_listeners: list[Callable[[int], None]] = []
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False
        self._timer = CooldownTimer(self._set_cooldown, sleep=sleep)
        self._resume_from_ms = self._preferences.get_long(self._storage_key)
        self._resume_pending = False

        self._resume_cooldown()

    @property
    def state(self) -> UiState:
        return self._state

    @property
    def cooldown(self) -> int:
        return self._cooldown

    @property
    def session_email(self) -> str:
        return self._session_email

    @property
    def cooldown_task(self) -> asyncio.Task[None] | None:
        """The running countdown, if any."""
        return self._timer.task

    @property
    def closed(self) -> bool:
        return self._closed

    def subscribe(self, listener: Callable[[UiState], None]) -> Callable[[], None]:
        """Register a state observer; it receives the current state right away."""
        self._start_pending_resume()
        self._state_listeners.append(listener)
        self._notify(listener, self._state, "state")
        return lambda: self._remove(self._state_listeners, listener)

    def subscribe_cooldown(self, listener: Callable[[int], None]) -> Callable[[], None]:
        """Register a cooldown observer; it receives the current value right away."""
        self._start_pending_resume()
        self._cooldown_listeners.append(listener)
        self._notify(listener, self._cooldown, "cooldown")
        return lambda: self._remove(self._cooldown_listeners, listener)

    def send_otp(self, email: str) -> asyncio.Task[None]:
        """Start the session for email and request a code."""
        self._ensure_open()
        self._session_email = email
        self._set_state(Loading())
        return self._launch(self._send_otp(email))

    def resend_otp(self) -> asyncio.Task[None] | None:
        """Request another code for the session email, if there is one."""
        self._ensure_open()
        if self._session_email.strip():
            return self.send_otp(self._session_email)
        self._set_state(Error(lookup(SESSION_EMAIL_MISSING, self._locale)))
        return None

    def verify_otp(self, code: str) -> asyncio.Task[None]:
        """Check a code entered by the user."""
        self._ensure_open()
        self._set_state(Loading())
        return self._launch(self._verify_otp(self._session_email, code))

    def reset_password(self, new_password: str, confirm_password: str) -> asyncio.Task[None]:
        """Submit the new password; equality of the two fields is left to the server."""
        self._ensure_open()
        self._set_state(Loading())
        return self._launch(
            self._reset_password(self._session_email, new_password, confirm_password)
        )

    def on_no_code_click(self) -> asyncio.Task[None]:
        """Record a "no code received" action and start the full cooldown."""
        self._ensure_open()
        self._set_cooldown(self._cooldown_seconds)
        self._preferences.put_long(self._storage_key, self._now_ms())
        logger.info("cooldown_started", seconds=self._cooldown_seconds)
        return self.start_cooldown(self._cooldown_seconds)

    def start_cooldown(self, seconds: int) -> asyncio.Task[None]:
        """Count down from seconds, replacing any countdown already running."""
        self._ensure_open()
        return self._timer.start(seconds)

    def clear_state(self) -> None:
        self._set_state(Idle())

    async def aclose(self) -> None:
        """Cancel in-flight operations and the countdown."""
        if self._closed:
            return
        self._closed = True
        self._resume_pending = False
        countdown = self._timer.task
        self._timer.cancel()
        pending = [task for task in self._tasks if not task.done()]
        for task in pending:
            task.cancel()
        if countdown is not None:
            pending.append(countdown)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._tasks.clear()
        if self._close_gateway and isinstance(self._gateway, RecoveryClient):
            await self._gateway.aclose()

    async def __aenter__(self) -> PasswordRecoveryController:
        """Enter async context manager."""
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        """Exit async context manager and cancel owned tasks."""
        del exc_type, exc, tb
        await self.aclose()

    async def _send_otp(self, email: str) -> None:
        try:
            await self._gateway.send_otp(email)
        except Exception as exc:
            self._fail("send_otp", exc)
            return
        self._set_state(OtpSent())

    async def _verify_otp(self, email: str, code: str) -> None:
        try:
            is_valid = await self._gateway.verify_otp(email, code)
        except Exception as exc:
            self._fail("verify_otp", exc)
            return
        if is_valid:
            self._set_state(OtpVerified())
        else:
            self._set_state(Error(lookup(INVALID_CODE, self._locale)))

    async def _reset_password(
        self, email: str, new_password: str, confirm_password: str
    ) -> None:
        try:
            await self._gateway.reset_password(email, new_password, confirm_password)
        except Exception as exc:
            self._fail("reset_password", exc)
            return
        self._set_state(PasswordResetSuccess())

    def _fail(self, operation: str, exc: Exception) -> None:
        kind = classify_error(exc)
        logger.warning(
            "recovery_operation_failed",
            operation=operation,
            kind=kind.value,
            error_type=type(exc).__name__,
        )
        self._set_state(Error(message_for_kind(kind, self._locale)))

    def _remaining_cooldown(self) -> int:
        return remaining_seconds(self._resume_from_ms, self._now_ms(), self._cooldown_seconds)

    def _resume_cooldown(self) -> None:
        remaining = self._remaining_cooldown()
        if remaining <= 0:
            return
        logger.info("cooldown_resumed", seconds=remaining)
        self._set_cooldown(remaining)
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            self._resume_pending = True
            return
        self._timer.start(remaining)

    def _start_pending_resume(self) -> None:
        if not self._resume_pending or self._closed:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return
        self._resume_pending = False
        remaining = self._remaining_cooldown()
        self._set_cooldown(remaining)
        if remaining > 0:
            self._timer.start(remaining)

    def _launch(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task[None]:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("PasswordRecoveryController is closed.")
        self._start_pending_resume()

    def _now_ms(self) -> int:
        return int(self._now() * 1000)

    def _set_state(self, state: UiState) -> None:
        if state == self._state:
            return
        self._state = state
        for listener in list(self._state_listeners):
            self._notify(listener, state, "state")

    def _set_cooldown(self, value: int) -> None:
        if value == self._cooldown:
            return
        self._cooldown = value
        for listener in list(self._cooldown_listeners):
            self._notify(listener, value, "cooldown")

    @staticmethod
    def _notify(listener: Callable[[Any], None], value: Any, channel: str) -> None:
        try:
            listener(value)
        except Exception:
            logger.exception("listener_failed", channel=channel)

    @staticmethod
    def _remove(listeners: list[Any], listener: Any) -> None:
        if listener in listeners:
            listeners.remove(listener)


@lru_cache
def get_redis_client(url: str) -> Redis:
    """Return one shared Redis client per URL for the process."""
    return Redis.from_url(url, decode_responses=True)


def create_controller(
    settings: Settings | None = None,
    gateway: RecoveryGateway | None = None,
    preferences: PreferenceStore | None = None,
) -> PasswordRecoveryController:
    """Build a controller wired from settings."""
    settings = settings or get_settings()
    owns_gateway = gateway is None
    if gateway is None:
        gateway = RecoveryClient(
            base_url=str(settings.api.base_url),
            timeout=settings.api.timeout_seconds,
        )
    if preferences is None:
        if settings.redis.url:
            preferences = RedisPreferences(
                get_redis_client(settings.redis.url),
                prefix=settings.redis.key_prefix,
            )
        else:
            preferences = InMemoryPreferences()
    return PasswordRecoveryController(
        gateway=gateway,
        preferences=preferences,
        cooldown_seconds=settings.cooldown.duration_seconds,
        storage_key=settings.cooldown.storage_key,
        locale=settings.app.locale,
        close_gateway=owns_gateway,
    )
