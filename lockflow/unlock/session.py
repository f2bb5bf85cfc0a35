"""
UnlockSession: per-visit state machine LOCKED -> VERIFYING -> UNLOCKED.

- MANUAL_CODE: submit(code). PASS -> grant -> UNLOCKED; FAIL -> stays LOCKED with a transient error.
- TIME_DELAY: start() -> VERIFYING, one tick per tick_seconds, grant after exactly N ticks.
- TASK_VERIFICATION: start() -> VERIFYING with open_url, grant after task_verification_delay.

UNLOCKED is terminal. close() cancels every timer the session owns; nothing fires after it.
If the grant fails (storage down) the session stays out of UNLOCKED and retry() may be called.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from uuid import uuid4

from lockflow.unlock.config import UnlockTimings
from lockflow.unlock.errors import (
    CollaboratorUnavailable,
    DataIntegrityError,
    SessionNotFound,
    UnlockValidationError,
)
from lockflow.unlock.evaluator import coerce_method, countdown_outcome, evaluate, parse_delay_seconds
from lockflow.unlock.grant import ResourceAccessGrant
from lockflow.unlock.models import (
    LockedResource,
    Outcome,
    SessionSnapshot,
    SessionState,
    SideEffectKind,
    UnlockMethod,
)
from lockflow.utils.metrics import data_integrity_errors_total, unlock_attempts_total, unlocks_total

logger = logging.getLogger(__name__)

INVALID_CODE_MESSAGE = "Invalid code. Please check again."
DOWNLOAD_UNAVAILABLE_MESSAGE = "Download link is unavailable, try again."

Sleep = Callable[[float], Awaitable[None]]


class UnlockSession:
    def __init__(
        self,
        resource: LockedResource,
        grant: ResourceAccessGrant,
        *,
        timings: UnlockTimings | None = None,
        sleep: Sleep = asyncio.sleep,
        session_id: str | None = None,
    ) -> None:
        self.session_id = session_id or str(uuid4())
        self.resource = resource
        self.state = SessionState.LOCKED
        self.attempt_input: str | None = None
        self.error: str | None = None
        self.open_url: str | None = None
        self.download_url: str | None = None
        self.ticks = 0
        self.remaining_seconds: int | None = self._initial_remaining()
        self.last_activity = time.monotonic()

        self._grant = grant
        self._timings = timings or UnlockTimings()
        self._sleep = sleep
        self._lock = asyncio.Lock()
        self._satisfied = False
        self._closed = False
        self._started_at = time.monotonic()
        self._countdown_task: asyncio.Task | None = None
        self._task_delay_task: asyncio.Task | None = None
        self._error_clear: asyncio.TimerHandle | None = None
        self._error_generation = 0

    def _initial_remaining(self) -> int | None:
        if self.resource.unlock_method != UnlockMethod.TIME_DELAY.value:
            return None
        try:
            return parse_delay_seconds(self.resource.unlock_requirement)
        except DataIntegrityError:
            # start() raises; the countdown never runs
            return None

    @property
    def method(self) -> UnlockMethod:
        return coerce_method(self.resource.unlock_method)

    @property
    def closed(self) -> bool:
        return self._closed

    def touch(self) -> None:
        self.last_activity = time.monotonic()

    def snapshot(self) -> SessionSnapshot:
        return SessionSnapshot(
            session_id=self.session_id,
            resource_id=self.resource.id,
            unlock_method=self.resource.unlock_method,
            state=self.state,
            remaining_seconds=self.remaining_seconds,
            error=self.error,
            open_url=self.open_url,
            download_url=self.download_url,
        )

    # ── Visitor actions ─────────────────────────────────────────────

    async def submit(self, code: str) -> SessionSnapshot:
        """Check a MANUAL_CODE attempt. Raises UnlockValidationError on a wrong code."""
        self._ensure_open()
        method = self.method
        if method is not UnlockMethod.MANUAL_CODE:
            raise UnlockValidationError(f"{method.value} resources are not unlocked with a code")
        if self.state is SessionState.UNLOCKED:
            return self.snapshot()

        self.attempt_input = code
        evaluation = self._evaluate(code)
        unlock_attempts_total.labels(method=method.value, outcome=evaluation.outcome.value).inc()
        if evaluation.outcome is Outcome.PASS:
            self._satisfied = True
            await self._complete()
            return self.snapshot()

        logger.info(
            "unlock_code_rejected",
            extra={"resource_id": self.resource.id, "session_id": self.session_id},
        )
        self._show_error(INVALID_CODE_MESSAGE)
        raise UnlockValidationError(INVALID_CODE_MESSAGE)

    async def start(self) -> SessionSnapshot:
        """Begin a TIME_DELAY countdown or a TASK_VERIFICATION. Repeated calls are no-ops."""
        self._ensure_open()
        method = self.method
        if method is UnlockMethod.MANUAL_CODE:
            raise UnlockValidationError("Enter the code to unlock this resource")
        if self.state is not SessionState.LOCKED:
            return self.snapshot()

        evaluation = self._evaluate(None)
        unlock_attempts_total.labels(method=method.value, outcome=evaluation.outcome.value).inc()
        effect = evaluation.side_effect
        self.state = SessionState.VERIFYING
        self._started_at = time.monotonic()
        if effect.kind is SideEffectKind.COUNTDOWN:
            self.remaining_seconds = effect.seconds
            self._countdown_task = asyncio.create_task(self._run_countdown())
        else:
            self.open_url = effect.url
            self._task_delay_task = asyncio.create_task(self._confirm_task())
        logger.info(
            "unlock_session_verifying",
            extra={
                "resource_id": self.resource.id,
                "session_id": self.session_id,
                "method": method.value,
                "remaining_seconds": self.remaining_seconds,
            },
        )
        return self.snapshot()

    async def retry(self) -> SessionSnapshot:
        """Retry the grant after a download-link failure. Requirement must already be satisfied."""
        self._ensure_open()
        if self.state is SessionState.UNLOCKED:
            return self.snapshot()
        if not self._satisfied:
            raise UnlockValidationError("Unlock requirement is not satisfied yet")
        await self._complete()
        return self.snapshot()

    def close(self) -> None:
        """Tear down: cancel countdown, pending task confirmation and error timer."""
        if self._closed:
            return
        self._closed = True
        for task in (self._countdown_task, self._task_delay_task):
            if task is not None and not task.done():
                task.cancel()
        if self._error_clear is not None:
            self._error_clear.cancel()
            self._error_clear = None
        logger.info(
            "unlock_session_closed",
            extra={"session_id": self.session_id, "state": self.state.value},
        )

    async def join(self) -> None:
        """Wait for the countdown or task confirmation to finish."""
        pending = [t for t in (self._countdown_task, self._task_delay_task) if t is not None]
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    # ── Internals ───────────────────────────────────────────────────

    def _ensure_open(self) -> None:
        if self._closed:
            raise SessionNotFound("Unlock session is closed")
        self.touch()

    def _evaluate(self, visitor_input: str | None):
        try:
            return evaluate(self.method, self.resource.unlock_requirement, visitor_input)
        except DataIntegrityError:
            data_integrity_errors_total.labels(method=self.resource.unlock_method).inc()
            logger.error(
                "unlock_requirement_corrupt",
                extra={"resource_id": self.resource.id, "method": self.resource.unlock_method},
            )
            raise

    async def _run_countdown(self) -> None:
        while not self._closed and self.remaining_seconds and self.remaining_seconds > 0:
            await self._sleep(self._timings.tick_seconds)
            if self._closed:
                return
            await self._tick()

    async def _tick(self) -> None:
        if self.state is not SessionState.VERIFYING or not self.remaining_seconds:
            return
        self.remaining_seconds -= 1
        self.ticks += 1
        if countdown_outcome(self.remaining_seconds) is Outcome.PASS:
            self._satisfied = True
            await self._complete_in_background()

    async def _confirm_task(self) -> None:
        await self._sleep(self._timings.task_verification_delay)
        if self._closed:
            return
        # Opening the link is accepted as completion; the external task is not checked
        self._satisfied = True
        await self._complete_in_background()

    async def _complete_in_background(self) -> None:
        try:
            await self._complete()
        except CollaboratorUnavailable:
            # Already on self.error; visitor retries through retry()
            pass
        except SessionNotFound:
            # Closed while the link was being signed
            pass

    async def _complete(self) -> None:
        async with self._lock:
            if self._closed or self.state is SessionState.UNLOCKED:
                return
            try:
                result = await self._grant.issue(
                    self.resource,
                    self.session_id,
                    started_at=self._started_at,
                    is_open=lambda: not self._closed,
                )
            except CollaboratorUnavailable:
                self.error = DOWNLOAD_UNAVAILABLE_MESSAGE
                logger.warning(
                    "unlock_grant_failed",
                    extra={"resource_id": self.resource.id, "session_id": self.session_id},
                )
                raise
            self.download_url = result.download_url
            self.state = SessionState.UNLOCKED
            self.error = None
            unlocks_total.labels(method=self.resource.unlock_method).inc()
            logger.info(
                "unlock_session_unlocked",
                extra={
                    "resource_id": self.resource.id,
                    "session_id": self.session_id,
                    "method": self.resource.unlock_method,
                },
            )

    def _show_error(self, message: str) -> None:
        self.error = message
        self._error_generation += 1
        generation = self._error_generation
        if self._error_clear is not None:
            self._error_clear.cancel()
        loop = asyncio.get_running_loop()
        self._error_clear = loop.call_later(
            self._timings.code_error_display, self._clear_error, generation
        )

    def _clear_error(self, generation: int) -> None:
        if generation == self._error_generation and not self._closed:
            self.error = None
        self._error_clear = None
