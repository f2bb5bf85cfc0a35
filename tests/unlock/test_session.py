"""
UnlockSession state machine with a stepped clock: ticks happen only when the test advances it.
"""
import asyncio
import unittest
from unittest.mock import MagicMock

import httpx
import pybreaker
import redis

from lockflow.services.circuit_breaker import RedisCircuitBreakerStorage
from lockflow.services.resources.counter import UnlockCounter
from lockflow.services.storage import Storage, StorageError, SupabaseStorage
from lockflow.unlock.config import UnlockTimings
from lockflow.unlock.errors import (
    CollaboratorUnavailable,
    DataIntegrityError,
    SessionNotFound,
    UnlockValidationError,
)
from lockflow.unlock.grant import ResourceAccessGrant
from lockflow.unlock.models import LockedResource, SessionState, UnlockMethod
from lockflow.unlock.session import DOWNLOAD_UNAVAILABLE_MESSAGE, INVALID_CODE_MESSAGE, UnlockSession


class FakeStorage(Storage):
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[tuple[str, int]] = []

    def create_signed_download_url(self, path: str, ttl_seconds: int) -> str:
        self.calls.append((path, ttl_seconds))
        if self.fail:
            raise StorageError("storage down")
        return f"https://signed.example/{path}?ttl={ttl_seconds}"

    def remove(self, paths: list[str]) -> None:
        pass


class RecordingCounter(UnlockCounter):
    def __init__(self) -> None:
        self.increments: list[str] = []

    def increment(self, resource_id: str) -> None:
        self.increments.append(resource_id)


class SteppedClock:
    """sleep() blocks until advance() releases one step per tick."""

    def __init__(self) -> None:
        self._steps = asyncio.Semaphore(0)
        self.sleeps = 0

    async def sleep(self, _seconds: float) -> None:
        self.sleeps += 1
        await self._steps.acquire()

    def advance(self, n: int = 1) -> None:
        for _ in range(n):
            self._steps.release()


async def drain_loop(rounds: int = 20) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_resource(method: UnlockMethod, requirement: str, file_url: str = "creator/resources/r1/file.pdf"):
    return LockedResource(
        id="r1",
        creator_id="c1",
        title="Modern React Architecture PDF",
        unlock_method=method.value,
        unlock_requirement=requirement,
        file_url=file_url,
    )


class SessionTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.storage = FakeStorage()
        self.counter = RecordingCounter()
        self.grant = ResourceAccessGrant(self.storage, self.counter, signed_url_ttl_seconds=3600)
        self.clock = SteppedClock()
        self.timings = UnlockTimings(tick_seconds=1, task_verification_delay=2, code_error_display=0.05)

    def make_session(self, method: UnlockMethod, requirement: str, **kwargs) -> UnlockSession:
        session = UnlockSession(
            make_resource(method, requirement, **kwargs),
            self.grant,
            timings=self.timings,
            sleep=self.clock.sleep,
        )
        self.addCleanup(session.close)
        return session

    async def asyncTearDown(self):
        await self.grant.drain()


class TestManualCodeSession(SessionTestCase):
    async def test_correct_code_unlocks(self):
        session = self.make_session(UnlockMethod.MANUAL_CODE, "REACT2024")
        self.assertEqual(session.state, SessionState.LOCKED)

        snapshot = await session.submit("react2024 ")
        await self.grant.drain()

        self.assertEqual(snapshot.state, SessionState.UNLOCKED)
        self.assertEqual(snapshot.download_url, "https://signed.example/creator/resources/r1/file.pdf?ttl=3600")
        self.assertEqual(self.counter.increments, ["r1"])

    async def test_wrong_code_stays_locked_and_error_clears(self):
        session = self.make_session(UnlockMethod.MANUAL_CODE, "REACT2024")

        with self.assertRaises(UnlockValidationError):
            await session.submit("REACT2025")

        self.assertEqual(session.state, SessionState.LOCKED)
        self.assertEqual(session.error, INVALID_CODE_MESSAGE)
        self.assertEqual(session.attempt_input, "REACT2025")
        await asyncio.sleep(0.1)
        self.assertIsNone(session.error)
        self.assertEqual(session.state, SessionState.LOCKED)

    async def test_failed_attempts_never_count(self):
        session = self.make_session(UnlockMethod.MANUAL_CODE, "REACT2024")
        for _ in range(2):
            with self.assertRaises(UnlockValidationError):
                await session.submit("nope")
        await self.grant.drain()
        self.assertEqual(self.counter.increments, [])
        self.assertEqual(self.storage.calls, [])

    async def test_retry_after_wrong_code(self):
        session = self.make_session(UnlockMethod.MANUAL_CODE, "REACT2024")
        with self.assertRaises(UnlockValidationError):
            await session.submit("nope")
        snapshot = await session.submit("REACT2024")
        self.assertEqual(snapshot.state, SessionState.UNLOCKED)

    async def test_unlocked_is_terminal_and_counted_once(self):
        session = self.make_session(UnlockMethod.MANUAL_CODE, "REACT2024")
        await session.submit("REACT2024")
        await session.submit("REACT2024")
        await session.submit("wrong")  # no-op once unlocked
        await self.grant.drain()
        self.assertEqual(session.state, SessionState.UNLOCKED)
        self.assertEqual(self.counter.increments, ["r1"])

    async def test_start_not_allowed_for_code(self):
        session = self.make_session(UnlockMethod.MANUAL_CODE, "REACT2024")
        with self.assertRaises(UnlockValidationError):
            await session.start()

    async def test_external_file_used_unchanged(self):
        session = self.make_session(
            UnlockMethod.MANUAL_CODE, "REACT2024", file_url="https://example.com/files/react-arch.pdf"
        )
        snapshot = await session.submit("REACT2024")
        self.assertEqual(snapshot.download_url, "https://example.com/files/react-arch.pdf")
        self.assertEqual(self.storage.calls, [])


class TestTimeDelaySession(SessionTestCase):
    async def test_no_ticks_before_start(self):
        session = self.make_session(UnlockMethod.TIME_DELAY, "30")
        self.clock.advance(5)
        await drain_loop()
        self.assertEqual(session.state, SessionState.LOCKED)
        self.assertEqual(session.ticks, 0)
        self.assertEqual(session.remaining_seconds, 30)

    async def test_thirty_second_countdown(self):
        session = self.make_session(UnlockMethod.TIME_DELAY, "30")
        snapshot = await session.start()
        self.assertEqual(snapshot.state, SessionState.VERIFYING)
        self.assertEqual(snapshot.remaining_seconds, 30)

        self.clock.advance(29)
        await drain_loop()
        self.assertEqual(session.state, SessionState.VERIFYING)
        self.assertEqual(session.remaining_seconds, 1)
        self.assertEqual(session.ticks, 29)

        self.clock.advance(1)
        await session.join()
        await self.grant.drain()
        self.assertEqual(session.state, SessionState.UNLOCKED)
        self.assertEqual(session.ticks, 30)
        self.assertEqual(self.counter.increments, ["r1"])

    async def test_start_twice_does_not_restart(self):
        session = self.make_session(UnlockMethod.TIME_DELAY, "3")
        await session.start()
        self.clock.advance(1)
        await drain_loop()
        snapshot = await session.start()
        self.assertEqual(snapshot.remaining_seconds, 2)

    async def test_close_cancels_countdown(self):
        session = self.make_session(UnlockMethod.TIME_DELAY, "2")
        await session.start()
        self.clock.advance(1)
        await drain_loop()
        session.close()
        self.clock.advance(5)
        await session.join()
        await self.grant.drain()
        self.assertEqual(session.state, SessionState.VERIFYING)
        self.assertEqual(session.remaining_seconds, 1)
        self.assertEqual(self.counter.increments, [])
        with self.assertRaises(SessionNotFound):
            await session.start()

    async def test_malformed_delay_never_unlocks(self):
        session = self.make_session(UnlockMethod.TIME_DELAY, "abc")
        with self.assertRaises(DataIntegrityError):
            await session.start()
        self.clock.advance(10)
        await drain_loop()
        self.assertEqual(session.state, SessionState.LOCKED)
        self.assertIsNone(session.remaining_seconds)
        self.assertEqual(self.counter.increments, [])

    async def test_submit_not_allowed_for_delay(self):
        session = self.make_session(UnlockMethod.TIME_DELAY, "30")
        with self.assertRaises(UnlockValidationError):
            await session.submit("30")


class TestTaskVerificationSession(SessionTestCase):
    URL = "https://youtube.com/watch?v=dQw4w9WgXcQ"

    async def test_start_returns_url_then_unlocks_after_delay(self):
        session = self.make_session(UnlockMethod.TASK_VERIFICATION, self.URL)
        snapshot = await session.start()
        self.assertEqual(snapshot.state, SessionState.VERIFYING)
        self.assertEqual(snapshot.open_url, self.URL)

        self.clock.advance(1)
        await session.join()
        await self.grant.drain()
        self.assertEqual(session.state, SessionState.UNLOCKED)
        self.assertEqual(self.counter.increments, ["r1"])

    async def test_close_before_delay_prevents_unlock(self):
        session = self.make_session(UnlockMethod.TASK_VERIFICATION, self.URL)
        await session.start()
        session.close()
        self.clock.advance(1)
        await session.join()
        await self.grant.drain()
        self.assertEqual(session.state, SessionState.VERIFYING)
        self.assertIsNone(session.download_url)
        self.assertEqual(self.counter.increments, [])


class TestGrantFailure(SessionTestCase):
    async def test_signing_failure_fails_closed_then_retry(self):
        self.storage.fail = True
        session = self.make_session(UnlockMethod.MANUAL_CODE, "REACT2024")

        with self.assertRaises(CollaboratorUnavailable):
            await session.submit("REACT2024")
        await self.grant.drain()
        self.assertEqual(session.state, SessionState.LOCKED)
        self.assertIsNone(session.download_url)
        self.assertIsNotNone(session.error)
        self.assertEqual(self.counter.increments, [])

        self.storage.fail = False
        snapshot = await session.retry()
        await self.grant.drain()
        self.assertEqual(snapshot.state, SessionState.UNLOCKED)
        self.assertIsNone(snapshot.error)
        self.assertEqual(self.counter.increments, ["r1"])

    async def test_countdown_signing_failure_keeps_verifying(self):
        self.storage.fail = True
        session = self.make_session(UnlockMethod.TIME_DELAY, "1")
        await session.start()
        self.clock.advance(1)
        await session.join()
        self.assertEqual(session.state, SessionState.VERIFYING)
        self.assertEqual(session.remaining_seconds, 0)

        self.storage.fail = False
        snapshot = await session.retry()
        self.assertEqual(snapshot.state, SessionState.UNLOCKED)

    async def test_retry_requires_satisfied_requirement(self):
        session = self.make_session(UnlockMethod.MANUAL_CODE, "REACT2024")
        with self.assertRaises(UnlockValidationError):
            await session.retry()

    async def test_closed_while_signing_is_not_unlocked(self):
        session = self.make_session(UnlockMethod.MANUAL_CODE, "REACT2024")
        sign = self.storage.create_signed_download_url

        def sign_then_leave(path, ttl_seconds):
            session.close()
            return sign(path, ttl_seconds)

        self.storage.create_signed_download_url = sign_then_leave
        with self.assertRaises(SessionNotFound):
            await session.submit("REACT2024")
        await self.grant.drain()
        self.assertEqual(session.state, SessionState.LOCKED)
        self.assertIsNone(session.download_url)
        self.assertEqual(self.counter.increments, [])


class TestBreakerStateUnavailable(SessionTestCase):
    """Storage breaker whose Redis-backed state cannot be read."""

    def make_storage(self) -> tuple[SupabaseStorage, MagicMock]:
        client = MagicMock()
        client.get.return_value = None
        breaker = pybreaker.CircuitBreaker(
            fail_max=5,
            reset_timeout=30,
            state_storage=RedisCircuitBreakerStorage("storage-test", client=client),
        )
        storage = SupabaseStorage("https://project.supabase.co", "key", "Lockflow", breaker=breaker)
        storage._client = httpx.Client(
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, json={"signedURL": "/object/sign/Lockflow/f.pdf?token=t"})
            )
        )
        self.addCleanup(storage.close)
        return storage, client

    async def test_countdown_shows_error_and_retry_maps_to_unavailable(self):
        storage, redis_client = self.make_storage()
        self.grant = ResourceAccessGrant(storage, self.counter, signed_url_ttl_seconds=3600)
        redis_client.get.side_effect = redis.ConnectionError("redis down")

        session = self.make_session(UnlockMethod.TIME_DELAY, "1")
        await session.start()
        self.clock.advance(1)
        await session.join()

        self.assertEqual(session.state, SessionState.VERIFYING)
        self.assertEqual(session.error, DOWNLOAD_UNAVAILABLE_MESSAGE)
        self.assertIsNone(session._countdown_task.exception())
        with self.assertRaises(CollaboratorUnavailable):
            await session.retry()
        self.assertEqual(self.counter.increments, [])

        redis_client.get.side_effect = None
        snapshot = await session.retry()
        await self.grant.drain()
        self.assertEqual(snapshot.state, SessionState.UNLOCKED)
        self.assertEqual(
            snapshot.download_url,
            "https://project.supabase.co/storage/v1/object/sign/Lockflow/f.pdf?token=t",
        )
        self.assertEqual(self.counter.increments, ["r1"])
