import time
import unittest
from unittest.mock import MagicMock

from lockflow.unlock.errors import CollaboratorUnavailable, SessionNotFound
from lockflow.unlock.grant import ResourceAccessGrant
from lockflow.unlock.models import LockedResource, SessionState
from lockflow.unlock.registry import UnlockSessionRegistry

RESOURCE = LockedResource(
    id="r1",
    creator_id="c1",
    title="Wallpapers",
    unlock_method="TIME_DELAY",
    unlock_requirement="30",
    file_url="c1/resources/r1/w.zip",
)


class TestUnlockSessionRegistry(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        self.grant = MagicMock(spec=ResourceAccessGrant)
        self.registry = UnlockSessionRegistry(self.grant, secret="registry-test-secret-value", ttl_seconds=60)

    def tearDown(self):
        self.registry.shutdown()

    async def test_open_and_get(self):
        token, session = self.registry.open(RESOURCE)
        self.assertIs(self.registry.get(token), session)
        self.assertEqual(session.state, SessionState.LOCKED)
        self.assertEqual(len(self.registry), 1)

    async def test_each_visit_starts_locked(self):
        token_a, a = self.registry.open(RESOURCE)
        token_b, b = self.registry.open(RESOURCE)
        self.assertNotEqual(token_a, token_b)
        self.assertIsNot(a, b)
        self.assertEqual(b.state, SessionState.LOCKED)

    async def test_tampered_token_not_found(self):
        token, _ = self.registry.open(RESOURCE)
        with self.assertRaises(SessionNotFound):
            self.registry.get(token + "x")
        with self.assertRaises(SessionNotFound):
            self.registry.get("not-a-token")

    async def test_token_from_other_secret_not_found(self):
        other = UnlockSessionRegistry(self.grant, secret="another-secret-value-123", ttl_seconds=60)
        token, _ = other.open(RESOURCE)
        with self.assertRaises(SessionNotFound):
            self.registry.get(token)
        other.shutdown()

    async def test_close_removes_and_closes(self):
        token, session = self.registry.open(RESOURCE)
        self.registry.close(token)
        self.assertTrue(session.closed)
        with self.assertRaises(SessionNotFound):
            self.registry.get(token)
        self.assertEqual(len(self.registry), 0)

    async def test_prune_sessions_idle_past_ttl(self):
        _, idle = self.registry.open(RESOURCE)
        token, _ = self.registry.open(RESOURCE)

        pruned = self.registry.prune(now=time.monotonic() + 61)
        self.assertEqual(pruned, 2)
        self.assertTrue(idle.closed)
        with self.assertRaises(SessionNotFound):
            self.registry.get(token)

    async def test_prune_keeps_recent_sessions(self):
        token, _ = self.registry.open(RESOURCE)
        self.assertEqual(self.registry.prune(), 0)
        self.registry.get(token)

    async def test_open_refused_at_session_limit(self):
        registry = UnlockSessionRegistry(
            self.grant, secret="registry-test-secret-value", ttl_seconds=60, max_sessions=2
        )
        self.addCleanup(registry.shutdown)
        first, _ = registry.open(RESOURCE)
        registry.open(RESOURCE)

        with self.assertRaises(CollaboratorUnavailable):
            registry.open(RESOURCE)
        self.assertEqual(len(registry), 2)

        registry.close(first)
        registry.open(RESOURCE)
        self.assertEqual(len(registry), 2)

    async def test_limit_counts_after_pruning_idle_sessions(self):
        registry = UnlockSessionRegistry(
            self.grant, secret="registry-test-secret-value", ttl_seconds=0, max_sessions=1
        )
        self.addCleanup(registry.shutdown)
        _, stale = registry.open(RESOURCE)
        stale.last_activity -= 5

        registry.open(RESOURCE)
        self.assertTrue(stale.closed)
        self.assertEqual(len(registry), 1)
