"""
Execution: ResourceAccessGrant.issue(resource, session_id) -> AccessGrantResult.
Resolves the download link first (signed URL for storage paths, external URLs as-is) and only then
requests the unlock counter increment in the background. A signing failure raises
CollaboratorUnavailable and nothing is counted; a counter failure is logged and swallowed.
"""
from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable

from lockflow.services.idempotency import IdempotencyStore
from lockflow.services.resources.counter import UnlockCounter
from lockflow.services.storage.base import Storage, StorageError
from lockflow.unlock.audit import record_unlock
from lockflow.unlock.errors import CollaboratorUnavailable, SessionNotFound
from lockflow.unlock.models import AccessGrantResult, LockedResource
from lockflow.unlock.references import is_external_url
from lockflow.utils.metrics import signed_url_requests_total, unlock_counter_failures_total

logger = logging.getLogger(__name__)


class ResourceAccessGrant:
    def __init__(
        self,
        storage: Storage,
        counter: UnlockCounter,
        *,
        idempotency: IdempotencyStore | None = None,
        signed_url_ttl_seconds: int = 3600,
    ) -> None:
        self._storage = storage
        self._counter = counter
        self._idempotency = idempotency
        self._ttl = signed_url_ttl_seconds
        self._background: set[asyncio.Task] = set()

    async def resolve_download_url(self, reference: str) -> str:
        if is_external_url(reference):
            return reference
        try:
            url = await asyncio.to_thread(
                self._storage.create_signed_download_url, reference, self._ttl
            )
        except StorageError as e:
            signed_url_requests_total.labels(status="error").inc()
            logger.warning("signed_url_failed", extra={"path": reference, "error": str(e)})
            raise CollaboratorUnavailable("Download link is unavailable, try again") from e
        signed_url_requests_total.labels(status="success").inc()
        return url

    async def issue(
        self,
        resource: LockedResource,
        session_id: str,
        *,
        started_at: float | None = None,
        is_open: Callable[[], bool] | None = None,
    ) -> AccessGrantResult:
        """
        is_open is checked after the link resolves and before anything is counted;
        a session closed while signing raises SessionNotFound.
        """
        download_url = await self.resolve_download_url(resource.file_url)
        if is_open is not None and not is_open():
            raise SessionNotFound("Unlock session is closed")
        self._request_increment(resource.id, session_id)
        record_unlock(
            resource.id,
            session_id,
            resource.unlock_method,
            creator_id=resource.creator_id,
            external_file=is_external_url(resource.file_url),
            seconds_to_unlock=(time.monotonic() - started_at) if started_at is not None else None,
        )
        return AccessGrantResult(
            resource_id=resource.id,
            session_id=session_id,
            download_url=download_url,
        )

    def _request_increment(self, resource_id: str, session_id: str) -> None:
        task = asyncio.create_task(self._increment(resource_id, session_id))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _increment(self, resource_id: str, session_id: str) -> None:
        try:
            if self._idempotency is not None:
                first = await asyncio.to_thread(
                    self._idempotency.check_and_set, f"unlock:{session_id}"
                )
                if not first:
                    logger.info(
                        "unlock_counter_duplicate_skipped",
                        extra={"resource_id": resource_id, "session_id": session_id},
                    )
                    return
            await asyncio.to_thread(self._counter.increment, resource_id)
        except Exception:
            # Never surfaced to the visitor
            unlock_counter_failures_total.inc()
            logger.exception(
                "unlock_counter_increment_failed",
                extra={"resource_id": resource_id, "session_id": session_id},
            )

    async def drain(self) -> None:
        """Wait for pending counter increments (shutdown, tests)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)
