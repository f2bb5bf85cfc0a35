"""
Unlock audit: record_unlock is called only by ResourceAccessGrant after the download link is resolved.
"""
from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


def record_unlock(
    resource_id: str,
    session_id: str,
    method: str,
    *,
    creator_id: str | None = None,
    external_file: bool = False,
    seconds_to_unlock: float | None = None,
) -> None:
    """Write a successful unlock event for analytics."""
    logger.info(
        "resource_unlock",
        extra={
            "resource_id": resource_id,
            "session_id": session_id,
            "method": method,
            "creator_id": creator_id,
            "external_file": external_file,
            "seconds_to_unlock": seconds_to_unlock,
        },
    )
