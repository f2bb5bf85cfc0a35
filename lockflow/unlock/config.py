"""
Unlock config: typed wrapper over lockflow.core.config for timers and signed URL TTL.
"""
from __future__ import annotations

from pydantic import BaseModel

from lockflow.core.config import settings


def get_signed_url_ttl_seconds() -> int:
    return settings.signed_url_ttl_seconds


def get_session_ttl_seconds() -> int:
    return settings.unlock_session_ttl_seconds


def get_max_sessions() -> int:
    return settings.unlock_max_sessions


class UnlockTimings(BaseModel):
    """Timer lengths used by UnlockSession (seconds)."""

    tick_seconds: float = 1.0
    task_verification_delay: float = 2.0
    code_error_display: float = 3.0

    model_config = {"frozen": True}

    @classmethod
    def from_settings(cls) -> "UnlockTimings":
        return cls(
            tick_seconds=settings.countdown_tick_seconds,
            task_verification_delay=settings.task_verification_delay_seconds,
            code_error_display=settings.code_error_display_seconds,
        )
