"""
DTO unlock engine: UnlockMethod, Evaluation (evaluator output), LockedResource (session input),
SessionSnapshot (session state for the client), AccessGrantResult.
"""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class UnlockMethod(str, Enum):
    MANUAL_CODE = "MANUAL_CODE"
    TASK_VERIFICATION = "TASK_VERIFICATION"
    TIME_DELAY = "TIME_DELAY"


class Outcome(str, Enum):
    PASS = "PASS"
    FAIL = "FAIL"
    PENDING = "PENDING"


class SideEffectKind(str, Enum):
    OPEN_URL = "OPEN_URL"
    COUNTDOWN = "COUNTDOWN"


class SessionState(str, Enum):
    LOCKED = "LOCKED"
    VERIFYING = "VERIFYING"
    UNLOCKED = "UNLOCKED"


# ----- Evaluator output (pure logic, no I/O) -----


class SideEffect(BaseModel):
    """What the session must do before the outcome turns into PASS."""

    kind: SideEffectKind
    url: str | None = None  # OPEN_URL
    seconds: int | None = None  # COUNTDOWN

    model_config = {"frozen": True}


class Evaluation(BaseModel):
    outcome: Outcome
    side_effect: SideEffect | None = None
    retry_allowed: bool = False

    model_config = {"frozen": True}


# ----- Session input: detached copy of the Resource row -----


class LockedResource(BaseModel):
    """Fields of a Resource the unlock flow needs; built from the ORM row with from_attributes."""

    id: str
    creator_id: str
    title: str
    unlock_method: str
    unlock_requirement: str
    file_url: str

    model_config = ConfigDict(frozen=True, from_attributes=True)


# ----- Session output -----


class SessionSnapshot(BaseModel):
    session_id: str
    resource_id: str
    unlock_method: str
    state: SessionState
    remaining_seconds: int | None = Field(
        None,
        description="Countdown value for TIME_DELAY, None for other methods",
    )
    error: str | None = Field(
        None,
        description="Transient message (wrong code, download unavailable)",
    )
    open_url: str | None = Field(
        None,
        description="External task link the client must open (TASK_VERIFICATION)",
    )
    download_url: str | None = Field(
        None,
        description="Signed or external download link, set only when UNLOCKED",
    )


class AccessGrantResult(BaseModel):
    resource_id: str
    session_id: str
    download_url: str

    model_config = {"frozen": True}
