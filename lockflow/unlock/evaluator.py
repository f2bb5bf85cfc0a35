"""
Decision only: evaluate(method, requirement, visitor_input) -> Evaluation.
Pure functions, no I/O. A requirement that does not parse for its method raises
DataIntegrityError: the resource stays locked, it is never unlocked by default.
"""
from __future__ import annotations

from typing import assert_never
from urllib.parse import urlparse

from lockflow.unlock.errors import DataIntegrityError
from lockflow.unlock.models import (
    Evaluation,
    Outcome,
    SideEffect,
    SideEffectKind,
    UnlockMethod,
)


def normalize_code(value: str | None) -> str:
    return (value or "").strip().upper()


def coerce_method(value: UnlockMethod | str) -> UnlockMethod:
    if isinstance(value, UnlockMethod):
        return value
    try:
        return UnlockMethod(value)
    except ValueError:
        raise DataIntegrityError(f"Unknown unlock method: {value!r}") from None


def parse_code(requirement: str | None) -> str:
    code = normalize_code(requirement)
    if not code:
        raise DataIntegrityError("Unlock code is empty")
    return code


def parse_task_url(requirement: str | None) -> str:
    url = (requirement or "").strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise DataIntegrityError(f"Task requirement is not an http(s) URL: {url!r}")
    return url


def parse_delay_seconds(requirement: str | None) -> int:
    """Delay for TIME_DELAY: positive integer seconds, anything else is corrupt data."""
    raw = (requirement or "").strip()
    if not (raw.isascii() and raw.isdigit()):
        raise DataIntegrityError(f"Delay is not an integer: {raw!r}")
    seconds = int(raw)
    if seconds <= 0:
        raise DataIntegrityError(f"Delay must be positive: {seconds}")
    return seconds


def validate_requirement(method: UnlockMethod | str, requirement: str | None) -> str:
    """
    Parse a requirement the way evaluate() will and return the form to store.
    Used at resource creation so that no stored row mixes interpretations.
    """
    method = coerce_method(method)
    match method:
        case UnlockMethod.MANUAL_CODE:
            parse_code(requirement)
            return (requirement or "").strip()
        case UnlockMethod.TASK_VERIFICATION:
            return parse_task_url(requirement)
        case UnlockMethod.TIME_DELAY:
            return str(parse_delay_seconds(requirement))
        case _:
            assert_never(method)


def evaluate(
    method: UnlockMethod | str,
    requirement: str | None,
    visitor_input: str | None = None,
) -> Evaluation:
    """
    MANUAL_CODE: PASS iff normalized input equals normalized code, otherwise FAIL (retry allowed,
    no lockout). TASK_VERIFICATION: PENDING with OPEN_URL; opening the link is accepted as proof.
    TIME_DELAY: PENDING with COUNTDOWN; visitor input is ignored.
    """
    method = coerce_method(method)
    match method:
        case UnlockMethod.MANUAL_CODE:
            expected = parse_code(requirement)
            if normalize_code(visitor_input) == expected:
                return Evaluation(outcome=Outcome.PASS)
            return Evaluation(outcome=Outcome.FAIL, retry_allowed=True)
        case UnlockMethod.TASK_VERIFICATION:
            url = parse_task_url(requirement)
            return Evaluation(
                outcome=Outcome.PENDING,
                side_effect=SideEffect(kind=SideEffectKind.OPEN_URL, url=url),
            )
        case UnlockMethod.TIME_DELAY:
            seconds = parse_delay_seconds(requirement)
            return Evaluation(
                outcome=Outcome.PENDING,
                side_effect=SideEffect(kind=SideEffectKind.COUNTDOWN, seconds=seconds),
            )
        case _:
            assert_never(method)


def countdown_outcome(remaining_seconds: int) -> Outcome:
    return Outcome.PASS if remaining_seconds <= 0 else Outcome.PENDING
