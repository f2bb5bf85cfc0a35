"""
Storage references on a Resource: an internal object path (signed on unlock) or a full URL (used as-is).
"""
import re

_URL_SCHEME = re.compile(r"^[a-zA-Z][a-zA-Z0-9+.\-]*://")


def is_external_url(reference: str | None) -> bool:
    """True for a fully-qualified URL; False for an internal storage path."""
    return bool(reference) and _URL_SCHEME.match(reference) is not None


def internal_paths(*references: str | None) -> list[str]:
    """Storage paths among the given references (externals and empties skipped)."""
    return [r for r in references if r and not is_external_url(r)]
