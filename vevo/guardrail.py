"""Caller-side guardrail for self-edit targets.

This is a plain substring check on the requested path, applied before the
self-edit pipeline runs. It makes no stronger promise than that: paths are
not resolved or normalized first.
"""
from __future__ import annotations

from typing import Iterable, Optional

DEFAULT_PROTECTED_PATTERNS = ("server.py", ".env", "/core")


def protected_match(file_path: Optional[str], patterns: Iterable[str] = DEFAULT_PROTECTED_PATTERNS) -> Optional[str]:
    """Return the first protected pattern found in ``file_path``, if any."""
    if not file_path:
        return None
    for pattern in patterns:
        if pattern and pattern in file_path:
            return pattern
    return None


def is_protected(file_path: Optional[str], patterns: Iterable[str] = DEFAULT_PROTECTED_PATTERNS) -> bool:
    """Missing paths count as protected."""
    if not file_path:
        return True
    return protected_match(file_path, patterns) is not None
