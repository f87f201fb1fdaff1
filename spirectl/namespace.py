"""Matching of namespaces against the configured ignore patterns."""

from __future__ import annotations

import re
from collections.abc import Iterable


def is_ignored(ignored_namespaces: Iterable[re.Pattern[str] | str], namespace: str) -> bool:
    """Return True if any pattern matches anywhere in the namespace name."""
    return any(re.search(pattern, namespace) for pattern in ignored_namespaces)