from __future__ import annotations

import re
import threading

from ..errors import PatternCompileError

# Bounded by configuration size, so entries are never evicted.
_REGEX_CACHE: dict[str, re.Pattern[str]] = {}
_LOCK = threading.Lock()


def compile_pattern(source: str) -> re.Pattern[str]:
    """Compile ``source`` once and hand out the same pattern object after that."""
    cached = _REGEX_CACHE.get(source)
    if cached is not None:
        return cached

    try:
        compiled = re.compile(source)
    except re.error as e:
        raise PatternCompileError(source, e) from e

    with _LOCK:
        return _REGEX_CACHE.setdefault(source, compiled)


def cache_size() -> int:
    return len(_REGEX_CACHE)


def clear_cache() -> None:
    with _LOCK:
        _REGEX_CACHE.clear()
