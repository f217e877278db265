from __future__ import annotations

import secrets
import string
from typing import Callable

_ALPHABET = string.ascii_lowercase + string.digits

IdFactory = Callable[[str], str]


def fresh_id(prefix: str) -> str:
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(7))
    return f"{prefix}_{suffix}"


def sequential_ids(start: int = 1) -> IdFactory:
    """Deterministic factory: ``grp_1``, ``grp_2``, ... with one counter per prefix."""
    counters: dict[str, int] = {}

    def _next(prefix: str) -> str:
        value = counters.get(prefix, start)
        counters[prefix] = value + 1
        return f"{prefix}_{value}"

    return _next
