from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Callable

REPO_ROOT = Path(os.environ.get("PROMPTDEX_ROOT", "") or Path(__file__).resolve().parents[2]).resolve()
CONFIG_FILE_RELATIVE_PATH = "configs/config.json"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off", ""}


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_VALUES:
            return True
        if lowered in _FALSE_VALUES:
            return False
    raise ValueError(f"Cannot interpret {value!r} as a boolean.")


def resolve_repo_path(raw: str | Path) -> Path:
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = REPO_ROOT / path
    return path.resolve()


def _load_config_file() -> dict[str, Any]:
    path = REPO_ROOT / CONFIG_FILE_RELATIVE_PATH
    if not path.exists():
        return {}
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        print(f"[warn] Ignoring unreadable config file: {path}", flush=True)
        return {}
    return payload if isinstance(payload, dict) else {}


def _lookup_dotted(payload: dict[str, Any], dotted: str) -> Any:
    node: Any = payload
    for part in dotted.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def env_or_config(
    env_key: str,
    config_path: str,
    default: Any = None,
    cast: Callable[[Any], Any] | None = None,
) -> Any:
    """Resolve a setting from the environment first, then ``configs/config.json``."""
    raw: Any = os.environ.get(env_key)
    if raw is None or str(raw).strip() == "":
        raw = _lookup_dotted(_load_config_file(), config_path) if config_path else None
    if raw is None:
        return default
    if cast is None:
        return raw
    return cast(raw)
