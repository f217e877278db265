from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from ..config import REPO_ROOT, env_or_config, resolve_repo_path

DEFAULT_BASE_PATH = "/promptdex"
DEFAULT_BIND_HOST = "0.0.0.0"
DEFAULT_BIND_PORT = 4830
DEFAULT_STATE_PATH = "cache/webui/snapshot.json"
DEFAULT_BASELINE = "data/sd"
DEFAULT_SAVE_DEBOUNCE_MS = 400
DEFAULT_LOGS_DIR = "logs/webui"


@dataclass(frozen=True)
class WebUISettings:
    bind_host: str
    bind_port: int
    base_path: str
    state_path: Path
    baseline_location: str
    save_debounce_ms: int
    logs_dir: Path

    @property
    def save_delay_seconds(self) -> float:
        return self.save_debounce_ms / 1000.0


def _normalize_base_path(raw: str) -> str:
    """``dex/`` and ``/dex`` both become ``/dex``; a bare ``/`` falls back to the default."""
    trimmed = raw.strip().strip("/")
    return f"/{trimmed}" if trimmed else DEFAULT_BASE_PATH


def _int_env(name: str, default: int, *, min_val: int | None = None, max_val: int | None = None) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        print(f"[webui] WARNING: {name}={raw!r} is not an integer, using {default}", flush=True)
        return default
    clamped = value
    if min_val is not None:
        clamped = max(clamped, min_val)
    if max_val is not None:
        clamped = min(clamped, max_val)
    if clamped != value:
        print(f"[webui] WARNING: {name}={value} is outside the allowed range, using {clamped}", flush=True)
    return clamped


def _resolve_baseline(raw: str) -> str:
    if raw.startswith(("http://", "https://")):
        return raw.rstrip("/")
    return str(resolve_repo_path(raw))


def load_webui_settings() -> WebUISettings:
    bind_host = os.environ.get("WEB_BIND_HOST", DEFAULT_BIND_HOST).strip() or DEFAULT_BIND_HOST
    bind_port = _int_env("WEB_BIND_PORT", DEFAULT_BIND_PORT, min_val=1, max_val=65535)
    base_path = _normalize_base_path(os.environ.get("WEB_BASE_PATH", DEFAULT_BASE_PATH))

    state_raw = os.environ.get("PROMPTDEX_STATE_PATH", DEFAULT_STATE_PATH).strip() or DEFAULT_STATE_PATH
    baseline_raw = str(env_or_config("PROMPTDEX_BASELINE", "baseline.location", DEFAULT_BASELINE)).strip()
    logs_raw = os.environ.get("PROMPTDEX_LOGS_DIR", DEFAULT_LOGS_DIR).strip() or DEFAULT_LOGS_DIR
    save_debounce_ms = _int_env("PROMPTDEX_SAVE_DEBOUNCE_MS", DEFAULT_SAVE_DEBOUNCE_MS, min_val=0, max_val=60_000)

    return WebUISettings(
        bind_host=bind_host,
        bind_port=bind_port,
        base_path=base_path,
        state_path=resolve_repo_path(state_raw),
        baseline_location=_resolve_baseline(baseline_raw or DEFAULT_BASELINE),
        save_debounce_ms=save_debounce_ms,
        logs_dir=(REPO_ROOT / logs_raw).resolve() if not Path(logs_raw).is_absolute() else Path(logs_raw),
    )
