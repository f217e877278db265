from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from .diff_engine import Diff
from .errors import MalformedInputError
from .models import Dataset, PresetLibrary, utc_now_iso

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1
PRESET_BUNDLE_TYPE = "presets"


class SnapshotStore:
    """JSON snapshot file written through a temp file so readers never see half a bundle."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    def read(self) -> dict[str, Any] | None:
        if not self.path.exists():
            return None
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise MalformedInputError(f"Snapshot {self.path} is unreadable: {exc}") from exc
        if not isinstance(payload, dict):
            raise MalformedInputError(f"Snapshot {self.path} must contain a JSON object.")
        return payload

    def write(self, bundle: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        temp_path.write_text(json.dumps(bundle, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
        temp_path.replace(self.path)

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)


class DebouncedSaver:
    """Trailing debounce: each trigger pushes the pending save ``delay_seconds`` out.

    Until ``start()`` is called, or when the delay is zero, ``trigger()`` saves
    synchronously.
    """

    JOB_ID = "promptdex:snapshot-save"

    def __init__(self, callback: Callable[[], None], delay_seconds: float) -> None:
        self.callback = callback
        self.delay_seconds = max(0.0, float(delay_seconds))
        self.scheduler = BackgroundScheduler(timezone="UTC")
        self._lock = threading.Lock()
        self._pending = False

    @property
    def pending(self) -> bool:
        return self._pending

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()

    def shutdown(self, *, flush: bool = True) -> None:
        if flush:
            self.flush()
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)

    def trigger(self) -> None:
        if self.delay_seconds <= 0 or not self.scheduler.running:
            self._run()
            return
        with self._lock:
            self._pending = True
        run_at = datetime.now(timezone.utc) + timedelta(seconds=self.delay_seconds)
        self.scheduler.add_job(
            func=self._run,
            trigger=DateTrigger(run_date=run_at),
            id=self.JOB_ID,
            replace_existing=True,
            misfire_grace_time=30,
            coalesce=True,
            max_instances=1,
        )

    def flush(self) -> None:
        if self.scheduler.running:
            try:
                self.scheduler.remove_job(self.JOB_ID)
            except JobLookupError:
                pass
        if self._pending:
            self._run()

    def _run(self) -> None:
        with self._lock:
            self._pending = False
        self.callback()


def build_snapshot_bundle(
    *,
    dataset: Dataset | None,
    library: PresetLibrary,
    prompt_text: str = "",
    selected_lang: str | None = None,
    custom_diff: Diff | None = None,
    saved_at: str | None = None,
) -> dict[str, Any]:
    bundle: dict[str, Any] = {"version": SNAPSHOT_VERSION, "savedAt": saved_at or utc_now_iso()}
    if dataset is not None:
        bundle["dataset"] = dataset.to_dict()
    elif custom_diff is not None:
        bundle["customDiff"] = custom_diff.to_dict()
    bundle.update(library.to_bundle())
    bundle["promptText"] = prompt_text
    if selected_lang:
        bundle["selectedLang"] = selected_lang
    return bundle


def build_dictionary_export(diff: Diff, *, saved_at: str | None = None) -> dict[str, Any]:
    return {"version": SNAPSHOT_VERSION, "savedAt": saved_at or utc_now_iso(), "customDiff": diff.to_dict()}


def build_preset_export(library: PresetLibrary, *, saved_at: str | None = None) -> dict[str, Any]:
    bundle = library.to_bundle()
    return {
        "version": SNAPSHOT_VERSION,
        "type": PRESET_BUNDLE_TYPE,
        "savedAt": saved_at or utc_now_iso(),
        "extendedPresets": bundle["extendedPresets"],
        "presetFolders": bundle["presetFolders"],
        "presetManagement": bundle["presetManagement"],
        "presets": bundle["presets"],
    }
