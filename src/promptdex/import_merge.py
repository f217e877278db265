"""Merge an externally supplied preset/folder bundle into the local library.

Identity rules:

* folders match by ``name``; a matched folder keeps its local id and only its
  description/color are refreshed,
* extended presets match by the ``(name, type)`` pair,
* foreign ids never leak into the local library: every foreign folder id is
  translated through an id map built in a first pass over all folders, so a
  child listed before its parent still links correctly,
* references that resolve to nothing are dropped to ``None``.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any

from .errors import MalformedInputError
from .folders import drop_dangling_references, would_create_cycle
from .ids import IdFactory, fresh_id
from .migration import migrate_legacy_presets
from .models import ExtendedPreset, Preset, PresetFolder, PresetLibrary, utc_now_iso

logger = logging.getLogger(__name__)

BUNDLE_TYPE = "presets"
BUNDLE_ARRAY_KEYS: tuple[str, ...] = ("extendedPresets", "presetFolders")


@dataclass
class MergeReport:
    source: str
    folders_created: int = 0
    folders_matched: int = 0
    presets_created: int = 0
    presets_updated: int = 0
    legacy_imported: int = 0
    dropped_references: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "folders_created": self.folders_created,
            "folders_matched": self.folders_matched,
            "presets_created": self.presets_created,
            "presets_updated": self.presets_updated,
            "legacy_imported": self.legacy_imported,
            "dropped_references": list(self.dropped_references),
        }


def parse_payload(raw: str | bytes | dict[str, Any]) -> dict[str, Any]:
    if isinstance(raw, dict):
        return raw
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as exc:
        raise MalformedInputError(f"Import payload is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise MalformedInputError("Import payload must be a JSON object.")
    return payload


def detect_preset_payload(payload: Any) -> str:
    """Return ``"bundle"`` or ``"legacy"``; anything else is rejected."""
    if not isinstance(payload, dict):
        raise MalformedInputError("Preset import payload must be an object.")
    if payload.get("type") == BUNDLE_TYPE:
        return "bundle"
    if any(isinstance(payload.get(key), list) for key in BUNDLE_ARRAY_KEYS):
        return "bundle"
    if isinstance(payload.get("presets"), list):
        return "legacy"
    raise MalformedInputError("Payload is neither a preset bundle nor a legacy preset list.")


def _array(payload: dict[str, Any], key: str) -> list[Any]:
    value = payload.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise MalformedInputError(f"'{key}' must be an array.")
    return value


def _foreign_folders(items: list[Any], id_factory: IdFactory) -> list[PresetFolder]:
    out: list[PresetFolder] = []
    for item in items:
        folder = PresetFolder.from_dict(item, id_factory=lambda _prefix: id_factory("foreign"))
        if folder is not None:
            out.append(folder)
    return out


def _reconcile_folders(
    working: PresetLibrary,
    foreign_folders: list[PresetFolder],
    report: MergeReport,
    id_factory: IdFactory,
) -> dict[str, str]:
    id_map: dict[str, str] = {}
    local_by_name = {folder.name: folder for folder in working.folders}
    staged: list[tuple[PresetFolder, str | None]] = []
    matched: set[str] = set()

    # Pass 1: map every foreign id before anything is created.
    for foreign in foreign_folders:
        local = local_by_name.get(foreign.name)
        if local is not None:
            id_map[foreign.id] = local.id
            if local.id in matched or any(local is new for new, _parent in staged):
                continue
            matched.add(local.id)
            if foreign.description is not None:
                local.description = foreign.description
            if foreign.color is not None:
                local.color = foreign.color
            report.folders_matched += 1
            continue
        created = PresetFolder(
            id=id_factory("folder"),
            name=foreign.name,
            description=foreign.description,
            color=foreign.color,
        )
        id_map[foreign.id] = created.id
        local_by_name[created.name] = created
        staged.append((created, foreign.parent_id))

    # Pass 2: materialize, then link parents through the completed map.
    for created, _parent in staged:
        working.folders.append(created)
        report.folders_created += 1
    for created, foreign_parent in staged:
        if not foreign_parent:
            continue
        parent_id = id_map.get(foreign_parent)
        if parent_id is None:
            report.dropped_references.append(f"folder:{created.name}.parentId={foreign_parent}")
            continue
        if would_create_cycle(working.folders, created.id, parent_id):
            report.dropped_references.append(f"folder:{created.name}.parentId={foreign_parent}")
            continue
        created.parent_id = parent_id
    return id_map


def _merge_extended_presets(
    working: PresetLibrary,
    items: list[Any],
    id_map: dict[str, str],
    report: MergeReport,
    id_factory: IdFactory,
    now: str,
) -> None:
    index = {(preset.name, preset.type): preset for preset in working.extended_presets}
    for item in items:
        foreign = ExtendedPreset.from_dict(item, id_factory=lambda _prefix: id_factory("foreign"))
        if foreign is None:
            continue
        folder_id = id_map.get(foreign.folder_id) if foreign.folder_id else None
        if foreign.folder_id and folder_id is None:
            report.dropped_references.append(f"preset:{foreign.name}.folderId={foreign.folder_id}")

        existing = index.get((foreign.name, foreign.type))
        if existing is not None:
            existing.content = foreign.content
            existing.description = foreign.description
            existing.tags = list(foreign.tags)
            existing.folder_id = folder_id or existing.folder_id
            existing.updated_at = now
            report.presets_updated += 1
            continue

        created = ExtendedPreset(
            id=id_factory("preset"),
            name=foreign.name,
            type=foreign.type,
            content=foreign.content,
            description=foreign.description,
            tags=list(foreign.tags),
            folder_id=folder_id,
            created_at=now,
            updated_at=now,
        )
        working.extended_presets.append(created)
        index[(created.name, created.type)] = created
        report.presets_created += 1


def _merge_legacy_collection(working: PresetLibrary, items: list[Any]) -> None:
    by_name = {preset.name: preset for preset in working.presets}
    for item in items:
        incoming = Preset.from_dict(item)
        if incoming is None:
            continue
        existing = by_name.get(incoming.name)
        if existing is None:
            working.presets.append(incoming)
            by_name[incoming.name] = incoming
        else:
            existing.text = incoming.text
            existing.updated_at = incoming.updated_at


def _import_legacy_payload(
    working: PresetLibrary,
    items: list[Any],
    report: MergeReport,
    id_factory: IdFactory,
    now: str,
) -> None:
    default_folder = working.get_folder(working.management.default_folder_id)
    for item in items:
        legacy = Preset.from_dict(item)
        if legacy is None:
            continue
        working.extended_presets.append(
            ExtendedPreset(
                id=id_factory("preset"),
                name=legacy.name,
                type="positive",
                content=legacy.text,
                folder_id=default_folder.id if default_folder else None,
                created_at=now,
                updated_at=now,
            )
        )
        report.legacy_imported += 1


def _commit(library: PresetLibrary, working: PresetLibrary) -> None:
    library.presets = working.presets
    library.extended_presets = working.extended_presets
    library.folders = working.folders
    library.management = working.management


def merge_preset_bundle(
    library: PresetLibrary,
    payload: Any,
    *,
    id_factory: IdFactory = fresh_id,
    now: str | None = None,
) -> MergeReport:
    """Merge ``payload`` into ``library`` in place.

    Raises ``MalformedInputError`` without touching ``library`` when the
    payload matches neither the bundle nor the legacy shape.
    """
    kind = detect_preset_payload(payload)
    now = now or utc_now_iso()
    working = library.clone()
    report = MergeReport(source=kind)

    if kind == "legacy":
        _import_legacy_payload(working, _array(payload, "presets"), report, id_factory, now)
        _commit(library, working)
        logger.info("imported %s legacy preset(s)", report.legacy_imported)
        return report

    folders_raw = _array(payload, "presetFolders")
    presets_raw = _array(payload, "extendedPresets")
    legacy_raw = _array(payload, "presets")
    management_raw = payload.get("presetManagement")

    id_map = _reconcile_folders(working, _foreign_folders(folders_raw, id_factory), report, id_factory)
    _merge_extended_presets(working, presets_raw, id_map, report, id_factory, now)

    if isinstance(management_raw, dict) and not working.management.default_folder_id:
        foreign_default = str(management_raw.get("defaultFolderId") or "").strip()
        if foreign_default and foreign_default in id_map:
            working.management.default_folder_id = id_map[foreign_default]

    if legacy_raw:
        _merge_legacy_collection(working, legacy_raw)
        report.legacy_imported = migrate_legacy_presets(working, id_factory=id_factory, now=now)

    report.dropped_references.extend(drop_dangling_references(working))
    _commit(library, working)
    logger.info(
        "preset bundle merged: folders created=%s matched=%s presets created=%s updated=%s dropped=%s",
        report.folders_created,
        report.folders_matched,
        report.presets_created,
        report.presets_updated,
        len(report.dropped_references),
    )
    return report
