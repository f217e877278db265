from __future__ import annotations

import logging

from .ids import IdFactory, fresh_id
from .models import ExtendedPreset, PresetLibrary, utc_now_iso

logger = logging.getLogger(__name__)


def migrate_legacy_presets(
    library: PresetLibrary,
    *,
    id_factory: IdFactory = fresh_id,
    now: str | None = None,
) -> int:
    """Move legacy name/text presets into the extended collection.

    A legacy preset is converted only when no ``positive`` extended preset of the
    same name exists. The legacy list is emptied afterwards, so a second call has
    nothing to do and returns 0.
    """
    if not library.presets:
        return 0
    now = now or utc_now_iso()
    positive_names = {preset.name for preset in library.extended_presets if preset.type == "positive"}
    default_folder = library.get_folder(library.management.default_folder_id)

    created = 0
    for legacy in library.presets:
        if legacy.name in positive_names:
            continue
        library.extended_presets.append(
            ExtendedPreset(
                id=id_factory("preset"),
                name=legacy.name,
                type="positive",
                content=legacy.text,
                folder_id=default_folder.id if default_folder else None,
                created_at=legacy.updated_at or now,
                updated_at=legacy.updated_at or now,
            )
        )
        positive_names.add(legacy.name)
        created += 1

    skipped = len(library.presets) - created
    library.presets = []
    logger.info("legacy preset migration: created=%s skipped=%s", created, skipped)
    return created
