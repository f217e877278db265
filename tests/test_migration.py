from __future__ import annotations

from promptdex.ids import sequential_ids
from promptdex.migration import migrate_legacy_presets
from promptdex.models import ExtendedPreset, Preset, PresetFolder, PresetLibrary, PresetManagement


def _library() -> PresetLibrary:
    return PresetLibrary(
        presets=[
            Preset(name="Daily", text="masterpiece, sky", updated_at="2024-03-01T00:00:00Z"),
            Preset(name="Existing", text="ignored"),
        ],
        extended_presets=[ExtendedPreset(id="preset_x", name="Existing", type="positive", content="kept")],
        folders=[PresetFolder(id="folder_default", name="Inbox")],
        management=PresetManagement(default_folder_id="folder_default"),
    )


def test_migration_converts_unmatched_legacy_presets():
    library = _library()
    created = migrate_legacy_presets(library, id_factory=sequential_ids(), now="2025-01-01T00:00:00Z")

    assert created == 1
    assert library.presets == []
    daily = next(p for p in library.extended_presets if p.name == "Daily")
    assert daily.type == "positive"
    assert daily.content == "masterpiece, sky"
    assert daily.folder_id == "folder_default"
    assert daily.updated_at == "2024-03-01T00:00:00Z"
    assert library.get_preset("preset_x").content == "kept"


def test_migration_is_idempotent():
    once = _library()
    migrate_legacy_presets(once, id_factory=sequential_ids())
    snapshot = [preset.to_dict() for preset in once.extended_presets]

    assert migrate_legacy_presets(once, id_factory=sequential_ids()) == 0
    assert [preset.to_dict() for preset in once.extended_presets] == snapshot


def test_negative_preset_with_same_name_does_not_block_migration():
    library = PresetLibrary(
        presets=[Preset(name="Clean", text="a")],
        extended_presets=[ExtendedPreset(id="preset_n", name="Clean", type="negative", content="lowres")],
    )
    assert migrate_legacy_presets(library, id_factory=sequential_ids()) == 1
    assert sorted(p.type for p in library.extended_presets) == ["negative", "positive"]


def test_missing_default_folder_leaves_preset_unfiled():
    library = PresetLibrary(
        presets=[Preset(name="Loose", text="a")],
        management=PresetManagement(default_folder_id="folder_gone"),
    )
    migrate_legacy_presets(library, id_factory=sequential_ids())
    assert library.extended_presets[0].folder_id is None
