from __future__ import annotations

import pytest

from promptdex.diff_engine import Diff, apply_diff, build_diff, datasets_equivalent
from promptdex.errors import MalformedInputError
from promptdex.ids import sequential_ids
from promptdex.models import Category, Dataset, Group, Tag, find_category, find_group


def _tag(key: str, **translations: str) -> Tag:
    return Tag(key=key, translation={"en": key, **translations})


def _base() -> Dataset:
    return Dataset(
        categories=[
            Category(
                id="cat_1",
                name="Quality",
                groups=[
                    Group(id="grp_1", name="Basic", tags=[Tag(key="masterpiece"), Tag(key="blurry", hidden=True)]),
                ],
            ),
            Category(
                id="cat_2",
                name="Scene",
                groups=[
                    Group(id="grp_2", name="Sky", color="#0af", tags=[_tag("blue_sky", zh_CN="蓝天"), _tag("cloud")]),
                    Group(id="grp_3", name="Light", tags=[_tag("sunset"), _tag("backlight")]),
                ],
            ),
        ],
        languages=["en", "zh_CN"],
    )


def test_identical_datasets_produce_empty_diff():
    base = _base()
    diff = build_diff(base, base.clone())
    assert diff.categories == []
    assert diff.to_dict() == {"categories": []}


def test_added_tag_and_reorder_scenario():
    base = _base()
    current = base.clone()
    group = current.categories[0].groups[0]
    group.tags.append(Tag(key="best_quality"))
    group.tags = [group.tags[2], group.tags[0], group.tags[1]]

    diff = build_diff(base, current)
    assert diff.to_dict() == {
        "categories": [
            {
                "name": "Quality",
                "groups": [
                    {
                        "name": "Basic",
                        "added": [{"key": "best_quality"}],
                        "order": ["best_quality", "masterpiece", "blurry"],
                    }
                ],
            }
        ]
    }


def test_updated_entry_carries_only_changed_fields():
    base = _base()
    current = base.clone()
    sky = find_group(find_category(current, "Scene"), "Sky")
    sky.tags[0].translation["zh_CN"] = "湛蓝天空"
    sky.tags[1].hidden = True

    entry = build_diff(base, current).categories[0].groups[0]
    assert [update.to_dict() for update in entry.updated] == [
        {"key": "blue_sky", "translation": {"zh_CN": "湛蓝天空"}},
        {"key": "cloud", "hidden": True},
    ]
    assert entry.order is None
    assert entry.color is None


def test_round_trip_after_mixed_edits():
    base = _base()
    current = base.clone()
    basic = current.categories[0].groups[0]
    basic.tags.insert(0, _tag("best_quality", zh_CN="最佳质量"))
    basic.tags = [tag for tag in basic.tags if tag.key != "blurry"]
    scene = find_category(current, "Scene")
    sky = find_group(scene, "Sky")
    sky.color = None
    sky.tags.reverse()
    sky.tags[0].translation["es_ES"] = "nube"
    current.add_language("es_ES")
    scene.groups = [group for group in scene.groups if group.name != "Light"]
    current.categories.append(
        Category(id="cat_9", name="Custom", groups=[Group(id="grp_9", name="Mine", tags=[_tag("my_tag")])])
    )

    diff = build_diff(base, current)
    rebuilt = apply_diff(base.clone(), diff, id_factory=sequential_ids(100))

    assert datasets_equivalent(rebuilt, current)
    assert "es_ES" in rebuilt.languages
    assert find_group(find_category(rebuilt, "Scene"), "Sky").color is None


def test_round_trip_through_json_payload():
    base = _base()
    current = base.clone()
    current.categories[1].groups[1].tags.append(_tag("rim_light"))
    payload = build_diff(base, current).to_dict()
    rebuilt = apply_diff(base.clone(), Diff.from_dict(payload))
    assert datasets_equivalent(rebuilt, current)


def test_removed_category_round_trip():
    base = _base()
    current = base.clone()
    current.categories = [category for category in current.categories if category.name != "Scene"]
    diff = build_diff(base, current)
    assert diff.to_dict()["categories"] == [{"name": "Scene", "removedGroups": ["Sky", "Light"]}]
    rebuilt = apply_diff(base.clone(), diff)
    assert [category.name for category in rebuilt.categories] == ["Quality"]


def test_apply_never_reuses_payload_ids():
    base = _base()
    diff = Diff.from_dict(
        {"categories": [{"name": "New", "addedGroups": [{"id": "grp_1", "name": "G", "tags": [{"key": "x"}]}]}]}
    )
    result = apply_diff(base, diff, id_factory=sequential_ids(50))
    created = find_category(result, "New")
    assert created.id == "cat_50"
    assert created.groups[0].id == "grp_50"


def test_stale_update_is_skipped():
    base = _base()
    diff = Diff.from_dict(
        {
            "categories": [
                {
                    "name": "Quality",
                    "groups": [
                        {
                            "name": "Basic",
                            "updated": [
                                {"key": "gone", "hidden": True},
                                {"key": "masterpiece", "translation": {"zh_CN": "杰作"}},
                            ],
                        }
                    ],
                }
            ]
        }
    )
    result = apply_diff(base, diff)
    tags = result.categories[0].groups[0].tags
    assert [tag.key for tag in tags] == ["masterpiece", "blurry"]
    assert tags[0].translation == {"zh_CN": "杰作"}


def test_stale_order_keeps_unlisted_tags():
    base = _base()
    diff = Diff.from_dict(
        {"categories": [{"name": "Scene", "groups": [{"name": "Light", "order": ["backlight", "missing"]}]}]}
    )
    result = apply_diff(base, diff)
    light = find_group(find_category(result, "Scene"), "Light")
    assert [tag.key for tag in light.tags] == ["backlight", "sunset"]


def test_apply_order_runs_after_add_and_remove():
    base = _base()
    diff = Diff.from_dict(
        {
            "categories": [
                {
                    "name": "Quality",
                    "groups": [
                        {
                            "name": "Basic",
                            "added": [{"key": "best_quality"}],
                            "removed": ["masterpiece"],
                            "order": ["blurry", "best_quality"],
                        }
                    ],
                }
            ]
        }
    )
    result = apply_diff(base, diff)
    assert [tag.key for tag in result.categories[0].groups[0].tags] == ["blurry", "best_quality"]


def test_apply_creates_missing_group_with_diff_color():
    base = _base()
    diff = Diff.from_dict(
        {"categories": [{"name": "Quality", "groups": [{"name": "Extra", "color": "#123", "added": [{"key": "a"}]}]}]}
    )
    result = apply_diff(base, diff)
    extra = find_group(result.categories[0], "Extra")
    assert extra.color == "#123"
    assert [tag.key for tag in extra.tags] == ["a"]


def test_translation_update_preserves_unmentioned_languages():
    base = _base()
    diff = Diff.from_dict(
        {
            "categories": [
                {"name": "Scene", "groups": [{"name": "Sky", "updated": [{"key": "blue_sky", "translation": {"es_ES": "cielo"}}]}]}
            ]
        }
    )
    result = apply_diff(base, diff)
    tag = find_group(find_category(result, "Scene"), "Sky").tags[0]
    assert tag.translation == {"en": "blue_sky", "zh_CN": "蓝天", "es_ES": "cielo"}
    assert "es_ES" in result.languages


def test_build_diff_does_not_alias_current():
    base = _base()
    current = base.clone()
    current.categories[0].groups[0].tags.append(Tag(key="new"))
    diff = build_diff(base, current)
    current.categories[0].groups[0].tags[-1].key = "mutated"
    assert diff.categories[0].groups[0].added[0].key == "new"


def test_malformed_diff_payload_is_rejected():
    with pytest.raises(MalformedInputError):
        Diff.from_dict({"categories": "nope"})
    with pytest.raises(MalformedInputError):
        Diff.from_dict("[]")


def test_hidden_flag_accepts_boolean_strings_only():
    diff = Diff.from_dict(
        {"categories": [{"name": "Scene", "groups": [{"name": "Sky", "updated": [{"key": "cloud", "hidden": "false"}]}]}]}
    )
    assert diff.categories[0].groups[0].updated[0].hidden is False

    with pytest.raises(MalformedInputError):
        Diff.from_dict({"categories": [{"name": "Scene", "groups": [{"name": "Sky", "updated": [{"key": "cloud", "hidden": "maybe"}]}]}]})


def test_summary_counts():
    base = _base()
    current = base.clone()
    current.categories[0].groups[0].tags.append(Tag(key="x"))
    summary = build_diff(base, current).summary()
    assert summary["categories"] == 1
    assert summary["added_tags"] == 1
    assert summary["reordered_groups"] == 1
