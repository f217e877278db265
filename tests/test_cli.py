from __future__ import annotations

import json
from pathlib import Path

from promptdex.baseline import BaselineSource, load_baseline
from promptdex.cli import main
from promptdex.models import Tag, find_category, find_group

DEFAULT_YAML = """\
- name: Quality
  groups:
    - name: Basic
      tags:
        masterpiece:
        best_quality:
"""


def _baseline_dir(tmp_path: Path) -> Path:
    root = tmp_path / "sd"
    root.mkdir(parents=True, exist_ok=True)
    (root / "default.yaml").write_text(DEFAULT_YAML, encoding="utf-8")
    return root


def _current_file(tmp_path: Path, baseline: Path) -> Path:
    dataset = load_baseline(BaselineSource(str(baseline)))
    basic = find_group(find_category(dataset, "Quality"), "Basic")
    basic.tags.insert(0, Tag(key="ultra_detailed", translation={"en": "ultra_detailed"}))
    basic.tags[1].translation["zh_CN"] = "杰作"
    dataset.add_language("zh_CN")
    path = tmp_path / "current.json"
    path.write_text(json.dumps({"version": 1, "dataset": dataset.to_dict()}), encoding="utf-8")
    return path


def test_diff_then_apply_reproduces_current(tmp_path: Path, capsys):
    baseline = _baseline_dir(tmp_path)
    current = _current_file(tmp_path, baseline)
    diff_path = tmp_path / "out" / "diff.json"

    assert main(["diff", str(baseline), str(current), "--output", str(diff_path)]) == 0
    out = capsys.readouterr().out
    assert "[summary]" in out
    exported = json.loads(diff_path.read_text(encoding="utf-8"))
    group = exported["customDiff"]["categories"][0]["groups"][0]
    assert group["added"] == [{"key": "ultra_detailed", "translation": {"en": "ultra_detailed"}}]

    rebuilt_path = tmp_path / "out" / "rebuilt.json"
    assert main(["apply", str(baseline), str(diff_path), "--output", str(rebuilt_path)]) == 0
    rebuilt = json.loads(rebuilt_path.read_text(encoding="utf-8"))
    keys = [tag["key"] for tag in rebuilt["categories"][0]["groups"][0]["tags"]]
    assert keys == ["ultra_detailed", "masterpiece", "best_quality"]
    assert "zh_CN" in rebuilt["languages"]


def test_check_reports_round_trip(tmp_path: Path, capsys):
    baseline = _baseline_dir(tmp_path)
    current = _current_file(tmp_path, baseline)
    assert main(["check", str(baseline), str(current)]) == 0
    assert "[ok] diff round-trip verified" in capsys.readouterr().out


def test_malformed_input_exits_with_two(tmp_path: Path, capsys):
    baseline = _baseline_dir(tmp_path)
    broken = tmp_path / "broken.json"
    broken.write_text("{nope", encoding="utf-8")
    assert main(["diff", str(baseline), str(broken)]) == 2
    assert main(["apply", str(baseline), str(tmp_path / "missing.json")]) == 2
    assert "[error]" in capsys.readouterr().out


def test_missing_baseline_exits_with_one(tmp_path: Path, capsys):
    empty = tmp_path / "empty"
    empty.mkdir()
    assert main(["check", str(empty), str(empty)]) == 1
    assert "default.yaml" in capsys.readouterr().out


def test_import_presets_and_export_dictionary_use_saved_state(tmp_path: Path, capsys):
    baseline = _baseline_dir(tmp_path)
    state = tmp_path / "state" / "snapshot.json"
    bundle = tmp_path / "presets.json"
    bundle.write_text(
        json.dumps(
            {
                "type": "presets",
                "presetFolders": [{"id": "f1", "name": "Portraits", "parentId": "ghost"}],
                "extendedPresets": [{"name": "Face", "type": "character", "content": "smile", "folderId": "f1"}],
            }
        ),
        encoding="utf-8",
    )

    code = main(["import-presets", str(bundle), "--state", str(state), "--baseline", str(baseline)])
    assert code == 0
    out = capsys.readouterr().out
    assert "[warn] dropped dangling reference" in out
    saved = json.loads(state.read_text(encoding="utf-8"))
    assert [preset["name"] for preset in saved["extendedPresets"]] == ["Face"]
    assert saved["presetFolders"][0]["name"] == "Portraits"

    export_path = tmp_path / "dictionary.json"
    code = main(["export-dictionary", "--output", str(export_path), "--state", str(state), "--baseline", str(baseline)])
    assert code == 0
    assert json.loads(export_path.read_text(encoding="utf-8"))["customDiff"] == {"categories": []}
