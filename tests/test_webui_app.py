from __future__ import annotations

import importlib
import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from promptdex.errors import BaselineUnavailableError

API = "/promptdex/api/v1"

DEFAULT_YAML = """\
- name: Quality
  groups:
    - name: Basic
      tags:
        masterpiece:
        best_quality:
- name: Scene
  groups:
    - name: Sky
      color: "#38bdf8"
      tags:
        blue_sky:
        cloud:
"""

ZH_YAML = """\
- name: 质量
  groups:
    - name: 基础
      tags:
        masterpiece: 杰作
- name: 场景
  groups:
    - name: 天空
      tags:
        blue_sky: 蓝天
"""


def _seed_baseline(root: Path) -> Path:
    root.mkdir(parents=True, exist_ok=True)
    (root / "default.yaml").write_text(DEFAULT_YAML, encoding="utf-8")
    (root / "zh_CN.yaml").write_text(ZH_YAML, encoding="utf-8")
    return root


def _create_app(tmp_path: Path, monkeypatch, *, baseline: Path | None = None):
    monkeypatch.setenv("PROMPTDEX_BASELINE", str(baseline or _seed_baseline(tmp_path / "sd")))
    monkeypatch.setenv("PROMPTDEX_STATE_PATH", str(tmp_path / "state" / "snapshot.json"))
    monkeypatch.setenv("PROMPTDEX_LOGS_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("PROMPTDEX_SAVE_DEBOUNCE_MS", "0")
    monkeypatch.setenv("WEB_BASE_PATH", "/promptdex")

    app_module = importlib.import_module("promptdex.webui_server.app")
    importlib.reload(app_module)
    return app_module.create_app()


def _group_id(client: TestClient, category: str, group: str) -> str:
    dictionary = client.get(f"{API}/dictionary").json()
    found = next(item for item in dictionary["categories"] if item["name"] == category)
    return next(item["id"] for item in found["groups"] if item["name"] == group)


def test_health_and_dictionary_browsing(tmp_path: Path, monkeypatch):
    app = _create_app(tmp_path, monkeypatch)

    with TestClient(app) as client:
        redirect = client.get("/", follow_redirects=False)
        assert redirect.status_code == 307

        health = client.get(f"{API}/health")
        assert health.status_code == 200
        body = health.json()
        assert body["ok"] is True
        assert body["categories"] == 2
        assert body["tags"] == 4
        assert body["languages"] == ["en", "zh_CN"]

        dictionary = client.get(f"{API}/dictionary").json()
        assert [item["name"] for item in dictionary["categories"]] == ["Quality", "Scene"]
        sky = dictionary["categories"][1]["groups"][0]
        assert sky["tag_count"] == 2
        assert "tags" not in sky
        assert dictionary["selection"]["lang"] == "zh_CN"

        selection = client.post(f"{API}/dictionary/select", json={"category_index": 1, "search": "蓝"})
        assert selection.status_code == 200
        assert selection.json()["group_id"] == sky["id"]

        tags = client.get(f"{API}/dictionary/tags").json()
        assert [item["key"] for item in tags["items"]] == ["blue_sky"]

        out_of_range = client.post(f"{API}/dictionary/select", json={"category_index": 9})
        assert out_of_range.status_code == 422


def test_dictionary_edits_show_up_in_diff_and_survive_restart(tmp_path: Path, monkeypatch):
    app = _create_app(tmp_path, monkeypatch)

    with TestClient(app) as client:
        basic_id = _group_id(client, "Quality", "Basic")

        created = client.post(f"{API}/dictionary/tags", json={"group_id": basic_id, "key": "ultra_detailed"})
        assert created.status_code == 201
        duplicate = client.post(f"{API}/dictionary/tags", json={"group_id": basic_id, "key": "ultra_detailed"})
        assert duplicate.status_code == 422
        missing = client.post(f"{API}/dictionary/tags", json={"group_id": "grp_missing", "key": "x"})
        assert missing.status_code == 404

        updated = client.patch(
            f"{API}/dictionary/tags",
            json={"group_id": basic_id, "key": "ultra_detailed", "lang": "zh_CN", "translation": "超精细"},
        )
        assert updated.status_code == 200
        assert updated.json()["translation"]["zh_CN"] == "超精细"

        removed = client.request("DELETE", f"{API}/dictionary/tags", json={"group_id": basic_id, "key": "best_quality"})
        assert removed.status_code == 200

        mapping = client.post(f"{API}/dictionary/mappings", json={"key": "neon", "lang": "zh_CN", "value": "霓虹"})
        assert mapping.status_code == 200

        diff = client.get(f"{API}/dictionary/diff").json()
        assert diff["summary"]["added_tags"] == 1
        assert diff["summary"]["added_groups"] == 1
        assert diff["summary"]["removed_tags"] == 1

        exported = client.get(f"{API}/dictionary/export").json()
        assert set(exported) == {"version", "savedAt", "customDiff"}

    assert (tmp_path / "state" / "snapshot.json").exists()

    restarted = _create_app(tmp_path, monkeypatch, baseline=tmp_path / "sd")
    with TestClient(restarted) as client:
        names = [item["name"] for item in client.get(f"{API}/dictionary").json()["categories"]]
        assert names == ["Quality", "Scene", "Custom"]

        reset = client.post(f"{API}/dictionary/reset")
        assert [item["name"] for item in reset.json()["categories"]] == ["Quality", "Scene"]

        reimported = client.post(f"{API}/dictionary/import", json={"bundle": exported})
        assert reimported.status_code == 200
        assert [item["name"] for item in reimported.json()["categories"]] == ["Quality", "Scene", "Custom"]


def test_tag_edit_targets_the_requested_group_when_keys_repeat(tmp_path: Path, monkeypatch):
    app = _create_app(tmp_path, monkeypatch)

    with TestClient(app) as client:
        basic_id = _group_id(client, "Quality", "Basic")
        sky_id = _group_id(client, "Scene", "Sky")
        assert client.post(f"{API}/dictionary/tags", json={"group_id": basic_id, "key": "cloud"}).status_code == 201

        edited = client.patch(
            f"{API}/dictionary/tags",
            json={"group_id": sky_id, "key": "cloud", "lang": "zh_CN", "translation": "云", "toggle_hidden": True},
        )
        assert edited.status_code == 200
        assert edited.json()["translation"]["zh_CN"] == "云"
        assert edited.json()["hidden"] is True

        rejected = client.patch(
            f"{API}/dictionary/tags",
            json={"group_id": sky_id, "key": "cloud", "new_key": "blue_sky", "lang": "zh_CN", "translation": "乌云"},
        )
        assert rejected.status_code == 422

        client.post(f"{API}/dictionary/select", json={"category_index": 1})
        sky_tags = {item["key"]: item for item in client.get(f"{API}/dictionary/tags").json()["items"]}
        assert sky_tags["cloud"]["translation"]["zh_CN"] == "云"
        assert sky_tags["blue_sky"]["translation"]["zh_CN"] == "蓝天"

        client.post(f"{API}/dictionary/select", json={"category_index": 0})
        basic_tags = {item["key"]: item for item in client.get(f"{API}/dictionary/tags").json()["items"]}
        assert basic_tags["cloud"]["translation"]["zh_CN"] == "cloud"
        assert "hidden" not in basic_tags["cloud"]


def test_malformed_imports_are_rejected(tmp_path: Path, monkeypatch):
    app = _create_app(tmp_path, monkeypatch)

    with TestClient(app) as client:
        no_dictionary = client.post(f"{API}/dictionary/import", json={"bundle": {"presets": []}})
        assert no_dictionary.status_code == 422

        bad_diff = client.post(f"{API}/dictionary/import", json={"bundle": {"customDiff": {"categories": "x"}}})
        assert bad_diff.status_code == 422

        unknown_presets = client.post(f"{API}/presets/import", json={"bundle": {"folders": []}})
        assert unknown_presets.status_code == 422

        not_an_object = client.post(f"{API}/presets/import", json={"bundle": ["presets"]})
        assert not_an_object.status_code == 422

        assert client.get(f"{API}/health").json()["tags"] == 4


def test_editor_routes(tmp_path: Path, monkeypatch):
    app = _create_app(tmp_path, monkeypatch)

    with TestClient(app) as client:
        text = client.put(f"{API}/editor/text", json={"text": "masterpiece，blue_sky,,cloud"})
        assert text.json()["tokens"] == ["masterpiece", "blue_sky", "cloud"]

        wrapped = client.post(f"{API}/editor/tokens/1/wrap", json={"kind": "()"})
        assert wrapped.json()["tokens"][1] == "(blue_sky)"
        assert client.post(f"{API}/editor/tokens/9/wrap", json={"kind": "()"}).status_code == 404
        assert client.post(f"{API}/editor/tokens/0/wrap", json={"kind": "||"}).status_code == 422

        translated = client.get(f"{API}/editor/translate", params={"lang": "zh_CN"}).json()
        assert [item["translation"] for item in translated["items"]] == ["杰作", "蓝天", "cloud"]
        assert translated["items"][1]["wrapperCount"] == 1

        unwrapped = client.post(f"{API}/editor/tokens/1/unwrap")
        assert unwrapped.json()["tokens"][1] == "blue_sky"

        toggled = client.post(f"{API}/editor/toggle-separators")
        assert toggled.json()["text"] == "masterpiece, blue sky, cloud"

        suggestions = client.get(f"{API}/editor/suggestions", params={"prefix": "sky"}).json()
        assert suggestions["items"] == ["blue_sky"]


def test_presets_and_folders(tmp_path: Path, monkeypatch):
    app = _create_app(tmp_path, monkeypatch)

    with TestClient(app) as client:
        client.put(f"{API}/editor/text", json={"text": "masterpiece, blue_sky"})

        folder = client.post(f"{API}/folders", json={"name": "Characters", "color": "#f00"})
        assert folder.status_code == 201
        folder_id = folder.json()["id"]
        assert client.post(f"{API}/folders", json={"name": "Characters"}).status_code == 422

        default = client.put(f"{API}/folders/default", json={"folder_id": folder_id})
        assert default.json()["defaultFolderId"] == folder_id

        preset = client.post(f"{API}/presets", json={"name": "Sky", "tags": ["outdoor"]})
        assert preset.status_code == 201
        preset_body = preset.json()
        assert preset_body["content"] == "masterpiece, blue_sky"
        assert preset_body["folderId"] == folder_id
        assert client.post(f"{API}/presets", json={"name": "Sky"}).status_code == 422
        assert client.post(f"{API}/presets", json={"name": "Bad", "type": "nope"}).status_code == 422

        patched = client.patch(f"{API}/presets/{preset_body['id']}", json={"content": "cloud"})
        assert patched.json()["content"] == "cloud"
        applied = client.post(f"{API}/presets/{preset_body['id']}/apply")
        assert applied.json()["tokens"] == ["cloud"]

        listed = client.get(f"{API}/presets", params={"q": "outdoor"}).json()
        assert [item["id"] for item in listed["items"]] == [preset_body["id"]]

        legacy = client.post(f"{API}/presets/legacy", json={"name": "Quick"})
        assert legacy.status_code == 201
        assert client.get(f"{API}/presets/legacy").json()["items"][0]["text"] == "cloud"
        assert client.request("DELETE", f"{API}/presets/legacy", params={"name": "Quick"}).status_code == 200

        exported = client.get(f"{API}/presets/export").json()
        assert exported["type"] == "presets"

        report = client.post(
            f"{API}/presets/import",
            json={
                "bundle": {
                    "type": "presets",
                    "presetFolders": [{"id": "remote-1", "name": "Characters"}, {"id": "remote-2", "name": "Heroes", "parentId": "remote-1"}],
                    "extendedPresets": [{"name": "Knight", "type": "character", "content": "armor", "folderId": "remote-2"}],
                }
            },
        )
        assert report.status_code == 200
        assert report.json()["folders_matched"] == 1
        assert report.json()["folders_created"] == 1

        folders = client.get(f"{API}/folders").json()["items"]
        heroes = next(item for item in folders if item["name"] == "Heroes")
        assert heroes["parentId"] == folder_id
        assert heroes["path"] == ["Characters", "Heroes"]

        cycle = client.patch(f"{API}/folders/{folder_id}", json={"parent_id": heroes["id"]})
        assert cycle.status_code == 422

        deleted = client.delete(f"{API}/folders/{folder_id}")
        assert deleted.status_code == 200
        remaining = {item["name"]: item for item in deleted.json()["items"]}
        assert "parentId" not in remaining["Heroes"]
        assert client.delete(f"{API}/presets/{preset_body['id']}").status_code == 200
        assert client.delete(f"{API}/presets/{preset_body['id']}").status_code == 404

    saved = json.loads((tmp_path / "state" / "snapshot.json").read_text(encoding="utf-8"))
    assert any(item["name"] == "Knight" for item in saved["extendedPresets"])


def test_missing_baseline_aborts_startup(tmp_path: Path, monkeypatch):
    empty = tmp_path / "empty"
    empty.mkdir()
    app = _create_app(tmp_path, monkeypatch, baseline=empty)
    with pytest.raises(BaselineUnavailableError):
        with TestClient(app):
            pass
