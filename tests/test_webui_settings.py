from __future__ import annotations

from pathlib import Path

from promptdex.webui_server.settings import _int_env, _normalize_base_path, load_webui_settings


def test_int_env_clamps_below_minimum(monkeypatch):
    monkeypatch.setenv("WEB_BIND_PORT", "0")
    result = _int_env("WEB_BIND_PORT", 4830, min_val=1, max_val=65535)
    assert result == 1


def test_int_env_clamps_above_maximum(monkeypatch, capsys):
    monkeypatch.setenv("PROMPTDEX_SAVE_DEBOUNCE_MS", "120000")
    result = _int_env("PROMPTDEX_SAVE_DEBOUNCE_MS", 400, min_val=0, max_val=60_000)
    assert result == 60_000
    assert "[webui] WARNING" in capsys.readouterr().out


def test_int_env_returns_default_when_unset(monkeypatch):
    monkeypatch.delenv("WEB_BIND_PORT", raising=False)
    result = _int_env("WEB_BIND_PORT", 4830, min_val=1, max_val=65535)
    assert result == 4830


def test_base_path_normalization():
    assert _normalize_base_path("promptdex/") == "/promptdex"
    assert _normalize_base_path("/tags") == "/tags"
    assert _normalize_base_path("   ") == "/promptdex"
    assert _normalize_base_path("/") == "/promptdex"


def test_load_settings_from_environment(tmp_path: Path, monkeypatch):
    monkeypatch.setenv("WEB_BIND_PORT", "8080")
    monkeypatch.setenv("WEB_BASE_PATH", "dex")
    monkeypatch.setenv("PROMPTDEX_STATE_PATH", str(tmp_path / "snapshot.json"))
    monkeypatch.setenv("PROMPTDEX_BASELINE", "https://example.test/sd/")
    monkeypatch.setenv("PROMPTDEX_SAVE_DEBOUNCE_MS", "250")
    monkeypatch.setenv("PROMPTDEX_LOGS_DIR", str(tmp_path / "logs"))

    settings = load_webui_settings()
    assert settings.bind_port == 8080
    assert settings.base_path == "/dex"
    assert settings.state_path == (tmp_path / "snapshot.json").resolve()
    assert settings.baseline_location == "https://example.test/sd"
    assert settings.save_delay_seconds == 0.25
    assert settings.logs_dir == tmp_path / "logs"


def test_int_env_ignores_non_numeric_values(monkeypatch, capsys):
    monkeypatch.setenv("WEB_BIND_PORT", "eighty")
    assert _int_env("WEB_BIND_PORT", 4830, min_val=1, max_val=65535) == 4830
    assert "not an integer" in capsys.readouterr().out
