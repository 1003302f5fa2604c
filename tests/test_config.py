"""Tests for configuration loading (env > YAML > defaults)."""

import pytest

from edit_session.config import Config, _find_config_file, _load_yaml

_ENV_KEYS = [
    "EDIT_SESSION_CONTEXT_LINES",
    "EDIT_SESSION_MAX_HISTORY",
    "EDIT_SESSION_MAX_EDIT_LINES",
    "EDIT_SESSION_CHUNK_SIZE",
    "EDIT_SESSION_LOG_DIR",
    "EDIT_SESSION_METRICS_DIR",
    "EDIT_SESSION_AUTO_APPROVE",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestDefaults:
    def test_builtin_values(self):
        cfg = Config()
        assert cfg.CONTEXT_LINES == 3
        assert cfg.MAX_HISTORY == 100
        assert cfg.MAX_EDIT_LINES == 500
        assert cfg.CHUNK_SIZE == 64
        assert cfg.LOG_DIR == ".edit_session/logs"
        assert cfg.METRICS_DIR == ".edit_session"
        assert cfg.AUTO_APPROVE is False


class TestPriority:
    def test_yaml_overrides_defaults(self):
        cfg = Config({"context_lines": 5, "auto_approve": True})
        assert cfg.CONTEXT_LINES == 5
        assert cfg.AUTO_APPROVE is True

    def test_env_overrides_yaml(self, monkeypatch):
        monkeypatch.setenv("EDIT_SESSION_MAX_HISTORY", "7")
        monkeypatch.setenv("EDIT_SESSION_AUTO_APPROVE", "true")
        cfg = Config({"max_history": 50, "auto_approve": False})
        assert cfg.MAX_HISTORY == 7
        assert cfg.AUTO_APPROVE is True

    def test_invalid_values_rejected(self):
        with pytest.raises(ValueError):
            Config({"chunk_size": 0})
        with pytest.raises(ValueError):
            Config({"max_history": -1})


class TestLoad:
    def test_explicit_path(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text("max_edit_lines: 20\nlog_dir: logs\n", encoding="utf-8")
        cfg = Config.load(str(path))
        assert cfg.MAX_EDIT_LINES == 20
        assert cfg.LOG_DIR == "logs"

    def test_missing_explicit_path_uses_defaults(self, tmp_path):
        assert _find_config_file(str(tmp_path / "nope.yaml")) is None
        assert Config.load(str(tmp_path / "nope.yaml")).CONTEXT_LINES == 3

    def test_found_in_cwd(self, tmp_path, monkeypatch):
        (tmp_path / ".edit_session.yaml").write_text("chunk_size: 8\n", encoding="utf-8")
        monkeypatch.chdir(tmp_path)
        assert Config.load().CHUNK_SIZE == 8

    def test_broken_yaml_is_ignored(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("context_lines: [unclosed\n", encoding="utf-8")
        assert _load_yaml(str(path)) == {}

    def test_non_mapping_yaml_is_ignored(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        assert _load_yaml(str(path)) == {}
