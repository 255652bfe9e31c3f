"""Tests for config file support."""
import os

import pytest
from unittest.mock import patch


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Point HOME and cwd at empty temp dirs and clear ENTRYSIM_* vars."""
    home = tmp_path / "home"
    work = tmp_path / "work"
    home.mkdir()
    work.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(work)
    for key in list(os.environ):
        if key.startswith("ENTRYSIM_"):
            monkeypatch.delenv(key)
    return home, work


class TestConfigLoad:
    def test_load_empty_when_no_file(self):
        from entrysim.config import load_config
        with patch("pathlib.Path.is_file", return_value=False):
            config = load_config()
        assert config == {}

    def test_load_user_config(self, isolated):
        from entrysim.config import load_config
        home, _ = isolated
        (home / ".entrysim.yaml").write_text("threshold: 0.7\nworkers: 8\n")
        config = load_config()
        assert config == {"threshold": 0.7, "workers": 8}

    def test_project_overrides_user(self, isolated):
        from entrysim.config import load_config
        home, work = isolated
        (home / ".entrysim.yaml").write_text("threshold: 0.7\nworkers: 8\n")
        (work / "entrysim.yaml").write_text("threshold: 0.9\n")
        config = load_config()
        assert config["threshold"] == 0.9
        assert config["workers"] == 8

    def test_dashes_converted_to_underscores(self, isolated):
        from entrysim.config import load_config
        _, work = isolated
        (work / "entrysim.yaml").write_text("per-feed: true\ndry-run: yes\n")
        config = load_config()
        assert config.get("per_feed") is True
        assert config.get("dry_run") is True

    def test_broken_yaml_is_skipped(self, isolated):
        from entrysim.config import load_config
        _, work = isolated
        (work / "entrysim.yaml").write_text("threshold: [unclosed\n")
        assert load_config() == {}


class TestEnvConfig:
    def test_typed_values(self, isolated, monkeypatch):
        from entrysim.config import load_env_config
        monkeypatch.setenv("ENTRYSIM_THRESHOLD", "0.65")
        monkeypatch.setenv("ENTRYSIM_WORKERS", "3")
        monkeypatch.setenv("ENTRYSIM_PER_FEED", "yes")
        monkeypatch.setenv("ENTRYSIM_DB", "/tmp/x.db")
        config = load_env_config()
        assert config == {"threshold": 0.65, "workers": 3, "per_feed": True, "db": "/tmp/x.db"}

    def test_invalid_numbers_ignored(self, isolated, monkeypatch):
        from entrysim.config import load_env_config
        monkeypatch.setenv("ENTRYSIM_WORKERS", "many")
        monkeypatch.setenv("ENTRYSIM_TIMEOUT", "soon")
        assert load_env_config() == {}

    def test_unknown_keys_ignored(self, isolated, monkeypatch):
        from entrysim.config import load_env_config
        monkeypatch.setenv("ENTRYSIM_COLOR", "blue")
        assert load_env_config() == {}


class TestApplyDefaults:
    def test_config_fills_unset_args(self, isolated):
        from entrysim.cli import build_parser
        from entrysim.config import apply_config_defaults
        home, _ = isolated
        (home / ".entrysim.yaml").write_text("threshold: 0.8\nper-feed: true\ntf: normalized\n")
        parser = build_parser()
        args = apply_config_defaults(parser, parser.parse_args([]))
        assert args.threshold == 0.8
        assert args.per_feed is True
        assert args.tf == "normalized"

    def test_config_doesnt_override_explicit_args(self, isolated):
        from entrysim.cli import build_parser
        from entrysim.config import apply_config_defaults
        home, _ = isolated
        (home / ".entrysim.yaml").write_text("threshold: 0.8\n")
        parser = build_parser()
        args = apply_config_defaults(parser, parser.parse_args(["-t", "0.3"]))
        assert args.threshold == 0.3

    def test_env_beats_file(self, isolated, monkeypatch):
        from entrysim.cli import build_parser
        from entrysim.config import apply_config_defaults
        home, _ = isolated
        (home / ".entrysim.yaml").write_text("workers: 2\n")
        monkeypatch.setenv("ENTRYSIM_WORKERS", "9")
        parser = build_parser()
        args = apply_config_defaults(parser, parser.parse_args([]))
        assert args.workers == 9

    def test_invalid_value_ignored(self, isolated):
        from entrysim.cli import build_parser
        from entrysim.config import apply_config_defaults
        home, _ = isolated
        (home / ".entrysim.yaml").write_text("workers: lots\n")
        parser = build_parser()
        args = apply_config_defaults(parser, parser.parse_args([]))
        assert args.workers == 5


class TestStarterConfig:
    def test_writes_starter(self, isolated):
        from entrysim.config import generate_starter_config
        home, _ = isolated
        path = generate_starter_config()
        assert path == home / ".entrysim.yaml"
        assert "threshold" in path.read_text()

    def test_does_not_overwrite(self, isolated):
        from entrysim.config import generate_starter_config
        home, _ = isolated
        (home / ".entrysim.yaml").write_text("workers: 2\n")
        path = generate_starter_config()
        assert path.name == ".entrysim.yaml.new"
        assert (home / ".entrysim.yaml").read_text() == "workers: 2\n"

    def test_starter_parses_as_empty(self, isolated):
        import yaml
        from entrysim.config import generate_starter_config
        path = generate_starter_config()
        assert yaml.safe_load(path.read_text()) is None


class TestValidation:
    @pytest.mark.parametrize("content", [
        "threshold: 1.5\n",
        "threshold: -0.1\n",
        "tf: tfidf\n",
        "workers: 0\n",
        "timeout: -3\n",
        "format: xml\n",
        "since: yesterday\n",
        "per_feed: maybe\n",
    ])
    def test_out_of_range_values_dropped(self, isolated, content):
        from entrysim.config import load_config
        _, work = isolated
        (work / "entrysim.yaml").write_text(content)
        assert load_config() == {}

    def test_valid_values_coerced(self, isolated):
        from entrysim.config import load_config
        _, work = isolated
        (work / "entrysim.yaml").write_text(
            "threshold: 1\ntf: Normalized\nsince: 2026-02-14\ntask-timeout: 2\n"
        )
        assert load_config() == {
            "threshold": 1.0, "tf": "normalized", "since": "2026-02-14", "task_timeout": 2.0,
        }

    def test_bad_env_tf_keeps_default(self, isolated, monkeypatch):
        from entrysim.cli import build_parser
        from entrysim.config import apply_config_defaults
        monkeypatch.setenv("ENTRYSIM_TF", "bm25")
        monkeypatch.setenv("ENTRYSIM_THRESHOLD", "7")
        parser = build_parser()
        args = apply_config_defaults(parser, parser.parse_args([]))
        assert args.tf == "raw"
        assert args.threshold == 0.5

    def test_explicit_paths(self, tmp_path):
        from entrysim.config import load_config
        a = tmp_path / "a.yaml"
        b = tmp_path / "b.yaml"
        a.write_text("workers: 2\nbuffer: 10\n")
        b.write_text("workers: 4\n")
        assert load_config([a, b, tmp_path / "missing.yaml"]) == {"workers": 4, "buffer": 10}

    def test_non_mapping_file_skipped(self, tmp_path):
        from entrysim.config import load_config
        p = tmp_path / "list.yaml"
        p.write_text("- one\n- two\n")
        assert load_config([p]) == {}

    def test_env_mapping_argument(self):
        from entrysim.config import load_env_config
        env = {"ENTRYSIM_WORKERS": "3", "ENTRYSIM_DRY_RUN": "off", "HOME": "/x"}
        assert load_env_config(env) == {"workers": 3, "dry_run": False}
