"""Tests for configuration management."""

import json
from pathlib import Path

import pytest

from history_mirror.config import Config, ConfigManager, MirrorConfig
from history_mirror.exceptions import PreconditionError


def test_default_config():
    """Test default configuration values."""
    config = Config()

    assert config.source.server_url == "https://github.com"
    assert config.source.remote == "origin"
    assert config.source.keep_on_exit is False
    assert config.transformer.command == []
    assert config.mirror.branch == "main"
    assert config.mirror.keep_on_exit is True
    assert config.mirror.preserve_authorship is False
    assert config.empty_snapshot == "allow"


def test_mirror_path_is_derived_from_run_and_job(tmp_path):
    mirror = MirrorConfig(root=tmp_path, run_id="1234", job="render")
    assert mirror.path == tmp_path / "history-mirror-1234-render"


def test_invalid_empty_snapshot_policy_rejected():
    with pytest.raises(ValueError):
        Config(empty_snapshot="sometimes")


def test_source_path_required():
    with pytest.raises(PreconditionError):
        Config().source_path


def test_masked_dump_hides_token():
    config = Config(source={"repository": "acme/configs", "token": "s3cret"})

    data = config.masked_dump()

    assert data["source"]["token"] == "***"
    assert data["source"]["repository"] == "acme/configs"
    assert "s3cret" not in json.dumps(data)


class TestConfigManager:
    def test_missing_file_gives_defaults(self, tmp_path):
        manager = ConfigManager(tmp_path / "absent.json", environ={})

        config = manager.load()

        assert config.source.repository is None
        assert config.state_dir is None

    def test_file_values_are_loaded(self, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text(
            json.dumps(
                {
                    "source": {"repository": "acme/configs", "path": "/work/src"},
                    "transformer": {"command": ["render", "{source}", "{output}"]},
                    "empty_snapshot": "skip",
                }
            )
        )

        config = ConfigManager(config_path, environ={}).load()

        assert config.source.repository == "acme/configs"
        assert config.source_path == Path("/work/src")
        assert config.transformer.command == ["render", "{source}", "{output}"]
        assert config.empty_snapshot == "skip"

    def test_environment_fills_gaps_only(self, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"source": {"repository": "acme/pinned"}}))
        environ = {
            "GITHUB_REPOSITORY": "acme/from-env",
            "GITHUB_TOKEN": "ghs_token",
            "GITHUB_RUN_ID": "99",
            "GITHUB_JOB": "mirror",
            "GITHUB_WORKSPACE": "/home/runner/work",
            "RUNNER_TEMP": "/home/runner/temp",
        }

        config = ConfigManager(config_path, environ=environ).load()

        assert config.source.repository == "acme/pinned"
        assert config.source.token == "ghs_token"
        assert config.source_path == Path("/home/runner/work/source")
        assert config.mirror.path == Path("/home/runner/temp/history-mirror-99-mirror")
        assert config.state_dir == Path("/home/runner/temp/history-mirror")

    def test_dedicated_token_wins_over_host_token(self, tmp_path):
        environ = {"HISTORY_MIRROR_TOKEN": "dedicated", "GITHUB_TOKEN": "host"}

        config = ConfigManager(tmp_path / "absent.json", environ=environ).load()

        assert config.source.token == "dedicated"

    def test_invalid_json_is_precondition_error(self, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text("{not json")

        with pytest.raises(PreconditionError):
            ConfigManager(config_path, environ={}).load()

    def test_non_object_is_precondition_error(self, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text("[1, 2]")

        with pytest.raises(PreconditionError):
            ConfigManager(config_path, environ={}).load()

    def test_invalid_values_are_precondition_error(self, tmp_path):
        config_path = tmp_path / "config.json"
        config_path.write_text(json.dumps({"empty_snapshot": "maybe"}))

        with pytest.raises(PreconditionError):
            ConfigManager(config_path, environ={}).load()

    def test_update_config_ignores_none(self, tmp_path):
        manager = ConfigManager(tmp_path / "absent.json", environ={})
        manager.load()

        config = manager.update_config(
            transformer={"command": ["render"]}, mirror={"root": None, "job": "alt"}
        )

        assert config.transformer.command == ["render"]
        assert config.mirror.root is None
        assert config.mirror.job == "alt"
        assert manager.get_config() is config
