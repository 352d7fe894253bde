"""
Shared pytest fixtures for History Mirror tests.

Provides throwaway git repositories acting as the pull request origin, a small
deterministic transformer script and a configuration wired to both.
"""

import sys
from typing import List

import pytest

from history_mirror.config import Config
from history_mirror.utils.exception_logger import ExceptionLogger
from repo_helpers import TRANSFORMER_SCRIPT, SourceRepo

HOST_VARIABLES = [
    "GITHUB_EVENT_PATH",
    "GITHUB_OUTPUT",
    "GITHUB_TOKEN",
    "GITHUB_REPOSITORY",
    "GITHUB_SERVER_URL",
    "GITHUB_WORKSPACE",
    "GITHUB_RUN_ID",
    "GITHUB_JOB",
    "RUNNER_TEMP",
    "HISTORY_MIRROR_TOKEN",
    "GIT_CONFIG_COUNT",
    "GIT_AUTHOR_NAME",
    "GIT_AUTHOR_EMAIL",
    "GIT_COMMITTER_NAME",
    "GIT_COMMITTER_EMAIL",
]


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep host CI variables and the user's git config out of every test."""
    for variable in HOST_VARIABLES:
        monkeypatch.delenv(variable, raising=False)

    home = tmp_path / "home"
    home.mkdir()
    gitconfig = home / ".gitconfig"
    gitconfig.write_text(
        "[user]\n\tname = Test User\n\temail = test@example.com\n"
        "[init]\n\tdefaultBranch = main\n"
        "[commit]\n\tgpgsign = false\n"
    )
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("GIT_CONFIG_GLOBAL", str(gitconfig))
    monkeypatch.setenv("GIT_CONFIG_NOSYSTEM", "1")

    ExceptionLogger._instance = None
    yield
    ExceptionLogger._instance = None


@pytest.fixture
def source_repo(tmp_path) -> SourceRepo:
    """Empty origin repository."""
    return SourceRepo(tmp_path / "origin")


@pytest.fixture
def transformer_command(tmp_path) -> List[str]:
    """Argv of a transformer upper-casing every *.conf file into *.out."""
    script = tmp_path / "transform.py"
    script.write_text(TRANSFORMER_SCRIPT)
    return [sys.executable, str(script), "{source}", "{output}"]


@pytest.fixture
def config(tmp_path, source_repo, transformer_command) -> Config:
    """Configuration exporting `source_repo` into tmp_path/mirrors."""
    return Config(
        source={
            "repository": source_repo.url,
            "path": tmp_path / "work" / "source",
        },
        transformer={"command": transformer_command},
        mirror={
            "root": tmp_path / "mirrors",
            "run_id": "42",
            "job": "export",
        },
    )
