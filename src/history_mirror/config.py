"""Configuration management for History Mirror."""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Literal, Mapping, Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import PreconditionError

logger = logging.getLogger(__name__)


class SourceConfig(BaseModel):
    """Configuration for acquiring the source working tree."""

    repository: Optional[str] = Field(
        default=None,
        description="Repository to export, as 'owner/name' or a clone URL/local path",
    )
    server_url: str = Field(
        default="https://github.com", description="Base URL of the hosting server"
    )
    # Token is read from HISTORY_MIRROR_TOKEN or GITHUB_TOKEN when unset
    token: Optional[str] = Field(
        default=None, description="Access token used to fetch the repository"
    )
    path: Optional[Path] = Field(
        default=None, description="Directory holding the source working tree"
    )
    remote: str = Field(default="origin", description="Name of the fetch remote")
    keep_on_exit: bool = Field(
        default=False, description="Leave the source tree in place after the run"
    )

    @field_validator("server_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    def remote_url(self) -> str:
        """URL handed to `git remote add`."""
        if not self.repository:
            raise PreconditionError("No source repository configured")
        if "://" in self.repository or self.repository.startswith(("/", ".", "git@")):
            return self.repository
        return f"{self.server_url}/{self.repository}"


class TransformerConfig(BaseModel):
    """Configuration for the external transformer."""

    command: List[str] = Field(
        default_factory=list,
        description="Transformer argv; {source} and {output} are substituted",
    )
    env: Dict[str, str] = Field(
        default_factory=dict, description="Extra environment for the transformer"
    )


class MirrorConfig(BaseModel):
    """Configuration for the mirror repository."""

    root: Optional[Path] = Field(
        default=None, description="Directory under which mirror repositories are created"
    )
    run_id: str = Field(default="local", description="Run identifier of the host job")
    job: str = Field(default="export", description="Job identifier of the host job")
    branch: str = Field(default="main", description="Branch the mirror history lives on")
    committer_name: str = Field(
        default="history-mirror", description="Committer name of mirror commits"
    )
    committer_email: str = Field(
        default="history-mirror@users.noreply.github.com",
        description="Committer email of mirror commits",
    )
    preserve_authorship: bool = Field(
        default=False,
        description="Copy author name, email and date from the source commit",
    )
    keep_on_exit: bool = Field(
        default=True,
        description="Leave the mirror in place after the run (removed by teardown)",
    )

    @property
    def path(self) -> Path:
        """Deterministic mirror location for this run."""
        root = self.root or Path(tempfile.gettempdir())
        return root / f"history-mirror-{self.run_id}-{self.job}"


class Config(BaseModel):
    """Main configuration for History Mirror."""

    source: SourceConfig = Field(default_factory=SourceConfig)
    transformer: TransformerConfig = Field(default_factory=TransformerConfig)
    mirror: MirrorConfig = Field(default_factory=MirrorConfig)
    empty_snapshot: Literal["allow", "skip", "error"] = Field(
        default="allow",
        description="What to do when a snapshot is identical to the previous one",
    )
    state_dir: Optional[Path] = Field(
        default=None, description="Directory for failure journals"
    )

    @property
    def source_path(self) -> Path:
        if self.source.path is None:
            raise PreconditionError("No source working tree path configured")
        return self.source.path

    def masked_dump(self) -> Dict[str, Any]:
        """Configuration as JSON-ready dict with the token hidden."""
        data = self.model_dump(mode="json")
        if data["source"].get("token"):
            data["source"]["token"] = "***"
        return data


# (environment variable, section, field) applied only where the file leaves a gap
ENVIRONMENT_DEFAULTS = [
    ("GITHUB_REPOSITORY", "source", "repository"),
    ("GITHUB_SERVER_URL", "source", "server_url"),
    ("HISTORY_MIRROR_TOKEN", "source", "token"),
    ("GITHUB_TOKEN", "source", "token"),
    ("GITHUB_RUN_ID", "mirror", "run_id"),
    ("GITHUB_JOB", "mirror", "job"),
    ("RUNNER_TEMP", "mirror", "root"),
]


class ConfigManager:
    """Loads configuration from a JSON file and the host environment."""

    DEFAULT_CONFIG_PATH = Path(".history-mirror/config.json")

    def __init__(
        self,
        config_path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.config_path = config_path or self.DEFAULT_CONFIG_PATH
        self.environ = os.environ if environ is None else environ
        self._config: Optional[Config] = None

    def load(self) -> Config:
        """Load configuration from file (if present) and fill gaps from the environment."""
        data: Dict[str, Any] = {}
        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                raise PreconditionError(
                    f"Failed to load config from {self.config_path}", str(e)
                )
            if not isinstance(data, dict):
                raise PreconditionError(
                    f"Failed to load config from {self.config_path}",
                    "top-level value must be an object",
                )
        else:
            logger.debug(f"No config file at {self.config_path}, using defaults")

        self._apply_environment(data)

        try:
            self._config = Config(**data)
        except ValidationError as e:
            raise PreconditionError("Invalid configuration", str(e))
        return self._config

    def get_config(self) -> Config:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            self.load()
        if self._config is None:
            raise RuntimeError("Failed to load configuration")
        return self._config

    def update_config(self, **sections: Dict[str, Any]) -> Config:
        """Overlay per-section values (e.g. from command line options)."""
        config_dict = self.get_config().model_dump()
        for section, values in sections.items():
            for key, value in values.items():
                if value is not None:
                    config_dict[section][key] = value
        try:
            self._config = Config(**config_dict)
        except ValidationError as e:
            raise PreconditionError("Invalid configuration", str(e))
        return self._config

    def _apply_environment(self, data: Dict[str, Any]) -> None:
        for variable, section, key in ENVIRONMENT_DEFAULTS:
            value = self.environ.get(variable)
            if not value:
                continue
            section_data = data.setdefault(section, {})
            if section_data.get(key) is None:
                section_data[key] = value

        # Default checkout location follows the host workspace
        workspace = self.environ.get("GITHUB_WORKSPACE")
        source = data.setdefault("source", {})
        if source.get("path") is None and workspace:
            source["path"] = str(Path(workspace) / "source")

        if data.get("state_dir") is None and self.environ.get("RUNNER_TEMP"):
            data["state_dir"] = str(Path(self.environ["RUNNER_TEMP"]) / "history-mirror")
