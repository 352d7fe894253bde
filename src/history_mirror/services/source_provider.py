"""
Source working tree acquisition.

Creates a shallow (depth 1) checkout of one revision of the source repository
and persists the access token in the local git config, so the pipeline can
fetch the remaining boundary revisions later through RepositoryHandle.fetch().
"""

import base64
import logging
import shutil
from pathlib import Path
from urllib.parse import urlparse

from ..config import SourceConfig
from ..models import Revision
from .repository import RepositoryHandle

logger = logging.getLogger(__name__)


class SourceProvider:
    """Acquires and releases the source working tree."""

    def __init__(self, settings: SourceConfig, path: Path):
        self.settings = settings
        self.path = Path(path)

    def acquire(self, revision: Revision) -> RepositoryHandle:
        """Check out `revision` at the configured path and return its handle.

        Anything already at the path is removed first.
        """
        if self.path.exists():
            logger.info(f"Removing previous source tree at {self.path}")
            shutil.rmtree(self.path)

        repo = RepositoryHandle(self.path, remote=self.settings.remote)
        repo.init()
        url = self.settings.remote_url()
        repo.run_checked(["remote", "add", self.settings.remote, url])

        if self.settings.token:
            repo.configure(self.extraheader_key, self._authorization_header())

        logger.info(f"Fetching {revision.short} from {url} (depth 1)")
        repo.fetch([revision], depth=1)
        repo.checkout(revision)
        return repo

    def cleanup(self) -> None:
        """Strip persisted credentials from the source tree, if it still exists."""
        if not (self.path / ".git").exists():
            return
        RepositoryHandle(self.path).unset_config(self.extraheader_key)

    @property
    def extraheader_key(self) -> str:
        parsed = urlparse(self.settings.server_url)
        return f"http.{parsed.scheme}://{parsed.netloc}/.extraheader"

    def _authorization_header(self) -> str:
        basic = base64.b64encode(
            f"x-access-token:{self.settings.token}".encode("utf-8")
        ).decode("ascii")
        return f"AUTHORIZATION: basic {basic}"
