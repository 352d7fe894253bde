"""
Snapshot exporter - one source revision in, one mirror commit out.

Each export replaces the whole mirror tree: tracked files are removed, the
transformer writes a fresh snapshot, everything present is staged and
committed. The transformer's output set may change between revisions, so an
incremental update would leave stale files behind.
"""

import logging
from pathlib import Path
from typing import Optional

from ..exceptions import EmptySnapshotError
from ..models import Authorship, Revision
from .repository import RepositoryHandle
from .transformer import Transformer

logger = logging.getLogger(__name__)

EMPTY_SNAPSHOT_POLICIES = ("allow", "skip", "error")


class SnapshotExporter:
    """Exports one transformed snapshot into the mirror repository."""

    def __init__(self, transformer: Transformer, empty_snapshot: str = "allow"):
        if empty_snapshot not in EMPTY_SNAPSHOT_POLICIES:
            raise ValueError(f"Unknown empty snapshot policy: {empty_snapshot}")
        self.transformer = transformer
        self.empty_snapshot = empty_snapshot

    def export_once(
        self,
        mirror: RepositoryHandle,
        source_tree: Path,
        commit_message: str,
        authorship: Optional[Authorship] = None,
    ) -> Revision:
        """Transform `source_tree` into the mirror and commit it.

        The source tree must already be checked out at the revision being
        exported.

        Args:
            mirror: Handle of the mirror repository
            source_tree: Checked-out source working tree
            commit_message: Message of the new mirror commit
            authorship: Author to record instead of the committer, if any

        Returns:
            The mirror head after the export

        Raises:
            ExecutionError: If any step fails; later steps are not attempted
        """
        self._clear_tracked_files(mirror)
        self.transformer.run(Path(source_tree), mirror.path)
        mirror.run_checked(["add", "--all", "--", "."])

        commit_args = ["commit", "--quiet", "--no-verify", "--no-gpg-sign"]
        if not self._has_staged_changes(mirror):
            if not self._has_head(mirror):
                # The root commit is always recorded
                commit_args.append("--allow-empty")
            elif self.empty_snapshot == "skip":
                logger.warning(f"Snapshot unchanged, no mirror commit for: {commit_message}")
                return mirror.head_revision()
            elif self.empty_snapshot == "error":
                raise EmptySnapshotError(["git", *commit_args], commit_message)
            else:
                logger.info(f"Snapshot unchanged, recording empty commit: {commit_message}")
                commit_args.append("--allow-empty")

        if authorship is not None:
            commit_args.extend(
                [
                    f"--author={authorship.name} <{authorship.email}>",
                    f"--date={authorship.date}",
                ]
            )
        commit_args.extend(["-m", commit_message])
        mirror.run_checked(commit_args)

        head = mirror.head_revision()
        logger.info(f"Mirror commit {head.short}: {commit_message}")
        return head

    def _clear_tracked_files(self, mirror: RepositoryHandle) -> None:
        mirror.run_checked(
            ["rm", "-r", "--force", "--quiet", "--ignore-unmatch", "--", "."]
        )

    def _has_staged_changes(self, mirror: RepositoryHandle) -> bool:
        result = mirror.run_checked(["diff", "--cached", "--quiet"], allowed=(0, 1))
        return result.exit_code == 1

    def _has_head(self, mirror: RepositoryHandle) -> bool:
        return mirror.run_raw(["rev-parse", "--verify", "--quiet", "HEAD"]).exit_code == 0
