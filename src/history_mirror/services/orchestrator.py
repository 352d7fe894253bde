"""
Pipeline orchestrator.

Sequences one export run: acquire the source tree at the pull request base,
fetch both boundaries, validate ancestry, initialize the mirror, export the
base as seed and then every enumerated revision in order. Any failure aborts
the remaining steps; a partially built mirror is left as it is.
"""

import logging
import re
from pathlib import Path
from typing import Callable, List, Optional

from ..config import Config
from ..exceptions import ExecutionError, PreconditionError
from ..models import (
    Authorship,
    CommitSequence,
    ExportResult,
    MirrorCommit,
    PullRequestRange,
    Revision,
    RevisionRange,
)
from .ancestry import AncestryValidator
from .commit_enumerator import CommitEnumerator
from .repository import RepositoryHandle
from .snapshot_exporter import SnapshotExporter
from .source_provider import SourceProvider
from .transformer import Transformer

logger = logging.getLogger(__name__)

# Called after each mirror commit with (position, total, commit)
ProgressCallback = Callable[[int, int, MirrorCommit], None]

# Shallow fetches only accept full SHA-1 or SHA-256 object names
_FULL_OBJECT_NAME = re.compile(r"[0-9a-f]{40}([0-9a-f]{24})?")


class PipelineOrchestrator:
    """Drives the checkout -> transform -> commit loop for a pull request."""

    def __init__(
        self,
        config: Config,
        source_provider: Optional[SourceProvider] = None,
        transformer: Optional[Transformer] = None,
        validator: Optional[AncestryValidator] = None,
        enumerator: Optional[CommitEnumerator] = None,
        progress_callback: Optional[ProgressCallback] = None,
        on_mirror_created: Optional[Callable[[Path], None]] = None,
    ):
        self.config = config
        self.source_provider = source_provider or SourceProvider(
            config.source, config.source_path
        )
        self._transformer = transformer
        self.validator = validator or AncestryValidator()
        self.enumerator = enumerator or CommitEnumerator()
        self.progress_callback = progress_callback
        self.on_mirror_created = on_mirror_created

    @property
    def transformer(self) -> Transformer:
        # Built lazily so `plan` works without a transformer configured
        if self._transformer is None:
            self._transformer = Transformer(self.config.transformer)
        return self._transformer

    @property
    def mirror_path(self) -> Path:
        return self.config.mirror.path

    def run(self, pull_request: PullRequestRange) -> ExportResult:
        """Export every revision of the pull request into a fresh mirror."""
        transformer = self.transformer
        source_root = self.config.source_path.resolve()
        mirror_root = self.mirror_path.resolve()
        if mirror_root == source_root or source_root in mirror_root.parents:
            raise PreconditionError(
                f"Mirror path {self.mirror_path} must not be inside the source tree"
            )

        source, revision_range = self._prepare(pull_request)

        mirror = RepositoryHandle(self.mirror_path)
        # init(fresh=True) replaces whatever is at the path from here on
        if self.on_mirror_created:
            self.on_mirror_created(self.mirror_path)
        mirror.init(
            branch=self.config.mirror.branch,
            user_name=self.config.mirror.committer_name,
            user_email=self.config.mirror.committer_email,
            fresh=True,
        )
        exporter = SnapshotExporter(transformer, self.config.empty_snapshot)
        ref_name = self._ref_name(source, pull_request)

        # Source is still checked out at base from acquisition
        seed = self._export(exporter, source, mirror, revision_range.base, ref_name)
        commits: List[MirrorCommit] = [seed]

        sequence = self.enumerator.enumerate(
            source, revision_range.base, revision_range.head
        )
        total = len(sequence) + 1
        self._report(1, total, seed)

        for position, revision in enumerate(sequence, start=2):
            source.checkout(revision)
            commit = self._export(exporter, source, mirror, revision, ref_name)
            commits.append(commit)
            self._report(position, total, commit)

        final_head = mirror.head_revision()
        result = ExportResult(
            mirror_path=self.mirror_path,
            seed=seed,
            mirror_head=final_head,
            commits=commits,
        )
        logger.info(
            f"Export finished: seed {seed.mirror.short}, head {final_head.short}, "
            f"{len(commits)} mirror commit(s) in {self.mirror_path}"
        )
        return result

    def plan(self, pull_request: PullRequestRange) -> CommitSequence:
        """Validate the range and list what run() would export after the seed.

        No mirror is created.
        """
        source, revision_range = self._prepare(pull_request)
        return self.enumerator.enumerate(
            source, revision_range.base, revision_range.head
        )

    def _prepare(self, pull_request: PullRequestRange):
        if not pull_request.base_sha:
            raise PreconditionError("Failed to retrieve PR base from context. Abort.")
        if not pull_request.head_sha:
            raise PreconditionError("Failed to retrieve PR head from context. Abort.")
        boundaries = (("base", pull_request.base_sha), ("head", pull_request.head_sha))
        for name, sha in boundaries:
            if not _FULL_OBJECT_NAME.fullmatch(sha):
                raise PreconditionError(
                    f"PR {name} {sha} is not a full commit id",
                    "abbreviated or symbolic names cannot be fetched from the remote",
                )

        claimed_base = Revision(pull_request.base_sha)
        claimed_head = Revision(pull_request.head_sha)

        source = self.source_provider.acquire(claimed_base)
        source.fetch({claimed_base, claimed_head})

        base = self._resolve_boundary(source, claimed_base.sha, "base")
        head = self._resolve_boundary(source, claimed_head.sha, "head")
        self.validator.validate(source, base, head)
        return source, RevisionRange(base=base, head=head)

    def _resolve_boundary(
        self, source: RepositoryHandle, ref: str, name: str
    ) -> Revision:
        try:
            return source.resolve(ref)
        except ExecutionError as e:
            raise PreconditionError(f"Cannot resolve PR {name} {ref}", e.details)

    def _export(
        self,
        exporter: SnapshotExporter,
        source: RepositoryHandle,
        mirror: RepositoryHandle,
        revision: Revision,
        ref_name: str,
    ) -> MirrorCommit:
        description = source.describe(revision)
        message = description.label(ref_name)
        authorship = None
        if self.config.mirror.preserve_authorship:
            authorship = Authorship(
                name=description.author_name,
                email=description.author_email,
                date=description.author_date,
            )
        mirror_head = exporter.export_once(mirror, source.path, message, authorship)
        return MirrorCommit(source=revision, mirror=mirror_head, message=message)

    def _ref_name(self, source: RepositoryHandle, pull_request: PullRequestRange) -> str:
        if pull_request.head_ref:
            ref = pull_request.head_ref
            if ref.startswith("refs/heads/"):
                ref = ref[len("refs/heads/") :]
            return ref
        return source.current_ref_name()

    def _report(self, position: int, total: int, commit: MirrorCommit) -> None:
        if self.progress_callback:
            self.progress_callback(position, total, commit)
