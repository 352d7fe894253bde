"""Value types shared by the export pipeline."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class Revision:
    """Immutable, content-addressed identifier of a commit.

    Revisions compare for equality only; ordering comes from ancestry
    queries or enumeration.
    """

    sha: str

    def __post_init__(self):
        if not self.sha or not self.sha.strip():
            raise ValueError("Revision requires a non-empty object name")

    @property
    def short(self) -> str:
        return self.sha[:7]

    def __str__(self) -> str:
        return self.sha


@dataclass(frozen=True)
class RevisionRange:
    """Pull request boundaries. Valid only when merge_base(base, head) == base."""

    base: Revision
    head: Revision


# First-parent lineage from base (exclusive) to head (inclusive), oldest first.
CommitSequence = Tuple[Revision, ...]


@dataclass(frozen=True)
class CommitDescription:
    """What the mirror needs to know about one source commit."""

    revision: Revision
    abbreviated_id: str
    subject: str
    author_name: str
    author_email: str
    author_date: str

    def label(self, ref_name: str) -> str:
        """Commit message used for the mirror commit of this revision."""
        return f"{ref_name} - {self.abbreviated_id} {self.subject}"


@dataclass(frozen=True)
class Authorship:
    """Author identity carried over to a mirror commit."""

    name: str
    email: str
    date: str


@dataclass(frozen=True)
class MirrorCommit:
    """One commit of the mirror repository and the source revision it came from."""

    source: Revision
    mirror: Revision
    message: str


@dataclass
class ExportResult:
    """Outcome of a successful pipeline run."""

    mirror_path: Path
    seed: MirrorCommit
    mirror_head: Revision
    # Seed first, then one entry per enumerated revision
    commits: List[MirrorCommit] = field(default_factory=list)


@dataclass(frozen=True)
class PullRequestRange:
    """Boundaries and labelling information of the pull request to export."""

    base_sha: str
    head_sha: str
    head_ref: Optional[str] = None
    number: Optional[int] = None


class RunMode(Enum):
    """Lifecycle entry point selected by the host."""

    MAIN = "main"
    POST = "post"
