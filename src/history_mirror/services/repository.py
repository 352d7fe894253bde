"""
Repository handle for a local git working tree.

Exposes the primitive operations the export pipeline needs (init, fetch,
checkout, resolve, merge base, first-parent range listing) plus a raw command
passthrough. Staging, committing and removing files go through run_checked(),
which journals any exit code outside the allowed set. Every call goes
through run_git_command(), so failures surface as ExecutionError.
"""

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

from ..exceptions import ExecutionError
from ..models import CommitDescription, Revision
from ..utils.git_runner import log_git_failure, run_git_command

logger = logging.getLogger(__name__)

# Unit separator keeps subjects containing spaces or tabs intact
_FIELD_SEP = "\x1f"


@dataclass
class RawResult:
    """Outcome of a passthrough git command."""

    stdout: str
    exit_code: int
    stderr: str = ""


class RepositoryHandle:
    """Handle to one git working tree.

    The handle does not track which revision is checked out; callers must run
    checkout() before anything that depends on the working tree contents.
    """

    def __init__(self, path: Path, remote: str = "origin"):
        self.path = Path(path)
        self.remote = remote

    def __repr__(self) -> str:
        return f"RepositoryHandle({str(self.path)!r})"

    def init(
        self,
        branch: str = "main",
        user_name: Optional[str] = None,
        user_email: Optional[str] = None,
        fresh: bool = False,
    ) -> None:
        """Create the repository.

        Args:
            branch: Branch HEAD points to before the first commit
            user_name: Local user.name, if given
            user_email: Local user.email, if given
            fresh: Remove whatever exists at the path first
        """
        if fresh and self.path.exists():
            logger.info(f"Removing existing directory {self.path}")
            shutil.rmtree(self.path)
        self.path.mkdir(parents=True, exist_ok=True)

        self._git(["init", "--quiet"])
        # symbolic-ref instead of `init -b` so older git versions work
        self._git(["symbolic-ref", "HEAD", f"refs/heads/{branch}"])
        if user_name:
            self.configure("user.name", user_name)
        if user_email:
            self.configure("user.email", user_email)

    def fetch(self, revisions: Iterable[Revision], depth: Optional[int] = None) -> None:
        """Fetch specific revisions from the remote.

        Without a depth a shallow repository is unshallowed, so the history
        between the fetched revisions becomes walkable. When every revision is
        already present in a complete repository nothing is fetched.
        """
        wanted = sorted({revision.sha for revision in revisions})
        if not wanted:
            return

        shallow = self.is_shallow()
        if depth is None and not shallow:
            missing = [sha for sha in wanted if not self.has_commit(Revision(sha))]
            if not missing:
                logger.debug(f"All {len(wanted)} revision(s) already present")
                return

        args = [
            "-c",
            "protocol.version=2",
            "fetch",
            "--no-tags",
            "--prune",
            "--no-recurse-submodules",
        ]
        if depth is not None:
            args.append(f"--depth={depth}")
        elif shallow:
            args.append("--unshallow")
        args.append(self.remote)
        args.extend(wanted)

        logger.info(f"Fetching {len(wanted)} revision(s) into {self.path}")
        self._git(args)

    def checkout(self, revision: Revision) -> None:
        """Force the working tree to the given revision (detached)."""
        self._git(["checkout", "--force", "--quiet", "--detach", revision.sha])

    def resolve(self, ref: str) -> Revision:
        """Resolve a symbolic or abbreviated reference to a full commit id."""
        result = self._git(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"])
        return Revision(result.stdout.strip())

    def head_revision(self) -> Revision:
        return self.resolve("HEAD")

    def merge_base(self, a: Revision, b: Revision) -> Optional[Revision]:
        """Best common ancestor of a and b, or None when there is none."""
        result = self.run_checked(["merge-base", a.sha, b.sha], allowed=(0, 1))
        if not result.stdout.strip():
            return None
        return Revision(result.stdout.strip())

    def list_first_parent_range(self, base: Revision, head: Revision) -> List[Revision]:
        """Revisions on head's first-parent chain after base, oldest first.

        base is excluded and head included; identical boundaries give an
        empty list.
        """
        result = self._git(
            ["rev-list", "--first-parent", "--reverse", f"{base.sha}..{head.sha}"]
        )
        return [Revision(line) for line in result.stdout.split() if line]

    def describe(self, revision: Revision) -> CommitDescription:
        """Abbreviated id, subject and authorship of a commit."""
        fmt = _FIELD_SEP.join(["%H", "%h", "%s", "%an", "%ae", "%aI"])
        result = self._git(["log", "-1", f"--format={fmt}", revision.sha])
        sha, abbreviated, subject, name, email, date = (
            result.stdout.rstrip("\n").split(_FIELD_SEP)
        )
        return CommitDescription(
            revision=Revision(sha),
            abbreviated_id=abbreviated,
            subject=subject,
            author_name=name,
            author_email=email,
            author_date=date,
        )

    def current_ref_name(self) -> str:
        """Short name of the checked-out branch, "HEAD" when detached."""
        return self._git(["rev-parse", "--abbrev-ref", "HEAD"]).stdout.strip()

    def has_commit(self, revision: Revision) -> bool:
        result = self.run_raw(["cat-file", "-e", f"{revision.sha}^{{commit}}"])
        return result.exit_code == 0

    def is_shallow(self) -> bool:
        result = self._git(["rev-parse", "--is-shallow-repository"])
        return result.stdout.strip() == "true"

    def configure(self, key: str, value: str) -> None:
        self._git(["config", "--local", key, value])

    def unset_config(self, key: str) -> None:
        """Remove every value of a local config key; missing keys are fine."""
        # 5 means the key was not set
        self.run_checked(["config", "--local", "--unset-all", key], allowed=(0, 5))

    def run_raw(self, args: List[str]) -> RawResult:
        """Run any git command and hand back its output and exit code."""
        result = run_git_command(args, cwd=self.path, check=False)
        return RawResult(
            stdout=result.stdout, exit_code=result.returncode, stderr=result.stderr
        )

    def run_checked(
        self, args: List[str], allowed: Tuple[int, ...] = (0,)
    ) -> RawResult:
        """Run a git command whose exit code must be one of `allowed`.

        Raises:
            ExecutionError: On any other exit code, after journaling the failure
        """
        result = run_git_command(args, cwd=self.path, check=False)
        if result.returncode not in allowed:
            cmd = ["git", *args]
            log_git_failure(cmd, self.path, result)
            raise ExecutionError(cmd, result.returncode, result.stderr)
        return RawResult(
            stdout=result.stdout, exit_code=result.returncode, stderr=result.stderr
        )

    def _git(self, args: List[str]):
        return run_git_command(args, cwd=self.path)
