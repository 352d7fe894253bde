"""Exception classes for the export pipeline."""

from typing import List, Optional


class HistoryMirrorError(Exception):
    """Base exception for every pipeline failure."""

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def __str__(self):
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class PreconditionError(HistoryMirrorError):
    """Raised when the run cannot start: missing context or unresolvable boundaries."""

    pass


class AncestryError(HistoryMirrorError):
    """Raised when the recomputed merge base differs from the claimed base."""

    def __init__(self, base: str, head: str, merge_base: Optional[str]):
        self.base = base
        self.head = head
        self.merge_base = merge_base
        if merge_base is None:
            message = (
                f"PR base ({base}) and PR head ({head}) share no common history. "
                "This is unsupported, please rebase your branch."
            )
        else:
            message = (
                f"Merge base between PR base ({base}) and PR head ({head}) is "
                f"different from PR base current head (found merge-base {merge_base}). "
                "This is unsupported at the moment, please rebase your branch."
            )
        super().__init__(message)


class ExecutionError(HistoryMirrorError):
    """Raised when a git or transformer subprocess exits non-zero."""

    def __init__(self, command: List[str], exit_code: int, stderr: str = ""):
        self.command = list(command)
        self.exit_code = exit_code
        self.stderr = stderr or ""
        message = f"Command failed with exit code {exit_code}: {' '.join(self.command)}"
        super().__init__(message, self.stderr.strip() or None)


class EmptySnapshotError(ExecutionError):
    """Raised when a snapshot has no changes and empty snapshots are refused."""

    def __init__(self, command: List[str], label: str):
        super().__init__(command, 1, f"snapshot for '{label}' produced no changes")
        self.label = label


class CleanupError(HistoryMirrorError):
    """Raised when a working tree cannot be removed during teardown.

    Never escapes the lifecycle manager; it is logged as a warning.
    """

    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to clean up {path}", reason)
        self.path = path
