"""Failure journal for History Mirror.

Appends one JSON record per failure (failed git command, failed transformer
run, unexpected exception) to a per-process log file so a broken CI run can
be diagnosed after its workspace is gone.
"""

import json
import os
import traceback
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional


class ExceptionLogger:
    """Process-wide failure journal.

    Initialize once from the command line entry point; library code looks the
    instance up with get_instance() and does nothing when there is none.
    """

    _instance: Optional["ExceptionLogger"] = None
    log_file_path: Optional[Path] = None

    def __init__(self, log_file_path: Path):
        self.log_file_path = log_file_path

    @classmethod
    def initialize(cls, log_dir: Path) -> "ExceptionLogger":
        """Open the journal in log_dir (idempotent singleton).

        Tests that need a fresh journal reset cls._instance = None first.

        Args:
            log_dir: Directory receiving error_<timestamp>_<pid>.log

        Returns:
            The journal instance
        """
        if cls._instance is not None:
            return cls._instance

        log_dir.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file_path = log_dir / f"error_{timestamp}_{os.getpid()}.log"
        log_file_path.touch()

        cls._instance = cls(log_file_path)
        return cls._instance

    @classmethod
    def get_instance(cls) -> Optional["ExceptionLogger"]:
        return cls._instance

    def log_failure(self, summary: str, context: Optional[Dict[str, Any]] = None) -> None:
        """Append a failure record that has no exception object attached."""
        self._write(
            {
                "timestamp": datetime.now().isoformat(),
                "summary": summary,
                "context": context or {},
            }
        )

    def log_exception(
        self, exception: BaseException, context: Optional[Dict[str, Any]] = None
    ) -> None:
        """Append a record for an exception, including its traceback."""
        self._write(
            {
                "timestamp": datetime.now().isoformat(),
                "exception_type": type(exception).__name__,
                "exception_message": str(exception),
                "stack_trace": "".join(
                    traceback.format_exception(
                        type(exception), exception, exception.__traceback__
                    )
                ),
                "context": context or {},
            }
        )

    def _write(self, entry: Dict[str, Any]) -> None:
        if not self.log_file_path:
            return
        with open(self.log_file_path, "a") as f:
            f.write(json.dumps(entry, indent=2, default=str))
            f.write("\n---\n")
