"""
Centralized git command runner.

Every git invocation of the pipeline goes through run_git_command(), which
adds the safe.directory override needed when the checkout is owned by a
different user (containers, CI runners) and turns non-zero exits into
ExecutionError after recording them in the failure journal.

No retry: a failed command aborts the run.
"""

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, List, Mapping, Optional

from ..exceptions import ExecutionError

logger = logging.getLogger(__name__)


def get_git_environment(
    repo_dir: Path, extra: Optional[Mapping[str, str]] = None
) -> Dict[str, str]:
    """
    Build the environment for git commands run against repo_dir.

    safe.directory is injected as config entry 0 and any GIT_CONFIG_KEY_n /
    GIT_CONFIG_VALUE_n pairs inherited from the caller are shifted up by one
    so they survive.

    Args:
        repo_dir: Repository the command runs in
        extra: Additional variables layered on top

    Returns:
        Environment mapping for subprocess.run
    """
    env = os.environ.copy()

    inherited = 0
    if env.get("GIT_CONFIG_COUNT", "").isdigit():
        inherited = int(env["GIT_CONFIG_COUNT"])

    # Shift inherited entries, highest index first so none is overwritten
    for idx in range(inherited - 1, -1, -1):
        key = os.environ.get(f"GIT_CONFIG_KEY_{idx}")
        value = os.environ.get(f"GIT_CONFIG_VALUE_{idx}")
        if key is None or value is None:
            continue
        env[f"GIT_CONFIG_KEY_{idx + 1}"] = key
        env[f"GIT_CONFIG_VALUE_{idx + 1}"] = value

    env["GIT_CONFIG_KEY_0"] = "safe.directory"
    env["GIT_CONFIG_VALUE_0"] = str(Path(repo_dir).resolve())
    env["GIT_CONFIG_COUNT"] = str(inherited + 1)

    # Never block on a credential prompt
    env["GIT_TERMINAL_PROMPT"] = "0"

    if extra:
        env.update(extra)
    return env


def run_git_command(
    args: List[str],
    cwd: Path,
    check: bool = True,
    env: Optional[Mapping[str, str]] = None,
) -> subprocess.CompletedProcess:
    """
    Run `git <args>` in cwd.

    Args:
        args: Git arguments without the leading "git"
        cwd: Working directory for the command
        check: Raise ExecutionError on non-zero exit
        env: Extra environment variables

    Returns:
        CompletedProcess with text stdout/stderr

    Raises:
        ExecutionError: If check=True and git exits non-zero, or git is missing
    """
    cmd = ["git", *args]
    logger.debug(f"git {' '.join(args)} (in {cwd})")

    try:
        result = subprocess.run(
            cmd,
            cwd=str(cwd),
            capture_output=True,
            text=True,
            env=get_git_environment(Path(cwd), env),
        )
    except FileNotFoundError as e:
        # Either git is not installed or cwd does not exist
        raise ExecutionError(cmd, 127, str(e))

    if check and result.returncode != 0:
        log_git_failure(cmd, Path(cwd), result)
        raise ExecutionError(cmd, result.returncode, result.stderr)

    return result


def log_git_failure(
    cmd: List[str], cwd: Path, result: subprocess.CompletedProcess
) -> None:
    """Record a failed git command in the failure journal, if one is open."""
    from .exception_logger import ExceptionLogger

    journal = ExceptionLogger.get_instance()
    if journal:
        journal.log_failure(
            f"Git command failed: {' '.join(cmd)}",
            context={
                "git_command": " ".join(cmd),
                "cwd": str(cwd),
                "returncode": result.returncode,
                "stdout": result.stdout,
                "stderr": result.stderr,
            },
        )
