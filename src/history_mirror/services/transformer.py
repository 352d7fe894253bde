"""External transformer invocation."""

import logging
import os
import subprocess
from pathlib import Path
from typing import Dict, List

from ..config import TransformerConfig
from ..exceptions import ExecutionError, PreconditionError
from ..utils.exception_logger import ExceptionLogger

logger = logging.getLogger(__name__)

SOURCE_ENV = "HISTORY_MIRROR_SOURCE"
OUTPUT_ENV = "HISTORY_MIRROR_OUTPUT"


class Transformer:
    """Runs the configured transformer over a source tree.

    The transformer is a black box: it reads the source tree and writes
    artifact files under the output directory. Only its exit status matters.
    """

    def __init__(self, settings: TransformerConfig):
        if not settings.command:
            raise PreconditionError("No transformer command configured")
        self.settings = settings

    def build_command(self, source: Path, output: Path) -> List[str]:
        return [
            arg.replace("{source}", str(source)).replace("{output}", str(output))
            for arg in self.settings.command
        ]

    def run(self, source: Path, output: Path) -> None:
        """Transform `source` into `output`.

        Raises:
            ExecutionError: If the transformer cannot be started or exits non-zero
        """
        cmd = self.build_command(source, output)
        env: Dict[str, str] = os.environ.copy()
        env.update(self.settings.env)
        env[SOURCE_ENV] = str(source)
        env[OUTPUT_ENV] = str(output)

        logger.info(f"Running transformer: {' '.join(cmd)}")
        try:
            result = subprocess.run(
                cmd,
                cwd=str(source),
                capture_output=True,
                text=True,
                env=env,
            )
        except OSError as e:
            raise ExecutionError(cmd, 127, str(e))

        if result.stdout:
            logger.debug(f"Transformer output:\n{result.stdout.rstrip()}")
        if result.returncode != 0:
            self._journal(cmd, source, result)
            raise ExecutionError(cmd, result.returncode, result.stderr)

    def _journal(
        self,
        cmd: List[str],
        source: Path,
        result: subprocess.CompletedProcess,
    ) -> None:
        journal = ExceptionLogger.get_instance()
        if journal:
            journal.log_failure(
                f"Transformer failed: {' '.join(cmd)}",
                context={
                    "command": " ".join(cmd),
                    "source": str(source),
                    "returncode": result.returncode,
                    "stderr": result.stderr,
                },
            )
