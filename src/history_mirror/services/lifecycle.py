"""
Lifecycle management for the two working trees.

The host calls the tool twice: once for the main pass and once for a
guaranteed cleanup pass (RunMode.POST). Within the main pass the source tree
and the mirror tree are each held in their own scope whose release runs on
every exit path. Release never fails the run: problems are logged as
warnings.
"""

import logging
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Iterator, List, Optional, TypeVar

from ..config import Config
from ..exceptions import CleanupError, ExecutionError
from ..models import RunMode
from .source_provider import SourceProvider

logger = logging.getLogger(__name__)

T = TypeVar("T")


class LifecycleManager:
    """Acquire/release bookkeeping for the source and mirror working trees."""

    def __init__(self, config: Config, source_provider: Optional[SourceProvider] = None):
        self.config = config
        self.source_provider = source_provider or SourceProvider(
            config.source, config.source_path
        )
        self.warnings: List[CleanupError] = []
        # Set once this run has taken over the mirror path
        self.mirror_created = False

    @property
    def source_path(self) -> Path:
        return self.source_provider.path

    @property
    def mirror_path(self) -> Path:
        return self.config.mirror.path

    def execute(self, mode: RunMode, body: Callable[[], T]) -> Optional[T]:
        """Run the entry point selected by the host.

        RunMode.MAIN runs `body` inside both working-tree scopes and returns
        its result; RunMode.POST runs teardown() and returns None.
        """
        if mode is RunMode.POST:
            self.teardown()
            return None

        with self.source_scope():
            with self.mirror_scope():
                return body()

    @contextmanager
    def source_scope(self) -> Iterator[Path]:
        """Hold the source tree; credentials are always stripped on exit."""
        try:
            yield self.source_path
        finally:
            self._release_source(remove=not self.config.source.keep_on_exit)

    @contextmanager
    def mirror_scope(self) -> Iterator[Path]:
        """Hold the mirror tree; it survives the scope unless keep_on_exit is off.

        Only a mirror this run created (see mark_mirror_created) is removed. A
        run that aborts earlier leaves whatever is at the path untouched.
        """
        try:
            yield self.mirror_path
        finally:
            if self.mirror_created and not self.config.mirror.keep_on_exit:
                self._remove_tree(self.mirror_path)

    def mark_mirror_created(self, path: Path) -> None:
        """Record that the mirror at `path` now belongs to this run."""
        logger.debug(f"Mirror {path} created by this run")
        self.mirror_created = True

    def teardown(self) -> List[CleanupError]:
        """Remove both working trees. Safe to call when they are already gone.

        Returns:
            Cleanup problems of this call, already logged as warnings
        """
        before = len(self.warnings)
        self._release_source(remove=True)
        self._remove_tree(self.mirror_path)
        return self.warnings[before:]

    def _release_source(self, remove: bool) -> None:
        try:
            self.source_provider.cleanup()
        except (ExecutionError, OSError) as e:
            self._warn(CleanupError(str(self.source_path), str(e)))
        if remove:
            self._remove_tree(self.source_path)

    def _remove_tree(self, path: Path) -> None:
        if not path.exists():
            return
        try:
            shutil.rmtree(path)
            logger.info(f"Removed {path}")
        except OSError as e:
            self._warn(CleanupError(str(path), str(e)))

    def _warn(self, error: CleanupError) -> None:
        logger.warning(str(error))
        self.warnings.append(error)
