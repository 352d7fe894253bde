"""Export pipeline services."""

from .ancestry import AncestryValidator
from .commit_enumerator import CommitEnumerator
from .lifecycle import LifecycleManager
from .orchestrator import PipelineOrchestrator
from .repository import RawResult, RepositoryHandle
from .snapshot_exporter import SnapshotExporter
from .source_provider import SourceProvider
from .transformer import Transformer

__all__ = [
    "AncestryValidator",
    "CommitEnumerator",
    "LifecycleManager",
    "PipelineOrchestrator",
    "RawResult",
    "RepositoryHandle",
    "SnapshotExporter",
    "SourceProvider",
    "Transformer",
]
