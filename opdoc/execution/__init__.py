"""Planning and staged application of filesystem operations."""

from opdoc.execution.applier import ExecutionApplier
from opdoc.execution.filesystem import FileSystemView, LocalFileSystem, MemoryFileSystem
from opdoc.execution.locks import PathLockManager
from opdoc.execution.models import (
    ApplyResult,
    ApplyState,
    DocumentOutcome,
    ExecutionReport,
    OperationKind,
    PlannedOperation,
    Precondition,
    TransactionResult,
    TransactionStatus,
)
from opdoc.execution.planner import ExecutionPlanner
from opdoc.execution.staging import (
    DEFAULT_STAGING_SUFFIX,
    cleanup_stale_artifacts,
    find_stale_artifacts,
)

__all__ = [
    "DEFAULT_STAGING_SUFFIX",
    "ApplyResult",
    "ApplyState",
    "DocumentOutcome",
    "ExecutionApplier",
    "ExecutionPlanner",
    "ExecutionReport",
    "FileSystemView",
    "LocalFileSystem",
    "MemoryFileSystem",
    "OperationKind",
    "PathLockManager",
    "PlannedOperation",
    "Precondition",
    "TransactionResult",
    "TransactionStatus",
    "cleanup_stale_artifacts",
    "find_stale_artifacts",
]
