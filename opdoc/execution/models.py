"""Pydantic models for planning, applying and reporting."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from opdoc.capabilities.base import Diagnostic
from opdoc.errors import ErrorRecord, OpdocError
from opdoc.parser.models import ActionKind


class OperationKind(str, Enum):
    WRITE = "write"
    DELETE = "delete"
    MOVE = "move"


class Precondition(str, Enum):
    MUST_EXIST = "must_exist"
    MUST_NOT_EXIST = "must_not_exist"
    UNCONSTRAINED = "unconstrained"


class PlannedOperation(BaseModel):
    """One filesystem mutation derived from one or more transactions."""

    model_config = ConfigDict(frozen=True)

    path: str
    kind: OperationKind
    action: ActionKind
    precondition: Precondition
    final_content: str | None = None
    destination: str | None = None
    transaction_indices: tuple[int, ...] = ()

    @property
    def paths(self) -> list[str]:
        return [self.path, self.destination] if self.destination else [self.path]


class ApplyState(str, Enum):
    PLANNED = "planned"
    STAGING = "staging"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"
    FAILED = "failed"


class ApplyResult(BaseModel):
    """Final state of the applier for one document."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    state: ApplyState
    dry_run: bool = False
    completed: list[PlannedOperation] = Field(default_factory=list)
    failed: PlannedOperation | None = None
    pending: list[PlannedOperation] = Field(default_factory=list)
    error: OpdocError | None = None
    cancelled: bool = False


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


class TransactionStatus(str, Enum):
    APPLIED = "applied"
    FAILED = "failed"
    SKIPPED = "skipped"


class DocumentOutcome(str, Enum):
    OK = "ok"
    FAILED = "failed"
    ROLLED_BACK = "rolled_back"
    PARTIAL_COMMIT = "partial_commit"
    SKIPPED = "skipped"

    @property
    def is_failure(self) -> bool:
        return self in (
            DocumentOutcome.FAILED,
            DocumentOutcome.ROLLED_BACK,
            DocumentOutcome.PARTIAL_COMMIT,
        )


class TransactionResult(BaseModel):
    index: int
    action: str = ""
    target: str = ""
    status: TransactionStatus = TransactionStatus.SKIPPED
    capabilities: list[str] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)


class ExecutionReport(BaseModel):
    """Everything that happened to one document."""

    source: str
    outcome: DocumentOutcome
    dry_run: bool = False
    committed: bool = False
    attempted: int = 0
    applied: int = 0
    skipped: int = 0
    failed: int = 0
    transactions: list[TransactionResult] = Field(default_factory=list)
    errors: list[ErrorRecord] = Field(default_factory=list)
    planned_paths: list[str] = Field(default_factory=list)
    changed_paths: list[str] = Field(default_factory=list)
    untouched_paths: list[str] = Field(default_factory=list)
    duration_ms: float = 0.0

    @classmethod
    def skipped_report(cls, source: str, reason: str, dry_run: bool = False) -> ExecutionReport:
        return cls(
            source=source,
            outcome=DocumentOutcome.SKIPPED,
            dry_run=dry_run,
            errors=[ErrorRecord(kind="skipped", message=reason)],
        )

    def tally(self) -> ExecutionReport:
        """Recompute the counters from the per-transaction results."""
        statuses = [t.status for t in self.transactions]
        self.attempted = len(statuses)
        self.applied = statuses.count(TransactionStatus.APPLIED)
        self.skipped = statuses.count(TransactionStatus.SKIPPED)
        self.failed = statuses.count(TransactionStatus.FAILED)
        return self
