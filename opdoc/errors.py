"""Exception taxonomy for the opdoc pipeline.

Every expected failure is an ``OpdocError`` subclass that can flatten itself
into an ``ErrorRecord`` for the execution report.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class ErrorRecord(BaseModel):
    """Serializable description of one error attached to a report."""

    kind: str
    message: str
    transaction_index: int | None = None
    field: str | None = None
    line: int | None = None
    column: int | None = None
    capability: str | None = None
    path: str | None = None


class OpdocError(Exception):
    """Base class for all opdoc errors."""

    kind = "error"

    def to_record(self) -> ErrorRecord:
        return ErrorRecord(kind=self.kind, message=str(self))


class ParseErrorKind(str, Enum):
    UNTERMINATED_BLOCK = "unterminated_block"
    UNTERMINATED_RECORD = "unterminated_record"
    UNEXPECTED_MARKER = "unexpected_marker"
    UNEXPECTED_CONTENT = "unexpected_content"
    EMPTY_DOCUMENT = "empty_document"


class ParseError(OpdocError):
    """Structural error; no transactions are extracted from the document."""

    kind = "parse"

    def __init__(
        self, kind: ParseErrorKind, line: int, column: int = 1, detail: str = ""
    ) -> None:
        self.parse_kind = kind
        self.line = line
        self.column = column
        self.detail = detail
        msg = f"{kind.value} at line {line}, column {column}"
        if detail:
            msg += f": {detail}"
        super().__init__(msg)

    def to_record(self) -> ErrorRecord:
        return ErrorRecord(
            kind=f"{self.kind}.{self.parse_kind.value}",
            message=str(self),
            line=self.line,
            column=self.column,
        )


class ValidationError(OpdocError):
    """A single semantic defect in one transaction."""

    kind = "validation"

    def __init__(self, transaction_index: int, field: str, reason: str) -> None:
        self.transaction_index = transaction_index
        self.field = field
        self.reason = reason
        super().__init__(f"transaction {transaction_index}: {field}: {reason}")

    def to_record(self) -> ErrorRecord:
        return ErrorRecord(
            kind=self.kind,
            message=str(self),
            transaction_index=self.transaction_index,
            field=self.field,
        )


class DocumentValidationError(OpdocError):
    """Every validation error found in a document, collected in one pass."""

    kind = "validation"

    def __init__(self, errors: list[ValidationError]) -> None:
        self.errors = errors
        super().__init__(f"{len(errors)} validation error(s)")


class ProcessingError(OpdocError):
    """A language capability rejected a content block."""

    kind = "processing"

    def __init__(self, transaction_index: int, capability: str, reason: str) -> None:
        self.transaction_index = transaction_index
        self.capability = capability
        self.reason = reason
        super().__init__(
            f"transaction {transaction_index}: capability '{capability}' failed: {reason}"
        )

    def to_record(self) -> ErrorRecord:
        return ErrorRecord(
            kind=self.kind,
            message=str(self),
            transaction_index=self.transaction_index,
            capability=self.capability,
        )


class PlanErrorKind(str, Enum):
    CONFLICT = "conflict"
    PRECONDITION = "precondition"
    UNSAFE_PATH = "unsafe_path"
    READ_FAILED = "read_failed"


class PlanError(OpdocError):
    """A transaction cannot be turned into a safe planned operation."""

    kind = "plan"

    def __init__(
        self,
        kind: PlanErrorKind,
        path: str,
        reason: str,
        transaction_indices: list[int] | None = None,
    ) -> None:
        self.plan_kind = kind
        self.path = path
        self.reason = reason
        self.transaction_indices = transaction_indices or []
        super().__init__(f"{kind.value} on '{path}': {reason}")

    def to_record(self) -> ErrorRecord:
        index = self.transaction_indices[-1] if self.transaction_indices else None
        return ErrorRecord(
            kind=f"{self.kind}.{self.plan_kind.value}",
            message=str(self),
            transaction_index=index,
            path=self.path,
        )


class PlanFailed(OpdocError):
    """Every plan error found in a document."""

    kind = "plan"

    def __init__(self, errors: list[PlanError]) -> None:
        self.errors = errors
        super().__init__(f"{len(errors)} plan error(s)")


class StagingFailure(OpdocError):
    """Staging did not complete; the real filesystem was left untouched."""

    kind = "staging"

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"staging '{path}' failed: {reason}")

    def to_record(self) -> ErrorRecord:
        return ErrorRecord(kind=self.kind, message=str(self), path=self.path)


class PartialCommitError(OpdocError):
    """The commit stopped partway; some targets changed and some did not."""

    kind = "partial_commit"

    def __init__(self, completed: list[str], pending: list[str], reason: str) -> None:
        self.completed = completed
        self.pending = pending
        self.reason = reason
        super().__init__(
            f"commit stopped after {len(completed)} of "
            f"{len(completed) + len(pending)} operation(s): {reason}"
        )

    def to_record(self) -> ErrorRecord:
        path = self.pending[0] if self.pending else None
        return ErrorRecord(kind=self.kind, message=str(self), path=path)


class RegistryFrozenError(OpdocError):
    """Raised when registering into a registry that is already in use."""

    kind = "registry"


class CapabilityNotFoundError(OpdocError):
    """Raised when a configured capability cannot be imported."""

    kind = "capability"

    def __init__(self, key: str, reference: str, reason: str = "") -> None:
        self.key = key
        self.reference = reference
        msg = f"No capability '{reference}' for '{key}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
