"""Staged, all-or-nothing application of planned operations.

States: PLANNED -> STAGING -> COMMITTED | ROLLED_BACK | FAILED.

Every write is staged to a sibling file first. Real targets are only touched
once all staging succeeded, and then only through ``os.replace``. A failure
while staging rolls back and leaves targets untouched. A failure while
committing is a partial commit and reports exactly what changed.
"""

from __future__ import annotations

import logging
import os
import shutil
import threading
import time
from pathlib import Path

from opdoc.errors import OpdocError, PartialCommitError, StagingFailure
from opdoc.execution.models import (
    ApplyResult,
    ApplyState,
    OperationKind,
    PlannedOperation,
    Precondition,
)
from opdoc.execution.staging import DEFAULT_STAGING_SUFFIX, staging_path

logger = logging.getLogger(__name__)


class _Staged:
    """An operation with its staged artifact (writes) or resolved destination (moves)."""

    __slots__ = ("operation", "artifact", "destination")

    def __init__(
        self,
        operation: PlannedOperation,
        artifact: Path | None = None,
        destination: Path | None = None,
    ) -> None:
        self.operation = operation
        self.artifact = artifact
        self.destination = destination


class ExecutionApplier:
    """Applies a plan to the project root."""

    def __init__(self, root: str | Path, staging_suffix: str = DEFAULT_STAGING_SUFFIX) -> None:
        self.root = Path(root).resolve()
        self.staging_suffix = staging_suffix
        self.state = ApplyState.PLANNED

    def apply(
        self,
        operations: list[PlannedOperation],
        *,
        dry_run: bool = False,
        cancel_event: threading.Event | None = None,
        deadline: float | None = None,
    ) -> ApplyResult:
        """Stage then commit ``operations`` in order.

        ``deadline`` is a ``time.monotonic()`` value; passing it, or setting
        ``cancel_event``, during staging rolls the document back.
        """
        self.state = ApplyState.PLANNED
        if dry_run:
            logger.debug("dry-run: would apply %d operation(s)", len(operations))
            return ApplyResult(state=ApplyState.PLANNED, dry_run=True, completed=list(operations))

        staged, created_dirs, failure = self._stage(operations, cancel_event, deadline)
        if failure is not None:
            self._rollback(staged, created_dirs)
            self.state = ApplyState.ROLLED_BACK
            failed = operations[len(staged)] if len(staged) < len(operations) else None
            cancelled = failure.reason in ("cancelled", "timed out")
            logger.warning("rolled back: %s", failure)
            return ApplyResult(
                state=self.state,
                failed=None if cancelled else failed,
                pending=list(operations),
                error=failure,
                cancelled=cancelled,
            )

        return self._commit(staged, created_dirs)

    # ------------------------------------------------------------------
    # Staging
    # ------------------------------------------------------------------

    def _stage(
        self,
        operations: list[PlannedOperation],
        cancel_event: threading.Event | None,
        deadline: float | None,
    ) -> tuple[list[_Staged], list[Path], StagingFailure | None]:
        self.state = ApplyState.STAGING
        staged: list[_Staged] = []
        created_dirs: list[Path] = []
        try:
            for op in operations:
                self._check_interrupt(op, cancel_event, deadline)
                self._check_precondition(op)
                if op.kind is OperationKind.WRITE:
                    staged.append(_Staged(op, artifact=self._stage_write(op, created_dirs)))
                elif op.kind is OperationKind.MOVE:
                    destination = self._destination(op)
                    self._ensure_parent(destination, created_dirs)
                    staged.append(_Staged(op, destination=destination))
                else:
                    staged.append(_Staged(op))
            if operations:
                self._check_interrupt(operations[-1], cancel_event, deadline)
        except StagingFailure as e:
            return staged, created_dirs, e
        except OSError as e:
            path = operations[len(staged)].path
            return staged, created_dirs, StagingFailure(path, str(e))
        return staged, created_dirs, None

    @staticmethod
    def _check_interrupt(
        op: PlannedOperation, cancel_event: threading.Event | None, deadline: float | None
    ) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise StagingFailure(op.path, "cancelled")
        if deadline is not None and time.monotonic() > deadline:
            raise StagingFailure(op.path, "timed out")

    def _check_precondition(self, op: PlannedOperation) -> None:
        """Re-check the plan's assumptions against the live filesystem."""
        target = self.root / op.path
        exists = target.exists() or target.is_symlink()
        if op.precondition is Precondition.MUST_EXIST and not target.is_file():
            raise StagingFailure(op.path, "target no longer exists")
        if op.precondition is Precondition.MUST_NOT_EXIST and exists:
            raise StagingFailure(op.path, "target appeared since planning")
        if op.kind is OperationKind.MOVE:
            dest = self._destination(op)
            if dest.exists() or dest.is_symlink():
                raise StagingFailure(op.destination, "rename destination appeared since planning")

    def _destination(self, op: PlannedOperation) -> Path:
        if op.destination is None:
            raise StagingFailure(op.path, "rename has no destination")
        return self.root / op.destination

    def _ensure_parent(self, target: Path, created_dirs: list[Path]) -> None:
        missing: list[Path] = []
        parent = target.parent
        while not parent.exists() and parent != self.root:
            missing.append(parent)
            parent = parent.parent
        for directory in reversed(missing):
            directory.mkdir()
            created_dirs.append(directory)

    def _stage_write(self, op: PlannedOperation, created_dirs: list[Path]) -> Path:
        target = self.root / op.path
        self._ensure_parent(target, created_dirs)
        artifact = staging_path(target, self.staging_suffix)
        try:
            with open(artifact, "x", encoding="utf-8", newline="") as f:
                f.write(op.final_content or "")
                f.flush()
                os.fsync(f.fileno())
            if target.is_file():
                shutil.copymode(target, artifact)
        except OSError:
            artifact.unlink(missing_ok=True)
            raise
        logger.debug("staged %s -> %s", op.path, artifact.name)
        return artifact

    # ------------------------------------------------------------------
    # Commit / rollback
    # ------------------------------------------------------------------

    def _commit(self, staged: list[_Staged], created_dirs: list[Path]) -> ApplyResult:
        completed: list[PlannedOperation] = []
        for position, item in enumerate(staged):
            op = item.operation
            try:
                self._commit_one(item)
            except OSError as e:
                remaining = staged[position:]
                if not completed:
                    self._rollback(remaining, created_dirs)
                    self.state = ApplyState.ROLLED_BACK
                    logger.warning("commit of %s failed before any change; rolled back", op.path)
                    return ApplyResult(
                        state=self.state,
                        failed=op,
                        pending=[s.operation for s in remaining],
                        error=StagingFailure(op.path, str(e)),
                    )
                self._rollback(remaining, created_dirs)
                pending = [s.operation for s in remaining]
                error = PartialCommitError(
                    [p for c in completed for p in c.paths],
                    [p for s in pending for p in s.paths],
                    str(e),
                )
                self.state = ApplyState.FAILED
                logger.error("partial commit: %s", error)
                return ApplyResult(
                    state=self.state, completed=completed, failed=op,
                    pending=pending, error=error,
                )
            completed.append(op)

        self.state = ApplyState.COMMITTED
        logger.info("committed %d operation(s)", len(completed))
        return ApplyResult(state=self.state, completed=completed)

    def _commit_one(self, item: _Staged) -> None:
        target = self.root / item.operation.path
        if item.artifact is not None:
            os.replace(item.artifact, target)
        elif item.destination is not None:
            os.replace(target, item.destination)
        else:
            os.unlink(target)

    def _discard(self, staged: list[_Staged]) -> None:
        for item in staged:
            if item.artifact is not None:
                try:
                    item.artifact.unlink(missing_ok=True)
                except OSError:
                    logger.warning("Could not remove staged file %s", item.artifact, exc_info=True)

    def _rollback(self, staged: list[_Staged], created_dirs: list[Path]) -> None:
        self._discard(staged)
        for directory in reversed(created_dirs):
            try:
                directory.rmdir()
            except OSError:
                logger.debug("leaving non-empty directory %s", directory)


def describe(result: ApplyResult) -> str:
    """One-line summary of an apply result."""
    if result.dry_run:
        return f"dry run: {len(result.completed)} operation(s) would be applied"
    if result.state is ApplyState.COMMITTED:
        return f"committed {len(result.completed)} operation(s)"
    error: OpdocError | None = result.error
    return f"{result.state.value}: {error}" if error else result.state.value
