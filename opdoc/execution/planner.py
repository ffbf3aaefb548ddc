"""Turn processed transactions into planned filesystem operations.

Planning only reads: it checks preconditions against a FileSystemView and
never mutates anything.
"""

from __future__ import annotations

import logging

from opdoc.errors import PlanError, PlanErrorKind, PlanFailed
from opdoc.execution.filesystem import FileSystemView
from opdoc.execution.models import OperationKind, PlannedOperation, Precondition
from opdoc.parser.models import ActionKind
from opdoc.processing.models import ProcessedTransaction

logger = logging.getLogger(__name__)

# Actions that may follow a create of the same path and fold into it.
_MERGEABLE = {ActionKind.MODIFY, ActionKind.APPEND}


def join_append(existing: str, addition: str) -> str:
    """Append ``addition``, starting it on a new line if needed."""
    if existing and not existing.endswith("\n"):
        return f"{existing}\n{addition}"
    return existing + addition


class ExecutionPlanner:
    """Plans one operation per transaction, in document order."""

    def __init__(self, fs: FileSystemView, overwrite: bool = False) -> None:
        self.fs = fs
        self.overwrite = overwrite

    def plan(self, transactions: list[ProcessedTransaction]) -> list[PlannedOperation]:
        """Raise PlanFailed with every problem found, or return the plan."""
        errors: list[PlanError] = []
        operations: list[PlannedOperation] = []
        claimed: dict[str, int] = {}  # path -> position in operations

        for processed in transactions:
            txn = processed.transaction
            unsafe = [p for p in txn.touched_paths if not self.fs.is_within_root(p)]
            if unsafe:
                errors.extend(
                    PlanError(PlanErrorKind.UNSAFE_PATH, p, "resolves outside the project root", [txn.index])
                    for p in unsafe
                )
                continue

            position = claimed.get(txn.target)
            if position is not None:
                previous = operations[position]
                if previous.action is ActionKind.CREATE and txn.action in _MERGEABLE and previous.kind is OperationKind.WRITE:
                    operations[position] = self._merge(previous, processed)
                    continue
                errors.append(
                    PlanError(
                        PlanErrorKind.CONFLICT, txn.target,
                        "targeted by more than one transaction",
                        [*previous.transaction_indices, txn.index],
                    )
                )
                continue

            if txn.destination is not None and txn.destination in claimed:
                previous = operations[claimed[txn.destination]]
                errors.append(
                    PlanError(
                        PlanErrorKind.CONFLICT, txn.destination,
                        "rename destination is targeted by another transaction",
                        [*previous.transaction_indices, txn.index],
                    )
                )
                continue

            try:
                operation = self._plan_one(processed)
            except PlanError as e:
                errors.append(e)
                continue
            for path in operation.paths:
                claimed[path] = len(operations)
            operations.append(operation)

        if errors:
            logger.debug("planning failed with %d error(s)", len(errors))
            raise PlanFailed(errors)
        return operations

    # ------------------------------------------------------------------

    def _plan_one(self, processed: ProcessedTransaction) -> PlannedOperation:
        txn = processed.transaction
        path = txn.target
        indices = (txn.index,)

        if txn.action is ActionKind.CREATE:
            if self.fs.exists(path):
                if not self.fs.is_file(path):
                    raise PlanError(PlanErrorKind.PRECONDITION, path, "exists and is not a regular file", [txn.index])
                if not self.overwrite:
                    raise PlanError(PlanErrorKind.PRECONDITION, path, "already exists", [txn.index])
            precondition = Precondition.UNCONSTRAINED if self.overwrite else Precondition.MUST_NOT_EXIST
            return PlannedOperation(
                path=path, kind=OperationKind.WRITE, action=txn.action,
                precondition=precondition, final_content=processed.content,
                transaction_indices=indices,
            )

        self._require_file(path, txn.index)

        if txn.action is ActionKind.MODIFY:
            content = processed.content
        elif txn.action is ActionKind.APPEND:
            content = join_append(self._read(path, txn.index), processed.content or "")
        elif txn.action is ActionKind.DELETE:
            return PlannedOperation(
                path=path, kind=OperationKind.DELETE, action=txn.action,
                precondition=Precondition.MUST_EXIST, transaction_indices=indices,
            )
        else:
            destination = txn.destination
            if destination is None:
                raise PlanError(PlanErrorKind.PRECONDITION, path, "rename has no destination", [txn.index])
            if self.fs.exists(destination):
                raise PlanError(PlanErrorKind.PRECONDITION, destination, "rename destination already exists", [txn.index])
            return PlannedOperation(
                path=path, kind=OperationKind.MOVE, action=txn.action,
                precondition=Precondition.MUST_EXIST, destination=destination,
                transaction_indices=indices,
            )

        return PlannedOperation(
            path=path, kind=OperationKind.WRITE, action=txn.action,
            precondition=Precondition.MUST_EXIST, final_content=content,
            transaction_indices=indices,
        )

    def _merge(self, previous: PlannedOperation, processed: ProcessedTransaction) -> PlannedOperation:
        """Fold a modify/append into the create planned earlier for the same path."""
        txn = processed.transaction
        addition = processed.content or ""
        if txn.action is ActionKind.APPEND:
            content = join_append(previous.final_content or "", addition)
        else:
            content = addition
        logger.debug("merged transaction %d into create of %s", txn.index, previous.path)
        return previous.model_copy(
            update={
                "final_content": content,
                "transaction_indices": (*previous.transaction_indices, txn.index),
            }
        )

    def _require_file(self, path: str, index: int) -> None:
        if not self.fs.exists(path):
            raise PlanError(PlanErrorKind.PRECONDITION, path, "does not exist", [index])
        if not self.fs.is_file(path):
            raise PlanError(PlanErrorKind.PRECONDITION, path, "is not a regular file", [index])

    def _read(self, path: str, index: int) -> str:
        try:
            return self.fs.read_text(path)
        except (OSError, UnicodeDecodeError) as e:
            raise PlanError(PlanErrorKind.READ_FAILED, path, str(e), [index]) from e
