"""Run one operation document through parse, process, plan and apply."""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path

from opdoc.capabilities.registry import CapabilityRegistry
from opdoc.config.models import ApplyConfig
from opdoc.errors import DocumentValidationError, ErrorRecord, ParseError, PlanFailed
from opdoc.execution.applier import ExecutionApplier, describe
from opdoc.execution.filesystem import FileSystemView, LocalFileSystem
from opdoc.execution.locks import PathLockManager
from opdoc.execution.models import (
    ApplyResult,
    ApplyState,
    DocumentOutcome,
    ExecutionReport,
    TransactionResult,
    TransactionStatus,
)
from opdoc.execution.planner import ExecutionPlanner
from opdoc.execution.staging import DEFAULT_STAGING_SUFFIX
from opdoc.parser.builder import TransactionBuilder
from opdoc.parser.document import is_markdown
from opdoc.parser.markdown import extract_op_text
from opdoc.parser.models import RawRecord
from opdoc.parser.tokenizer import tokenize
from opdoc.processing.processor import ContentProcessor

logger = logging.getLogger(__name__)


def _record_result(index: int, record: RawRecord, status: TransactionStatus) -> TransactionResult:
    return TransactionResult(
        index=index,
        action=record.metadata.get("action", "").lower(),
        target=record.metadata.get("target", ""),
        status=status,
    )


class DocumentPipeline:
    """Parses, processes, plans and applies a single document.

    The registry is frozen on construction; one pipeline instance is safe to
    share between worker threads.
    """

    def __init__(
        self,
        root: str | Path,
        registry: CapabilityRegistry,
        config: ApplyConfig | None = None,
        *,
        staging_suffix: str = DEFAULT_STAGING_SUFFIX,
        locks: PathLockManager | None = None,
        fs: FileSystemView | None = None,
    ) -> None:
        self.root = Path(root).resolve()
        self.registry = registry.freeze()
        self.config = config or ApplyConfig()
        self.staging_suffix = staging_suffix
        self.locks = locks or PathLockManager()
        self.fs = fs or LocalFileSystem(self.root)
        self.builder = TransactionBuilder(reserved_suffix=staging_suffix)
        self.processor = ContentProcessor(self.registry)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run_source(self, path: str | Path, cancel_event: threading.Event | None = None) -> ExecutionReport:
        """Read ``path`` and run it. Unreadable sources yield a failed report."""
        source = str(path)
        try:
            text = Path(path).read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error("cannot read %s: %s", source, e)
            return ExecutionReport(
                source=source,
                outcome=DocumentOutcome.FAILED,
                dry_run=self.config.dry_run,
                errors=[ErrorRecord(kind="io", message=f"cannot read document: {e}")],
            )
        return self.run_text(text, source, cancel_event)

    def run_text(
        self, text: str, source: str = "<string>", cancel_event: threading.Event | None = None
    ) -> ExecutionReport:
        started = time.monotonic()
        report = self._run(text, source, cancel_event, started)
        report.duration_ms = (time.monotonic() - started) * 1000
        report.tally()
        logger.info(
            "%s: %s (%d applied, %d skipped, %d failed)",
            source, report.outcome.value, report.applied, report.skipped, report.failed,
        )
        return report

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _run(
        self, text: str, source: str, cancel_event: threading.Event | None, started: float
    ) -> ExecutionReport:
        cfg = self.config
        report = ExecutionReport(source=source, outcome=DocumentOutcome.FAILED, dry_run=cfg.dry_run)

        # 1. Tokenize
        try:
            records = tokenize(extract_op_text(text) if is_markdown(source) else text)
        except ParseError as e:
            report.errors.append(e.to_record())
            return report

        # 2. Validate
        try:
            document = self.builder.build_document(records, source)
        except DocumentValidationError as e:
            bad = {err.transaction_index for err in e.errors}
            report.transactions = [
                _record_result(i, r, TransactionStatus.FAILED if i in bad else TransactionStatus.SKIPPED)
                for i, r in enumerate(records)
            ]
            report.errors.extend(err.to_record() for err in e.errors)
            return report

        # 3. Process
        outcome = self.processor.process_document(document)
        results = {
            p.index: TransactionResult(
                index=p.index,
                action=p.transaction.action.value,
                target=p.transaction.target,
                capabilities=p.capabilities,
                diagnostics=p.diagnostics,
            )
            for p in outcome.processed
        }
        for txn in document.transactions:
            results.setdefault(
                txn.index,
                TransactionResult(index=txn.index, action=txn.action.value, target=txn.target),
            )
        report.transactions = [results[i] for i in sorted(results)]

        if outcome.errors:
            for err in outcome.errors:
                results[err.transaction_index].status = TransactionStatus.FAILED
                results[err.transaction_index].capabilities = [err.capability]
                report.errors.append(err.to_record())
            if not cfg.partial_apply or not outcome.processed:
                return report
            logger.warning(
                "%s: partial apply, skipping %d failed transaction(s)", source, len(outcome.errors)
            )

        eligible = outcome.processed
        paths = [p for item in eligible for p in item.transaction.touched_paths]

        # 4 + 5. Plan and apply while holding every touched path
        with self.locks.hold(paths):
            try:
                operations = ExecutionPlanner(self.fs, overwrite=cfg.overwrite).plan(eligible)
            except PlanFailed as e:
                for err in e.errors:
                    for index in err.transaction_indices:
                        results[index].status = TransactionStatus.FAILED
                    report.errors.append(err.to_record())
                return report

            report.planned_paths = [p for op in operations for p in op.paths]
            deadline = started + cfg.timeout_seconds if cfg.timeout_seconds else None
            applier = ExecutionApplier(self.root, self.staging_suffix)
            result = applier.apply(
                operations, dry_run=cfg.dry_run, cancel_event=cancel_event, deadline=deadline
            )
        logger.debug("%s: %s", source, describe(result))

        self._apply_result(report, results, result)
        return report

    @staticmethod
    def _apply_result(
        report: ExecutionReport,
        results: dict[int, TransactionResult],
        result: ApplyResult,
    ) -> None:
        def mark(ops, status: TransactionStatus) -> None:
            for op in ops:
                for index in op.transaction_indices:
                    results[index].status = status

        if result.error is not None:
            report.errors.append(result.error.to_record())

        if result.dry_run or result.state is ApplyState.COMMITTED:
            mark(result.completed, TransactionStatus.APPLIED)
            report.outcome = DocumentOutcome.OK
            report.committed = not result.dry_run
            if report.committed:
                report.changed_paths = [p for op in result.completed for p in op.paths]
            return

        if result.state is ApplyState.ROLLED_BACK:
            report.outcome = DocumentOutcome.ROLLED_BACK
            if result.failed is not None:
                mark([result.failed], TransactionStatus.FAILED)
            report.untouched_paths = [p for op in result.pending for p in op.paths]
            return

        # Partial commit
        report.outcome = DocumentOutcome.PARTIAL_COMMIT
        mark(result.completed, TransactionStatus.APPLIED)
        if result.failed is not None:
            mark([result.failed], TransactionStatus.FAILED)
        report.changed_paths = [p for op in result.completed for p in op.paths]
        report.untouched_paths = [p for op in result.pending for p in op.paths]
