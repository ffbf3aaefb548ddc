"""Run the document pipeline over many sources, optionally in parallel."""

from __future__ import annotations

import logging
import threading
from collections.abc import Sequence
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from pathlib import Path

from opdoc.config.models import ApplyConfig
from opdoc.execution.models import ExecutionReport
from opdoc.pipeline import DocumentPipeline

logger = logging.getLogger(__name__)


class BatchDriver:
    """Fans documents out to a bounded worker pool.

    Documents that touch the same paths serialize on the pipeline's path
    locks. With ``continue_on_error`` off, no new document starts after one
    fails; documents never started get a ``skipped`` report.
    """

    def __init__(self, pipeline: DocumentPipeline, config: ApplyConfig | None = None) -> None:
        self.pipeline = pipeline
        self.config = config or pipeline.config

    def run_all(
        self,
        sources: Sequence[str | Path],
        cancel_event: threading.Event | None = None,
    ) -> list[ExecutionReport]:
        """Return one report per source, in input order."""
        sources = list(sources)
        reports: list[ExecutionReport | None] = [None] * len(sources)
        workers = min(self.config.max_parallelism, max(len(sources), 1))
        stop_reason: str | None = None

        def check_stop() -> str | None:
            if cancel_event is not None and cancel_event.is_set():
                return "cancelled before start"
            return stop_reason

        def record(index: int, report: ExecutionReport) -> str | None:
            reports[index] = report
            if report.outcome.is_failure and not self.config.continue_on_error:
                logger.warning("%s failed; not starting further documents", report.source)
                return f"not started: {report.source} failed"
            return None

        if workers <= 1:
            for index, source in enumerate(sources):
                stop_reason = check_stop()
                if stop_reason:
                    break
                stop_reason = record(index, self.pipeline.run_source(source, cancel_event))
        else:
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="opdoc") as pool:
                running: dict[Future[ExecutionReport], int] = {}
                next_index = 0
                while True:
                    while next_index < len(sources) and len(running) < workers:
                        stop_reason = check_stop()
                        if stop_reason:
                            break
                        future = pool.submit(self.pipeline.run_source, sources[next_index], cancel_event)
                        running[future] = next_index
                        next_index += 1
                    if not running:
                        break
                    done, _ = wait(running, return_when=FIRST_COMPLETED)
                    for future in done:
                        index = running.pop(future)
                        reason = record(index, future.result())
                        stop_reason = stop_reason or reason

        reason = stop_reason or "not started"
        final: list[ExecutionReport] = []
        for index, report in enumerate(reports):
            if report is None:
                report = ExecutionReport.skipped_report(
                    str(sources[index]), reason, dry_run=self.config.dry_run
                )
            final.append(report)
        return final
