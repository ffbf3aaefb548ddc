"""Run language capabilities over transaction content blocks."""

from __future__ import annotations

import logging

from opdoc.capabilities.base import Diagnostic, LanguageCapability
from opdoc.capabilities.registry import CapabilityRegistry
from opdoc.errors import ProcessingError
from opdoc.parser.models import ContentBlock, OperationDocument, Transaction
from opdoc.processing.models import ProcessedBlock, ProcessedTransaction, ProcessingOutcome

logger = logging.getLogger(__name__)


class ContentProcessor:
    """Analyzes and transforms content using capabilities from a registry.

    Analysis is advisory and never fails a transaction. Transform failures,
    and transforms that change their own output, raise ProcessingError.
    """

    def __init__(self, registry: CapabilityRegistry) -> None:
        self.registry = registry

    def process_block(
        self,
        block: ContentBlock,
        capability: LanguageCapability,
        transaction_index: int = 0,
    ) -> ProcessedBlock:
        diagnostics = self._analyze(block, capability)

        try:
            output = capability.transform(block.raw_content)
        except Exception as e:
            raise ProcessingError(transaction_index, capability.name, str(e) or type(e).__name__) from e
        if not isinstance(output, str):
            raise ProcessingError(
                transaction_index, capability.name,
                f"transform returned {type(output).__name__}, expected str",
            )

        try:
            again = capability.transform(output)
        except Exception as e:
            raise ProcessingError(
                transaction_index, capability.name, f"transform rejected its own output: {e}"
            ) from e
        if again != output:
            raise ProcessingError(transaction_index, capability.name, "transform is not idempotent")

        return ProcessedBlock(
            block=block.model_copy(update={"processed_content": output}),
            capability=capability.name,
            diagnostics=diagnostics,
        )

    def process_transaction(self, transaction: Transaction) -> ProcessedTransaction:
        """Process every block of one transaction in order."""
        blocks: list[ContentBlock] = []
        capabilities: list[str] = []
        diagnostics: list[Diagnostic] = []
        for block in transaction.blocks:
            capability = self.registry.resolve(block.language)
            result = self.process_block(block, capability, transaction.index)
            blocks.append(result.block)
            capabilities.append(result.capability)
            diagnostics.extend(result.diagnostics)

        return ProcessedTransaction(
            transaction=transaction.model_copy(update={"blocks": tuple(blocks)}),
            capabilities=capabilities,
            diagnostics=diagnostics,
        )

    def process_document(self, document: OperationDocument) -> ProcessingOutcome:
        """Process all transactions, collecting failures instead of stopping."""
        outcome = ProcessingOutcome()
        for transaction in document.transactions:
            try:
                outcome.processed.append(self.process_transaction(transaction))
            except ProcessingError as e:
                logger.info("%s: %s", document.source, e)
                outcome.errors.append(e)
        return outcome

    # ------------------------------------------------------------------

    @staticmethod
    def _analyze(block: ContentBlock, capability: LanguageCapability) -> list[Diagnostic]:
        try:
            found = list(capability.analyze(block.raw_content))
        except Exception as e:
            logger.warning("analysis by %s failed", capability.name, exc_info=True)
            return [
                Diagnostic(
                    severity="error",
                    message=f"analysis failed: {e}",
                    line=block.start_line,
                    capability=capability.name,
                )
            ]
        # Diagnostic lines are relative to the block; report them against the source.
        base = block.start_line if block.end_line > block.start_line else block.start_line - 1
        return [
            d.model_copy(
                update={
                    "line": base + d.line if d.line is not None else block.start_line,
                    "capability": d.capability or capability.name,
                }
            )
            for d in found
        ]
