"""Content processing: capability analysis and transformation."""

from opdoc.processing.models import ProcessedBlock, ProcessedTransaction, ProcessingOutcome
from opdoc.processing.processor import ContentProcessor

__all__ = [
    "ContentProcessor",
    "ProcessedBlock",
    "ProcessedTransaction",
    "ProcessingOutcome",
]
