"""Models for processed content."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from opdoc.capabilities.base import Diagnostic
from opdoc.errors import ProcessingError
from opdoc.parser.models import ContentBlock, Transaction


class ProcessedBlock(BaseModel):
    block: ContentBlock
    capability: str
    diagnostics: list[Diagnostic] = Field(default_factory=list)


class ProcessedTransaction(BaseModel):
    """A transaction whose blocks carry their finalized content."""

    transaction: Transaction
    capabilities: list[str] = Field(default_factory=list)
    diagnostics: list[Diagnostic] = Field(default_factory=list)

    @property
    def index(self) -> int:
        return self.transaction.index

    @property
    def content(self) -> str | None:
        """Concatenated processed content, or None for metadata-only actions."""
        blocks = self.transaction.blocks
        if not blocks:
            return None
        return "".join(b.processed_content or "" for b in blocks)


class ProcessingOutcome(BaseModel):
    """Result of processing a whole document."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    processed: list[ProcessedTransaction] = Field(default_factory=list)
    errors: list[ProcessingError] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors
