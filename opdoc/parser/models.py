"""Token and transaction models for operation documents."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


# ---------------------------------------------------------------------------
# Tokenizer output
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RawBlock:
    """A content block exactly as it appeared in the source."""

    content: str
    start_line: int
    end_line: int
    column: int
    start_offset: int
    end_offset: int
    language: str | None = None


@dataclass(frozen=True)
class RawRecord:
    """One ``~``-delimited record before validation."""

    start_line: int
    end_line: int
    column: int
    start_offset: int
    metadata: dict[str, str] = field(default_factory=dict)
    metadata_lines: dict[str, int] = field(default_factory=dict)
    blocks: tuple[RawBlock, ...] = ()


# ---------------------------------------------------------------------------
# Validated transactions
# ---------------------------------------------------------------------------


class ActionKind(str, Enum):
    CREATE = "create"
    MODIFY = "modify"
    DELETE = "delete"
    APPEND = "append"
    RENAME = "rename"

    @property
    def is_metadata_only(self) -> bool:
        return self in (ActionKind.DELETE, ActionKind.RENAME)


class ContentBlock(BaseModel):
    """Delimited text attached to a transaction."""

    model_config = ConfigDict(frozen=True)

    raw_content: str
    language: str
    start_line: int
    end_line: int
    start_offset: int
    end_offset: int
    processed_content: str | None = None


class Transaction(BaseModel):
    """The atomic unit of work described by one record."""

    model_config = ConfigDict(frozen=True)

    index: int
    action: ActionKind
    target: str
    reasoning: str
    developer_notes: str | None = None
    author: str | None = None
    destination: str | None = None
    extra: dict[str, str] = Field(default_factory=dict)
    blocks: tuple[ContentBlock, ...] = ()
    line: int = 0

    @property
    def touched_paths(self) -> list[str]:
        paths = [self.target]
        if self.destination:
            paths.append(self.destination)
        return paths


class OperationDocument(BaseModel):
    """Ordered transactions parsed from one source."""

    model_config = ConfigDict(frozen=True)

    source: str
    transactions: tuple[Transaction, ...] = ()
