"""Tokenizer for the operation document syntax.

A document is a sequence of records enclosed by standalone ``~`` lines::

    ~
    action: create
    target: hello.txt
    reasoning: Say hello
    [block]
    hi
    [/block]
    ~

Metadata lines come first, then zero or more ``[block] ... [/block]``
sections. Text outside records must be whitespace.
"""

from __future__ import annotations

import logging
import re

from opdoc.errors import ParseError, ParseErrorKind
from opdoc.parser.models import RawBlock, RawRecord

logger = logging.getLogger(__name__)

RECORD_MARKER = "~"
BLOCK_CLOSE = "[/block]"

_BLOCK_OPEN_RE = re.compile(r"\[block(?:\s+lang=(?P<lang>[\w.+#-]+))?\]")
_METADATA_RE = re.compile(r"(?P<key>[A-Za-z][\w-]*)\s*:\s?(?P<value>.*)")
_LINE_RE = re.compile(r"[^\n]*\n|[^\n]+")

BOM = "\ufeff"

# Record states
_METADATA = "metadata"
_BODY = "body"
_IN_BLOCK = "in_block"


def normalize_key(key: str) -> str:
    """Metadata keys are case-insensitive and treat ``_`` like ``-``."""
    return key.strip().lower().replace("_", "-")


def _indent(text: str) -> int:
    return len(text) - len(text.lstrip())


def split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only, keeping each line's original ending.

    Carriage returns and other Unicode line separators stay part of the line.
    """
    return _LINE_RE.findall(text)


class _RecordBuilder:
    """Mutable accumulator for the record currently being read."""

    def __init__(self, line: int, column: int, offset: int) -> None:
        self.line = line
        self.column = column
        self.offset = offset
        self.state = _METADATA
        self.metadata: dict[str, str] = {}
        self.metadata_lines: dict[str, int] = {}
        self.blocks: list[RawBlock] = []
        self.last_key: str | None = None

        # Open block bookkeeping
        self.block_line = 0
        self.block_column = 0
        self.block_offset = 0
        self.block_lang: str | None = None
        self.pieces: list[str] = []

    def open_block(self, line: int, column: int, offset: int, lang: str | None) -> None:
        self.block_line = line
        self.block_column = column
        self.block_offset = offset
        self.block_lang = lang
        self.pieces = []
        self.state = _IN_BLOCK

    def close_block(self, end_line: int, end_offset: int) -> None:
        self.blocks.append(
            RawBlock(
                content="".join(self.pieces),
                start_line=self.block_line,
                end_line=end_line,
                column=self.block_column,
                start_offset=self.block_offset,
                end_offset=end_offset,
                language=self.block_lang,
            )
        )
        self.pieces = []
        self.state = _BODY

    def finish(self, end_line: int) -> RawRecord:
        return RawRecord(
            start_line=self.line,
            end_line=end_line,
            column=self.column,
            start_offset=self.offset,
            metadata=dict(self.metadata),
            metadata_lines=dict(self.metadata_lines),
            blocks=tuple(self.blocks),
        )


def _read_block_line(record: _RecordBuilder, line: str, lineno: int, line_offset: int) -> None:
    """Feed one raw line to an open block. Content is kept byte for byte."""
    body = line.rstrip("\n").rstrip("\r")
    stripped = body.strip()
    if _BLOCK_OPEN_RE.match(stripped):
        raise ParseError(
            ParseErrorKind.UNEXPECTED_MARKER, lineno, _indent(body) + 1,
            f"blocks do not nest (block opened at line {record.block_line})",
        )
    trimmed = body.rstrip()
    if not trimmed.endswith(BLOCK_CLOSE):
        record.pieces.append(line)
        return
    prefix = trimmed[: -len(BLOCK_CLOSE)]
    if prefix.strip():
        record.pieces.append(prefix)
    else:
        prefix = ""
    record.close_block(lineno, line_offset + len(prefix.encode("utf-8")))


def tokenize(text: str) -> list[RawRecord]:
    """Split raw document text into records.

    Raises ParseError on any structural defect; nothing is returned for a
    document that fails.
    """
    records: list[RawRecord] = []
    record: _RecordBuilder | None = None

    offset = 0
    if text.startswith(BOM):
        text = text[len(BOM):]
        offset = len(BOM.encode("utf-8"))

    lineno = 0
    for lineno, line in enumerate(split_lines(text), start=1):
        line_offset = offset
        offset += len(line.encode("utf-8"))

        if record is not None and record.state == _IN_BLOCK:
            _read_block_line(record, line, lineno, line_offset)
            continue

        body = line.rstrip("\n").rstrip("\r")
        stripped = body.strip()
        column = _indent(body) + 1

        if record is None:
            if stripped == RECORD_MARKER:
                record = _RecordBuilder(lineno, column, line_offset)
            elif stripped:
                kind = (
                    ParseErrorKind.UNEXPECTED_MARKER
                    if _BLOCK_OPEN_RE.match(stripped) or stripped.startswith(BLOCK_CLOSE)
                    else ParseErrorKind.UNEXPECTED_CONTENT
                )
                raise ParseError(kind, lineno, column, "text outside of a record")
            continue

        if stripped == RECORD_MARKER:
            records.append(record.finish(lineno))
            record = None
            continue
        if not stripped:
            record.last_key = None
            continue

        opened = _BLOCK_OPEN_RE.match(stripped)
        if opened:
            rest = stripped[opened.end():]
            lang = opened.group("lang")
            if BLOCK_CLOSE in rest:
                content, _, trailing = rest.partition(BLOCK_CLOSE)
                if trailing.strip():
                    raise ParseError(
                        ParseErrorKind.UNEXPECTED_CONTENT, lineno, column,
                        "text after closing block marker",
                    )
                start = line_offset + len(
                    body[: _indent(body) + opened.end()].encode("utf-8")
                )
                record.open_block(lineno, column, start, lang)
                record.pieces.append(content)
                record.close_block(lineno, start + len(content.encode("utf-8")))
            elif rest.strip():
                raise ParseError(
                    ParseErrorKind.UNEXPECTED_CONTENT, lineno, column,
                    "text after opening block marker",
                )
            else:
                record.open_block(lineno, column, offset, lang)
            record.last_key = None
            continue

        if stripped.startswith(BLOCK_CLOSE):
            raise ParseError(
                ParseErrorKind.UNEXPECTED_MARKER, lineno, column,
                "closing block marker without an open block",
            )

        if record.state == _BODY:
            raise ParseError(
                ParseErrorKind.UNEXPECTED_CONTENT, lineno, column,
                "metadata must precede content blocks",
            )

        if body[:1].isspace() and record.last_key is not None:
            key = record.last_key
            record.metadata[key] = f"{record.metadata[key]}\n{stripped}".strip()
            continue

        match = _METADATA_RE.fullmatch(stripped)
        if match is None:
            raise ParseError(
                ParseErrorKind.UNEXPECTED_CONTENT, lineno, column,
                "expected 'key: value'",
            )
        key = normalize_key(match.group("key"))
        if key in record.metadata:
            raise ParseError(
                ParseErrorKind.UNEXPECTED_CONTENT, lineno, column,
                f"duplicate metadata key '{key}'",
            )
        record.metadata[key] = match.group("value").strip()
        record.metadata_lines[key] = lineno
        record.last_key = key

    if record is not None:
        if record.state == _IN_BLOCK:
            raise ParseError(
                ParseErrorKind.UNTERMINATED_BLOCK, record.block_line, record.block_column,
                "block has no closing marker",
            )
        raise ParseError(
            ParseErrorKind.UNTERMINATED_RECORD, record.line, record.column,
            "record has no closing marker",
        )
    if not records:
        raise ParseError(
            ParseErrorKind.EMPTY_DOCUMENT, max(lineno, 1), 1, "no records found"
        )

    logger.debug("tokenized %d record(s)", len(records))
    return records
