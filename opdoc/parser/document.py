"""Parse a whole source (``.op`` or markdown) into an OperationDocument."""

from __future__ import annotations

from pathlib import Path

from opdoc.parser.builder import TransactionBuilder
from opdoc.parser.markdown import MARKDOWN_SUFFIXES, extract_op_text
from opdoc.parser.models import OperationDocument
from opdoc.parser.tokenizer import tokenize


def is_markdown(source: str | Path) -> bool:
    return Path(source).suffix.lower() in MARKDOWN_SUFFIXES


def parse_document(
    text: str,
    source: str = "<string>",
    builder: TransactionBuilder | None = None,
) -> OperationDocument:
    """Tokenize and validate ``text``.

    Raises ParseError for structural defects and DocumentValidationError for
    semantic ones.
    """
    if is_markdown(source):
        text = extract_op_text(text)
    records = tokenize(text)
    return (builder or TransactionBuilder()).build_document(records, source)
