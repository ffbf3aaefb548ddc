"""Operation document parsing: tokenizer, markdown extraction, validation."""

from opdoc.parser.builder import TransactionBuilder, check_relative_path, infer_language
from opdoc.parser.document import is_markdown, parse_document
from opdoc.parser.markdown import extract_op_text
from opdoc.parser.models import (
    ActionKind,
    ContentBlock,
    OperationDocument,
    RawBlock,
    RawRecord,
    Transaction,
)
from opdoc.parser.tokenizer import tokenize

__all__ = [
    "ActionKind",
    "ContentBlock",
    "OperationDocument",
    "RawBlock",
    "RawRecord",
    "Transaction",
    "TransactionBuilder",
    "check_relative_path",
    "extract_op_text",
    "infer_language",
    "is_markdown",
    "parse_document",
    "tokenize",
]
