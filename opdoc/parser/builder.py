"""Turn raw records into validated transactions.

Validation is purely lexical: nothing here touches the filesystem, so a whole
document can be checked before any I/O. Existence checks belong to the
planner.
"""

from __future__ import annotations

import logging
import re
from pathlib import PurePosixPath

from opdoc.errors import DocumentValidationError, ValidationError
from opdoc.execution.staging import DEFAULT_STAGING_SUFFIX
from opdoc.parser.models import (
    ActionKind,
    ContentBlock,
    OperationDocument,
    RawBlock,
    RawRecord,
    Transaction,
)

logger = logging.getLogger(__name__)

KNOWN_KEYS = {"action", "target", "reasoning", "developer-notes", "author", "destination"}

_DRIVE_RE = re.compile(r"^[A-Za-z]:")


def check_relative_path(value: str, reserved_suffix: str = DEFAULT_STAGING_SUFFIX) -> tuple[str | None, str | None]:
    """Lexically validate a document path.

    Returns ``(normalized_path, None)`` when the path is safe, otherwise
    ``(None, reason)``.
    """
    if not value or not value.strip():
        return None, "is required"
    if "\x00" in value:
        return None, "contains a NUL byte"
    norm = value.strip().replace("\\", "/")
    if norm.startswith("/") or _DRIVE_RE.match(norm):
        return None, "must be a relative path"
    parts = norm.split("/")
    if ".." in parts:
        return None, "must not contain '..' segments"
    cleaned = [p for p in parts if p not in ("", ".")]
    if not cleaned:
        return None, "must name a file inside the project root"
    if cleaned[-1].endswith(reserved_suffix):
        return None, f"must not use the reserved suffix '{reserved_suffix}'"
    return str(PurePosixPath(*cleaned)), None


def infer_language(target: str, override: str | None = None) -> str:
    """Language key for a block: explicit override, else the target's extension."""
    if override:
        return override.lower()
    return PurePosixPath(target).suffix.lower()


class TransactionBuilder:
    """Validates raw records and builds immutable ``Transaction`` values."""

    def __init__(self, reserved_suffix: str = DEFAULT_STAGING_SUFFIX) -> None:
        self.reserved_suffix = reserved_suffix

    def build_document(self, records: list[RawRecord], source: str) -> OperationDocument:
        """Validate every record, collecting all errors before raising."""
        transactions: list[Transaction] = []
        errors: list[ValidationError] = []
        for index, record in enumerate(records):
            txn, txn_errors = self._collect(record, index)
            errors.extend(txn_errors)
            if txn is not None:
                transactions.append(txn)
        if errors:
            logger.debug("%s: %d validation error(s)", source, len(errors))
            raise DocumentValidationError(errors)
        return OperationDocument(source=source, transactions=tuple(transactions))

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _collect(
        self, record: RawRecord, index: int
    ) -> tuple[Transaction | None, list[ValidationError]]:
        meta = record.metadata
        errors: list[ValidationError] = []

        action: ActionKind | None = None
        raw_action = meta.get("action", "").strip()
        if not raw_action:
            errors.append(ValidationError(index, "action", "is required"))
        else:
            try:
                action = ActionKind(raw_action.lower())
            except ValueError:
                known = ", ".join(a.value for a in ActionKind)
                errors.append(
                    ValidationError(index, "action", f"unknown action '{raw_action}' (expected one of: {known})")
                )

        target, reason = check_relative_path(meta.get("target", ""), self.reserved_suffix)
        if reason:
            errors.append(ValidationError(index, "target", reason))

        reasoning = meta.get("reasoning", "").strip()
        if not reasoning:
            errors.append(ValidationError(index, "reasoning", "must not be empty"))

        destination: str | None = None
        if action is ActionKind.RENAME:
            destination, reason = check_relative_path(meta.get("destination", ""), self.reserved_suffix)
            if reason:
                errors.append(ValidationError(index, "destination", reason))
            elif destination == target:
                errors.append(ValidationError(index, "destination", "must differ from target"))
        elif "destination" in meta:
            errors.append(ValidationError(index, "destination", "only allowed for rename"))

        if action is not None:
            if action.is_metadata_only and record.blocks:
                errors.append(
                    ValidationError(index, "blocks", f"'{action.value}' must not carry content blocks")
                )
            elif not action.is_metadata_only and not record.blocks:
                errors.append(
                    ValidationError(index, "blocks", f"'{action.value}' requires at least one content block")
                )

        if errors or action is None or target is None:
            return None, errors

        blocks = tuple(self._make_block(b, target) for b in record.blocks)
        extra = {k: v for k, v in meta.items() if k not in KNOWN_KEYS}
        txn = Transaction(
            index=index,
            action=action,
            target=target,
            reasoning=reasoning,
            developer_notes=meta.get("developer-notes") or None,
            author=meta.get("author") or None,
            destination=destination,
            extra=extra,
            blocks=blocks,
            line=record.start_line,
        )
        return txn, []

    @staticmethod
    def _make_block(block: RawBlock, target: str) -> ContentBlock:
        return ContentBlock(
            raw_content=block.content,
            language=infer_language(target, block.language),
            start_line=block.start_line,
            end_line=block.end_line,
            start_offset=block.start_offset,
            end_offset=block.end_offset,
        )
