"""Expand CLI paths into the list of documents to run."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from opdoc.execution.staging import DEFAULT_STAGING_SUFFIX

logger = logging.getLogger(__name__)

DOCUMENT_SUFFIXES = {".op", ".md", ".markdown"}

_IGNORE_PARTS = {".git", "node_modules", "__pycache__", ".venv"}


def _is_document(path: Path, staging_suffix: str) -> bool:
    return (
        path.is_file()
        and path.suffix.lower() in DOCUMENT_SUFFIXES
        and not path.name.endswith(staging_suffix)
    )


def collect_sources(
    paths: Iterable[str | Path],
    recursive: bool = False,
    staging_suffix: str = DEFAULT_STAGING_SUFFIX,
) -> list[Path]:
    """Files are taken as given; directories contribute their documents, sorted.

    Raises FileNotFoundError for a path that does not exist.
    """
    found: list[Path] = []
    seen: set[Path] = set()

    def _add(p: Path) -> None:
        key = p.resolve()
        if key not in seen:
            seen.add(key)
            found.append(p)

    for raw in paths:
        path = Path(raw)
        if path.is_file():
            _add(path)
        elif path.is_dir():
            candidates = path.rglob("*") if recursive else path.glob("*")
            for candidate in sorted(candidates):
                rel_parts = candidate.relative_to(path).parts
                if any(part in _IGNORE_PARTS for part in rel_parts):
                    continue
                if _is_document(candidate, staging_suffix):
                    _add(candidate)
        else:
            raise FileNotFoundError(f"No such file or directory: {path}")

    logger.debug("collected %d document(s)", len(found))
    return found
