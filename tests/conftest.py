"""Shared test fixtures for opdoc."""

import pytest

from opdoc.capabilities.registry import default_registry
from opdoc.config.models import ApplyConfig
from opdoc.pipeline import DocumentPipeline


def _record(
    action: str,
    target: str,
    content: str | None = None,
    *,
    reasoning: str = "Needed for the change",
    lang: str | None = None,
    **meta: str,
) -> str:
    """Render one record. Multi-line content must end with a newline."""
    lines = ["~", f"action: {action}", f"target: {target}", f"reasoning: {reasoning}"]
    for key, value in meta.items():
        lines.append(f"{key.replace('_', '-')}: {value}")
    if content is not None:
        opener = f"[block lang={lang}]" if lang else "[block]"
        if "\n" in content:
            lines += [opener, content.rstrip("\n"), "[/block]"]
        else:
            lines.append(f"{opener}{content}[/block]")
    lines.append("~")
    return "\n".join(lines) + "\n"


@pytest.fixture
def record():
    """Build the text of a single record."""
    return _record


@pytest.fixture
def make_doc():
    """Join records into a document."""
    def _make(*records: str) -> str:
        return "\n".join(records)
    return _make


@pytest.fixture
def registry():
    return default_registry()


@pytest.fixture
def project(tmp_path):
    """An empty project root."""
    root = tmp_path / "project"
    root.mkdir()
    return root


@pytest.fixture
def make_pipeline(project, registry):
    """Factory for a pipeline over ``project`` with ApplyConfig overrides."""
    def _make(**options) -> DocumentPipeline:
        return DocumentPipeline(project, registry, ApplyConfig(**options))
    return _make
