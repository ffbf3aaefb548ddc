"""Language capability interface and shared helpers."""

from __future__ import annotations

from typing import Literal, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict


class Diagnostic(BaseModel):
    """Advisory finding produced by a capability's analyze step."""

    model_config = ConfigDict(frozen=True)

    severity: Literal["info", "warning", "error"] = "warning"
    message: str
    line: int | None = None
    capability: str = ""


@runtime_checkable
class LanguageCapability(Protocol):
    """Analyze + transform behaviour for one file type.

    ``transform`` must be deterministic and idempotent. It may raise any
    exception to reject content it cannot normalize.
    """

    name: str

    def analyze(self, content: str) -> list[Diagnostic]: ...

    def transform(self, content: str) -> str: ...


class PassThroughCapability:
    """Fallback for unregistered file types: no findings, bytes unchanged."""

    name = "passthrough"

    def analyze(self, content: str) -> list[Diagnostic]:
        return []

    def transform(self, content: str) -> str:
        return content


def normalize_text(content: str) -> str:
    """Unify line endings, drop trailing whitespace and end with one newline."""
    if content.startswith("\ufeff"):
        content = content[1:]
    content = content.replace("\r\n", "\n").replace("\r", "\n")
    lines = [line.rstrip() for line in content.split("\n")]
    text = "\n".join(lines).rstrip("\n")
    return f"{text}\n" if text else ""


class TextCapability:
    """Base for source-code capabilities that share whitespace normalization."""

    name = "text"

    def analyze(self, content: str) -> list[Diagnostic]:
        return []

    def transform(self, content: str) -> str:
        return normalize_text(content)

    def _diag(self, message: str, line: int | None = None, severity: str = "warning") -> Diagnostic:
        return Diagnostic(severity=severity, message=message, line=line, capability=self.name)
