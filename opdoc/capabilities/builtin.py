"""Built-in language capabilities.

Analysis is shallow on purpose: each capability reports obvious structural
problems and risky constructs. Deep analysis belongs to external plugins.
"""

from __future__ import annotations

import ast
import json
import re

import yaml

from opdoc.capabilities.base import Diagnostic, TextCapability, normalize_text

_CLOSERS = {")": "(", "]": "[", "}": "{"}


def _scan_brackets(
    content: str, *, hash_comments: bool = False
) -> list[tuple[str, int]]:
    """Find unbalanced brackets in C-like source, skipping strings and comments."""
    problems: list[tuple[str, int]] = []
    stack: list[tuple[str, int]] = []
    line = 1
    i = 0
    n = len(content)
    quote: str | None = None
    while i < n:
        ch = content[i]
        nxt = content[i + 1] if i + 1 < n else ""
        if ch == "\n":
            line += 1
        if quote is not None:
            if ch == "\\":
                if nxt == "\n":
                    line += 1
                i += 2
                continue
            if ch == quote:
                quote = None
            i += 1
            continue
        if ch in "\"'`":
            quote = ch
        elif ch == "/" and nxt == "/" or (hash_comments and ch == "#"):
            end = content.find("\n", i)
            i = n if end == -1 else end
            continue
        elif ch == "/" and nxt == "*":
            end = content.find("*/", i + 2)
            stop = n if end == -1 else end + 2
            line += content.count("\n", i, stop)
            i = stop
            continue
        elif ch in "([{":
            stack.append((ch, line))
        elif ch in _CLOSERS:
            if stack and stack[-1][0] == _CLOSERS[ch]:
                stack.pop()
            else:
                problems.append((f"unbalanced '{ch}'", line))
        i += 1
    if quote is not None:
        problems.append((f"unterminated string literal ({quote})", line))
    for opener, opened_at in stack:
        problems.append((f"unclosed '{opener}'", opened_at))
    return problems


def _line_of(content: str, index: int) -> int:
    return content.count("\n", 0, index) + 1


class PythonCapability(TextCapability):
    """Python: syntax check and risky-builtin detection."""

    name = "python"

    _RISKY_CALLS = {"eval", "exec", "breakpoint"}

    def analyze(self, content: str) -> list[Diagnostic]:
        try:
            tree = ast.parse(content)
        except SyntaxError as e:
            return [self._diag(f"syntax error: {e.msg}", e.lineno, severity="error")]

        found: list[Diagnostic] = []
        for node in ast.walk(tree):
            if (
                isinstance(node, ast.Call)
                and isinstance(node.func, ast.Name)
                and node.func.id in self._RISKY_CALLS
            ):
                found.append(self._diag(f"suspicious construct: {node.func.id}()", node.lineno))
        return found


class JavaScriptCapability(TextCapability):
    """JavaScript: bracket balance and risky-construct detection."""

    name = "javascript"

    _RISKY_RE = re.compile(r"\beval\s*\(|\bdebugger\b|\bdocument\.write\s*\(")

    def analyze(self, content: str) -> list[Diagnostic]:
        found = [
            self._diag(msg, line, severity="error")
            for msg, line in _scan_brackets(content)
        ]
        for match in self._RISKY_RE.finditer(content):
            construct = match.group(0).rstrip("( ")
            found.append(self._diag(f"suspicious construct: {construct}", _line_of(content, match.start())))
        return found


class PHPCapability(TextCapability):
    """PHP: opening tag check, bracket balance and risky-construct detection."""

    name = "php"

    _OPEN_TAG = "<?php"
    _RISKY_RE = re.compile(r"\b(eval|shell_exec|system|passthru)\s*\(")

    def analyze(self, content: str) -> list[Diagnostic]:
        found: list[Diagnostic] = []
        if not content.lstrip().startswith(self._OPEN_TAG):
            found.append(self._diag(f"missing expected declaration '{self._OPEN_TAG}'", 1))
        found.extend(
            self._diag(msg, line, severity="error")
            for msg, line in _scan_brackets(content, hash_comments=True)
        )
        for match in self._RISKY_RE.finditer(content):
            found.append(
                self._diag(f"suspicious construct: {match.group(1)}()", _line_of(content, match.start()))
            )
        return found


class JSONCapability:
    """JSON: rejects invalid documents and rewrites them in canonical layout."""

    name = "json"

    def analyze(self, content: str) -> list[Diagnostic]:
        try:
            json.loads(content)
        except json.JSONDecodeError as e:
            return [Diagnostic(severity="error", message=f"invalid JSON: {e.msg}", line=e.lineno, capability=self.name)]
        return []

    def transform(self, content: str) -> str:
        data = json.loads(content)
        return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


class YAMLCapability(TextCapability):
    """YAML: rejects unparseable documents, otherwise normalizes whitespace."""

    name = "yaml"

    def analyze(self, content: str) -> list[Diagnostic]:
        try:
            list(yaml.safe_load_all(content))
        except yaml.YAMLError as e:
            mark = getattr(e, "problem_mark", None)
            line = mark.line + 1 if mark is not None else None
            return [self._diag(f"invalid YAML: {getattr(e, 'problem', None) or e}", line, severity="error")]
        return []

    def transform(self, content: str) -> str:
        text = normalize_text(content)
        try:
            list(yaml.safe_load_all(text))
        except yaml.YAMLError as e:
            raise ValueError(f"invalid YAML: {e}") from e
        return text


# Registry keys for each built-in. Extensions carry a leading dot.
BUILTIN_CAPABILITIES: list[tuple[TextCapability | JSONCapability, tuple[str, ...]]] = [
    (PythonCapability(), (".py", ".pyi", "python", "py")),
    (JavaScriptCapability(), (".js", ".mjs", ".cjs", ".jsx", "javascript", "js")),
    (PHPCapability(), (".php", "php")),
    (JSONCapability(), (".json", "json")),
    (YAMLCapability(), (".yaml", ".yml", "yaml")),
]
