"""Extract ``op`` fenced code blocks from markdown documents."""

from __future__ import annotations

import re

from opdoc.errors import ParseError, ParseErrorKind
from opdoc.parser.tokenizer import BOM, split_lines

MARKDOWN_SUFFIXES = {".md", ".markdown"}
OP_INFO_STRING = "op"

_FENCE_RE = re.compile(r"^(?P<indent> {0,3})(?P<fence>`{3,}|~{3,})(?P<info>.*)$")


def _blank(line: str) -> str:
    """Replace a line with spaces of the same UTF-8 length, keeping its newline."""
    body = line.rstrip("\n").rstrip("\r")
    ending = line[len(body):]
    return " " * len(body.encode("utf-8")) + ending


def extract_op_text(text: str) -> str:
    """Return the text of all ``op`` fences, with everything else blanked.

    Line numbers and byte offsets in the result match the markdown source,
    so parse errors point at the right place in the original file.
    """
    out: list[str] = []
    fence: str | None = None
    fence_line = 0
    is_op = False

    for lineno, line in enumerate(split_lines(text), start=1):
        body = line.rstrip("\n").rstrip("\r")
        if lineno == 1:
            body = body.removeprefix(BOM)
        match = _FENCE_RE.match(body)

        if fence is None:
            if match and not (match.group("fence")[0] == "`" and "`" in match.group("info")):
                fence = match.group("fence")
                fence_line = lineno
                info = match.group("info").strip().split()
                is_op = bool(info) and info[0].lower() == OP_INFO_STRING
            out.append(_blank(line))
            continue

        closes = (
            match is not None
            and match.group("fence")[0] == fence[0]
            and len(match.group("fence")) >= len(fence)
            and not match.group("info").strip()
        )
        if closes:
            fence = None
            is_op = False
            out.append(_blank(line))
        elif is_op:
            out.append(line)
        else:
            out.append(_blank(line))

    if fence is not None and is_op:
        raise ParseError(
            ParseErrorKind.UNTERMINATED_BLOCK, fence_line, 1,
            "'op' code fence has no closing fence",
        )
    return "".join(out)
