"""Line-oriented parser for the markdown dialect used in AI narratives.

Supported per line: ``#``-``###`` headings, ``-``/``*``/``•`` bullets, ``1.`` or
``1)`` numbered items, horizontal rules and plain paragraphs. Inline spans are
``**bold**``, ``*italic*``, `` `code` `` and ``[text](url)``; anything else is
literal text.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional

HEADING = "heading"
BULLET = "bullet"
NUMBERED = "numbered"
RULE = "rule"
PARAGRAPH = "paragraph"

_HEADING_RE = re.compile(r"^(#{1,3})\s+(.+)")
_BULLET_RE = re.compile(r"^[-*•]\s+(.+)")
_NUMBERED_RE = re.compile(r"^(\d+[.)])\s+(.+)")
_RULE_RE = re.compile(r"^[-*_]{3,}$")
_HEADING_STRIP_RE = re.compile(r"[#*_`]")
_LEADING_WS_RE = re.compile(r"^(\s*)")

INLINE_RE = re.compile(r"(\*\*(.+?)\*\*)|(\*(.+?)\*)|(`(.+?)`)|(\[(.+?)\]\((.+?)\))")


@dataclass(frozen=True)
class MarkdownBlock:
    kind: str
    text: str = ""
    level: int = 0
    marker: str = ""


@dataclass(frozen=True)
class StyledRun:
    text: str
    bold: bool = False
    italic: bool = False
    code: bool = False
    link: bool = False
    color: Optional[str] = None


def indent_level(line: str) -> int:
    leading = len(_LEADING_WS_RE.match(line).group(1))  # type: ignore[union-attr]
    if leading >= 8:
        return 2
    if leading >= 4:
        return 1
    return 0


def parse_markdown_to_blocks(text: str) -> List[MarkdownBlock]:
    blocks: List[MarkdownBlock] = []
    for line in (text or "").splitlines():
        trimmed = line.strip()
        if not trimmed:
            continue

        match = _HEADING_RE.match(trimmed)
        if match:
            heading = _HEADING_STRIP_RE.sub("", match.group(2)).strip()
            blocks.append(MarkdownBlock(HEADING, heading, level=len(match.group(1))))
            continue

        match = _BULLET_RE.match(trimmed)
        if match:
            blocks.append(MarkdownBlock(BULLET, match.group(1), level=indent_level(line)))
            continue

        match = _NUMBERED_RE.match(trimmed)
        if match:
            blocks.append(
                MarkdownBlock(NUMBERED, match.group(2), level=indent_level(line), marker=match.group(1))
            )
            continue

        if _RULE_RE.match(trimmed):
            blocks.append(MarkdownBlock(RULE))
            continue

        blocks.append(MarkdownBlock(PARAGRAPH, trimmed))
    return blocks


def parse_inline(text: str, *, bold: bool = False, color: Optional[str] = None) -> List[StyledRun]:
    """Split ``text`` into styled runs; always returns at least one run."""

    runs: List[StyledRun] = []
    last = 0
    for match in INLINE_RE.finditer(text):
        if match.start() > last:
            runs.append(StyledRun(text[last : match.start()], bold=bold, color=color))
        if match.group(2) is not None:
            runs.append(StyledRun(match.group(2), bold=True, color=color))
        elif match.group(4) is not None:
            runs.append(StyledRun(match.group(4), italic=True, color=color))
        elif match.group(6) is not None:
            runs.append(StyledRun(match.group(6), code=True))
        else:
            runs.append(StyledRun(match.group(8), link=True))
        last = match.end()

    if last < len(text):
        runs.append(StyledRun(text[last:], bold=bold, color=color))
    if not runs:
        runs.append(StyledRun(text, bold=bold, color=color))
    return runs


__all__ = [
    "HEADING",
    "BULLET",
    "NUMBERED",
    "RULE",
    "PARAGRAPH",
    "MarkdownBlock",
    "StyledRun",
    "indent_level",
    "parse_markdown_to_blocks",
    "parse_inline",
]
