"""Format-neutral document model produced by the assembler."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Union

from .markdown import StyledRun

LEFT = "LEFT"
CENTER = "CENTER"
RIGHT = "RIGHT"


def column_alignments(count: int) -> List[str]:
    """Alignment per column: first LEFT, last RIGHT, the rest CENTER.

    The last-column rule wins, so a single column is RIGHT aligned.
    """

    alignments = []
    for idx in range(count):
        if idx >= count - 1:
            alignments.append(RIGHT)
        elif idx > 0:
            alignments.append(CENTER)
        else:
            alignments.append(LEFT)
    return alignments


@dataclass(frozen=True)
class HeadingBlock:
    text: str
    level: int = 1
    runs: Sequence[StyledRun] = ()


@dataclass(frozen=True)
class ParagraphBlock:
    runs: Sequence[StyledRun]
    style: str = "body"
    alignment: str = LEFT


@dataclass(frozen=True)
class ListItemBlock:
    runs: Sequence[StyledRun]
    level: int = 0
    marker: str = ""


@dataclass(frozen=True)
class RuleBlock:
    color: Optional[str] = None
    thickness: float = 0.75


@dataclass(frozen=True)
class TableBlock:
    headers: Sequence[str]
    rows: Sequence[Sequence[str]]
    header_color: Optional[str] = None
    shade_color: Optional[str] = None

    @property
    def alignments(self) -> List[str]:
        return column_alignments(len(self.headers))


@dataclass(frozen=True)
class PageBreakBlock:
    pass


@dataclass(frozen=True)
class SpacerBlock:
    height: float = 12.0


@dataclass(frozen=True)
class TableOfContentsBlock:
    title: str = "Table of Contents"
    levels: int = 3


Block = Union[
    HeadingBlock,
    ParagraphBlock,
    ListItemBlock,
    RuleBlock,
    TableBlock,
    PageBreakBlock,
    SpacerBlock,
    TableOfContentsBlock,
]


@dataclass
class RenderableDocument:
    title: str
    subject: str = ""
    author: str = ""
    header_text: str = ""
    footer_text: str = ""
    blocks: List[Block] = field(default_factory=list)

    def add(self, *blocks: Block) -> None:
        self.blocks.extend(blocks)

    def headings(self, max_level: int = 3) -> List[HeadingBlock]:
        return [b for b in self.blocks if isinstance(b, HeadingBlock) and b.level <= max_level]


__all__ = [
    "LEFT",
    "CENTER",
    "RIGHT",
    "column_alignments",
    "HeadingBlock",
    "ParagraphBlock",
    "ListItemBlock",
    "RuleBlock",
    "TableBlock",
    "PageBreakBlock",
    "SpacerBlock",
    "TableOfContentsBlock",
    "Block",
    "RenderableDocument",
]
