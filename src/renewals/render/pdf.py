"""Serialize a :class:`RenderableDocument` to PDF with ReportLab platypus."""
from __future__ import annotations

import logging
from io import BytesIO
from typing import Dict, List, Optional, Sequence
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER, TA_LEFT, TA_RIGHT
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle
from reportlab.lib.units import inch
from reportlab.platypus import (
    BaseDocTemplate,
    Flowable,
    Frame,
    HRFlowable,
    PageBreak,
    PageTemplate,
    Paragraph,
    Spacer,
    Table,
    TableStyle,
)
from reportlab.platypus.tableofcontents import TableOfContents

from ..config import BrandingConfig
from .document import (
    CENTER,
    RIGHT,
    Block,
    HeadingBlock,
    ListItemBlock,
    PageBreakBlock,
    ParagraphBlock,
    RenderableDocument,
    RuleBlock,
    SpacerBlock,
    TableBlock,
    TableOfContentsBlock,
)
from .markdown import StyledRun

LOGGER = logging.getLogger(__name__)

_ALIGN = {"LEFT": TA_LEFT, CENTER: TA_CENTER, RIGHT: TA_RIGHT}


class RenderError(RuntimeError):
    """Raised when a document cannot be serialized."""


def _hex(value: Optional[str]) -> colors.Color:
    return colors.HexColor("#" + (value or "000000").lstrip("#"))


class _Styles:
    """Paragraph styles derived from the branding palette."""

    def __init__(self, brand: BrandingConfig) -> None:
        dark = _hex(brand.dark_color)
        primary = _hex(brand.primary_color)
        accent = _hex(brand.accent_color)
        muted = _hex(brand.muted_color)

        self.body = ParagraphStyle("body", fontName="Helvetica", fontSize=10.5, leading=14, textColor=dark, spaceAfter=6)
        self.headings = {
            1: ParagraphStyle("h1", parent=self.body, fontName="Helvetica-Bold", fontSize=17, leading=21,
                              textColor=primary, spaceBefore=12, spaceAfter=8),
            2: ParagraphStyle("h2", parent=self.body, fontName="Helvetica-Bold", fontSize=13.5, leading=17,
                              textColor=accent, spaceBefore=10, spaceAfter=6),
            3: ParagraphStyle("h3", parent=self.body, fontName="Helvetica-Bold", fontSize=11.5, leading=15,
                              textColor=dark, spaceBefore=8, spaceAfter=4),
        }
        centered = ParagraphStyle("centered", parent=self.body, alignment=TA_CENTER)
        self.named: Dict[str, ParagraphStyle] = {
            "body": self.body,
            "cover_company": ParagraphStyle("cover_company", parent=centered, fontSize=22, leading=28),
            "cover_tagline": ParagraphStyle("cover_tagline", parent=centered, fontSize=11, leading=14),
            "cover_title": ParagraphStyle("cover_title", parent=centered, fontSize=26, leading=32, spaceAfter=12),
            "cover_customer": ParagraphStyle("cover_customer", parent=centered, fontSize=18, leading=24, spaceAfter=16),
            "cover_metric": ParagraphStyle("cover_metric", parent=centered, fontSize=14, leading=18),
            "cover_detail": ParagraphStyle("cover_detail", parent=centered, fontSize=11, leading=15),
            "cover_note": ParagraphStyle("cover_note", parent=centered, fontSize=9, leading=12),
            "closing": ParagraphStyle("closing", parent=centered, fontSize=10, textColor=muted),
        }
        self.toc_title = ParagraphStyle("toc_title", parent=self.headings[1])
        self.toc_levels = [
            ParagraphStyle("toc1", parent=self.body, fontName="Helvetica-Bold", leftIndent=0, firstLineIndent=0),
            ParagraphStyle("toc2", parent=self.body, leftIndent=18, firstLineIndent=0),
            ParagraphStyle("toc3", parent=self.body, leftIndent=36, firstLineIndent=0, textColor=muted),
        ]
        self.table_header = ParagraphStyle("table_header", parent=self.body, fontName="Helvetica-Bold", fontSize=9.5,
                                           leading=12, textColor=colors.white, alignment=TA_CENTER, spaceAfter=0)
        self.table_cells = {
            key: ParagraphStyle(f"cell_{key.lower()}", parent=self.body, fontSize=9.5, leading=12, alignment=align,
                                spaceAfter=0)
            for key, align in _ALIGN.items()
        }
        self._list_styles: Dict[int, ParagraphStyle] = {}

    def for_list(self, level: int) -> ParagraphStyle:
        style = self._list_styles.get(level)
        if style is None:
            indent = 18 * (level + 1)
            style = ParagraphStyle(f"list{level}", parent=self.body, leftIndent=indent, bulletIndent=indent - 12,
                                   spaceAfter=3)
            self._list_styles[level] = style
        return style

    def for_paragraph(self, name: str, alignment: str) -> ParagraphStyle:
        style = self.named.get(name, self.body)
        wanted = _ALIGN.get(alignment, TA_LEFT)
        if style.alignment != wanted:
            style = ParagraphStyle(f"{style.name}_{alignment.lower()}", parent=style, alignment=wanted)
        return style


def runs_to_markup(runs: Sequence[StyledRun], brand: BrandingConfig) -> str:
    """Convert styled runs to ReportLab paragraph markup with escaped text."""

    parts: List[str] = []
    for run in runs:
        text = escape(run.text)
        if run.code:
            text = f'<font face="Courier" color="#{brand.accent_color}">{text}</font>'
        elif run.link:
            text = f'<u><font color="#{brand.accent_color}">{text}</font></u>'
        else:
            color = run.color or (brand.muted_color if run.italic else None)
            if color:
                text = f'<font color="#{color.lstrip("#")}">{text}</font>'
            if run.italic:
                text = f"<i>{text}</i>"
            if run.bold:
                text = f"<b>{text}</b>"
        parts.append(text)
    return "".join(parts)


class _ReportTemplate(BaseDocTemplate):
    def __init__(self, buffer: BytesIO, document: RenderableDocument, brand: BrandingConfig) -> None:
        super().__init__(
            buffer,
            pagesize=letter,
            leftMargin=0.9 * inch,
            rightMargin=0.9 * inch,
            topMargin=0.9 * inch,
            bottomMargin=0.9 * inch,
            title=document.title,
            author=document.author,
            subject=document.subject,
        )
        self.report = document
        self.brand = brand
        frame = Frame(self.leftMargin, self.bottomMargin, self.width, self.height, id="body")
        self.addPageTemplates([PageTemplate(id="report", frames=[frame], onPage=self._decorate)])

    def afterFlowable(self, flowable: Flowable) -> None:
        level = getattr(flowable, "toc_level", None)
        key = getattr(flowable, "toc_key", None)
        if level is None or key is None:
            return
        self.canv.bookmarkPage(key)
        self.notify("TOCEntry", (level - 1, flowable.getPlainText(), self.page, key))

    def _decorate(self, canv, doc) -> None:
        # cover page carries no running header or footer
        if doc.page == 1:
            return
        width, height = doc.pagesize
        canv.saveState()
        canv.setStrokeColor(_hex(self.brand.accent_color))
        canv.setLineWidth(0.5)
        canv.setFont("Helvetica-Bold", 8.5)
        canv.setFillColor(_hex(self.brand.primary_color))
        canv.drawString(doc.leftMargin, height - 0.6 * inch, self.report.header_text)
        canv.line(doc.leftMargin, height - 0.65 * inch, width - doc.rightMargin, height - 0.65 * inch)

        canv.line(doc.leftMargin, 0.65 * inch, width - doc.rightMargin, 0.65 * inch)
        canv.setFont("Helvetica", 8)
        canv.setFillColor(_hex(self.brand.muted_color))
        canv.drawString(doc.leftMargin, 0.5 * inch, self.report.footer_text)
        canv.drawRightString(width - doc.rightMargin, 0.5 * inch, f"Page {doc.page}")
        canv.restoreState()


def _table_flowable(block: TableBlock, styles: _Styles, width: float, brand: BrandingConfig) -> Table:
    alignments = block.alignments
    data = [[Paragraph(escape(h), styles.table_header) for h in block.headers]]
    for row in block.rows:
        data.append(
            [Paragraph(escape(str(cell)), styles.table_cells[alignments[idx]]) for idx, cell in enumerate(row)]
        )

    count = max(1, len(block.headers))
    if count == 1:
        col_widths = [width]
    else:
        first = width * 0.34
        rest = (width - first) / (count - 1)
        col_widths = [first] + [rest] * (count - 1)

    commands = [
        ("BACKGROUND", (0, 0), (-1, 0), _hex(block.header_color or brand.primary_color)),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("GRID", (0, 0), (-1, -1), 0.25, _hex(brand.light_color)),
        ("BOX", (0, 0), (-1, -1), 0.5, _hex(brand.primary_color)),
        ("TOPPADDING", (0, 0), (-1, -1), 4),
        ("BOTTOMPADDING", (0, 0), (-1, -1), 4),
    ]
    shade = _hex(block.shade_color or brand.light_color)
    for idx in range(len(block.rows)):
        if idx % 2 == 0:
            commands.append(("BACKGROUND", (0, idx + 1), (-1, idx + 1), shade))

    table = Table(data, colWidths=col_widths, repeatRows=1, hAlign="LEFT")
    table.setStyle(TableStyle(commands))
    return table


def _heading_flowable(block: HeadingBlock, styles: _Styles, brand: BrandingConfig, seq: int) -> Paragraph:
    level = min(max(block.level, 1), 3)
    markup = runs_to_markup(block.runs, brand) if block.runs else escape(block.text)
    paragraph = Paragraph(markup, styles.headings[level])
    paragraph.toc_level = level  # type: ignore[attr-defined]
    # bookmark keys must repeat exactly on every multiBuild pass
    paragraph.toc_key = f"heading-{seq}"  # type: ignore[attr-defined]
    return paragraph


def build_story(document: RenderableDocument, brand: BrandingConfig, width: float) -> List[Flowable]:
    styles = _Styles(brand)
    story: List[Flowable] = []
    block: Block
    for seq, block in enumerate(document.blocks):
        if isinstance(block, HeadingBlock):
            story.append(_heading_flowable(block, styles, brand, seq))
        elif isinstance(block, ParagraphBlock):
            story.append(Paragraph(runs_to_markup(block.runs, brand), styles.for_paragraph(block.style, block.alignment)))
        elif isinstance(block, ListItemBlock):
            story.append(
                Paragraph(
                    runs_to_markup(block.runs, brand),
                    styles.for_list(block.level),
                    bulletText=block.marker or "•",
                )
            )
        elif isinstance(block, RuleBlock):
            story.append(
                HRFlowable(
                    width="100%",
                    thickness=block.thickness,
                    color=_hex(block.color or brand.accent_color),
                    spaceBefore=6,
                    spaceAfter=10,
                )
            )
        elif isinstance(block, TableBlock):
            story.append(_table_flowable(block, styles, width, brand))
        elif isinstance(block, SpacerBlock):
            story.append(Spacer(1, block.height))
        elif isinstance(block, PageBreakBlock):
            story.append(PageBreak())
        elif isinstance(block, TableOfContentsBlock):
            toc = TableOfContents()
            toc.levelStyles = styles.toc_levels
            story.append(Paragraph(escape(block.title), styles.toc_title))
            story.append(toc)
        else:
            raise RenderError(f"Unsupported block type: {type(block).__name__}")
    return story


def render_pdf(document: RenderableDocument, branding: Optional[BrandingConfig] = None) -> bytes:
    brand = branding or BrandingConfig()
    buffer = BytesIO()
    try:
        template = _ReportTemplate(buffer, document, brand)
        story = build_story(document, brand, template.width)
        template.multiBuild(story)
    except RenderError:
        raise
    except Exception as exc:
        LOGGER.error("PDF rendering failed for %s: %s", document.title, exc)
        raise RenderError(f"Unable to render {document.title!r}: {exc}") from exc
    data = buffer.getvalue()
    LOGGER.debug("Rendered %s (%d bytes)", document.title, len(data))
    return data


__all__ = ["RenderError", "render_pdf", "runs_to_markup", "build_story"]
