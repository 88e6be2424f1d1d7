"""Build the renewal analysis document from aggregates and an optional narrative."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Sequence

from ..config import BrandingConfig
from ..models import AggregateSnapshot, ArchitectureBreakdown, TimeBucket
from ..reporting import format_currency, format_number
from .document import (
    CENTER,
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
from .markdown import BULLET, HEADING, NUMBERED, RULE, StyledRun, parse_inline, parse_markdown_to_blocks

LOGGER = logging.getLogger(__name__)

BULLET_GLYPHS = ("•", "–", "·")
CLOSING_TEXT = "- End of Document -"
ALL_CUSTOMERS = "All Customers"


@dataclass(frozen=True)
class ReportData:
    snapshot: AggregateSnapshot
    narrative: Optional[str] = None
    ai_model: Optional[str] = None
    prepared_on: Optional[date] = None

    @property
    def customer_name(self) -> str:
        return self.snapshot.customer_name or ALL_CUSTOMERS


def format_prepared_date(value: date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


def assemble_report(data: ReportData, branding: Optional[BrandingConfig] = None) -> RenderableDocument:
    brand = branding or BrandingConfig()
    customer = data.customer_name
    document = RenderableDocument(
        title=f"{brand.report_title} - {customer}",
        subject=brand.report_title,
        author=brand.company_name,
        header_text=f"{brand.company_name}  |  {brand.report_title}",
        footer_text=f"{brand.confidentiality_text} - Prepared for {customer}",
    )
    document.add(*_cover_page(data, brand))
    document.add(TableOfContentsBlock(levels=3), PageBreakBlock())
    document.add(*_customer_summary(data.snapshot, brand))
    document.add(*_portfolio_overview(data.snapshot, brand))
    if data.narrative and data.narrative.strip():
        document.add(*narrative_blocks(data.narrative, brand))
    document.add(
        SpacerBlock(36),
        ParagraphBlock([StyledRun(CLOSING_TEXT, italic=True, color=brand.muted_color)], style="closing", alignment=CENTER),
    )
    LOGGER.debug("Assembled report for %s with %d blocks", customer, len(document.blocks))
    return document


def _cover_page(data: ReportData, brand: BrandingConfig) -> List[Block]:
    snapshot = data.snapshot
    prepared = data.prepared_on or date.today()
    blocks: List[Block] = [
        SpacerBlock(120),
        _centered(brand.company_name.upper(), "cover_company", bold=True, color=brand.primary_color),
        _centered(brand.tagline, "cover_tagline", italic=True, color=brand.muted_color),
        SpacerBlock(36),
        _centered(brand.report_title, "cover_title", bold=True, color=brand.dark_color),
        _centered(data.customer_name, "cover_customer", bold=True, color=brand.accent_color),
        RuleBlock(color=brand.accent_color, thickness=1.5),
        ParagraphBlock(
            [
                StyledRun("Total Opportunity: ", color=brand.dark_color),
                StyledRun(format_currency(snapshot.total_opportunity), bold=True, color=brand.primary_color),
            ],
            style="cover_metric",
            alignment=CENTER,
        ),
        _centered(
            f"Hardware: {format_currency(snapshot.hw_summary.opportunity)}  |  "
            f"Software: {format_currency(snapshot.sw_summary.opportunity)}",
            "cover_detail",
            color=brand.muted_color,
        ),
        SpacerBlock(60),
        _centered(f"Prepared: {format_prepared_date(prepared)}", "cover_detail", color=brand.muted_color),
    ]
    if data.ai_model:
        blocks.append(_centered(f"AI Model: {data.ai_model}", "cover_note", italic=True, color=brand.muted_color))
    blocks.append(PageBreakBlock())
    return blocks


def _centered(text: str, style: str, *, bold: bool = False, italic: bool = False, color: Optional[str] = None) -> ParagraphBlock:
    return ParagraphBlock([StyledRun(text, bold=bold, italic=italic, color=color)], style=style, alignment=CENTER)


def _table(headers: Sequence[str], rows: Sequence[Sequence[str]], brand: BrandingConfig) -> TableBlock:
    return TableBlock(
        headers=list(headers),
        rows=[list(row) for row in rows],
        header_color=brand.primary_color,
        shade_color=brand.light_color,
    )


def _customer_summary(snapshot: AggregateSnapshot, brand: BrandingConfig) -> List[Block]:
    if not snapshot.customers:
        return []
    rows = [
        [
            c.customer_name,
            str(c.hw_item_count),
            format_currency(c.hw_total_opportunity),
            str(c.sw_item_count),
            format_currency(c.sw_total_opportunity),
            format_currency(c.total_opportunity),
        ]
        for c in snapshot.customers
    ]
    headers = ["Customer", "HW Items", "HW Opportunity", "SW Items", "SW Opportunity", "Total Opportunity"]
    return [
        HeadingBlock("Customer Summary", level=1),
        _table(headers, rows, brand),
        SpacerBlock(18),
    ]


def _architecture_rows(rows: Sequence[ArchitectureBreakdown]) -> List[List[str]]:
    return [
        [r.architecture, str(r.item_count), format_number(r.quantity), format_currency(r.opportunity)]
        for r in rows
    ]


def _timeline_rows(buckets: Sequence[TimeBucket]) -> List[List[str]]:
    return [[b.label, str(b.count), format_currency(b.opportunity)] for b in buckets]


def _portfolio_overview(snapshot: AggregateSnapshot, brand: BrandingConfig) -> List[Block]:
    arch_headers = ["Architecture", "Items", "Quantity", "Opportunity"]
    timeline_headers = ["Period", "Items", "Opportunity"]
    sections = [
        ("Hardware by Architecture", arch_headers, _architecture_rows(snapshot.hw_breakdown)),
        ("Software by Architecture", arch_headers, _architecture_rows(snapshot.sw_breakdown)),
        ("Hardware LDOS Timeline", timeline_headers, _timeline_rows(snapshot.hw_timeline)),
        ("Software End Date Timeline", timeline_headers, _timeline_rows(snapshot.sw_timeline)),
    ]
    blocks: List[Block] = []
    for title, headers, rows in sections:
        if not rows:
            continue
        blocks.extend([HeadingBlock(title, level=2), _table(headers, rows, brand), SpacerBlock(12)])
    if not blocks:
        return []
    return [HeadingBlock("Renewal Portfolio Overview", level=1), *blocks, PageBreakBlock()]


def narrative_blocks(markdown: str, brand: Optional[BrandingConfig] = None) -> List[Block]:
    """Translate narrative markdown into document blocks."""

    brand = brand or BrandingConfig()
    blocks: List[Block] = []
    for md in parse_markdown_to_blocks(markdown):
        if md.kind == HEADING:
            color = brand.primary_color if md.level <= 2 else brand.dark_color
            blocks.append(HeadingBlock(md.text, level=md.level, runs=parse_inline(md.text, bold=True, color=color)))
        elif md.kind == BULLET:
            level = min(md.level, 2)
            blocks.append(ListItemBlock(parse_inline(md.text), level=level, marker=BULLET_GLYPHS[level]))
        elif md.kind == NUMBERED:
            blocks.append(ListItemBlock(parse_inline(md.text), level=min(md.level, 2), marker=md.marker))
        elif md.kind == RULE:
            blocks.append(RuleBlock(color=brand.accent_color))
        else:
            blocks.append(ParagraphBlock(parse_inline(md.text)))
    return blocks


__all__ = ["ReportData", "assemble_report", "narrative_blocks", "format_prepared_date", "CLOSING_TEXT"]
