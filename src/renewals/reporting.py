from __future__ import annotations

import logging
from datetime import date
from pathlib import Path
from typing import Iterable, Optional

import pandas as pd

from .models import EXPIRED, AggregateSnapshot, CombinedCustomerSummary
from .sinks import ReportSink, report_filename, sanitize_name

LOGGER = logging.getLogger(__name__)

SUMMARY_EXPORT_KIND = "Cisco_Renewals_Summary"
SUMMARY_COLUMNS = [
    "Customer",
    "HW Line Items",
    "HW Quantity",
    "HW Opportunity",
    "HW Architectures",
    "SW Line Items",
    "SW Quantity",
    "SW Opportunity",
    "SW List Price",
    "SW Architectures",
    "Total Opportunity",
]


def format_currency(value: float) -> str:
    return f"${value:,.0f}"


def format_number(value: float) -> str:
    return f"{value:,.0f}"


def make_summary_text(snapshot: AggregateSnapshot) -> str:
    who = snapshot.customer_name or "All customers"
    top = sorted(snapshot.hw_breakdown + snapshot.sw_breakdown, key=lambda r: r.opportunity, reverse=True)[:5]
    lines = [
        f"{who}: total renewal opportunity {format_currency(snapshot.total_opportunity)}.",
        f"Hardware: {snapshot.hw_summary.items} line items, {format_currency(snapshot.hw_summary.opportunity)}.",
        f"Software: {snapshot.sw_summary.items} line items, {format_currency(snapshot.sw_summary.opportunity)}.",
    ]
    if top:
        lines.append("Top architectures:")
        lines.extend(f"  {row.architecture}: {format_currency(row.opportunity)}" for row in top)
    expiring = [b for b in snapshot.hw_timeline + snapshot.sw_timeline if b.label == EXPIRED]
    if expiring:
        count = sum(b.count for b in expiring)
        lines.append(f"{count} line items are already past their LDOS or end date.")
    return "\n".join(lines) + "\n"


def customer_summary_frame(combined: Iterable[CombinedCustomerSummary]) -> pd.DataFrame:
    rows = [
        [
            c.customer_name,
            c.hw_item_count,
            c.hw_total_quantity,
            c.hw_total_opportunity,
            ", ".join(c.hw_architectures),
            c.sw_item_count,
            c.sw_total_quantity,
            c.sw_total_opportunity,
            c.sw_total_list_price,
            ", ".join(c.sw_architectures),
            c.total_opportunity,
        ]
        for c in combined
    ]
    return pd.DataFrame(rows, columns=SUMMARY_COLUMNS)


def export_customer_summary(
    combined: Iterable[CombinedCustomerSummary],
    path: Path,
    on_date: Optional[date] = None,
) -> Path:
    """Write the per-customer summary workbook.

    ``path`` may name the ``.xlsx`` file or a directory, in which case the file is
    called ``Cisco_Renewals_Summary_<date>.xlsx``.
    """

    path = Path(path)
    if path.suffix.lower() != ".xlsx":
        path = path / report_filename(SUMMARY_EXPORT_KIND, "", on_date, "xlsx")
    path.parent.mkdir(parents=True, exist_ok=True)
    frame = customer_summary_frame(combined)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name="Customer Summary", index=False)
    LOGGER.info("Wrote customer summary (%d customers) to %s", len(frame), path)
    return path


def export_narrative_markdown(
    customer: str,
    content: str,
    sink: ReportSink,
    on_date: Optional[date] = None,
) -> str:
    stamp = (on_date or date.today()).isoformat()
    filename = f"Renewal_Analysis_{sanitize_name(customer or 'All')}_{stamp}.md"
    return sink.save_blob(content.encode("utf-8"), filename)


__all__ = [
    "format_currency",
    "format_number",
    "make_summary_text",
    "customer_summary_frame",
    "export_customer_summary",
    "export_narrative_markdown",
    "SUMMARY_COLUMNS",
]
