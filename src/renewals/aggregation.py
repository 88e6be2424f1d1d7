"""Rollups over renewal records: by customer, architecture and expiration window.

Every function here is pure: it recomputes from the records it is handed,
never filters them, and never raises on partial data. A record with an empty
customer name is left out of customer rollups, while an empty architecture is
reported under ``"Unknown"``.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pandas as pd

from .dataset import UNKNOWN_OFFER_TYPE, RenewalItem
from .models import (
    EXPIRED,
    MONTHS_6_TO_12,
    NO_DATE,
    TIMELINE_LABELS,
    UNKNOWN_ARCHITECTURE,
    WITHIN_6_MONTHS,
    YEARS_1_TO_2,
    YEARS_2_PLUS,
    AggregateSnapshot,
    ArchitectureBreakdown,
    CombinedCustomerSummary,
    CustomerSummary,
    HardwareRenewalItem,
    PortfolioSummary,
    SoftwareRenewalItem,
    TimeBucket,
    customer_key,
)

LOGGER = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400.0

# (inclusive upper bound in days, label), checked in order after the expired test
TIMELINE_BOUNDARIES: Tuple[Tuple[float, str], ...] = (
    (182.0, WITHIN_6_MONTHS),
    (365.0, MONTHS_6_TO_12),
    (730.0, YEARS_1_TO_2),
)


@dataclass
class _Accumulator:
    name: str
    count: int = 0
    quantity: int = 0
    opportunity: float = 0.0
    list_price: float = 0.0
    architectures: List[str] = field(default_factory=list)

    def add(self, item: RenewalItem) -> None:
        self.count += 1
        self.quantity += item.quantity
        self.opportunity += item.opportunity
        self.list_price += item.list_price
        arch = item.architecture.strip()
        if arch and arch not in self.architectures:
            self.architectures.append(arch)


def customer_rollup(items: Iterable[RenewalItem]) -> List[CustomerSummary]:
    groups: Dict[str, _Accumulator] = {}
    for item in items:
        key = customer_key(item.customer_name)
        if not key:
            continue
        acc = groups.get(key)
        if acc is None:
            acc = groups[key] = _Accumulator(name=item.customer_name.strip())
        acc.add(item)

    summaries = [
        CustomerSummary(
            customer_name=acc.name,
            item_count=acc.count,
            total_quantity=acc.quantity,
            total_opportunity=acc.opportunity,
            total_list_price=acc.list_price,
            architectures=tuple(acc.architectures),
        )
        for acc in groups.values()
    ]
    return sorted(summaries, key=lambda s: s.total_opportunity, reverse=True)


def architecture_breakdown(items: Iterable[RenewalItem]) -> List[ArchitectureBreakdown]:
    groups: Dict[str, _Accumulator] = {}
    for item in items:
        arch = item.architecture.strip() or UNKNOWN_ARCHITECTURE
        acc = groups.get(arch)
        if acc is None:
            acc = groups[arch] = _Accumulator(name=arch)
        acc.add(item)

    rows = [
        ArchitectureBreakdown(
            architecture=acc.name,
            item_count=acc.count,
            quantity=acc.quantity,
            opportunity=acc.opportunity,
            list_price=acc.list_price,
        )
        for acc in groups.values()
    ]
    return sorted(rows, key=lambda r: r.opportunity, reverse=True)


def parse_date(value: object) -> Optional[datetime]:
    """Parse a free-text date, returning ``None`` when it is blank or invalid."""

    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    try:
        parsed = pd.to_datetime(value, errors="coerce")
    except (TypeError, ValueError, OverflowError):
        return None
    if parsed is None or pd.isna(parsed):
        return None
    result = parsed.to_pydatetime()
    if result.tzinfo is not None:
        result = result.replace(tzinfo=None)
    return result


def classify_days(days: float) -> str:
    if days < 0:
        return EXPIRED
    for bound, label in TIMELINE_BOUNDARIES:
        if days <= bound:
            return label
    return YEARS_2_PLUS


def bucket_dates(pairs: Iterable[Tuple[object, float]], now: Optional[datetime] = None) -> List[TimeBucket]:
    """Bucket ``(date, opportunity)`` pairs relative to ``now``.

    Buckets come back in the fixed label order with empty ones left out.
    """

    reference = now or datetime.now()
    if reference.tzinfo is not None:
        reference = reference.replace(tzinfo=None)

    counts: Dict[str, int] = {label: 0 for label in TIMELINE_LABELS}
    totals: Dict[str, float] = {label: 0.0 for label in TIMELINE_LABELS}
    for raw_date, opportunity in pairs:
        parsed = parse_date(raw_date)
        if parsed is None:
            label = NO_DATE
        else:
            days = (parsed - reference).total_seconds() / SECONDS_PER_DAY
            label = classify_days(days)
        counts[label] += 1
        totals[label] += opportunity or 0.0

    return [
        TimeBucket(label=label, count=counts[label], opportunity=totals[label])
        for label in TIMELINE_LABELS
        if counts[label] > 0
    ]


def expiration_timeline(items: Iterable[RenewalItem], now: Optional[datetime] = None) -> List[TimeBucket]:
    return bucket_dates(((item.expiration_date, item.opportunity) for item in items), now=now)


def portfolio_summary(items: Sequence[RenewalItem]) -> PortfolioSummary:
    """Headline figures: totals plus distinct architectures and families."""

    architectures = sorted({item.architecture.strip() for item in items if item.architecture.strip()})
    families = set()
    for item in items:
        if isinstance(item, HardwareRenewalItem):
            value = item.product_family.strip()
        else:
            value = item.subscription_offer_type.strip()
            if value == UNKNOWN_OFFER_TYPE:
                continue
        if value:
            families.add(value)
    return PortfolioSummary(
        items=len(items),
        quantity=sum(item.quantity for item in items),
        opportunity=sum(item.opportunity for item in items),
        list_price=sum(item.list_price for item in items),
        architectures=tuple(architectures),
        families=tuple(sorted(families)),
    )


def combined_customer_rollup(
    hardware: Iterable[HardwareRenewalItem],
    software: Iterable[SoftwareRenewalItem],
) -> List[CombinedCustomerSummary]:
    """Per-customer hardware and software totals side by side."""

    hw = {customer_key(s.customer_name): s for s in customer_rollup(hardware)}
    sw = {customer_key(s.customer_name): s for s in customer_rollup(software)}

    # hardware customers first, in hardware rollup order, then software-only ones
    keys = list(hw)
    keys.extend(key for key in sw if key not in hw)

    combined: List[CombinedCustomerSummary] = []
    for key in keys:
        h = hw.get(key)
        s = sw.get(key)
        combined.append(
            CombinedCustomerSummary(
                customer_name=(h or s).customer_name,  # type: ignore[union-attr]
                hw_item_count=h.item_count if h else 0,
                hw_total_quantity=h.total_quantity if h else 0,
                hw_total_opportunity=h.total_opportunity if h else 0.0,
                hw_architectures=h.architectures if h else (),
                sw_item_count=s.item_count if s else 0,
                sw_total_quantity=s.total_quantity if s else 0,
                sw_total_opportunity=s.total_opportunity if s else 0.0,
                sw_total_list_price=s.total_list_price if s else 0.0,
                sw_architectures=s.architectures if s else (),
            )
        )
    return sorted(combined, key=lambda c: c.total_opportunity, reverse=True)


def _stamp(moment: datetime) -> str:
    return moment.replace(tzinfo=None).isoformat(timespec="seconds")


def build_snapshot(
    customer: str,
    hardware: Sequence[HardwareRenewalItem],
    software: Sequence[SoftwareRenewalItem],
    now: Optional[datetime] = None,
) -> AggregateSnapshot:
    reference = now or datetime.now()
    snapshot = AggregateSnapshot(
        customer_name=(customer or "").strip(),
        hardware_items=tuple(hardware),
        software_items=tuple(software),
        hw_summary=portfolio_summary(hardware),
        sw_summary=portfolio_summary(software),
        customers=tuple(combined_customer_rollup(hardware, software)),
        hw_breakdown=tuple(architecture_breakdown(hardware)),
        sw_breakdown=tuple(architecture_breakdown(software)),
        hw_timeline=tuple(expiration_timeline(hardware, now=reference)),
        sw_timeline=tuple(expiration_timeline(software, now=reference)),
        computed_at=_stamp(reference),
    )
    LOGGER.debug(
        "Built snapshot for %r: %d hardware, %d software rows",
        snapshot.customer_name,
        len(hardware),
        len(software),
    )
    return snapshot


@dataclass(frozen=True)
class _CacheEntry:
    hardware: Tuple[HardwareRenewalItem, ...]
    software: Tuple[SoftwareRenewalItem, ...]
    snapshot: AggregateSnapshot

    def matches(
        self,
        hardware: Tuple[HardwareRenewalItem, ...],
        software: Tuple[SoftwareRenewalItem, ...],
        now: Optional[datetime],
    ) -> bool:
        if now is not None and self.snapshot.computed_at != _stamp(now):
            return False
        return self.hardware == hardware and self.software == software

class SnapshotCache:
    """Latest snapshot per customer, reused only while its inputs are unchanged.

    A hit requires the same records (compared by value) and, when ``now`` is
    passed, the same reference time. ``refresh`` and ``invalidate`` force a
    recompute.
    """

    def __init__(self) -> None:
        self._entries: Dict[str, _CacheEntry] = {}
        self._lock = threading.Lock()

    def get(
        self,
        customer: str,
        hardware: Sequence[HardwareRenewalItem],
        software: Sequence[SoftwareRenewalItem],
        *,
        refresh: bool = False,
        now: Optional[datetime] = None,
    ) -> AggregateSnapshot:
        key = customer_key(customer)
        hw = tuple(hardware)
        sw = tuple(software)
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and not refresh and entry.matches(hw, sw, now):
                return entry.snapshot
            snapshot = build_snapshot(customer, hw, sw, now=now)
            self._entries[key] = _CacheEntry(hw, sw, snapshot)
            return snapshot

    def invalidate(self, customer: Optional[str] = None) -> None:
        with self._lock:
            if customer is None:
                self._entries.clear()
            else:
                self._entries.pop(customer_key(customer), None)

    def __contains__(self, customer: object) -> bool:
        return isinstance(customer, str) and customer_key(customer) in self._entries


__all__ = [
    "TIMELINE_BOUNDARIES",
    "customer_rollup",
    "architecture_breakdown",
    "parse_date",
    "classify_days",
    "bucket_dates",
    "expiration_timeline",
    "portfolio_summary",
    "combined_customer_rollup",
    "build_snapshot",
    "SnapshotCache",
]
