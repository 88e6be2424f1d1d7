from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Tuple

HARDWARE = "hardware"
SOFTWARE = "software"
ITEM_KINDS: Tuple[str, ...] = (HARDWARE, SOFTWARE)

UNKNOWN_ARCHITECTURE = "Unknown"

# Keep tuple structure to preserve bucket order in reports
EXPIRED = "Already Expired"
WITHIN_6_MONTHS = "Within 6 months"
MONTHS_6_TO_12 = "6-12 months"
YEARS_1_TO_2 = "1-2 years"
YEARS_2_PLUS = "2+ years"
NO_DATE = "No date"

TIMELINE_LABELS: Tuple[str, ...] = (
    EXPIRED,
    WITHIN_6_MONTHS,
    MONTHS_6_TO_12,
    YEARS_1_TO_2,
    YEARS_2_PLUS,
    NO_DATE,
)


def customer_key(name: str) -> str:
    """Grouping key for customer-level aggregation."""

    return (name or "").strip().upper()


@dataclass(frozen=True)
class HardwareRenewalItem:
    """One hardware renewal line item from the vendor export."""

    row_index: int
    partner_geo_entity: str = ""
    global_customer_name: str = ""
    customer_name: str = ""
    country: str = ""
    architecture: str = ""
    sub_architecture: str = ""
    aap: str = ""
    product_family: str = ""
    product_id: str = ""
    product_description: str = ""
    eol_date: str = ""
    ldos: str = ""
    quantity: int = 0
    opportunity: float = 0.0
    status: str = ""

    kind = HARDWARE

    @property
    def expiration_date(self) -> str:
        return self.ldos

    @property
    def list_price(self) -> float:
        return 0.0


@dataclass(frozen=True)
class SoftwareRenewalItem:
    """One software subscription renewal line item from the vendor export."""

    row_index: int
    partner_geo_entity: str = ""
    global_customer_name: str = ""
    customer_name: str = ""
    country: str = ""
    po_number: str = ""
    web_order_id: str = ""
    architecture: str = ""
    sub_architecture: str = ""
    aap: str = ""
    subscription_id: str = ""
    contract_number: str = ""
    contract_status: str = ""
    subscription_offer_type: str = ""
    quote_number: str = ""
    quote_type: str = ""
    ea_flag: str = ""
    start_date: str = ""
    end_date: str = ""
    auto_renew_term: str = ""
    cancel_request_date: str = ""
    quantity: int = 0
    full_term_list_price: float = 0.0
    opportunity: float = 0.0
    status: str = ""

    kind = SOFTWARE

    @property
    def expiration_date(self) -> str:
        return self.end_date

    @property
    def list_price(self) -> float:
        return self.full_term_list_price


@dataclass(frozen=True)
class CustomerSummary:
    customer_name: str
    item_count: int
    total_quantity: int
    total_opportunity: float
    total_list_price: float = 0.0
    architectures: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CombinedCustomerSummary:
    """Hardware and software figures for one customer side by side."""

    customer_name: str
    hw_item_count: int = 0
    hw_total_quantity: int = 0
    hw_total_opportunity: float = 0.0
    hw_architectures: Tuple[str, ...] = ()
    sw_item_count: int = 0
    sw_total_quantity: int = 0
    sw_total_opportunity: float = 0.0
    sw_total_list_price: float = 0.0
    sw_architectures: Tuple[str, ...] = ()

    @property
    def total_opportunity(self) -> float:
        return self.hw_total_opportunity + self.sw_total_opportunity


@dataclass(frozen=True)
class ArchitectureBreakdown:
    architecture: str
    item_count: int
    quantity: int
    opportunity: float
    list_price: float = 0.0


@dataclass(frozen=True)
class TimeBucket:
    label: str
    count: int
    opportunity: float


@dataclass(frozen=True)
class PortfolioSummary:
    """Headline figures for a record selection (summary cards)."""

    items: int = 0
    quantity: int = 0
    opportunity: float = 0.0
    list_price: float = 0.0
    architectures: Tuple[str, ...] = ()
    families: Tuple[str, ...] = ()


@dataclass(frozen=True)
class AggregateSnapshot:
    """All aggregates computed for one customer selection."""

    customer_name: str
    hardware_items: Tuple[HardwareRenewalItem, ...] = ()
    software_items: Tuple[SoftwareRenewalItem, ...] = ()
    hw_summary: PortfolioSummary = field(default_factory=PortfolioSummary)
    sw_summary: PortfolioSummary = field(default_factory=PortfolioSummary)
    customers: Tuple[CombinedCustomerSummary, ...] = ()
    hw_breakdown: Tuple[ArchitectureBreakdown, ...] = ()
    sw_breakdown: Tuple[ArchitectureBreakdown, ...] = ()
    hw_timeline: Tuple[TimeBucket, ...] = ()
    sw_timeline: Tuple[TimeBucket, ...] = ()
    computed_at: Optional[str] = None

    @property
    def total_opportunity(self) -> float:
        return self.hw_summary.opportunity + self.sw_summary.opportunity


__all__ = [
    "HARDWARE",
    "SOFTWARE",
    "ITEM_KINDS",
    "UNKNOWN_ARCHITECTURE",
    "TIMELINE_LABELS",
    "EXPIRED",
    "WITHIN_6_MONTHS",
    "MONTHS_6_TO_12",
    "YEARS_1_TO_2",
    "YEARS_2_PLUS",
    "NO_DATE",
    "customer_key",
    "HardwareRenewalItem",
    "SoftwareRenewalItem",
    "CustomerSummary",
    "CombinedCustomerSummary",
    "ArchitectureBreakdown",
    "TimeBucket",
    "PortfolioSummary",
    "AggregateSnapshot",
]
