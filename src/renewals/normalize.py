"""Normalize raw spreadsheet rows into renewal records."""
from __future__ import annotations

import logging
import math
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from .models import HardwareRenewalItem, SoftwareRenewalItem
from .status import StatusStore

LOGGER = logging.getLogger(__name__)

Row = Mapping[str, Any]
StatusLookup = Union[StatusStore, Mapping[int, str], None]

HARDWARE_COLUMNS: Dict[str, str] = {
    "partner_geo_entity": "Partner Geo Entity",
    "global_customer_name": "Global Customer Name",
    "customer_name": "Install Site End Customer Name",
    "country": "Install Site Country",
    "architecture": "Architecture",
    "sub_architecture": "Sub Architecture",
    "aap": "AAP",
    "product_family": "Product Family",
    "product_id": "Product ID",
    "product_description": "Product Description",
    "eol_date": "EOL Date",
    "ldos": "LDOS",
    "quantity": "Item Quantity",
    "opportunity": "Opportunity",
}

SOFTWARE_COLUMNS: Dict[str, str] = {
    "partner_geo_entity": "Partner Geo Entity",
    "global_customer_name": "Global Customer Name",
    "customer_name": "Install Site End Customer Name",
    "country": "Install Site Country",
    "po_number": "PO#",
    "web_order_id": "Web Order ID",
    "architecture": "Architecture",
    "sub_architecture": "Sub Architecture",
    "aap": "AAP",
    "subscription_id": "Subscription ID",
    "contract_number": "Contract Number",
    "contract_status": "Contract-Subscr Status",
    "subscription_offer_type": "Subscription Offer Type",
    "quote_number": "Quote Number",
    "quote_type": "Quote Type",
    "ea_flag": "EA Flag",
    "start_date": "Start Date",
    "end_date": "End Date",
    "auto_renew_term": "Auto Renew Term(months)",
    "cancel_request_date": "Cancel Request Date",
    "quantity": "Item Quantity",
    "full_term_list_price": "Full Term List Price",
    "opportunity": "Opportunity (1 Yr List)",
}

_INT_FIELDS = {"quantity"}
_MONEY_FIELDS = {"opportunity", "full_term_list_price"}


def normalize_hardware_rows(rows: Iterable[Row], statuses: StatusLookup = None) -> List[HardwareRenewalItem]:
    items = [
        HardwareRenewalItem(row_index=index, status=_status_for(statuses, index), **_map_row(row, HARDWARE_COLUMNS))
        for index, row in enumerate(rows)
    ]
    LOGGER.debug("Normalized %d hardware rows", len(items))
    return items


def normalize_software_rows(rows: Iterable[Row], statuses: StatusLookup = None) -> List[SoftwareRenewalItem]:
    items = [
        SoftwareRenewalItem(row_index=index, status=_status_for(statuses, index), **_map_row(row, SOFTWARE_COLUMNS))
        for index, row in enumerate(rows)
    ]
    LOGGER.debug("Normalized %d software rows", len(items))
    return items


def _map_row(row: Row, columns: Mapping[str, str]) -> Dict[str, Any]:
    values: Dict[str, Any] = {}
    for field_name, column in columns.items():
        raw = row.get(column)
        if field_name in _INT_FIELDS:
            values[field_name] = int(to_amount(raw))
        elif field_name in _MONEY_FIELDS:
            values[field_name] = to_amount(raw)
        else:
            values[field_name] = to_text(raw)
    return values


def _status_for(statuses: StatusLookup, index: int) -> str:
    if statuses is None:
        return ""
    label = statuses.get(index)
    return str(label) if label else ""


def to_text(value: Any) -> str:
    """Render a cell value as trimmed text; blanks become ``""``."""

    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def to_amount(value: Any) -> float:
    """Coerce a quantity or money cell to a non-negative finite float.

    Currency symbols and thousands separators are stripped. Anything that still
    fails to parse, or parses to NaN, infinity or a negative value, becomes 0.
    """

    if value is None or isinstance(value, bool):
        return 0.0
    number: Optional[float]
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        text = str(value).replace("$", "").replace(",", "").strip()
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            LOGGER.debug("Coercing non-numeric value %r to 0", value)
            return 0.0
    if math.isnan(number) or math.isinf(number) or number < 0:
        LOGGER.debug("Coercing out-of-range value %r to 0", value)
        return 0.0
    return number


__all__ = [
    "HARDWARE_COLUMNS",
    "SOFTWARE_COLUMNS",
    "normalize_hardware_rows",
    "normalize_software_rows",
    "to_amount",
    "to_text",
]
