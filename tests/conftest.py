from __future__ import annotations

from datetime import datetime
from io import BytesIO
from typing import Callable, Dict, List

import pandas as pd
import pytest

from renewals.models import HardwareRenewalItem, SoftwareRenewalItem

NOW = datetime(2025, 1, 1)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def hardware_rows() -> List[Dict[str, object]]:
    return [
        {
            "Partner Geo Entity": "US West",
            "Global Customer Name": "ACME HOLDINGS",
            "Install Site End Customer Name": "Acme Corp",
            "Install Site Country": "US",
            "Architecture": "Enterprise Networking",
            "Sub Architecture": "Switching",
            "AAP": "Y",
            "Product Family": "C9300",
            "Product ID": "C9300-48P-A",
            "Product Description": "Catalyst 9300 48-port PoE+",
            "EOL Date": "2024-06-30",
            "LDOS": "2025-03-01",
            "Item Quantity": 4,
            "Opportunity": 12000.0,
        },
        {
            "Install Site End Customer Name": "Acme Corp",
            "Architecture": "Security",
            "Product Family": "ASA5500",
            "Product ID": "ASA5516-K9",
            "LDOS": "2024-08-31",
            "Item Quantity": 2,
            "Opportunity": 3000.0,
        },
        {
            "Install Site End Customer Name": "Globex",
            "Architecture": "",
            "Product Family": "ISR4000",
            "Product ID": "ISR4331/K9",
            "LDOS": "",
            "Item Quantity": 1,
            "Opportunity": 500.0,
        },
    ]


@pytest.fixture
def software_rows() -> List[Dict[str, object]]:
    return [
        {
            "Install Site End Customer Name": "ACME CORP",
            "Architecture": "Security",
            "Subscription ID": "Sub100",
            "Contract Number": "C-1",
            "Contract-Subscr Status": "ACTIVE",
            "Subscription Offer Type": "Umbrella",
            "Start Date": "2022-03-01",
            "End Date": "2025-05-01",
            "Auto Renew Term(months)": "12",
            "Item Quantity": 100,
            "Full Term List Price": "$9,000",
            "Opportunity (1 Yr List)": "$3,000",
        },
        {
            "Install Site End Customer Name": "Initech",
            "Architecture": "Collaboration",
            "Subscription ID": "Sub200",
            "Contract-Subscr Status": "ACTIVE",
            "Subscription Offer Type": "UNKNOWN",
            "End Date": "2027-06-30",
            "Item Quantity": 25,
            "Full Term List Price": 2500,
            "Opportunity (1 Yr List)": 800,
        },
    ]


@pytest.fixture
def workbook_bytes() -> Callable[[List[Dict[str, object]]], bytes]:
    def _create(rows: List[Dict[str, object]]) -> bytes:
        buffer = BytesIO()
        pd.DataFrame(rows).to_excel(buffer, index=False, engine="openpyxl")
        return buffer.getvalue()

    return _create


@pytest.fixture
def hw_item() -> Callable[..., HardwareRenewalItem]:
    counter = {"index": 0}

    def _create(**overrides) -> HardwareRenewalItem:
        values = {"row_index": counter["index"], "customer_name": "Acme", "architecture": "Security"}
        values.update(overrides)
        counter["index"] += 1
        return HardwareRenewalItem(**values)

    return _create


@pytest.fixture
def sw_item() -> Callable[..., SoftwareRenewalItem]:
    counter = {"index": 0}

    def _create(**overrides) -> SoftwareRenewalItem:
        values = {"row_index": counter["index"], "customer_name": "Acme", "architecture": "Security"}
        values.update(overrides)
        counter["index"] += 1
        return SoftwareRenewalItem(**values)

    return _create
