"""Spreadsheet ingestion and the loaded-once renewal datasets."""
from __future__ import annotations

import logging
import threading
from dataclasses import replace
from datetime import date, datetime
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Sequence, Tuple, TypeVar, Union
from urllib.error import URLError
from urllib.request import Request, urlopen

import pandas as pd

from .config import RetryPolicy
from .models import HARDWARE, ITEM_KINDS, SOFTWARE, HardwareRenewalItem, SoftwareRenewalItem, customer_key
from .normalize import normalize_hardware_rows, normalize_software_rows
from .retry import CircuitBreaker, CircuitBreakerOpen, execute_with_retry, is_transient_download_error
from .status import InMemoryStatusStore, StatusSettings, StatusStore

LOGGER = logging.getLogger(__name__)

RenewalItem = Union[HardwareRenewalItem, SoftwareRenewalItem]
ItemT = TypeVar("ItemT", HardwareRenewalItem, SoftwareRenewalItem)

UNKNOWN_OFFER_TYPE = "UNKNOWN"


class WorkbookLoadError(RuntimeError):
    """Raised when a renewal spreadsheet cannot be fetched or parsed."""


class WorkbookSource(Protocol):
    description: str

    def read(self) -> bytes:
        ...


class FileWorkbookSource:
    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.description = str(self.path)

    def read(self) -> bytes:
        try:
            return self.path.read_bytes()
        except OSError as exc:
            raise WorkbookLoadError(f"Unable to read workbook {self.path}: {exc}") from exc


class BytesWorkbookSource:
    """Workbook content already held in memory (uploads, tests)."""

    def __init__(self, data: bytes, description: str = "<memory>") -> None:
        self.data = data
        self.description = description

    def read(self) -> bytes:
        return self.data


class UrlWorkbookSource:
    """Downloads the workbook over HTTP with retry and a circuit breaker."""

    def __init__(self, url: str, policy: Optional[RetryPolicy] = None) -> None:
        self.url = url
        self.description = url
        self.policy = policy or RetryPolicy(timeout_seconds=60.0)
        self._breaker = CircuitBreaker(self.policy.circuit_breaker_failures)

    def read(self) -> bytes:
        LOGGER.info("Downloading workbook %s", self.url)
        request = Request(self.url, headers={"User-Agent": "renewals-report"})
        try:
            return execute_with_retry(
                lambda timeout: _read_binary(request, timeout),
                policy=self.policy,
                description=f"workbook download {self.url}",
                logger=LOGGER,
                breaker=self._breaker,
                should_retry=is_transient_download_error,
            )
        except CircuitBreakerOpen as exc:
            raise WorkbookLoadError(str(exc)) from exc
        except (URLError, OSError, ValueError) as exc:
            raise WorkbookLoadError(f"Unable to download workbook {self.url}: {exc}") from exc


def _read_binary(request: Request, timeout: float) -> bytes:
    with urlopen(request, timeout=timeout) as response:
        return response.read()


def source_for(location: Union[str, Path], policy: Optional[RetryPolicy] = None) -> WorkbookSource:
    """Pick a file or URL source from a configured location."""

    text = str(location)
    if text.lower().startswith(("http://", "https://")):
        return UrlWorkbookSource(text, policy)
    return FileWorkbookSource(Path(text).expanduser())


def read_workbook_rows(data: bytes) -> List[Dict[str, Any]]:
    """Read the first sheet of an ``.xlsx``/``.xls`` buffer into row dicts.

    Blank cells are left out of the row, and date cells become ISO dates.
    """

    if not data:
        raise WorkbookLoadError("Workbook is empty")
    try:
        frame = pd.read_excel(BytesIO(data), sheet_name=0, dtype=object)
    except Exception as exc:
        raise WorkbookLoadError(f"Unable to parse workbook: {exc}") from exc

    columns = [str(column).strip() for column in frame.columns]
    rows: List[Dict[str, Any]] = []
    for values in frame.itertuples(index=False, name=None):
        row: Dict[str, Any] = {}
        for column, value in zip(columns, values):
            cell = _cell_value(value)
            if cell is not None:
                row[column] = cell
        rows.append(row)
    return rows


def _cell_value(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, (str, bytes)):
        return value
    if isinstance(value, datetime):
        if pd.isna(value):
            return None
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    try:
        if pd.isna(value):
            return None
    except (TypeError, ValueError):
        return value
    return value


class RenewalDataset:
    """The normalized records for one spreadsheet, loaded at most once."""

    def __init__(
        self,
        kind: str,
        source: WorkbookSource,
        status_store: Optional[StatusStore] = None,
        settings: Optional[StatusSettings] = None,
    ) -> None:
        if kind not in ITEM_KINDS:
            raise ValueError(f"Unknown renewal kind: {kind}")
        self.kind = kind
        self.source = source
        self.status_store: StatusStore = status_store if status_store is not None else InMemoryStatusStore()
        self.settings = settings or StatusSettings()
        self._lock = threading.RLock()
        self._items: Tuple[RenewalItem, ...] = ()
        self._positions: Dict[int, int] = {}
        self._loaded = False

    @property
    def loaded(self) -> bool:
        return self._loaded

    @property
    def items(self) -> Tuple[RenewalItem, ...]:
        return self._items

    def ensure_loaded(self) -> Tuple[RenewalItem, ...]:
        with self._lock:
            if self._loaded:
                return self._items
            LOGGER.info("Loading %s renewals from %s", self.kind, self.source.description)
            rows = read_workbook_rows(self.source.read())
            if self.kind == HARDWARE:
                items: Sequence[RenewalItem] = normalize_hardware_rows(rows, self.status_store)
            else:
                items = normalize_software_rows(rows, self.status_store)
            self._items = tuple(items)
            self._positions = {item.row_index: pos for pos, item in enumerate(self._items)}
            self._loaded = True
            LOGGER.info("Loaded %d %s renewal rows", len(self._items), self.kind)
            return self._items

    def update_status(self, row_index: int, label: str) -> RenewalItem:
        label = (label or "").strip()
        if not self.settings.is_allowed(self.kind, label):
            raise ValueError(
                f"Unknown {self.kind} status {label!r}; expected one of {self.settings.labels_for(self.kind)}"
            )
        with self._lock:
            self.ensure_loaded()
            position = self._positions.get(row_index)
            if position is None:
                raise KeyError(f"No {self.kind} renewal at row {row_index}")
            updated = _replace_status(self._items[position], label)
            items = list(self._items)
            items[position] = updated
            self._items = tuple(items)
            self.status_store.set(row_index, label)
            LOGGER.debug("Set %s row %d status to %r", self.kind, row_index, label)
            return updated

    def customer_names(self) -> List[str]:
        return _distinct(item.customer_name for item in self.ensure_loaded())

    def architectures(self) -> List[str]:
        return _distinct(item.architecture for item in self.ensure_loaded())

    def product_families(self) -> List[str]:
        if self.kind != HARDWARE:
            return []
        return _distinct(item.product_family for item in self.ensure_loaded())  # type: ignore[union-attr]

    def offer_types(self) -> List[str]:
        if self.kind != SOFTWARE:
            return []
        return _distinct(
            item.subscription_offer_type  # type: ignore[union-attr]
            for item in self.ensure_loaded()
            if item.subscription_offer_type != UNKNOWN_OFFER_TYPE  # type: ignore[union-attr]
        )

    def contract_statuses(self) -> List[str]:
        if self.kind != SOFTWARE:
            return []
        return _distinct(item.contract_status for item in self.ensure_loaded())  # type: ignore[union-attr]


def _replace_status(item: RenewalItem, label: str) -> RenewalItem:
    return replace(item, status=label)


def _distinct(values: Iterable[str]) -> List[str]:
    return sorted({value for value in values if value and value.strip()})


def items_for_customer(items: Iterable[ItemT], customer: Optional[str]) -> List[ItemT]:
    """Filter records to one customer, case-insensitively; blank returns all."""

    key = customer_key(customer or "")
    if not key:
        return list(items)
    return [item for item in items if customer_key(item.customer_name) == key]


__all__ = [
    "WorkbookLoadError",
    "WorkbookSource",
    "FileWorkbookSource",
    "BytesWorkbookSource",
    "UrlWorkbookSource",
    "RenewalDataset",
    "read_workbook_rows",
    "items_for_customer",
    "source_for",
]
