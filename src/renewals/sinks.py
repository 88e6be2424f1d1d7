"""Output destinations for rendered reports."""
from __future__ import annotations

import logging
import re
from datetime import date
from pathlib import Path
from typing import Dict, Optional, Protocol

LOGGER = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9]")


def sanitize_name(value: str) -> str:
    """Replace every non-alphanumeric character with ``_`` (one for one)."""

    return _UNSAFE_CHARS.sub("_", value or "")


def report_filename(kind: str, customer: str, on_date: Optional[date] = None, ext: str = "pdf") -> str:
    """``<kind>_<customer>_<YYYY-MM-DD>.<ext>``; a blank customer is left out."""

    stamp = (on_date or date.today()).isoformat()
    parts = [kind]
    safe_customer = sanitize_name(customer.strip()) if customer else ""
    if safe_customer:
        parts.append(safe_customer)
    parts.append(stamp)
    return "_".join(parts) + "." + ext.lstrip(".")


class ReportSink(Protocol):
    def save_blob(self, data: bytes, filename: str) -> str:
        """Persist ``data`` and return where it went."""
        ...


class DirectorySink:
    def __init__(self, directory: Path) -> None:
        self.directory = Path(directory)

    def save_blob(self, data: bytes, filename: str) -> str:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / filename
        path.write_bytes(data)
        LOGGER.info("Saved %s (%d bytes)", path, len(data))
        return str(path)


class MemorySink:
    def __init__(self) -> None:
        self.blobs: Dict[str, bytes] = {}

    def save_blob(self, data: bytes, filename: str) -> str:
        self.blobs[filename] = bytes(data)
        return f"memory://{filename}"


__all__ = ["ReportSink", "DirectorySink", "MemorySink", "report_filename", "sanitize_name"]
