"""Persistent status labels for renewal line items."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Protocol, Tuple

from .models import HARDWARE, ITEM_KINDS, SOFTWARE

LOGGER = logging.getLogger(__name__)


class StatusStore(Protocol):
    """Key-value store of status labels keyed by source row index."""

    def get(self, index: int) -> str:
        ...

    def set(self, index: int, label: str) -> None:
        ...

    def as_dict(self) -> Dict[int, str]:
        ...


class InMemoryStatusStore:
    def __init__(self, initial: Optional[Mapping[int, str]] = None) -> None:
        self._statuses: Dict[int, str] = {}
        for index, label in (initial or {}).items():
            if label:
                self._statuses[int(index)] = str(label)

    def get(self, index: int) -> str:
        return self._statuses.get(index, "")

    def set(self, index: int, label: str) -> None:
        if label:
            self._statuses[index] = label
        else:
            self._statuses.pop(index, None)

    def as_dict(self) -> Dict[int, str]:
        return dict(self._statuses)


class JsonStatusStore(InMemoryStatusStore):
    """Status map kept in a JSON file that is rewritten in full on every change."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(self._read(path))

    @staticmethod
    def _read(path: Path) -> Dict[int, str]:
        if not path.exists():
            return {}
        try:
            with path.open("r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.warning("Ignoring unreadable status file %s: %s", path, exc)
            return {}
        statuses: Dict[int, str] = {}
        for key, value in (raw or {}).items():
            try:
                statuses[int(key)] = str(value)
            except (TypeError, ValueError):
                LOGGER.debug("Skipping non-numeric status key %r in %s", key, path)
        return statuses

    def set(self, index: int, label: str) -> None:
        super().set(index, label)
        self.save()

    def save(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        data = {str(index): label for index, label in sorted(self._statuses.items())}
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)


@dataclass(frozen=True)
class StatusOption:
    label: str
    color: str


DEFAULT_STATUS_OPTIONS: Dict[str, Tuple[StatusOption, ...]] = {
    HARDWARE: (
        StatusOption("In Use", "green"),
        StatusOption("Replaced", "blue"),
        StatusOption("Retired", "gray"),
    ),
    SOFTWARE: (
        StatusOption("Renewed", "green"),
        StatusOption("In Review", "blue"),
        StatusOption("Cancelled", "gray"),
    ),
}


@dataclass
class StatusSettings:
    """Allowed status labels per item kind, each with a display color."""

    options: Dict[str, List[StatusOption]] = field(
        default_factory=lambda: {kind: list(opts) for kind, opts in DEFAULT_STATUS_OPTIONS.items()}
    )
    path: Optional[Path] = None

    @classmethod
    def load(cls, path: Optional[Path]) -> "StatusSettings":
        if path is None or not path.exists():
            return cls(path=path)
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
        return cls.from_dict(raw or {}, path=path)

    @classmethod
    def from_dict(cls, raw: dict, path: Optional[Path] = None) -> "StatusSettings":
        settings = cls(path=path)
        for kind in ITEM_KINDS:
            entries = raw.get(kind)
            if entries is None:
                continue
            settings.options[kind] = [
                StatusOption(label=str(entry["label"]), color=str(entry.get("color", "gray")))
                for entry in entries
                if entry.get("label")
            ]
        return settings

    def to_dict(self) -> dict:
        return {
            kind: [{"label": opt.label, "color": opt.color} for opt in opts]
            for kind, opts in self.options.items()
        }

    def save(self) -> None:
        if self.path is None:
            raise ValueError("StatusSettings has no path to save to")
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2)

    def reset_to_defaults(self) -> None:
        self.options = {kind: list(opts) for kind, opts in DEFAULT_STATUS_OPTIONS.items()}
        if self.path is not None:
            self.save()

    def labels_for(self, kind: str) -> List[str]:
        return [opt.label for opt in self.options.get(kind, [])]

    def color_for(self, kind: str, label: str) -> Optional[str]:
        for opt in self.options.get(kind, []):
            if opt.label == label:
                return opt.color
        return None

    def is_allowed(self, kind: str, label: str) -> bool:
        return label == "" or label in self.labels_for(kind)


__all__ = [
    "StatusStore",
    "InMemoryStatusStore",
    "JsonStatusStore",
    "StatusOption",
    "StatusSettings",
    "DEFAULT_STATUS_OPTIONS",
]
