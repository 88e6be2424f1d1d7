from __future__ import annotations

import json
from pathlib import Path

from renewals.models import HARDWARE, SOFTWARE
from renewals.status import InMemoryStatusStore, JsonStatusStore, StatusOption, StatusSettings


def test_in_memory_store_set_get_and_clear() -> None:
    store = InMemoryStatusStore()
    store.set(3, "Retired")

    assert store.get(3) == "Retired"
    assert store.get(4) == ""

    store.set(3, "")
    assert store.as_dict() == {}


def test_json_store_rewrites_full_map(tmp_path: Path) -> None:
    path = tmp_path / "statuses" / "hardware_statuses.json"
    store = JsonStatusStore(path)
    store.set(0, "In Use")
    store.set(5, "Replaced")

    assert json.loads(path.read_text(encoding="utf-8")) == {"0": "In Use", "5": "Replaced"}

    reopened = JsonStatusStore(path)
    assert reopened.get(5) == "Replaced"
    assert reopened.as_dict() == {0: "In Use", 5: "Replaced"}


def test_json_store_ignores_unreadable_file(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    store = JsonStatusStore(path)

    assert store.as_dict() == {}


def test_default_status_settings() -> None:
    settings = StatusSettings()

    assert settings.labels_for(HARDWARE) == ["In Use", "Replaced", "Retired"]
    assert settings.labels_for(SOFTWARE) == ["Renewed", "In Review", "Cancelled"]
    assert settings.color_for(SOFTWARE, "Renewed") == "green"
    assert settings.color_for(HARDWARE, "Retired") == "gray"
    assert settings.color_for(HARDWARE, "Renewed") is None
    assert settings.is_allowed(HARDWARE, "")
    assert not settings.is_allowed(HARDWARE, "Renewed")


def test_status_settings_save_load_and_reset(tmp_path: Path) -> None:
    path = tmp_path / "status_settings.json"
    settings = StatusSettings(path=path)
    settings.options[HARDWARE] = [StatusOption("Spare", "orange")]
    settings.save()

    loaded = StatusSettings.load(path)
    assert loaded.labels_for(HARDWARE) == ["Spare"]
    assert loaded.color_for(HARDWARE, "Spare") == "orange"
    assert loaded.labels_for(SOFTWARE) == ["Renewed", "In Review", "Cancelled"]

    loaded.reset_to_defaults()
    assert StatusSettings.load(path).labels_for(HARDWARE) == ["In Use", "Replaced", "Retired"]


def test_status_settings_missing_file_uses_defaults(tmp_path: Path) -> None:
    settings = StatusSettings.load(tmp_path / "absent.json")

    assert settings.labels_for(HARDWARE) == ["In Use", "Replaced", "Retired"]
