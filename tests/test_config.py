from __future__ import annotations

import json
from argparse import Namespace
from pathlib import Path

import pytest

from renewals.config import AIConfig, ReportConfig, load_config


@pytest.fixture(autouse=True)
def isolated_cwd(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    return tmp_path


def test_defaults_without_file_or_env() -> None:
    config = load_config({}, None)

    assert config.hardware_source is None
    assert config.output_dir == Path("outputs")
    assert config.ai.enabled
    assert config.ai.model == "gpt-4o-mini"
    assert config.branding.company_name == "Cerium Networks"
    assert config.status_file("hardware") == Path("data/statuses/hardware_statuses.json")


def test_load_yaml_config(tmp_path) -> None:
    path = tmp_path / "renewals.yaml"
    path.write_text(
        "\n".join(
            [
                "hardware_source: data/hw.xlsx",
                "software_source: https://example.com/sw.xlsx",
                "output_dir: reports",
                "ai:",
                "  model: o3-mini",
                "  enabled: 'false'",
                "  max_tokens: 6000",
                "branding:",
                "  company_name: Northwind",
                "fetch:",
                "  retries: 2",
                "  circuit_breaker_failures: 0",
            ]
        ),
        encoding="utf-8",
    )

    config = ReportConfig.load(path)

    assert config.hardware_source == "data/hw.xlsx"
    assert config.output_dir == Path("reports")
    assert config.ai.model == "o3-mini"
    assert not config.ai.enabled
    assert config.ai.effective_max_tokens == 24000
    assert config.branding.company_name == "Northwind"
    assert config.branding.primary_color == "1B4F72"
    assert config.fetch_retry.retries == 2
    assert config.fetch_retry.circuit_breaker_failures == 1


def test_missing_config_file_raises(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config({"RENEWALS_CONFIG": str(tmp_path / "missing.json")}, None)


def test_default_config_file_is_picked_up(isolated_cwd) -> None:
    (isolated_cwd / "config").mkdir()
    (isolated_cwd / "config" / "renewals.json").write_text(
        json.dumps({"hardware_source": "hw.xlsx", "verbose": True}), encoding="utf-8"
    )

    config = load_config({}, None)

    assert config.hardware_source == "hw.xlsx"
    assert config.verbose


def test_precedence_cli_over_env_over_file(tmp_path) -> None:
    path = tmp_path / "renewals.json"
    path.write_text(json.dumps({"hardware_source": "file-hw.xlsx", "software_source": "file-sw.xlsx"}), encoding="utf-8")
    env = {
        "RENEWALS_CONFIG": str(path),
        "RENEWALS_HARDWARE_XLSX": "env-hw.xlsx",
        "RENEWALS_SOFTWARE_XLSX": "env-sw.xlsx",
        "RENEWALS_OUTPUT_DIR": "env-out",
        "OPENAI_MODEL": "gpt-4o",
        "OPENAI_TIMEOUT_SECONDS": "90",
        "OPENAI_MAX_TOKENS": "bogus",
    }
    args = Namespace(config=None, hardware="cli-hw.xlsx", software=None, output_dir=None, status_dir="cli-status",
                     disable_ai=False, verbose=True)

    config = load_config(env, args)

    assert config.hardware_source == "cli-hw.xlsx"
    assert config.software_source == "env-sw.xlsx"
    assert config.output_dir == Path("env-out")
    assert config.status_dir == Path("cli-status")
    assert config.ai.model == "gpt-4o"
    assert config.ai.effective_timeout == 90.0
    assert config.ai.max_tokens == 4000
    assert config.verbose


def test_env_switches_provider_and_disables_ai() -> None:
    azure = load_config(
        {
            "AZURE_OPENAI_ENDPOINT": "https://contoso.openai.azure.com/",
            "AZURE_OPENAI_DEPLOYMENT": "o4-mini",
            "AZURE_OPENAI_API_VERSION": "2025-01-01-preview",
        },
        None,
    )
    assert azure.ai.provider == "azure"
    assert azure.ai.model == "o4-mini"
    assert azure.ai.api_version == "2025-01-01-preview"

    service = load_config({"RENEWALS_AI_SERVICE_URL": "http://localhost:8000/api"}, None)
    assert service.ai.provider == "http"

    assert not load_config({"DISABLE_OPENAI": "yes"}, None).ai.enabled
    assert not load_config({}, Namespace(disable_ai=True)).ai.enabled


def test_resolve_api_key(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("RENEWALS_TEST_KEY", "  sk-env  ")
    assert AIConfig(api_key_env="RENEWALS_TEST_KEY").resolve_api_key() == "sk-env"

    monkeypatch.delenv("RENEWALS_TEST_KEY")
    key_file = tmp_path / "key.txt"
    key_file.write_text("sk-file\n", encoding="utf-8")
    assert AIConfig(api_key_env="RENEWALS_TEST_KEY", api_key_path=key_file).resolve_api_key() == "sk-file"
    assert AIConfig(api_key_env="RENEWALS_TEST_KEY", api_key_path=tmp_path / "nope").resolve_api_key() is None


def test_ensure_directories(tmp_path) -> None:
    config = ReportConfig(output_dir=tmp_path / "out", status_dir=tmp_path / "state")

    config.ensure_directories()

    assert (tmp_path / "out").is_dir()
    assert (tmp_path / "state").is_dir()
