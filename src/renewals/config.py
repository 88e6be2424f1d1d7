"""Configuration helpers for renewal report generation."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from types import SimpleNamespace
from typing import Mapping, Optional

import yaml

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/renewals.json")
DEFAULT_REPORT_KIND = "Cisco_Renewal_Analysis"
REASONING_MODEL_PREFIXES = ("o1", "o3", "o4")

_BOOLEAN_TRUE = {"1", "true", "yes", "on"}


@dataclass
class RetryPolicy:
    """Retry/backoff policy for network operations."""

    timeout_seconds: float = 30.0
    retries: int = 0
    backoff_factor: float = 0.0
    circuit_breaker_failures: int = 3


@dataclass
class AIConfig:
    enabled: bool = True
    provider: str = "openai"
    model: str = "gpt-4o-mini"
    api_key_env: str = "OPENAI_API_KEY"
    api_key_path: Path | None = None
    endpoint: Optional[str] = None
    api_version: str = "2024-10-21"
    service_url: Optional[str] = None
    max_tokens: int = 4000
    temperature: float = 0.7
    timeout_seconds: Optional[float] = None
    system_prompt: Optional[str] = None
    prompt_template: Optional[str] = None

    @property
    def is_reasoning_model(self) -> bool:
        return self.model.strip().lower().startswith(REASONING_MODEL_PREFIXES)

    @property
    def effective_max_tokens(self) -> int:
        """Token budget sent with the request.

        Reasoning models spend completion tokens on hidden reasoning before any
        output, so their budget is raised to avoid empty responses.
        """

        base = self.max_tokens or 4000
        if self.is_reasoning_model:
            return max(base * 4, 16384)
        return base

    @property
    def effective_timeout(self) -> float:
        if self.timeout_seconds is not None:
            return float(self.timeout_seconds)
        return 180.0 if self.is_reasoning_model else 60.0

    def resolve_api_key(self) -> Optional[str]:
        """Return the API key from the environment or configured file."""

        if self.api_key_env and self.api_key_env in os.environ:
            token = os.environ[self.api_key_env].strip()
            if token:
                return token
        if self.api_key_path:
            try:
                content = Path(self.api_key_path).expanduser().read_text(encoding="utf-8")
            except FileNotFoundError:
                return None
            except OSError:
                LOGGER.debug("Unable to read AI API key from %s", self.api_key_path)
                return None
            token = content.strip()
            return token or None
        return None


@dataclass
class BrandingConfig:
    company_name: str = "Cerium Networks"
    tagline: str = "Technology Solutions & Managed Services"
    report_title: str = "Cisco Renewal Analysis"
    primary_color: str = "1B4F72"
    accent_color: str = "2E86C1"
    light_color: str = "D6EAF8"
    dark_color: str = "2C3E50"
    muted_color: str = "7F8C8D"
    confidentiality_text: str = "CONFIDENTIAL"


@dataclass
class ReportConfig:
    hardware_source: Optional[str] = None
    software_source: Optional[str] = None
    status_dir: Path = Path("data/statuses")
    settings_file: Optional[Path] = None
    output_dir: Path = Path("outputs")
    report_kind: str = DEFAULT_REPORT_KIND
    ai: AIConfig = field(default_factory=AIConfig)
    branding: BrandingConfig = field(default_factory=BrandingConfig)
    fetch_retry: RetryPolicy = field(default_factory=lambda: RetryPolicy(timeout_seconds=60.0))
    verbose: bool = False

    @classmethod
    def load(cls, path: Path | None = None) -> "ReportConfig":
        """Load configuration from YAML/JSON file."""

        config_path = path or DEFAULT_CONFIG_PATH
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with config_path.open("r", encoding="utf-8") as f:
            suffix = config_path.suffix.lower()
            if suffix in {".yaml", ".yml"}:
                raw = yaml.safe_load(f)
            else:
                raw = json.load(f)

        return cls.from_dict(raw or {})

    @classmethod
    def from_dict(cls, raw: dict) -> "ReportConfig":
        ai = raw.get("ai") or {}
        branding = raw.get("branding") or {}
        default_ai = AIConfig()
        default_branding = BrandingConfig()

        ai_cfg = AIConfig(
            enabled=_coerce_bool(ai.get("enabled", default_ai.enabled)),
            provider=str(ai.get("provider", default_ai.provider)).lower(),
            model=ai.get("model", default_ai.model),
            api_key_env=ai.get("api_key_env", default_ai.api_key_env),
            api_key_path=_to_path(ai.get("api_key_path")),
            endpoint=ai.get("endpoint") or None,
            api_version=ai.get("api_version", default_ai.api_version),
            service_url=ai.get("service_url") or None,
            max_tokens=int(ai.get("max_tokens", default_ai.max_tokens)),
            temperature=float(ai.get("temperature", default_ai.temperature)),
            timeout_seconds=_to_float(ai.get("timeout_seconds")),
            system_prompt=ai.get("system_prompt"),
            prompt_template=ai.get("prompt_template"),
        )

        branding_cfg = BrandingConfig(
            **{
                key: str(branding.get(key, getattr(default_branding, key)))
                for key in default_branding.__dataclass_fields__
            }
        )

        fetch = raw.get("fetch") or {}
        fetch_retry = RetryPolicy(
            timeout_seconds=float(fetch.get("timeout_seconds", 60.0)),
            retries=int(fetch.get("retries", 0)),
            backoff_factor=float(fetch.get("backoff_factor", 0.0)),
            circuit_breaker_failures=max(1, int(fetch.get("circuit_breaker_failures", 3))),
        )

        return cls(
            hardware_source=raw.get("hardware_source") or None,
            software_source=raw.get("software_source") or None,
            status_dir=_to_path(raw.get("status_dir")) or Path("data/statuses"),
            settings_file=_to_path(raw.get("settings_file")),
            output_dir=_to_path(raw.get("output_dir")) or Path("outputs"),
            report_kind=raw.get("report_kind", DEFAULT_REPORT_KIND),
            ai=ai_cfg,
            branding=branding_cfg,
            fetch_retry=fetch_retry,
            verbose=_coerce_bool(raw.get("verbose", False)),
        )

    def status_file(self, kind: str) -> Path:
        return self.status_dir / f"{kind}_statuses.json"

    def ensure_directories(self) -> None:
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.status_dir.mkdir(parents=True, exist_ok=True)


def load_config(env: Mapping[str, str], cli_args: object | None = None) -> ReportConfig:
    """Build a :class:`ReportConfig` from a config file, environment variables and CLI options."""

    cli_ns = _namespace(cli_args)
    config_path = _to_path(getattr(cli_ns, "config", None)) or _to_path(env.get("RENEWALS_CONFIG"))
    if config_path is not None:
        config = ReportConfig.load(config_path)
    elif DEFAULT_CONFIG_PATH.exists():
        config = ReportConfig.load(DEFAULT_CONFIG_PATH)
    else:
        config = ReportConfig()

    ai = config.ai
    hardware_source = env.get("RENEWALS_HARDWARE_XLSX") or config.hardware_source
    software_source = env.get("RENEWALS_SOFTWARE_XLSX") or config.software_source
    output_dir = _to_path(env.get("RENEWALS_OUTPUT_DIR")) or config.output_dir
    status_dir = _to_path(env.get("RENEWALS_STATUS_DIR")) or config.status_dir
    settings_file = _to_path(env.get("RENEWALS_STATUS_SETTINGS")) or config.settings_file

    if _flag(env.get("DISABLE_OPENAI")):
        ai = replace(ai, enabled=False)
    if env.get("OPENAI_MODEL"):
        ai = replace(ai, model=env["OPENAI_MODEL"].strip())
    if env.get("AZURE_OPENAI_ENDPOINT"):
        ai = replace(ai, provider="azure", endpoint=env["AZURE_OPENAI_ENDPOINT"].strip())
        if env.get("AZURE_OPENAI_DEPLOYMENT"):
            ai = replace(ai, model=env["AZURE_OPENAI_DEPLOYMENT"].strip())
        if env.get("AZURE_OPENAI_API_VERSION"):
            ai = replace(ai, api_version=env["AZURE_OPENAI_API_VERSION"].strip())
    if env.get("RENEWALS_AI_SERVICE_URL"):
        ai = replace(ai, provider="http", service_url=env["RENEWALS_AI_SERVICE_URL"].strip())
    timeout = _to_float(env.get("OPENAI_TIMEOUT_SECONDS"))
    if timeout is not None:
        ai = replace(ai, timeout_seconds=timeout)
    max_tokens = _to_int(env.get("OPENAI_MAX_TOKENS"))
    if max_tokens:
        ai = replace(ai, max_tokens=max_tokens)

    verbose = config.verbose
    if getattr(cli_ns, "hardware", None):
        hardware_source = str(cli_ns.hardware)
    if getattr(cli_ns, "software", None):
        software_source = str(cli_ns.software)
    if getattr(cli_ns, "output_dir", None):
        output_dir = _to_path(cli_ns.output_dir) or output_dir
    if getattr(cli_ns, "status_dir", None):
        status_dir = _to_path(cli_ns.status_dir) or status_dir
    if getattr(cli_ns, "disable_ai", False):
        ai = replace(ai, enabled=False)
    if getattr(cli_ns, "verbose", False):
        verbose = True

    return replace(
        config,
        hardware_source=hardware_source,
        software_source=software_source,
        output_dir=output_dir,
        status_dir=status_dir,
        settings_file=settings_file,
        ai=ai,
        verbose=verbose,
    )


def _namespace(cli_args: object | None) -> SimpleNamespace:
    if cli_args is None:
        return SimpleNamespace()
    if isinstance(cli_args, SimpleNamespace):
        return cli_args
    if hasattr(cli_args, "__dict__"):
        return SimpleNamespace(**{k: v for k, v in vars(cli_args).items()})
    return SimpleNamespace()


def _to_path(value: object | None) -> Optional[Path]:
    if value is None:
        return None
    if isinstance(value, Path):
        return value.expanduser()
    text = str(value).strip()
    if not text:
        return None
    return Path(text).expanduser()


def _to_int(value: object | None) -> Optional[int]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(float(text))
    except ValueError:
        return None


def _to_float(value: object | None) -> Optional[float]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        return float(text)
    except ValueError:
        return None


def _flag(value: object | None) -> bool:
    if value is None:
        return False
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _BOOLEAN_TRUE


def _coerce_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() not in {"0", "false", "no", "off", ""}
    return bool(value)


__all__ = [
    "AIConfig",
    "BrandingConfig",
    "ReportConfig",
    "RetryPolicy",
    "DEFAULT_REPORT_KIND",
    "load_config",
]
