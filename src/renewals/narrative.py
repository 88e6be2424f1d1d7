"""AI narrative generation for renewal reports."""
from __future__ import annotations

import json
import logging
import re
import socket
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

import openai
from openai import AzureOpenAI, OpenAI

from .config import AIConfig
from .models import (
    AggregateSnapshot,
    ArchitectureBreakdown,
    HardwareRenewalItem,
    PortfolioSummary,
    SoftwareRenewalItem,
    TimeBucket,
)
from .reporting import format_currency, format_number

LOGGER = logging.getLogger(__name__)

OK = "ok"
EMPTY = "empty"
FAILED = "failed"

DEFAULT_FAILURE_MESSAGE = "AI analysis generation failed."
DEFAULT_TRANSPORT_MESSAGE = "Failed to generate AI analysis."
MAX_PROMPT_ITEMS = 150
_PLACEHOLDER_RE = re.compile(r"\{(\w+)\}")

DEFAULT_SYSTEM_PROMPT = (
    "You are a senior Cisco renewals specialist at a technology solutions partner. "
    "Write a concise, customer-ready renewal analysis in markdown. Use '#' to '###' "
    "headings, bullet lists and **bold** for key figures. Do not use tables."
)

DEFAULT_USER_PROMPT = (
    "Customer: {customer_name}\n\n"
    "Hardware overview: {hardware_overview}\n"
    "Software overview: {software_overview}\n\n"
    "Hardware by architecture:\n{hardware_architectures}\n\n"
    "Software by architecture:\n{software_architectures}\n\n"
    "Hardware LDOS timeline:\n{hardware_timeline}\n\n"
    "Software end date timeline:\n{software_timeline}\n\n"
    "Hardware line items:\n{hardware_items}\n\n"
    "Software line items:\n{software_items}\n\n"
    "Summarize the renewal position, call out urgent expirations and end-of-support "
    "risk, highlight the largest opportunities, and recommend next steps."
)


class NarrativeTransportError(RuntimeError):
    """Network failure, timeout or non-2xx response from the narrative service."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class NarrativeRequest:
    customer_name: str
    hardware_items: Sequence[HardwareRenewalItem] = ()
    software_items: Sequence[SoftwareRenewalItem] = ()
    hw_summary: PortfolioSummary = field(default_factory=PortfolioSummary)
    sw_summary: PortfolioSummary = field(default_factory=PortfolioSummary)
    hw_breakdown: Sequence[ArchitectureBreakdown] = ()
    sw_breakdown: Sequence[ArchitectureBreakdown] = ()
    hw_timeline: Sequence[TimeBucket] = ()
    sw_timeline: Sequence[TimeBucket] = ()

    @classmethod
    def from_snapshot(cls, snapshot: AggregateSnapshot) -> "NarrativeRequest":
        return cls(
            customer_name=snapshot.customer_name,
            hardware_items=snapshot.hardware_items,
            software_items=snapshot.software_items,
            hw_summary=snapshot.hw_summary,
            sw_summary=snapshot.sw_summary,
            hw_breakdown=snapshot.hw_breakdown,
            sw_breakdown=snapshot.sw_breakdown,
            hw_timeline=snapshot.hw_timeline,
            sw_timeline=snapshot.sw_timeline,
        )

    def to_payload(self) -> Dict[str, Any]:
        """JSON request body for the renewals-analysis endpoint."""

        return {
            "customerName": self.customer_name,
            "hardwareItems": [
                {
                    "architecture": i.architecture,
                    "productFamily": i.product_family,
                    "productId": i.product_id,
                    "productDescription": i.product_description,
                    "eolDate": i.eol_date,
                    "ldos": i.ldos,
                    "itemQuantity": i.quantity,
                    "opportunity": i.opportunity,
                }
                for i in self.hardware_items
            ],
            "softwareItems": [
                {
                    "architecture": i.architecture,
                    "subscriptionOfferType": i.subscription_offer_type,
                    "contractNumber": i.contract_number,
                    "contractStatus": i.contract_status,
                    "startDate": i.start_date,
                    "endDate": i.end_date,
                    "autoRenewTerm": i.auto_renew_term,
                    "itemQuantity": i.quantity,
                    "fullTermListPrice": i.full_term_list_price,
                    "opportunity": i.opportunity,
                }
                for i in self.software_items
            ],
            "hwSummary": _summary_payload(self.hw_summary, "productFamilies"),
            "swSummary": _summary_payload(self.sw_summary, "offerTypes"),
            "hwByArchitecture": [_breakdown_payload(b) for b in self.hw_breakdown],
            "swByArchitecture": [_breakdown_payload(b) for b in self.sw_breakdown],
            "hwEolTimeline": [_bucket_payload(b) for b in self.hw_timeline],
            "swEndingSoon": [_bucket_payload(b) for b in self.sw_timeline],
        }


def _summary_payload(summary: PortfolioSummary, families_key: str) -> Dict[str, Any]:
    return {
        "items": summary.items,
        "quantity": summary.quantity,
        "opportunity": summary.opportunity,
        "listPrice": summary.list_price,
        "architectures": list(summary.architectures),
        families_key: list(summary.families),
    }


def _breakdown_payload(row: ArchitectureBreakdown) -> Dict[str, Any]:
    return {
        "architecture": row.architecture,
        "count": row.item_count,
        "quantity": row.quantity,
        "opportunity": row.opportunity,
        "listPrice": row.list_price,
    }


def _bucket_payload(bucket: TimeBucket) -> Dict[str, Any]:
    return {"period": bucket.label, "count": bucket.count, "opportunity": bucket.opportunity}


@dataclass(frozen=True)
class NarrativeResult:
    generated: bool
    content: str = ""
    tokens: int = 0
    prompt_tokens: int = 0
    completion_tokens: int = 0
    model: str = ""
    finish_reason: str = ""
    system_prompt: str = ""
    user_prompt: str = ""

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "NarrativeResult":
        body = payload.get("data") if isinstance(payload.get("data"), Mapping) else payload
        return cls(
            generated=bool(body.get("generated", False)),
            content=str(body.get("content") or ""),
            tokens=_as_int(body.get("tokens")),
            prompt_tokens=_as_int(body.get("promptTokens")),
            completion_tokens=_as_int(body.get("completionTokens")),
            model=str(body.get("model") or ""),
            finish_reason=str(body.get("finishReason") or ""),
            system_prompt=str(body.get("systemPrompt") or ""),
            user_prompt=str(body.get("userPrompt") or ""),
        )

    @property
    def is_empty_success(self) -> bool:
        return self.generated and not self.content.strip()

    @property
    def budget_exhausted(self) -> bool:
        return self.is_empty_success and self.finish_reason == "length"


def _as_int(value: Any) -> int:
    try:
        return int(value or 0)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class NarrativeOutcome:
    """How a narrative attempt should be presented: ``ok``, ``empty`` or ``failed``."""

    kind: str
    message: str = ""
    result: Optional[NarrativeResult] = None

    @property
    def ok(self) -> bool:
        return self.kind == OK

    @property
    def content(self) -> str:
        return self.result.content if self.ok and self.result else ""


def describe_narrative(result: NarrativeResult) -> NarrativeOutcome:
    if result.is_empty_success:
        message = (
            f"AI returned empty content ({result.completion_tokens} completion tokens consumed, "
            f"finish reason: {result.finish_reason or 'unknown'}). "
        )
        if result.budget_exhausted:
            message += (
                "The model ran out of tokens: reasoning used the entire budget. "
                "Try increasing max tokens in the prompt settings."
            )
        else:
            message += "The model produced no output. Try again or check the prompt configuration."
        return NarrativeOutcome(kind=EMPTY, message=message, result=result)
    if not result.generated:
        return NarrativeOutcome(kind=FAILED, message=result.content or DEFAULT_FAILURE_MESSAGE, result=result)
    return NarrativeOutcome(kind=OK, result=result)


def describe_transport_error(exc: BaseException) -> NarrativeOutcome:
    return NarrativeOutcome(kind=FAILED, message=str(exc) or DEFAULT_TRANSPORT_MESSAGE)


class NarrativeClient(Protocol):
    def generate_narrative(self, request: NarrativeRequest) -> NarrativeResult:
        ...


def build_user_prompt(request: NarrativeRequest, template: Optional[str] = None) -> str:
    """Render the prompt text for ``request`` from its aggregates and line items.

    Only known ``{name}`` placeholders are substituted; any other braces in the
    template, such as a JSON example, are kept as written.
    """

    values = dict(
        customer_name=request.customer_name or "All customers",
        hardware_overview=_overview(request.hw_summary, "product families"),
        software_overview=_overview(request.sw_summary, "offer types"),
        hardware_architectures=_breakdown_lines(request.hw_breakdown),
        software_architectures=_breakdown_lines(request.sw_breakdown),
        hardware_timeline=_timeline_lines(request.hw_timeline),
        software_timeline=_timeline_lines(request.sw_timeline),
        hardware_items=_item_lines(
            [
                f"- {i.product_id or 'n/a'} ({i.product_family or 'n/a'}, {i.architecture or 'Unknown'}): "
                f"qty {format_number(i.quantity)}, {format_currency(i.opportunity)}, "
                f"EOL {i.eol_date or 'n/a'}, LDOS {i.ldos or 'n/a'}"
                for i in request.hardware_items
            ]
        ),
        software_items=_item_lines(
            [
                f"- {i.subscription_offer_type or 'n/a'} ({i.architecture or 'Unknown'}), contract "
                f"{i.contract_number or 'n/a'} [{i.contract_status or 'n/a'}]: qty {format_number(i.quantity)}, "
                f"{format_currency(i.opportunity)}, list {format_currency(i.full_term_list_price)}, "
                f"{i.start_date or 'n/a'} to {i.end_date or 'n/a'}, auto-renew {i.auto_renew_term or 'n/a'}"
                for i in request.software_items
            ]
        ),
    )
    return _PLACEHOLDER_RE.sub(lambda m: values.get(m.group(1), m.group(0)), template or DEFAULT_USER_PROMPT)


def _overview(summary: PortfolioSummary, families_label: str) -> str:
    return (
        f"{summary.items} line items, quantity {format_number(summary.quantity)}, "
        f"opportunity {format_currency(summary.opportunity)}, "
        f"{len(summary.architectures)} architectures, {len(summary.families)} {families_label}"
    )


def _breakdown_lines(rows: Sequence[ArchitectureBreakdown]) -> str:
    if not rows:
        return "- none"
    return "\n".join(
        f"- {r.architecture}: {r.item_count} items, qty {format_number(r.quantity)}, {format_currency(r.opportunity)}"
        for r in rows
    )


def _timeline_lines(buckets: Sequence[TimeBucket]) -> str:
    if not buckets:
        return "- none"
    return "\n".join(f"- {b.label}: {b.count} items, {format_currency(b.opportunity)}" for b in buckets)


def _item_lines(lines: List[str]) -> str:
    if not lines:
        return "- none"
    if len(lines) > MAX_PROMPT_ITEMS:
        extra = len(lines) - MAX_PROMPT_ITEMS
        lines = lines[:MAX_PROMPT_ITEMS] + [f"- ... {extra} more line items omitted"]
    return "\n".join(lines)


class OpenAINarrativeClient:
    """Chat-completions client for OpenAI or an Azure OpenAI deployment."""

    def __init__(self, config: AIConfig, api_key: str, client: Optional[object] = None) -> None:
        self.config = config
        if client is not None:
            self.client = client
        elif config.provider == "azure" or config.endpoint:
            self.client = AzureOpenAI(
                api_key=api_key,
                azure_endpoint=config.endpoint,
                api_version=config.api_version,
                max_retries=0,
            )
        else:
            self.client = OpenAI(api_key=api_key, max_retries=0)

    def generate_narrative(self, request: NarrativeRequest, timeout: Optional[float] = None) -> NarrativeResult:
        cfg = self.config
        system_prompt = cfg.system_prompt or DEFAULT_SYSTEM_PROMPT
        user_prompt = build_user_prompt(request, cfg.prompt_template)
        effective_timeout = timeout if timeout is not None else cfg.effective_timeout

        params: Dict[str, Any] = {
            "model": cfg.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "max_completion_tokens": cfg.effective_max_tokens,
            "timeout": effective_timeout,
        }
        if not cfg.is_reasoning_model:
            params["temperature"] = cfg.temperature

        LOGGER.info(
            "Requesting renewal narrative from %s (reasoning=%s, max tokens %d, timeout %.0fs)",
            cfg.model,
            cfg.is_reasoning_model,
            cfg.effective_max_tokens,
            effective_timeout,
        )
        try:
            response = self.client.chat.completions.create(**params)  # type: ignore[attr-defined]
        except openai.APIStatusError as exc:
            LOGGER.error("Narrative request failed with HTTP %s: %s", exc.status_code, exc)
            raise NarrativeTransportError(_status_message(exc.status_code, cfg.model, exc), exc.status_code) from exc
        except openai.APITimeoutError as exc:
            LOGGER.error("Narrative request timed out after %.0fs", effective_timeout)
            raise NarrativeTransportError(f"AI request timed out after {effective_timeout:.0f}s") from exc
        except openai.APIConnectionError as exc:
            LOGGER.error("Narrative request could not connect: %s", exc)
            raise NarrativeTransportError(f"Unable to reach AI service: {exc}") from exc
        except openai.OpenAIError as exc:
            LOGGER.error("Narrative request failed: %s", exc)
            raise NarrativeTransportError(str(exc) or DEFAULT_TRANSPORT_MESSAGE) from exc

        return self._to_result(response, system_prompt, user_prompt)

    def _to_result(self, response: object, system_prompt: str, user_prompt: str) -> NarrativeResult:
        choices = getattr(response, "choices", None) or []
        choice = choices[0] if choices else None
        message = getattr(choice, "message", None)
        content = getattr(message, "content", None) or ""
        if isinstance(content, list):
            # Some models return a list of content parts
            content = "\n".join(part.get("text", "") if isinstance(part, dict) else str(part) for part in content)
        usage = getattr(response, "usage", None)
        return NarrativeResult(
            generated=True,
            content=content,
            tokens=_as_int(getattr(usage, "total_tokens", 0)),
            prompt_tokens=_as_int(getattr(usage, "prompt_tokens", 0)),
            completion_tokens=_as_int(getattr(usage, "completion_tokens", 0)),
            model=str(getattr(response, "model", None) or self.config.model),
            finish_reason=str(getattr(choice, "finish_reason", None) or "unknown"),
            system_prompt=system_prompt,
            user_prompt=user_prompt,
        )


def _status_message(status_code: Optional[int], model: str, exc: Exception) -> str:
    if status_code == 401:
        return "AI authentication failed. Check your API key."
    if status_code == 404:
        return f'AI deployment "{model}" not found. Check your deployment name.'
    if status_code == 429:
        return "AI rate limit exceeded. Please try again in a moment."
    return f"AI service returned HTTP {status_code}: {exc}"


class HttpNarrativeClient:
    """Posts the request payload to an existing renewals-analysis HTTP service."""

    def __init__(self, base_url: str, timeout: float = 60.0, headers: Optional[Mapping[str, str]] = None) -> None:
        self.url = base_url.rstrip("/") + "/ai/renewals-analysis"
        self.timeout = timeout
        self.headers = {"Content-Type": "application/json", **(headers or {})}

    def generate_narrative(self, request: NarrativeRequest, timeout: Optional[float] = None) -> NarrativeResult:
        effective_timeout = timeout if timeout is not None else self.timeout
        body = json.dumps(request.to_payload()).encode("utf-8")
        http_request = Request(self.url, data=body, headers=self.headers, method="POST")
        LOGGER.info("Posting renewal narrative request to %s (timeout %.0fs)", self.url, effective_timeout)
        try:
            with urlopen(http_request, timeout=effective_timeout) as response:
                raw = response.read()
        except HTTPError as exc:
            LOGGER.error("Narrative service returned HTTP %s", exc.code)
            raise NarrativeTransportError(_http_error_message(exc), exc.code) from exc
        except (URLError, socket.timeout, TimeoutError, OSError) as exc:
            LOGGER.error("Narrative service unreachable: %s", exc)
            raise NarrativeTransportError(f"Unable to reach AI service: {exc}") from exc

        try:
            payload = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise NarrativeTransportError("AI service returned an invalid response") from exc
        if not isinstance(payload, Mapping):
            raise NarrativeTransportError("AI service returned an invalid response")
        return NarrativeResult.from_payload(payload)


def _http_error_message(exc: HTTPError) -> str:
    try:
        detail = json.loads(exc.read().decode("utf-8"))
    except (OSError, ValueError, AttributeError):
        detail = None
    if isinstance(detail, Mapping):
        error = detail.get("error")
        message = error.get("message") if isinstance(error, Mapping) else detail.get("message") or error
        if message:
            return str(message)
    return f"AI service returned HTTP {exc.code}"


def create_narrative_client(config: AIConfig) -> Optional[NarrativeClient]:
    """Build the configured client, or ``None`` when narratives are unavailable."""

    if not config.enabled:
        LOGGER.debug("AI narrative disabled in configuration")
        return None
    if config.provider == "http" or config.service_url:
        if not config.service_url:
            LOGGER.warning("AI provider 'http' selected but no service_url configured")
            return None
        return HttpNarrativeClient(config.service_url, timeout=config.effective_timeout)

    api_key = config.resolve_api_key()
    if not api_key:
        LOGGER.warning(
            "AI narrative enabled but API key unavailable; expected at %s or via %s",
            config.api_key_path,
            config.api_key_env,
        )
        return None
    return OpenAINarrativeClient(config, api_key)


__all__ = [
    "OK",
    "EMPTY",
    "FAILED",
    "NarrativeTransportError",
    "NarrativeRequest",
    "NarrativeResult",
    "NarrativeOutcome",
    "NarrativeClient",
    "OpenAINarrativeClient",
    "HttpNarrativeClient",
    "build_user_prompt",
    "create_narrative_client",
    "describe_narrative",
    "describe_transport_error",
]
