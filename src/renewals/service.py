"""High-level orchestration of renewal report generation."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from .aggregation import SnapshotCache
from .config import ReportConfig
from .dataset import RenewalDataset, RenewalItem, items_for_customer, source_for
from .models import HARDWARE, SOFTWARE, AggregateSnapshot
from .narrative import (
    EMPTY,
    FAILED,
    NarrativeClient,
    NarrativeOutcome,
    NarrativeRequest,
    NarrativeTransportError,
    create_narrative_client,
    describe_narrative,
    describe_transport_error,
)
from .render import ReportData, RenderableDocument, assemble_report, render_pdf
from .sinks import DirectorySink, ReportSink, report_filename
from .status import JsonStatusStore, StatusSettings

LOGGER = logging.getLogger(__name__)

NOT_CONFIGURED_MESSAGE = "AI narrative is not configured."


@dataclass
class ReportResult:
    filename: str
    location: str
    snapshot: AggregateSnapshot
    narrative: Optional[NarrativeOutcome] = None


class RenewalReportService:
    """Coordinates loading, aggregation, narrative generation and rendering."""

    def __init__(
        self,
        config: ReportConfig,
        hardware: RenewalDataset,
        software: RenewalDataset,
        narrative_client: Optional[NarrativeClient] = None,
        sink: Optional[ReportSink] = None,
        cache: Optional[SnapshotCache] = None,
    ) -> None:
        self.config = config
        self.hardware = hardware
        self.software = software
        self.narrative_client = narrative_client
        self.sink: ReportSink = sink or DirectorySink(config.output_dir)
        self.cache = cache or SnapshotCache()

    @classmethod
    def from_config(
        cls,
        config: ReportConfig,
        narrative_client: Optional[NarrativeClient] = None,
        sink: Optional[ReportSink] = None,
    ) -> "RenewalReportService":
        if not config.hardware_source or not config.software_source:
            raise ValueError("Both hardware and software renewal workbooks must be configured")
        settings = StatusSettings.load(config.settings_file)
        hardware = RenewalDataset(
            HARDWARE,
            source_for(config.hardware_source, config.fetch_retry),
            JsonStatusStore(config.status_file(HARDWARE)),
            settings,
        )
        software = RenewalDataset(
            SOFTWARE,
            source_for(config.software_source, config.fetch_retry),
            JsonStatusStore(config.status_file(SOFTWARE)),
            settings,
        )
        client = narrative_client if narrative_client is not None else create_narrative_client(config.ai)
        return cls(config, hardware, software, narrative_client=client, sink=sink)

    def snapshot(self, customer: str = "", *, refresh: bool = False, now: Optional[datetime] = None) -> AggregateSnapshot:
        hw_items = items_for_customer(self.hardware.ensure_loaded(), customer)
        sw_items = items_for_customer(self.software.ensure_loaded(), customer)
        return self.cache.get(customer, hw_items, sw_items, refresh=refresh, now=now)

    def update_status(self, kind: str, row_index: int, label: str) -> RenewalItem:
        """Set a record's status label and drop cached snapshots built from the old record."""

        if kind not in (HARDWARE, SOFTWARE):
            raise ValueError(f"Unknown renewal kind: {kind}")
        dataset = self.hardware if kind == HARDWARE else self.software
        updated = dataset.update_status(row_index, label)
        self.cache.invalidate()
        return updated

    def generate_narrative(self, snapshot: AggregateSnapshot, timeout: Optional[float] = None) -> NarrativeOutcome:
        """Request the AI narrative for ``snapshot``.

        Transport failures propagate as :class:`NarrativeTransportError`; an empty
        or failed response comes back as a non-ok outcome.
        """

        if self.narrative_client is None:
            return NarrativeOutcome(kind=FAILED, message=NOT_CONFIGURED_MESSAGE)
        request = NarrativeRequest.from_snapshot(snapshot)
        if timeout is None:
            result = self.narrative_client.generate_narrative(request)
        else:
            result = self.narrative_client.generate_narrative(request, timeout=timeout)  # type: ignore[call-arg]
        outcome = describe_narrative(result)
        if outcome.kind == EMPTY:
            LOGGER.warning("%s", outcome.message)
        elif outcome.kind == FAILED:
            LOGGER.error("AI narrative failed: %s", outcome.message)
        else:
            LOGGER.info(
                "AI narrative generated by %s (%d tokens, finish reason %s)",
                result.model,
                result.tokens,
                result.finish_reason,
            )
        return outcome

    def build_document(
        self,
        snapshot: AggregateSnapshot,
        narrative: Optional[NarrativeOutcome] = None,
        prepared_on: Optional[date] = None,
    ) -> RenderableDocument:
        content = narrative.content if narrative else ""
        model = narrative.result.model if narrative and narrative.ok and narrative.result else None
        data = ReportData(snapshot=snapshot, narrative=content or None, ai_model=model, prepared_on=prepared_on)
        return assemble_report(data, self.config.branding)

    def render_report(
        self,
        customer: str = "",
        *,
        include_narrative: bool = True,
        refresh: bool = False,
        on_date: Optional[date] = None,
    ) -> ReportResult:
        snapshot = self.snapshot(customer, refresh=refresh)
        outcome: Optional[NarrativeOutcome] = None
        if include_narrative and self.narrative_client is not None:
            try:
                outcome = self.generate_narrative(snapshot)
            except NarrativeTransportError as exc:
                LOGGER.error("Continuing without AI narrative: %s", exc)
                outcome = describe_transport_error(exc)

        prepared = on_date or date.today()
        document = self.build_document(snapshot, outcome, prepared_on=prepared)
        data = render_pdf(document, self.config.branding)
        filename = report_filename(self.config.report_kind, snapshot.customer_name, prepared, "pdf")
        location = self.sink.save_blob(data, filename)
        LOGGER.info("Renewal report for %s written to %s", snapshot.customer_name or "all customers", location)
        return ReportResult(filename=filename, location=location, snapshot=snapshot, narrative=outcome)


__all__ = ["RenewalReportService", "ReportResult", "NOT_CONFIGURED_MESSAGE"]
