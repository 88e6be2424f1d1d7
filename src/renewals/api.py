from __future__ import annotations

import os
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import Optional

from .config import load_config
from .narrative import NarrativeClient
from .service import RenewalReportService, ReportResult
from .sinks import ReportSink


@dataclass
class ReportOptions:
    hardware_xlsx: Optional[str] = None
    software_xlsx: Optional[str] = None
    customer: str = ""
    output_dir: Optional[Path] = None
    status_dir: Optional[Path] = None
    config_path: Optional[Path] = None
    disable_ai: bool = True
    on_date: Optional[date] = None


def generate_report(
    options: ReportOptions,
    narrative_client: Optional[NarrativeClient] = None,
    sink: Optional[ReportSink] = None,
) -> ReportResult:
    """Programmatic interface: render one customer report and return where it was saved.

    Options override environment variables, which override the config file.
    """

    env = dict(os.environ)
    if options.hardware_xlsx:
        env["RENEWALS_HARDWARE_XLSX"] = str(options.hardware_xlsx)
    if options.software_xlsx:
        env["RENEWALS_SOFTWARE_XLSX"] = str(options.software_xlsx)
    if options.output_dir:
        env["RENEWALS_OUTPUT_DIR"] = str(options.output_dir)
    if options.status_dir:
        env["RENEWALS_STATUS_DIR"] = str(options.status_dir)
    if options.config_path:
        env["RENEWALS_CONFIG"] = str(options.config_path)
    if options.disable_ai:
        env["DISABLE_OPENAI"] = "1"

    cfg = load_config(env, None)
    service = RenewalReportService.from_config(cfg, narrative_client=narrative_client, sink=sink)
    return service.render_report(
        options.customer,
        include_narrative=not options.disable_ai or narrative_client is not None,
        on_date=options.on_date,
    )


__all__ = ["ReportOptions", "generate_report"]
