from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from .config import ReportConfig, load_config
from .dataset import WorkbookLoadError
from .render import RenderError
from .reporting import export_customer_summary, make_summary_text
from .service import RenewalReportService, ReportResult

logger = logging.getLogger(__name__)


def run(
    config: ReportConfig,
    customer: str = "",
    summary_xlsx: Optional[Path] = None,
    service: Optional[RenewalReportService] = None,
) -> int:
    try:
        service = service or RenewalReportService.from_config(config)
    except (ValueError, OSError) as exc:
        logger.error("Error: %s", exc)
        return 2

    try:
        result: ReportResult = service.render_report(customer)
    except WorkbookLoadError as exc:
        logger.error("Error: unable to load renewal data: %s", exc)
        return 2
    except RenderError as exc:
        logger.error("Error: report could not be rendered: %s", exc)
        return 1
    except OSError as exc:
        logger.error("Error: report could not be saved: %s", exc)
        return 1

    logger.info(make_summary_text(result.snapshot).rstrip())
    if result.narrative is not None and not result.narrative.ok:
        logger.warning("AI narrative omitted: %s", result.narrative.message)

    if summary_xlsx:
        overall = service.snapshot("")
        try:
            export_customer_summary(overall.customers, summary_xlsx)
        except OSError as exc:
            logger.error("Error: customer summary could not be written: %s", exc)
            return 1

    logger.info("Report: %s", result.location)
    return 0


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Generate a branded Cisco renewal analysis PDF")
    parser.add_argument("--hardware", help="Hardware renewals workbook (path or URL)")
    parser.add_argument("--software", help="Software renewals workbook (path or URL)")
    parser.add_argument("--customer", default="", help="Install site end customer to report on (default: all)")
    parser.add_argument("--config", help="Optional JSON/YAML configuration file")
    parser.add_argument("--output-dir", help="Directory for generated reports")
    parser.add_argument("--status-dir", help="Directory holding persisted status labels")
    parser.add_argument("--disable-ai", action="store_true", help="Skip the AI narrative section")
    parser.add_argument("--summary-xlsx", help="Also write the per-customer summary workbook to this file or directory")
    parser.add_argument("-v", "--verbose", action="store_true", help="Increase logging verbosity")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    try:
        config = load_config(os.environ, args)
    except (OSError, ValueError) as exc:
        logging.basicConfig(level=logging.INFO, format="%(message)s")
        logger.error("Error: invalid configuration: %s", exc)
        return 2
    log_level = logging.DEBUG if config.verbose else logging.INFO
    logging.basicConfig(level=log_level, format="%(message)s")
    summary = Path(args.summary_xlsx).expanduser() if args.summary_xlsx else None
    return run(config, customer=args.customer, summary_xlsx=summary)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
