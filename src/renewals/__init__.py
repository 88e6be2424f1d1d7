"""Renewal opportunity aggregation and branded report rendering."""

from .aggregation import SnapshotCache, build_snapshot
from .config import ReportConfig, load_config
from .dataset import RenewalDataset, WorkbookLoadError
from .narrative import NarrativeTransportError
from .render import RenderError
from .service import RenewalReportService, ReportResult

__all__ = [
    "SnapshotCache",
    "build_snapshot",
    "ReportConfig",
    "load_config",
    "RenewalDataset",
    "WorkbookLoadError",
    "NarrativeTransportError",
    "RenderError",
    "RenewalReportService",
    "ReportResult",
]
