"""Document assembly and PDF rendering for renewal reports."""

from .assembler import ReportData, assemble_report
from .document import RenderableDocument, column_alignments
from .markdown import StyledRun, parse_inline, parse_markdown_to_blocks
from .pdf import RenderError, render_pdf

__all__ = [
    "ReportData",
    "assemble_report",
    "RenderableDocument",
    "column_alignments",
    "StyledRun",
    "parse_inline",
    "parse_markdown_to_blocks",
    "RenderError",
    "render_pdf",
]
