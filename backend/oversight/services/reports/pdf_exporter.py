# backend/oversight/services/reports/pdf_exporter.py
from __future__ import annotations

"""
PDF export for scan reports.

This module builds a PDF from a markdown string in a very simple way:
it renders the markdown as plain text, preserving headings, bullet
points, and tables as literal lines.

The PDF is rendered into memory so the API can stream it back without
touching the filesystem.
"""

import io
from pathlib import Path
from typing import BinaryIO, Union

from reportlab.lib.pagesizes import A4
from reportlab.pdfgen import canvas

from oversight.schemas import ScanJob
from oversight.services.reports.markdown_builder import build_scan_markdown

PageSize = tuple[float, float]


def export_markdown_to_pdf(
    markdown: str,
    output: Union[str, Path, BinaryIO],
    *,
    page_size: PageSize = A4,
    margin_left: int = 40,
    margin_top: int = 40,
    line_height: int = 14,
) -> None:
    """
    Render a markdown string into a simple text-based PDF.

    ``output`` is a path or a writable binary file object.
    """
    if isinstance(output, (str, Path)):
        output = Path(output)
        output.parent.mkdir(parents=True, exist_ok=True)
        output = str(output)

    c = canvas.Canvas(output, pagesize=page_size)
    width, height = page_size

    x = margin_left
    y = height - margin_top

    for line in markdown.splitlines():
        if y <= margin_top:
            c.showPage()
            y = height - margin_top
        c.drawString(x, y, line[:2000])  # guard against extremely long lines
        y -= line_height

    c.showPage()
    c.save()


def export_scan_pdf(job: ScanJob) -> bytes:
    """Generate the markdown report for ``job`` and return it as PDF bytes."""
    buffer = io.BytesIO()
    export_markdown_to_pdf(build_scan_markdown(job), buffer)
    return buffer.getvalue()
