# backend/oversight/services/reports/__init__.py
from __future__ import annotations

"""
Reporting utilities for scan jobs.

This package provides:
- Markdown report generation for a scan job
- PDF export built on top of the markdown report

High-level helpers exposed:

- build_scan_markdown(job) -> str
- export_scan_pdf(job) -> bytes
"""

from .markdown_builder import build_scan_markdown  # noqa: F401
from .pdf_exporter import export_markdown_to_pdf, export_scan_pdf  # noqa: F401
