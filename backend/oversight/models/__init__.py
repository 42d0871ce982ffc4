# backend/oversight/models/__init__.py
from __future__ import annotations

"""
Core enums and ORM rows for the scan orchestrator.

This module depends on:
- oversight.db.session.Base for the declarative base

It is used by:
- oversight.schemas (status/tool enums)
- oversight.services.jobs.store (SqlJobStore persistence)

Models:
- ScanJobRow: one serialized ScanJob with its expiry
- ScanIndexEntry: recency index, newest entry has the highest position
"""

import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, String, Text

from oversight.db.session import Base


class ScanStatus(str, enum.Enum):
    PENDING = "pending"
    CLONING = "cloning"
    SCANNING = "scanning"
    COMPLETED = "completed"
    FAILED = "failed"


class ScanTool(str, enum.Enum):
    TRIVY = "trivy"
    GITLEAKS = "gitleaks"
    SEMGREP = "semgrep"


SUPPORTED_TOOLS: tuple[str, ...] = tuple(t.value for t in ScanTool)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScanJobRow(Base):
    __tablename__ = "scan_jobs"

    id = Column(String, primary_key=True)
    repo_name = Column(String, nullable=False, index=True)
    status = Column(String, nullable=False)

    # Full ScanJob JSON (camelCase, same shape as the Redis backend)
    payload = Column(Text, nullable=False)

    updated_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False, index=True)


class ScanIndexEntry(Base):
    __tablename__ = "scan_index"

    position = Column(Integer, primary_key=True, autoincrement=True)
    scan_id = Column(String, nullable=False)
