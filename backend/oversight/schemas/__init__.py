# backend/oversight/schemas/__init__.py
from __future__ import annotations

"""
Pydantic schemas for scan jobs, tool results and API payloads.

This module is the wire contract layer. Every model serializes with
camelCase aliases (``repoName``, ``toolErrors``, ...) because the same JSON
document is stored in the job store and returned to dashboard clients.

It depends on:
- oversight.models.ScanStatus / ScanTool

It is used by:
- the job store backends (serialization)
- the orchestrator and tool adapters (result construction)
- API routes
"""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from oversight.models import ScanStatus, ScanTool


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------- Trivy ----------


class TrivyVulnerability(CamelModel):
    id: str
    pkg_name: str = ""
    installed_version: str = ""
    fixed_version: Optional[str] = None
    severity: str
    title: str
    description: str = ""
    primary_url: Optional[str] = None


class TrivySummary(CamelModel):
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0
    unknown: int = 0


class TrivyResult(CamelModel):
    tool: Literal["trivy"] = "trivy"
    vulnerabilities: List[TrivyVulnerability] = Field(default_factory=list)
    summary: TrivySummary = Field(default_factory=TrivySummary)
    scan_target: str = ""


# ---------- Gitleaks ----------


class GitleaksSecret(CamelModel):
    rule_id: str
    description: str = ""
    file: str = ""
    start_line: Optional[int] = None
    end_line: Optional[int] = None
    commit: Optional[str] = None
    author: Optional[str] = None
    date: Optional[str] = None
    match: str


class GitleaksSummary(CamelModel):
    total: int = 0
    by_rule: Dict[str, int] = Field(default_factory=dict)


class GitleaksResult(CamelModel):
    tool: Literal["gitleaks"] = "gitleaks"
    secrets: List[GitleaksSecret] = Field(default_factory=list)
    summary: GitleaksSummary = Field(default_factory=GitleaksSummary)


# ---------- Semgrep ----------


class SemgrepFinding(CamelModel):
    rule_id: str
    message: str = ""
    severity: str
    path: str = ""
    start_line: Optional[int] = None
    end_line: Optional[int] = None
    start_col: Optional[int] = None
    end_col: Optional[int] = None
    category: str = "other"
    cwe: List[str] = Field(default_factory=list)
    owasp: List[str] = Field(default_factory=list)


class SemgrepSummary(CamelModel):
    error: int = 0
    warning: int = 0
    info: int = 0
    by_category: Dict[str, int] = Field(default_factory=dict)


class SemgrepDebug(CamelModel):
    """How the Semgrep run went; explains an empty or short findings list."""

    exit_code: Optional[int] = None
    stderr_length: int = 0
    stderr_preview: str = ""
    raw_output_length: int = 0
    raw_output_preview: str = ""
    # Semgrep's own "errors" array (rules or files it could not process)
    rule_errors: List[str] = Field(default_factory=list)


class SemgrepResult(CamelModel):
    tool: Literal["semgrep"] = "semgrep"
    findings: List[SemgrepFinding] = Field(default_factory=list)
    summary: SemgrepSummary = Field(default_factory=SemgrepSummary)
    debug: Optional[SemgrepDebug] = None


ToolResult = Union[TrivyResult, GitleaksResult, SemgrepResult]


# ---------- Scan job ----------


class ScanResults(CamelModel):
    """Per-tool results plus the errors of tools that could not run.

    A tool appears either under its own key or in ``tool_errors``, never both.
    """

    trivy: Optional[TrivyResult] = None
    gitleaks: Optional[GitleaksResult] = None
    semgrep: Optional[SemgrepResult] = None
    tool_errors: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def results_and_errors_are_exclusive(self) -> "ScanResults":
        for tool in self.tool_errors:
            if getattr(self, tool, None) is not None:
                raise ValueError(f"{tool} has both a result and an error")
        return self

    def record_result(self, result: ToolResult) -> None:
        self.tool_errors.pop(result.tool, None)
        setattr(self, result.tool, result)

    def record_error(self, tool: str, message: str) -> None:
        if tool in {t.value for t in ScanTool}:
            setattr(self, tool, None)
        self.tool_errors[tool] = message

    def result_for(self, tool: str) -> Optional[ToolResult]:
        return getattr(self, tool, None)

    def has_outcome(self, tool: str) -> bool:
        return self.result_for(tool) is not None or tool in self.tool_errors


class ScanJob(CamelModel):
    id: str
    repo_name: str
    repo_full_name: str
    status: ScanStatus = ScanStatus.PENDING
    tools: List[ScanTool]
    started_at: datetime
    completed_at: Optional[datetime] = None
    current_tool: Optional[ScanTool] = None
    progress: Optional[int] = None
    results: Optional[ScanResults] = None
    error: Optional[str] = None

    @classmethod
    def from_json(cls, data: str | bytes) -> "ScanJob":
        return cls.model_validate_json(data)

    @property
    def is_active(self) -> bool:
        return self.status in (
            ScanStatus.PENDING,
            ScanStatus.CLONING,
            ScanStatus.SCANNING,
        )

    @property
    def is_terminal(self) -> bool:
        return self.status in (ScanStatus.COMPLETED, ScanStatus.FAILED)


# ---------- API payloads ----------


class ScanTriggerRequest(CamelModel):
    """Body of ``POST /api/security/scan``.

    Fields are loosely typed on purpose: type problems are reported as
    validation errors (400) by the admission controller, not as 422s.
    """

    repo_name: Optional[Any] = None
    tools: Optional[Any] = None


class ScanAccepted(CamelModel):
    scan_id: str
    status: ScanStatus = ScanStatus.PENDING


class ScanConflict(CamelModel):
    error: str
    scan_id: str


class ErrorResponse(CamelModel):
    error: str


class ScanList(CamelModel):
    scans: List[ScanJob]


class ToolAvailability(CamelModel):
    available: bool
    version: Optional[str] = None


class ToolsStatus(CamelModel):
    all_available: bool
    trivy: ToolAvailability
    gitleaks: ToolAvailability
    semgrep: ToolAvailability


class ToolSelfTest(CamelModel):
    success: bool
    findings: Optional[int] = None
    error: Optional[str] = None
    debug: Optional[SemgrepDebug] = None


class SelfTestReport(CamelModel):
    """Outcome of running every scanner against a small planted sample."""

    results: Dict[str, ToolSelfTest]
