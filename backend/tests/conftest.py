"""Shared fixtures: settings, a SQLite-backed job store, fake git/tool binaries."""

import stat
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from oversight.config import Settings
from oversight.db.session import build_engine, build_session_factory
from oversight.errors import CloneFailed, ToolUnavailable
from oversight.schemas import GitleaksResult, SemgrepResult, TrivyResult, TrivySummary
from oversight.services.jobs.store import SqlJobStore
from oversight.services.scanner.workspace import Workspace

TEST_TOKEN = "ghp_testtoken1234567890"


class FakeClock:
    """Manually advanced UTC clock for TTL tests."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def write_executable(path: Path, body: str) -> Path:
    path.write_text("#!/bin/sh\n" + body)
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        job_store_backend="sql",
        database_url=f"sqlite:///{tmp_path / 'jobs.db'}",
        scan_execution_mode="inline",
        workspace_root=str(tmp_path / "workspaces"),
        github_token=TEST_TOKEN,
        slack_webhook_url=None,
        statsig_server_secret=None,
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(tmp_path, clock) -> SqlJobStore:
    engine = build_engine(f"sqlite:///{tmp_path / 'store.db'}")
    return SqlJobStore(
        build_session_factory(engine),
        ttl_seconds=3600 * 24,
        index_limit=100,
        clock=clock,
    )


@pytest.fixture
def fake_git(tmp_path) -> Path:
    """A ``git`` stand-in: ``clone ... <url> <dest>`` creates <dest> with one file."""
    return write_executable(
        tmp_path / "fake-git",
        'for last; do :; done\n'
        'mkdir -p "$last"\n'
        'echo "print(1)" > "$last/app.py"\n'
        "exit 0\n",
    )


class StubRunner:
    """Tool runner returning a canned result or raising a canned error."""

    def __init__(self, name: str, result=None, error: Optional[Exception] = None):
        self.name = name
        self._result = result
        self._error = error
        self.targets: List[Path] = []

    def run(self, target: Path):
        self.targets.append(target)
        if self._error is not None:
            raise self._error
        return self._result


def stub_runners(**errors: Exception) -> Dict[str, StubRunner]:
    results = {
        "trivy": TrivyResult(summary=TrivySummary(high=1)),
        "gitleaks": GitleaksResult(),
        "semgrep": SemgrepResult(),
    }
    return {
        name: StubRunner(name, result=result, error=errors.get(name))
        for name, result in results.items()
    }


class FakeWorkspaceFactory:
    """Records acquisitions; creates a real directory so verify() passes."""

    def __init__(self, base: Path, clone_error: Optional[CloneFailed] = None):
        self.base = base
        self.clone_error = clone_error
        self.acquired: List[Path] = []
        self.released: List[Path] = []

    @contextmanager
    def __call__(self, repo_full_name, credential, scan_id, *, settings=None):
        root = self.base / scan_id
        repo_dir = root / "repo"
        if self.clone_error is not None:
            raise self.clone_error
        repo_dir.mkdir(parents=True)
        self.acquired.append(root)
        try:
            yield Workspace(root=root, repo_dir=repo_dir)
        finally:
            self.released.append(root)


@pytest.fixture
def workspace_factory(tmp_path) -> FakeWorkspaceFactory:
    return FakeWorkspaceFactory(tmp_path / "ws")


def tool_unavailable(tool: str, reason: str = "tool-not-found", detail: str = "") -> ToolUnavailable:
    return ToolUnavailable(tool, reason, detail or None)
