# backend/oversight/services/scanner/workspace.py
from __future__ import annotations

"""
Workspace management for scans.

Each scan gets its own freshly created temporary directory:

    <workspace_root or $TMPDIR>/oversight-scan-<scan_id>-XXXXXX/
      repo/   - shallow clone of the target repository

The directory only exists for the lifetime of the ``acquire_workspace``
context manager. It is removed on every exit path (success, clone
failure, tool failure, unexpected exception). A hard process crash can
still leak it; nothing sweeps stale directories.

The GitHub token is embedded in the clone URL and never written to logs,
job records or exception messages.
"""

import logging
import shutil
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator

from oversight.config import Settings, get_settings
from oversight.errors import CloneFailed, WorkspaceCorrupted
from oversight.services.diagnostics.error_classifier import classify_clone_failure
from oversight.services.tools.base import run_command

logger = logging.getLogger(__name__)

REDACTED = "***"


@dataclass
class Workspace:
    """On-disk layout for a single scan's workspace."""

    root: Path
    repo_dir: Path

    def verify(self) -> None:
        """Raise WorkspaceCorrupted if the clone is no longer usable."""
        if not self.repo_dir.is_dir():
            raise WorkspaceCorrupted(f"Workspace {self.repo_dir} is missing")

    def path_relative_to_repo(self, path: Path) -> str:
        """
        Return a POSIX-style path relative to the cloned repository.

        Paths outside the clone fall back to their name.
        """
        try:
            rel = path.relative_to(self.repo_dir)
        except ValueError:
            rel = Path(path.name)
        return rel.as_posix()


def build_clone_url(repo_full_name: str, credential: str, host: str) -> str:
    return f"https://{credential}@{host}/{repo_full_name}.git"


def redact(text: str | None, credential: str) -> str:
    """Strip the credential from ``text``."""
    if not text:
        return ""
    if credential:
        text = text.replace(credential, REDACTED)
    return text


def _remove_tree(root: Path, scan_id: str) -> None:
    try:
        shutil.rmtree(root)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Scan %s: failed to remove %s during cleanup: %s", scan_id, root, exc)


def clone_repository(
    repo_full_name: str,
    credential: str,
    destination: Path,
    *,
    settings: Settings,
) -> None:
    """Shallow-clone ``repo_full_name`` into ``destination``.

    Raises:
        CloneFailed: non-zero exit, timeout or missing git binary. The
            message is redacted and ``reason`` carries the classified cause.
    """
    url = build_clone_url(repo_full_name, credential, settings.github_host)
    result = run_command(
        [settings.git_binary, "clone", "--depth", "1", "--quiet", url, str(destination)],
        timeout=settings.clone_timeout_seconds,
        env={"GIT_TERMINAL_PROMPT": "0"},
    )
    if result.success:
        return

    reason = classify_clone_failure(result)
    detail = redact(result.error or result.output, credential).strip()
    if reason == "clone-timeout":
        detail = f"timed out after {settings.clone_timeout_seconds}s"
    message = f"Failed to clone {repo_full_name}"
    if detail:
        message = f"{message}: {detail.splitlines()[-1]}"
    raise CloneFailed(message, reason=reason)


@contextmanager
def acquire_workspace(
    repo_full_name: str,
    credential: str,
    scan_id: str,
    *,
    settings: Settings | None = None,
) -> Iterator[Workspace]:
    """
    Create a scratch directory, clone the repository into it and yield it.

    On clone failure the directory is removed before CloneFailed propagates.
    On any other exit the directory is removed when the block ends;
    removal problems are logged, never raised.
    """
    settings = settings or get_settings()
    base_dir = settings.workspace_root
    if base_dir:
        Path(base_dir).mkdir(parents=True, exist_ok=True)

    root = Path(tempfile.mkdtemp(prefix=f"oversight-scan-{scan_id}-", dir=base_dir))
    workspace = Workspace(root=root, repo_dir=root / "repo")
    logger.info("Scan %s: cloning %s into %s", scan_id, repo_full_name, root)

    try:
        clone_repository(
            repo_full_name, credential, workspace.repo_dir, settings=settings
        )
        yield workspace
    finally:
        _remove_tree(root, scan_id)
        logger.debug("Scan %s: workspace %s removed", scan_id, root)
