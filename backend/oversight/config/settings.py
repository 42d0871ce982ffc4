from __future__ import annotations

"""backend/oversight/config/settings.py

Application configuration using environment-driven settings.

This module centralizes:
- job store backend selection (Redis or SQL) and connection URLs
- Celery / Redis configuration for out-of-process scan execution
- CORS configuration
- workspace root and git clone parameters
- per-tool binaries and timeouts (Trivy, Gitleaks, Semgrep)
- job retention (TTL, recency index bounds)
"""
from functools import lru_cache
from typing import List

from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
  app_name: str = "oversight-scanner"
  environment: str = "development"
  log_level: str = "INFO"

  # Job store: "redis" (default, as deployed) or "sql"
  job_store_backend: str = "redis"
  redis_url: str = "redis://localhost:6379/0"
  database_url: str = "sqlite:///./oversight_scans.db"

  # Celery / Redis
  celery_broker_url: str = "redis://localhost:6379/1"
  celery_result_backend: str = "redis://localhost:6379/2"

  # Scan execution: "thread" (in-process pool), "celery" or "inline"
  scan_execution_mode: str = "thread"
  max_concurrent_scans: int = 4

  # CORS
  allowed_origins: List[AnyHttpUrl] = [
      "http://localhost:3000",
      "http://127.0.0.1:3000",
  ]

  # On-disk workspace root for clones; None means the system temp dir
  workspace_root: str | None = None

  # Git
  git_binary: str = "git"
  github_host: str = "github.com"
  github_owner: str = "SnickerSec"
  clone_timeout_seconds: int = 120

  # Credentials (resolved through the credential provider)
  github_credential_key: str = "GITHUB_TOKEN"
  github_token: str | None = None
  slack_webhook_url: str | None = None

  # Per-tool binaries and runtime bounds (seconds)
  trivy_binary: str = "trivy"
  trivy_timeout_seconds: int = 300

  gitleaks_binary: str = "gitleaks"
  gitleaks_timeout_seconds: int = 300

  semgrep_binary: str = "semgrep"
  semgrep_timeout_seconds: int = 600
  semgrep_configs: List[str] = ["p/default", "p/security-audit"]

  # Job retention
  job_ttl_seconds: int = 3600 * 24
  recent_index_limit: int = 100
  admission_window: int = 20
  recent_list_limit: int = 20

  # Analytics
  statsig_server_secret: str | None = None

  model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Return a cached Settings instance."""
  return Settings()
