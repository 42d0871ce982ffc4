"""Credential lookup for scan execution.

Tokens are resolved by key at the moment they are needed and handed
straight to the workspace manager; they are never written to the job
store, the Celery broker or the logs.
"""
from __future__ import annotations

import os
from typing import Optional, Protocol

from oversight.config import Settings, get_settings


class CredentialProvider(Protocol):
    def get_token(self, key: str) -> Optional[str]:
        ...


class SettingsCredentialProvider:
    """Looks up tokens in Settings first, then in the process environment."""

    _SETTINGS_FIELDS = {
        "GITHUB_TOKEN": "github_token",
        "SLACK_WEBHOOK_URL": "slack_webhook_url",
    }

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()

    def get_token(self, key: str) -> Optional[str]:
        field = self._SETTINGS_FIELDS.get(key)
        if field is not None:
            value = getattr(self._settings, field, None)
            if value:
                return value
        return os.environ.get(key) or None


def github_token(provider: CredentialProvider, settings: Settings | None = None) -> Optional[str]:
    settings = settings or get_settings()
    return provider.get_token(settings.github_credential_key)
