"""Credential lookup and the per-request scan context.

The token store itself (encryption, the settings page) lives outside this
service. Scans only need two values, resolved once per request or worker
task and passed along explicitly in a ScanContext:

  GITHUB_TOKEN       clone credential for private repositories
  SLACK_WEBHOOK_URL  destination for scan alerts
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol

from oversight.core.config import Settings

GITHUB_TOKEN = "GITHUB_TOKEN"
SLACK_WEBHOOK_URL = "SLACK_WEBHOOK_URL"

_SETTINGS_FIELDS = {
    GITHUB_TOKEN: "github_token",
    SLACK_WEBHOOK_URL: "slack_webhook_url",
}


class CredentialStore(Protocol):
    def get_token(self, name: str) -> Optional[str]:
        """Return the current value of *name*, or None when not configured."""
        ...


class EnvCredentialStore:
    """Credential store backed by explicit overrides, settings and the environment.

    Lookup order: ``overrides`` (e.g. values saved from the dashboard),
    then the matching Settings field, then ``os.environ``. Blank values
    count as not configured.
    """

    def __init__(
        self,
        settings: Settings,
        overrides: Optional[Mapping[str, str]] = None,
    ) -> None:
        self._settings = settings
        self._overrides = dict(overrides or {})

    def get_token(self, name: str) -> Optional[str]:
        value = self._overrides.get(name)
        if value:
            return value

        field_name = _SETTINGS_FIELDS.get(name)
        if field_name:
            value = getattr(self._settings, field_name, "")
            if value:
                return value

        return os.environ.get(name) or None


@dataclass(frozen=True)
class ScanContext:
    """Credentials and ownership info needed by one scan."""

    github_owner: str
    github_token: Optional[str]
    slack_webhook_url: Optional[str]

    @classmethod
    def from_store(cls, store: CredentialStore, settings: Settings) -> "ScanContext":
        return cls(
            github_owner=settings.github_owner,
            github_token=store.get_token(GITHUB_TOKEN),
            slack_webhook_url=store.get_token(SLACK_WEBHOOK_URL),
        )

    def repo_full_name(self, repo_name: str) -> str:
        if "/" in repo_name or not self.github_owner:
            return repo_name
        return f"{self.github_owner}/{repo_name}"
