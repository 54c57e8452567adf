import tempfile

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    The GitHub token and Slack webhook are read here as the fallback
    credential source; see ``oversight.core.credentials`` for lookup order.

    Timeouts are wall-clock seconds. Expiry is treated as the failure of
    that stage and never triggers a retry.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # Redis: job store, Celery broker and result backend.
    redis_url: str = "redis://localhost:6379/0"

    # GitHub: repositories are cloned from https://github.com/<owner>/<repo>.
    github_owner: str = ""
    github_token: str = ""

    # Slack incoming webhook for scan alerts. Blank disables notifications.
    slack_webhook_url: str = ""

    # Parent directory for per-job ephemeral workspaces.
    workspace_root: str = tempfile.gettempdir()

    # Stage timeouts
    clone_timeout_seconds: int = 120
    dependency_scan_timeout_seconds: int = 300
    secret_scan_timeout_seconds: int = 300
    static_analysis_timeout_seconds: int = 600
    store_timeout_seconds: float = 5.0

    # Scan records expire this long after their last write.
    job_ttl_seconds: int = 86400

    # CORS: comma-separated list of allowed origins.
    cors_origins: list[str] = ["*"]

    # Sentry: leave blank to disable error capture.
    sentry_dsn: str = ""

    # App
    debug: bool = True

    @field_validator("github_owner", mode="before")
    @classmethod
    def strip_owner(cls, v: str) -> str:
        return (v or "").strip().strip("/")

    @property
    def environment(self) -> str:
        """Environment tag reported with errors."""
        return "development" if self.debug else "production"

    @property
    def scan_time_budget_seconds(self) -> int:
        """Longest a scan can run if every stage hits its timeout."""
        return (
            self.clone_timeout_seconds
            + self.dependency_scan_timeout_seconds
            + self.secret_scan_timeout_seconds
            + self.static_analysis_timeout_seconds
        )


def get_settings() -> Settings:
    return Settings()
