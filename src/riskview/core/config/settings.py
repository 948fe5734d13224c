"""Application settings loaded from environment variables."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """RiskView configuration."""

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    # Server
    # Default to loopback: there is no auth layer in front of the tools.
    riskview_host: str = "127.0.0.1"
    riskview_port: int = 8010
    riskview_log_level: str = "info"
    riskview_allow_insecure_bind: bool = False

    # Prediction API
    api_base_url: str = "http://localhost:8000"
    # Serve the dashboard from built-in sample predictions instead of the API
    use_mock_data: bool = False

    # Query behaviour
    history_page_size: int = 5
    recent_predictions_limit: int = 5
    # Patients whose history view is kept between calls
    history_view_cache_size: int = 128
    # Seconds before an in-flight fetch is reported as an error; 0 disables
    query_timeout_seconds: float = 10.0

    # Preferences
    preferences_db_path: str = "~/.riskview/preferences.db"
    # "true"/"false" stands in for the OS dark-mode signal; empty means none
    riskview_prefers_dark: str = ""

    @property
    def query_timeout(self) -> float | None:
        return self.query_timeout_seconds if self.query_timeout_seconds > 0 else None


def get_settings() -> Settings:
    """Create and return a Settings instance."""
    return Settings()
