# Logging adapter for application-wide logging
from leadsync.adapters.logging_adapter import LoggingAdapter

from pydantic import field_validator
from pydantic_settings import BaseSettings
from rich import print

from leadsync.core.interfaces.logging import LoggingPort

# using pydantic_settings to manage environment variables
# and do automatic type casting in a central place
class LeadSyncSettings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": True,
        "extra": "ignore"
    }
    LEADSYNC_LOG_LEVEL: str = "INFO"
    # REST boundary and push transport origins
    LEADSYNC_API_URL: str = "http://localhost:3000"
    LEADSYNC_WS_URL: str = "http://localhost:3000"
    LEADSYNC_HTTP_TIMEOUT: float = 30.0  # seconds
    LEADSYNC_JOB_POLL_INTERVAL: float = 2.0  # seconds
    # None disables the client-side time-to-wait for a job
    LEADSYNC_JOB_POLL_TIMEOUT: float | None = None
    LEADSYNC_WS_TRANSPORTS: list[str] = ["websocket", "polling"]
    LEADSYNC_WS_RECONNECTION_ATTEMPTS: int = 5
    LEADSYNC_WS_RECONNECTION_DELAY: float = 1.0
    LEADSYNC_WS_RECONNECTION_DELAY_MAX: float = 5.0

    def print_settings(self, logger: LoggingPort):
        """Prints the settings for debugging purposes"""
        logger.info("LeadSync Settings:")
        print(self)

    @field_validator("LEADSYNC_API_URL", "LEADSYNC_WS_URL", mode="before")
    def strip_trailing_slash(cls, value: str) -> str:
        """Endpoints are joined as '<origin>/api/...', so drop a trailing slash."""
        return value.rstrip("/") if isinstance(value, str) else value


app_settings = LeadSyncSettings()

logger = LoggingAdapter("leadsync", app_settings.LEADSYNC_LOG_LEVEL)

