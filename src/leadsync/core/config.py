"""Configuration models for core domain components.

Pydantic-based configuration classes that consolidate settings for the
reconciler, the push channel and the HTTP adapter, so composition roots and
tests inject them explicitly instead of reading the environment.
"""

from typing import Optional
from pydantic import BaseModel, Field


class ReconcilerConfig(BaseModel):
    """Configuration for JobReconciler behavior.

    Attributes:
        poll_interval: Seconds between status fetches while a job is in flight
        poll_timeout: Maximum seconds to track a job before giving up (None = no timeout)
        label: Human-readable job label used in synthesized messages
    """

    poll_interval: float = Field(
        default=2.0,
        gt=0,
        description="Interval in seconds between job status requests for in-flight jobs"
    )

    poll_timeout: Optional[float] = Field(
        default=None,
        gt=0,
        description="Maximum time in seconds to wait for a terminal job state (None for no timeout)"
    )

    label: str = Field(
        default="Job",
        min_length=1,
        description="Label used in fallback messages, e.g. 'Scraping completed successfully'"
    )

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    @classmethod
    def from_app_settings(cls, settings, **overrides) -> "ReconcilerConfig":
        """Factory method to construct config from a LeadSyncSettings instance."""
        values = dict(
            poll_interval=settings.LEADSYNC_JOB_POLL_INTERVAL,
            poll_timeout=settings.LEADSYNC_JOB_POLL_TIMEOUT,
        )
        values.update(overrides)
        return cls(**values)


class PushChannelConfig(BaseModel):
    """Configuration for the push invalidation channel.

    Attributes:
        url: Origin of the Socket.IO endpoint
        transports: Transport preference order handed to the transport adapter
        reconnection_attempts: Retries after a failed or lost connection before giving up
        reconnection_delay: First backoff delay in seconds
        reconnection_delay_max: Upper bound of the backoff delay in seconds
    """

    url: str = Field(default="http://localhost:3000")

    transports: tuple[str, ...] = Field(default=("websocket", "polling"))

    reconnection_attempts: int = Field(
        default=5,
        ge=0,
        le=50,
        description="Reconnection attempts after the first failed connect or a lost connection"
    )

    reconnection_delay: float = Field(
        default=1.0,
        gt=0,
        description="Base wait time in seconds for exponential backoff between reconnects"
    )

    reconnection_delay_max: float = Field(
        default=5.0,
        gt=0,
        description="Maximum wait time in seconds between reconnect attempts"
    )

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    @classmethod
    def from_app_settings(cls, settings) -> "PushChannelConfig":
        return cls(
            url=settings.LEADSYNC_WS_URL,
            transports=tuple(settings.LEADSYNC_WS_TRANSPORTS),
            reconnection_attempts=settings.LEADSYNC_WS_RECONNECTION_ATTEMPTS,
            reconnection_delay=settings.LEADSYNC_WS_RECONNECTION_DELAY,
            reconnection_delay_max=settings.LEADSYNC_WS_RECONNECTION_DELAY_MAX,
        )


class HttpClientConfig(BaseModel):
    """Configuration for the REST boundary client."""

    base_url: str = Field(default="http://localhost:3000")

    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Total timeout in seconds for a single request"
    )

    refresh_path: str = Field(
        default="/api/auth/refresh",
        description="Endpoint called once to renew an expired access token"
    )

    model_config = {
        "frozen": True,
        "extra": "forbid",
    }

    @classmethod
    def from_app_settings(cls, settings) -> "HttpClientConfig":
        return cls(
            base_url=settings.LEADSYNC_API_URL,
            timeout=settings.LEADSYNC_HTTP_TIMEOUT,
        )
