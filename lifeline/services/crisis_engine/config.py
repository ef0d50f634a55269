"""Crisis engine runtime configuration."""
import os
from dataclasses import dataclass
from typing import Optional


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


@dataclass(frozen=True)
class CrisisEngineConfig:
    """Timeouts, quotas and collaborator endpoints for the assessment engine."""

    # Shared wait budget for persistence and notification calls
    collaborator_timeout_seconds: float = 3.0
    dispatch_workers: int = 16

    # Matches the crisis:assess endpoint quota
    rate_limit_window_seconds: int = 60
    rate_limit_max_requests: int = 10

    resources_path: Optional[str] = None

    # "memory" or "postgres"
    persistence_backend: str = "memory"

    kinesis_stream_name: str = "lifeline-crisis-events"
    publishing_enabled: bool = True
    sms_enabled: bool = True
    event_bus_name: str = "lifeline-emergency"
    region: str = "us-east-1"

    # botocore client limits; a stalled AWS call must fail inside the wait budget
    aws_connect_timeout_seconds: float = 2.0
    aws_read_timeout_seconds: float = 2.0
    aws_max_attempts: int = 2

    @classmethod
    def from_env(cls) -> "CrisisEngineConfig":
        """Create config from environment variables.

        Environment variables:
            CRISIS_COLLABORATOR_TIMEOUT_SECONDS (default 3.0)
            CRISIS_DISPATCH_WORKERS (default 16)
            CRISIS_RATE_LIMIT_WINDOW_SECONDS (default 60)
            CRISIS_RATE_LIMIT_MAX_REQUESTS (default 10)
            CRISIS_RESOURCES_PATH: JSON resource catalog override
            CRISIS_PERSISTENCE_BACKEND: memory | postgres
            KINESIS_STREAM_NAME, CRISIS_PUBLISHING_ENABLED,
            CRISIS_SMS_ENABLED, EVENT_BUS_NAME, AWS_REGION
            CRISIS_AWS_CONNECT_TIMEOUT_SECONDS (default 2.0)
            CRISIS_AWS_READ_TIMEOUT_SECONDS (default 2.0)
            CRISIS_AWS_MAX_ATTEMPTS (default 2)
        """
        return cls(
            collaborator_timeout_seconds=float(
                os.getenv("CRISIS_COLLABORATOR_TIMEOUT_SECONDS", "3.0")
            ),
            dispatch_workers=int(os.getenv("CRISIS_DISPATCH_WORKERS", "16")),
            rate_limit_window_seconds=int(os.getenv("CRISIS_RATE_LIMIT_WINDOW_SECONDS", "60")),
            rate_limit_max_requests=int(os.getenv("CRISIS_RATE_LIMIT_MAX_REQUESTS", "10")),
            resources_path=os.getenv("CRISIS_RESOURCES_PATH") or None,
            persistence_backend=os.getenv("CRISIS_PERSISTENCE_BACKEND", "memory").lower(),
            kinesis_stream_name=os.getenv("KINESIS_STREAM_NAME", "lifeline-crisis-events"),
            publishing_enabled=_env_flag("CRISIS_PUBLISHING_ENABLED", "true"),
            sms_enabled=_env_flag("CRISIS_SMS_ENABLED", "true"),
            event_bus_name=os.getenv("EVENT_BUS_NAME", "lifeline-emergency"),
            region=os.getenv("AWS_REGION", "us-east-1"),
            aws_connect_timeout_seconds=float(
                os.getenv("CRISIS_AWS_CONNECT_TIMEOUT_SECONDS", "2.0")
            ),
            aws_read_timeout_seconds=float(os.getenv("CRISIS_AWS_READ_TIMEOUT_SECONDS", "2.0")),
            aws_max_attempts=int(os.getenv("CRISIS_AWS_MAX_ATTEMPTS", "2")),
        )
