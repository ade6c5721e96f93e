"""
Signaling configuration.

Defaults live in module constants; every value can be overridden through a
SIGNALING_* environment variable or by the command line in index.py.
"""

import os
from dataclasses import dataclass, field
from typing import Tuple


# Session idle timeout in seconds (force a non-terminal session to failed)
SESSION_TIMEOUT_SECONDS = 300  # 5 minutes
# How long a failed session is kept before removal
FAILED_GRACE_SECONDS = 30
# How long an offer waits for a relayed answer
ANSWER_TIMEOUT_SECONDS = 30
# How often to check for stale sessions
CLEANUP_INTERVAL_SECONDS = 60  # 1 minute

# Client-side candidate polling
POLL_INTERVAL_SECONDS = 1.0
MAX_EMPTY_POLLS = 5

# Outbound signaling calls
REQUEST_TIMEOUT_SECONDS = 10.0
CANDIDATE_RETRIES = 3
RETRY_BACKOFF_SECONDS = 0.5

DEFAULT_ICE_SERVERS = ("stun:stun.l.google.com:19302",)

DELIVERY_MODES = ("poll", "push")


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    return float(value) if value else default


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    return int(value) if value else default


def _env_tuple(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    value = os.getenv(name)
    if not value:
        return default
    return tuple(item.strip() for item in value.split(",") if item.strip())


@dataclass(frozen=True)
class CoordinatorSettings:
    """Server-side session lifecycle settings."""

    idle_timeout: float = SESSION_TIMEOUT_SECONDS
    failed_grace: float = FAILED_GRACE_SECONDS
    cleanup_interval: float = CLEANUP_INTERVAL_SECONDS
    answer_timeout: float = ANSWER_TIMEOUT_SECONDS
    delivery_mode: str = "poll"

    def __post_init__(self):
        if self.delivery_mode not in DELIVERY_MODES:
            raise ValueError(
                f"delivery_mode must be one of {DELIVERY_MODES}, got {self.delivery_mode!r}"
            )

    @classmethod
    def from_env(cls) -> "CoordinatorSettings":
        return cls(
            idle_timeout=_env_float("SIGNALING_IDLE_TIMEOUT", SESSION_TIMEOUT_SECONDS),
            failed_grace=_env_float("SIGNALING_FAILED_GRACE", FAILED_GRACE_SECONDS),
            cleanup_interval=_env_float("SIGNALING_CLEANUP_INTERVAL", CLEANUP_INTERVAL_SECONDS),
            answer_timeout=_env_float("SIGNALING_ANSWER_TIMEOUT", ANSWER_TIMEOUT_SECONDS),
            delivery_mode=os.getenv("SIGNALING_DELIVERY_MODE", "poll"),
        )


@dataclass(frozen=True)
class ClientSettings:
    """Client connection manager settings."""

    delivery_mode: str = "poll"
    poll_interval: float = POLL_INTERVAL_SECONDS
    max_empty_polls: int = MAX_EMPTY_POLLS
    request_timeout: float = REQUEST_TIMEOUT_SECONDS
    candidate_retries: int = CANDIDATE_RETRIES
    retry_backoff: float = RETRY_BACKOFF_SECONDS
    ice_servers: Tuple[str, ...] = field(default=DEFAULT_ICE_SERVERS)

    def __post_init__(self):
        if self.delivery_mode not in DELIVERY_MODES:
            raise ValueError(
                f"delivery_mode must be one of {DELIVERY_MODES}, got {self.delivery_mode!r}"
            )
        if self.max_empty_polls < 1:
            raise ValueError("max_empty_polls must be at least 1")

    @classmethod
    def from_env(cls) -> "ClientSettings":
        return cls(
            delivery_mode=os.getenv("SIGNALING_DELIVERY_MODE", "poll"),
            poll_interval=_env_float("SIGNALING_POLL_INTERVAL", POLL_INTERVAL_SECONDS),
            max_empty_polls=_env_int("SIGNALING_MAX_EMPTY_POLLS", MAX_EMPTY_POLLS),
            request_timeout=_env_float("SIGNALING_REQUEST_TIMEOUT", REQUEST_TIMEOUT_SECONDS),
            candidate_retries=_env_int("SIGNALING_CANDIDATE_RETRIES", CANDIDATE_RETRIES),
            retry_backoff=_env_float("SIGNALING_RETRY_BACKOFF", RETRY_BACKOFF_SECONDS),
            ice_servers=_env_tuple("SIGNALING_ICE_SERVERS", DEFAULT_ICE_SERVERS),
        )
