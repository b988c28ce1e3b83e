"""
SessionOrder Configuration

Runtime settings read from the environment.

    SO_ADVISORY_ENABLED   - "true" to attempt advisory enrichment (default false)
    SO_ADVISORY_ENDPOINT  - Advisory service base URL (https, or localhost)
    SO_ADVISORY_TIMEOUT   - Seconds per advisory call, 1..20 (default 15)
    SO_METHODOLOGY_PATH   - Optional methodology pack file to load
    SO_LOG_LEVEL          - Logging level for the sessionorder logger (default INFO)
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional
from urllib.parse import urlparse


DEFAULT_ADVISORY_TIMEOUT = 15.0
MIN_ADVISORY_TIMEOUT = 1.0
MAX_ADVISORY_TIMEOUT = 20.0

_TRUE_VALUES = {"1", "true", "yes", "on"}


def validate_endpoint(url: Optional[str]) -> bool:
    """An advisory endpoint must be https, or any scheme on localhost."""
    if not url or not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    if not parsed.scheme or not parsed.netloc:
        return False
    return parsed.scheme == "https" or parsed.hostname == "localhost"


def clamp_timeout(value: float) -> float:
    return max(MIN_ADVISORY_TIMEOUT, min(MAX_ADVISORY_TIMEOUT, value))


@dataclass(frozen=True)
class Settings:
    advisory_enabled: bool = False
    advisory_endpoint: Optional[str] = None
    advisory_timeout: float = DEFAULT_ADVISORY_TIMEOUT
    methodology_path: Optional[str] = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        object.__setattr__(self, "advisory_timeout", clamp_timeout(self.advisory_timeout))
        if self.advisory_endpoint:
            object.__setattr__(self, "advisory_endpoint", self.advisory_endpoint.rstrip("/"))

    @property
    def advisory_active(self) -> bool:
        """Advisory is attempted only when enabled and the endpoint is valid."""
        return self.advisory_enabled and validate_endpoint(self.advisory_endpoint)

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ

        raw_timeout = env.get("SO_ADVISORY_TIMEOUT", "")
        try:
            timeout = float(raw_timeout) if raw_timeout else DEFAULT_ADVISORY_TIMEOUT
        except ValueError:
            timeout = DEFAULT_ADVISORY_TIMEOUT

        return cls(
            advisory_enabled=env.get("SO_ADVISORY_ENABLED", "false").strip().lower() in _TRUE_VALUES,
            advisory_endpoint=env.get("SO_ADVISORY_ENDPOINT") or None,
            advisory_timeout=timeout,
            methodology_path=env.get("SO_METHODOLOGY_PATH") or None,
            log_level=env.get("SO_LOG_LEVEL", "INFO").upper(),
        )
