"""
Exchange Gateway - Configuration.

============================================================
PURPOSE
============================================================
Connection, timeout and rate limit settings for the
Binance Spot gateway.

CRITICAL CONSTRAINTS:
- Every request carries an explicit timeout
- No retries at the gateway level
- Credentials come from the environment only

============================================================
"""

import os
from dataclasses import dataclass, field
from typing import List


DEFAULT_REST_URL = "https://api.binance.com/api/v3"


# ============================================================
# RATE LIMIT CONFIGURATION
# ============================================================

@dataclass
class RateLimitConfig:
    """
    Rate limit configuration.

    Respects exchange rate limits to avoid bans.
    """

    weight_per_minute: int = 1200
    """Maximum API weight per minute before the gateway waits."""

    window_seconds: float = 60.0
    """Length of the weight accounting window."""


# ============================================================
# TIMEOUT CONFIGURATION
# ============================================================

@dataclass
class TimeoutConfig:
    """
    Timeout configuration.

    A timed-out call is treated as a network failure for that
    symbol or stage.
    """

    connection_timeout_seconds: float = 5.0
    """Connection timeout."""

    read_timeout_seconds: float = 15.0
    """Total timeout for a request, including the response body."""


# ============================================================
# EXCHANGE CONFIGURATION
# ============================================================

@dataclass
class ExchangeConfig:
    """
    Exchange-specific configuration.
    """

    rest_url: str = DEFAULT_REST_URL
    """REST API base URL, including the /api/v3 prefix."""

    api_key: str = field(default="", repr=False)
    """API key sent in the X-MBX-APIKEY header."""

    api_secret: str = field(default="", repr=False)
    """Secret used to sign requests."""

    timeout: TimeoutConfig = field(default_factory=TimeoutConfig)
    """Timeout configuration."""

    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    """Rate limit configuration."""

    @classmethod
    def from_env(cls) -> "ExchangeConfig":
        """Load configuration from environment variables."""
        return cls(
            rest_url=os.getenv("BINANCE_API_URL", DEFAULT_REST_URL).rstrip("/"),
            api_key=os.getenv("API_KEY", ""),
            api_secret=os.getenv("API_SECRET", ""),
            timeout=TimeoutConfig(
                connection_timeout_seconds=float(os.getenv("CONNECT_TIMEOUT_SECONDS", "5")),
                read_timeout_seconds=float(os.getenv("REQUEST_TIMEOUT_SECONDS", "15")),
            ),
            rate_limit=RateLimitConfig(
                weight_per_minute=int(os.getenv("WEIGHT_PER_MINUTE", "1200")),
            ),
        )

    def validate(self, require_credentials: bool = True) -> List[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not self.rest_url.startswith(("http://", "https://")):
            errors.append(f"BINANCE_API_URL must be an http(s) URL, got {self.rest_url!r}")

        if require_credentials:
            if not self.api_key:
                errors.append("API_KEY is required")
            if not self.api_secret:
                errors.append("API_SECRET is required")

        if self.timeout.connection_timeout_seconds <= 0:
            errors.append("CONNECT_TIMEOUT_SECONDS must be positive")
        if self.timeout.read_timeout_seconds <= 0:
            errors.append("REQUEST_TIMEOUT_SECONDS must be positive")
        if self.rate_limit.weight_per_minute < 1:
            errors.append("WEIGHT_PER_MINUTE must be at least 1")

        return errors
