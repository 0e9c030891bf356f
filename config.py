"""
Configuration management for the conjunction search client.
Loads settings from environment variables with sensible defaults.
"""

import os
from typing import Optional

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


def _optional_float(name: str) -> Optional[float]:
    value = os.getenv(name, "").strip()
    return float(value) if value else None


class Settings:
    """Application settings loaded from environment."""

    # AuroraX API
    AURORAX_API_URL: str = os.getenv("AURORAX_API_URL", "https://api.aurorax.space")
    AURORAX_API_KEY: str = os.getenv("AURORAX_API_KEY", "")
    # Timeout for each individual request, not for the whole search
    AURORAX_API_TIMEOUT: float = float(os.getenv("AURORAX_API_TIMEOUT", "10"))

    # Polling
    POLL_INTERVAL: float = float(os.getenv("POLL_INTERVAL", "1.0"))
    # Unset means wait until the backend reports the job complete
    POLL_TIMEOUT: Optional[float] = _optional_float("POLL_TIMEOUT")

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Application
    APP_NAME: str = "Conjunction Search"
    APP_VERSION: str = "1.0.0"

    @classmethod
    def validate(cls) -> list[str]:
        """Validate settings. Returns list of missing/invalid settings."""
        issues = []

        if not cls.AURORAX_API_URL.startswith(("http://", "https://")):
            issues.append(f"AURORAX_API_URL must be an http(s) URL, got {cls.AURORAX_API_URL!r}")

        if cls.AURORAX_API_TIMEOUT <= 0:
            issues.append("AURORAX_API_TIMEOUT must be positive")

        if cls.POLL_INTERVAL <= 0:
            issues.append("POLL_INTERVAL must be positive")

        if cls.POLL_TIMEOUT is not None and cls.POLL_TIMEOUT <= 0:
            issues.append("POLL_TIMEOUT must be positive when set")

        return issues


settings = Settings()
