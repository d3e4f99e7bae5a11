"""
Purpose: Centralized configuration helpers for the VCMS package.
Description: Loads environment variables and provides small helpers for defaults.
Key Functions/Classes: `VcmsConfig`, `get_extraction_api_key`, `get_extraction_endpoint`, `get_default_model`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigError


# AIDEV-NOTE: Load env from .env if present to ease local dev.
load_dotenv()


def get_extraction_api_key() -> Optional[str]:
    # Support both a project-specific and the common OpenAI env var name
    return os.getenv("VCMS_API_KEY") or os.getenv("OPENAI_API_KEY")


def get_extraction_endpoint() -> str:
    return os.getenv("VCMS_API_BASE", "https://api.openai.com/v1").rstrip("/")


def get_default_model() -> str:
    """Get the default vision model from environment variables."""
    return os.getenv("VCMS_MODEL", "gpt-4o")


def _env_number(name: str, default: str, cast):
    raw = os.getenv(name, default)
    try:
        value = cast(raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from e
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {raw!r}")
    return value


def get_extraction_timeout_seconds() -> float:
    return _env_number("VCMS_EXTRACTION_TIMEOUT_SECONDS", "60", float)


def get_extraction_max_retries() -> int:
    return _env_number("VCMS_EXTRACTION_MAX_RETRIES", "2", int)


def get_store_path() -> str:
    return os.getenv("VCMS_STORE_PATH", "vcms_store.json")


@dataclass
class VcmsConfig:
    model: Optional[str] = None  # Will be set from environment if None
    temperature: float = 0.0
    max_tokens: int = 1024
    timeout_seconds: Optional[float] = None
    max_retries: Optional[int] = None
    backoff_seconds: float = 0.8
    concurrency: int = 4
    request_timeout_seconds: Optional[float] = None  # Per HTTP attempt; derived from timeout_seconds if None

    def __post_init__(self) -> None:
        if self.model is None:
            self.model = get_default_model()
        if self.timeout_seconds is None:
            self.timeout_seconds = get_extraction_timeout_seconds()
        if self.max_retries is None:
            self.max_retries = get_extraction_max_retries()
        if self.request_timeout_seconds is None:
            self.request_timeout_seconds = self._split_timeout()
        if self.concurrency < 1:
            raise ConfigError("concurrency must be at least 1")

    def _split_timeout(self) -> float:
        # AIDEV-NOTE: timeout_seconds bounds the whole extraction, so each attempt gets a share
        # that leaves room for every retry and its backoff sleep.
        attempts = self.max_retries + 1
        backoff_total = self.backoff_seconds * (2 ** self.max_retries - 1)
        budget = self.timeout_seconds - backoff_total
        if budget <= 0:
            budget = self.timeout_seconds
        return budget / attempts
