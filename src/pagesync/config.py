"""Configuration helpers for the pagesync list engine."""

from __future__ import annotations

from dataclasses import dataclass
import os
from typing import Final

from dotenv import load_dotenv

load_dotenv()

_DEFAULT_API_BASE_URL: Final[str] = "http://localhost:5099/api/__yao"
_DEFAULT_HTTP_TIMEOUT: Final[float] = 30.0
_DEFAULT_PAGE_SIZE: Final[int] = 10
_DEFAULT_POLL_INTERVAL_MS: Final[int] = 15_000
_DEFAULT_SORT: Final[str] = "created_at desc"
_DEFAULT_NAMESPACE: Final[str] = "pagesync"


def _env_optional_bool(name: str) -> bool | None:
    """Read an optional boolean environment variable."""

    raw = os.getenv(name)
    if raw is None:
        return None
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    msg = f"Environment variable {name} must be a boolean value (true/false)."
    raise ValueError(msg)


def _env_optional_int(name: str) -> int | None:
    """Read an optional integer environment variable."""

    raw = os.getenv(name)
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None
    try:
        return int(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be an integer") from exc


def _env_optional_float(name: str) -> float | None:
    raw = os.getenv(name)
    if raw is None:
        return None
    value = raw.strip()
    if not value:
        return None
    try:
        return float(value)
    except ValueError as exc:
        raise ValueError(f"Environment variable {name} must be a float") from exc


def _env_bool(name: str, default: bool) -> bool:
    value = _env_optional_bool(name)
    return default if value is None else value


def _env_int(name: str, default: int) -> int:
    value = _env_optional_int(name)
    return default if value is None else value


def _env_float(name: str, default: float) -> float:
    """Read a float environment variable with a fallback (preserving zero)."""

    value = _env_optional_float(name)
    return default if value is None else value


@dataclass(slots=True)
class Settings:
    """Runtime settings loaded from environment variables."""

    api_base_url: str = _DEFAULT_API_BASE_URL
    api_token: str | None = None
    http_timeout: float = _DEFAULT_HTTP_TIMEOUT
    page_size: int = _DEFAULT_PAGE_SIZE
    poll_interval_ms: int = _DEFAULT_POLL_INTERVAL_MS
    default_sort: str = _DEFAULT_SORT
    observability_metrics_enabled: bool = True
    observability_namespace: str = _DEFAULT_NAMESPACE
    observability_prometheus_enabled: bool = False

    def __post_init__(self) -> None:
        self.page_size = max(1, int(self.page_size))
        self.poll_interval_ms = max(1, int(self.poll_interval_ms))
        self.api_base_url = self.api_base_url.rstrip("/")
        if isinstance(self.api_token, str):
            self.api_token = self.api_token.strip() or None

    @classmethod
    def from_env(cls) -> "Settings":
        """Create settings by reading environment variables."""

        metrics_enabled = _env_optional_bool("OBSERVABILITY_METRICS_ENABLED")

        return cls(
            api_base_url=os.getenv("PAGESYNC_API_BASE_URL", _DEFAULT_API_BASE_URL),
            api_token=os.getenv("PAGESYNC_API_TOKEN"),
            http_timeout=_env_float("PAGESYNC_HTTP_TIMEOUT", _DEFAULT_HTTP_TIMEOUT),
            page_size=_env_int("PAGESYNC_PAGE_SIZE", _DEFAULT_PAGE_SIZE),
            poll_interval_ms=_env_int("PAGESYNC_POLL_INTERVAL_MS", _DEFAULT_POLL_INTERVAL_MS),
            default_sort=os.getenv("PAGESYNC_DEFAULT_SORT", _DEFAULT_SORT),
            observability_metrics_enabled=metrics_enabled if metrics_enabled is not None else True,
            observability_namespace=os.getenv("OBSERVABILITY_NAMESPACE", _DEFAULT_NAMESPACE),
            observability_prometheus_enabled=_env_bool("OBSERVABILITY_PROMETHEUS_ENABLED", False),
        )

    @property
    def poll_interval_seconds(self) -> float:
        """Return the status polling interval in seconds."""

        return self.poll_interval_ms / 1000.0


__all__ = ["Settings"]
