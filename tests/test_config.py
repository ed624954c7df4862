import pytest

from pagesync.config import Settings

_ENV_NAMES = (
    "PAGESYNC_API_BASE_URL",
    "PAGESYNC_API_TOKEN",
    "PAGESYNC_HTTP_TIMEOUT",
    "PAGESYNC_PAGE_SIZE",
    "PAGESYNC_POLL_INTERVAL_MS",
    "PAGESYNC_DEFAULT_SORT",
    "OBSERVABILITY_METRICS_ENABLED",
    "OBSERVABILITY_NAMESPACE",
    "OBSERVABILITY_PROMETHEUS_ENABLED",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _ENV_NAMES:
        monkeypatch.delenv(name, raising=False)


def test_settings_defaults() -> None:
    settings = Settings.from_env()

    assert settings.api_base_url == "http://localhost:5099/api/__yao"
    assert settings.api_token is None
    assert settings.page_size == 10
    assert settings.poll_interval_ms == 15_000
    assert settings.poll_interval_seconds == 15.0
    assert settings.default_sort == "created_at desc"
    assert settings.observability_metrics_enabled is True
    assert settings.observability_prometheus_enabled is False


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PAGESYNC_API_BASE_URL", "https://kb.example.com/api/")
    monkeypatch.setenv("PAGESYNC_API_TOKEN", "  ")
    monkeypatch.setenv("PAGESYNC_HTTP_TIMEOUT", "2.5")
    monkeypatch.setenv("PAGESYNC_PAGE_SIZE", "25")
    monkeypatch.setenv("PAGESYNC_POLL_INTERVAL_MS", "500")
    monkeypatch.setenv("OBSERVABILITY_METRICS_ENABLED", "off")
    monkeypatch.setenv("OBSERVABILITY_PROMETHEUS_ENABLED", "yes")

    settings = Settings.from_env()

    assert settings.api_base_url == "https://kb.example.com/api"
    assert settings.api_token is None
    assert settings.http_timeout == 2.5
    assert settings.page_size == 25
    assert settings.poll_interval_seconds == 0.5
    assert settings.observability_metrics_enabled is False
    assert settings.observability_prometheus_enabled is True


def test_settings_clamp_non_positive_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PAGESYNC_PAGE_SIZE", "0")
    monkeypatch.setenv("PAGESYNC_POLL_INTERVAL_MS", "-10")

    settings = Settings.from_env()

    assert settings.page_size == 1
    assert settings.poll_interval_ms == 1


def test_settings_reject_invalid_values(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("OBSERVABILITY_METRICS_ENABLED", "maybe")
    with pytest.raises(ValueError):
        Settings.from_env()

    monkeypatch.delenv("OBSERVABILITY_METRICS_ENABLED")
    monkeypatch.setenv("PAGESYNC_PAGE_SIZE", "ten")
    with pytest.raises(ValueError):
        Settings.from_env()
