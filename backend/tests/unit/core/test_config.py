import pytest
from pydantic import ValidationError

from streamsite.core.config import Settings


def make_settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


def test_defaults():
    settings = make_settings()

    assert settings.API_V1_STR == "/api"
    assert settings.SYNC_POLL_INTERVAL_SECONDS == 30.0
    assert settings.STATUS_CACHE_TTL_SECONDS == 5
    assert settings.MUX_WEBHOOK_TOLERANCE_SECONDS == 300


def test_comma_separated_cors_origins():
    settings = make_settings(CORS_ORIGINS="http://localhost:3000, https://example.org")

    assert [str(origin).rstrip("/") for origin in settings.CORS_ORIGINS] == [
        "http://localhost:3000",
        "https://example.org",
    ]


@pytest.mark.parametrize("interval", [5, 31, 0])
def test_poll_interval_outside_range_is_rejected(interval):
    with pytest.raises(ValidationError):
        make_settings(SYNC_POLL_INTERVAL_SECONDS=interval)


def test_poll_interval_inside_range_is_accepted():
    assert make_settings(SYNC_POLL_INTERVAL_SECONDS=10).SYNC_POLL_INTERVAL_SECONDS == 10


def test_non_positive_http_timeout_is_rejected():
    with pytest.raises(ValidationError):
        make_settings(HTTP_TIMEOUT_SECONDS=0)


def test_collaborator_configuration_flags():
    settings = make_settings(
        MUX_TOKEN_ID="id",
        MUX_TOKEN_SECRET="secret",
        COSMIC_BUCKET_SLUG="bucket",
        COSMIC_READ_KEY=None,
    )

    assert settings.mux_configured is True
    assert settings.cosmic_configured is False
