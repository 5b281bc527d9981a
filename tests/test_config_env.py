import pytest

import config


@pytest.mark.parametrize(
    "raw, expected",
    [(None, 10.0), ("15", 15.0), ("abc", 10.0), ("0.1", 1.0), ("120", 60.0)],
)
def test_http_timeout_is_clamped(monkeypatch, raw, expected):
    if raw is None:
        monkeypatch.delenv("TRADEPILOT_HTTP_TIMEOUT", raising=False)
    else:
        monkeypatch.setenv("TRADEPILOT_HTTP_TIMEOUT", raw)
    assert config.get_http_timeout() == expected


def test_api_base_url_strips_comment_and_slash(monkeypatch):
    monkeypatch.setenv("TRADEPILOT_API_URL", "https://api.bot.example/api/  # prod tunnel")
    assert config.get_api_base_url() == "https://api.bot.example/api"


def test_api_base_url_default(monkeypatch):
    monkeypatch.delenv("TRADEPILOT_API_URL", raising=False)
    assert config.get_api_base_url() == config.DEFAULT_API_BASE_URL


def test_env_float_without_bounds(monkeypatch):
    monkeypatch.setenv("SOME_INTERVAL", "-2.5")
    assert config.env_float("SOME_INTERVAL", 1.0) == -2.5
    monkeypatch.delenv("SOME_INTERVAL")
    assert config.env_float("SOME_INTERVAL", 1.0) == 1.0


@pytest.mark.parametrize("raw, expected", [("true", True), ("1", True), ("off", False), ("", False)])
def test_show_raw_config(monkeypatch, raw, expected):
    monkeypatch.setenv("TRADEPILOT_SHOW_RAW_CONFIG", raw)
    assert config.show_raw_config() is expected
