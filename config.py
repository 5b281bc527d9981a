"""Central configuration loader for environment variables."""
from __future__ import annotations

from dotenv import load_dotenv

# Load environment variables once when this module is imported.
load_dotenv()

import os


def _clean_path(value: str | None) -> str:
    """Return ``value`` without inline comments or surrounding whitespace."""

    if not value:
        return ""
    return value.split("#", 1)[0].strip()


def _truthy(x: str | None) -> bool:
    return str(x or "").strip().lower() in {"1", "true", "yes", "on"}


# ---------------------------------------------------------------------------
# Environment helpers
# ---------------------------------------------------------------------------
def env_float(
    name: str,
    default: float,
    *,
    minimum: float | None = None,
    maximum: float | None = None,
) -> float:
    """Return environment variable ``name`` parsed as ``float`` with fallback.

    Invalid values fall back to ``default``; valid values are clamped into
    ``[minimum, maximum]`` when bounds are supplied.
    """

    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return default
    if minimum is not None:
        value = max(minimum, value)
    if maximum is not None:
        value = min(maximum, value)
    return value


# ---------------------------------------------------------------------------
# Backend API
# ---------------------------------------------------------------------------
DEFAULT_API_BASE_URL = "http://localhost:8000/api"


def get_api_base_url() -> str:
    """Return the trading backend base URL without a trailing slash."""

    configured = _clean_path(os.getenv("TRADEPILOT_API_URL"))
    return (configured or DEFAULT_API_BASE_URL).rstrip("/")


def get_http_timeout() -> float:
    """Return the per-request HTTP timeout in seconds."""

    return env_float("TRADEPILOT_HTTP_TIMEOUT", 10.0, minimum=1.0, maximum=60.0)


def show_raw_config() -> bool:
    """Whether the settings page also renders the raw configuration JSON."""

    return _truthy(os.getenv("TRADEPILOT_SHOW_RAW_CONFIG", "false"))


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------
LOG_FILE = _clean_path(os.getenv("TRADEPILOT_LOG_FILE")) or "logs/tradepilot_dashboard.log"
METRICS_PATH = _clean_path(os.getenv("METRICS_PATH")) or "logs/metrics.csv"

# ---------------------------------------------------------------------------
# Dashboard polling intervals (seconds)
# ---------------------------------------------------------------------------
ACCOUNT_REFRESH_SECONDS = env_float("ACCOUNT_REFRESH_SECONDS", 5.0, minimum=1.0)
TRADES_REFRESH_SECONDS = env_float("TRADES_REFRESH_SECONDS", 5.0, minimum=1.0)
SIGNALS_REFRESH_SECONDS = env_float("SIGNALS_REFRESH_SECONDS", 2.0, minimum=1.0)
PERFORMANCE_REFRESH_SECONDS = env_float("PERFORMANCE_REFRESH_SECONDS", 10.0, minimum=1.0)
EQUITY_REFRESH_SECONDS = env_float("EQUITY_REFRESH_SECONDS", 60.0, minimum=1.0)
EQUITY_CURVE_POINTS = int(env_float("EQUITY_CURVE_POINTS", 50.0, minimum=1.0))
