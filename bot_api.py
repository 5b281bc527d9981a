"""HTTP client for the trading bot's REST backend.

Every dashboard view talks to the bot through :class:`BotApiClient`.  The
configuration editor only needs :meth:`BotApiClient.load_configuration` and
:meth:`BotApiClient.save_configuration`; the remaining endpoints feed the
overview, trades and strategies views.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

import requests

import config
from log_utils import setup_logger

logger = setup_logger(__name__)


class BotApiError(RuntimeError):
    """Raised when the backend cannot be reached or answers with an error."""

    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class LoadError(BotApiError):
    """Raised when the configuration tree cannot be fetched."""


class SaveError(BotApiError):
    """Raised when the configuration tree cannot be stored."""


def extract_error_payload(response: Any) -> Any:
    """Best-effort extraction of an error payload from ``response``."""

    try:
        return response.json()
    except Exception:  # pragma: no cover - depends on the server body
        return getattr(response, "text", "")


def _describe_error(payload: Any) -> str:
    if isinstance(payload, Mapping):
        for key in ("detail", "error", "message"):
            value = payload.get(key)
            if value:
                return str(value)
    if isinstance(payload, str):
        return payload.strip()[:200]
    return ""


class BotApiClient:
    """Thin wrapper around a :class:`requests.Session` bound to the bot API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        *,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = (base_url or config.get_api_base_url()).rstrip("/")
        self.timeout = timeout or config.get_http_timeout()
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    def _url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    def _request(
        self,
        method: str,
        path: str,
        *,
        error_cls: type[BotApiError] = BotApiError,
        **kwargs: Any,
    ) -> Any:
        url = self._url(path)
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise error_cls(f"Network error calling {path}: {exc}") from exc

        if response.status_code >= 400:
            detail = _describe_error(extract_error_payload(response))
            logger.warning("%s %s returned HTTP %s %s", method, url, response.status_code, detail)
            message = f"HTTP {response.status_code} from {path}"
            if detail:
                message = f"{message}: {detail}"
            raise error_cls(message, status_code=response.status_code)

        try:
            return response.json()
        except ValueError as exc:
            logger.warning("%s %s returned a non-JSON body", method, url)
            raise error_cls(f"Invalid JSON from {path}", status_code=response.status_code) from exc

    # ------------------------------------------------------------------
    # Monitoring endpoints
    # ------------------------------------------------------------------
    def fetch_account_info(self) -> Any:
        return self._request("GET", "/account_info")

    def fetch_trades(self) -> Any:
        return self._request("GET", "/trades")

    def fetch_signals(self) -> Any:
        return self._request("GET", "/signals")

    def fetch_strategy_performance(self) -> Any:
        return self._request("GET", "/strategy_performance")

    def fetch_strategies(self) -> Any:
        return self._request("GET", "/strategies")

    def fetch_strategy_details(self) -> Any:
        return self._request("GET", "/strategies/details")

    def fetch_equity_curve(self, limit: int = 50) -> Any:
        return self._request("GET", "/equity_curve", params={"limit": int(limit)})

    # ------------------------------------------------------------------
    # Control endpoints
    # ------------------------------------------------------------------
    def toggle_strategy(self, strategy_id: str, enabled: bool) -> Any:
        logger.info("Setting strategy %s enabled=%s", strategy_id, enabled)
        return self._request(
            "POST", f"/strategies/{strategy_id}/toggle", json={"enabled": bool(enabled)}
        )

    def start_bot(self) -> Any:
        logger.info("Requesting bot start")
        return self._request("POST", "/bot/start")

    def stop_bot(self) -> Any:
        logger.info("Requesting bot stop")
        return self._request("POST", "/bot/stop")

    # ------------------------------------------------------------------
    # Configuration store
    # ------------------------------------------------------------------
    def load_configuration(self) -> Dict[str, Any]:
        """Return the full configuration tree held by the bot."""

        payload = self._request("GET", "/config", error_cls=LoadError)
        if not isinstance(payload, dict):
            raise LoadError(
                f"Configuration payload must be a JSON object, got {type(payload).__name__}"
            )
        return payload

    def save_configuration(self, tree: Mapping[str, Any]) -> Dict[str, Any]:
        """Replace the bot configuration with ``tree`` and return the server reply."""

        payload = self._request("POST", "/config/update", json=dict(tree), error_cls=SaveError)
        if not isinstance(payload, dict):
            return {}
        return payload


__all__ = [
    "BotApiClient",
    "BotApiError",
    "LoadError",
    "SaveError",
    "extract_error_payload",
]
