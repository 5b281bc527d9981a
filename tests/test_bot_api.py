import pytest
import requests

import bot_api
from bot_api import BotApiClient, BotApiError, LoadError, SaveError


class FakeResponse:
    def __init__(self, status_code=200, payload=None, *, text=""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


class FakeSession:
    def __init__(self, responses=None, *, error=None):
        self.headers = {}
        self.responses = list(responses or [])
        self.error = error
        self.calls = []

    def request(self, method, url, timeout=None, **kwargs):
        self.calls.append({"method": method, "url": url, "timeout": timeout, **kwargs})
        if self.error is not None:
            raise self.error
        return self.responses.pop(0)


def _client(session):
    return BotApiClient("http://bot.local/api/", timeout=3.0, session=session)


def test_client_defaults_come_from_environment(monkeypatch):
    monkeypatch.setenv("TRADEPILOT_API_URL", "https://bot.example/api/")
    monkeypatch.setenv("TRADEPILOT_HTTP_TIMEOUT", "500")
    client = BotApiClient(session=FakeSession())
    assert client.base_url == "https://bot.example/api"
    assert client.timeout == 60.0
    assert client.session.headers["Content-Type"] == "application/json"


def test_load_configuration_returns_tree():
    session = FakeSession([FakeResponse(200, {"symbols": ["BTCUSDm"]})])
    tree = _client(session).load_configuration()

    assert tree == {"symbols": ["BTCUSDm"]}
    assert session.calls[0]["method"] == "GET"
    assert session.calls[0]["url"] == "http://bot.local/api/config"
    assert session.calls[0]["timeout"] == 3.0


def test_load_configuration_network_error_raises_load_error():
    session = FakeSession(error=requests.ConnectionError("refused"))
    with pytest.raises(LoadError):
        _client(session).load_configuration()


@pytest.mark.parametrize(
    "response",
    [
        FakeResponse(503, {"detail": "bot offline"}),
        FakeResponse(200, ValueError("no json"), text="<html>"),
        FakeResponse(200, ["not", "an", "object"]),
    ],
)
def test_load_configuration_failures(response):
    with pytest.raises(LoadError) as excinfo:
        _client(FakeSession([response])).load_configuration()
    assert isinstance(excinfo.value, BotApiError)


def test_http_error_keeps_status_and_detail():
    session = FakeSession([FakeResponse(503, {"detail": "bot offline"})])
    with pytest.raises(LoadError) as excinfo:
        _client(session).load_configuration()
    assert excinfo.value.status_code == 503
    assert "bot offline" in str(excinfo.value)


def test_save_configuration_posts_whole_tree():
    session = FakeSession([FakeResponse(200, {"message": "saved"})])
    tree = {"risk_management": {"method": "atr"}, "symbols": ["A"]}

    reply = _client(session).save_configuration(tree)

    assert reply == {"message": "saved"}
    call = session.calls[0]
    assert call["method"] == "POST"
    assert call["url"] == "http://bot.local/api/config/update"
    assert call["json"] == tree


def test_save_configuration_non_object_reply_is_empty():
    session = FakeSession([FakeResponse(200, "ok")])
    assert _client(session).save_configuration({}) == {}


@pytest.mark.parametrize(
    "session",
    [
        FakeSession(error=requests.Timeout("slow")),
        FakeSession([FakeResponse(500, {"error": "disk full"})]),
    ],
)
def test_save_configuration_failures_raise_save_error(session):
    with pytest.raises(SaveError):
        _client(session).save_configuration({"a": 1})


def test_toggle_strategy_and_bot_controls():
    session = FakeSession([FakeResponse(200, {"ok": True}) for _ in range(3)])
    client = _client(session)

    client.toggle_strategy("SMC", False)
    client.start_bot()
    client.stop_bot()

    assert session.calls[0]["url"] == "http://bot.local/api/strategies/SMC/toggle"
    assert session.calls[0]["json"] == {"enabled": False}
    assert [c["url"].rsplit("/", 2)[-2:] for c in session.calls[1:]] == [["bot", "start"], ["bot", "stop"]]
    assert all(c["method"] == "POST" for c in session.calls)


def test_monitoring_endpoints_raise_generic_error():
    session = FakeSession(error=requests.ConnectionError("down"))
    client = _client(session)
    with pytest.raises(BotApiError) as excinfo:
        client.fetch_trades()
    assert not isinstance(excinfo.value, (LoadError, SaveError))


def test_equity_curve_passes_limit():
    session = FakeSession([FakeResponse(200, [{"time": "10:00", "equity": 1000}])])
    assert _client(session).fetch_equity_curve(25) == [{"time": "10:00", "equity": 1000}]
    assert session.calls[0]["params"] == {"limit": 25}
    assert session.calls[0]["url"].endswith("/equity_curve")


def test_extract_error_payload_falls_back_to_text():
    assert bot_api.extract_error_payload(FakeResponse(500, {"detail": "x"})) == {"detail": "x"}
