from datetime import datetime, timezone

import pandas as pd
import pytest

import dashboard_data as dd
from config_paths import MISSING

TRADES = [
    {"symbol": "BTCUSDm", "type": "BUY", "strategy": "SMC", "status": "Active", "pl": 12.5},
    {"symbol": "XAUUSDm", "type": "SELL", "strategy": "Fibonacci", "status": "Closed", "pl": -3.2},
    {"symbol": "btcusdm", "type": "SELL", "strategy": "Fibonacci", "status": "Active", "pl": "n/a"},
    {"symbol": "EURUSDm", "type": "BUY", "strategy": "SMC", "status": "Pending"},
]


def test_trades_frame_normalises_columns():
    df = dd.trades_frame(TRADES)
    assert set(dd.TRADE_COLUMNS) <= set(df.columns)
    assert df["pl"].isna().sum() == 2
    assert dd.trades_frame({"trades": TRADES}).shape[0] == 4
    assert dd.trades_frame(None).empty


@pytest.mark.parametrize(
    "search, status, strategy, expected",
    [
        ("", "All", "All", ["BTCUSDm", "XAUUSDm", "btcusdm", "EURUSDm"]),
        ("", "Active", "All", ["BTCUSDm", "btcusdm"]),
        ("BTC", "All", "All", ["BTCUSDm", "btcusdm"]),
        ("btc", "Active", "Fibonacci", ["btcusdm"]),
        ("", "All", "SMC", ["BTCUSDm", "EURUSDm"]),
        ("gbp", "All", "All", []),
    ],
)
def test_filter_trades(search, status, strategy, expected):
    df = dd.trades_frame(TRADES)
    assert dd.filter_trades(df, search, status, strategy)["symbol"].tolist() == expected


def test_filter_trades_on_empty_frame():
    empty = dd.trades_frame([])
    assert dd.filter_trades(empty, "btc", "Active", "SMC").empty


def test_strategy_options():
    assert dd.strategy_options(dd.trades_frame(TRADES)) == ["All", "Fibonacci", "SMC"]
    assert dd.strategy_options(pd.DataFrame()) == ["All"]


@pytest.mark.parametrize(
    "value, expected",
    [(12.5, "+$12.50"), (-3.2, "-$3.20"), (0, "+$0.00"), (None, "$0.00"), (float("nan"), "$0.00"), (1234.5, "+$1,234.50")],
)
def test_format_pl(value, expected):
    assert dd.format_pl(value) == expected


@pytest.mark.parametrize(
    "strategy, badge",
    [
        ({"enabled": False, "winRate": 90}, "OFF"),
        ({"enabled": True, "winRate": 70}, "HOT"),
        ({"enabled": True, "winRate": 45}, "COLD"),
        ({"enabled": True, "winRate": 55}, "ACTIVE"),
        ({"enabled": True, "win_rate": "80"}, "HOT"),
        ({"enabled": True}, "COLD"),
    ],
)
def test_strategy_badge(strategy, badge):
    assert dd.strategy_badge(strategy) == badge


def test_account_metrics_handles_missing_payload():
    rows = dd.account_metrics(None)
    assert [label for label, _, _ in rows] == ["Balance", "Equity", "Session P/L", "Win Rate"]
    assert rows[0][1] == "$0.00"
    assert rows[0][2] == "0.0% this week"


def test_account_metrics_formats_values():
    rows = dict(
        (label, (value, delta))
        for label, value, delta in dd.account_metrics(
            {"balance": 1000, "weekly_growth": 2.5, "equity": 1010.4, "profit": 10.4, "session_pl": -4, "win_rate": 61}
        )
    )
    assert rows["Balance"] == ("$1,000.00", "+2.5% this week")
    assert rows["Equity"] == ("$1,010.40", "Floating P/L +$10.40")
    assert rows["Session P/L"][0] == "-$4.00"
    assert rows["Win Rate"][0] == "61%"


def test_bot_status():
    assert dd.bot_status({"bot_status": "running"}) == "RUNNING"
    assert dd.bot_status({}) == "UNKNOWN"
    assert dd.bot_status(None) == "UNKNOWN"


def test_equity_frame():
    df = dd.equity_frame([{"time": "10:00", "equity": 1000}, {"time": "11:00", "equity": "bad"}])
    assert df["equity"].tolist() == [1000]
    assert list(df.index) == ["10:00"]
    assert dd.equity_frame(None).empty


def test_format_last_saved():
    assert dd.format_last_saved(None) == "Never"
    stamp = datetime(2026, 10, 19, 14, 5, tzinfo=timezone.utc)
    assert dd.format_last_saved(stamp) == stamp.astimezone().strftime("%I:%M %p")


def test_changes_frame():
    df = dd.changes_frame([("symbols", ["A"], ["A", "B"]), ("portfolio_risk.enabled", MISSING, True)])
    assert df.to_dict("records") == [
        {"field": "symbols", "saved": "A", "edited": "A, B"},
        {"field": "portfolio_risk.enabled", "saved": "(unset)", "edited": "True"},
    ]
    assert list(dd.changes_frame([]).columns) == ["field", "saved", "edited"]
