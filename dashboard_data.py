"""Data shaping for the dashboard views.

These helpers turn the loosely structured JSON returned by the bot API into
frames and display strings.  They are kept out of ``dashboard.py`` so they can
be tested without a Streamlit runtime.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable, Mapping, Optional

import numpy as np
import pandas as pd

from config_paths import MISSING

TRADE_COLUMNS = [
    "symbol",
    "type",
    "strategy",
    "status",
    "size",
    "entryPrice",
    "currentPrice",
    "pl",
]
STATUS_FILTERS = ["All", "Active", "Closed", "Pending"]
ALL = "All"

HOT_WIN_RATE = 70.0
COLD_WIN_RATE = 45.0


def numcol(df: pd.DataFrame, name: str, default=np.nan) -> pd.Series:
    """Return numeric Series for column `name` (or an aligned NaN Series if missing)."""

    if name in df.columns:
        col = df[name]
        if isinstance(col, pd.DataFrame):  # duplicate headers
            col = col.iloc[:, 0]
        s = pd.to_numeric(col, errors="coerce")
    else:
        s = pd.Series(default, index=df.index, dtype="float64")
    s = s.where(np.isfinite(s))  # turn inf/-inf into NaN
    return s


def _extract_records(payload: Any, *keys: str) -> list[dict]:
    """Return a list of dict records from a list payload or a wrapped one."""

    if isinstance(payload, list):
        return [row for row in payload if isinstance(row, dict)]
    if isinstance(payload, Mapping):
        for key in keys:
            nested = payload.get(key)
            if isinstance(nested, list):
                return [row for row in nested if isinstance(row, dict)]
    return []


def trades_frame(payload: Any) -> pd.DataFrame:
    """Normalise a ``/trades`` payload into a frame with the standard columns."""

    df = pd.DataFrame(_extract_records(payload, "trades", "data"))
    for column in TRADE_COLUMNS:
        if column not in df.columns:
            df[column] = np.nan
    for column in ("symbol", "type", "strategy", "status"):
        df[column] = df[column].fillna("").astype(str)
    for column in ("size", "entryPrice", "currentPrice", "pl"):
        df[column] = numcol(df, column)
    return df


def filter_trades(
    df: pd.DataFrame,
    search: str = "",
    status: str = ALL,
    strategy: str = ALL,
) -> pd.DataFrame:
    """Apply the trades page filters.

    ``search`` is a case-insensitive substring of the symbol; ``status`` and
    ``strategy`` must match exactly unless they are ``"All"``.
    """

    if df.empty:
        return df
    mask = pd.Series(True, index=df.index)
    term = (search or "").strip().lower()
    if term:
        mask &= df["symbol"].astype(str).str.lower().str.contains(term, regex=False)
    if status and status != ALL:
        mask &= df["status"] == status
    if strategy and strategy != ALL:
        mask &= df["strategy"] == strategy
    return df[mask]


def strategy_options(df: pd.DataFrame) -> list[str]:
    if df.empty or "strategy" not in df.columns:
        return [ALL]
    names = sorted({name for name in df["strategy"].astype(str) if name})
    return [ALL] + names


def format_pl(val) -> str:
    if val is None or pd.isna(val):
        return "$0.00"
    try:
        amount = float(val)
    except (TypeError, ValueError):
        return str(val)
    sign = "+" if amount >= 0 else "-"
    return f"{sign}${abs(amount):,.2f}"


def _fmt_money(val) -> str:
    if val is None or pd.isna(val):
        return "$0.00"
    try:
        return f"${float(val):,.2f}"
    except (TypeError, ValueError):
        return str(val)


def _fmt_growth(val) -> str:
    try:
        growth = float(val)
    except (TypeError, ValueError):
        return "0.0%"
    if not growth or not np.isfinite(growth):
        return "0.0%"
    sign = "+" if growth > 0 else ""
    return f"{sign}{growth}%"


def account_metrics(info: Any) -> list[tuple[str, str, str]]:
    """Return ``(label, value, delta)`` rows for the account summary cards."""

    info = info if isinstance(info, Mapping) else {}
    return [
        ("Balance", _fmt_money(info.get("balance")), f"{_fmt_growth(info.get('weekly_growth'))} this week"),
        ("Equity", _fmt_money(info.get("equity")), f"Floating P/L {format_pl(info.get('profit'))}"),
        ("Session P/L", format_pl(info.get("session_pl")), _fmt_growth(info.get("session_growth"))),
        ("Win Rate", f"{win_rate(info):.0f}%", ""),
    ]


def bot_status(info: Any) -> str:
    if isinstance(info, Mapping):
        status = str(info.get("bot_status") or "").strip().upper()
        if status:
            return status
    return "UNKNOWN"


def equity_frame(payload: Any) -> pd.DataFrame:
    """Return an equity curve frame indexed by ``time`` with an ``equity`` column."""

    df = pd.DataFrame(_extract_records(payload, "equity_curve", "data"))
    if df.empty or "equity" not in df.columns:
        return pd.DataFrame({"equity": pd.Series(dtype="float64")})
    df["equity"] = numcol(df, "equity")
    if "time" in df.columns:
        df = df.set_index("time")
    return df[["equity"]].dropna()


def signals_frame(payload: Any) -> pd.DataFrame:
    df = pd.DataFrame(_extract_records(payload, "signals", "data"))
    columns = [c for c in ("symbol", "type", "strength", "entry", "sl", "tp") if c in df.columns]
    return df[columns] if columns else df


def win_rate(strategy: Mapping[str, Any]) -> float:
    for key in ("winRate", "win_rate"):
        value = strategy.get(key)
        if value is not None:
            try:
                return float(value)
            except (TypeError, ValueError):
                return 0.0
    return 0.0


def strategy_badge(strategy: Mapping[str, Any]) -> str:
    """Classify a strategy for its status badge."""

    if not strategy.get("enabled"):
        return "OFF"
    rate = win_rate(strategy)
    if rate >= HOT_WIN_RATE:
        return "HOT"
    if rate <= COLD_WIN_RATE:
        return "COLD"
    return "ACTIVE"


def strategy_records(payload: Any) -> list[dict]:
    return _extract_records(payload, "strategies", "data")


def format_last_saved(saved_at: Optional[datetime]) -> str:
    if saved_at is None:
        return "Never"
    return saved_at.astimezone().strftime("%I:%M %p")


def format_config_value(value: Any) -> str:
    """Render a configuration leaf for the pending-changes table."""

    if value is MISSING:
        return "(unset)"
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value)
    return str(value)


def changes_frame(changes: Iterable[tuple[str, Any, Any]]) -> pd.DataFrame:
    rows = [
        {"field": path, "saved": format_config_value(old), "edited": format_config_value(new)}
        for path, old, new in changes
    ]
    return pd.DataFrame(rows, columns=["field", "saved", "edited"])
