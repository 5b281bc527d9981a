"""Field kinds, value coercion and the settings page field catalog.

Widgets hand back loosely typed values (strings from text boxes, floats
from number inputs).  The helpers here turn them into what the bot expects
inside its configuration tree.  Numeric parsing is deliberately lenient:
anything that does not parse becomes ``0`` instead of raising.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from config_paths import MISSING, read_path

TEXT = "text"
PASSWORD = "password"
NUMBER = "number"
INTEGER = "integer"
PERCENT = "percent"
BOOL = "bool"
SELECT = "select"
ARRAY = "array"
MEMBERS = "members"
TIME = "time"

FIELD_KINDS = frozenset({TEXT, PASSWORD, NUMBER, INTEGER, PERCENT, BOOL, SELECT, ARRAY, MEMBERS, TIME})

ALL_STRATEGIES: Tuple[str, ...] = ("SMC", "LiquiditySweep", "Fibonacci", "ADX", "MalaysianSnR")
TRADING_SESSIONS: Tuple[Tuple[str, str], ...] = (
    ("asian", "Asian"),
    ("london", "London"),
    ("ny", "New York"),
)
DEFAULT_SESSION_TIME = "00:00"

_FLOAT_PREFIX = re.compile(r"^\s*[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
_INT_PREFIX = re.compile(r"^\s*[+-]?\d+")

_TRUTHY_TOKENS = {"true", "1", "yes", "y", "on", "enabled", "active"}


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------
def _normalise_number(value: float) -> float | int:
    if not math.isfinite(value):
        return 0
    if float(value).is_integer():
        return int(value)
    return value


def coerce_number(raw: Any) -> float | int:
    """Parse ``raw`` as a number, returning ``0`` when it does not parse.

    Strings are read up to the first character that cannot be part of a
    number, so ``"1.5x"`` gives ``1.5``.  Integral results come back as
    ``int`` so they serialise the same way the bot wrote them.
    """

    if raw is None or raw is MISSING:
        return 0
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, (int, float)):
        return _normalise_number(float(raw)) if isinstance(raw, float) else raw
    match = _FLOAT_PREFIX.match(str(raw))
    if not match:
        return 0
    try:
        return _normalise_number(float(match.group(0)))
    except (OverflowError, ValueError):
        return 0


def coerce_int(raw: Any) -> int:
    """Parse the leading integer of ``raw``; anything else is ``0``."""

    if raw is None or raw is MISSING:
        return 0
    if isinstance(raw, bool):
        return int(raw)
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw) if math.isfinite(raw) else 0
    match = _INT_PREFIX.match(str(raw))
    return int(match.group(0)) if match else 0


def coerce_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        return raw.strip().lower() in _TRUTHY_TOKENS
    if isinstance(raw, (int, float)):
        return raw != 0
    return False


def percent_to_display(fraction: Any) -> float | int:
    """Return a stored fraction (``0.02``) as the percentage shown (``2``)."""

    return _normalise_number(round(float(coerce_number(fraction)) * 100, 10))


def percent_from_display(value: Any) -> float:
    """Return the fraction to store for a displayed percentage."""

    return coerce_number(value) / 100


def parse_array_text(raw: Any) -> List[str]:
    """Split comma separated text, trimming items and dropping empty ones."""

    if raw is None:
        return []
    return [part.strip() for part in str(raw).split(",") if part.strip()]


def format_array_text(values: Any) -> str:
    if values is None or values is MISSING:
        return ""
    if isinstance(values, (list, tuple)):
        return ", ".join(str(item) for item in values)
    return str(values)


def toggled_members(current: Any, member: str, present: bool) -> List[str]:
    """Return ``current`` with ``member`` added (once) or removed (everywhere)."""

    members = list(current) if isinstance(current, (list, tuple)) else []
    if present:
        if member not in members:
            members.append(member)
        return members
    return [item for item in members if item != member]


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class SettingField:
    label: str
    path: str
    kind: str = TEXT
    description: str = ""
    placeholder: str = ""
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    step: Optional[float] = None
    suffix: str = ""
    options: Tuple[str, ...] = ()
    default: Any = None

    def __post_init__(self) -> None:
        if self.kind not in FIELD_KINDS:
            raise ValueError(f"Unknown field kind {self.kind!r} for {self.path}")


@dataclass(frozen=True)
class SettingsSection:
    key: str
    title: str
    description: str
    fields: Tuple[SettingField, ...] = field(default_factory=tuple)
    expanded: bool = False


def _session_fields() -> Tuple[SettingField, ...]:
    fields: List[SettingField] = []
    for session, title in TRADING_SESSIONS:
        for bound in ("start", "end"):
            fields.append(
                SettingField(
                    f"{title} {bound.title()}",
                    f"trading_sessions.sessions.{session}.{bound}",
                    TIME,
                    default=DEFAULT_SESSION_TIME,
                )
            )
    return tuple(fields)


SETTINGS_SECTIONS: Tuple[SettingsSection, ...] = (
    SettingsSection(
        "mt5",
        "MT5 Connection",
        "MetaTrader 5 account credentials",
        (
            SettingField("Login ID", "mt5_credentials.login", INTEGER, "Your MT5 account number"),
            SettingField("Password", "mt5_credentials.password", PASSWORD, "Your MT5 account password"),
            SettingField(
                "Server",
                "mt5_credentials.server",
                TEXT,
                "MT5 broker server name",
                placeholder="e.g., Exness-MT5Real",
            ),
            SettingField(
                "Terminal Path",
                "mt5_credentials.mt5_terminal_path",
                TEXT,
                "Path to terminal64.exe (optional)",
                placeholder="Leave empty for default",
            ),
        ),
        expanded=True,
    ),
    SettingsSection(
        "general",
        "General Settings",
        "Trading symbols, timeframes, and bot parameters",
        (
            SettingField(
                "Symbols",
                "symbols",
                ARRAY,
                "Comma-separated list of trading symbols",
                placeholder="BTCUSDm, XAUUSDm",
            ),
            SettingField(
                "Timeframes",
                "timeframes",
                ARRAY,
                "Comma-separated list of timeframes",
                placeholder="M5, M15",
            ),
            SettingField("Max Trades Per Symbol", "max_trades_per_symbol", NUMBER, minimum=1, maximum=20),
            SettingField(
                "Cooldown Period",
                "cooldown_period_minutes",
                NUMBER,
                "Wait time between trades on the same symbol",
                minimum=0,
                suffix="minutes",
            ),
            SettingField(
                "Monitoring Interval", "monitoring_interval_seconds", NUMBER, minimum=1, suffix="seconds"
            ),
        ),
    ),
    SettingsSection(
        "risk_management",
        "Risk Management",
        "Risk per trade, stop loss, and position sizing",
        (
            SettingField(
                "Risk Per Trade",
                "risk_percent_per_trade",
                PERCENT,
                "Percentage of account to risk per trade",
                minimum=0.1,
                maximum=10,
                step=0.5,
                suffix="%",
            ),
            SettingField(
                "SL/TP Method",
                "risk_management.method",
                SELECT,
                "How to calculate Stop Loss and Take Profit",
                options=("atr", "percentage", "fixed_pips"),
            ),
            SettingField(
                "SL ATR Multiplier",
                "risk_management.atr_params.sl_multiplier",
                NUMBER,
                minimum=0.5,
                maximum=5,
                step=0.1,
            ),
            SettingField(
                "TP Risk:Reward Ratio",
                "risk_management.atr_params.tp_risk_reward_ratio",
                NUMBER,
                minimum=1,
                maximum=10,
                step=0.5,
            ),
            SettingField(
                "Enable Portfolio Risk",
                "portfolio_risk.enabled",
                BOOL,
                "Enable portfolio-level risk management",
            ),
            SettingField(
                "Max Daily Drawdown",
                "portfolio_risk.max_daily_drawdown_percent",
                NUMBER,
                minimum=1,
                maximum=50,
                step=1,
                suffix="%",
            ),
            SettingField(
                "Max Portfolio Risk",
                "portfolio_risk.max_portfolio_risk_percent",
                NUMBER,
                minimum=5,
                maximum=100,
                step=5,
                suffix="%",
            ),
        ),
    ),
    SettingsSection(
        "strategies",
        "Strategy Configuration",
        "Enable/disable strategies and tune parameters",
        (
            SettingField("Active Strategies", "active_strategies", MEMBERS, options=ALL_STRATEGIES),
            SettingField("SMC Swing Lookback", "smc_swing_lookback", NUMBER, minimum=5, maximum=100),
            SettingField("SMC FVG Threshold", "smc_fvg_threshold", NUMBER, step=0.0001),
            SettingField("SMC Liquidity Tolerance", "smc_liquidity_tolerance", NUMBER, step=0.0001),
            SettingField(
                "SMC Higher Timeframe",
                "smc_higher_timeframe",
                SELECT,
                options=("M15", "M30", "H1", "H4", "D1"),
            ),
            SettingField(
                "Sweep Lookback Period",
                "liquidity_sweep_params.lookback_period",
                NUMBER,
                minimum=5,
                maximum=50,
            ),
            SettingField(
                "Sweep EQ Level Tolerance",
                "liquidity_sweep_params.eq_level_tolerance",
                NUMBER,
                step=0.0001,
            ),
            SettingField("Sweep Enable FVG", "liquidity_sweep_params.enable_fvg", BOOL),
            SettingField(
                "Sweep Enable MSS Confirmation",
                "liquidity_sweep_params.enable_mss_confirmation",
                BOOL,
            ),
            SettingField(
                "Fibonacci Swing Lookback",
                "fibonacci_golden_zone.swing_lookback",
                NUMBER,
                minimum=10,
                maximum=200,
            ),
            SettingField(
                "Fibonacci Trend EMA Period",
                "fibonacci_golden_zone.trend_ema_period",
                NUMBER,
                minimum=10,
                maximum=200,
            ),
            SettingField(
                "Fibonacci Signal Strength",
                "fibonacci_golden_zone.signal_strength",
                NUMBER,
                minimum=0.1,
                maximum=1,
                step=0.1,
            ),
            SettingField("Enable ADX Filter", "adx_signal_filter.enabled", BOOL),
            SettingField("ADX Period", "adx_period", NUMBER, minimum=5, maximum=50),
            SettingField(
                "Min ADX for Entry", "adx_signal_filter.min_adx_for_entry", NUMBER, minimum=5, maximum=50
            ),
            SettingField("ADX Threshold", "adx_threshold", NUMBER, minimum=10, maximum=50),
        ),
    ),
    SettingsSection(
        "trading_sessions",
        "Trading Sessions",
        "Session times and trading hours",
        (
            SettingField(
                "Enable Session Filter",
                "trading_sessions.enabled",
                BOOL,
                "Only trade during specified sessions",
            ),
        )
        + _session_fields(),
    ),
)


def iter_fields(sections: Iterable[SettingsSection] = SETTINGS_SECTIONS) -> Iterable[SettingField]:
    for section in sections:
        yield from section.fields


def find_field(path: str, sections: Sequence[SettingsSection] = SETTINGS_SECTIONS) -> SettingField:
    for item in iter_fields(sections):
        if item.path == path:
            return item
    raise KeyError(path)


def display_value(tree: Mapping[str, Any] | None, setting: SettingField) -> Any:
    """Return what a widget should show for ``setting`` given ``tree``."""

    value = read_path(tree, setting.path)
    if setting.kind == PERCENT:
        return percent_to_display(value)
    if setting.kind == ARRAY:
        return format_array_text(value)
    if setting.kind == MEMBERS:
        return list(value) if isinstance(value, (list, tuple)) else []
    if setting.kind == BOOL:
        return bool(value) if value is not MISSING else False
    if value is MISSING or value is None:
        return setting.default if setting.default is not None else ""
    return value


def coerce_for_field(setting: SettingField, raw: Any) -> Any:
    """Return the value to store for a widget value of ``setting``'s kind."""

    kind = setting.kind
    if kind == NUMBER:
        return coerce_number(raw)
    if kind == INTEGER:
        return coerce_int(raw)
    if kind == PERCENT:
        return percent_from_display(raw)
    if kind == BOOL:
        return coerce_bool(raw)
    if kind == ARRAY:
        return parse_array_text(raw)
    if kind == MEMBERS:
        raise ValueError(f"{setting.path} is a membership list; toggle members individually")
    return "" if raw is None else str(raw)


__all__ = [
    "ALL_STRATEGIES",
    "SETTINGS_SECTIONS",
    "SettingField",
    "SettingsSection",
    "coerce_bool",
    "coerce_for_field",
    "coerce_int",
    "coerce_number",
    "display_value",
    "find_field",
    "format_array_text",
    "iter_fields",
    "parse_array_text",
    "percent_from_display",
    "percent_to_display",
    "toggled_members",
]
