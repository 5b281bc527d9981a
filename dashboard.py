"""
Streamlit dashboard for the TradePilot trading bot.

The dashboard polls the bot's REST API for account, trade, signal and
strategy data, lets the operator start/stop the bot and toggle strategies,
and hosts the settings editor for the bot's configuration tree.

Run with ``streamlit run dashboard.py``.  The API location is read from
``TRADEPILOT_API_URL`` (see ``config.py``).
"""

import math

import streamlit as st
from streamlit_autorefresh import st_autorefresh

import config
from bot_api import BotApiClient, BotApiError
from config_editor import ConfigEditor, EditorState, EditorStateError
from config_fields import (
    ARRAY,
    BOOL,
    INTEGER,
    MEMBERS,
    NUMBER,
    PASSWORD,
    PERCENT,
    SELECT,
    SETTINGS_SECTIONS,
    TIME,
    SettingField,
    coerce_number,
    display_value,
)
from dashboard_data import (
    STATUS_FILTERS,
    account_metrics,
    bot_status,
    changes_frame,
    equity_frame,
    filter_trades,
    format_last_saved,
    format_pl,
    signals_frame,
    strategy_badge,
    strategy_options,
    strategy_records,
    trades_frame,
    win_rate,
)
from log_utils import setup_logger

logger = setup_logger(__name__)


def get_client() -> BotApiClient:
    if "api_client" not in st.session_state:
        st.session_state["api_client"] = BotApiClient()
    return st.session_state["api_client"]


def get_editor() -> ConfigEditor:
    """Return this browser session's configuration editor."""

    if "config_editor" not in st.session_state:
        st.session_state["config_editor"] = ConfigEditor(get_client())
    return st.session_state["config_editor"]


def _poll(label: str, fetch):
    """Call ``fetch`` and return its payload, or ``None`` after showing a warning."""

    try:
        return fetch()
    except BotApiError as exc:
        logger.warning("%s unavailable: %s", label, exc)
        st.warning(f"{label} unavailable: {exc}")
        return None


def _refresh_interval_ms(*seconds: float) -> int:
    """Page refresh period: the shortest of the polled feeds' intervals."""

    return int(min(seconds) * 1000)


# Each feed keeps its own polling period; ``base_url`` keys the cache so two
# clients pointed at different bots never share payloads.  Failed fetches
# raise and are therefore not cached.
@st.cache_data(ttl=config.ACCOUNT_REFRESH_SECONDS, show_spinner=False)
def _account_info(_client: BotApiClient, base_url: str):
    return _client.fetch_account_info()


@st.cache_data(ttl=config.EQUITY_REFRESH_SECONDS, show_spinner=False)
def _equity_curve(_client: BotApiClient, base_url: str, limit: int):
    return _client.fetch_equity_curve(limit)


@st.cache_data(ttl=config.SIGNALS_REFRESH_SECONDS, show_spinner=False)
def _signals(_client: BotApiClient, base_url: str):
    return _client.fetch_signals()


@st.cache_data(ttl=config.PERFORMANCE_REFRESH_SECONDS, show_spinner=False)
def _strategy_performance(_client: BotApiClient, base_url: str):
    return _client.fetch_strategy_performance()


@st.cache_data(ttl=config.TRADES_REFRESH_SECONDS, show_spinner=False)
def _trades(_client: BotApiClient, base_url: str):
    return _client.fetch_trades()


def _run_bot_action(label: str, action) -> None:
    try:
        action()
    except BotApiError as exc:
        logger.error("Failed to %s bot: %s", label, exc)
        st.error(f"Failed to {label} bot: {exc}")
        return
    logger.info("Bot %s requested", label)
    _account_info.clear()
    st.rerun()


# ---------------------------------------------------------------------------
# Overview
# ---------------------------------------------------------------------------
def render_overview() -> None:
    st_autorefresh(
        interval=_refresh_interval_ms(
            config.ACCOUNT_REFRESH_SECONDS,
            config.SIGNALS_REFRESH_SECONDS,
            config.PERFORMANCE_REFRESH_SECONDS,
            config.EQUITY_REFRESH_SECONDS,
        ),
        key="overview_refresh",
    )
    client = get_client()
    info = _poll("Account info", lambda: _account_info(client, client.base_url))
    status = bot_status(info)

    left, middle, right = st.columns([3, 1, 1])
    left.subheader(f"Bot status: {status}")
    if middle.button("Start Bot", disabled=status == "RUNNING"):
        _run_bot_action("start", client.start_bot)
    if right.button("Stop Bot", disabled=status == "STOPPED"):
        _run_bot_action("stop", client.stop_bot)

    for column, (label, value, delta) in zip(st.columns(4), account_metrics(info)):
        column.metric(label, value, delta or None)

    st.subheader("Equity")
    equity = equity_frame(
        _poll("Equity curve", lambda: _equity_curve(client, client.base_url, config.EQUITY_CURVE_POINTS))
    )
    if equity.empty:
        st.info("No equity history yet.")
    else:
        st.area_chart(equity)

    signals_col, perf_col = st.columns(2)
    with signals_col:
        st.subheader("Live Signals")
        signals = signals_frame(_poll("Signals", lambda: _signals(client, client.base_url)))
        if signals.empty:
            st.caption("No active signals.")
        else:
            st.dataframe(signals, width="stretch", hide_index=True)
    with perf_col:
        st.subheader("Strategy Performance")
        performance = _poll("Strategy performance", lambda: _strategy_performance(client, client.base_url))
        for strategy in strategy_records(performance):
            name = strategy.get("name", "?")
            st.progress(
                min(max(win_rate(strategy) / 100.0, 0.0), 1.0),
                text=f"{name}: {win_rate(strategy):.0f}% win rate, score {strategy.get('score', '-')}",
            )


# ---------------------------------------------------------------------------
# Trades
# ---------------------------------------------------------------------------
def render_trades() -> None:
    st_autorefresh(interval=int(config.TRADES_REFRESH_SECONDS * 1000), key="trades_refresh")
    client = get_client()
    df = trades_frame(_poll("Trades", lambda: _trades(client, client.base_url)))

    search_col, strategy_col, status_col = st.columns([2, 1, 1])
    search = search_col.text_input("Search Symbol", key="trades_search")
    strategy = strategy_col.selectbox("Strategy", strategy_options(df), key="trades_strategy")
    status = status_col.selectbox("Status", STATUS_FILTERS, index=1, key="trades_status")

    filtered = filter_trades(df, search, status, strategy)
    if filtered.empty:
        st.info("No trades match the current filters.")
    else:
        view = filtered.copy()
        view["pl"] = view["pl"].map(format_pl)
        st.dataframe(view, width="stretch", hide_index=True)
    st.caption(f"Showing {len(filtered)} results")


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------
def _on_strategy_toggle(client: BotApiClient, strategy_id: str, key: str) -> None:
    """Send one toggle request per click; a failure puts the switch back."""

    wanted = bool(st.session_state[key])
    try:
        client.toggle_strategy(strategy_id, wanted)
    except BotApiError as exc:
        logger.error("Failed to toggle strategy %s: %s", strategy_id, exc)
        st.session_state["strategy_toggle_error"] = f"Failed to toggle {strategy_id}: {exc}"
        # Dropping the widget state makes it redraw from the bot's value.
        st.session_state.pop(key, None)


def render_strategies() -> None:
    client = get_client()
    error = st.session_state.pop("strategy_toggle_error", None)
    if error:
        st.error(error)
    strategies = strategy_records(_poll("Strategies", client.fetch_strategy_details))
    if not strategies:
        st.info("No strategies reported by the bot.")
        return
    for strategy in strategies:
        strategy_id = str(strategy.get("id", strategy.get("name", "")))
        name_col, badge_col, rate_col, toggle_col = st.columns([3, 1, 1, 1])
        name_col.markdown(f"**{strategy.get('name', strategy_id)}**")
        badge_col.markdown(f"`{strategy_badge(strategy)}`")
        rate_col.write(f"{win_rate(strategy):.0f}% ({strategy.get('totalTrades', 0)} trades)")
        key = f"strategy_toggle_{strategy_id}"
        toggle_col.toggle(
            "Enabled",
            value=bool(strategy.get("enabled")),
            key=key,
            on_change=_on_strategy_toggle,
            args=(client, strategy_id, key),
        )


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------
def _number_format(step) -> str:
    if not step or step >= 1:
        return "%g"
    decimals = max(0, -int(math.floor(math.log10(step))))
    return f"%.{decimals}f"


def _widget_key(editor: ConfigEditor, setting: SettingField) -> str:
    # Keys change with the generation so reloads and resets repaint widgets.
    return f"cfg:{setting.path}:{editor.generation}"


def _on_field_change(editor: ConfigEditor, setting: SettingField, key: str) -> None:
    editor.apply_input(setting, st.session_state[key])


def render_field(editor: ConfigEditor, setting: SettingField) -> None:
    key = _widget_key(editor, setting)
    value = display_value(editor.working_copy, setting)
    help_text = setting.description or None
    if setting.minimum is not None or setting.maximum is not None:
        bounds = f"Range {setting.minimum if setting.minimum is not None else '-'}"
        bounds += f" to {setting.maximum if setting.maximum is not None else '-'}"
        help_text = f"{help_text}. {bounds}" if help_text else bounds
    label = f"{setting.label} ({setting.suffix})" if setting.suffix else setting.label
    common = dict(key=key, help=help_text, on_change=_on_field_change, args=(editor, setting, key))

    if setting.kind in (NUMBER, PERCENT):
        st.number_input(
            label,
            value=float(coerce_number(value)),
            step=float(setting.step or 1),
            format=_number_format(setting.step),
            **common,
        )
    elif setting.kind == INTEGER:
        st.number_input(label, value=int(coerce_number(value)), step=1, **common)
    elif setting.kind == BOOL:
        st.toggle(label, value=bool(value), **common)
    elif setting.kind == SELECT:
        options = list(setting.options)
        if value and value not in options:
            options.append(value)
        st.selectbox(label, options, index=options.index(value) if value in options else 0, **common)
    elif setting.kind == MEMBERS:
        options = list(dict.fromkeys([*setting.options, *value]))
        st.multiselect(label, options, default=value, **common)
    elif setting.kind == PASSWORD:
        shown = st.session_state.get("show_password", False)
        st.text_input(label, value=str(value), type="default" if shown else "password", **common)
    elif setting.kind == ARRAY:
        st.text_input(label, value=value, placeholder=setting.placeholder, **common)
    elif setting.kind == TIME:
        st.text_input(label, value=str(value), placeholder="HH:MM", **common)
    else:
        st.text_input(label, value=str(value), placeholder=setting.placeholder, **common)


def render_settings() -> None:
    editor = get_editor()
    if editor.state == EditorState.IDLE:
        with st.spinner("Loading configuration..."):
            editor.load()

    if editor.state == EditorState.ERROR:
        st.error(editor.error_message)
        if st.button("Retry"):
            editor.load()
            st.rerun()
        return

    header_col, reload_col = st.columns([5, 1])
    header_col.caption(f"Last saved: {format_last_saved(editor.last_saved)}")
    if reload_col.button("Reload", disabled=editor.is_busy or editor.dirty):
        editor.load()
        st.rerun()

    if editor.dirty:
        st.warning("You have unsaved changes")
        changes = editor.changed_fields()
        if changes:
            with st.expander(f"{len(changes)} changed field(s)"):
                st.dataframe(changes_frame(changes), width="stretch", hide_index=True)
    if editor.notification is not None:
        if editor.notification.kind == "success":
            st.success(editor.notification.text)
        else:
            st.error(editor.notification.text)

    st.toggle("Show password", key="show_password")
    for section in SETTINGS_SECTIONS:
        with st.expander(section.title, expanded=section.expanded):
            st.caption(section.description)
            for setting in section.fields:
                render_field(editor, setting)

    if config.show_raw_config():
        with st.expander("Raw configuration"):
            st.json(editor.working_copy or {})

    render_setting_actions(editor)


def render_setting_actions(editor: ConfigEditor) -> None:
    reset_col, save_col = st.columns(2)
    if reset_col.button("Reset", disabled=not editor.dirty or editor.is_busy):
        st.session_state["reset_token"] = editor.request_reset()

    token = st.session_state.get("reset_token")
    if token is not None and editor.reset_pending:
        st.warning("Are you sure you want to discard all changes?")
        confirm_col, cancel_col = st.columns(2)
        if confirm_col.button("Discard changes", type="primary"):
            st.session_state.pop("reset_token", None)
            try:
                editor.confirm_reset(token)
            except EditorStateError as exc:
                logger.warning("Reset not applied: %s", exc)
            st.rerun()
        if cancel_col.button("Keep editing"):
            st.session_state.pop("reset_token", None)
            editor.cancel_reset(token)
            st.rerun()

    if save_col.button("Save Changes", type="primary", disabled=not editor.dirty or editor.is_busy):
        with st.spinner("Saving..."):
            editor.save()
        st.rerun()


PAGES = {
    "Dashboard": render_overview,
    "Trades": render_trades,
    "Strategies": render_strategies,
    "Settings": render_settings,
}


if __name__ == "__main__":
    st.set_page_config(page_title="TradePilot Dashboard", layout="wide")
    page = st.sidebar.radio("Page", list(PAGES), index=0)
    st.sidebar.markdown("---")
    st.sidebar.caption(f"API: {get_client().base_url}")
    st.title(page)
    PAGES[page]()
