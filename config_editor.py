"""Editing session for the bot's hierarchical configuration.

:class:`ConfigEditor` owns two trees: the *working copy* shown and edited on
the settings page, and the *pristine copy* that last matched the bot.  Every
edit replaces the working copy with an updated deep copy, so anyone holding
the previous tree never sees it change.  The dirty flag is set by any edit,
even one that happens to restore the original value, and only a successful
save, a confirmed reset or a fresh load clears it.

Remote calls are split into ``begin_*`` and ``complete_*``/``fail_*`` steps.
Each ``begin_*`` returns a generation token; results carrying an outdated
token are dropped, so a response arriving after a reload, reset or
:meth:`ConfigEditor.close` cannot clobber newer state.  :meth:`load` and
:meth:`save` run the whole cycle synchronously against a
:class:`ConfigStore`.
"""

from __future__ import annotations

import itertools
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Protocol, Tuple

from bot_api import LoadError, SaveError
from config_fields import (
    MEMBERS,
    SettingField,
    coerce_bool,
    coerce_for_field,
    coerce_int,
    coerce_number,
    parse_array_text,
    percent_from_display,
    toggled_members,
)
from config_paths import MISSING, deep_copy_tree, diff_trees, read_path, split_path, with_path
from log_utils import setup_logger
from observability import log_event, record_metric

logger = setup_logger(__name__)

LOAD_FAILED_MESSAGE = "Failed to load configuration. Make sure the bot is running."
SAVE_FAILED_MESSAGE = "Failed to save configuration."
SAVE_SUCCEEDED_MESSAGE = "Configuration saved successfully!"


class EditorState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY_CLEAN = "ready_clean"
    READY_DIRTY = "ready_dirty"
    SAVING = "saving"
    ERROR = "error"


_EDITABLE_STATES = frozenset({EditorState.READY_CLEAN, EditorState.READY_DIRTY})


class EditorStateError(RuntimeError):
    """Raised when an operation is not valid in the editor's current state."""


class ConfigStore(Protocol):
    def load_configuration(self) -> Dict[str, Any]:
        ...

    def save_configuration(self, tree: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
        ...


@dataclass(frozen=True)
class Notification:
    kind: str  # "success" or "error"
    text: str
    timestamp: datetime


@dataclass(frozen=True)
class SaveOutcome:
    ok: bool
    message: str
    saved_at: Optional[datetime] = None


@dataclass(frozen=True)
class ResetToken:
    """Proof that the user was asked before discarding edits."""

    serial: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConfigEditor:
    """Working/pristine configuration pair with path-addressed edits."""

    def __init__(
        self,
        store: Optional[ConfigStore] = None,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self._clock = clock
        self._state = EditorState.IDLE
        self._working: Optional[Dict[str, Any]] = None
        self._pristine: Optional[Dict[str, Any]] = None
        self._dirty = False
        self._generation = 0
        self._outgoing: Optional[Dict[str, Any]] = None
        self._pending_reset: Optional[ResetToken] = None
        self._reset_serials = itertools.count(1)
        self.notification: Optional[Notification] = None
        self.last_saved: Optional[datetime] = None
        self.error_message: Optional[str] = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------
    @property
    def state(self) -> EditorState:
        return self._state

    @property
    def dirty(self) -> bool:
        return self._dirty

    @property
    def is_busy(self) -> bool:
        return self._state in (EditorState.LOADING, EditorState.SAVING)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def working_copy(self) -> Optional[Dict[str, Any]]:
        """The tree being edited.  Replaced, never mutated, by edits."""

        return self._working

    @property
    def pristine_copy(self) -> Optional[Dict[str, Any]]:
        """A private snapshot of the last tree known to match the bot."""

        return deep_copy_tree(self._pristine)

    def read(self, path: str, default: Any = MISSING) -> Any:
        return read_path(self._working, path, default)

    def changed_fields(self) -> List[Tuple[str, Any, Any]]:
        """Leaves that differ between the pristine and working copies."""

        return diff_trees(self._pristine, self._working)

    # ------------------------------------------------------------------
    # Load
    # ------------------------------------------------------------------
    def begin_load(self) -> int:
        if self._state == EditorState.SAVING:
            raise EditorStateError("Cannot reload configuration while a save is in flight")
        self._generation += 1
        self._pending_reset = None
        self._state = EditorState.LOADING
        self.error_message = None
        return self._generation

    def complete_load(self, token: int, tree: Mapping[str, Any]) -> bool:
        if not self._is_current(token, "load"):
            return False
        self._working = deep_copy_tree(tree)
        self._pristine = deep_copy_tree(tree)
        self._dirty = False
        self._state = EditorState.READY_CLEAN
        self.error_message = None
        log_event(logger, "config_loaded", keys=len(self._working or {}))
        return True

    def fail_load(self, token: int, error: BaseException) -> bool:
        if not self._is_current(token, "load"):
            return False
        self._working = None
        self._pristine = None
        self._dirty = False
        self._state = EditorState.ERROR
        self.error_message = LOAD_FAILED_MESSAGE
        logger.warning("Error loading config: %s", error)
        log_event(logger, "config_load_failed", error=str(error))
        return True

    def load(self) -> bool:
        """Fetch the configuration from the store; ``True`` when it is shown."""

        store = self._require_store()
        token = self.begin_load()
        started = time.perf_counter()
        try:
            tree = store.load_configuration()
        except LoadError as exc:
            self.fail_load(token, exc)
            return False
        except Exception as exc:
            self.fail_load(token, exc)
            raise
        record_metric("config_load_seconds", time.perf_counter() - started)
        if not isinstance(tree, Mapping):
            self.fail_load(token, LoadError(f"Unexpected configuration payload: {type(tree).__name__}"))
            return False
        return self.complete_load(token, tree)

    # ------------------------------------------------------------------
    # Edits
    # ------------------------------------------------------------------
    def set_field(self, path: str, value: Any) -> None:
        split_path(path)
        if self._state not in _EDITABLE_STATES or self._working is None:
            raise EditorStateError(f"Cannot edit {path!r} while the editor is {self._state.value}")
        self._working = with_path(self._working, path, value)
        self._dirty = True
        self._pending_reset = None
        self.notification = None
        self._state = EditorState.READY_DIRTY

    def set_array_field(self, path: str, raw_text: Any) -> None:
        self.set_field(path, parse_array_text(raw_text))

    def toggle_list_membership(self, path: str, member: str, present: bool) -> None:
        current = read_path(self._working, path, [])
        self.set_field(path, toggled_members(current, member, present))

    def set_number_field(self, path: str, raw: Any) -> None:
        self.set_field(path, coerce_number(raw))

    def set_int_field(self, path: str, raw: Any) -> None:
        self.set_field(path, coerce_int(raw))

    def set_bool_field(self, path: str, raw: Any) -> None:
        self.set_field(path, coerce_bool(raw))

    def set_percent_field(self, path: str, display_value: Any) -> None:
        self.set_field(path, percent_from_display(display_value))

    def apply_input(self, setting: SettingField, raw: Any) -> None:
        """Store a widget value for ``setting`` using its kind's coercion."""

        if setting.kind == MEMBERS:
            members = list(raw) if isinstance(raw, (list, tuple)) else []
            current = read_path(self._working, setting.path, [])
            current = list(current) if isinstance(current, (list, tuple)) else []
            for member in dict.fromkeys([*current, *members, *setting.options]):
                wanted = member in members
                if wanted != (member in current):
                    self.toggle_list_membership(setting.path, member, wanted)
            return
        self.set_field(setting.path, coerce_for_field(setting, raw))

    # ------------------------------------------------------------------
    # Save
    # ------------------------------------------------------------------
    def begin_save(self) -> int:
        if self._state != EditorState.READY_DIRTY or self._working is None:
            raise EditorStateError(f"Nothing to save while the editor is {self._state.value}")
        self._generation += 1
        self._pending_reset = None
        self._outgoing = deep_copy_tree(self._working)
        self._state = EditorState.SAVING
        self.notification = None
        return self._generation

    @property
    def outgoing_tree(self) -> Optional[Dict[str, Any]]:
        """The tree handed to the store by the save in flight."""

        return self._outgoing

    def complete_save(self, token: int, response: Optional[Mapping[str, Any]] = None) -> bool:
        if not self._is_current(token, "save"):
            return False
        sent = self._outgoing
        self._outgoing = None
        self._pristine = deep_copy_tree(sent)
        self._dirty = False
        self._state = EditorState.READY_CLEAN
        now = self._clock()
        self.last_saved = now
        message = ""
        if isinstance(response, Mapping):
            message = str(response.get("message") or "")
        self.notification = Notification("success", message or SAVE_SUCCEEDED_MESSAGE, now)
        logger.info("Configuration saved")
        log_event(logger, "config_saved", message=message)
        return True

    def fail_save(self, token: int, error: BaseException) -> bool:
        if not self._is_current(token, "save"):
            return False
        self._outgoing = None
        self._dirty = True
        self._state = EditorState.READY_DIRTY
        self.notification = Notification("error", SAVE_FAILED_MESSAGE, self._clock())
        logger.warning("Failed to save settings: %s", error)
        log_event(logger, "config_save_failed", error=str(error))
        return True

    def save(self) -> SaveOutcome:
        """Send the whole working copy to the store."""

        store = self._require_store()
        token = self.begin_save()
        started = time.perf_counter()
        try:
            response = store.save_configuration(self._outgoing or {})
        except SaveError as exc:
            self.fail_save(token, exc)
            return SaveOutcome(False, str(exc) or SAVE_FAILED_MESSAGE)
        except Exception as exc:
            self.fail_save(token, exc)
            raise
        record_metric("config_save_seconds", time.perf_counter() - started)
        if not self.complete_save(token, response):
            return SaveOutcome(False, "Save result discarded; the editor moved on")
        notification = self.notification
        return SaveOutcome(True, notification.text if notification else SAVE_SUCCEEDED_MESSAGE, self.last_saved)

    # ------------------------------------------------------------------
    # Reset
    # ------------------------------------------------------------------
    def request_reset(self) -> ResetToken:
        """First phase of discarding edits; hand the token to the confirmation UI."""

        if self._state not in _EDITABLE_STATES:
            raise EditorStateError(f"Nothing to reset while the editor is {self._state.value}")
        self._pending_reset = ResetToken(next(self._reset_serials))
        return self._pending_reset

    def cancel_reset(self, token: ResetToken) -> None:
        if self._pending_reset == token:
            self._pending_reset = None

    @property
    def reset_pending(self) -> bool:
        return self._pending_reset is not None

    def confirm_reset(self, token: ResetToken) -> None:
        if token is None or self._pending_reset != token:
            raise EditorStateError("Reset token is stale or was never issued")
        self._pending_reset = None
        self._generation += 1
        self._working = deep_copy_tree(self._pristine)
        self._dirty = False
        self.notification = None
        self._state = EditorState.READY_CLEAN
        log_event(logger, "config_reset")

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------
    def close(self) -> None:
        """Drop the session; results of calls still in flight are ignored."""

        self._generation += 1
        self._pending_reset = None
        self._outgoing = None
        self._working = None
        self._pristine = None
        self._dirty = False
        self._state = EditorState.IDLE

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    def _is_current(self, token: int, action: str) -> bool:
        expected = EditorState.LOADING if action == "load" else EditorState.SAVING
        if token != self._generation or self._state != expected:
            logger.debug(
                "Discarding stale %s result (token=%s current=%s state=%s)",
                action,
                token,
                self._generation,
                self._state.value,
            )
            return False
        return True

    def _require_store(self) -> ConfigStore:
        if self.store is None:
            raise EditorStateError("No configuration store attached to the editor")
        return self.store


__all__ = [
    "ConfigEditor",
    "ConfigStore",
    "EditorState",
    "EditorStateError",
    "Notification",
    "ResetToken",
    "SaveOutcome",
]
