"""Make a resolved preset the active configuration."""

from __future__ import annotations

import asyncio
import copy
import inspect
import logging
from collections.abc import Callable, Iterable
from typing import Any, Optional

from card_navigator.constants import DEFAULT_GLOBAL_ONLY_KEYS, LAST_ACTIVE_PRESET_KEY
from card_navigator.core.store import PresetStore
from card_navigator.errors import NotFoundError

logger = logging.getLogger(__name__)

_MISSING = object()

RefreshCallback = Callable[[str, dict[str, Any]], Any]


# ==============================================================================
# HELPER FUNCTIONS
# ==============================================================================


def _deep_merge_dicts(base: dict[str, Any], updates: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge two dictionaries without mutating inputs."""
    merged: dict[str, Any] = copy.deepcopy(base)
    for key, value in updates.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge_dicts(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _get_path(data: dict[str, Any], dotted_key: str) -> Any:
    """Return the value at ``a.b.c`` or ``_MISSING``."""
    current: Any = data
    for part in dotted_key.split("."):
        if not isinstance(current, dict) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _set_path(data: dict[str, Any], dotted_key: str, value: Any) -> None:
    *parents, leaf = dotted_key.split(".")
    current = data
    for part in parents:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[leaf] = value


def _delete_path(data: dict[str, Any], dotted_key: str) -> None:
    *parents, leaf = dotted_key.split(".")
    current: Any = data
    for part in parents:
        current = current.get(part) if isinstance(current, dict) else None
        if current is None:
            return
    if isinstance(current, dict):
        current.pop(leaf, None)


# ==============================================================================
# LIVE CONFIGURATION
# ==============================================================================


class LiveConfiguration:
    """The configuration currently in effect for the card view."""

    def __init__(self, initial: Optional[dict[str, Any]] = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial or {})

    def snapshot(self) -> dict[str, Any]:
        return copy.deepcopy(self._data)

    def get(self, dotted_key: str, default: Any = None) -> Any:
        value = _get_path(self._data, dotted_key)
        return default if value is _MISSING else copy.deepcopy(value)

    def set(self, dotted_key: str, value: Any) -> None:
        _set_path(self._data, dotted_key, copy.deepcopy(value))

    def replace(self, data: dict[str, Any]) -> None:
        self._data = copy.deepcopy(data)

    @property
    def last_active_preset_id(self) -> Optional[str]:
        return self._data.get(LAST_ACTIVE_PRESET_KEY)


# ==============================================================================
# APPLIER
# ==============================================================================


class PresetApplier:
    """Merge a preset's configuration bundle into the live configuration.

    Keys listed in ``global_only_keys`` (dotted paths allowed) always keep
    their previous live value; a preset can neither overwrite nor introduce
    them. After every apply the registered refresh callbacks are invoked with
    ``(preset_id, live_config)``. Callbacks are not awaited: coroutines are
    scheduled on the running loop and failures are only logged.
    """

    def __init__(
        self,
        store: PresetStore,
        live: Optional[LiveConfiguration] = None,
        global_only_keys: Iterable[str] = DEFAULT_GLOBAL_ONLY_KEYS,
        refresh_callbacks: Iterable[RefreshCallback] = (),
    ) -> None:
        self._store = store
        self.live = live or LiveConfiguration()
        keys = list(dict.fromkeys(global_only_keys))
        if LAST_ACTIVE_PRESET_KEY not in keys:
            keys.append(LAST_ACTIVE_PRESET_KEY)
        self.global_only_keys: tuple[str, ...] = tuple(keys)
        self._refresh_callbacks: list[RefreshCallback] = list(refresh_callbacks)
        self._pending: set[asyncio.Task[Any]] = set()

    def add_refresh_callback(self, callback: RefreshCallback) -> None:
        self._refresh_callbacks.append(callback)

    def apply(self, preset_id: str) -> dict[str, Any]:
        """Apply ``preset_id`` and return the resulting live configuration.

        Raises:
            NotFoundError: If ``preset_id`` is not a live preset.
        """
        preset = self._store.get_preset(preset_id)
        if preset is None:
            raise NotFoundError(f"Preset '{preset_id}' not found; re-resolve before applying.")

        previous = self.live.snapshot()
        merged = _deep_merge_dicts(previous, preset.config_bundle.as_config())
        for key in self.global_only_keys:
            prior = _get_path(previous, key)
            if prior is _MISSING:
                _delete_path(merged, key)
            else:
                _set_path(merged, key, copy.deepcopy(prior))
        merged[LAST_ACTIVE_PRESET_KEY] = preset_id
        self.live.replace(merged)

        logger.info("Applied preset '%s' (%s)", preset.name, preset_id)
        self._signal_refresh(preset_id)
        return self.live.snapshot()

    def _signal_refresh(self, preset_id: str) -> None:
        for callback in self._refresh_callbacks:
            try:
                result = callback(preset_id, self.live.snapshot())
            except Exception as exc:
                logger.warning("Refresh callback %r failed: %s", callback, exc)
                continue
            if inspect.isawaitable(result):
                self._schedule(result)

    def _schedule(self, awaitable: Any) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            logger.warning("No running event loop; asynchronous refresh callback dropped")
            return
        task = asyncio.ensure_future(awaitable, loop=loop)
        self._pending.add(task)
        task.add_done_callback(self._refresh_done)

    def _refresh_done(self, task: asyncio.Task[Any]) -> None:
        self._pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.warning("Asynchronous refresh callback failed: %s", exc)
