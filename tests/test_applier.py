"""Tests for applying presets to the live configuration."""

import asyncio
import logging

import pytest

from card_navigator.constants import LAST_ACTIVE_PRESET_KEY
from card_navigator.core.applier import LiveConfiguration, PresetApplier, _deep_merge_dicts
from card_navigator.errors import NotFoundError

from conftest import preset_config


class TestDeepMerge:
    """Recursive merge helper."""

    def test_nested_dicts_merge(self):
        merged = _deep_merge_dicts({"a": {"x": 1, "y": 2}}, {"a": {"y": 3}})
        assert merged == {"a": {"x": 1, "y": 3}}

    def test_inputs_are_not_mutated(self):
        base = {"a": {"x": 1}}
        updates = {"a": {"x": 2}, "b": [1]}
        merged = _deep_merge_dicts(base, updates)
        merged["b"].append(2)
        assert base == {"a": {"x": 1}}
        assert updates["b"] == [1]


class TestLiveConfiguration:
    """Dotted access to the live configuration."""

    def test_dotted_get_and_set(self):
        live = LiveConfiguration({"layoutConfig": {"cardWidth": 200}})
        live.set("layoutConfig.cardHeight", 150)
        assert live.get("layoutConfig.cardHeight") == 150
        assert live.get("layoutConfig.missing", "fallback") == "fallback"

    def test_snapshot_is_a_copy(self):
        live = LiveConfiguration({"a": {"b": 1}})
        snapshot = live.snapshot()
        snapshot["a"]["b"] = 2
        assert live.get("a.b") == 1


class TestApply:
    """Merging bundles while keeping global-only keys."""

    async def test_bundle_is_merged_and_bookkeeping_set(self, store):
        preset = await store.create_preset(preset_config("Wide", layoutConfig={"type": "grid", "cardWidth": 500}))
        live = LiveConfiguration({"layoutConfig": {"cardHeight": 100}, "debugMode": True})
        applier = PresetApplier(store, live)

        result = applier.apply(preset.id)

        assert result["layoutConfig"] == {"cardHeight": 100, "type": "grid", "cardWidth": 500}
        assert result["debugMode"] is True
        assert result[LAST_ACTIVE_PRESET_KEY] == preset.id
        assert live.last_active_preset_id == preset.id

    async def test_preset_cannot_overwrite_global_key(self, store):
        preset = await store.create_preset(preset_config("Noisy", debugMode=True, autoApplyPresets=False))
        applier = PresetApplier(store, LiveConfiguration({"autoApplyPresets": True}))

        result = applier.apply(preset.id)

        assert result["autoApplyPresets"] is True
        assert "debugMode" not in result

    async def test_dotted_global_key_is_preserved(self, store):
        preset = await store.create_preset(preset_config("Wide", layoutConfig={"cardWidth": 500, "cardHeight": 80}))
        applier = PresetApplier(
            store,
            LiveConfiguration({"layoutConfig": {"cardHeight": 120}}),
            global_only_keys=["layoutConfig.cardHeight"],
        )
        result = applier.apply(preset.id)
        assert result["layoutConfig"] == {"cardWidth": 500, "cardHeight": 120}

    async def test_last_active_key_is_always_global(self, store):
        applier = PresetApplier(store, global_only_keys=["debugMode"])
        assert LAST_ACTIVE_PRESET_KEY in applier.global_only_keys

    async def test_unknown_preset(self, store):
        applier = PresetApplier(store)
        with pytest.raises(NotFoundError):
            applier.apply("missing")
        assert applier.live.snapshot() == {}


class TestRefreshSignal:
    """Fire-and-forget refresh callbacks."""

    async def test_sync_callback_receives_preset_and_config(self, store):
        calls = []
        applier = PresetApplier(store, refresh_callbacks=[lambda pid, cfg: calls.append((pid, cfg))])
        applier.apply(store.default_preset_id)
        assert calls[0][0] == store.default_preset_id
        assert calls[0][1][LAST_ACTIVE_PRESET_KEY] == store.default_preset_id

    async def test_failing_callback_is_logged_not_raised(self, store, caplog):
        def broken(preset_id, config):
            raise RuntimeError("view gone")

        applier = PresetApplier(store, refresh_callbacks=[broken])
        with caplog.at_level(logging.WARNING, logger="card_navigator.core.applier"):
            applier.apply(store.default_preset_id)
        assert "view gone" in caplog.text

    async def test_async_callback_is_scheduled_not_awaited(self, store):
        started = asyncio.Event()

        async def refresh(preset_id, config):
            started.set()

        applier = PresetApplier(store, refresh_callbacks=[refresh])
        applier.apply(store.default_preset_id)
        assert not started.is_set()
        await asyncio.wait_for(started.wait(), timeout=1)

    async def test_failing_async_callback_is_logged(self, store, caplog):
        async def broken(preset_id, config):
            raise RuntimeError("render failed")

        applier = PresetApplier(store, refresh_callbacks=[broken])
        with caplog.at_level(logging.WARNING, logger="card_navigator.core.applier"):
            applier.apply(store.default_preset_id)
            await asyncio.sleep(0.01)
        assert "render failed" in caplog.text
