"""End-to-end resolution behaviour through the PresetEngine facade."""

import asyncio
import threading
from datetime import datetime

import pytest

from card_navigator.core.engine import PresetEngine
from card_navigator.core.resolver import REASON_DEFAULT, REASON_PRIORITY, REASON_SPECIFICITY
from card_navigator.core.store import PresetStore
from card_navigator.data_models import Context, PresetSettings
from card_navigator.errors import InvariantViolationError, NotFoundError, StaleReferenceError

from conftest import preset_config

NOTE_CONTEXT = Context(folder_path="/Projects/Personal/notes.md")


async def projects_setup(engine):
    """Preset A on /Projects and preset B on /Projects/Personal, both with subfolders."""
    a = await engine.create_preset(
        preset_config("A", {"id": "F1", "type": "folder", "value": "/Projects", "includeSubfolders": True})
    )
    b = await engine.create_preset(
        preset_config("B", {"id": "F2", "type": "folder", "value": "/Projects/Personal", "includeSubfolders": True})
    )
    return a, b


class TestResolutionRules:
    """Specificity, explicit priority and the default fallback."""

    async def test_deeper_folder_wins(self, engine):
        a, b = await projects_setup(engine)
        resolution = engine.resolve(NOTE_CONTEXT)
        assert resolution.preset_id == b.id
        assert resolution.reason == REASON_SPECIFICITY

    async def test_priority_list_overrides_specificity(self, engine):
        a, b = await projects_setup(engine)
        await engine.update_priority_list(["F1"])
        resolution = engine.resolve(NOTE_CONTEXT)
        assert resolution.preset_id == a.id
        assert (resolution.mapping_id, resolution.reason) == ("F1", REASON_PRIORITY)

    async def test_unmatched_context_gets_default(self, engine):
        await projects_setup(engine)
        resolution = engine.resolve(
            Context(folder_path="/Archive", tags=frozenset({"old"}), properties={"status": "done"},
                    reference_date=datetime(2020, 1, 1))
        )
        assert resolution.preset_id == engine.store.default_preset_id
        assert resolution.reason == REASON_DEFAULT
        assert resolution.mapping_id is None

    async def test_priority_tag_beats_deepest_folder(self, engine):
        await projects_setup(engine)
        tagged = await engine.create_preset(preset_config("Tagged", {"id": "T", "type": "tag", "value": "urgent"}))
        await engine.update_priority_list(["T"])
        context = Context(folder_path="/Projects/Personal", tags=frozenset({"urgent"}))
        assert engine.resolve_preset_for_context(context) == tagged.id

    async def test_date_range_end_is_inclusive(self, engine):
        january = await engine.create_preset(
            preset_config("January", {"type": "date", "dateRange": {"start": "2024-01-01", "end": "2024-01-31"}})
        )
        assert engine.resolve_preset_for_context(Context(reference_date=datetime(2024, 1, 31, 0, 0, 0))) == january.id
        assert (
            engine.resolve_preset_for_context(Context(reference_date=datetime(2024, 2, 1, 0, 0, 0)))
            == engine.store.default_preset_id
        )

    async def test_disabled_mapping_is_ignored(self, engine):
        a, b = await projects_setup(engine)
        await engine.store.update_mapping("F2", {"enabled": False})
        assert engine.resolve_preset_for_context(NOTE_CONTEXT) == a.id


class TestTieBreak:
    """Equal-specificity matches resolve deterministically."""

    async def test_earlier_created_preset_wins(self, engine):
        first = await engine.create_preset(preset_config("First", {"type": "tag", "value": "shared"}))
        await engine.create_preset(preset_config("Second", {"type": "tag", "value": "shared"}))
        assert engine.resolve_preset_for_context(Context(tags=frozenset({"shared"}))) == first.id

    async def test_sibling_folders_of_equal_depth(self, engine):
        first = await engine.create_preset(
            preset_config("Left", {"type": "folder", "value": "/", "includeSubfolders": True})
        )
        await engine.create_preset(preset_config("Right", {"type": "folder", "value": "/", "includeSubfolders": True}))
        assert engine.resolve_preset_for_context(Context(folder_path="/Anywhere")) == first.id

    async def test_mapping_priority_number_beats_creation_order(self, engine):
        await engine.create_preset(preset_config("First", {"type": "tag", "value": "shared"}))
        second = await engine.create_preset(preset_config("Second", {"type": "tag", "value": "shared", "priority": 1}))
        assert engine.resolve_preset_for_context(Context(tags=frozenset({"shared"}))) == second.id

    async def test_store_order_follows_preset_creation(self, engine):
        first = await engine.create_preset(preset_config("First"))
        await engine.create_preset(preset_config("Second", {"type": "tag", "value": "shared"}))
        await engine.add_mapping(first.id, {"type": "tag", "value": "shared"})
        assert engine.resolve_preset_for_context(Context(tags=frozenset({"shared"}))) == first.id


class TestCaseSensitivity:
    """Case handling belongs to whoever builds the Context."""

    async def test_engine_matching_is_exact(self, engine):
        await engine.create_preset(preset_config("Tagged", {"type": "tag", "value": "Project"}))
        assert engine.resolve(Context(tags=frozenset({"project"}))).reason == REASON_DEFAULT

    async def test_property_values_are_case_sensitive(self, engine):
        await engine.create_preset(
            preset_config("Drafts", {"type": "property", "property": {"name": "status", "value": "draft"}})
        )
        assert engine.resolve(Context(properties={"status": "DRAFT"})).reason == REASON_DEFAULT


class TestCacheInvalidation:
    """Store mutations clear cached decisions before they return."""

    async def test_second_resolution_hits_cache(self, engine):
        await projects_setup(engine)
        assert engine.resolve(NOTE_CONTEXT).cache_hit is False
        assert engine.resolve(NOTE_CONTEXT).cache_hit is True

    async def test_removed_mapping_is_not_returned_from_cache(self, engine):
        a, b = await projects_setup(engine)
        assert engine.resolve_preset_for_context(NOTE_CONTEXT) == b.id

        await engine.remove_mapping("F2")

        resolution = engine.resolve(NOTE_CONTEXT)
        assert resolution.preset_id == a.id
        assert resolution.cache_hit is False

    async def test_falls_through_to_default_after_last_mapping_removed(self, engine):
        a, b = await projects_setup(engine)
        engine.resolve(NOTE_CONTEXT)
        await engine.remove_mapping("F2")
        await engine.remove_mapping("F1")
        assert engine.resolve_preset_for_context(NOTE_CONTEXT) == engine.store.default_preset_id

    async def test_failed_save_keeps_cached_decision_valid(self, engine, monkeypatch):
        a, b = await projects_setup(engine)
        engine.resolve(NOTE_CONTEXT)

        def fail(payload):
            raise OSError("disk full")

        monkeypatch.setattr(engine.store, "_write_atomic", fail)
        with pytest.raises(OSError):
            await engine.remove_mapping("F2")
        resolution = engine.resolve(NOTE_CONTEXT)
        assert (resolution.preset_id, resolution.cache_hit) == (b.id, True)

    async def test_resolution_during_write_sees_committed_rules(self, engine, monkeypatch):
        a, b = await projects_setup(engine)
        started = threading.Event()
        release = threading.Event()
        write = engine.store._write_atomic

        def paused_write(payload):
            started.set()
            release.wait(timeout=5)
            write(payload)

        monkeypatch.setattr(engine.store, "_write_atomic", paused_write)
        removal = asyncio.create_task(engine.remove_mapping("F2"))
        try:
            assert await asyncio.to_thread(started.wait, 5)
            during = engine.resolve(NOTE_CONTEXT)
            assert (during.preset_id, during.mapping_id) == (b.id, "F2")
        finally:
            release.set()
            await removal

        after = engine.resolve(NOTE_CONTEXT)
        assert (after.preset_id, after.cache_hit) == (a.id, False)

    async def test_priority_list_is_pruned(self, engine):
        await projects_setup(engine)
        await engine.update_priority_list(["F2", "does-not-exist"])
        assert engine.get_priority_list() == ["F2"]


class TestDefaultPresetInvariant:
    """Deleting the default without a replacement."""

    async def test_unmatched_resolution_fails_loudly(self, engine):
        await engine.delete_preset(engine.store.default_preset_id)
        with pytest.raises(InvariantViolationError):
            engine.resolve(Context(folder_path="/Nowhere"))

    async def test_matched_resolution_still_works(self, engine):
        a, b = await projects_setup(engine)
        await engine.delete_preset(engine.store.default_preset_id)
        assert engine.resolve_preset_for_context(NOTE_CONTEXT) == b.id

    async def test_assigning_new_default_recovers(self, engine):
        a, b = await projects_setup(engine)
        await engine.delete_preset(engine.store.default_preset_id)
        await engine.store.set_default_preset(a.id)
        assert engine.resolve_preset_for_context(Context(folder_path="/Nowhere")) == a.id


class TestApplication:
    """Applying resolved presets."""

    async def test_apply_resolution(self, engine):
        a, b = await projects_setup(engine)
        live = engine.apply_resolution(engine.resolve(NOTE_CONTEXT))
        assert live["lastActivePresetId"] == b.id

    async def test_apply_stale_resolution(self, engine):
        a, b = await projects_setup(engine)
        resolution = engine.resolve(NOTE_CONTEXT)
        await engine.delete_preset(b.id)
        with pytest.raises(StaleReferenceError):
            engine.apply_resolution(resolution)

    async def test_stale_reference_is_a_not_found_error(self, engine):
        a, b = await projects_setup(engine)
        resolution = engine.resolve(NOTE_CONTEXT)
        await engine.delete_preset(b.id)
        with pytest.raises(NotFoundError):
            engine.apply_resolution(resolution)

    async def test_apply_unknown_preset(self, engine):
        with pytest.raises(NotFoundError):
            engine.apply_preset("missing")

    async def test_context_change_applies_new_winner_once(self, engine):
        refreshed = []
        engine.applier.add_refresh_callback(lambda preset_id, config: refreshed.append(preset_id))
        a, b = await projects_setup(engine)

        first = engine.handle_context_change(NOTE_CONTEXT)
        second = engine.handle_context_change(NOTE_CONTEXT)

        assert first.applied is True
        assert second.applied is False
        assert refreshed == [b.id]
        assert engine.last_applied_preset_id == b.id

    async def test_context_change_reapplies_edited_active_preset(self, engine):
        a, b = await projects_setup(engine)
        engine.handle_context_change(NOTE_CONTEXT)
        assert engine.applier.live.snapshot()["layoutConfig"]["cardWidth"] == 300

        record = b.as_record()
        record["configBundle"]["layoutConfig"]["cardWidth"] = 999
        await engine.update_preset(record)
        change = engine.handle_context_change(NOTE_CONTEXT)

        assert change.applied is True
        assert change.resolution.preset_id == b.id
        assert engine.applier.live.snapshot()["layoutConfig"]["cardWidth"] == 999
        assert engine.handle_context_change(NOTE_CONTEXT).applied is False

    async def test_context_change_without_auto_apply(self, store_path):
        engine = PresetEngine(PresetStore(store_path), auto_apply=False)
        await engine.load()
        change = engine.handle_context_change(Context())
        assert change.applied is False
        assert engine.last_applied_preset_id is None
        assert change.as_payload()["resolution"]["preset_id"] == engine.store.default_preset_id


class TestFromSettings:
    """Building an engine from configuration settings."""

    async def test_settings_are_wired_through(self, tmp_path):
        settings = PresetSettings(
            store_path=tmp_path / "store.json",
            global_only_keys=("debugMode",),
            auto_apply=False,
            cache_size=4,
            mapping_priority_tiebreak=False,
            live_config={"debugMode": True},
        )
        engine = PresetEngine.from_settings(settings)
        await engine.load()

        assert (tmp_path / "store.json").exists()
        assert engine.auto_apply is False
        assert engine.resolver.config.mapping_priority_tiebreak is False
        live = engine.apply_preset(engine.store.default_preset_id)
        assert live["debugMode"] is True
