"""Preset management MCP tools.

This module provides MCP tool wrappers for preset CRUD:
- List and read presets
- Create, update, duplicate and delete presets
- Designate the default preset
- Export and import presets

All tools delegate to the shared PresetEngine from card_navigator.session.
"""
from __future__ import annotations

import logging
from typing import Any

from card_navigator.server import mcp
from card_navigator.session import get_engine
from card_navigator.models import (
    ListPresetsInput,
    GetPresetInput,
    CreatePresetInput,
    UpdatePresetInput,
    DeletePresetInput,
    DuplicatePresetInput,
    SetDefaultPresetInput,
    ExportPresetsInput,
    ImportPresetsInput,
)
from card_navigator.errors import NotFoundError

logger = logging.getLogger(__name__)


def _summarize(preset: Any, default_id: str | None, include_mappings: bool) -> dict[str, Any]:
    record = preset.as_record()
    summary = {
        "id": preset.id,
        "name": preset.name,
        "description": preset.description,
        "is_default": preset.id == default_id,
        "mapping_count": len(preset.mappings),
    }
    if include_mappings:
        summary["mappings"] = record.get("mappings", [])
    return summary


# ==============================================================================
# PRESET QUERIES
# ==============================================================================

@mcp.tool()
async def list_presets(input: ListPresetsInput) -> dict[str, Any]:
    """List every preset in store order.

    Args:
        input (ListPresetsInput): Validated input containing:
            - include_mappings (bool): Include each preset's mappings

    Returns:
        {
            "default_preset_id": str | None,
            "presets": [{"id", "name", "description", "is_default", "mapping_count"}],
            "count": int
        }
    """
    engine = await get_engine()
    default_id = engine.store.default_preset_id
    presets = [
        _summarize(preset, default_id, input.include_mappings)
        for preset in engine.get_all_presets()
    ]
    return {"default_preset_id": default_id, "presets": presets, "count": len(presets)}


@mcp.tool()
async def get_preset(input: GetPresetInput) -> dict[str, Any]:
    """Return one preset's full record, including bundle and mappings.

    Error Handling:
        - Unknown preset_id → NotFoundError
    """
    engine = await get_engine()
    preset = engine.get_preset(input.preset_id)
    if preset is None:
        raise NotFoundError(f"Preset '{input.preset_id}' not found.")
    return {
        "preset": preset.as_record(),
        "is_default": preset.id == engine.store.default_preset_id,
    }


# ==============================================================================
# PRESET MUTATIONS
# ==============================================================================

@mcp.tool()
async def create_preset(input: CreatePresetInput) -> dict[str, Any]:
    """Create a preset and return it with its allocated id.

    Examples:
        - Use when: A folder or tag needs its own card layout
        - Follow-up: add_mapping() to decide which notes select the preset

    Error Handling:
        - Missing bundle sections → ValidationError before any write
        - Mapping id already in use → ValidationError
        - Store write failure → PersistenceError, nothing is saved
    """
    engine = await get_engine()
    preset = await engine.create_preset(
        {
            "name": input.name,
            "description": input.description,
            "configBundle": input.config_bundle,
            "mappings": input.mappings,
        }
    )
    return {"preset": preset.as_record(), "status": "created"}


@mcp.tool()
async def update_preset(input: UpdatePresetInput) -> dict[str, Any]:
    """Change a preset's name, description or configuration bundle.

    Fields that are omitted keep their current value. Mappings are left
    untouched.
    """
    engine = await get_engine()
    current = engine.get_preset(input.preset_id)
    if current is None:
        raise NotFoundError(f"Preset '{input.preset_id}' not found.")

    record = current.as_record()
    if input.name is not None:
        record["name"] = input.name
    if input.description is not None:
        record["description"] = input.description
    if input.config_bundle is not None:
        record["configBundle"] = input.config_bundle

    await engine.update_preset(record)
    updated = engine.get_preset(input.preset_id)
    return {"preset": updated.as_record(), "status": "updated"}


@mcp.tool()
async def delete_preset(input: DeletePresetInput) -> dict[str, Any]:
    """Delete a preset and all of its mappings.

    Deleting the default preset without new_default_id leaves no default;
    the response flags this so the caller can call set_default_preset().
    """
    engine = await get_engine()
    await engine.delete_preset(input.preset_id, input.new_default_id)
    default_id = engine.store.default_preset_id
    return {
        "preset_id": input.preset_id,
        "default_preset_id": default_id,
        "default_missing": not engine.store.has_preset(default_id or ""),
        "status": "deleted",
    }


@mcp.tool()
async def duplicate_preset(input: DuplicatePresetInput) -> dict[str, Any]:
    """Copy a preset, giving the copy and each of its mappings new ids."""
    engine = await get_engine()
    preset = await engine.store.duplicate_preset(input.preset_id, input.name)
    return {"preset": preset.as_record(), "source_id": input.preset_id, "status": "duplicated"}


@mcp.tool()
async def set_default_preset(input: SetDefaultPresetInput) -> dict[str, Any]:
    """Make a preset the fallback used when no mapping matches."""
    engine = await get_engine()
    await engine.store.set_default_preset(input.preset_id)
    return {"default_preset_id": input.preset_id, "status": "updated"}


# ==============================================================================
# EXPORT / IMPORT
# ==============================================================================

@mcp.tool()
async def export_presets(input: ExportPresetsInput) -> dict[str, Any]:
    """Export one preset record, or the whole store document."""
    engine = await get_engine()
    if input.preset_id:
        return {"preset": engine.store.export_preset(input.preset_id)}
    return {"document": engine.store.export_document()}


@mcp.tool()
async def import_presets(input: ImportPresetsInput) -> dict[str, Any]:
    """Import a preset record, or replace the store with a full document.

    Error Handling:
        - Malformed record or document → ValidationError, store unchanged
    """
    engine = await get_engine()
    if input.replace_all:
        await engine.store.import_document(input.payload)
        presets = engine.get_all_presets()
        logger.info("Replaced preset store with %s imported presets", len(presets))
        return {"count": len(presets), "status": "replaced"}

    preset = await engine.store.import_preset(input.payload)
    return {"preset": preset.as_record(), "status": "imported"}
