"""Mapping and priority list MCP tools.

All tools delegate to the shared PresetEngine from card_navigator.session.
"""
from __future__ import annotations

from typing import Any

from card_navigator.server import mcp
from card_navigator.session import get_engine
from card_navigator.models import (
    AddMappingInput,
    UpdateMappingInput,
    RemoveMappingInput,
    GetPriorityListInput,
    UpdatePriorityListInput,
)


def _mapping_payload(mapping: Any) -> dict[str, Any]:
    payload = mapping.model_dump(mode="json", by_alias=True, exclude_none=True)
    payload["presetId"] = mapping.preset_id
    return payload


# ==============================================================================
# MAPPINGS
# ==============================================================================

@mcp.tool()
async def add_mapping(input: AddMappingInput) -> dict[str, Any]:
    """Attach a folder, tag, date or property mapping to a preset.

    Args:
        input (AddMappingInput): Validated input containing:
            - preset_id (str): Owning preset
            - mapping (dict): Mapping record (see field description)

    Returns:
        {"mapping": dict, "status": "added"}

    Examples:
        - Folder and subfolders: {"type": "folder", "value": "/Projects", "includeSubfolders": true}
        - Tag: {"type": "tag", "value": "meeting"}
        - Follow-up: update_priority_list() when the mapping must beat deeper folders

    Error Handling:
        - Unknown preset_id → NotFoundError
        - Mapping id already used → ValidationError
    """
    engine = await get_engine()
    mapping = await engine.add_mapping(input.preset_id, input.mapping)
    return {"mapping": _mapping_payload(mapping), "status": "added"}


@mcp.tool()
async def update_mapping(input: UpdateMappingInput) -> dict[str, Any]:
    """Change fields of an existing mapping, keeping its id and owner."""
    engine = await get_engine()
    mapping = await engine.store.update_mapping(input.mapping_id, input.changes)
    return {"mapping": _mapping_payload(mapping), "status": "updated"}


@mcp.tool()
async def remove_mapping(input: RemoveMappingInput) -> dict[str, Any]:
    """Delete a mapping and drop it from the priority list."""
    engine = await get_engine()
    await engine.remove_mapping(input.mapping_id)
    return {"mapping_id": input.mapping_id, "status": "removed"}


# ==============================================================================
# PRIORITY LIST
# ==============================================================================

@mcp.tool()
async def get_priority_list(input: GetPriorityListInput) -> dict[str, Any]:
    """Return the global priority list, most preferred mapping first."""
    engine = await get_engine()
    priority = engine.get_priority_list()
    return {"mapping_ids": priority, "count": len(priority)}


@mcp.tool()
async def update_priority_list(input: UpdatePriorityListInput) -> dict[str, Any]:
    """Replace the priority list.

    Mappings on the list beat every unlisted match regardless of folder depth;
    the earliest listed match wins. Unknown ids are dropped and reported.
    """
    engine = await get_engine()
    kept = await engine.update_priority_list(input.mapping_ids)
    dropped = [mapping_id for mapping_id in input.mapping_ids if mapping_id not in kept]
    return {"mapping_ids": kept, "dropped": dropped, "status": "updated"}
