"""Resolution and application MCP tools.

These tools turn a note (or an explicit description of one) into the
preset that should drive the card view, and apply presets to the live
configuration.
"""
from __future__ import annotations

import asyncio
from typing import Any

from card_navigator.server import mcp
from card_navigator.session import get_configuration, get_engine, resolve_vault
from card_navigator.models import (
    ResolveNoteInput,
    ResolveContextInput,
    ApplyPresetInput,
    GetLiveConfigInput,
)
from card_navigator.core.context_operations import extract_context
from card_navigator.data_models import Context


def _context_payload(context: Context) -> dict[str, Any]:
    return {
        "folder_path": context.folder_path,
        "tags": sorted(context.tags),
        "properties": dict(context.properties),
        "reference_date": context.reference_date.isoformat() if context.reference_date else None,
    }


@mcp.tool()
async def resolve_preset_for_note(input: ResolveNoteInput) -> dict[str, Any]:
    """Resolve which preset a vault note selects.

    Reads the note's folder, tags, frontmatter and creation date, then
    applies explicit priority, folder depth and finally the default preset.

    Args:
        input (ResolveNoteInput): Validated input containing:
            - title (str): Note identifier
            - vault (str, optional): Vault name (omit for the default vault)
            - apply (bool): Treat the note as the newly active note

    Returns:
        {
            "vault": str,
            "note": str,
            "context": {"folder_path", "tags", "properties", "reference_date"},
            "resolution": {"preset_id", "mapping_id", "reason", "specificity",
                           "revision", "cache_hit"},
            "applied": bool
        }

    Error Handling:
        - Note not found → FileNotFoundError
        - Default preset deleted and nothing matches → InvariantViolationError
    """
    vault = resolve_vault(input.vault)
    casefold = get_configuration().presets.casefold_tags
    context = await asyncio.to_thread(extract_context, vault, input.title, casefold)
    engine = await get_engine()

    if input.apply:
        change = engine.handle_context_change(context)
        resolution, applied = change.resolution, change.applied
    else:
        resolution, applied = engine.resolve(context), False

    return {
        "vault": vault.name,
        "note": input.title,
        "context": _context_payload(context),
        "resolution": resolution.as_payload(),
        "applied": applied,
    }


@mcp.tool()
async def resolve_preset_for_context(input: ResolveContextInput) -> dict[str, Any]:
    """Resolve a preset for an explicitly described note location.

    Useful for previewing which preset a folder, tag set or date would
    select without a note existing there.
    """
    context = Context(
        folder_path=input.folder_path,
        tags=frozenset(input.tags),
        properties=input.properties,
        reference_date=input.reference_date,
    )
    engine = await get_engine()
    resolution = engine.resolve(context)
    return {
        "context": _context_payload(context),
        "resolution": resolution.as_payload(),
        "cache": engine.cache_stats().as_payload(),
    }


@mcp.tool()
async def apply_preset(input: ApplyPresetInput) -> dict[str, Any]:
    """Make a preset the active configuration.

    Global-only keys keep their current values.

    Error Handling:
        - Unknown or deleted preset_id → NotFoundError; re-resolve first
    """
    engine = await get_engine()
    live = engine.apply_preset(input.preset_id)
    return {"preset_id": input.preset_id, "live_config": live, "status": "applied"}


@mcp.tool()
async def get_live_config(input: GetLiveConfigInput) -> dict[str, Any]:
    """Show the configuration currently in effect."""
    engine = await get_engine()
    return {
        "last_active_preset_id": engine.last_applied_preset_id,
        "live_config": engine.applier.live.snapshot(),
        "global_only_keys": list(engine.applier.global_only_keys),
    }
