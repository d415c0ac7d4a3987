"""Pydantic input models for resolving and applying presets."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator

from .base import BaseNoteInput, BasePresetInput


class ResolveNoteInput(BaseNoteInput):
    """Input model for resolve_preset_for_note tool.

    Examples:
        >>> ResolveNoteInput(title="Projects/Personal/notes")
        >>> ResolveNoteInput(title="Daily Notes/2025-10-27", apply=True)
    """

    apply: bool = Field(
        False,
        description=(
            "Treat the note as the newly active note: apply the winner when "
            "auto-apply is on and it differs from the last applied preset."
        )
    )

    class Config:
        """Pydantic model configuration."""
        json_schema_extra = {
            "examples": [
                {"title": "Projects/Personal/notes"},
                {"title": "Daily Notes/2025-10-27", "vault": "work", "apply": True},
            ]
        }


class ResolveContextInput(BaseModel):
    """Input model for resolve_preset_for_context tool.

    Describes a note's location directly instead of reading it from a vault.
    """

    folder_path: str = Field(
        "/",
        description="Folder holding the note, e.g. '/Projects/Personal'. '/' is the vault root.",
        examples=["/Projects/Personal", "/"]
    )
    tags: list[str] = Field(
        default_factory=list,
        description="Note tags, with or without a leading '#'. Matching is case-sensitive.",
        examples=[["project", "meeting"]]
    )
    properties: dict[str, Any] = Field(
        default_factory=dict,
        description="Frontmatter properties. Only string values can match property mappings.",
        examples=[{"status": "draft"}]
    )
    reference_date: Optional[datetime] = Field(
        None,
        description="Date used by date mappings (ISO-8601)."
    )

    @field_validator('folder_path')
    @classmethod
    def validate_folder_path(cls, v: str) -> str:
        parts = v.replace("\\", "/").split("/")
        if any(part == ".." for part in parts):
            raise ValueError(f"Folder path cannot contain '..' segments: '{v}'")
        return v.strip() or "/"

    class Config:
        """Pydantic model configuration."""
        json_schema_extra = {
            "examples": [
                {"folder_path": "/Projects/Personal"},
                {"folder_path": "/", "tags": ["meeting"], "reference_date": "2024-01-31T00:00:00"},
            ]
        }


class ApplyPresetInput(BasePresetInput):
    """Input model for apply_preset tool."""


class GetLiveConfigInput(BaseModel):
    """Input model for get_live_config tool. Takes no parameters."""

    class Config:
        """Pydantic model configuration."""
        json_schema_extra = {
            "examples": [{}]
        }
