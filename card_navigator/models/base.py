"""Base Pydantic models for MCP tool input validation.

This module defines base models that provide common validation patterns
for note, preset and mapping operations. Other input models inherit from
these bases.

Base Models:
- BaseNoteInput: Common validation for tools that read a vault note
- BasePresetInput: Common validation for tools addressing one preset
- BaseMappingInput: Common validation for tools addressing one mapping
"""

from __future__ import annotations

from typing import Optional
from pydantic import BaseModel, Field, field_validator


def _clean_identifier(v: str, label: str) -> str:
    cleaned = v.strip()
    if not cleaned:
        raise ValueError(
            f"{label} id cannot be empty. "
            f"Use list_presets() to discover valid {label.lower()} ids."
        )
    return cleaned


class BaseNoteInput(BaseModel):
    """Base model for tools that build a context from a vault note.

    Provides standard validation for note identifiers and vault names.
    """

    title: str = Field(
        min_length=1,
        description=(
            "Note identifier (path without .md extension). "
            "Examples: 'Daily Notes/2025-10-27', 'Projects/New Project'. "
            "Forward slashes for folders, case-sensitive."
        ),
        examples=["Daily Notes/2025-10-27", "Projects/Personal/notes", "README"]
    )

    vault: Optional[str] = Field(
        None,
        description="Vault name from navigator.yaml (omit to use the default vault)."
    )

    @field_validator('title')
    @classmethod
    def validate_title(cls, v: str) -> str:
        """Validate note title for safety and format.

        Enforces:
        - Non-empty title
        - No path traversal attempts (.., .)
        - Relative path only (no absolute paths)
        - Strips .md extension if present

        Raises:
            ValueError: If title contains invalid characters or patterns
        """
        cleaned = v.strip()

        if not cleaned:
            raise ValueError(
                "Note title cannot be empty. "
                "Provide a valid note identifier like 'Daily Notes/2025-10-27'."
            )

        parts = cleaned.split("/")
        if any(part in {".", ".."} for part in parts):
            raise ValueError(
                "Note title cannot contain '.' or '..' path segments. "
                f"Invalid title: '{cleaned}'"
            )

        if cleaned.startswith("/"):
            raise ValueError(
                "Note title must be a relative path within the vault. "
                "Do not start with '/'. "
                f"Invalid title: '{cleaned}'"
            )

        if cleaned.endswith(".md"):
            cleaned = cleaned[:-3]

        if not cleaned:
            raise ValueError(
                "Note title cannot be just '.md'. "
                "Provide a valid note name."
            )

        return cleaned

    @field_validator('vault')
    @classmethod
    def validate_vault(cls, v: Optional[str]) -> Optional[str]:
        """Reject blank vault names; ``None`` selects the default vault."""
        if v is not None and not v.strip():
            raise ValueError(
                "Vault name cannot be empty. "
                "Either omit the vault parameter to use the default vault, "
                "or provide a vault name from navigator.yaml."
            )

        return v.strip() if v else None


class BasePresetInput(BaseModel):
    """Base model for operations on a single preset."""

    preset_id: str = Field(
        min_length=1,
        description="Preset id as returned by list_presets().",
        examples=["3f2c9a61d0e84b7f9c1e5a2b7d4f6e80"]
    )

    @field_validator('preset_id')
    @classmethod
    def validate_preset_id(cls, v: str) -> str:
        return _clean_identifier(v, "Preset")


class BaseMappingInput(BaseModel):
    """Base model for operations on a single mapping."""

    mapping_id: str = Field(
        min_length=1,
        description="Mapping id as returned by get_preset() or add_mapping().",
        examples=["b81e0c2f4a9d4c36a3f7e25d90c1b4aa"]
    )

    @field_validator('mapping_id')
    @classmethod
    def validate_mapping_id(cls, v: str) -> str:
        return _clean_identifier(v, "Mapping")
