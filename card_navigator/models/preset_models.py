"""Pydantic input models for preset management operations.

This module defines input models for preset CRUD tools:
- List and read presets
- Create, update, duplicate and delete presets
- Designate the default preset
- Export and import presets
"""

from __future__ import annotations

from typing import Any, Optional
from pydantic import BaseModel, Field, field_validator, model_validator

from .base import BasePresetInput

_BUNDLE_SECTIONS = ("cardSetConfig", "layoutConfig", "cardRenderConfig")

_EXAMPLE_BUNDLE = {
    "cardSetConfig": {"type": "activeFolder", "includeSubfolders": True},
    "layoutConfig": {"type": "grid", "cardWidth": 280},
    "cardRenderConfig": {"showBody": False},
}


def _validate_bundle(bundle: dict[str, Any]) -> dict[str, Any]:
    missing = [section for section in _BUNDLE_SECTIONS if section not in bundle]
    if missing:
        raise ValueError(
            f"Configuration bundle is missing required sections: {', '.join(missing)}. "
            "A bundle needs cardSetConfig, layoutConfig and cardRenderConfig objects."
        )
    return bundle


class ListPresetsInput(BaseModel):
    """Input model for list_presets tool.

    Examples:
        >>> ListPresetsInput()
        >>> ListPresetsInput(include_mappings=True)
    """

    include_mappings: bool = Field(
        False,
        description="Include each preset's mappings in the listing."
    )

    class Config:
        """Pydantic model configuration."""
        json_schema_extra = {
            "examples": [{}, {"include_mappings": True}]
        }


class GetPresetInput(BasePresetInput):
    """Input model for get_preset tool."""

    class Config:
        """Pydantic model configuration."""
        json_schema_extra = {
            "examples": [{"preset_id": "3f2c9a61d0e84b7f9c1e5a2b7d4f6e80"}]
        }


class CreatePresetInput(BaseModel):
    """Input model for create_preset tool.

    Examples:
        >>> CreatePresetInput(name="Projects", config_bundle={...})
    """

    name: str = Field(
        min_length=1,
        description="Display name of the preset.",
        examples=["Projects", "Daily notes"]
    )
    description: Optional[str] = Field(
        None,
        description="Optional free-text description."
    )
    config_bundle: dict[str, Any] = Field(
        description=(
            "Configuration applied when the preset wins. Must contain "
            "cardSetConfig, layoutConfig and cardRenderConfig objects; extra "
            "sections are kept as-is."
        ),
        examples=[_EXAMPLE_BUNDLE]
    )
    mappings: list[dict[str, Any]] = Field(
        default_factory=list,
        description="Initial mappings, in the same shape add_mapping() accepts."
    )

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError("Preset name cannot be empty.")
        return cleaned

    @field_validator('config_bundle')
    @classmethod
    def validate_config_bundle(cls, v: dict[str, Any]) -> dict[str, Any]:
        return _validate_bundle(v)

    class Config:
        """Pydantic model configuration."""
        json_schema_extra = {
            "examples": [
                {"name": "Projects", "config_bundle": _EXAMPLE_BUNDLE},
                {
                    "name": "Journal",
                    "description": "Daily notes in a single column",
                    "config_bundle": _EXAMPLE_BUNDLE,
                    "mappings": [{"type": "folder", "value": "/Journal", "includeSubfolders": True}],
                },
            ]
        }


class UpdatePresetInput(BasePresetInput):
    """Input model for update_preset tool.

    Only the supplied fields change; mappings are managed with the mapping
    tools.
    """

    name: Optional[str] = Field(None, description="New display name.")
    description: Optional[str] = Field(None, description="New description.")
    config_bundle: Optional[dict[str, Any]] = Field(
        None,
        description="Replacement configuration bundle (all three sections required)."
    )

    @field_validator('config_bundle')
    @classmethod
    def validate_config_bundle(cls, v: Optional[dict[str, Any]]) -> Optional[dict[str, Any]]:
        return _validate_bundle(v) if v is not None else None

    @model_validator(mode="after")
    def validate_has_changes(self) -> "UpdatePresetInput":
        if self.name is None and self.description is None and self.config_bundle is None:
            raise ValueError("Provide at least one of name, description or config_bundle.")
        return self

    class Config:
        """Pydantic model configuration."""
        json_schema_extra = {
            "examples": [
                {"preset_id": "3f2c9a61d0e84b7f9c1e5a2b7d4f6e80", "name": "Work projects"}
            ]
        }


class DeletePresetInput(BasePresetInput):
    """Input model for delete_preset tool."""

    new_default_id: Optional[str] = Field(
        None,
        description=(
            "Preset that becomes the default when the deleted preset is the "
            "current default. Without it, unmatched notes fail to resolve until "
            "set_default_preset() is called."
        )
    )

    class Config:
        """Pydantic model configuration."""
        json_schema_extra = {
            "examples": [
                {"preset_id": "3f2c9a61d0e84b7f9c1e5a2b7d4f6e80"},
                {
                    "preset_id": "3f2c9a61d0e84b7f9c1e5a2b7d4f6e80",
                    "new_default_id": "a0d1c4e7f2b94e3a8c6d5b1f0e9a7c32",
                },
            ]
        }


class DuplicatePresetInput(BasePresetInput):
    """Input model for duplicate_preset tool."""

    name: Optional[str] = Field(
        None,
        description="Name of the copy (defaults to '<name> (copy)')."
    )


class SetDefaultPresetInput(BasePresetInput):
    """Input model for set_default_preset tool."""


class ExportPresetsInput(BaseModel):
    """Input model for export_presets tool."""

    preset_id: Optional[str] = Field(
        None,
        description="Export one preset record; omit to export the whole store."
    )


class ImportPresetsInput(BaseModel):
    """Input model for import_presets tool."""

    payload: dict[str, Any] = Field(
        description=(
            "A preset record from export_presets(preset_id=...), or a whole "
            "store document when replace_all is true."
        )
    )
    replace_all: bool = Field(
        False,
        description="Replace every preset, mapping and the priority list with the document."
    )
