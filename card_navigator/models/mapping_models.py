"""Pydantic input models for mapping and priority list operations."""

from __future__ import annotations

from typing import Any
from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from card_navigator.data_models import MAPPING_ADAPTER

from .base import BaseMappingInput, BasePresetInput


class AddMappingInput(BasePresetInput):
    """Input model for add_mapping tool.

    The mapping is checked against the folder/tag/date/property shapes here,
    before the store is touched.

    Examples:
        >>> AddMappingInput(preset_id="...", mapping={"type": "tag", "value": "project"})
    """

    mapping: dict[str, Any] = Field(
        description=(
            "Mapping record. 'type' is one of folder, tag, date, property. "
            "folder: value, includeSubfolders. tag: value, includeSubtags. "
            "date: dateRange {start, end} (ISO-8601, inclusive). "
            "property: property {name, value}. Optional for all: id, priority, enabled."
        ),
        examples=[
            {"type": "folder", "value": "/Projects", "includeSubfolders": True},
            {"type": "tag", "value": "meeting"},
            {"type": "date", "dateRange": {"start": "2024-01-01", "end": "2024-01-31"}},
            {"type": "property", "property": {"name": "status", "value": "draft"}},
        ]
    )

    @field_validator('mapping')
    @classmethod
    def validate_mapping(cls, v: dict[str, Any]) -> dict[str, Any]:
        try:
            MAPPING_ADAPTER.validate_python(v)
        except PydanticValidationError as exc:
            raise ValueError(f"Invalid mapping: {exc}") from exc
        return v

    class Config:
        """Pydantic model configuration."""
        json_schema_extra = {
            "examples": [
                {
                    "preset_id": "3f2c9a61d0e84b7f9c1e5a2b7d4f6e80",
                    "mapping": {"type": "folder", "value": "/Projects", "includeSubfolders": True},
                }
            ]
        }


class UpdateMappingInput(BaseMappingInput):
    """Input model for update_mapping tool."""

    changes: dict[str, Any] = Field(
        description=(
            "Fields to change, e.g. {'enabled': false} or {'value': '/Archive'}. "
            "Persisted names (includeSubfolders) and field names (include_subfolders) are both accepted."
        ),
        examples=[{"enabled": False}, {"includeSubfolders": True}]
    )

    @field_validator('changes')
    @classmethod
    def validate_changes(cls, v: dict[str, Any]) -> dict[str, Any]:
        if not v:
            raise ValueError("Provide at least one field to change.")
        return v


class RemoveMappingInput(BaseMappingInput):
    """Input model for remove_mapping tool."""


class GetPriorityListInput(BaseModel):
    """Input model for get_priority_list tool. Takes no parameters."""

    class Config:
        """Pydantic model configuration."""
        json_schema_extra = {
            "examples": [{}]
        }


class UpdatePriorityListInput(BaseModel):
    """Input model for update_priority_list tool."""

    mapping_ids: list[str] = Field(
        description=(
            "Mapping ids, most preferred first. Ids without a live mapping are "
            "dropped. An empty list clears all explicit priorities."
        ),
        examples=[["b81e0c2f4a9d4c36a3f7e25d90c1b4aa", "0c5d7e9f1a2b4c6d8e0f1a3b5c7d9e1f"]]
    )

    @field_validator('mapping_ids')
    @classmethod
    def validate_mapping_ids(cls, v: list[str]) -> list[str]:
        return [mapping_id.strip() for mapping_id in v if mapping_id.strip()]
