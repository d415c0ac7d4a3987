"""Pydantic input models for MCP tool validation.

Each model represents the input schema for one tool, with field-level
validation and descriptive error messages. Invalid inputs are rejected
before any preset store call is made.

Architecture:
- base: Base models (BaseNoteInput, BasePresetInput, BaseMappingInput)
- preset_models: Input models for preset management
- mapping_models: Input models for mappings and the priority list
- resolution_models: Input models for resolving and applying presets
"""

from .base import BaseMappingInput, BaseNoteInput, BasePresetInput
from .preset_models import (
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
from .mapping_models import (
    AddMappingInput,
    UpdateMappingInput,
    RemoveMappingInput,
    GetPriorityListInput,
    UpdatePriorityListInput,
)
from .resolution_models import (
    ResolveNoteInput,
    ResolveContextInput,
    ApplyPresetInput,
    GetLiveConfigInput,
)

__all__ = [
    # Base models
    "BaseNoteInput",
    "BasePresetInput",
    "BaseMappingInput",
    # Preset models
    "ListPresetsInput",
    "GetPresetInput",
    "CreatePresetInput",
    "UpdatePresetInput",
    "DeletePresetInput",
    "DuplicatePresetInput",
    "SetDefaultPresetInput",
    "ExportPresetsInput",
    "ImportPresetsInput",
    # Mapping models
    "AddMappingInput",
    "UpdateMappingInput",
    "RemoveMappingInput",
    "GetPriorityListInput",
    "UpdatePriorityListInput",
    # Resolution models
    "ResolveNoteInput",
    "ResolveContextInput",
    "ApplyPresetInput",
    "GetLiveConfigInput",
]
