"""Data models for presets, mappings, resolution contexts and configuration.

Persisted shapes (presets, mappings, the store document) are pydantic models
so the JSON backing file is validated on load and serialized with the
camelCase field names the plugin has always written. Runtime-only values
(contexts, vault metadata, settings) are plain dataclasses.
"""

from __future__ import annotations

import re
import uuid
from collections.abc import Mapping as MappingABC
from dataclasses import dataclass, field
from datetime import date, datetime, time
from pathlib import Path
from types import MappingProxyType
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    field_validator,
    model_validator,
)

from card_navigator.constants import STORE_FORMAT_VERSION

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def new_id() -> str:
    """Return a fresh opaque identifier."""
    return uuid.uuid4().hex


def normalize_tag(tag: str) -> str:
    """Strip whitespace and the leading ``#`` Obsidian shows on tags."""
    return str(tag).strip().lstrip("#").strip()


def to_naive_local(value: datetime) -> datetime:
    """Convert timezone-aware datetimes to naive local time; pass naive ones through."""
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def parse_iso_datetime(text: str) -> datetime:
    """Parse an ISO-8601 date or datetime string into a naive datetime.

    Raises:
        ValueError: If ``text`` is not ISO-8601.
    """
    cleaned = text.strip()
    if _DATE_ONLY.match(cleaned):
        return datetime.combine(date.fromisoformat(cleaned), time.min)
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"
    return to_naive_local(datetime.fromisoformat(cleaned))


# ==============================================================================
# MAPPINGS
# ==============================================================================


class _MappingBase(BaseModel):
    """Fields shared by every mapping kind."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    id: str = Field(default_factory=new_id, min_length=1)
    preset_id: Optional[str] = Field(None, alias="presetId", exclude=True)
    priority: Optional[int] = None
    enabled: bool = True

    @field_validator("id")
    @classmethod
    def validate_id(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError("Mapping id cannot be blank.")
        return cleaned


class FolderMapping(_MappingBase):
    """Matches notes inside ``value`` (and its subfolders when enabled)."""

    type: Literal["folder"] = "folder"
    value: str = Field(min_length=1)
    include_subfolders: bool = Field(False, alias="includeSubfolders")

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError("Folder mapping path cannot be empty. Use '/' for the vault root.")
        return cleaned

    @property
    def path(self) -> str:
        return self.value


class TagMapping(_MappingBase):
    """Matches notes carrying the tag ``value``."""

    type: Literal["tag"] = "tag"
    value: str = Field(min_length=1)
    include_subtags: bool = Field(False, alias="includeSubtags")

    @field_validator("value")
    @classmethod
    def validate_value(cls, v: str) -> str:
        cleaned = normalize_tag(v)
        if not cleaned:
            raise ValueError("Tag mapping value cannot be empty or just '#'.")
        return cleaned


class DateRange(BaseModel):
    """Inclusive ``[start, end]`` range of ISO-8601 bounds.

    Bounds are kept as the strings they were written with so the backing file
    round-trips unchanged. A date-only bound covers the whole day.
    """

    start: str
    end: str

    @field_validator("start", "end", mode="before")
    @classmethod
    def validate_bound(cls, v: Any) -> str:
        if isinstance(v, (date, datetime)):
            v = v.isoformat()
        if not isinstance(v, str):
            raise ValueError("Date bounds must be ISO-8601 strings.")
        cleaned = v.strip()
        try:
            parse_iso_datetime(cleaned)
        except ValueError as exc:
            raise ValueError(f"'{cleaned}' is not an ISO-8601 date or datetime.") from exc
        return cleaned

    @model_validator(mode="after")
    def validate_order(self) -> "DateRange":
        if self.lower_bound > self.upper_bound:
            raise ValueError(f"Date range start {self.start} is after end {self.end}.")
        return self

    @property
    def lower_bound(self) -> datetime:
        return parse_iso_datetime(self.start)

    @property
    def upper_bound(self) -> datetime:
        if _DATE_ONLY.match(self.end):
            return datetime.combine(date.fromisoformat(self.end), time.max)
        return parse_iso_datetime(self.end)

    @property
    def day_granular(self) -> bool:
        """True when both bounds are whole days."""
        return bool(_DATE_ONLY.match(self.start) and _DATE_ONLY.match(self.end))

    def contains(self, moment: datetime) -> bool:
        return self.lower_bound <= to_naive_local(moment) <= self.upper_bound


class DateMapping(_MappingBase):
    """Matches notes whose reference date falls inside ``date_range``."""

    type: Literal["date"] = "date"
    date_range: DateRange = Field(alias="dateRange")


class PropertyMatch(BaseModel):
    """Frontmatter property name and the exact string value it must hold."""

    name: str = Field(min_length=1)
    value: str

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError("Property name cannot be empty.")
        return cleaned


class PropertyMapping(_MappingBase):
    """Matches notes whose frontmatter ``match.name`` equals ``match.value``."""

    type: Literal["property"] = "property"
    match: PropertyMatch = Field(alias="property")


Mapping = Annotated[
    Union[FolderMapping, TagMapping, DateMapping, PropertyMapping],
    Field(discriminator="type"),
]
MAPPING_ADAPTER: TypeAdapter[Any] = TypeAdapter(Mapping)

# Python field name -> persisted alias, across every mapping variant.
MAPPING_FIELD_ALIASES: dict[str, str] = {
    name: info.alias
    for model in (FolderMapping, TagMapping, DateMapping, PropertyMapping)
    for name, info in model.model_fields.items()
    if info.alias
}


# ==============================================================================
# PRESETS
# ==============================================================================


class ConfigBundle(BaseModel):
    """Opaque configuration applied when a preset wins.

    Only the presence of the three required sections is checked; their
    contents, and any extra sections, are passed through untouched.
    """

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    card_set_config: dict[str, Any] = Field(alias="cardSetConfig")
    layout_config: dict[str, Any] = Field(alias="layoutConfig")
    card_render_config: dict[str, Any] = Field(alias="cardRenderConfig")

    def as_config(self) -> dict[str, Any]:
        """Return the bundle as a plain dictionary keyed by persisted names."""
        return self.model_dump(by_alias=True)


class Preset(BaseModel):
    """A named configuration bundle plus the mappings that select it."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    id: str = Field(default_factory=new_id, min_length=1)
    name: str = Field(min_length=1)
    description: Optional[str] = None
    config_bundle: ConfigBundle = Field(alias="configBundle")
    mappings: list[Mapping] = Field(default_factory=list)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError("Preset name cannot be empty.")
        return cleaned

    @model_validator(mode="after")
    def bind_mappings(self) -> "Preset":
        seen: set[str] = set()
        for mapping in self.mappings:
            if mapping.id in seen:
                raise ValueError(f"Duplicate mapping id '{mapping.id}' in preset '{self.name}'.")
            seen.add(mapping.id)
        self.mappings = [
            m if m.preset_id == self.id else m.model_copy(update={"preset_id": self.id})
            for m in self.mappings
        ]
        return self

    def get_mapping(self, mapping_id: str) -> Optional[Any]:
        return next((m for m in self.mappings if m.id == mapping_id), None)

    def as_record(self) -> dict[str, Any]:
        """Return the persisted JSON record for this preset."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class PresetStoreDocument(BaseModel):
    """Top-level shape of the backing JSON file."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: int = STORE_FORMAT_VERSION
    default_preset_id: Optional[str] = Field(None, alias="defaultPresetId")
    presets: list[Preset] = Field(default_factory=list)
    priority: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_ids(self) -> "PresetStoreDocument":
        preset_ids: set[str] = set()
        mapping_ids: set[str] = set()
        for preset in self.presets:
            if preset.id in preset_ids:
                raise ValueError(f"Duplicate preset id '{preset.id}'.")
            preset_ids.add(preset.id)
            for mapping in preset.mappings:
                if mapping.id in mapping_ids:
                    raise ValueError(f"Mapping id '{mapping.id}' is used by more than one preset.")
                mapping_ids.add(mapping.id)
        return self


# ==============================================================================
# RUNTIME VALUES
# ==============================================================================


@dataclass(frozen=True)
class Context:
    """Where a note sits: folder, tags, frontmatter properties and reference date.

    Built fresh for every resolution and never persisted. Tags are stored
    without a leading ``#``; any further normalization (case folding, for
    instance) is the job of whoever builds the context.
    """

    folder_path: str = ""
    tags: frozenset[str] = frozenset()
    properties: MappingABC[str, Any] = field(default_factory=dict)
    reference_date: Optional[datetime] = None

    def __post_init__(self) -> None:
        tags = frozenset(t for t in (normalize_tag(tag) for tag in self.tags) if t)
        object.__setattr__(self, "tags", tags)
        object.__setattr__(self, "properties", MappingProxyType(dict(self.properties)))
        moment = self.reference_date
        if isinstance(moment, date) and not isinstance(moment, datetime):
            moment = datetime.combine(moment, time.min)
        if moment is not None:
            moment = to_naive_local(moment)
        object.__setattr__(self, "reference_date", moment)


@dataclass(frozen=True)
class VaultMetadata:
    """Normalized metadata describing an Obsidian vault."""

    name: str
    path: Path
    description: str
    exists: bool

    def as_payload(self) -> dict[str, Any]:
        """Return a serializable payload representation."""
        return {
            "name": self.name,
            "path": str(self.path),
            "description": self.description,
            "exists": self.path.is_dir(),
        }


class VaultConfiguration:
    """Holds vault metadata and default resolution helpers."""

    def __init__(self, default_vault: str, vaults: dict[str, VaultMetadata]) -> None:
        self.default_vault = default_vault
        self.vaults = vaults

    def get(self, name: str) -> VaultMetadata:
        """Get vault metadata by name.

        Raises:
            ValueError: If the vault name is not found in configuration.
        """
        try:
            return self.vaults[name]
        except KeyError as exc:
            raise ValueError(f"Unknown vault '{name}'") from exc

    def as_payload(self) -> dict[str, Any]:
        return {
            "default": self.default_vault,
            "vaults": [vault.as_payload() for vault in self.vaults.values()],
        }


@dataclass(frozen=True)
class PresetSettings:
    """Engine settings read from the ``presets`` section of navigator.yaml."""

    store_path: Path
    global_only_keys: tuple[str, ...]
    auto_apply: bool = True
    cache_size: int = 1_024
    mapping_priority_tiebreak: bool = True
    casefold_tags: bool = False
    live_config: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class NavigatorConfiguration:
    """Everything loaded from navigator.yaml."""

    vaults: VaultConfiguration
    presets: PresetSettings
