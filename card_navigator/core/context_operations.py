"""Build resolution contexts from vault notes."""

from __future__ import annotations

import logging
import platform
import re
from collections.abc import Mapping
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional

import frontmatter
import yaml

from card_navigator.core.vault_operations import (
    ensure_vault_ready,
    note_display_name,
    note_folder,
    resolve_note_path,
)
from card_navigator.data_models import Context, VaultMetadata, normalize_tag, parse_iso_datetime

logger = logging.getLogger(__name__)

_FENCED_CODE = re.compile(r"^(```|~~~).*?^\1", re.MULTILINE | re.DOTALL)
_INLINE_CODE = re.compile(r"`[^`\n]*`")
# Obsidian tags need at least one non-digit character.
_INLINE_TAG = re.compile(r"(?<![\w#/&])#([\w/-]*[^\W\d][\w/-]*)")

CREATED_PROPERTY = "created"


# ==============================================================================
# HELPER FUNCTIONS
# ==============================================================================


def _parse_frontmatter(text: str) -> tuple[dict[str, Any], str]:
    """Extract YAML frontmatter metadata and note body from raw text.

    Raises:
        ValueError: If the frontmatter block exists but cannot be parsed as YAML.
    """
    if not text:
        return {}, ""

    try:
        post = frontmatter.loads(text)
    except yaml.YAMLError as exc:
        raise ValueError(f"Frontmatter contains invalid YAML: {exc}") from exc

    metadata = dict(post.metadata or {})
    content = post.content if post.content is not None else ""
    return metadata, content


def _frontmatter_tags(metadata: Mapping[str, Any]) -> list[str]:
    """Tags declared in frontmatter, given as a list or a single string."""
    raw = metadata.get("tags", [])
    if isinstance(raw, str):
        candidates = [part for part in re.split(r"[,\s]+", raw) if part]
    elif isinstance(raw, list):
        candidates = [str(tag) for tag in raw if tag is not None]
    else:
        candidates = []
    return [normalize_tag(tag) for tag in candidates]


def _inline_tags(body: str) -> list[str]:
    """``#tags`` written in the note body, ignoring code spans and blocks."""
    text = _INLINE_CODE.sub("", _FENCED_CODE.sub("", body))
    return [match.group(1).rstrip("/") for match in _INLINE_TAG.finditer(text)]


def _render_property(value: Any) -> Optional[str]:
    """Render a scalar frontmatter value as the string mappings compare against."""
    if value is None or isinstance(value, (list, dict)):
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _created_from_metadata(metadata: Mapping[str, Any]) -> Optional[datetime]:
    value = metadata.get(CREATED_PROPERTY)
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime.combine(value, datetime.min.time())
    if isinstance(value, str):
        try:
            return parse_iso_datetime(value)
        except ValueError:
            logger.debug("Ignoring unparseable '%s' property: %s", CREATED_PROPERTY, value)
    return None


def _file_created(note_path: Path) -> datetime:
    """Creation time as far as the host filesystem reports one."""
    stat = note_path.stat()
    if platform.system() in ("Darwin", "Windows"):
        return datetime.fromtimestamp(stat.st_ctime)
    if hasattr(stat, "st_birthtime"):
        return datetime.fromtimestamp(stat.st_birthtime)
    return datetime.fromtimestamp(stat.st_ctime)


# ==============================================================================
# CONTEXT OPERATIONS
# ==============================================================================


def context_from_metadata(
    folder_path: str,
    metadata: Mapping[str, Any],
    body: str = "",
    reference_date: Optional[datetime] = None,
    casefold_tags: bool = False,
) -> Context:
    """Build a :class:`Context` from already-parsed note data.

    Args:
        folder_path: Vault-relative folder holding the note.
        metadata: Frontmatter mapping.
        body: Markdown body, scanned for inline tags.
        reference_date: Fallback when frontmatter has no usable ``created``.
        casefold_tags: Lower-case every tag so tag mappings match regardless
            of case. Tag mapping values must then be written in lower case.
    """
    tags = [tag for tag in _frontmatter_tags(metadata) + _inline_tags(body) if tag]
    if casefold_tags:
        tags = [tag.casefold() for tag in tags]

    properties = {}
    for name, value in metadata.items():
        rendered = _render_property(value)
        if rendered is not None:
            properties[str(name)] = rendered

    created = _created_from_metadata(metadata)
    return Context(
        folder_path=folder_path,
        tags=frozenset(tags),
        properties=properties,
        reference_date=created if created is not None else reference_date,
    )


def extract_context(vault: VaultMetadata, title: str, casefold_tags: bool = False) -> Context:
    """Read a vault note and describe where it sits.

    Args:
        vault: Vault metadata.
        title: Note identifier (path without ``.md``).
        casefold_tags: See :func:`context_from_metadata`.

    Raises:
        FileNotFoundError: If the vault or note doesn't exist.
        ValueError: If the note escapes the vault, is not UTF-8 or has
            invalid frontmatter.
    """
    ensure_vault_ready(vault)
    note_path = resolve_note_path(vault, title)
    if not note_path.is_file():
        raise FileNotFoundError(
            f"Note '{note_display_name(vault, note_path)}' not found in vault '{vault.name}'."
        )

    try:
        raw_text = note_path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise ValueError(
            f"Note '{note_display_name(vault, note_path)}' is not UTF-8 encoded and cannot be processed."
        ) from exc

    metadata, body = _parse_frontmatter(raw_text)
    context = context_from_metadata(
        note_folder(vault, note_path),
        metadata,
        body,
        reference_date=_file_created(note_path),
        casefold_tags=casefold_tags,
    )
    logger.debug(
        "Extracted context for note '%s' in vault '%s' (folder=%s, tags=%s)",
        note_display_name(vault, note_path),
        vault.name,
        context.folder_path,
        sorted(context.tags),
    )
    return context
