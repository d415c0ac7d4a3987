"""Vault path handling: note resolution and folder ancestry."""

from __future__ import annotations

from pathlib import Path, PurePosixPath

from card_navigator.data_models import VaultMetadata


def ensure_vault_ready(vault: VaultMetadata) -> None:
    """Ensure the target vault directory is accessible before performing operations.

    Raises:
        FileNotFoundError: If the vault path does not exist or is not a directory.
    """
    if not vault.path.is_dir():
        raise FileNotFoundError(f"Vault '{vault.name}' is not accessible at {vault.path}")


def construct_note_path(identifier: str) -> Path:
    """Construct a relative note path from a pre-validated identifier.

    Examples:
        >>> construct_note_path("My Note")
        PosixPath('My Note.md')
        >>> construct_note_path("Folder/My Note")
        PosixPath('Folder/My Note.md')
    """
    parts = identifier.split("/")
    leaf_with_extension = f"{parts[-1]}.md"
    if len(parts) == 1:
        return Path(leaf_with_extension)
    return Path(*parts[:-1]) / leaf_with_extension


def resolve_note_path(vault: VaultMetadata, title: str) -> Path:
    """Resolve a pre-validated note title to an absolute vault path.

    Raises:
        ValueError: If the resolved path escapes the vault root.
    """
    candidate = (vault.path / construct_note_path(title)).resolve(strict=False)
    vault_root = vault.path.resolve(strict=False)
    if not candidate.is_relative_to(vault_root):
        raise ValueError("Note path escapes the configured vault.")
    return candidate


def note_display_name(vault: VaultMetadata, path: Path) -> str:
    """Convert a note path into a normalized display name without extension."""
    relative = path.relative_to(vault.path.resolve(strict=False))
    return str(relative.with_suffix("")).replace("\\", "/")


def note_folder(vault: VaultMetadata, path: Path) -> str:
    """Return the vault-relative folder holding ``path`` as ``/``-separated text.

    The vault root is returned as ``"/"``.
    """
    relative = PurePosixPath(path.relative_to(vault.path.resolve(strict=False)).as_posix())
    parent = relative.parent.as_posix()
    return "/" if parent in {"", "."} else f"/{parent}"


# ==============================================================================
# FOLDER ANCESTRY
# ==============================================================================


def folder_segments(folder_path: str) -> tuple[str, ...]:
    """Split a folder path into its non-empty segments.

    Leading, trailing and doubled separators are ignored and backslashes are
    treated as separators, so ``"/Projects/"``, ``"Projects"`` and
    ``"\\Projects"`` all yield ``("Projects",)``. The vault root yields ``()``.
    """
    normalized = folder_path.replace("\\", "/")
    return tuple(part for part in normalized.split("/") if part and part != ".")


def is_descendant(candidate: tuple[str, ...], ancestor: tuple[str, ...]) -> bool:
    """True when ``candidate`` lies strictly below ``ancestor``.

    Comparison is by whole segments: ``/Proj`` is not an ancestor of
    ``/Project2``.
    """
    return len(candidate) > len(ancestor) and candidate[: len(ancestor)] == ancestor


def folder_ancestry(folder_path: str) -> list[tuple[str, ...]]:
    """Return ``folder_path`` and every ancestor up to the root, deepest first."""
    segments = folder_segments(folder_path)
    return [segments[:depth] for depth in range(len(segments), -1, -1)]
