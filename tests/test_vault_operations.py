"""Tests for note path resolution and folder ancestry helpers."""

from pathlib import Path

import pytest

from card_navigator.core.vault_operations import (
    construct_note_path,
    folder_ancestry,
    folder_segments,
    is_descendant,
    note_folder,
    resolve_note_path,
)


class TestFolderSegments:
    """Folder path normalization."""

    @pytest.mark.parametrize(
        "raw",
        ["/Projects/Personal", "Projects/Personal", "/Projects/Personal/", "\\Projects\\Personal", "//Projects//Personal"],
    )
    def test_separator_variants_normalize(self, raw):
        assert folder_segments(raw) == ("Projects", "Personal")

    @pytest.mark.parametrize("raw", ["", "/", "\\", "."])
    def test_root_has_no_segments(self, raw):
        assert folder_segments(raw) == ()

    def test_case_is_preserved(self):
        assert folder_segments("/projects") != folder_segments("/Projects")


class TestAncestry:
    """Segment-wise descendant checks."""

    def test_prefix_string_is_not_an_ancestor(self):
        assert not is_descendant(folder_segments("/Project2"), folder_segments("/Proj"))

    def test_child_is_descendant(self):
        assert is_descendant(folder_segments("/Projects/Personal"), folder_segments("/Projects"))

    def test_folder_is_not_its_own_descendant(self):
        assert not is_descendant(folder_segments("/Projects"), folder_segments("/Projects"))

    def test_everything_descends_from_root(self):
        assert is_descendant(folder_segments("/Projects"), ())

    def test_ancestry_is_deepest_first(self):
        assert folder_ancestry("/a/b/c") == [("a", "b", "c"), ("a", "b"), ("a",), ()]

    def test_root_ancestry(self):
        assert folder_ancestry("/") == [()]


class TestNotePaths:
    """Note path construction inside a vault."""

    def test_construct_nested_note_path(self):
        assert construct_note_path("Folder/My Note") == Path("Folder") / "My Note.md"

    def test_resolve_rejects_escape(self, vault):
        with pytest.raises(ValueError):
            resolve_note_path(vault, "../outside")

    def test_note_folder_of_nested_note(self, vault):
        path = resolve_note_path(vault, "Projects/Personal/notes")
        assert note_folder(vault, path) == "/Projects/Personal"

    def test_note_folder_of_root_note(self, vault):
        path = resolve_note_path(vault, "README")
        assert note_folder(vault, path) == "/"
