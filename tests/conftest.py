"""Shared fixtures for the preset engine test suite."""

import copy

import pytest

from card_navigator.core.engine import PresetEngine
from card_navigator.core.store import PresetStore
from card_navigator.data_models import VaultMetadata

BUNDLE = {
    "cardSetConfig": {"type": "activeFolder", "includeSubfolders": False},
    "layoutConfig": {"type": "grid", "cardWidth": 300},
    "cardRenderConfig": {"showBody": True},
}


def make_bundle(**sections):
    """Return a fresh configuration bundle, with ``sections`` replacing defaults."""
    bundle = copy.deepcopy(BUNDLE)
    bundle.update(sections)
    return bundle


def preset_config(name, *mappings, **bundle_sections):
    return {
        "name": name,
        "configBundle": make_bundle(**bundle_sections),
        "mappings": list(mappings),
    }


@pytest.fixture
def store_path(tmp_path):
    return tmp_path / "presets.json"


@pytest.fixture
async def store(store_path):
    """A loaded store holding only the seeded default preset."""
    preset_store = PresetStore(store_path)
    await preset_store.load()
    return preset_store


@pytest.fixture
async def engine(store_path):
    """A loaded engine over an empty store (plus the seeded default preset)."""
    preset_engine = PresetEngine(PresetStore(store_path))
    await preset_engine.load()
    return preset_engine


@pytest.fixture
def vault(tmp_path):
    vault_path = tmp_path / "vault"
    vault_path.mkdir()
    return VaultMetadata(
        name="test",
        path=vault_path.resolve(),
        description="test vault",
        exists=True,
    )


@pytest.fixture
def write_note(vault):
    """Write a note into the test vault and return its path."""

    def _write(title, content):
        note_path = vault.path / f"{title}.md"
        note_path.parent.mkdir(parents=True, exist_ok=True)
        note_path.write_text(content, encoding="utf-8")
        return note_path

    return _write
