"""Tests for navigator.yaml loading."""

import pytest

from card_navigator.config import load_navigator_configuration
from card_navigator.constants import DEFAULT_CACHE_SIZE, DEFAULT_GLOBAL_ONLY_KEYS


def write_config(tmp_path, body):
    config_path = tmp_path / "navigator.yaml"
    config_path.write_text(body, encoding="utf-8")
    return config_path


VAULTS = """
default: personal
vaults:
  personal:
    path: {vault}
    description: Personal notes
"""


class TestVaultSection:
    """The vault registry."""

    def test_minimal_configuration(self, tmp_path):
        config = load_navigator_configuration(write_config(tmp_path, VAULTS.format(vault=tmp_path)))
        vault = config.vaults.get("personal")
        assert vault.path == tmp_path.resolve()
        assert vault.description == "Personal notes"
        assert config.vaults.default_vault == "personal"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_navigator_configuration(tmp_path / "absent.yaml")

    def test_missing_vaults(self, tmp_path):
        with pytest.raises(ValueError):
            load_navigator_configuration(write_config(tmp_path, "default: x\n"))

    def test_default_must_be_configured(self, tmp_path):
        body = VAULTS.format(vault=tmp_path).replace("default: personal", "default: work")
        with pytest.raises(ValueError):
            load_navigator_configuration(write_config(tmp_path, body))

    def test_unknown_vault_lookup(self, tmp_path):
        config = load_navigator_configuration(write_config(tmp_path, VAULTS.format(vault=tmp_path)))
        with pytest.raises(ValueError):
            config.vaults.get("work")

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ValueError):
            load_navigator_configuration(write_config(tmp_path, "vaults: [unclosed"))


class TestPresetSection:
    """Preset engine settings."""

    def test_defaults(self, tmp_path):
        settings = load_navigator_configuration(write_config(tmp_path, VAULTS.format(vault=tmp_path))).presets
        assert settings.store_path == (tmp_path / "presets.json").resolve()
        assert settings.global_only_keys == DEFAULT_GLOBAL_ONLY_KEYS
        assert settings.auto_apply is True
        assert settings.cache_size == DEFAULT_CACHE_SIZE
        assert settings.mapping_priority_tiebreak is True
        assert settings.casefold_tags is False
        assert settings.live_config == {}

    def test_explicit_settings(self, tmp_path):
        body = VAULTS.format(vault=tmp_path) + """
presets:
  store_path: data/store.json
  global_only_keys: [debugMode, layoutConfig.cardHeight]
  auto_apply: false
  cache_size: 16
  mapping_priority_tiebreak: false
  casefold_tags: true
  live_config:
    debugMode: true
"""
        settings = load_navigator_configuration(write_config(tmp_path, body)).presets
        assert settings.store_path == (tmp_path / "data" / "store.json").resolve()
        assert settings.global_only_keys == ("debugMode", "layoutConfig.cardHeight")
        assert settings.auto_apply is False
        assert settings.cache_size == 16
        assert settings.mapping_priority_tiebreak is False
        assert settings.casefold_tags is True
        assert settings.live_config == {"debugMode": True}

    def test_absolute_store_path_is_kept(self, tmp_path):
        target = tmp_path / "elsewhere" / "presets.json"
        body = VAULTS.format(vault=tmp_path) + f"\npresets:\n  store_path: {target}\n"
        settings = load_navigator_configuration(write_config(tmp_path, body)).presets
        assert settings.store_path == target.resolve()

    @pytest.mark.parametrize(
        "section",
        [
            "presets:\n  cache_size: 0\n",
            "presets:\n  cache_size: many\n",
            "presets:\n  auto_apply: sometimes\n",
            "presets:\n  global_only_keys: debugMode\n",
            "presets:\n  live_config: [1, 2]\n",
            "presets: [store_path]\n",
        ],
    )
    def test_malformed_settings(self, tmp_path, section):
        body = VAULTS.format(vault=tmp_path) + "\n" + section
        with pytest.raises(ValueError):
            load_navigator_configuration(write_config(tmp_path, body))
