"""Card Navigator Preset Server

Folder, tag, date and property driven presets for the card navigator view,
served over the Model Context Protocol.
"""

from card_navigator.data_models import Context, Preset, PresetSettings
from card_navigator.core.engine import PresetEngine, Resolution
from card_navigator.core.store import PresetStore
from card_navigator.session import configure, get_configuration, get_engine, resolve_vault
from card_navigator.server import mcp, run_server

# Import tools to register them with the MCP server
from card_navigator import tools  # noqa: F401

__version__ = "0.1.0"
__all__ = [
    "Context",
    "Preset",
    "PresetSettings",
    "PresetEngine",
    "PresetStore",
    "Resolution",
    "configure",
    "get_configuration",
    "get_engine",
    "resolve_vault",
    "mcp",
    "run_server",
]
