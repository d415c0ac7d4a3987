"""MCP tool definitions for the card navigator preset engine.

This module imports all tool submodules to register them with the MCP server.
Each tool module uses the @mcp.tool() decorator to auto-register its tools.
"""

# Import all tool modules to register their @mcp.tool() decorated functions
from card_navigator.tools import preset_tools
from card_navigator.tools import mapping_tools
from card_navigator.tools import resolution_tools

__all__ = [
    "preset_tools",
    "mapping_tools",
    "resolution_tools",
]
