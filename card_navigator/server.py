"""FastMCP server initialization and tool registration."""

import logging

from mcp.server.fastmcp import FastMCP

from card_navigator.constants import LOG_LEVEL

# Initialize logger
logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

# Initialize FastMCP server
mcp = FastMCP("card_navigator")

# Tool modules are imported in __init__.py to register all @mcp.tool() decorators


def run_server():
    """Start the MCP server with stdio transport."""
    logger.info("Starting Card Navigator preset server")
    mcp.run(transport="stdio")


if __name__ == "__main__":
    run_server()
