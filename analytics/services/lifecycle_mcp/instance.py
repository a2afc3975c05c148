"""
MCP Server Instance

This module provides the global FastMCP instance that all tools register with.
It must be imported before tools are loaded to avoid circular imports.

Architecture:
- instance.py: Creates the mcp object with its lifespan (imported by main.py
  and all tool modules)
- lifespan.py: Starts observability and the dashboard session
- main.py: Configures logging, registers the tools and runs the server
- tools/*.py: Import mcp from this module and register tools with @mcp.tool()
"""

from fastmcp import FastMCP

from analytics.services.lifecycle_mcp.lifespan import app_lifespan

VERSION = "1.0.0"

mcp = FastMCP(
    name="Lifecycle Attribution Dashboard",
    version=VERSION,
    lifespan=app_lifespan,
)
