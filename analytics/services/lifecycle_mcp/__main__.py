"""Entry point for running the dashboard MCP server as a module.

This allows running the server with: python -m analytics.services.lifecycle_mcp
"""

if __name__ == "__main__":
    try:
        # Import main module which registers all tools
        from analytics.services.lifecycle_mcp.main import mcp

        mcp.run()
    except ImportError as e:
        import sys

        print(f"Error: Failed to import MCP server: {e}", file=sys.stderr)
        print(
            "Ensure all dependencies are installed (pip install -e .)",
            file=sys.stderr,
        )
        sys.exit(1)
