"""
Pixeltrail MCP Server - attribution over the Model Context Protocol.

Exposes the attribution engine to the reporting layer and MCP clients:
- Attribution tools (per-ad lanes, model catalogue)
- Reconciliation tools (parent rollup, priority merge with platform data)

Usage:
    # Via CLI
    pixeltrail-mcp

    # Via Python
    from pixeltrail_mcp import server
    server.main()

    # Via an MCP client config (.mcp.json)
    {
        "mcpServers": {
            "pixeltrail": {
                "command": "pixeltrail-mcp"
            }
        }
    }
"""

__version__ = "0.1.0"
