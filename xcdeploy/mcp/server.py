"""MCP Server for xcdeploy.

Exposes device discovery and app deployment as MCP tools so any
MCP-compatible agent can put a freshly built app on a device or simulator.

Add to your MCP config:
{
  "mcpServers": {
    "xcdeploy": {
      "command": "xcdeploy",
      "args": ["serve"]
    }
  }
}
"""

from __future__ import annotations

import json
from typing import Any, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool, TextContent

from ..config import DeployConfig
from ..sdk import Deployer


def create_server(config: Optional[DeployConfig] = None, deployer: Optional[Deployer] = None) -> Server:
    server = Server("xcdeploy")
    deployer = deployer or Deployer(config)

    @server.list_tools()
    async def list_tools() -> list[Tool]:
        return [
            Tool(
                name="xcdeploy_devices",
                description="List connected iOS devices and booted simulators.",
                inputSchema={"type": "object", "properties": {}},
            ),
            Tool(
                name="xcdeploy_select",
                description=(
                    "Show the target a deployment would use: the first connected "
                    "device, otherwise the first booted simulator."
                ),
                inputSchema={"type": "object", "properties": {}},
            ),
            Tool(
                name="xcdeploy_install",
                description=(
                    "Install a built .app bundle on the selected target. On a "
                    "simulator the app is launched using bundle_id."
                ),
                inputSchema={
                    "type": "object",
                    "properties": {
                        "bundle_path": {"type": "string", "description": "Path to the .app"},
                        "bundle_id": {"type": "string", "description": "Bundle identifier"},
                    },
                    "required": ["bundle_path"],
                },
            ),
            Tool(
                name="xcdeploy_launch",
                description="Launch an installed app on a simulator.",
                inputSchema={
                    "type": "object",
                    "properties": {
                        "bundle_id": {"type": "string"},
                        "udid": {"type": "string", "description": "Simulator udid"},
                    },
                    "required": ["bundle_id"],
                },
            ),
            Tool(
                name="xcdeploy_boot",
                description="Boot a simulator by udid and open Simulator.app.",
                inputSchema={
                    "type": "object",
                    "properties": {"udid": {"type": "string"}},
                    "required": ["udid"],
                },
            ),
        ]

    @server.call_tool()
    async def call_tool(name: str, arguments: dict[str, Any]) -> list[TextContent]:
        return dispatch(deployer, name, arguments)

    return server


def dispatch(deployer: Deployer, name: str, arguments: dict[str, Any]) -> list[TextContent]:
    """Run one tool call; failures come back as text, never as exceptions."""
    try:
        match name:
            case "xcdeploy_devices":
                result = deployer.devices()
            case "xcdeploy_select":
                target = deployer.select_target()
                result = {"target": target.kind, "id": target.identifier}
            case "xcdeploy_install":
                result = deployer.install(arguments["bundle_path"], arguments.get("bundle_id"))
            case "xcdeploy_launch":
                result = deployer.launch(arguments["bundle_id"], arguments.get("udid"))
            case "xcdeploy_boot":
                result = deployer.boot(arguments["udid"])
            case _:
                return [TextContent(type="text", text=f"Unknown tool: {name}")]
    except Exception as e:
        return [TextContent(type="text", text=f"Error: {str(e)}")]

    return [TextContent(type="text", text=json.dumps(result, indent=2, default=str))]


async def _run(config: Optional[DeployConfig]):
    server = create_server(config)
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def run_server(config: Optional[DeployConfig] = None):
    import asyncio
    asyncio.run(_run(config))
