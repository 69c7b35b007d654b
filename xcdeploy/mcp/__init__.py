"""MCP server exposing xcdeploy as tools."""
