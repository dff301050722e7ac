"""EDMCP: MCP server exposing Easy Diffusion image generation as a tool."""

__version__ = "1.0.0"
