from edmcp.tools.tool_schemas import GENERATE_IMAGE, get_tool_catalog

__all__ = [
    "GENERATE_IMAGE",
    "get_tool_catalog",
]
