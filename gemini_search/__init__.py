"""Google web search over Gemini grounding, exposed as an MCP tool."""

__version__ = "1.0.0"
