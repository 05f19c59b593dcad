"""MCP bridge exposing marketplace tools to LLM clients."""
