"""
rpchat - Restorepoint Chat Assistant
====================================

A chat backend that routes natural-language requests to a tool-calling AI
model and executes the tools it selects against a remote Restorepoint
MCP server.

This package provides:
- A cached, self-refreshing catalog of the tools the MCP server exposes
- An agent that drives the tool-call/tool-result conversation to completion
- Best-effort resolution of device references (IPs, names, vendors)
- A composition root (AssistantApp) for HTTP or console front ends
"""

__version__ = "2.0.0"
