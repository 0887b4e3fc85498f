"""
Fallback Tool Catalog
=====================

Hand-maintained definitions for the most used Restorepoint tools. The
catalog serves these when the MCP server cannot be reached, so the AI can
still list devices and start backups once the server comes back.

Schemas here are already normalized (type/properties/required) and must be
kept in sync with the server by hand.
"""

from rpchat.tools import ToolDefinition


FALLBACK_TOOLS: tuple[ToolDefinition, ...] = (
    ToolDefinition(
        name="list_devices",
        description="List all network devices managed by Restorepoint",
        parameters={
            "type": "object",
            "properties": {},
            "required": [],
        },
    ),
    ToolDefinition(
        name="get_device",
        description="Get detailed information about a specific device",
        parameters={
            "type": "object",
            "properties": {
                "deviceId": {"type": "string", "description": "Device ID"},
                "includeConnections": {
                    "type": "boolean",
                    "description": "Include connection details",
                },
            },
            "required": ["deviceId"],
        },
    ),
    ToolDefinition(
        name="create_device",
        description="Add a new device to the Restorepoint management system",
        parameters={
            "type": "object",
            "properties": {
                "name": {"type": "string", "description": "Device name (1-200 characters)"},
                "type": {
                    "type": "string",
                    "description": "Device type identifier (e.g., cisco-ios, palo-alto, linux)",
                },
                "credentials": {
                    "type": "object",
                    "properties": {
                        "username": {"type": "string", "description": "Device username"},
                        "password": {"type": "string", "description": "Device password"},
                    },
                    "required": ["username", "password"],
                },
                "ipAddress": {"type": "string", "description": "Device IP address"},
                "hostname": {"type": "string", "description": "Device hostname"},
                "description": {"type": "string", "description": "Device description"},
                "enabled": {"type": "boolean", "description": "Whether device is enabled"},
            },
            "required": ["name", "type", "credentials"],
        },
    ),
    ToolDefinition(
        name="get_device_requirements",
        description="Get comprehensive device creation requirements including supported types and examples",
        parameters={
            "type": "object",
            "properties": {
                "deviceType": {
                    "type": "string",
                    "description": "Optional: Get requirements for specific device type",
                },
            },
            "required": [],
        },
    ),
    ToolDefinition(
        name="list_backups",
        description="List backup history and current status",
        parameters={
            "type": "object",
            "properties": {
                "limit": {"type": "number", "description": "Maximum number of backups"},
                "offset": {"type": "number", "description": "Number of backups to skip"},
            },
            "required": [],
        },
    ),
    ToolDefinition(
        name="create_backup",
        description="Start backup operation on specified devices",
        parameters={
            "type": "object",
            "properties": {
                "deviceIds": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "IDs of the devices to back up",
                },
                "backupName": {"type": "string", "description": "Backup name"},
                "backupType": {
                    "type": "string",
                    "enum": ["full", "incremental", "config"],
                    "description": "Type of backup",
                },
            },
            "required": ["deviceIds"],
        },
    ),
)
