"""
Conversation Context
====================

The conversation the agent builds for one request, and the system prompt
that frames it.

A conversation is an ordered list of turns:
    system     - the assistant's instructions (added by the completion client)
    user       - the user's message, plus any device-match context
    assistant  - model output, optionally with tool calls
    tool       - the result of one tool call, linked by tool_call_id

Conversations live only for the duration of a request; nothing here is
persisted.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

if TYPE_CHECKING:
    from rpchat.agent.tools_executor import ToolCall

Role = Literal["system", "user", "assistant", "tool"]


SYSTEM_PROMPT = """You are a Restorepoint network management assistant. You can ONLY help with Restorepoint-related tasks.

## AUTOMATIC MULTI-STEP EXECUTION
When users reference devices by criteria (IP addresses, names, patterns), you MUST:
1. FIRST use list_devices to find matching devices, unless device matches are already provided
2. THEN execute the requested operation on those specific device IDs
3. NEVER stop after just saying what you'll do - ALWAYS execute the complete operation

Examples:
- "check status of devices with IP 172.31.13.115"
  -> find the device with that IP, then check its status by device ID
- "create backup for Enablis-Test-Palo"
  -> find the device with that name, then call create_backup with its ID
- "show me Cisco devices"
  -> call list_devices and present only the Cisco devices

## RULES
1. Never answer questions outside the Restorepoint domain
2. Always use concrete device IDs in tool arguments
3. Be professional and technical - you're talking to network engineers
4. Explain which tools you used and what they returned
5. Provide clear, concise responses with specific device information
"""

CONTINUE_INSTRUCTION = (
    "Based on the tool results, continue executing any necessary tools. "
    "If all required work is done, provide a summary."
)


@dataclass
class ConversationTurn:
    """
    One turn of the conversation sent to the completion API.

    Use the constructors rather than building turns by hand:
        ConversationTurn.user("list devices")
        ConversationTurn.assistant("", tool_calls=[call])
        ConversationTurn.tool(call.id, '{"success": true}')
    """
    role: Role
    content: str = ""
    tool_calls: list["ToolCall"] = field(default_factory=list)
    tool_call_id: str | None = None

    @classmethod
    def system(cls, content: str) -> "ConversationTurn":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "ConversationTurn":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str, tool_calls: list["ToolCall"] | None = None) -> "ConversationTurn":
        return cls(role="assistant", content=content, tool_calls=list(tool_calls or []))

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> "ConversationTurn":
        return cls(role="tool", content=content, tool_call_id=tool_call_id)

    def to_openai_message(self) -> dict:
        """Format as a chat completion message."""
        message: dict = {"role": self.role, "content": self.content}
        if self.role == "assistant" and self.tool_calls:
            message["tool_calls"] = [call.to_openai_tool_call() for call in self.tool_calls]
        if self.role == "tool":
            message["tool_call_id"] = self.tool_call_id
        return message


Conversation = list[ConversationTurn]


def to_openai_messages(conversation: Conversation, system_prompt: str | None = SYSTEM_PROMPT) -> list[dict]:
    """
    Format a conversation for the completion API.

    Args:
        conversation: The turns, oldest first
        system_prompt: Prepended as a system turn unless the conversation
            already starts with one

    Returns:
        List of message dicts ready for the API
    """
    messages = []
    if system_prompt and not (conversation and conversation[0].role == "system"):
        messages.append({"role": "system", "content": system_prompt})
    messages.extend(turn.to_openai_message() for turn in conversation)
    return messages
