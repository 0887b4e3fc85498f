"""
Message Validation
==================

Cheap checks run before any network call. A message that fails is answered
with a refusal instead of reaching the AI.
"""

from dataclasses import dataclass

DEFAULT_MAX_MESSAGE_LENGTH = 500

OFF_TOPIC_REFUSAL = (
    "I can only help with Restorepoint network management topics. "
    "Please ask about devices, backups, commands, or network status."
)

TOPIC_KEYWORDS = (
    "device", "backup", "command", "network", "restorepoint",
    "list", "show", "run", "execute", "status", "create",
    "update", "delete", "monitor", "check", "start", "stop",
    "configure", "configuration", "settings", "manage", "management",
)


@dataclass(frozen=True)
class ValidationOutcome:
    is_valid: bool
    reason: str | None = None


def validate_message(text: str, max_length: int = DEFAULT_MAX_MESSAGE_LENGTH) -> ValidationOutcome:
    """
    Check that a message is non-empty, short enough, and on topic.

    Args:
        text: The user's message
        max_length: Maximum allowed characters

    Returns:
        ValidationOutcome; reason is the user-facing refusal when invalid
    """
    if not text or not text.strip():
        return ValidationOutcome(False, "Message cannot be empty")

    if len(text) > max_length:
        return ValidationOutcome(False, f"Message is too long (max {max_length} characters)")

    lowered = text.lower()
    if not any(keyword in lowered for keyword in TOPIC_KEYWORDS):
        return ValidationOutcome(False, OFF_TOPIC_REFUSAL)

    return ValidationOutcome(True)
