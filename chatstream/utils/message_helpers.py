"""Message normalization for provider requests."""

from typing import Any


def normalize_role(role: Any) -> str:
    """
    Map a role onto the two-role provider schema.

    Anything other than "assistant" (including "system" and "tool") is sent as "user".
    """
    return "assistant" if role == "assistant" else "user"


def extract_text(content: Any) -> str:
    """
    Flatten message content to plain text.

    Args:
        content: A string, or a list of content blocks

    Returns:
        The text parts joined with newlines

    Examples:
        >>> extract_text("Plain text")
        'Plain text'

        >>> extract_text([{"type": "text", "text": "Hi"}, {"type": "text", "text": "there"}])
        'Hi\\nthere'
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        text_parts = []
        for item in content:
            if isinstance(item, dict) and item.get("type") == "text":
                text_parts.append(item.get("text", ""))
            elif isinstance(item, str):
                text_parts.append(item)
        return "\n".join(text_parts)
    if content is None:
        return ""
    return str(content)


def normalize_messages(messages: list[dict[str, Any]]) -> list[dict[str, str]]:
    """Convert conversation history to ``{"role", "content"}`` dicts with two roles."""
    return [
        {"role": normalize_role(msg.get("role")), "content": extract_text(msg.get("content"))}
        for msg in messages
    ]
