"""Convert stored session history to Anthropic API message format."""

from __future__ import annotations

from typing import Any

from xiaoyue.core.types import Role
from xiaoyue.storage.models import Message


def build_messages(history: list[Message], new_input: str | None = None) -> list[dict[str, Any]]:
    """Turn the bounded history tail (plus the new user input) into API messages.

    Empty assistant replies are kept in storage for role alternation but the
    API rejects empty text, so they are skipped here. A leading assistant
    message (the tail cut a turn in half) is dropped so the array opens with
    a user message.
    """
    messages: list[dict[str, Any]] = [
        {"role": record.role.value, "content": record.content}
        for record in history
        if record.content.strip()
    ]
    while messages and messages[0]["role"] != Role.USER:
        messages.pop(0)

    if new_input is not None:
        messages.append({"role": Role.USER.value, "content": new_input})
    return messages
