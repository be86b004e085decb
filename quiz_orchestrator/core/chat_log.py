"""In-memory, append-only log of orchestration events."""
from __future__ import annotations

import uuid
from collections import deque
from typing import Any, Deque, Dict, List, Optional

from .models import ChatMessage, MessageType, utcnow


class ChatLog:
    """Bounded chat history; the oldest messages are evicted first."""

    def __init__(self, max_messages: int = 1000) -> None:
        if max_messages < 1:
            raise ValueError("max_messages must be positive")
        self._messages: Deque[ChatMessage] = deque(maxlen=max_messages)

    @property
    def max_messages(self) -> int:
        return self._messages.maxlen or 0

    def append(
        self,
        type: MessageType,
        content: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> ChatMessage:
        """Stamp and store a message, dropping metadata keys with no value."""
        message = ChatMessage(
            id=str(uuid.uuid4()),
            type=MessageType(type),
            content=content,
            timestamp=utcnow(),
            metadata={k: v for k, v in (metadata or {}).items() if v is not None},
        )
        self._messages.append(message)
        return message

    def get_all(self) -> List[ChatMessage]:
        return list(self._messages)

    def get_by_workflow(self, workflow_id: str) -> List[ChatMessage]:
        return [m for m in self._messages if m.workflow_id == workflow_id]

    def clear(self) -> None:
        self._messages.clear()

    def __len__(self) -> int:
        return len(self._messages)
