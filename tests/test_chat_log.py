"""Chat log ordering, filtering and eviction."""
from __future__ import annotations

import pytest

from quiz_orchestrator.core.chat_log import ChatLog
from quiz_orchestrator.core.models import MessageType


def test_append_assigns_id_and_timestamp() -> None:
    log = ChatLog()
    first = log.append(MessageType.SYSTEM, "hello")
    second = log.append(MessageType.USER, "hi", {"status": "processing"})

    assert first.id != second.id
    assert first.timestamp <= second.timestamp
    assert [m.content for m in log.get_all()] == ["hello", "hi"]
    assert second.to_dict()["type"] == "user"


def test_metadata_drops_empty_values() -> None:
    log = ChatLog()
    message = log.append(MessageType.SYSTEM, "x", {"workflow_id": None, "status": "ok"})
    assert message.metadata == {"status": "ok"}


def test_filter_by_workflow() -> None:
    log = ChatLog()
    log.append(MessageType.ORCHESTRATOR, "a", {"workflow_id": "workflow_1"})
    log.append(MessageType.ORCHESTRATOR, "b", {"workflow_id": "workflow_2"})
    log.append(MessageType.AGENT, "c", {"workflow_id": "workflow_1"})

    assert [m.content for m in log.get_by_workflow("workflow_1")] == ["a", "c"]
    assert log.get_by_workflow("workflow_3") == []


def test_clear_then_get_is_empty() -> None:
    log = ChatLog()
    log.append(MessageType.SYSTEM, "x")
    log.clear()
    assert log.get_all() == []
    assert len(log) == 0


def test_oldest_messages_are_evicted() -> None:
    log = ChatLog(max_messages=3)
    for index in range(5):
        log.append(MessageType.SYSTEM, str(index))

    assert [m.content for m in log.get_all()] == ["2", "3", "4"]
    assert log.max_messages == 3


def test_rejects_non_positive_capacity() -> None:
    with pytest.raises(ValueError):
        ChatLog(max_messages=0)
