from __future__ import annotations

import logging

import pytest

from taskmaster.worktree import WORKTREE_CREATED, WORKTREE_REMOVED, WorktreeEvent, WorktreeEventBus


def test_emit_delivers_to_named_then_wildcard_listeners() -> None:
    bus = WorktreeEventBus()
    order: list[str] = []
    bus.on(WORKTREE_CREATED, lambda event: order.append("first"))
    bus.on("*", lambda event: order.append("wildcard"))
    bus.on(WORKTREE_CREATED, lambda event: order.append("second"))

    event = bus.emit(WORKTREE_CREATED, {"taskId": "1"})

    assert order == ["first", "second", "wildcard"]
    assert isinstance(event, WorktreeEvent)
    assert event.name == WORKTREE_CREATED
    assert event.payload == {"taskId": "1"}
    assert event.timestamp > 0


def test_listeners_only_receive_their_event() -> None:
    bus = WorktreeEventBus()
    created: list[WorktreeEvent] = []
    bus.on(WORKTREE_CREATED, created.append)

    bus.emit(WORKTREE_REMOVED, {"worktreeTitle": "task-1"})

    assert created == []


def test_unsubscribe_callable_and_off() -> None:
    bus = WorktreeEventBus()
    seen: list[str] = []

    def listener(event: WorktreeEvent) -> None:
        seen.append(event.name)

    unsubscribe = bus.on(WORKTREE_REMOVED, listener)
    assert bus.listener_count(WORKTREE_REMOVED) == 1
    unsubscribe()
    bus.off(WORKTREE_REMOVED, listener)

    bus.emit(WORKTREE_REMOVED, {})

    assert seen == []
    assert bus.listener_count() == 0


def test_failing_listener_does_not_block_others(caplog: pytest.LogCaptureFixture) -> None:
    bus = WorktreeEventBus()
    seen: list[str] = []

    def broken(event: WorktreeEvent) -> None:
        raise RuntimeError("listener bug")

    bus.on(WORKTREE_CREATED, broken)
    bus.on(WORKTREE_CREATED, lambda event: seen.append(event.name))

    with caplog.at_level(logging.ERROR, logger="taskmaster.worktree.events"):
        bus.emit(WORKTREE_CREATED, {})

    assert seen == [WORKTREE_CREATED]
    assert "listener failed" in caplog.text


def test_payload_is_copied() -> None:
    bus = WorktreeEventBus()
    payload = {"taskId": "1"}

    event = bus.emit(WORKTREE_CREATED, payload)
    payload["taskId"] = "2"

    assert event.payload["taskId"] == "1"


def test_buses_are_independent() -> None:
    first, second = WorktreeEventBus(), WorktreeEventBus()
    seen: list[WorktreeEvent] = []
    first.on("*", seen.append)

    second.emit(WORKTREE_CREATED, {})

    assert seen == []
