# tests/test_dispatcher.py

from __future__ import annotations

import asyncio

import pytest

from kreqo.core.errors import StoreError
from kreqo.tasks.dispatcher import MutationDispatcher, MutationKind, MutationState, VersionCounter

from .fakes import FakeTaskApi


def test_version_counter_notifies_every_bump() -> None:
    counter = VersionCounter("test")
    seen: list[int] = []
    unsubscribe = counter.subscribe(seen.append)

    counter.bump()
    counter.bump()
    unsubscribe()
    counter.bump()

    assert seen == [1, 2]
    assert counter.value == 3


def test_submit_requires_running_loop() -> None:
    dispatcher = MutationDispatcher(FakeTaskApi())
    with pytest.raises(RuntimeError):
        dispatcher.submit_create("no loop")


@pytest.mark.asyncio
async def test_submit_returns_pending_then_confirms() -> None:
    api = FakeTaskApi()
    api.create_gate = asyncio.Event()
    dispatcher = MutationDispatcher(api)

    m = dispatcher.submit_create("Buy milk")
    assert m.state is MutationState.PENDING
    assert dispatcher.pending(MutationKind.CREATE) == [m]

    await asyncio.sleep(0)
    assert m.pending
    assert dispatcher.list_version.value == 0

    api.create_gate.set()
    await dispatcher.wait(m)

    assert m.state is MutationState.CONFIRMED
    assert m.result == 1
    assert dispatcher.pending() == []
    assert dispatcher.list_version.value == 1
    assert dispatcher.toggle_version.value == 0


@pytest.mark.asyncio
async def test_toggle_bumps_only_toggle_counter() -> None:
    api = FakeTaskApi()
    (task,) = api.seed("Write docs")
    dispatcher = MutationDispatcher(api)

    m = dispatcher.submit_toggle(task.id, True)
    await dispatcher.drain()

    assert m.state is MutationState.CONFIRMED
    assert dispatcher.toggle_version.value == 1
    assert dispatcher.list_version.value == 0
    assert api.tasks[0].completed is True


@pytest.mark.asyncio
async def test_failure_is_terminal_reported_once_and_not_retried() -> None:
    api = FakeTaskApi()
    api.fail["create"] = StoreError("disk full")
    dispatcher = MutationDispatcher(api)

    m = dispatcher.submit_create("doomed")
    await dispatcher.drain()

    assert m.state is MutationState.FAILED
    assert m.reason == "Server Error: disk full"
    assert isinstance(m.error, StoreError)
    # failures bump the counter too
    assert dispatcher.list_version.value == 1
    assert api.tasks == []

    assert dispatcher.take_failures() == [m]
    assert dispatcher.take_failures() == []


@pytest.mark.asyncio
async def test_missing_toggle_target_fails_with_not_found() -> None:
    dispatcher = MutationDispatcher(FakeTaskApi())
    m = dispatcher.submit_toggle(999, True)
    await dispatcher.drain()
    assert m.failed
    assert "999" in (m.reason or "")


@pytest.mark.asyncio
async def test_completions_may_arrive_out_of_order() -> None:
    api = FakeTaskApi()
    (existing,) = api.seed("existing")
    api.create_gate = asyncio.Event()
    dispatcher = MutationDispatcher(api)

    order: list[str] = []
    dispatcher.list_version.subscribe(lambda v: order.append(f"list:{v}"))
    dispatcher.toggle_version.subscribe(lambda v: order.append(f"toggle:{v}"))

    create = dispatcher.submit_create("slow")
    toggle = dispatcher.submit_toggle(existing.id, True)
    await dispatcher.wait(toggle)

    assert toggle.state is MutationState.CONFIRMED
    assert create.pending

    api.create_gate.set()
    await dispatcher.drain()
    assert order == ["toggle:1", "list:1"]


@pytest.mark.asyncio
async def test_simultaneous_confirmations_are_all_counted() -> None:
    api = FakeTaskApi()
    api.create_gate = asyncio.Event()
    dispatcher = MutationDispatcher(api)

    seen: list[int] = []
    dispatcher.list_version.subscribe(seen.append)

    mutations = [dispatcher.submit_create(f"t{i}") for i in range(5)]
    api.create_gate.set()
    await dispatcher.drain()

    assert all(m.state is MutationState.CONFIRMED for m in mutations)
    assert seen == [1, 2, 3, 4, 5]
    assert sorted(m.result for m in mutations) == [1, 2, 3, 4, 5]


@pytest.mark.asyncio
async def test_listeners_see_submit_and_terminal() -> None:
    dispatcher = MutationDispatcher(FakeTaskApi())
    calls: list[int] = []
    dispatcher.add_listener(lambda: calls.append(len(dispatcher.pending())))

    dispatcher.submit_create("x")
    await dispatcher.drain()

    assert calls == [1, 0]


@pytest.mark.asyncio
async def test_close_waits_for_in_flight_work() -> None:
    api = FakeTaskApi()
    api.create_gate = asyncio.Event()
    dispatcher = MutationDispatcher(api)

    m = dispatcher.submit_create("finish me")
    closing = asyncio.ensure_future(dispatcher.close())
    await asyncio.sleep(0)
    assert not closing.done()

    api.create_gate.set()
    await closing
    assert m.state is MutationState.CONFIRMED


@pytest.mark.asyncio
async def test_unreported_failures_are_capped() -> None:
    dispatcher = MutationDispatcher(FakeTaskApi(), max_failures=3)
    mutations = [dispatcher.submit_toggle(900 + i, True) for i in range(5)]
    await dispatcher.drain()

    assert all(m.failed for m in mutations)
    assert dispatcher.take_failures() == mutations[-3:]
    assert dispatcher.take_failures() == []
