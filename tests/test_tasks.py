from __future__ import annotations

import asyncio

import pytest

from labbcat_cli.api.store import LabbcatView
from labbcat_cli.models.task import TaskStatus


def _status(running: bool, refresh: float | None = None, **extra) -> dict:
    status = {"threadId": "42", "running": running, "status": "working", **extra}
    if refresh is not None:
        status["refreshSeconds"] = refresh
    return status


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []

    async def fake_sleep(delay: float) -> None:
        recorded.append(delay)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return recorded


@pytest.mark.asyncio
async def test_waiting_stops_when_the_task_finishes(
    make_session, make_envelope, base_url, sleeps
) -> None:
    session = make_session(
        [
            make_envelope({"result": _status(True, refresh=1)}),
            make_envelope({"result": _status(False, percentComplete=100)}),
        ]
    )
    store = LabbcatView(base_url, session=session)

    outcome = await store.wait_for_task("42", max_seconds=10)

    assert len(session.calls) == 2
    assert sleeps == [1]
    assert isinstance(outcome.result, TaskStatus)
    assert outcome.result.running is False
    assert outcome.result.percent_complete == 100
    assert session.calls[0]["url"] == base_url + "thread"
    assert session.calls[0]["params"] == [("id", "42"), ("threadId", "42")]


@pytest.mark.asyncio
async def test_waiting_gives_up_when_the_budget_is_smaller_than_the_interval(
    make_session, make_envelope, base_url, sleeps
) -> None:
    session = make_session([make_envelope({"result": _status(True, refresh=5)})])
    store = LabbcatView(base_url, session=session)

    outcome = await store.wait_for_task("42", max_seconds=3)

    assert len(session.calls) == 1
    assert sleeps == []
    assert outcome.result.running is True


@pytest.mark.asyncio
async def test_waiting_without_a_limit_keeps_checking(
    make_session, make_envelope, base_url, sleeps
) -> None:
    session = make_session(
        [make_envelope({"result": _status(True)}) for _ in range(4)]
        + [make_envelope({"result": _status(False)})]
    )
    store = LabbcatView(base_url, session=session)

    outcome = await store.wait_for_task("42")

    assert len(session.calls) == 5
    assert sleeps == [2.0, 2.0, 2.0, 2.0]
    assert outcome.result.running is False


@pytest.mark.asyncio
async def test_budget_is_spent_across_checks(
    make_session, make_envelope, base_url, sleeps
) -> None:
    session = make_session(
        [make_envelope({"result": _status(True, refresh=2)}) for _ in range(3)]
    )
    store = LabbcatView(base_url, session=session)

    outcome = await store.wait_for_task("42", max_seconds=5)

    # 5s allows two 2s waits; the third check leaves 1s, less than the interval
    assert len(session.calls) == 3
    assert sleeps == [2, 2]
    assert outcome.result.running is True


@pytest.mark.asyncio
async def test_errors_stop_waiting(make_session, make_envelope, base_url, sleeps) -> None:
    session = make_session([make_envelope(None, errors=["Invalid thread: 42"])])
    store = LabbcatView(base_url, session=session)

    outcome = await store.wait_for_task("42", max_seconds=10)

    assert outcome.result is None
    assert outcome.errors == ["Invalid thread: 42"]
    assert sleeps == []


@pytest.mark.asyncio
async def test_release_and_cancel_send_commands(make_session, make_envelope, base_url) -> None:
    session = make_session([make_envelope(None), make_envelope(None)])
    store = LabbcatView(base_url, session=session)

    await store.release_task("42")
    await store.cancel_task("42")

    assert [c["url"] for c in session.calls] == [base_url + "threads"] * 2
    assert session.calls[0]["params"] == [("threadId", "42"), ("command", "release")]
    assert session.calls[1]["params"] == [("threadId", "42"), ("command", "cancel")]


def test_task_status_accepts_numeric_ids_and_extra_keys() -> None:
    status = TaskStatus.model_validate(
        {"threadId": 7, "running": False, "status": None, "resultUrl": "x"}
    )

    assert status.thread_id == "7"
    assert status.status == ""
    assert status.wait_interval == 2.0
    assert status.model_extra == {"resultUrl": "x"}
