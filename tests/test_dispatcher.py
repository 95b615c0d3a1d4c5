"""OutboxDispatcher: claim, dispatch, retry accounting and lifecycle."""
import asyncio
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from bloglite.domain.events import ArticleDeleted, ArticleStateChanged
from bloglite.exceptions import ProjectionError
from bloglite.models import Category, OutboxEntry
from bloglite.outbox import store
from bloglite.outbox.dispatcher import OutboxDispatcher
from bloglite.outbox.registry import EventRegistry


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def _append(session_factory, *events) -> None:
    async with session_factory() as session:
        store.append_events(session, events)
        await session.commit()


async def _rows(session_factory) -> list[OutboxEntry]:
    async with session_factory() as session:
        result = await session.execute(select(OutboxEntry).order_by(OutboxEntry.id))
        return list(result.scalars().all())


def _dispatcher(session_factory, registry, **kwargs) -> OutboxDispatcher:
    kwargs.setdefault("max_retries", 3)
    return OutboxDispatcher(session_factory, registry, interval=0.01, shutdown_timeout=1.0, **kwargs)


def _registry(handler) -> EventRegistry:
    registry = EventRegistry()
    registry.register(ArticleStateChanged, handler)
    return registry


# ---------------------------------------------------------------------------
# Claim / dispatch
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_empty_outbox_is_a_no_op(session_factory):
    handler = AsyncMock()
    dispatcher = _dispatcher(session_factory, _registry(handler))
    assert await dispatcher.process_batch() == 0
    handler.assert_not_called()


@pytest.mark.asyncio
async def test_successful_batch_marks_every_row_processed(session_factory):
    seen = []

    async def handler(session, event, occurred_at):
        seen.append(event.id)

    after_commit = AsyncMock()
    await _append(
        session_factory,
        ArticleStateChanged(id="a1", state=1),
        ArticleStateChanged(id="a2", state=0),
        ArticleStateChanged(id="a3", state=1),
    )
    dispatcher = _dispatcher(session_factory, _registry(handler), after_commit=after_commit)

    assert await dispatcher.process_batch() == 3

    assert seen == ["a1", "a2", "a3"]
    rows = await _rows(session_factory)
    assert all(row.processed for row in rows)
    assert all(row.processed_at is not None for row in rows)
    assert all(row.error is None for row in rows)
    after_commit.assert_awaited_once()
    assert [e.topic for e in after_commit.await_args.args[0]] == ["article.state_changed"] * 3
    assert dispatcher.stats["processed"] == 3


@pytest.mark.asyncio
async def test_batch_size_limits_claim(session_factory):
    handler = AsyncMock()
    await _append(session_factory, *(ArticleStateChanged(id=f"a{i}", state=1) for i in range(5)))
    dispatcher = _dispatcher(session_factory, _registry(handler), batch_size=2)

    assert await dispatcher.process_batch() == 2
    assert await dispatcher.drain() == 3
    assert handler.await_count == 5


@pytest.mark.asyncio
async def test_drain_continues_past_an_aborted_batch(session_factory):
    failed = set()

    async def handler(session, event, occurred_at):
        if event.id == "a2" and event.id not in failed:
            failed.add(event.id)
            raise ProjectionError("not yet")

    await _append(
        session_factory,
        ArticleStateChanged(id="a1", state=1),
        ArticleStateChanged(id="a2", state=1),
        ArticleStateChanged(id="a3", state=1),
    )
    dispatcher = _dispatcher(session_factory, _registry(handler))

    assert await dispatcher.drain() == 3
    rows = await _rows(session_factory)
    assert all(row.processed and row.error is None for row in rows)
    assert dispatcher.stats["aborted_batches"] == 1


@pytest.mark.asyncio
async def test_drain_ends_once_failing_row_is_dead_lettered(session_factory):
    async def handler(session, event, occurred_at):
        if event.id == "bad":
            raise ProjectionError("boom")

    await _append(
        session_factory,
        ArticleStateChanged(id="bad", state=1),
        ArticleStateChanged(id="ok", state=1),
    )
    dispatcher = _dispatcher(session_factory, _registry(handler), max_retries=2)

    assert await dispatcher.drain() == 1
    bad, ok = await _rows(session_factory)
    assert bad.processed and bad.error is not None
    assert bad.retries == 2
    assert ok.processed and ok.error is None
    assert dispatcher.stats["dead_lettered"] == 1


@pytest.mark.asyncio
async def test_first_failure_aborts_batch(session_factory):
    async def handler(session, event, occurred_at):
        if event.id == "bad":
            raise ProjectionError("boom")

    await _append(
        session_factory,
        ArticleStateChanged(id="ok-1", state=1),
        ArticleStateChanged(id="bad", state=1),
        ArticleStateChanged(id="ok-2", state=1),
    )
    dispatcher = _dispatcher(session_factory, _registry(handler))

    assert await dispatcher.process_batch() == 0

    first, failed, last = await _rows(session_factory)
    assert not first.processed and first.retries == 0
    assert not failed.processed and failed.retries == 1
    assert failed.last_attempt_at is not None
    assert not last.processed and last.retries == 0
    assert dispatcher.stats["aborted_batches"] == 1


@pytest.mark.asyncio
async def test_projection_writes_are_rolled_back_with_the_batch(session_factory):
    async def handler(session, event, occurred_at):
        session.add(Category(id=event.id, display_name="side effect"))
        await session.flush()
        if event.id == "bad":
            raise ProjectionError("boom")

    await _append(
        session_factory,
        ArticleStateChanged(id="ok", state=1),
        ArticleStateChanged(id="bad", state=1),
    )
    await _dispatcher(session_factory, _registry(handler)).process_batch()

    async with session_factory() as session:
        assert (await session.execute(select(Category))).scalars().all() == []


# ---------------------------------------------------------------------------
# Retry accounting
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_always_failing_event_is_retried_max_retries_times_then_dead_lettered(
    session_factory,
):
    handler = AsyncMock(side_effect=ProjectionError("still broken"))
    await _append(session_factory, ArticleStateChanged(id="a1", state=1))
    dispatcher = _dispatcher(session_factory, _registry(handler), max_retries=3)

    for _ in range(10):
        await dispatcher.process_batch()

    # one first attempt plus three retries
    assert handler.await_count == 4
    (row,) = await _rows(session_factory)
    assert row.processed is True
    assert row.retries == 3
    assert "ProjectionError: still broken" in row.error
    assert dispatcher.stats["dead_lettered"] == 1
    assert dispatcher.stats["retried"] == 3


@pytest.mark.asyncio
async def test_event_recovering_before_limit_is_processed(session_factory):
    handler = AsyncMock(side_effect=[ProjectionError("once"), None])
    await _append(session_factory, ArticleStateChanged(id="a1", state=1))
    dispatcher = _dispatcher(session_factory, _registry(handler))

    assert await dispatcher.process_batch() == 0
    assert await dispatcher.process_batch() == 1

    (row,) = await _rows(session_factory)
    assert row.processed is True
    assert row.error is None
    assert row.retries == 1


@pytest.mark.asyncio
async def test_unknown_topic_is_dead_lettered_without_retry(session_factory):
    handler = AsyncMock()
    await _append(session_factory, ArticleDeleted(id="a1"))
    dispatcher = _dispatcher(session_factory, _registry(handler))

    await dispatcher.process_batch()

    (row,) = await _rows(session_factory)
    assert row.processed is True
    assert row.retries == 0
    assert "UnknownEvent" in row.error
    handler.assert_not_called()


@pytest.mark.asyncio
async def test_invalid_payload_is_dead_lettered_without_retry(session_factory):
    handler = AsyncMock()
    async with session_factory() as session:
        session.add(
            OutboxEntry(
                event_id="evt-1",
                topic=ArticleStateChanged.topic,
                payload={"id": "a1"},
                occurred_at=store.utc_now(),
                processed=False,
                retries=0,
            )
        )
        await session.commit()
    dispatcher = _dispatcher(session_factory, _registry(handler))

    await dispatcher.process_batch()

    (row,) = await _rows(session_factory)
    assert row.processed is True
    assert row.retries == 0
    assert "DataIntegrityError" in row.error
    handler.assert_not_called()


@pytest.mark.asyncio
async def test_outbox_stats_counts_by_status(session_factory):
    handler = AsyncMock()
    await _append(
        session_factory,
        ArticleStateChanged(id="a1", state=1),
        ArticleDeleted(id="a2"),
    )
    dispatcher = _dispatcher(session_factory, _registry(handler))
    await dispatcher.process_batch()  # a1 ok, a2 unknown topic aborts the batch
    await dispatcher.process_batch()  # a1 ok

    async with session_factory() as session:
        stats = await store.outbox_stats(session)
    assert stats == {"pending": 0, "processed": 1, "dead_lettered": 1}


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
async def test_start_runs_ticks_in_background_and_stop_is_graceful(session_factory):
    handler = AsyncMock()
    await _append(session_factory, ArticleStateChanged(id="a1", state=1))
    dispatcher = _dispatcher(session_factory, _registry(handler))

    await dispatcher.start()
    assert dispatcher.running
    for _ in range(100):
        if handler.await_count:
            break
        await asyncio.sleep(0.01)
    await dispatcher.stop()

    assert not dispatcher.running
    handler.assert_awaited_once()
    (row,) = await _rows(session_factory)
    assert row.processed is True


@pytest.mark.asyncio
async def test_run_survives_store_failures(session_factory):
    dispatcher = _dispatcher(session_factory, _registry(AsyncMock()))
    calls = 0

    async def broken_tick():
        nonlocal calls
        calls += 1
        raise RuntimeError("database unavailable")

    dispatcher.process_batch = broken_tick
    await dispatcher.start()
    for _ in range(100):
        if calls >= 2:
            break
        await asyncio.sleep(0.01)
    await dispatcher.stop()

    assert calls >= 2


@pytest.mark.asyncio
async def test_stop_without_start_is_harmless(session_factory):
    dispatcher = _dispatcher(session_factory, _registry(AsyncMock()))
    await dispatcher.stop()
    assert not dispatcher.running
