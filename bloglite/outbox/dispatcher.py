"""
Outbox dispatcher — drains the outbox into the registered projections.

Design notes
------------
- One tick claims up to ``batch_size`` unprocessed rows (oldest first,
  ``FOR UPDATE SKIP LOCKED``) and dispatches them sequentially inside the
  claiming transaction. Locks are held for the whole batch, so concurrent
  dispatchers never see the same row.
- The first failing row aborts the batch: the transaction is rolled back,
  releasing every claimed row, and only the failing row is charged for the
  failure in a separate short transaction. Later rows are reclaimed on the
  next tick.
- Retry accounting: ``Inconsistent`` failures (unknown topic, undecodable
  payload, corrupt aggregate) are dead-lettered at once. Anything else
  increments ``retries``; a row that fails with ``retries`` already at
  ``max_retries`` is dead-lettered.
- Delivery is at-least-once; projections are idempotent.
- ``start()``/``stop()`` run ``run()`` as a background task inside the
  FastAPI lifespan. ``stop()`` lets the tick in progress finish, up to
  ``shutdown_timeout`` seconds, before cancelling it.
"""
from __future__ import annotations

import asyncio
import contextlib
import logging
from datetime import datetime
from typing import Awaitable, Callable

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bloglite.domain.events import DomainEvent
from bloglite.exceptions import BlogliteError, DataIntegrityError, Inconsistent
from bloglite.outbox import store
from bloglite.outbox.registry import EventRegistry
from bloglite.outbox.store import ClaimedEvent

logger = logging.getLogger(__name__)

AfterCommit = Callable[[list[ClaimedEvent]], Awaitable[None]]


class OutboxDispatcher:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        registry: EventRegistry,
        *,
        batch_size: int = 10,
        max_retries: int = 3,
        interval: float = 5.0,
        shutdown_timeout: float = 30.0,
        after_commit: AfterCommit | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.registry = registry
        self.batch_size = batch_size
        self.max_retries = max_retries
        self.interval = interval
        self.shutdown_timeout = shutdown_timeout
        self._after_commit = after_commit

        self._stopping = asyncio.Event()
        self._task: asyncio.Task | None = None
        self._stats = {
            "ticks": 0,
            "processed": 0,
            "retried": 0,
            "dead_lettered": 0,
            "aborted_batches": 0,
        }
        self._last_tick_at: datetime | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the polling loop in a background task."""
        if self.running:
            return
        self._stopping.clear()
        self._task = asyncio.create_task(self.run(), name="outbox-dispatcher")
        logger.info(
            "Outbox dispatcher started (interval=%.1fs, batch_size=%d, max_retries=%d)",
            self.interval,
            self.batch_size,
            self.max_retries,
        )

    async def stop(self) -> None:
        """Stop after the current tick; cancel it if it outlives the timeout."""
        self._stopping.set()
        if self._task is None:
            return
        try:
            await asyncio.wait_for(asyncio.shield(self._task), timeout=self.shutdown_timeout)
        except asyncio.TimeoutError:
            logger.warning(
                "Outbox dispatcher did not finish within %.1fs, cancelling",
                self.shutdown_timeout,
            )
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
        self._task = None
        logger.info("Outbox dispatcher stopped")

    async def run(self) -> None:
        while not self._stopping.is_set():
            try:
                await self.process_batch()
            except Exception:
                logger.exception("Outbox dispatcher tick failed")
            with contextlib.suppress(asyncio.TimeoutError):
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)

    # ------------------------------------------------------------------
    # One tick
    # ------------------------------------------------------------------

    async def process_batch(self) -> int:
        """
        Claim and dispatch one batch.

        Returns the number of rows marked processed. Row failures are
        accounted for and never raised; only a failure of the store itself
        (claim or commit) propagates.
        """
        self._stats["ticks"] += 1
        self._last_tick_at = store.utc_now()
        failure: tuple[ClaimedEvent, Exception] | None = None

        async with self._session_factory() as db:
            claimed = await store.claim_batch(db, self.batch_size)
            if not claimed:
                logger.debug("Outbox is empty")
                return 0
            logger.info("Received %d outbox event(s)", len(claimed))

            for entry in claimed:
                try:
                    await self._dispatch(db, entry)
                except Exception as exc:
                    await db.rollback()
                    failure = (entry, exc)
                    break
            else:
                await store.mark_processed(db, [entry.event_id for entry in claimed])
                await db.commit()

        if failure is not None:
            self._stats["aborted_batches"] += 1
            await self._record_failure(*failure)
            return 0

        self._stats["processed"] += len(claimed)
        if self._after_commit is not None:
            await self._after_commit(claimed)
        return len(claimed)

    async def drain(self) -> int:
        """
        Run ticks back to back until the outbox has nothing left to claim.

        An aborted tick does not end the drain: its failing row has already
        been rescheduled or dead-lettered, so every row ends up processed or
        dead-lettered. Returns the number of rows processed.
        """
        total = 0
        while True:
            aborted = self._stats["aborted_batches"]
            processed = await self.process_batch()
            if not processed and self._stats["aborted_batches"] == aborted:
                return total
            total += processed

    async def _dispatch(self, db: AsyncSession, entry: ClaimedEvent) -> None:
        route = self.registry.resolve(entry.topic)
        event = self._decode(route.event_type, entry)
        for handler in route.handlers:
            await handler(db, event, entry.occurred_at)
        logger.debug("Dispatched %s (%s)", entry.topic, entry.event_id)

    @staticmethod
    def _decode(event_type: type[DomainEvent], entry: ClaimedEvent) -> DomainEvent:
        try:
            return event_type.model_validate(entry.payload)
        except ValidationError as exc:
            raise DataIntegrityError(
                f"Payload of {entry.topic} event {entry.event_id} is invalid: "
                f"{exc.error_count()} error(s)"
            ) from exc

    async def _record_failure(self, entry: ClaimedEvent, exc: Exception) -> None:
        error = f"{type(exc).__name__}: {exc}"
        unexpected = not isinstance(exc, BlogliteError)

        async with self._session_factory() as db:
            if isinstance(exc, Inconsistent):
                await store.mark_dead_lettered(db, entry.event_id, error)
                self._stats["dead_lettered"] += 1
                logger.error(
                    "Dead-lettered %s event %s without retry: %s",
                    entry.topic,
                    entry.event_id,
                    error,
                )
            elif entry.retries >= self.max_retries:
                await store.mark_dead_lettered(db, entry.event_id, error)
                self._stats["dead_lettered"] += 1
                logger.error(
                    "Dead-lettered %s event %s after %d retries: %s",
                    entry.topic,
                    entry.event_id,
                    entry.retries,
                    error,
                    exc_info=exc if unexpected else None,
                )
            else:
                retries = entry.retries + 1
                await store.mark_for_retry(db, entry.event_id, retries)
                self._stats["retried"] += 1
                logger.warning(
                    "Failed to dispatch %s event %s (retry %d/%d): %s",
                    entry.topic,
                    entry.event_id,
                    retries,
                    self.max_retries,
                    error,
                    exc_info=exc if unexpected else None,
                )
            await db.commit()

    # ------------------------------------------------------------------
    # Observability
    # ------------------------------------------------------------------

    @property
    def stats(self) -> dict:
        return {
            **self._stats,
            "running": self.running,
            "last_tick_at": self._last_tick_at.isoformat() if self._last_tick_at else None,
        }
