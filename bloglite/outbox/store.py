"""
SQL access to the ``outbox`` table.

The writer side (``append_events``) runs inside the command's transaction;
everything else is used by the dispatcher. None of these functions commit:
the caller owns the transaction boundary.
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import and_, case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from bloglite.domain.events import DomainEvent
from bloglite.models import OutboxEntry


@dataclass(frozen=True)
class ClaimedEvent:
    """Detached snapshot of a claimed row; survives a rollback of its session."""

    event_id: str
    topic: str
    payload: dict
    occurred_at: datetime
    retries: int


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Writer side
# ---------------------------------------------------------------------------

def append_events(db: AsyncSession, events: Iterable[DomainEvent]) -> list[OutboxEntry]:
    entries = [
        OutboxEntry(
            event_id=str(uuid.uuid4()),
            topic=event.topic,
            payload=event.to_payload(),
            occurred_at=utc_now(),
            processed=False,
            retries=0,
        )
        for event in events
    ]
    db.add_all(entries)
    return entries


# ---------------------------------------------------------------------------
# Dispatcher side
# ---------------------------------------------------------------------------

async def claim_batch(db: AsyncSession, limit: int) -> list[ClaimedEvent]:
    """
    Lock and return up to *limit* unprocessed rows, oldest first.

    ``FOR UPDATE SKIP LOCKED`` lets concurrent dispatchers claim disjoint
    rows; the locks last until the caller's transaction ends.
    """
    q = (
        select(
            OutboxEntry.event_id,
            OutboxEntry.topic,
            OutboxEntry.payload,
            OutboxEntry.occurred_at,
            OutboxEntry.retries,
        )
        .where(OutboxEntry.processed.is_(False))
        .order_by(OutboxEntry.occurred_at.asc(), OutboxEntry.id.asc())
        .limit(limit)
        .with_for_update(skip_locked=True)
    )
    rows = (await db.execute(q)).all()
    return [
        ClaimedEvent(
            event_id=row.event_id,
            topic=row.topic,
            payload=row.payload,
            occurred_at=row.occurred_at,
            retries=row.retries,
        )
        for row in rows
    ]


async def mark_processed(db: AsyncSession, event_ids: list[str]) -> None:
    if not event_ids:
        return
    await db.execute(
        update(OutboxEntry)
        .where(OutboxEntry.event_id.in_(event_ids))
        .values(processed=True, processed_at=utc_now())
    )


async def mark_for_retry(db: AsyncSession, event_id: str, retries: int) -> None:
    await db.execute(
        update(OutboxEntry)
        .where(OutboxEntry.event_id == event_id)
        .values(retries=retries, last_attempt_at=utc_now())
    )


async def mark_dead_lettered(db: AsyncSession, event_id: str, error: str) -> None:
    now = utc_now()
    await db.execute(
        update(OutboxEntry)
        .where(OutboxEntry.event_id == event_id)
        .values(processed=True, processed_at=now, last_attempt_at=now, error=error)
    )


async def outbox_stats(db: AsyncSession) -> dict:
    """Row counts by status, for the metrics endpoint."""
    q = select(
        func.count(case((OutboxEntry.processed.is_(False), 1))).label("pending"),
        func.count(
            case((and_(OutboxEntry.processed.is_(True), OutboxEntry.error.is_(None)), 1))
        ).label("processed"),
        func.count(case((OutboxEntry.error.is_not(None), 1))).label("dead_lettered"),
    )
    row = (await db.execute(q)).one()
    return {
        "pending": row.pending,
        "processed": row.processed,
        "dead_lettered": row.dead_lettered,
    }
