"""Durable SQLite-backed work queue with lease-based redelivery.

Delivery is at-least-once.  ``receive`` leases the oldest available item to
one consumer; the item stays in the table until the consumer calls ``ack``
(done) or ``reject`` (discard).  If neither happens before the lease runs
out, for instance because the worker died, the item becomes available again
and is handed to the next ``receive`` with its delivery count bumped.
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

import aiosqlite

from .db import Database, fetch_dict
from .models import Delivery, WorkItem

logger = logging.getLogger(__name__)


class QueueChannel:
    """Producer/consumer hand-off of ``WorkItem`` payloads."""

    def __init__(
        self,
        db: Database,
        lease_seconds: float = 300.0,
        dead_letter: bool = False,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._db = db
        self.lease_seconds = lease_seconds
        self.dead_letter = dead_letter
        self._clock = clock

    # ── Producer ─────────────────────────────────────────────────────

    async def publish(
        self,
        item: WorkItem,
        conn: Optional[aiosqlite.Connection] = None,
    ) -> int:
        """Append *item* to the queue and return its delivery ID."""
        return await self.publish_raw(item.model_dump_json(), conn=conn)

    async def publish_raw(
        self,
        body: str,
        conn: Optional[aiosqlite.Connection] = None,
    ) -> int:
        """Append an already-encoded body (used by producers and tests alike)."""
        sql = "INSERT INTO work_items (body, enqueued_at) VALUES (?, ?)"
        params = (body, self._clock())
        if conn is not None:
            cur = await conn.execute(sql, params)
            return cur.lastrowid
        async with self._db.transaction() as tx:
            cur = await tx.execute(sql, params)
            return cur.lastrowid

    # ── Consumer ─────────────────────────────────────────────────────

    async def receive(self, consumer: str) -> Optional[Delivery]:
        """Lease the oldest available item to *consumer*, or return ``None``."""
        now = self._clock()
        expires = now + self.lease_seconds
        async with self._db.transaction() as tx:
            row = await fetch_dict(
                tx,
                "SELECT * FROM work_items "
                "WHERE lease_expires_at IS NULL OR lease_expires_at <= ? "
                "ORDER BY delivery_id LIMIT 1",
                (now,),
            )
            if row is None:
                return None
            await tx.execute(
                "UPDATE work_items SET consumer = ?, lease_expires_at = ?, "
                "delivery_count = delivery_count + 1 WHERE delivery_id = ?",
                (consumer, expires, row["delivery_id"]),
            )

        delivery = Delivery(
            delivery_id=row["delivery_id"],
            body=row["body"],
            consumer=consumer,
            delivery_count=row["delivery_count"] + 1,
            lease_expires_at=expires,
        )
        if delivery.redelivered:
            logger.info(
                "Redelivering item %d to %s (attempt %d)",
                delivery.delivery_id, consumer, delivery.delivery_count,
            )
        return delivery

    async def ack(self, delivery: Delivery) -> bool:
        """Remove a successfully processed item.

        Returns ``False`` if the item was already gone, which happens when
        the lease expired and another consumer finished it first.
        """
        return await self._delete(delivery)

    async def reject(self, delivery: Delivery, reason: str = "") -> bool:
        """Discard an item permanently without retry.

        With ``dead_letter`` enabled the body is kept in ``dead_letters``
        for operator inspection before it leaves the queue.
        """
        async with self._db.transaction() as tx:
            if self.dead_letter:
                await tx.execute(
                    "INSERT INTO dead_letters (body, reason, delivery_count, discarded_at) "
                    "VALUES (?,?,?,?)",
                    (delivery.body, reason, delivery.delivery_count, self._clock()),
                )
            cur = await tx.execute(
                "DELETE FROM work_items WHERE delivery_id = ?", (delivery.delivery_id,)
            )
            removed = cur.rowcount > 0
        logger.info("Discarded item %d: %s", delivery.delivery_id, reason or "no reason")
        return removed

    async def release(self, delivery: Delivery) -> bool:
        """Return an item to the queue for immediate redelivery."""
        async with self._db.transaction() as tx:
            cur = await tx.execute(
                "UPDATE work_items SET consumer = NULL, lease_expires_at = NULL "
                "WHERE delivery_id = ? AND consumer = ?",
                (delivery.delivery_id, delivery.consumer),
            )
            return cur.rowcount > 0

    async def _delete(self, delivery: Delivery) -> bool:
        async with self._db.transaction() as tx:
            cur = await tx.execute(
                "DELETE FROM work_items WHERE delivery_id = ?", (delivery.delivery_id,)
            )
            return cur.rowcount > 0

    # ── Introspection ────────────────────────────────────────────────

    async def depth(self) -> int:
        """Number of items not yet acked or rejected (leased or not)."""
        row = await self._db.fetchone("SELECT COUNT(*) AS n FROM work_items")
        return int(row["n"]) if row else 0

    async def dead_letter_count(self) -> int:
        row = await self._db.fetchone("SELECT COUNT(*) AS n FROM dead_letters")
        return int(row["n"]) if row else 0
