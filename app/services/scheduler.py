"""Delayed deletion of closed ticket channels.

A closed ticket with `channel_removed = False` is the durable record of a
pending deletion. Each pending deletion runs as a tracked asyncio task; on
startup `reconcile()` picks up the ones a previous process never finished.
"""

import asyncio
import uuid
from datetime import timezone
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.base import utcnow
from app.services.gateway import Gateway
from app.services.store import TicketStore
from app.utils.logging_config import logger


class ChannelDeletionScheduler:
    def __init__(
        self,
        gateway: Gateway,
        session_factory: async_sessionmaker[AsyncSession],
        delay: float,
    ):
        self.gateway = gateway
        self.session_factory = session_factory
        self.delay = delay
        self._tasks: Dict[int, asyncio.Task] = {}

    def schedule(
        self,
        ticket_id: uuid.UUID,
        community_id: int,
        channel_id: int,
        delay: Optional[float] = None,
    ) -> asyncio.Task:
        if channel_id in self._tasks:
            return self._tasks[channel_id]
        wait = self.delay if delay is None else max(delay, 0)
        task = asyncio.create_task(
            self._delete_later(ticket_id, community_id, channel_id, wait),
            name=f"delete-ticket-channel-{channel_id}",
        )
        self._tasks[channel_id] = task
        task.add_done_callback(self._forget)
        return task

    def _forget(self, task: asyncio.Task) -> None:
        for channel_id, tracked in list(self._tasks.items()):
            if tracked is task:
                del self._tasks[channel_id]

    def cancel(self, channel_id: int) -> bool:
        task = self._tasks.pop(channel_id, None)
        if task is None:
            return False
        task.cancel()
        return True

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def _delete_later(
        self, ticket_id: uuid.UUID, community_id: int, channel_id: int, wait: float
    ) -> None:
        await asyncio.sleep(wait)
        try:
            await self.gateway.delete_channel(community_id, channel_id)
        except Exception as e:
            # The ticket stays pending and is retried on the next reconcile
            logger.error(f"Failed to delete ticket channel {channel_id}: {e}", exc_info=True)
            return

        try:
            async with self.session_factory() as session:
                await TicketStore(session).mark_channel_removed(ticket_id)
                await session.commit()
        except Exception as e:
            # Reconcile retries; deleting an already missing channel is a no-op
            logger.error(
                f"Deleted ticket channel {channel_id} but could not record it: {e}", exc_info=True
            )
            return
        logger.info(f"Deleted ticket channel {channel_id}")

    async def reconcile(self) -> int:
        """
        Schedules every closed ticket whose channel still has to be deleted.
        Overdue deletions run immediately. Returns the number scheduled.
        """
        async with self.session_factory() as session:
            pending = await TicketStore(session).find_pending_removal()

        now = utcnow()
        for ticket in pending:
            closed_at = ticket.closed_at or now
            if closed_at.tzinfo is None:
                closed_at = closed_at.replace(tzinfo=timezone.utc)
            remaining = self.delay - (now - closed_at).total_seconds()
            self.schedule(ticket.id, ticket.community_id, ticket.channel_id, delay=remaining)

        if pending:
            logger.info(f"Rescheduled {len(pending)} pending ticket channel deletion(s)")
        return len(pending)

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

