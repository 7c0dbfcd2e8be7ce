"""Persistence store: the queries the ticket and vouch workflows rely on.

Each store wraps one AsyncSession. Callers own the transaction and commit
once the write that gates a visible side effect is complete.
"""

import uuid
from typing import Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models import GuildSettings, Ticket, Vouch
from app.models.base import utcnow


class TicketStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(self, ticket: Ticket) -> Ticket:
        self.session.add(ticket)
        await self.session.flush()
        return ticket

    async def find_open_for_user(self, user_id: int, community_id: int) -> Optional[Ticket]:
        return await self.session.scalar(
            select(Ticket).where(
                Ticket.user_id == user_id,
                Ticket.community_id == community_id,
                Ticket.closed.is_(False),
            )
        )

    async def find_open_by_channel(self, channel_id: int) -> Optional[Ticket]:
        return await self.session.scalar(
            select(Ticket).where(
                Ticket.channel_id == channel_id,
                Ticket.closed.is_(False),
            )
        )

    async def close(
        self,
        ticket_id: uuid.UUID,
        closed_by: Optional[int] = None,
        channel_removed: bool = False,
    ) -> bool:
        """
        Marks an open ticket closed.

        The update is conditional on the row still being open, so of two
        concurrent closers exactly one gets True.
        """
        result = await self.session.execute(
            update(Ticket)
            .where(Ticket.id == ticket_id, Ticket.closed.is_(False))
            .values(
                closed=True,
                closed_at=utcnow(),
                closed_by=closed_by,
                channel_removed=channel_removed,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def find_pending_removal(self) -> Sequence[Ticket]:
        """Closed tickets whose channel has not been deleted yet."""
        result = await self.session.scalars(
            select(Ticket)
            .where(Ticket.closed.is_(True), Ticket.channel_removed.is_(False))
            .order_by(Ticket.closed_at.asc())
        )
        return result.all()

    async def mark_channel_removed(self, ticket_id: uuid.UUID) -> None:
        await self.session.execute(
            update(Ticket)
            .where(Ticket.id == ticket_id)
            .values(channel_removed=True, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )


class VouchStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def insert(self, vouch: Vouch) -> Vouch:
        self.session.add(vouch)
        await self.session.flush()
        return vouch

    async def find_for_seller(self, seller_id: int, community_id: int) -> Sequence[Vouch]:
        """All vouches for a seller in insertion order, oldest first."""
        result = await self.session.scalars(
            select(Vouch)
            .where(Vouch.seller_id == seller_id, Vouch.community_id == community_id)
            .order_by(Vouch.created_at.asc(), Vouch.id.asc())
        )
        return result.all()


class GuildSettingsStore:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, community_id: int) -> Optional[GuildSettings]:
        return await self.session.get(GuildSettings, community_id)

    async def get_or_create(self, community_id: int) -> GuildSettings:
        guild_settings = await self.get(community_id)
        if guild_settings is None:
            guild_settings = GuildSettings(community_id=community_id)
            self.session.add(guild_settings)
            await self.session.flush()
        return guild_settings
