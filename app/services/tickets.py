"""Ticket lifecycle: publishing the panel, opening and closing tickets."""

import discord
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models import Ticket
from app.schemas.interaction import Component, Reply
from app.services.audit import AuditLog
from app.services.gateway import Gateway
from app.services.resources import GuildResources
from app.services.scheduler import ChannelDeletionScheduler
from app.services.store import TicketStore
from app.utils.errors import NotFoundError, PermissionDeniedError
from app.utils.formatting import channel_mention, user_mention
from app.utils.logging_config import logger

PANEL_COLOR = 0x3498DB
WELCOME_COLOR = 0x00FF00


class TicketManager:
    def __init__(
        self,
        gateway: Gateway,
        session_factory: async_sessionmaker[AsyncSession],
        resources: GuildResources,
        audit: AuditLog,
        scheduler: ChannelDeletionScheduler,
    ):
        self.gateway = gateway
        self.session_factory = session_factory
        self.resources = resources
        self.audit = audit
        self.scheduler = scheduler

    async def publish_panel(self, community_id: int, can_manage_guild: bool) -> Reply:
        """
        Handles `setup`: resolves the guild resources once and returns the
        public message carrying the ticket-creation button.
        """
        if not can_manage_guild:
            raise PermissionDeniedError(
                'You need the "Manage Server" permission to use this command.'
            )

        await self.resources.ticket_category(community_id)
        await self.resources.trust_role(community_id)
        await self.resources.audit_channel(community_id)

        embed = discord.Embed(
            title="Support Tickets",
            description="Click the button below to create a support ticket",
            color=PANEL_COLOR,
        )
        return Reply(embed=embed, components=[Component.CREATE_TICKET], ephemeral=False)

    async def request_ticket(self, user_id: int, user_name: str, community_id: int) -> Reply:
        """
        Opens a private ticket channel for the member, or points them at the
        one they already have.
        """
        async with self.session_factory() as session:
            store = TicketStore(session)
            existing = await store.find_open_for_user(user_id, community_id)
            if existing is not None:
                if await self.gateway.channel_exists(community_id, existing.channel_id):
                    return Reply(
                        content=f"You already have an open ticket: {channel_mention(existing.channel_id)}"
                    )
                # Channel was removed by hand; retire the record so a new one can open
                logger.warning(
                    f"Ticket {existing.id} points at missing channel {existing.channel_id}, closing it"
                )
                await store.close(existing.id, channel_removed=True)
                await session.commit()

        category_id = await self.resources.ticket_category(community_id)
        channel_id = await self.gateway.create_ticket_channel(
            community_id, f"ticket-{user_name or user_id}", category_id, user_id
        )

        async with self.session_factory() as session:
            store = TicketStore(session)
            try:
                ticket = await store.insert(
                    Ticket(user_id=user_id, channel_id=channel_id, community_id=community_id)
                )
                await session.commit()
            except IntegrityError:
                # A concurrent request opened a ticket first
                await session.rollback()
                await self.gateway.delete_channel(community_id, channel_id)
                winner = await store.find_open_for_user(user_id, community_id)
                if winner is None:
                    raise
                return Reply(
                    content=f"You already have an open ticket: {channel_mention(winner.channel_id)}"
                )

        embed = discord.Embed(
            title=f"Ticket for {user_name}",
            description="Support will be with you shortly.",
            color=WELCOME_COLOR,
        )
        await self.gateway.send_message(
            channel_id,
            content=f"{user_mention(user_id)}, support will be with you shortly.",
            embed=embed,
            components=[Component.CLOSE_TICKET],
        )
        await self.audit.record(
            community_id, f"Ticket created by {user_name} ({channel_mention(channel_id)})"
        )
        logger.info(f"Opened ticket {ticket.id} for user {user_id} in guild {community_id}")
        return Reply(content=f"Your ticket has been created: {channel_mention(channel_id)}")

    async def close_ticket(
        self,
        user_id: int,
        user_name: str,
        community_id: int,
        channel_id: int,
        can_manage_messages: bool,
    ) -> Reply:
        """
        Closes the ticket bound to `channel_id` and schedules the channel for
        deletion. Only the ticket owner or staff with Manage Messages may close.
        """
        async with self.session_factory() as session:
            store = TicketStore(session)
            ticket = await store.find_open_by_channel(channel_id)
            if ticket is None:
                raise NotFoundError("This is not an active ticket channel.")

            if not can_manage_messages and user_id != ticket.user_id:
                logger.warning(
                    f"User {user_id} tried to close ticket {ticket.id} without permission"
                )
                raise PermissionDeniedError(
                    "Only staff or the ticket creator can close tickets."
                )

            if not await store.close(ticket.id, closed_by=user_id):
                raise NotFoundError("This is not an active ticket channel.")
            await session.commit()

        self.scheduler.schedule(ticket.id, community_id, channel_id)
        await self.audit.record(
            community_id, f"Ticket {channel_mention(channel_id)} closed by {user_name}"
        )
        return Reply(
            content=f"Closing this ticket in {self.scheduler.delay:g} seconds...",
            ephemeral=False,
        )
