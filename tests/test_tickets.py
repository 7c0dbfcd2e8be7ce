"""Tests for the ticket lifecycle: panel, opening and closing tickets."""

import asyncio

import pytest
from sqlalchemy import select

from app.models import GuildSettings, Ticket, TicketState
from app.schemas.interaction import Component, EventKind, InteractionEvent
from app.services.store import TicketStore
from app.utils.errors import GatewayError, NotFoundError, PermissionDeniedError

from conftest import GUILD, OTHER_GUILD

OWNER = 42
STRANGER = 43
STAFF = 44


async def _all_tickets(session_factory):
    async with session_factory() as session:
        return (await session.scalars(select(Ticket))).all()


async def _open_ticket(tickets, user_id=OWNER, user_name="alice", community_id=GUILD) -> int:
    await tickets.request_ticket(user_id, user_name, community_id)
    (ticket,) = [t for t in await _all_tickets(tickets.session_factory) if t.user_id == user_id and not t.closed]
    return ticket.channel_id


class TestPublishPanel:
    @pytest.mark.asyncio
    async def test_requires_manage_server(self, tickets) -> None:
        with pytest.raises(PermissionDeniedError):
            await tickets.publish_panel(GUILD, can_manage_guild=False)

    @pytest.mark.asyncio
    async def test_returns_public_panel_and_caches_resources(
        self, tickets, gateway, session_factory
    ) -> None:
        log_channel = gateway.add_text_channel(GUILD, "bot-logs")

        reply = await tickets.publish_panel(GUILD, can_manage_guild=True)

        assert reply.ephemeral is False
        assert reply.embed.title == "Support Tickets"
        assert reply.components == [Component.CREATE_TICKET]
        async with session_factory() as session:
            cached = await session.get(GuildSettings, GUILD)
        assert cached.ticket_category_id in gateway.channels
        assert cached.trust_role_id in gateway.roles
        assert cached.audit_log_channel_id == log_channel


class TestRequestTicket:
    @pytest.mark.asyncio
    async def test_creates_channel_record_and_welcome(
        self, tickets, gateway, session_factory
    ) -> None:
        reply = await tickets.request_ticket(OWNER, "alice", GUILD)

        (channel_id,) = gateway.ticket_channels()
        channel = gateway.channels[channel_id]
        assert channel["name"] == "ticket-alice"
        assert channel["owner"] == OWNER
        assert gateway.channels[channel["parent"]]["name"] == "Tickets"

        assert reply.ephemeral is True
        assert reply.content == f"Your ticket has been created: <#{channel_id}>"

        (ticket,) = await _all_tickets(session_factory)
        assert ticket.user_id == OWNER
        assert ticket.channel_id == channel_id
        assert ticket.community_id == GUILD
        assert ticket.state is TicketState.OPEN

        (welcome,) = gateway.messages_to(channel_id)
        assert welcome.content == f"<@{OWNER}>, support will be with you shortly."
        assert welcome.components == [Component.CLOSE_TICKET]

    @pytest.mark.asyncio
    async def test_second_request_points_at_existing_ticket(
        self, tickets, gateway, session_factory
    ) -> None:
        await tickets.request_ticket(OWNER, "alice", GUILD)
        (channel_id,) = gateway.ticket_channels()

        reply = await tickets.request_ticket(OWNER, "alice", GUILD)

        assert reply.content == f"You already have an open ticket: <#{channel_id}>"
        assert gateway.ticket_channels() == [channel_id]
        assert len(await _all_tickets(session_factory)) == 1

    @pytest.mark.asyncio
    async def test_losing_concurrent_request_removes_its_channel(
        self, tickets, gateway, session_factory
    ) -> None:
        create_channel = gateway.create_ticket_channel
        winner = {}

        async def create_after_competitor(community_id, name, category_id, owner_id):
            # Another request for the same member commits its ticket first
            winner["channel"] = await create_channel(community_id, name, category_id, owner_id)
            async with session_factory() as session:
                await TicketStore(session).insert(
                    Ticket(user_id=owner_id, channel_id=winner["channel"], community_id=community_id)
                )
                await session.commit()
            return await create_channel(community_id, name, category_id, owner_id)

        gateway.create_ticket_channel = create_after_competitor

        reply = await tickets.request_ticket(OWNER, "alice", GUILD)

        (loser,) = gateway.deleted
        assert loser != winner["channel"]
        assert gateway.ticket_channels() == [winner["channel"]]
        assert reply.content == f"You already have an open ticket: <#{winner['channel']}>"
        open_tickets = [t for t in await _all_tickets(session_factory) if not t.closed]
        assert [t.channel_id for t in open_tickets] == [winner["channel"]]
        assert gateway.messages_to(loser) == []

    @pytest.mark.asyncio
    async def test_concurrent_requests_open_one_ticket(
        self, tickets, gateway, session_factory
    ) -> None:
        replies = await asyncio.gather(
            tickets.request_ticket(OWNER, "alice", GUILD),
            tickets.request_ticket(OWNER, "alice", GUILD),
        )

        (ticket,) = [t for t in await _all_tickets(session_factory) if not t.closed]
        assert gateway.ticket_channels() == [ticket.channel_id]
        assert sorted(reply.content for reply in replies) == [
            f"You already have an open ticket: <#{ticket.channel_id}>",
            f"Your ticket has been created: <#{ticket.channel_id}>",
        ]

    @pytest.mark.asyncio
    async def test_same_user_may_hold_tickets_in_different_guilds(
        self, tickets, gateway, session_factory
    ) -> None:
        await tickets.request_ticket(OWNER, "alice", GUILD)
        await tickets.request_ticket(OWNER, "alice", OTHER_GUILD)

        assert len(gateway.ticket_channels()) == 2
        assert len(await _all_tickets(session_factory)) == 2

    @pytest.mark.asyncio
    async def test_category_created_once(self, tickets, gateway) -> None:
        await tickets.request_ticket(OWNER, "alice", GUILD)
        await tickets.request_ticket(STRANGER, "bob", GUILD)

        assert gateway.create_category_calls == 1
        parents = {gateway.channels[c]["parent"] for c in gateway.ticket_channels()}
        assert len(parents) == 1

    @pytest.mark.asyncio
    async def test_stale_ticket_is_retired_when_channel_is_gone(
        self, tickets, gateway, session_factory
    ) -> None:
        await tickets.request_ticket(OWNER, "alice", GUILD)
        (old_channel,) = gateway.ticket_channels()
        del gateway.channels[old_channel]

        reply = await tickets.request_ticket(OWNER, "alice", GUILD)

        (new_channel,) = gateway.ticket_channels()
        assert new_channel != old_channel
        assert reply.content == f"Your ticket has been created: <#{new_channel}>"
        states = {t.channel_id: t.state for t in await _all_tickets(session_factory)}
        assert states == {
            old_channel: TicketState.CHANNEL_REMOVED,
            new_channel: TicketState.OPEN,
        }

    @pytest.mark.asyncio
    async def test_channel_creation_failure_persists_nothing(
        self, tickets, gateway, session_factory
    ) -> None:
        gateway.fail_channel_creation = True

        with pytest.raises(GatewayError):
            await tickets.request_ticket(OWNER, "alice", GUILD)

        assert await _all_tickets(session_factory) == []
        assert gateway.ticket_channels() == []

    @pytest.mark.asyncio
    async def test_failure_is_reported_through_dispatcher(self, dispatcher, gateway) -> None:
        gateway.fail_channel_creation = True
        event = InteractionEvent(
            kind=EventKind.BUTTON,
            name="create_ticket",
            user_id=OWNER,
            user_name="alice",
            community_id=GUILD,
            channel_id=7,
        )

        reply = await dispatcher.dispatch(event)

        assert reply.ephemeral is True
        assert reply.content == "Could not create your ticket channel. Please try again later."

    @pytest.mark.asyncio
    async def test_audit_line_written_when_log_channel_exists(self, tickets, gateway) -> None:
        log_channel = gateway.add_text_channel(GUILD, "bot-logs")

        await tickets.request_ticket(OWNER, "alice", GUILD)

        (entry,) = gateway.messages_to(log_channel)
        assert entry.content.startswith("Ticket created by alice")

    @pytest.mark.asyncio
    async def test_audit_skipped_without_log_channel(self, tickets, gateway) -> None:
        await tickets.request_ticket(OWNER, "alice", GUILD)

        # Only the welcome message went out
        assert len(gateway.sent) == 1


class TestCloseTicket:
    @pytest.mark.asyncio
    async def test_owner_can_close(self, tickets, scheduler, session_factory) -> None:
        channel_id = await _open_ticket(tickets)

        reply = await tickets.close_ticket(OWNER, "alice", GUILD, channel_id, can_manage_messages=False)

        assert reply.ephemeral is False
        assert reply.content == "Closing this ticket in 5 seconds..."
        (ticket,) = await _all_tickets(session_factory)
        assert ticket.closed is True
        assert ticket.closed_by == OWNER
        assert ticket.state is TicketState.CLOSED
        assert scheduler.pending == 1

    @pytest.mark.asyncio
    async def test_staff_can_close(self, tickets, session_factory) -> None:
        channel_id = await _open_ticket(tickets)

        await tickets.close_ticket(STAFF, "mod", GUILD, channel_id, can_manage_messages=True)

        (ticket,) = await _all_tickets(session_factory)
        assert ticket.closed is True
        assert ticket.closed_by == STAFF

    @pytest.mark.asyncio
    async def test_stranger_cannot_close(self, tickets, gateway, scheduler, session_factory) -> None:
        channel_id = await _open_ticket(tickets)

        with pytest.raises(PermissionDeniedError):
            await tickets.close_ticket(STRANGER, "bob", GUILD, channel_id, can_manage_messages=False)

        (ticket,) = await _all_tickets(session_factory)
        assert ticket.closed is False
        assert channel_id in gateway.channels
        assert scheduler.pending == 0

    @pytest.mark.asyncio
    async def test_close_outside_ticket_channel(self, tickets, gateway) -> None:
        general = gateway.add_text_channel(GUILD, "general")

        with pytest.raises(NotFoundError) as exc_info:
            await tickets.close_ticket(OWNER, "alice", GUILD, general, can_manage_messages=True)

        assert exc_info.value.message == "This is not an active ticket channel."

    @pytest.mark.asyncio
    async def test_close_twice(self, tickets) -> None:
        channel_id = await _open_ticket(tickets)
        await tickets.close_ticket(OWNER, "alice", GUILD, channel_id, can_manage_messages=False)

        with pytest.raises(NotFoundError):
            await tickets.close_ticket(OWNER, "alice", GUILD, channel_id, can_manage_messages=False)

    @pytest.mark.asyncio
    async def test_new_ticket_after_close(self, tickets, gateway, session_factory) -> None:
        channel_id = await _open_ticket(tickets)
        await tickets.close_ticket(OWNER, "alice", GUILD, channel_id, can_manage_messages=False)

        reply = await tickets.request_ticket(OWNER, "alice", GUILD)

        assert reply.content.startswith("Your ticket has been created")
        assert len(await _all_tickets(session_factory)) == 2
