"""Discord client: wires slash commands, buttons and forms to the dispatcher."""

from typing import Any, Dict, Optional

import discord
from discord import app_commands
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.api.dispatcher import Dispatcher, Outcome
from app.api.router import deferral
from app.bot.gateway import DiscordGateway
from app.bot.views import ComponentView, VouchModal
from app.config.db import check_db_connection, init_models
from app.schemas.interaction import Component, EventKind, InteractionEvent, ShowVouchForm
from app.services.audit import AuditLog
from app.services.resources import GuildResources
from app.services.scheduler import ChannelDeletionScheduler
from app.services.tickets import TicketManager
from app.services.vouches import VouchManager
from app.settings import Settings
from app.utils.logging_config import logger


class BotClient(discord.Client):
    def __init__(
        self,
        settings: Settings,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession],
    ):
        intents = discord.Intents.default()
        intents.members = True
        super().__init__(intents=intents)
        self.settings = settings
        self.engine = engine
        self.session_factory = session_factory
        self.tree = app_commands.CommandTree(self)

        self.gateway = DiscordGateway(self)
        resources = GuildResources(self.gateway, session_factory, settings)
        audit = AuditLog(self.gateway, resources)
        self.scheduler = ChannelDeletionScheduler(
            self.gateway, session_factory, settings.TICKET_CLOSE_DELAY_SECONDS
        )
        self.dispatcher = Dispatcher(
            TicketManager(self.gateway, session_factory, resources, audit, self.scheduler),
            VouchManager(self.gateway, session_factory, resources, audit, settings),
        )
        register_commands(self)

    async def setup_hook(self) -> None:
        """
        Handle startup: database, persistent buttons and command sync.
        """
        await init_models(self.engine)
        await check_db_connection(self.session_factory)
        self.add_view(ComponentView(self, list(Component)))

        if self.settings.DEV_GUILD_ID:
            guild = discord.Object(id=self.settings.DEV_GUILD_ID)
            self.tree.copy_global_to(guild=guild)
            await self.tree.sync(guild=guild)
        else:
            await self.tree.sync()
        logger.info("Slash commands registered successfully")

    async def on_ready(self) -> None:
        logger.info(f"Logged in as {self.user}")
        await self.scheduler.reconcile()

    async def close(self) -> None:
        await self.scheduler.shutdown()
        await super().close()
        await self.engine.dispose()

    async def handle(
        self,
        interaction: discord.Interaction,
        kind: EventKind,
        name: str,
        options: Optional[Dict[str, Any]] = None,
    ) -> None:
        if interaction.guild_id is None or interaction.channel_id is None:
            await interaction.response.send_message(
                "This can only be used inside a server.", ephemeral=True
            )
            return

        permissions = interaction.permissions
        event = InteractionEvent(
            kind=kind,
            name=name,
            user_id=interaction.user.id,
            user_name=interaction.user.name,
            community_id=interaction.guild_id,
            channel_id=interaction.channel_id,
            options=options or {},
            can_manage_guild=permissions.manage_guild,
            can_manage_messages=permissions.manage_messages,
        )
        private = deferral(event)
        if private is not None:
            # Acknowledge within the three second window; the reply follows up
            try:
                await interaction.response.defer(ephemeral=private, thinking=True)
            except discord.HTTPException as e:
                logger.warning(f"Could not defer interaction {interaction.id}: {e}")
        outcome = await self.dispatcher.dispatch(event)
        await self.respond(interaction, outcome)

    async def respond(self, interaction: discord.Interaction, outcome: Outcome) -> None:
        if isinstance(outcome, ShowVouchForm):
            await interaction.response.send_modal(
                VouchModal(self, outcome.seller_id, outcome.trust_marker)
            )
            return

        kwargs: Dict[str, Any] = {"ephemeral": outcome.ephemeral}
        if outcome.content is not None:
            kwargs["content"] = outcome.content
        if outcome.embed is not None:
            kwargs["embed"] = outcome.embed
        if outcome.components:
            kwargs["view"] = ComponentView(self, outcome.components)

        try:
            if interaction.response.is_done():
                await interaction.followup.send(**kwargs)
            else:
                await interaction.response.send_message(**kwargs)
        except discord.HTTPException as e:
            logger.error(f"Failed to respond to interaction {interaction.id}: {e}")


def register_commands(bot: BotClient) -> None:
    tree = bot.tree

    @tree.command(name="setup", description="Setup the ticket system")
    @app_commands.guild_only()
    @app_commands.default_permissions(manage_guild=True)
    async def setup(interaction: discord.Interaction):
        await bot.handle(interaction, EventKind.COMMAND, "setup")

    @tree.command(name="vouch", description="Vouch for a seller")
    @app_commands.guild_only()
    @app_commands.describe(seller="The seller you want to vouch for")
    async def vouch(interaction: discord.Interaction, seller: discord.User):
        await bot.handle(interaction, EventKind.COMMAND, "vouch", {"seller": seller.id})

    @tree.command(name="close", description="Close your ticket")
    @app_commands.guild_only()
    async def close(interaction: discord.Interaction):
        await bot.handle(interaction, EventKind.COMMAND, "close")

    @tree.command(name="vouchinfo", description="Get info about a seller's vouches")
    @app_commands.guild_only()
    @app_commands.describe(seller="The seller to check")
    async def vouchinfo(interaction: discord.Interaction, seller: Optional[discord.User] = None):
        options = {"seller": seller.id} if seller else {}
        await bot.handle(interaction, EventKind.COMMAND, "vouchinfo", options)
