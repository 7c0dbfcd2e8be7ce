"""discord.py implementation of the chat platform gateway."""

from typing import TYPE_CHECKING, Optional, Sequence

import discord

from app.bot.views import ComponentView
from app.schemas.interaction import Component
from app.utils.errors import GatewayError
from app.utils.logging_config import logger

if TYPE_CHECKING:
    from app.bot.client import BotClient


class DiscordGateway:
    def __init__(self, bot: "BotClient"):
        self.bot = bot

    def _guild(self, community_id: int) -> discord.Guild:
        guild = self.bot.get_guild(community_id)
        if guild is None:
            raise GatewayError("The bot is not a member of this server.")
        return guild

    async def channel_exists(self, community_id: int, channel_id: int) -> bool:
        return self._guild(community_id).get_channel(channel_id) is not None

    async def find_category(self, community_id: int, name: str) -> Optional[int]:
        category = discord.utils.get(self._guild(community_id).categories, name=name)
        return category.id if category else None

    async def create_category(self, community_id: int, name: str) -> int:
        guild = self._guild(community_id)
        try:
            category = await guild.create_category(name, reason="Ticket category")
        except discord.HTTPException as e:
            logger.error(f"Failed to create category '{name}' in guild {community_id}: {e}")
            raise GatewayError("Could not create the ticket category. Check the bot's permissions.") from e
        return category.id

    async def create_ticket_channel(
        self, community_id: int, name: str, category_id: Optional[int], owner_id: int
    ) -> int:
        guild = self._guild(community_id)
        owner = guild.get_member(owner_id) or discord.Object(id=owner_id)
        overwrites = {
            guild.default_role: discord.PermissionOverwrite(view_channel=False),
            owner: discord.PermissionOverwrite(view_channel=True, send_messages=True),
            guild.me: discord.PermissionOverwrite(
                view_channel=True, send_messages=True, manage_channels=True
            ),
        }
        category = guild.get_channel(category_id) if category_id else None
        try:
            channel = await guild.create_text_channel(
                name,
                category=category,
                overwrites=overwrites,
                reason=f"Ticket opened by {owner_id}",
            )
        except discord.HTTPException as e:
            logger.error(f"Failed to create ticket channel for {owner_id}: {e}")
            raise GatewayError("Could not create your ticket channel. Please try again later.") from e
        return channel.id

    async def delete_channel(self, community_id: int, channel_id: int) -> None:
        channel = self._guild(community_id).get_channel(channel_id)
        if channel is None:
            return
        try:
            await channel.delete(reason="Ticket closed")
        except discord.NotFound:
            return
        except discord.HTTPException as e:
            raise GatewayError("Could not delete the ticket channel.") from e

    async def find_text_channel(self, community_id: int, name: str) -> Optional[int]:
        channel = discord.utils.get(self._guild(community_id).text_channels, name=name)
        return channel.id if channel else None

    async def send_message(
        self,
        channel_id: int,
        content: Optional[str] = None,
        embed: Optional[discord.Embed] = None,
        components: Sequence[Component] = (),
    ) -> None:
        kwargs = {}
        if content is not None:
            kwargs["content"] = content
        if embed is not None:
            kwargs["embed"] = embed
        if components:
            kwargs["view"] = ComponentView(self.bot, components)
        try:
            channel = self.bot.get_channel(channel_id) or await self.bot.fetch_channel(channel_id)
            await channel.send(**kwargs)
        except discord.HTTPException as e:
            raise GatewayError("Could not send a message to that channel.") from e

    async def find_role(self, community_id: int, name: str) -> Optional[int]:
        role = discord.utils.get(self._guild(community_id).roles, name=name)
        return role.id if role else None

    async def role_exists(self, community_id: int, role_id: int) -> bool:
        return self._guild(community_id).get_role(role_id) is not None

    async def create_role(self, community_id: int, name: str) -> int:
        guild = self._guild(community_id)
        try:
            role = await guild.create_role(
                name=name, colour=discord.Colour.gold(), reason="Role for vouched sellers"
            )
        except discord.HTTPException as e:
            raise GatewayError(f'Could not create the "{name}" role. Check the bot\'s permissions.') from e
        return role.id

    async def member_has_role(self, community_id: int, user_id: int, role_id: int) -> bool:
        guild = self._guild(community_id)
        member = guild.get_member(user_id)
        if member is None:
            try:
                member = await guild.fetch_member(user_id)
            except discord.NotFound:
                return False
            except discord.HTTPException as e:
                raise GatewayError("Could not look up that member.") from e
        return any(role.id == role_id for role in member.roles)

    async def fetch_display_name(self, user_id: int) -> Optional[str]:
        user = self.bot.get_user(user_id)
        if user is None:
            try:
                user = await self.bot.fetch_user(user_id)
            except discord.NotFound:
                return None
            except discord.HTTPException as e:
                raise GatewayError("Could not look up that user.") from e
        return user.display_name
