"""The chat platform operations the ticket and vouch workflows depend on.

`app.bot.gateway.DiscordGateway` implements this on top of discord.py; the
tests use an in-memory fake.
"""

from typing import Optional, Protocol, Sequence

import discord

from app.schemas.interaction import Component


class Gateway(Protocol):
    async def channel_exists(self, community_id: int, channel_id: int) -> bool:
        ...

    async def find_category(self, community_id: int, name: str) -> Optional[int]:
        ...

    async def create_category(self, community_id: int, name: str) -> int:
        """Raises GatewayError when the platform refuses."""
        ...

    async def create_ticket_channel(
        self, community_id: int, name: str, category_id: Optional[int], owner_id: int
    ) -> int:
        """
        Creates a text channel hidden from everyone except `owner_id`.
        Raises GatewayError when the platform refuses.
        """
        ...

    async def delete_channel(self, community_id: int, channel_id: int) -> None:
        """Deleting a channel that no longer exists is not an error."""
        ...

    async def find_text_channel(self, community_id: int, name: str) -> Optional[int]:
        ...

    async def send_message(
        self,
        channel_id: int,
        content: Optional[str] = None,
        embed: Optional[discord.Embed] = None,
        components: Sequence[Component] = (),
    ) -> None:
        ...

    async def find_role(self, community_id: int, name: str) -> Optional[int]:
        ...

    async def role_exists(self, community_id: int, role_id: int) -> bool:
        ...

    async def create_role(self, community_id: int, name: str) -> int:
        ...

    async def member_has_role(self, community_id: int, user_id: int, role_id: int) -> bool:
        ...

    async def fetch_display_name(self, user_id: int) -> Optional[str]:
        """None when the account cannot be resolved any more."""
        ...
