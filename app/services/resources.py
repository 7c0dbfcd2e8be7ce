"""Resolves the guild resources the bot depends on by id.

The ticket category, trust role and audit log channel are discovered by
name the first time they are needed (the category and role are created if
missing) and the resolved ids are stored in `guild_settings`. Later lookups
only check that the cached id still exists. Resolution is serialised per
guild so concurrent requests never create the same resource twice.
"""

import asyncio
from collections import defaultdict
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.services.gateway import Gateway
from app.services.store import GuildSettingsStore
from app.settings import Settings
from app.utils.logging_config import logger


class GuildResources:
    def __init__(
        self,
        gateway: Gateway,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings,
    ):
        self.gateway = gateway
        self.session_factory = session_factory
        self.settings = settings
        self._locks: Dict[int, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def ticket_category(self, community_id: int) -> int:
        async with self._locks[community_id]:
            async with self.session_factory() as session:
                guild_settings = await GuildSettingsStore(session).get_or_create(community_id)
                cached = guild_settings.ticket_category_id
                if cached and await self.gateway.channel_exists(community_id, cached):
                    return cached

                name = self.settings.TICKET_CATEGORY_NAME
                category_id = await self.gateway.find_category(community_id, name)
                if category_id is None:
                    category_id = await self.gateway.create_category(community_id, name)
                    logger.info(f"Created ticket category '{name}' in guild {community_id}")

                guild_settings.ticket_category_id = category_id
                await session.commit()
                return category_id

    async def trust_role(self, community_id: int) -> int:
        async with self._locks[community_id]:
            async with self.session_factory() as session:
                guild_settings = await GuildSettingsStore(session).get_or_create(community_id)
                cached = guild_settings.trust_role_id
                if cached and await self.gateway.role_exists(community_id, cached):
                    return cached

                name = self.settings.TRUST_ROLE_NAME
                role_id = await self.gateway.find_role(community_id, name)
                if role_id is None:
                    role_id = await self.gateway.create_role(community_id, name)
                    logger.info(f"Created trust role '{name}' in guild {community_id}")

                guild_settings.trust_role_id = role_id
                await session.commit()
                return role_id

    async def audit_channel(self, community_id: int) -> Optional[int]:
        """The audit log channel, or None when the guild has none."""
        async with self._locks[community_id]:
            async with self.session_factory() as session:
                guild_settings = await GuildSettingsStore(session).get_or_create(community_id)
                cached = guild_settings.audit_log_channel_id
                if cached and await self.gateway.channel_exists(community_id, cached):
                    return cached

                channel_id = await self.gateway.find_text_channel(
                    community_id, self.settings.AUDIT_LOG_CHANNEL_NAME
                )
                guild_settings.audit_log_channel_id = channel_id
                await session.commit()
                return channel_id
