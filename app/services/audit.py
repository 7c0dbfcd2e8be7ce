"""Best-effort action log posted to the guild's audit channel."""

from app.services.gateway import Gateway
from app.services.resources import GuildResources
from app.utils.logging_config import logger


class AuditLog:
    def __init__(self, gateway: Gateway, resources: GuildResources):
        self.gateway = gateway
        self.resources = resources

    async def record(self, community_id: int, content: str) -> None:
        """
        Posts `content` to the audit channel. Skipped silently when the guild
        has no such channel; delivery failures are only logged.
        """
        logger.info(f"[guild {community_id}] {content}")
        try:
            channel_id = await self.resources.audit_channel(community_id)
            if channel_id is None:
                logger.debug(f"No audit log channel in guild {community_id}, skipping")
                return
            await self.gateway.send_message(channel_id, content=content)
        except Exception as e:
            logger.warning(f"Failed to write audit log entry for guild {community_id}: {e}")
