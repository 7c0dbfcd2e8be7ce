"""Runs routed interactions against the ticket and vouch managers."""

from typing import Any, Awaitable, Callable, Dict, Union

from app.api.router import route
from app.schemas.interaction import InteractionEvent, Reply, ShowVouchForm
from app.services.tickets import TicketManager
from app.services.vouches import VouchManager
from app.utils.errors import BotError
from app.utils.logging_config import logger

GENERIC_FAILURE = "Something went wrong. Please try again later."

Outcome = Union[Reply, ShowVouchForm]


class Dispatcher:
    def __init__(self, tickets: TicketManager, vouches: VouchManager):
        self.handlers: Dict[str, Callable[..., Awaitable[Outcome]]] = {
            "publish_panel": tickets.publish_panel,
            "request_ticket": tickets.request_ticket,
            "close_ticket": tickets.close_ticket,
            "initiate_vouch": vouches.initiate_vouch,
            "submit_vouch": vouches.submit_vouch,
            "get_vouch_summary": vouches.get_vouch_summary,
        }

    async def dispatch(self, event: InteractionEvent) -> Outcome:
        """
        Handles one interaction. User-facing errors become private replies
        carrying their message; anything else is logged and reported as a
        generic failure. Nothing is retried.
        """
        try:
            routed = route(event)
            handler: Any = self.handlers[routed.handler]
            return await handler(**routed.arguments)
        except BotError as e:
            logger.info(
                f"Interaction '{event.name}' from {event.user_id} rejected: {e.message}"
            )
            return Reply(content=e.message, ephemeral=True)
        except Exception as e:
            logger.error(
                f"Interaction '{event.name}' from {event.user_id} failed: {e}",
                exc_info=True,
            )
            return Reply(content=GENERIC_FAILURE, ephemeral=True)
