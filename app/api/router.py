"""Maps interaction events to handlers and their validated arguments.

Routing is pure: no platform or database access happens here, so every
mapping can be checked without a live connection.
"""

from typing import Any, Callable, Dict, Optional, Tuple

from app.schemas.interaction import Component, EventKind, InteractionEvent, Route
from app.utils.errors import NotFoundError, ValidationError

VOUCH_FORM_PREFIX = "vouch_form:"

# Form field custom ids
STARS_FIELD = "stars"
PRODUCT_FIELD = "product"
MESSAGE_FIELD = "message"


def vouch_form_id(seller_id: int) -> str:
    return f"{VOUCH_FORM_PREFIX}{seller_id}"


def _user_option(event: InteractionEvent, name: str) -> int:
    value = event.options.get(name)
    if value is None:
        raise ValidationError(f"Please choose a {name}.")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {name}.") from None


def _setup(event: InteractionEvent) -> Route:
    return Route(
        handler="publish_panel",
        arguments={
            "community_id": event.community_id,
            "can_manage_guild": event.can_manage_guild,
        },
    )


def _vouch(event: InteractionEvent) -> Route:
    return Route(
        handler="initiate_vouch",
        arguments={
            "voucher_id": event.user_id,
            "seller_id": _user_option(event, "seller"),
        },
    )


def _close(event: InteractionEvent) -> Route:
    return Route(
        handler="close_ticket",
        arguments={
            "user_id": event.user_id,
            "user_name": event.user_name,
            "community_id": event.community_id,
            "channel_id": event.channel_id,
            "can_manage_messages": event.can_manage_messages,
        },
    )


def _vouchinfo(event: InteractionEvent) -> Route:
    seller = event.options.get("seller")
    return Route(
        handler="get_vouch_summary",
        arguments={
            "seller_id": event.user_id if seller is None else _user_option(event, "seller"),
            "community_id": event.community_id,
        },
    )


def _create_ticket(event: InteractionEvent) -> Route:
    return Route(
        handler="request_ticket",
        arguments={
            "user_id": event.user_id,
            "user_name": event.user_name,
            "community_id": event.community_id,
        },
    )


def _vouch_form(event: InteractionEvent) -> Route:
    raw_seller = event.name[len(VOUCH_FORM_PREFIX):]
    if not raw_seller.isdigit():
        raise ValidationError("This vouch form is no longer valid. Please run /vouch again.")
    return Route(
        handler="submit_vouch",
        arguments={
            "voucher_id": event.user_id,
            "voucher_name": event.user_name,
            "seller_id": int(raw_seller),
            "community_id": event.community_id,
            "channel_id": event.channel_id,
            "stars_raw": str(event.options.get(STARS_FIELD, "")),
            "product": str(event.options.get(PRODUCT_FIELD, "")),
            "message": str(event.options.get(MESSAGE_FIELD, "")),
        },
    )


ROUTES: Dict[Tuple[EventKind, str], Callable[[InteractionEvent], Route]] = {
    (EventKind.COMMAND, "setup"): _setup,
    (EventKind.COMMAND, "vouch"): _vouch,
    (EventKind.COMMAND, "close"): _close,
    (EventKind.COMMAND, "vouchinfo"): _vouchinfo,
    (EventKind.BUTTON, Component.CREATE_TICKET.value): _create_ticket,
    (EventKind.BUTTON, Component.CLOSE_TICKET.value): _close,
}


def route(event: InteractionEvent) -> Route:
    if event.kind is EventKind.FORM and event.name.startswith(VOUCH_FORM_PREFIX):
        return _vouch_form(event)
    build: Any = ROUTES.get((event.kind, event.name))
    if build is None:
        raise NotFoundError("Unknown interaction.")
    return build(event)


# Commands whose successful reply is posted for the whole channel to see
PUBLIC_REPLY_COMMANDS = frozenset({"setup", "close"})


def deferral(event: InteractionEvent) -> Optional[bool]:
    """
    How an event is acknowledged before it is handled.

    Returns None when the handler's answer has to be the initial response
    (the vouch form), otherwise whether the deferred reply is private.
    """
    if event.kind is EventKind.COMMAND:
        if event.name == "vouch":
            return None
        return event.name not in PUBLIC_REPLY_COMMANDS
    if event.kind is EventKind.BUTTON:
        return event.name != Component.CLOSE_TICKET.value
    return True
