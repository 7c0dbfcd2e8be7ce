import enum
from typing import Any, Dict, List, Optional

import discord
from pydantic import BaseModel, ConfigDict, Field


class EventKind(str, enum.Enum):
    COMMAND = "command"
    BUTTON = "button"
    FORM = "form"


class Component(str, enum.Enum):
    """Buttons the bot attaches to its messages, keyed by custom id."""

    CREATE_TICKET = "create_ticket"
    CLOSE_TICKET = "close_ticket"


class InteractionEvent(BaseModel):
    """A platform interaction reduced to what the handlers need."""

    kind: EventKind
    name: str = Field(..., description="Command name, button custom id or form custom id.")
    user_id: int
    user_name: str = ""
    community_id: int
    channel_id: int
    options: Dict[str, Any] = Field(default_factory=dict)
    can_manage_guild: bool = False
    can_manage_messages: bool = False

    model_config = ConfigDict(frozen=True)


class Route(BaseModel):
    handler: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class Reply(BaseModel):
    """A response to the invoking user; `ephemeral` keeps it private."""

    content: Optional[str] = None
    embed: Optional[discord.Embed] = None
    components: List[Component] = Field(default_factory=list)
    ephemeral: bool = True

    model_config = ConfigDict(arbitrary_types_allowed=True)


class ShowVouchForm(BaseModel):
    """Asks the transport to open the vouch form for one seller."""

    seller_id: int
    trust_marker: str
