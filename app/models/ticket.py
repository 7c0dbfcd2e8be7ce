"""Ticket model for tracking support channels."""

import enum
from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Index, false
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class TicketState(enum.Enum):
    OPEN = "open"
    CLOSED = "closed"
    CHANNEL_REMOVED = "channel_removed"


class Ticket(BaseModel):
    __tablename__ = "tickets"

    user_id: Mapped[int] = mapped_column(
        BigInteger, nullable=False, comment="Member who opened the ticket."
    )
    channel_id: Mapped[int] = mapped_column(BigInteger, nullable=False, index=True)
    community_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    closed: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    closed_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    closed_by: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    channel_removed: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
        comment="Set once the ticket channel has been deleted after closing.",
    )

    @property
    def state(self) -> TicketState:
        if not self.closed:
            return TicketState.OPEN
        if self.channel_removed:
            return TicketState.CHANNEL_REMOVED
        return TicketState.CLOSED

    def __repr__(self) -> str:
        return f"<Ticket(id={self.id}, channel_id={self.channel_id}, state='{self.state.value}')>"


# One open ticket per member and guild
Index(
    "uq_tickets_open_per_user",
    Ticket.user_id,
    Ticket.community_id,
    unique=True,
    postgresql_where=Ticket.closed.is_(False),
    sqlite_where=Ticket.closed.is_(False),
)
