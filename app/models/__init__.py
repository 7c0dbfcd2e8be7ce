"""Exports all models for easy access."""

from .base import Base, BaseModel
from .guild_settings import GuildSettings
from .ticket import Ticket, TicketState
from .vouch import Vouch

__all__ = [
    "Base",
    "BaseModel",
    "GuildSettings",
    "Ticket",
    "TicketState",
    "Vouch",
]
