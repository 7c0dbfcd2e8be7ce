"""Per-guild cache of resolved channel and role identifiers."""

from typing import Optional

from sqlalchemy import BigInteger
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base, TimestampMixin


class GuildSettings(Base, TimestampMixin):
    __tablename__ = "guild_settings"

    community_id: Mapped[int] = mapped_column(
        BigInteger, primary_key=True, autoincrement=False
    )
    ticket_category_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    trust_role_id: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    audit_log_channel_id: Mapped[Optional[int]] = mapped_column(
        BigInteger,
        nullable=True,
        comment="Unset while the guild has no channel with the configured name.",
    )

    def __repr__(self) -> str:
        return f"<GuildSettings(community_id={self.community_id})>"
