"""Vouch model: one star rating left by a member for a seller."""

from sqlalchemy import BigInteger, CheckConstraint, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel


class Vouch(BaseModel):
    __tablename__ = "vouches"

    seller_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    voucher_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    community_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    stars: Mapped[int] = mapped_column(Integer, nullable=False)
    product: Mapped[str] = mapped_column(String(100), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)

    __table_args__ = (
        CheckConstraint("stars BETWEEN 1 AND 5", name="ck_vouches_stars_range"),
        CheckConstraint("seller_id <> voucher_id", name="ck_vouches_not_self"),
        Index("ix_vouches_seller_community", "seller_id", "community_id"),
    )

    def __repr__(self) -> str:
        return f"<Vouch(id={self.id}, seller_id={self.seller_id}, stars={self.stars})>"
