import uuid
from datetime import datetime
from typing import List

from pydantic import BaseModel


class VouchResponse(BaseModel):
    """Pydantic model for serializing SQLAlchemy Vouch objects."""

    id: uuid.UUID
    seller_id: int
    voucher_id: int
    community_id: int
    stars: int
    product: str
    message: str
    created_at: datetime

    class Config:
        from_attributes = True


class VouchSummary(BaseModel):
    seller_id: int
    count: int
    average: float
    recent: List[VouchResponse]
