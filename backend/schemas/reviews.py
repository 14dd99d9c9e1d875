from datetime import datetime
from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID


class ReviewRead(BaseModel):
    id: UUID
    product_id: UUID
    user_id: UUID
    username: Optional[str] = None
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None


class ReviewCreate(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None
