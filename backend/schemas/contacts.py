from datetime import datetime
from pydantic import BaseModel, field_validator
from typing import Literal, Optional
from uuid import UUID


ContactStatus = Literal["new", "read", "replied", "archived"]


class ContactRead(BaseModel):
    id: UUID
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    subject: Optional[str] = None
    message: str
    status: str
    created_at: Optional[datetime] = None


class ContactCreate(BaseModel):
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    subject: Optional[str] = None
    message: str

    @field_validator("name", "message")
    @classmethod
    def _strip_required(cls, v: str) -> str:
        v = (v or "").strip()
        if not v:
            raise ValueError("field is required")
        return v


class ContactUpdate(BaseModel):
    status: ContactStatus
