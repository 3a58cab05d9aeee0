from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class ContactRequest(BaseModel):
    doctor_id: str
    method: str  # Call | Message | VideoCall
    description: Optional[str] = Field(None, max_length=1000)
    requester_name: Optional[str] = Field(None, max_length=100)
    requester_phone: Optional[str] = Field(None, max_length=20)
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_urgent: bool = True


class DispatchOutcomeResponse(BaseModel):
    success: bool
    method: str
    doctor_id: str
    contact_info: Optional[str] = None
    message: str
    contact_time: datetime
    session_token: Optional[str] = None
    session_expires_at: Optional[datetime] = None
    audit_id: Optional[str] = None
