from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class SetAvailabilityRequest(BaseModel):
    online: bool
    status_message: Optional[str] = Field(None, max_length=500)  # "Available", "In Surgery", "On Call", ...
    available_until: Optional[datetime] = None


class AvailabilityResponse(BaseModel):
    doctor_id: str
    online: bool
    status_message: Optional[str] = None
    available_until: Optional[datetime] = None
    last_updated: Optional[datetime] = None
