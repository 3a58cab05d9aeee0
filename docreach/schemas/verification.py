from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, Field


class DocumentRef(BaseModel):
    document_id: str
    kind: str
    storage_ref: str
    content_type: Optional[str] = None
    size_bytes: int
    uploaded_at: datetime
    verification_status: str  # doctor's status after the upload


class SubmitForReviewRequest(BaseModel):
    license_number: str = Field(..., max_length=100)
    hospital_affiliation: str = Field(..., max_length=200)
    degree: str = Field(..., max_length=100)
    specialties: Union[List[str], str]  # list or "Cardiology, Emergency Medicine"
    latitude: float
    longitude: float
    location_address: Optional[str] = Field(None, max_length=200)
    bio: Optional[str] = Field(None, max_length=1000)


class VerificationStatusResponse(BaseModel):
    doctor_id: str
    state: str
    submitted_documents: List[str] = []
    missing_documents: List[str] = []
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    submitted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ReviewRequest(BaseModel):
    doctor_id: str
    approve: bool
    reason: Optional[str] = Field(None, max_length=1000)  # required when approve is false


class PendingDoctor(BaseModel):
    doctor_id: str
    full_name: str
    license_number: Optional[str] = None
    hospital_affiliation: Optional[str] = None
    degree: Optional[str] = None
    specialties: List[str] = []
    submitted_at: Optional[datetime] = None
    documents: List[str] = []
