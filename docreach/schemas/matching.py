from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from docreach.core.catalog import EmergencyCategory


class DoctorSummary(BaseModel):
    doctor_id: str
    full_name: str
    specialties: List[str]
    hospital_affiliation: Optional[str] = None
    degree: Optional[str] = None
    bio: Optional[str] = None
    latitude: float
    longitude: float
    location_address: Optional[str] = None
    is_online: bool
    status_message: Optional[str] = None
    profile_photo_ref: Optional[str] = None
    rating: float = 0.0  # placeholder until reviews exist
    review_count: int = 0


class MatchResultOut(BaseModel):
    rank: int
    doctor: DoctorSummary
    distance_km: float
    estimated_response_minutes: int
    is_emergency_specialist: bool
    emergency_services: List[str] = []


class SearchResponse(BaseModel):
    doctors: List[MatchResultOut]
    total: int
    page: int
    page_size: int
    has_more: bool


class Location(BaseModel):
    latitude: float
    longitude: float


class EmergencySearchRequest(BaseModel):
    latitude: float
    longitude: float
    emergency_type: Optional[EmergencyCategory] = None
    emergency_description: Optional[str] = Field(None, max_length=1000)
    require_specialist: bool = False
    max_distance_km: Optional[float] = Field(None, gt=0, allow_inf_nan=False)  # default: emergency radius
    page: int = 1
    page_size: Optional[int] = None


class EmergencySearchResponse(SearchResponse):
    emergency_type: Optional[EmergencyCategory] = None
    search_location: Location
    searched_at: datetime


class EmergencyTypeOut(BaseModel):
    type: EmergencyCategory
    description: str
    recommended_specialties: List[str]
    requires_immediate_attention: bool


def result_out(result) -> MatchResultOut:
    """services.matching.MatchResult -> response model."""
    d = result.doctor
    return MatchResultOut(
        rank=result.rank,
        doctor=DoctorSummary(
            doctor_id=d.doctor_id,
            full_name=d.full_name,
            specialties=d.specialties,
            hospital_affiliation=d.hospital_affiliation,
            degree=d.degree,
            bio=d.bio,
            latitude=d.latitude,
            longitude=d.longitude,
            location_address=d.location_address,
            is_online=d.is_online,
            status_message=d.status_message,
            profile_photo_ref=d.profile_photo_ref,
            rating=d.rating,
            review_count=d.review_count,
        ),
        distance_km=round(result.distance_km, 2),
        estimated_response_minutes=result.estimated_response_minutes,
        is_emergency_specialist=result.is_emergency_specialist,
        emergency_services=result.emergency_services,
    )
