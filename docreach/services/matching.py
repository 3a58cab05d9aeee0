"""
Doctor matching: filter eligible doctors for a query, attach distance and estimated response
time, order, then paginate.

Ordering keys, in order:
  1. emergency specialists first (emergency queries only)
  2. distance ascending
  3. estimated response time ascending
  4. doctor id, so pages of the same query never overlap or skip
"""
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from docreach.config import settings
from docreach.core.catalog import (
    EMERGENCY_CATEGORY_SPECIALTIES,
    EmergencyCategory,
    emergency_services,
    intersects,
    is_emergency_specialist,
    parse_specialties,
)
from docreach.core.errors import ValidationError
from docreach.core.geo import haversine_km, validate_coordinates
from docreach.db.models import Doctor, User
from docreach.services.availability import default_status_message
from docreach.services.verification import eligible_doctors_query

logger = logging.getLogger(__name__)

SPECIALIST_BASE_MINUTES = 10
STANDARD_BASE_MINUTES = 20
MINUTES_PER_KM = 2
MAX_RESPONSE_MINUTES = 60


def estimate_response_minutes(distance_km: float, emergency_specialist: bool) -> int:
    base = SPECIALIST_BASE_MINUTES if emergency_specialist else STANDARD_BASE_MINUTES
    return int(min(MAX_RESPONSE_MINUTES, base + distance_km * MINUTES_PER_KM))


@dataclass
class MatchQuery:
    latitude: float
    longitude: float
    specialty: Optional[str] = None
    online_only: Optional[bool] = None  # eligible doctors are always online; accepted, never widens results
    max_distance_km: Optional[float] = None
    page: int = 1
    page_size: Optional[int] = None
    emergency: bool = False
    emergency_category: Optional[EmergencyCategory] = None
    require_specialist: bool = False

    @property
    def is_emergency(self) -> bool:
        return self.emergency or self.emergency_category is not None

    def radius_km(self) -> float:
        if self.max_distance_km is not None:
            return self.max_distance_km
        return settings.emergency_radius_km if self.is_emergency else settings.search_radius_km

    def effective_page_size(self) -> int:
        return self.page_size if self.page_size is not None else settings.default_page_size


@dataclass
class DoctorSnapshot:
    doctor_id: str
    full_name: str
    specialties: List[str]
    hospital_affiliation: Optional[str]
    degree: Optional[str]
    bio: Optional[str]
    latitude: float
    longitude: float
    location_address: Optional[str]
    is_online: bool
    status_message: Optional[str]
    profile_photo_ref: Optional[str]
    contact_phone: Optional[str]
    contact_email: Optional[str]
    rating: float = 0.0
    review_count: int = 0

    @classmethod
    def from_rows(cls, doctor: Doctor, user: User) -> "DoctorSnapshot":
        return cls(
            doctor_id=doctor.user_id,
            full_name=user.full_name,
            specialties=parse_specialties(doctor.specialties),
            hospital_affiliation=doctor.hospital_affiliation,
            degree=doctor.degree,
            bio=doctor.bio,
            latitude=doctor.latitude,
            longitude=doctor.longitude,
            location_address=doctor.location_address,
            is_online=doctor.is_online,
            status_message=doctor.status_message or default_status_message(doctor.is_online),
            profile_photo_ref=user.profile_photo_ref,
            contact_phone=user.phone,
            contact_email=user.email,
        )


@dataclass
class MatchResult:
    doctor: DoctorSnapshot
    distance_km: float
    estimated_response_minutes: int
    is_emergency_specialist: bool
    emergency_services: List[str] = field(default_factory=list)
    rank: int = 0


@dataclass
class MatchPage:
    results: List[MatchResult]
    total: int
    page: int
    page_size: int

    @property
    def has_more(self) -> bool:
        return self.total > self.page * self.page_size


class MatchRanker:
    def __init__(self, db: Session):
        self.db = db

    def _validate(self, query: MatchQuery) -> None:
        validate_coordinates(query.latitude, query.longitude)
        radius = query.radius_km()
        if not math.isfinite(radius) or radius <= 0:
            raise ValidationError(
                "max_distance_km must be a positive number",
                "INVALID_DISTANCE",
                {"max_distance_km": radius if math.isfinite(radius) else str(radius)},
            )
        if query.page < 1:
            raise ValidationError("page must be >= 1", "INVALID_PAGE", {"page": query.page})
        size = query.effective_page_size()
        if size < 1 or size > settings.max_page_size:
            raise ValidationError(
                f"page_size must be between 1 and {settings.max_page_size}",
                "INVALID_PAGE_SIZE",
                {"page_size": size},
            )

    def rank(self, query: MatchQuery) -> List[MatchResult]:
        """Every matching doctor, fully ordered, rank starting at 1."""
        self._validate(query)
        radius = query.radius_km()
        wanted_specialty = parse_specialties(query.specialty)
        category_specialties = (
            EMERGENCY_CATEGORY_SPECIALTIES[query.emergency_category] if query.emergency_category else None
        )

        results: List[MatchResult] = []
        for doctor, user in eligible_doctors_query(self.db, datetime.utcnow()).all():
            specialties = parse_specialties(doctor.specialties)
            if wanted_specialty and not intersects(specialties, wanted_specialty):
                continue
            if category_specialties and not intersects(specialties, category_specialties):
                continue
            specialist = is_emergency_specialist(specialties)
            if query.require_specialist and not specialist:
                continue
            distance = haversine_km(query.latitude, query.longitude, doctor.latitude, doctor.longitude)
            if distance > radius:
                continue
            results.append(MatchResult(
                doctor=DoctorSnapshot.from_rows(doctor, user),
                distance_km=distance,
                estimated_response_minutes=estimate_response_minutes(distance, specialist),
                is_emergency_specialist=specialist,
                emergency_services=emergency_services(specialties),
            ))

        if query.is_emergency:
            results.sort(key=lambda r: (
                not r.is_emergency_specialist,
                r.distance_km,
                r.estimated_response_minutes,
                r.doctor.doctor_id,
            ))
        else:
            results.sort(key=lambda r: (r.distance_km, r.estimated_response_minutes, r.doctor.doctor_id))
        for i, r in enumerate(results, start=1):
            r.rank = i
        return results

    def search(self, query: MatchQuery) -> MatchPage:
        ordered = self.rank(query)
        size = query.effective_page_size()
        start = (query.page - 1) * size
        page = MatchPage(results=ordered[start:start + size], total=len(ordered), page=query.page, page_size=size)
        logger.info(
            "Match at (%.4f, %.4f) radius=%.1fkm emergency=%s category=%s: %d found, page %d",
            query.latitude, query.longitude, query.radius_km(), query.is_emergency,
            query.emergency_category.value if query.emergency_category else None, page.total, query.page,
        )
        return page

    def match(self, query: MatchQuery) -> List[MatchResult]:
        return self.search(query).results

    def nearest_emergency(self, latitude: float, longitude: float, count: Optional[int] = None) -> List[MatchResult]:
        """First `count` emergency-ranked doctors within the emergency radius."""
        count = count if count is not None else settings.nearest_emergency_count
        if count < 1:
            raise ValidationError("count must be >= 1", "INVALID_COUNT", {"count": count})
        return self.rank(MatchQuery(latitude=latitude, longitude=longitude, emergency=True))[:count]
