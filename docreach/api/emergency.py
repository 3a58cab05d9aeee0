"""
Emergency flow: SOS search (emergency specialists first), emergency categories, nearest doctors.
"""
import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from docreach.api.deps import get_match_ranker
from docreach.core.auth_utils import Caller, require_role
from docreach.core.catalog import EMERGENCY_CATEGORY_INFO
from docreach.db.models import Role
from docreach.schemas.matching import (
    EmergencySearchRequest,
    EmergencySearchResponse,
    EmergencyTypeOut,
    Location,
    MatchResultOut,
    result_out,
)
from docreach.services.matching import MatchQuery, MatchRanker

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/sos", response_model=EmergencySearchResponse)
def sos(
    body: EmergencySearchRequest,
    caller: Caller = Depends(require_role(Role.PATIENT)),
    ranker: MatchRanker = Depends(get_match_ranker),
):
    """Emergency search within 20 km by default; specialists rank ahead of closer non-specialists."""
    result = ranker.search(MatchQuery(
        latitude=body.latitude,
        longitude=body.longitude,
        max_distance_km=body.max_distance_km,
        page=body.page,
        page_size=body.page_size,
        emergency=True,
        emergency_category=body.emergency_type,
        require_specialist=body.require_specialist,
    ))
    logger.info(
        "SOS by %s at %s, %s: %d doctors",
        caller.id, body.latitude, body.longitude, result.total,
    )
    return EmergencySearchResponse(
        doctors=[result_out(r) for r in result.results],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        has_more=result.has_more,
        emergency_type=body.emergency_type,
        search_location=Location(latitude=body.latitude, longitude=body.longitude),
        searched_at=datetime.utcnow(),
    )


@router.get("/types", response_model=List[EmergencyTypeOut])
async def emergency_types():
    return [
        EmergencyTypeOut(
            type=category,
            description=info["description"],
            recommended_specialties=list(info["recommended_specialties"]),
            requires_immediate_attention=info["requires_immediate_attention"],
        )
        for category, info in EMERGENCY_CATEGORY_INFO.items()
    ]


@router.get("/nearest", response_model=List[MatchResultOut])
def nearest(
    lat: float = Query(...),
    lon: float = Query(...),
    count: Optional[int] = None,
    caller: Caller = Depends(require_role(Role.PATIENT)),
    ranker: MatchRanker = Depends(get_match_ranker),
):
    """First `count` (default 5) emergency-ranked doctors near (lat, lon)."""
    return [result_out(r) for r in ranker.nearest_emergency(lat, lon, count)]
