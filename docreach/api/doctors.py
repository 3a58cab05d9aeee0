"""
Doctor search near a location, plus per-doctor availability.
Search returns only eligible doctors (approved, online, active account), nearest first.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from docreach.api.deps import get_availability_store, get_match_ranker
from docreach.core.auth_utils import Caller, require_role
from docreach.db.models import Role
from docreach.schemas.availability import AvailabilityResponse, SetAvailabilityRequest
from docreach.schemas.matching import SearchResponse, result_out
from docreach.services.availability import AvailabilityStore, AvailabilityView
from docreach.services.matching import MatchQuery, MatchRanker

router = APIRouter()


def _availability_out(view: AvailabilityView) -> AvailabilityResponse:
    return AvailabilityResponse(
        doctor_id=view.doctor_id,
        online=view.online,
        status_message=view.status_message,
        available_until=view.available_until,
        last_updated=view.last_updated,
    )


@router.get("/nearby", response_model=SearchResponse)
def search_doctors(
    lat: float = Query(...),
    lon: float = Query(...),
    specialty: Optional[str] = None,
    max_distance_km: Optional[float] = Query(None, gt=0, allow_inf_nan=False),
    online_only: Optional[bool] = None,
    page: int = 1,
    page_size: Optional[int] = None,
    caller: Caller = Depends(require_role(Role.PATIENT)),
    ranker: MatchRanker = Depends(get_match_ranker),
):
    """Doctors within max_distance_km (default 10) of (lat, lon). page/page_size for Load more."""
    result = ranker.search(MatchQuery(
        latitude=lat,
        longitude=lon,
        specialty=specialty,
        online_only=online_only,
        max_distance_km=max_distance_km,
        page=page,
        page_size=page_size,
    ))
    return SearchResponse(
        doctors=[result_out(r) for r in result.results],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
        has_more=result.has_more,
    )


@router.put("/me/availability", response_model=AvailabilityResponse)
def set_my_availability(
    body: SetAvailabilityRequest,
    caller: Caller = Depends(require_role(Role.DOCTOR)),
    store: AvailabilityStore = Depends(get_availability_store),
):
    """Go online/offline. Doctors can only change their own availability."""
    view = store.set_availability(caller, caller.id, body.online, body.status_message, body.available_until)
    return _availability_out(view)


@router.get("/me/availability", response_model=AvailabilityResponse)
def get_my_availability(
    caller: Caller = Depends(require_role(Role.DOCTOR)),
    store: AvailabilityStore = Depends(get_availability_store),
):
    return _availability_out(store.get_availability(caller.id))


@router.get("/{doctor_id}/availability", response_model=AvailabilityResponse)
def get_availability(
    doctor_id: str,
    caller: Caller = Depends(require_role(Role.PATIENT)),
    store: AvailabilityStore = Depends(get_availability_store),
):
    return _availability_out(store.get_availability(doctor_id))
