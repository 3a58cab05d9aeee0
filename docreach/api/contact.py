"""
Contact dispatch: reach a chosen doctor by Call, Message or VideoCall.
Availability is re-checked here; 409 DOCTOR_UNAVAILABLE means search again.
"""
from fastapi import APIRouter, Depends

from docreach.api.deps import get_dispatch_router
from docreach.core.auth_utils import Caller, require_role
from docreach.db.models import Role
from docreach.schemas.contact import ContactRequest, DispatchOutcomeResponse
from docreach.services.dispatch import DispatchContext, DispatchRouter

router = APIRouter()


@router.post("/", response_model=DispatchOutcomeResponse)
def contact_doctor(
    body: ContactRequest,
    caller: Caller = Depends(require_role(Role.PATIENT)),
    dispatcher: DispatchRouter = Depends(get_dispatch_router),
):
    outcome = dispatcher.dispatch(
        caller.id,
        body.doctor_id,
        body.method,
        DispatchContext(
            description=body.description,
            requester_name=body.requester_name,
            requester_phone=body.requester_phone,
            latitude=body.latitude,
            longitude=body.longitude,
            is_urgent=body.is_urgent,
        ),
    )
    return DispatchOutcomeResponse(
        success=outcome.success,
        method=outcome.method.value,
        doctor_id=outcome.doctor_id,
        contact_info=outcome.contact_info,
        message=outcome.message,
        contact_time=outcome.contact_time,
        session_token=outcome.session_token,
        session_expires_at=outcome.session_expires_at,
        audit_id=outcome.audit_id,
    )
