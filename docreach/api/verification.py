"""
Doctor verification: document upload, submission for review, status, and admin review.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, File, Form, UploadFile

from docreach.api.deps import get_eligibility_engine
from docreach.core.auth_utils import Caller, require_role
from docreach.core.catalog import parse_specialties
from docreach.db.models import Role
from docreach.schemas.verification import (
    DocumentRef,
    PendingDoctor,
    ReviewRequest,
    SubmitForReviewRequest,
    VerificationStatusResponse,
)
from docreach.services.verification import EligibilityEngine, VerificationStatusView

router = APIRouter()
logger = logging.getLogger(__name__)

REQUIREMENTS = {
    "required_documents": [
        {"type": "MedicalLicense", "name": "Medical License", "description": "Valid medical license from recognized medical board", "required": True},
        {"type": "DegreeCertificate", "name": "Medical Degree Certificate", "description": "Medical degree certificate from accredited institution", "required": True},
        {"type": "HospitalAffiliation", "name": "Hospital Affiliation Letter", "description": "Letter confirming current hospital affiliation", "required": True},
        {"type": "ProfessionalPhoto", "name": "Professional Photo", "description": "Recent professional headshot", "required": False},
    ],
    "accepted_formats": ["PDF", "JPEG", "PNG", "WEBP"],
    "required_information": [
        "Medical License Number",
        "Hospital Affiliation",
        "Medical Degree",
        "Specialties",
        "Practice Location (GPS coordinates)",
        "Professional Bio",
    ],
    "validation_process": [
        "License format verification",
        "Hospital affiliation verification",
        "Background check",
        "Admin review and approval",
    ],
    "estimated_time": "3-5 business days",
}


def _status_out(view: VerificationStatusView) -> VerificationStatusResponse:
    return VerificationStatusResponse(
        doctor_id=view.doctor_id,
        state=view.state.value,
        submitted_documents=view.submitted_documents,
        missing_documents=view.missing_documents,
        reviewed_by=view.reviewed_by,
        reviewed_at=view.reviewed_at,
        rejection_reason=view.rejection_reason,
        submitted_at=view.submitted_at,
        updated_at=view.updated_at,
    )


@router.post("/documents", response_model=DocumentRef)
def upload_document(
    kind: str = Form(...),
    file: UploadFile = File(...),
    caller: Caller = Depends(require_role(Role.DOCTOR)),
    engine: EligibilityEngine = Depends(get_eligibility_engine),
):
    """Upload one verification document (MedicalLicense, DegreeCertificate, HospitalAffiliation, ProfessionalPhoto)."""
    # One byte past the cap is enough for the store to reject it as TOO_LARGE
    data = file.file.read(engine.store.max_bytes + 1)
    document = engine.submit_document(caller.id, kind, data, file_name=file.filename)
    view = engine.status(caller.id)
    return DocumentRef(
        document_id=document.id,
        kind=document.kind.value,
        storage_ref=document.storage_ref,
        content_type=document.content_type,
        size_bytes=document.size_bytes,
        uploaded_at=document.uploaded_at,
        verification_status=view.state.value,
    )


@router.post("/submit", response_model=VerificationStatusResponse)
def submit_for_review(
    body: SubmitForReviewRequest,
    caller: Caller = Depends(require_role(Role.DOCTOR)),
    engine: EligibilityEngine = Depends(get_eligibility_engine),
):
    """Submit profile details for review. Fails with MISSING_DOCUMENTS or VALIDATION_FAILED."""
    engine.submit_for_review(
        caller.id,
        license_number=body.license_number,
        hospital_affiliation=body.hospital_affiliation,
        degree=body.degree,
        specialties=body.specialties,
        latitude=body.latitude,
        longitude=body.longitude,
        location_address=body.location_address,
        bio=body.bio,
    )
    return _status_out(engine.status(caller.id))


@router.get("/status", response_model=VerificationStatusResponse)
def get_status(
    caller: Caller = Depends(require_role(Role.DOCTOR)),
    engine: EligibilityEngine = Depends(get_eligibility_engine),
):
    return _status_out(engine.status(caller.id))


@router.get("/requirements")
async def get_requirements(caller: Caller = Depends(require_role(Role.DOCTOR))):
    return REQUIREMENTS


@router.get("/pending", response_model=List[PendingDoctor])
def list_pending(
    caller: Caller = Depends(require_role(Role.ADMIN)),
    engine: EligibilityEngine = Depends(get_eligibility_engine),
):
    """Doctors awaiting review, oldest submission first."""
    out = []
    for doctor, user in engine.list_pending(caller):
        view = engine.status(doctor.user_id)
        out.append(PendingDoctor(
            doctor_id=doctor.user_id,
            full_name=user.full_name,
            license_number=doctor.license_number,
            hospital_affiliation=doctor.hospital_affiliation,
            degree=doctor.degree,
            specialties=parse_specialties(doctor.specialties),
            submitted_at=doctor.submitted_at,
            documents=view.submitted_documents,
        ))
    return out


@router.post("/review", response_model=VerificationStatusResponse)
def review(
    body: ReviewRequest,
    caller: Caller = Depends(require_role(Role.ADMIN)),
    engine: EligibilityEngine = Depends(get_eligibility_engine),
):
    engine.review(caller, body.doctor_id, body.approve, body.reason)
    return _status_out(engine.status(body.doctor_id))
