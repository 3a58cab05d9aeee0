"""
Doctor verification state machine.

    Unverified --upload--> DocumentsIncomplete --submit--> UnderReview --approve--> Approved
                                                   ^                  \
                                                   +------submit------ Rejected <--reject--+

Every transition is a single conditional UPDATE on (user_id, verification_version), so two
writers racing on the same doctor cannot both win, and availability columns are never touched.
"""
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, List, Optional, Union

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from docreach.core.auth_utils import Caller
from docreach.core.catalog import parse_specialties
from docreach.core.errors import (
    AccountNotFoundError,
    ConcurrentUpdateError,
    DoctorNotFoundError,
    ForbiddenError,
    InvalidDocumentKindError,
    InvalidTransitionError,
    MissingDocumentsError,
    NotReviewerError,
    ValidationError,
    VerificationFailedError,
)
from docreach.core.geo import validate_coordinates
from docreach.db.models import (
    REQUIRED_DOCUMENT_KINDS,
    Doctor,
    DocumentKind,
    Role,
    User,
    VerificationDocument,
    VerificationStatus,
)
from docreach.services.availability import effective_online
from docreach.services.documents import LocalDocumentStore
from docreach.services.validators import SubmissionContext, VerificationCheck, default_checks

logger = logging.getLogger(__name__)

UPLOAD = "upload"
SUBMIT = "submit"
APPROVE = "approve"
REJECT = "reject"

TRANSITIONS = {
    UPLOAD: {VerificationStatus.UNVERIFIED: VerificationStatus.DOCUMENTS_INCOMPLETE},
    SUBMIT: {
        VerificationStatus.DOCUMENTS_INCOMPLETE: VerificationStatus.UNDER_REVIEW,
        VerificationStatus.REJECTED: VerificationStatus.UNDER_REVIEW,
    },
    APPROVE: {VerificationStatus.UNDER_REVIEW: VerificationStatus.APPROVED},
    REJECT: {VerificationStatus.UNDER_REVIEW: VerificationStatus.REJECTED},
}

# States from which a submission is evaluated (missing documents are reported first)
SUBMITTABLE = (
    VerificationStatus.UNVERIFIED,
    VerificationStatus.DOCUMENTS_INCOMPLETE,
    VerificationStatus.REJECTED,
)


def is_eligible(doctor: Doctor, user: Optional[User], now: Optional[datetime] = None) -> bool:
    """Approved AND online (not past available_until) AND the owning account is active."""
    if doctor is None or user is None or not user.is_active:
        return False
    if doctor.verification_status != VerificationStatus.APPROVED:
        return False
    return effective_online(doctor.is_online, doctor.available_until, now)


def eligible_doctors_query(db: Session, now: Optional[datetime] = None):
    """(Doctor, User) rows satisfying is_eligible, evaluated fresh on every call."""
    now = now or datetime.utcnow()
    return (
        db.query(Doctor, User)
        .join(User, User.id == Doctor.user_id)
        .filter(
            Doctor.verification_status == VerificationStatus.APPROVED,
            Doctor.is_online.is_(True),
            User.is_active.is_(True),
            or_(Doctor.available_until.is_(None), Doctor.available_until > now),
        )
    )


def next_status(doctor_id: str, current: VerificationStatus, action: str) -> VerificationStatus:
    target = TRANSITIONS[action].get(current)
    if target is None:
        raise InvalidTransitionError(doctor_id, current.value, action)
    return target


@dataclass
class VerificationStatusView:
    doctor_id: str
    state: VerificationStatus
    submitted_documents: List[str] = field(default_factory=list)
    missing_documents: List[str] = field(default_factory=list)
    reviewed_by: Optional[str] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    submitted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def parse_document_kind(kind: Union[str, DocumentKind]) -> DocumentKind:
    try:
        return DocumentKind(kind)
    except ValueError:
        raise InvalidDocumentKindError(kind) from None


class EligibilityEngine:
    def __init__(
        self,
        db: Session,
        store: Optional[LocalDocumentStore] = None,
        checks: Optional[List[VerificationCheck]] = None,
    ):
        self.db = db
        self.store = store or LocalDocumentStore()
        self.checks = checks if checks is not None else default_checks()

    # -- reads

    def _get_doctor(self, doctor_id: str) -> Doctor:
        doctor = self.db.query(Doctor).filter(Doctor.user_id == doctor_id).first()
        if not doctor:
            raise DoctorNotFoundError(doctor_id)
        return doctor

    def _uploaded_kinds(self, doctor_id: str) -> List[DocumentKind]:
        rows = (
            self.db.query(VerificationDocument.kind)
            .filter(VerificationDocument.doctor_id == doctor_id)
            .order_by(VerificationDocument.uploaded_at, VerificationDocument.id)
            .all()
        )
        kinds: List[DocumentKind] = []
        for (kind,) in rows:
            if kind not in kinds:
                kinds.append(kind)
        return kinds

    def missing_documents(self, doctor_id: str) -> List[str]:
        uploaded = set(self._uploaded_kinds(doctor_id))
        return [k.value for k in REQUIRED_DOCUMENT_KINDS if k not in uploaded]

    def status(self, doctor_id: str) -> VerificationStatusView:
        doctor = self.db.query(Doctor).filter(Doctor.user_id == doctor_id).first()
        if not doctor:
            user = self.db.query(User).filter(User.id == doctor_id).first()
            if not user or user.role != Role.DOCTOR:
                raise DoctorNotFoundError(doctor_id)
            return VerificationStatusView(
                doctor_id=doctor_id,
                state=VerificationStatus.UNVERIFIED,
                missing_documents=[k.value for k in REQUIRED_DOCUMENT_KINDS],
            )
        return VerificationStatusView(
            doctor_id=doctor_id,
            state=doctor.verification_status,
            submitted_documents=[k.value for k in self._uploaded_kinds(doctor_id)],
            missing_documents=self.missing_documents(doctor_id),
            reviewed_by=doctor.reviewed_by,
            reviewed_at=doctor.reviewed_at,
            rejection_reason=doctor.rejection_reason,
            submitted_at=doctor.submitted_at,
            updated_at=doctor.updated_at,
        )

    def list_pending(self, reviewer: Caller) -> List[tuple]:
        """(Doctor, User) pairs awaiting review, oldest submission first."""
        if not reviewer.has_role(Role.ADMIN):
            raise NotReviewerError(reviewer.id)
        return (
            self.db.query(Doctor, User)
            .join(User, User.id == Doctor.user_id)
            .filter(Doctor.verification_status == VerificationStatus.UNDER_REVIEW)
            .order_by(Doctor.submitted_at, Doctor.user_id)
            .all()
        )

    # -- writes

    def _conditional_update(self, doctor_id: str, expected_version: int, values: dict) -> bool:
        """Apply values iff verification_version still equals expected_version."""
        now = datetime.utcnow()
        values = dict(values)
        values["updated_at"] = now
        values["verification_version"] = Doctor.verification_version + 1
        count = (
            self.db.query(Doctor)
            .filter(
                Doctor.user_id == doctor_id,
                Doctor.verification_version == expected_version,
            )
            .update(values, synchronize_session=False)
        )
        return count == 1

    def _get_or_create_doctor(self, doctor_id: str) -> Doctor:
        doctor = self.db.query(Doctor).filter(Doctor.user_id == doctor_id).first()
        if doctor:
            return doctor
        user = self.db.query(User).filter(User.id == doctor_id).first()
        if not user:
            raise AccountNotFoundError(doctor_id)
        if user.role != Role.DOCTOR:
            raise ForbiddenError("Only doctor accounts can submit verification documents", details={"user_id": doctor_id})
        doctor = Doctor(user_id=doctor_id, verification_status=VerificationStatus.UNVERIFIED)
        self.db.add(doctor)
        try:
            self.db.commit()
        except IntegrityError:
            # another request created it first
            self.db.rollback()
            return self._get_doctor(doctor_id)
        self.db.refresh(doctor)
        logger.info("Created doctor record for %s", doctor_id)
        return doctor

    def submit_document(
        self,
        doctor_id: str,
        kind: Union[str, DocumentKind],
        data: bytes,
        file_name: Optional[str] = None,
    ) -> VerificationDocument:
        """Store a verification document. The first upload moves Unverified -> DocumentsIncomplete."""
        kind = parse_document_kind(kind)
        doctor = self._get_or_create_doctor(doctor_id)
        stored = self.store.store(data, doctor_id, kind.value)

        document = VerificationDocument(
            id=str(uuid.uuid4()),
            doctor_id=doctor_id,
            kind=kind,
            storage_ref=stored.ref,
            file_name=file_name,
            content_type=stored.content_type,
            size_bytes=stored.size_bytes,
            uploaded_at=datetime.utcnow(),
        )
        self.db.add(document)
        if doctor.verification_status == VerificationStatus.UNVERIFIED:
            target = next_status(doctor_id, doctor.verification_status, UPLOAD)
            if self._conditional_update(doctor_id, doctor.verification_version, {"verification_status": target}):
                logger.info("Doctor %s: %s -> %s", doctor_id, VerificationStatus.UNVERIFIED.value, target.value)
            # otherwise a concurrent upload already moved it on; the document still counts
        self.db.commit()
        self.db.refresh(document)
        logger.info("Doctor %s uploaded %s (%s)", doctor_id, kind.value, stored.ref)
        return document

    def submit_for_review(
        self,
        doctor_id: str,
        license_number: str,
        hospital_affiliation: str,
        degree: str,
        specialties: Union[str, Iterable[str]],
        latitude: float,
        longitude: float,
        location_address: Optional[str] = None,
        bio: Optional[str] = None,
    ) -> Doctor:
        """DocumentsIncomplete/Rejected -> UnderReview, once documents and all checks pass."""
        doctor = self._get_or_create_doctor(doctor_id)
        current = doctor.verification_status
        version = doctor.verification_version
        if current not in SUBMITTABLE:
            raise InvalidTransitionError(doctor_id, current.value, SUBMIT)

        validate_coordinates(latitude, longitude)
        specialty_list = parse_specialties(specialties)
        if not specialty_list:
            raise ValidationError("At least one specialty is required", "SPECIALTIES_REQUIRED")
        if not (degree or "").strip():
            raise ValidationError("Degree is required", "DEGREE_REQUIRED")

        missing = self.missing_documents(doctor_id)
        if missing:
            logger.warning("Doctor %s submission blocked, missing documents: %s", doctor_id, ", ".join(missing))
            raise MissingDocumentsError(missing)

        user = self.db.query(User).filter(User.id == doctor_id).first()
        ctx = SubmissionContext(
            doctor_id=doctor_id,
            full_name=user.full_name if user else "",
            license_number=(license_number or "").strip(),
            hospital_affiliation=(hospital_affiliation or "").strip(),
            degree=degree.strip(),
        )
        for check in self.checks:
            result = check.run(ctx)
            if not result.passed:
                logger.warning("Doctor %s submission blocked by %s: %s", doctor_id, check.name, result.reason)
                raise VerificationFailedError(check.name, result.reason)

        target = next_status(doctor_id, current, SUBMIT)
        applied = self._conditional_update(doctor_id, version, {
            "verification_status": target,
            "license_number": ctx.license_number,
            "hospital_affiliation": ctx.hospital_affiliation,
            "degree": ctx.degree,
            "specialties": ", ".join(specialty_list),
            "bio": bio,
            "latitude": latitude,
            "longitude": longitude,
            "location_address": location_address,
            "submitted_at": datetime.utcnow(),
            "rejection_reason": None,
        })
        if not applied:
            self.db.rollback()
            raise ConcurrentUpdateError(doctor_id)
        self.db.commit()
        logger.info("Doctor %s: %s -> %s", doctor_id, current.value, target.value)
        return self._get_doctor(doctor_id)

    def review(self, reviewer: Caller, doctor_id: str, approve: bool, reason: Optional[str] = None) -> Doctor:
        """UnderReview -> Approved/Rejected. Admins only; rejection needs a reason."""
        if not reviewer.has_role(Role.ADMIN):
            logger.warning("Non-reviewer %s attempted to review doctor %s", reviewer.id, doctor_id)
            raise NotReviewerError(reviewer.id)
        reason = (reason or "").strip() or None
        if not approve and not reason:
            raise ValidationError("A rejection reason is required", "REASON_REQUIRED", {"doctor_id": doctor_id})

        doctor = self._get_doctor(doctor_id)
        current = doctor.verification_status
        version = doctor.verification_version
        target = next_status(doctor_id, current, APPROVE if approve else REJECT)
        now = datetime.utcnow()
        applied = self._conditional_update(doctor_id, version, {
            "verification_status": target,
            "reviewed_by": reviewer.id,
            "reviewed_at": now,
            "rejection_reason": None if approve else reason,
        })
        if not applied:
            self.db.rollback()
            raise ConcurrentUpdateError(doctor_id)
        if approve:
            (
                self.db.query(VerificationDocument)
                .filter(VerificationDocument.doctor_id == doctor_id)
                .update({"is_verified": True}, synchronize_session=False)
            )
        self.db.commit()
        logger.info("Admin %s %s doctor %s", reviewer.id, "approved" if approve else "rejected", doctor_id)
        return self._get_doctor(doctor_id)
