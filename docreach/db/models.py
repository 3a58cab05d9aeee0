import enum
from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime, Enum, Float, ForeignKey, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class Role(str, enum.Enum):
    DOCTOR = "Doctor"
    PATIENT = "Patient"
    ADMIN = "Admin"


class VerificationStatus(str, enum.Enum):
    UNVERIFIED = "Unverified"
    DOCUMENTS_INCOMPLETE = "DocumentsIncomplete"
    UNDER_REVIEW = "UnderReview"
    APPROVED = "Approved"
    REJECTED = "Rejected"


class DocumentKind(str, enum.Enum):
    MEDICAL_LICENSE = "MedicalLicense"
    DEGREE_CERTIFICATE = "DegreeCertificate"
    HOSPITAL_AFFILIATION = "HospitalAffiliation"
    PROFESSIONAL_PHOTO = "ProfessionalPhoto"


REQUIRED_DOCUMENT_KINDS = (
    DocumentKind.MEDICAL_LICENSE,
    DocumentKind.DEGREE_CERTIFICATE,
    DocumentKind.HOSPITAL_AFFILIATION,
)


class User(Base):
    """Account mirror owned by the identity provider; we only read it."""

    __tablename__ = "users"

    id = Column(String, primary_key=True)
    full_name = Column(String, nullable=False, default="")
    email = Column(String, unique=True, nullable=True, index=True)
    phone = Column(String, nullable=True)
    role = Column(Enum(Role), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    profile_photo_ref = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)


class Doctor(Base):
    """Doctor record. Verification fields and availability fields are written independently,
    each guarded by its own version counter."""

    __tablename__ = "doctors"

    user_id = Column(String, ForeignKey("users.id"), primary_key=True)
    license_number = Column(String, nullable=True)
    hospital_affiliation = Column(String, nullable=True)
    degree = Column(String, nullable=True)
    specialties = Column(String, nullable=True)  # comma-separated, order preserved
    bio = Column(String, nullable=True)
    latitude = Column(Float, nullable=False, default=0.0)
    longitude = Column(Float, nullable=False, default=0.0)
    location_address = Column(String, nullable=True)

    verification_status = Column(Enum(VerificationStatus), nullable=False, default=VerificationStatus.UNVERIFIED, index=True)
    submitted_at = Column(DateTime, nullable=True)
    reviewed_by = Column(String, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    rejection_reason = Column(String, nullable=True)
    verification_version = Column(Integer, nullable=False, default=0)

    is_online = Column(Boolean, nullable=False, default=False)
    status_message = Column(String, nullable=True)
    available_until = Column(DateTime, nullable=True)
    availability_updated_at = Column(DateTime, nullable=True)
    availability_version = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)


class VerificationDocument(Base):
    __tablename__ = "verification_documents"

    id = Column(String, primary_key=True)
    doctor_id = Column(String, ForeignKey("doctors.user_id"), nullable=False, index=True)
    kind = Column(Enum(DocumentKind), nullable=False)
    storage_ref = Column(String, nullable=False)
    file_name = Column(String, nullable=True)
    content_type = Column(String, nullable=True)
    size_bytes = Column(Integer, nullable=False, default=0)
    uploaded_at = Column(DateTime, default=datetime.utcnow)
    is_verified = Column(Boolean, nullable=False, default=False)


class DispatchLog(Base):
    __tablename__ = "dispatch_log"

    id = Column(String, primary_key=True)
    requester_id = Column(String, nullable=False, index=True)
    doctor_id = Column(String, nullable=False, index=True)
    method = Column(String, nullable=False)  # Call | Message | VideoCall
    success = Column(Boolean, nullable=False, default=True)
    contact_info = Column(String, nullable=True)
    is_urgent = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.utcnow)
