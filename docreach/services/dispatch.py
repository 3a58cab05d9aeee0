"""
Contact dispatch to a chosen doctor over a closed set of methods: Call, Message, VideoCall.

Eligibility is re-read at dispatch time; a doctor who went offline (or lost approval) since the
search returns DoctorUnavailable, which callers handle by picking another doctor. Nothing is
retried here; each successful outcome is written to dispatch_log.
"""
import enum
import logging
import secrets
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Optional, Union

import jwt
from sqlalchemy.orm import Session

from docreach.config import settings
from docreach.core.errors import DoctorNotFoundError, DoctorUnavailableError, InvalidContactMethodError
from docreach.core.geo import validate_coordinates
from docreach.db.models import DispatchLog, Doctor, User
from docreach.services.notifications import EmailMessageChannel
from docreach.services.verification import is_eligible

logger = logging.getLogger(__name__)


class ContactMethod(str, enum.Enum):
    CALL = "Call"
    MESSAGE = "Message"
    VIDEO_CALL = "VideoCall"


def parse_contact_method(value: Union[str, ContactMethod]) -> ContactMethod:
    if isinstance(value, ContactMethod):
        return value
    normalized = str(value or "").replace("_", "").replace(" ", "").lower()
    for method in ContactMethod:
        if method.value.lower() == normalized:
            return method
    raise InvalidContactMethodError(value)


@dataclass
class DispatchContext:
    description: Optional[str] = None
    requester_name: Optional[str] = None
    requester_phone: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    is_urgent: bool = True


@dataclass
class DispatchOutcome:
    success: bool
    method: ContactMethod
    doctor_id: str
    contact_info: Optional[str]
    message: str
    contact_time: datetime
    session_token: Optional[str] = None
    session_expires_at: Optional[datetime] = None
    audit_id: Optional[str] = None


class ContactHandler:
    method: ContactMethod

    def contact(self, doctor: Doctor, user: User, requester_id: str, ctx: DispatchContext) -> DispatchOutcome:
        raise NotImplementedError


class CallHandler(ContactHandler):
    method = ContactMethod.CALL

    def contact(self, doctor, user, requester_id, ctx):
        if not (user.phone or "").strip():
            raise DoctorUnavailableError(doctor.user_id, "Doctor has no phone contact")
        logger.info("Call initiated: requester %s calling doctor %s", requester_id, doctor.user_id)
        return DispatchOutcome(
            success=True,
            method=self.method,
            doctor_id=doctor.user_id,
            contact_info=user.phone,
            message="Calling doctor now...",
            contact_time=datetime.utcnow(),
        )


class MessageHandler(ContactHandler):
    method = ContactMethod.MESSAGE

    def __init__(self, channel: Optional[EmailMessageChannel] = None):
        self.channel = channel or EmailMessageChannel()

    def contact(self, doctor, user, requester_id, ctx):
        if not (user.email or "").strip():
            raise DoctorUnavailableError(doctor.user_id, "Doctor has no message channel")
        self.channel.send_urgent(
            to_email=user.email,
            doctor_name=user.full_name,
            requester_name=ctx.requester_name,
            requester_phone=ctx.requester_phone,
            description=ctx.description,
        )
        logger.info("Urgent message queued: requester %s to doctor %s", requester_id, doctor.user_id)
        return DispatchOutcome(
            success=True,
            method=self.method,
            doctor_id=doctor.user_id,
            contact_info=user.email,
            message="Emergency message sent to doctor",
            contact_time=datetime.utcnow(),
        )


class VideoCallHandler(ContactHandler):
    """Issues a signed, short-lived session token both parties present to the video service."""

    method = ContactMethod.VIDEO_CALL

    def __init__(self, ttl_seconds: Optional[int] = None, base_url: Optional[str] = None):
        self.ttl_seconds = ttl_seconds or settings.video_session_ttl_seconds
        self.base_url = base_url if base_url is not None else settings.video_session_base_url

    def contact(self, doctor, user, requester_id, ctx):
        now = int(time.time())
        session_id = secrets.token_hex(16)
        token = jwt.encode(
            {
                "jti": session_id,
                "doctor": doctor.user_id,
                "requester": requester_id,
                "typ": "video_session",
                "iat": now,
                "exp": now + self.ttl_seconds,
            },
            settings.auth_secret_key,
            algorithm=settings.auth_algorithm,
        )
        join = f"{self.base_url.rstrip('/')}/{session_id}" if self.base_url else f"video-session:{session_id}"
        logger.info("Video session %s created: requester %s with doctor %s", session_id, requester_id, doctor.user_id)
        return DispatchOutcome(
            success=True,
            method=self.method,
            doctor_id=doctor.user_id,
            contact_info=join,
            message="Video call initiated",
            contact_time=datetime.utcnow(),
            session_token=token,
            session_expires_at=datetime.utcfromtimestamp(now + self.ttl_seconds),
        )


def default_handlers(channel: Optional[EmailMessageChannel] = None) -> Dict[ContactMethod, ContactHandler]:
    handlers = [CallHandler(), MessageHandler(channel), VideoCallHandler()]
    return {h.method: h for h in handlers}


class DispatchRouter:
    def __init__(self, db: Session, handlers: Optional[Dict[ContactMethod, ContactHandler]] = None):
        self.db = db
        self.handlers = handlers or default_handlers()
        missing = set(ContactMethod) - set(self.handlers)
        if missing:
            raise ValueError(f"No contact handler for: {sorted(m.value for m in missing)}")

    def dispatch(
        self,
        requester_id: str,
        doctor_id: str,
        method: Union[str, ContactMethod],
        context: Optional[DispatchContext] = None,
    ) -> DispatchOutcome:
        method = parse_contact_method(method)
        ctx = context or DispatchContext()
        if ctx.latitude is not None or ctx.longitude is not None:
            validate_coordinates(ctx.latitude, ctx.longitude)

        row = (
            self.db.query(Doctor, User)
            .join(User, User.id == Doctor.user_id)
            .filter(Doctor.user_id == doctor_id)
            .first()
        )
        if row is None:
            raise DoctorNotFoundError(doctor_id)
        doctor, user = row
        if not is_eligible(doctor, user):
            logger.warning("Dispatch to unavailable doctor %s by %s (%s)", doctor_id, requester_id, method.value)
            raise DoctorUnavailableError(doctor_id)

        outcome = self.handlers[method].contact(doctor, user, requester_id, ctx)

        audit_id = str(uuid.uuid4())
        entry = DispatchLog(
            id=audit_id,
            requester_id=requester_id,
            doctor_id=doctor_id,
            method=method.value,
            success=outcome.success,
            contact_info=outcome.contact_info,
            is_urgent=ctx.is_urgent,
            created_at=outcome.contact_time,
        )
        self.db.add(entry)
        self.db.commit()
        outcome.audit_id = audit_id
        return outcome
