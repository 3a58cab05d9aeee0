"""
Per-doctor online/offline state. Last writer wins, but every write is a conditional UPDATE on
availability_version touching only availability columns, so it never clobbers a verification
transition running at the same time.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from docreach.core.auth_utils import Caller
from docreach.core.errors import ConcurrentUpdateError, DoctorNotFoundError, NotSelfError, ValidationError
from docreach.db.models import Doctor, Role

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 3


@dataclass
class AvailabilityView:
    doctor_id: str
    online: bool
    status_message: Optional[str]
    available_until: Optional[datetime]
    last_updated: Optional[datetime]


def effective_online(is_online: bool, available_until: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """Online flag, read as offline once available_until has passed."""
    if not is_online:
        return False
    if available_until is None:
        return True
    return available_until > (now or datetime.utcnow())


def default_status_message(online: bool) -> str:
    return "Available" if online else "Offline"


class AvailabilityStore:
    def __init__(self, db: Session):
        self.db = db

    def _get_doctor(self, doctor_id: str) -> Doctor:
        doctor = self.db.query(Doctor).filter(Doctor.user_id == doctor_id).first()
        if not doctor:
            raise DoctorNotFoundError(doctor_id)
        return doctor

    def set_availability(
        self,
        caller: Caller,
        doctor_id: str,
        online: bool,
        status_message: Optional[str] = None,
        available_until: Optional[datetime] = None,
    ) -> AvailabilityView:
        if not caller.has_role(Role.DOCTOR) or caller.id != doctor_id:
            raise NotSelfError(caller.id, doctor_id)
        if available_until is not None and available_until.tzinfo is not None:
            # stored naive UTC like every other timestamp
            available_until = available_until.astimezone(timezone.utc).replace(tzinfo=None)
        if online and available_until is not None and available_until <= datetime.utcnow():
            raise ValidationError("available_until must be in the future", "INVALID_AVAILABLE_UNTIL")

        values = {
            "is_online": bool(online),
            "status_message": (status_message or "").strip() or None,
            "available_until": available_until if online else None,
        }
        # Last writer wins: a lost race just means re-reading the version and writing again
        for _ in range(MAX_WRITE_ATTEMPTS):
            doctor = self._get_doctor(doctor_id)
            now = datetime.utcnow()
            count = (
                self.db.query(Doctor)
                .filter(
                    Doctor.user_id == doctor_id,
                    Doctor.availability_version == doctor.availability_version,
                )
                .update(
                    dict(values, availability_updated_at=now, availability_version=Doctor.availability_version + 1),
                    synchronize_session=False,
                )
            )
            if count == 1:
                self.db.commit()
                logger.info("Doctor %s availability updated: %s", doctor_id, "Online" if online else "Offline")
                return self.get_availability(doctor_id)
            self.db.rollback()
            self.db.expire_all()
        raise ConcurrentUpdateError(doctor_id)

    def get_availability(self, doctor_id: str) -> AvailabilityView:
        doctor = self._get_doctor(doctor_id)
        online = effective_online(doctor.is_online, doctor.available_until)
        return AvailabilityView(
            doctor_id=doctor_id,
            online=online,
            status_message=doctor.status_message or default_status_message(online),
            available_until=doctor.available_until,
            last_updated=doctor.availability_updated_at or doctor.updated_at,
        )
