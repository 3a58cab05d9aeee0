import jwt
import pytest

from docreach.config import settings
from docreach.core.errors import (
    DoctorNotFoundError,
    DoctorUnavailableError,
    InvalidContactMethodError,
    InvalidLocationError,
)
from docreach.db.models import DispatchLog, Role, VerificationStatus
from docreach.services.availability import AvailabilityStore
from docreach.services.dispatch import (
    CallHandler,
    ContactMethod,
    DispatchContext,
    DispatchRouter,
    VideoCallHandler,
    default_handlers,
    parse_contact_method,
)
from docreach.services.matching import MatchQuery, MatchRanker
from docreach.services.notifications import EmailMessageChannel

from conftest import BASE_LAT, BASE_LON, caller


class RecordingChannel(EmailMessageChannel):
    def __init__(self):
        self.sent = []

    def send_urgent(self, **kwargs):
        self.sent.append(kwargs)
        return True


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def router(db, channel):
    return DispatchRouter(db, handlers=default_handlers(channel))


def test_call_returns_phone_and_logs(router, factory, db):
    factory.user("pat-1", Role.PATIENT)
    factory.doctor("doc-1", phone="+15551234567")
    outcome = router.dispatch("pat-1", "doc-1", "Call")

    assert outcome.success is True
    assert outcome.method == ContactMethod.CALL
    assert outcome.contact_info == "+15551234567"
    assert outcome.audit_id

    entry = db.query(DispatchLog).filter(DispatchLog.id == outcome.audit_id).one()
    assert entry.requester_id == "pat-1"
    assert entry.doctor_id == "doc-1"
    assert entry.method == "Call"


def test_message_forwards_context(router, factory, channel):
    factory.doctor("doc-1", email="anand@hospital.example", full_name="Anand Krishnan")
    ctx = DispatchContext(description="Chest pain", requester_name="Ravi", requester_phone="+15559990000")
    outcome = router.dispatch("pat-1", "doc-1", ContactMethod.MESSAGE, ctx)

    assert outcome.contact_info == "anand@hospital.example"
    assert channel.sent == [{
        "to_email": "anand@hospital.example",
        "doctor_name": "Anand Krishnan",
        "requester_name": "Ravi",
        "requester_phone": "+15559990000",
        "description": "Chest pain",
    }]


def test_video_call_issues_session_token(router, factory):
    factory.doctor("doc-1")
    outcome = router.dispatch("pat-1", "doc-1", "video_call")

    assert outcome.method == ContactMethod.VIDEO_CALL
    assert outcome.contact_info.startswith("video-session:")
    claims = jwt.decode(outcome.session_token, settings.auth_secret_key, algorithms=[settings.auth_algorithm])
    assert claims["doctor"] == "doc-1"
    assert claims["requester"] == "pat-1"
    assert claims["typ"] == "video_session"
    assert outcome.contact_info == f"video-session:{claims['jti']}"
    assert claims["exp"] - claims["iat"] == settings.video_session_ttl_seconds


def test_video_call_join_url(factory, db):
    factory.doctor("doc-1")
    handlers = default_handlers(RecordingChannel())
    handlers[ContactMethod.VIDEO_CALL] = VideoCallHandler(ttl_seconds=60, base_url="https://meet.example.org/s/")
    outcome = DispatchRouter(db, handlers=handlers).dispatch("pat-1", "doc-1", "VideoCall")
    assert outcome.contact_info.startswith("https://meet.example.org/s/")


def test_doctor_offline_after_search_is_unavailable(router, factory, db):
    factory.doctor("doc-1")
    results = MatchRanker(db).match(MatchQuery(latitude=BASE_LAT, longitude=BASE_LON))
    assert [r.doctor.doctor_id for r in results] == ["doc-1"]

    AvailabilityStore(db).set_availability(caller("doc-1", Role.DOCTOR), "doc-1", False)

    with pytest.raises(DoctorUnavailableError) as exc:
        router.dispatch("pat-1", results[0].doctor.doctor_id, "Call")
    assert exc.value.error_code == "DOCTOR_UNAVAILABLE"
    assert db.query(DispatchLog).count() == 0


@pytest.mark.parametrize("kwargs", [
    {"status": VerificationStatus.UNDER_REVIEW},
    {"online": False},
    {"is_active": False},
])
def test_ineligible_doctor_is_unavailable(router, factory, kwargs):
    factory.doctor("doc-1", **kwargs)
    with pytest.raises(DoctorUnavailableError):
        router.dispatch("pat-1", "doc-1", "Call")


def test_call_without_phone_is_unavailable(router, factory):
    factory.doctor("doc-1", phone=None)
    with pytest.raises(DoctorUnavailableError):
        router.dispatch("pat-1", "doc-1", "Call")


def test_unknown_doctor(router):
    with pytest.raises(DoctorNotFoundError):
        router.dispatch("pat-1", "nobody", "Call")


def test_invalid_method_and_location(router, factory):
    factory.doctor("doc-1")
    with pytest.raises(InvalidContactMethodError):
        router.dispatch("pat-1", "doc-1", "Carrier pigeon")
    with pytest.raises(InvalidLocationError):
        router.dispatch("pat-1", "doc-1", "Call", DispatchContext(latitude=BASE_LAT, longitude=None))


@pytest.mark.parametrize("raw,expected", [
    ("Call", ContactMethod.CALL),
    ("call", ContactMethod.CALL),
    ("MESSAGE", ContactMethod.MESSAGE),
    ("VideoCall", ContactMethod.VIDEO_CALL),
    ("video call", ContactMethod.VIDEO_CALL),
])
def test_parse_contact_method(raw, expected):
    assert parse_contact_method(raw) == expected


def test_router_requires_every_method(db):
    with pytest.raises(ValueError):
        DispatchRouter(db, handlers={ContactMethod.CALL: CallHandler()})
