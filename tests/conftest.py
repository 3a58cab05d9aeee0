"""
Shared fixtures: in-memory SQLite rebuilt per test, a tmp_path document store,
row factories and bearer-token headers.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LICENSE_REGISTRY_URL"] = ""
os.environ.pop("SMTP_HOST", None)

import pytest
from fastapi.testclient import TestClient

from docreach.core.auth_utils import Caller, create_jwt
from docreach.db.database import SessionLocal, engine
from docreach.db.models import Base, Doctor, Role, User, VerificationStatus
from docreach.main import app
from docreach.services.documents import LocalDocumentStore, get_document_store
from docreach.services.validators import default_checks
from docreach.services.verification import EligibilityEngine

# Smallest payloads that pass the magic-byte check
PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\n%%EOF\n"
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00" * 16

# Bengaluru; one degree of latitude is ~111.195 km at this radius
BASE_LAT = 12.9716
BASE_LON = 77.5946
KM_PER_DEGREE_LAT = 111.195


def north_of(km: float) -> float:
    """Latitude km kilometres due north of BASE_LAT."""
    return BASE_LAT + km / KM_PER_DEGREE_LAT


@pytest.fixture(autouse=True)
def schema():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def store(tmp_path):
    return LocalDocumentStore(base_dir=str(tmp_path / "documents"))


@pytest.fixture
def engine_(db, store):
    """EligibilityEngine with the rule-based checks only."""
    return EligibilityEngine(db, store=store, checks=default_checks(registry_url=""))


class Factory:
    def __init__(self, db):
        self.db = db

    def user(self, user_id, role=Role.PATIENT, full_name="Priya Natarajan", phone="+15550000001", email=None, is_active=True):
        user = User(
            id=user_id,
            full_name=full_name,
            email=email if email is not None else f"{user_id}@example.org",
            phone=phone,
            role=role,
            is_active=is_active,
        )
        self.db.add(user)
        self.db.commit()
        return user

    def doctor(
        self,
        user_id,
        latitude=BASE_LAT,
        longitude=BASE_LON,
        specialties="Family Medicine",
        status=VerificationStatus.APPROVED,
        online=True,
        available_until=None,
        full_name="Anand Krishnan",
        phone="+15550000002",
        email=None,
        is_active=True,
    ):
        """A doctor account plus record, approved and online unless told otherwise."""
        self.user(user_id, Role.DOCTOR, full_name=full_name, phone=phone, email=email, is_active=is_active)
        doctor = Doctor(
            user_id=user_id,
            license_number="MED-123456",
            hospital_affiliation="City General Hospital",
            degree="MBBS",
            specialties=specialties,
            latitude=latitude,
            longitude=longitude,
            verification_status=status,
            is_online=online,
            available_until=available_until,
        )
        self.db.add(doctor)
        self.db.commit()
        return doctor


@pytest.fixture
def factory(db):
    return Factory(db)


def caller(user_id, *roles):
    return Caller(id=user_id, roles=frozenset(roles))


def auth_headers(user_id, *roles):
    return {"Authorization": f"Bearer {create_jwt(user_id, roles)}"}


@pytest.fixture
def client(store):
    """Test client whose document store writes under tmp_path."""
    app.dependency_overrides[get_document_store] = lambda: store
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
