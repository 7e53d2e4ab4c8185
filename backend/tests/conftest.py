"""
Shared fixtures: a fresh SQLite file database per test, seeded with a small
location hierarchy and three accounts (two reporters, one admin).
"""
import os

# Must be set before mbg_watch.database creates its module-level engine
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from mbg_watch.database import init_db
from mbg_watch.models.db_models import UserDB, UserRole
from mbg_watch.models.scoring import Actor
from mbg_watch.services.review import EvidenceUpload, LocationDirectory, ReportDraft, ReviewService

# Wednesday 12:00 WIB
NOW = datetime(2025, 3, 12, 5, 0, 0)

LOCATIONS = [
    {
        "id": "31",
        "name": "DKI Jakarta",
        "cities": [
            {
                "id": "31.71",
                "name": "Kota Jakarta Pusat",
                "districts": [
                    {"id": "31.71.01", "name": "Gambir"},
                    {"id": "31.71.03", "name": "Kemayoran"},
                ],
            },
        ],
    },
    {
        "id": "32",
        "name": "Jawa Barat",
        "cities": [
            {"id": "32.73", "name": "Kota Bandung", "districts": [{"id": "32.73.01", "name": "Sukasari"}]},
        ],
    },
]

NARRATIVE_60 = "Banyak siswa kelas 4 mual setelah makan nasi kotak di sekolah."

LONG_NARRATIVE = (
    "Pada tanggal 11/03/2025 pukul 07:30 sekitar dua puluh siswa kelas 4 di SD Negeri 01 "
    "Gambir mengalami mual dan muntah setelah makan menu nasi, ayam goreng dan sayur dari "
    "program makan bergizi. Guru kelas langsung membawa anak-anak ke puskesmas terdekat."
)


class FakeClock:
    """Deterministic clock; advances one second per reading."""

    def __init__(self, start: datetime = NOW):
        self.now = start

    def __call__(self) -> datetime:
        current = self.now
        self.now = self.now + timedelta(seconds=1)
        return current

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


def make_files(count: int, content_type: str = "image/jpeg", size: int = 2048):
    return [
        EvidenceUpload(
            reference=f"uploads/{uuid4()}.bin",
            file_name=f"evidence-{i}.jpg",
            content_type=content_type,
            size_bytes=size,
        )
        for i in range(count)
    ]


def make_draft(**overrides) -> ReportDraft:
    fields = dict(
        category="poisoning",
        title="Siswa keracunan makanan",
        description=NARRATIVE_60,
        location="SD Negeri 01 Gambir",
        province_id="31",
        city_id="31.71",
        district_id="31.71.01",
        incident_date=NOW - timedelta(days=1, hours=4, minutes=30),  # Tue 07:30 WIB
        relation="parent",
        files=make_files(2),
    )
    fields.update(overrides)
    return ReportDraft(**fields)


@pytest.fixture
def engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'mbg_watch.db'}",
        connect_args={"check_same_thread": False},
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


def _add_user(db, username: str, role: str) -> str:
    user = UserDB(
        id=str(uuid4()),
        email=f"{username}@example.com",
        username=username,
        password_hash="not-used",
        role=role,
    )
    db.add(user)
    return user.id


@pytest.fixture
def seeded(session_factory):
    """Locations and accounts; returns the user ids by name."""
    db = session_factory()
    try:
        LocationDirectory(db).load(LOCATIONS)
        ids = {
            "reporter": _add_user(db, "reporter", UserRole.USER.value),
            "other_reporter": _add_user(db, "other_reporter", UserRole.USER.value),
            "third_reporter": _add_user(db, "third_reporter", UserRole.USER.value),
            "admin": _add_user(db, "admin", UserRole.ADMIN.value),
        }
        db.commit()
    finally:
        db.close()
    return ids


@pytest.fixture
def db(session_factory, seeded):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(db, clock):
    return ReviewService(db, clock=clock)


@pytest.fixture
def reporter(seeded):
    return Actor(user_id=seeded["reporter"], role=UserRole.USER.value)


@pytest.fixture
def other_reporter(seeded):
    return Actor(user_id=seeded["other_reporter"], role=UserRole.USER.value)


@pytest.fixture
def third_reporter(seeded):
    return Actor(user_id=seeded["third_reporter"], role=UserRole.USER.value)


@pytest.fixture
def admin(seeded):
    return Actor(user_id=seeded["admin"], role=UserRole.ADMIN.value)
