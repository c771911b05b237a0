import os
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from medsched.auth.dependencies import get_clock, get_notifier  # noqa: E402
from medsched.database import Base, get_db  # noqa: E402
from medsched.main import app  # noqa: E402
from medsched.models.appointment import Appointment, AppointmentStatus  # noqa: E402
from medsched.models.doctor import Doctor  # noqa: E402
from medsched.models.patient import Patient  # noqa: E402
from medsched.models.session import Session as UserSession  # noqa: E402, F401
from medsched.models.user import Role, User  # noqa: E402
from medsched.services.notifier import Notifier  # noqa: E402

# A Monday morning, safely in the future of any real clock used for JWT expiry.
NOW = datetime(2030, 1, 7, 9, 0)


def fixed_clock() -> datetime:
    return NOW


class RecordingNotifier(Notifier):
    def __init__(self):
        self.sent: list[tuple[str, str, str]] = []

    def send(self, recipient: str, subject: str, body: str) -> None:
        self.sent.append((recipient, subject, body))

    def subjects_for(self, recipient: str) -> list[str]:
        return [subject for to, subject, _ in self.sent if to == recipient]


class Factory:
    def __init__(self, db):
        self.db = db

    def user(self, email: str, role: Role = Role.PATIENT, name: str | None = None) -> User:
        user = User(
            name=name or email.split('@')[0].title(),
            email=email,
            hashed_password='not-a-real-hash',
            role=role.value,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def doctor(self, email: str = 'doctor@example.com', specialty: str = 'Cardiology') -> Doctor:
        user = self.user(email, Role.DOCTOR)
        doctor = Doctor(user_id=user.id, specialty=specialty)
        self.db.add(doctor)
        self.db.commit()
        self.db.refresh(doctor)
        return doctor

    def patient(self, email: str = 'patient@example.com') -> Patient:
        user = self.user(email, Role.PATIENT)
        patient = Patient(user_id=user.id)
        self.db.add(patient)
        self.db.commit()
        self.db.refresh(patient)
        return patient

    def appointment(
        self,
        patient: Patient,
        doctor: Doctor,
        start: datetime,
        minutes: int = 30,
        status: AppointmentStatus = AppointmentStatus.PENDING,
    ) -> Appointment:
        appointment = Appointment(
            patient_id=patient.id,
            doctor_id=doctor.id,
            scheduled_start=start,
            scheduled_end=start + timedelta(minutes=minutes),
            status=status.value,
        )
        self.db.add(appointment)
        self.db.commit()
        self.db.refresh(appointment)
        return appointment


@pytest.fixture
def engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make(db) -> Factory:
    return Factory(db)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def client(engine, notifier):
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        session = testing_session_local()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: fixed_clock
    app.dependency_overrides[get_notifier] = lambda: notifier
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
