# tests/conftest.py
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

from datetime import datetime

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinic import models_invoice  # noqa: F401 - register invoice table
from clinic.database import Base
from clinic.domain.scheduling.permissions import Caller, Role
from clinic.domain.scheduling.service import AppointmentService
from clinic.domain.scheduling.time_rules import SchedulingPolicy
from clinic.models import Branch, Patient, Provider
from clinic.services.notification_service import NotificationGateway, NotificationOutcome

# Saturday 1 March 2025, 09:00 clinic time
NOW = datetime(2025, 3, 1, 9, 0)

RECEPTIONIST = Caller(user_id=100, role=Role.RECEPTIONIST)
ADMIN = Caller(user_id=101, role=Role.SYSTEM_ADMINISTRATOR)
DOCTOR = Caller(user_id=102, role=Role.DOCTOR)
BILLING = Caller(user_id=103, role=Role.BILLING_STAFF)
PATIENT_7 = Caller(user_id=7, role=Role.PATIENT, patient_id=7)
PATIENT_8 = Caller(user_id=8, role=Role.PATIENT, patient_id=8)


class RecordingGateway(NotificationGateway):
    """Stands in for Resend/Twilio and remembers every send"""

    def __init__(self, fail_email: bool = False, fail_sms: bool = False):
        self.fail_email = fail_email
        self.fail_sms = fail_sms
        self.emails = []
        self.sms = []

    async def send_email(self, to, subject, body):
        self.emails.append({"to": to, "subject": subject, "body": body})
        if self.fail_email:
            return NotificationOutcome(False, "email provider unavailable")
        return NotificationOutcome(True, f"email-{len(self.emails)}")

    async def send_sms(self, to, message):
        self.sms.append({"to": to, "message": message})
        if self.fail_sms:
            return NotificationOutcome(False, "sms provider unavailable")
        return NotificationOutcome(True, f"SM{len(self.sms)}")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clinic_data(db_session):
    """Branch 1, doctors 3 and 4, patients 7 (email+phone), 8 (email only), 9 (phone only)"""
    db_session.add_all(
        [
            Branch(id=1, name="Colombo Central"),
            Provider(id=3, full_name="Nimal Perera", branch_id=1),
            Provider(id=4, full_name="Ayesha Silva", branch_id=1),
            Patient(id=7, full_name="Kamal Fernando", email="kamal@example.com", phone="0771234567"),
            Patient(id=8, full_name="Dilini Jayasuriya", email="dilini@example.com"),
            Patient(id=9, full_name="Ruwan Bandara", phone="+94712345678"),
        ]
    )
    db_session.commit()
    return db_session


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def policy():
    return SchedulingPolicy()


@pytest.fixture
def service(clinic_data, gateway, policy):
    return AppointmentService(clinic_data, gateway, policy=policy, now=lambda: NOW)
