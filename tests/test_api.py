import pytest
from fastapi.testclient import TestClient
from jose import jwt

from clinic.config import JWT_ALGORITHM, SECRET_KEY
from clinic.database import get_db
from clinic.domain.scheduling.permissions import PERMISSIONS, Action, Role
from clinic.domain.scheduling.router import get_notification_gateway
from clinic.main import app

# far enough ahead that the real clock never makes it a past time
FUTURE_DAY = "2099-03-10"


def _token(sub, role, patient_id=None):
    claims = {"sub": str(sub), "role": role}
    if patient_id is not None:
        claims["patient_id"] = patient_id
    return {"Authorization": f"Bearer {jwt.encode(claims, SECRET_KEY, algorithm=JWT_ALGORITHM)}"}


RECEPTIONIST = _token(100, "receptionist")
ADMIN = _token(101, "system_administrator")
BILLING = _token(103, "billing_staff")
PATIENT_7 = _token(7, "patient", patient_id=7)
PATIENT_8 = _token(8, "patient", patient_id=8)


@pytest.fixture
def client(clinic_data, session_factory, gateway):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notification_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


def _book(client, headers, hour="10:00", **extra):
    body = {"providerId": 3, "branchId": 1, "scheduledAt": f"{FUTURE_DAY}T{hour}:00", **extra}
    return client.post("/appointments", json=body, headers=headers)


def test_health(client):
    assert client.get("/health").json()["status"] == "ok"


def test_patient_books_for_themselves(client):
    response = _book(client, PATIENT_7)
    assert response.status_code == 201
    data = response.json()
    assert data["patientId"] == 7
    assert data["status"] == "Pending"


def test_staff_booking_requires_patient(client):
    response = _book(client, RECEPTIONIST)
    assert response.status_code == 400
    assert response.json()["code"] == "missing_patient"


def test_conflict_is_translated_to_400(client, gateway):
    assert _book(client, RECEPTIONIST, patientId=7).status_code == 201
    assert len(gateway.emails) == 2

    response = _book(client, RECEPTIONIST, hour="10:15", patientId=8)
    assert response.status_code == 400
    assert response.json() == {"detail": "Doctor is not available at this time", "code": "conflict"}


def test_workflow_over_http(client):
    created = _book(client, PATIENT_7).json()

    forbidden = client.post(f"/appointments/{created['id']}/approve", headers=PATIENT_7)
    assert forbidden.status_code == 403
    assert forbidden.json()["code"] == "forbidden"

    approved = client.post(f"/appointments/{created['id']}/approve", headers=RECEPTIONIST)
    assert approved.status_code == 200
    assert approved.json()["status"] == "Approved"

    again = client.post(f"/appointments/{created['id']}/reject", json={}, headers=RECEPTIONIST)
    assert again.status_code == 400
    assert again.json()["code"] == "invalid_transition"

    moved = client.patch(
        f"/appointments/{created['id']}/reschedule",
        json={"scheduledAt": f"{FUTURE_DAY}T11:00:00"},
        headers=PATIENT_7,
    )
    assert moved.json()["scheduledAt"] == f"{FUTURE_DAY}T11:00:00"

    assert client.get(f"/appointments/{created['id']}", headers=PATIENT_8).status_code == 403

    closed = client.patch(
        f"/appointments/{created['id']}/status", json={"status": "completed"}, headers=_token(102, "doctor")
    )
    assert closed.json()["status"] == "Completed"


def test_missing_appointment_is_404(client):
    response = client.post("/appointments/999/cancel", headers=RECEPTIONIST)
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_availability_and_listing(client):
    _book(client, RECEPTIONIST, patientId=7)

    slots = client.get(
        "/appointments/availability", params={"provider_id": 3, "day": FUTURE_DAY}, headers=PATIENT_8
    ).json()["slots"]
    assert f"{FUTURE_DAY}T10:00:00" not in slots
    assert f"{FUTURE_DAY}T11:00:00" in slots

    listed = client.get("/appointments", params={"provider_id": 3, "day": FUTURE_DAY}, headers=PATIENT_8)
    assert listed.json() == []


def test_bad_tokens_are_rejected(client):
    assert client.get("/appointments/1", headers={"Authorization": "Bearer nonsense"}).status_code == 401
    assert client.get("/appointments/1", headers=_token(7, "patient")).status_code == 401
    missing = client.get("/appointments/1")
    assert missing.status_code == 401
    assert missing.json() == {"detail": "Not authenticated"}
    assert missing.headers["www-authenticate"] == "Bearer"


def test_malformed_body_is_422(client):
    response = client.post("/appointments", json={"providerId": "three"}, headers=RECEPTIONIST)
    assert response.status_code == 422
    assert isinstance(response.json()["detail"], list)


def test_availability_checks_view_permission(client, monkeypatch):
    monkeypatch.setitem(PERMISSIONS, Action.VIEW, frozenset({Role.RECEPTIONIST}))
    params = {"provider_id": 3, "day": FUTURE_DAY}

    assert client.get("/appointments/availability", params=params, headers=RECEPTIONIST).status_code == 200
    denied = client.get("/appointments/availability", params=params, headers=PATIENT_8)
    assert denied.status_code == 403
    assert denied.json()["code"] == "forbidden"


def test_invoice_endpoints(client):
    issued = client.post(
        "/invoices",
        json={"patientId": 7, "totalAmount": "150.00", "dueDate": "2025-03-01T00:00:00"},
        headers=BILLING,
    )
    assert issued.status_code == 201
    invoice = issued.json()
    assert invoice["outstandingAmount"] == 150.0

    due = client.get("/invoices/due", params={"as_of": "2025-03-05"}, headers=BILLING).json()
    assert [i["id"] for i in due] == [invoice["id"]]

    paid = client.post(f"/invoices/{invoice['id']}/payments", json={"amount": "150.00"}, headers=BILLING)
    assert paid.json()["status"] == "Paid"
    assert client.get("/invoices/due", params={"as_of": "2025-03-05"}, headers=BILLING).json() == []


def test_manual_reminder_run(client, gateway):
    _book(client, RECEPTIONIST, patientId=8)
    sent_before = len(gateway.emails)

    denied = client.post("/reminders/run", json={"category": "appointment", "asOf": FUTURE_DAY}, headers=RECEPTIONIST)
    assert denied.status_code == 403

    result = client.post("/reminders/run", json={"category": "appointment", "asOf": FUTURE_DAY}, headers=ADMIN)
    assert result.status_code == 200
    assert result.json()["due"] == 1
    assert result.json()["notified"] == 1
    assert len(gateway.emails) == sent_before + 1
