"""
HTTP surface tests: routing, auth dependencies and the error envelope.
The app runs against the per-test SQLite database through dependency overrides.
"""
from datetime import timedelta

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from mbg_watch.auth import create_access_token
from mbg_watch.database import get_db
from mbg_watch.main import app
from mbg_watch.routers.reports import get_review_service
from mbg_watch.services.review import ReviewService

from conftest import FakeClock, LONG_NARRATIVE, NOW


@pytest.fixture
def client(session_factory, seeded):
    clock = FakeClock()

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    def override_review_service(db: Session = Depends(get_db)):
        return ReviewService(db, clock=clock)

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_review_service] = override_review_service
    yield TestClient(app)
    app.dependency_overrides.clear()


def bearer(user_id, role="user"):
    token = create_access_token(user_id, f"{user_id}@example.com", role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def reporter_headers(seeded):
    return bearer(seeded["reporter"])


@pytest.fixture
def other_headers(seeded):
    return bearer(seeded["other_reporter"])


@pytest.fixture
def admin_headers(seeded):
    return bearer(seeded["admin"], "admin")


def report_body(**overrides):
    body = {
        "category": "poisoning",
        "title": "Siswa keracunan makanan",
        "description": LONG_NARRATIVE,
        "location": "SD Negeri 01 Gambir",
        "provinceId": "31",
        "cityId": "31.71",
        "districtId": "31.71.01",
        "incidentDate": (NOW - timedelta(days=1, hours=4, minutes=30)).isoformat(),
        "relation": "parent",
        "files": [
            {"reference": "uploads/a.jpg", "fileName": "a.jpg", "contentType": "image/jpeg", "sizeBytes": 2048},
            {"reference": "uploads/b.jpg", "fileName": "b.jpg", "contentType": "image/jpeg", "sizeBytes": 4096},
        ],
    }
    body.update(overrides)
    return body


def submit(client, headers, **overrides):
    response = client.post("/reports", json=report_body(**overrides), headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestAuth:

    def test_register_login_me(self, client):
        response = client.post("/auth/register", json={
            "email": "warga@example.com", "username": "warga", "password": "rahasia123",
        })
        assert response.status_code == 201

        login = client.post("/auth/login", json={"email": "warga@example.com", "password": "rahasia123"})
        assert login.status_code == 200
        token = login.json()["data"]["accessToken"]

        me = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["data"]["username"] == "warga"
        assert me.json()["data"]["role"] == "user"

    def test_wrong_password(self, client):
        client.post("/auth/register", json={
            "email": "warga@example.com", "username": "warga", "password": "rahasia123",
        })
        response = client.post("/auth/login", json={"email": "warga@example.com", "password": "salah-sekali"})
        assert response.status_code == 401
        assert response.json()["code"] == "AUTHENTICATION_ERROR"

    def test_missing_token(self, client):
        response = client.post("/reports", json=report_body())
        assert response.status_code == 401
        assert response.json() == {"error": "Authentication required", "code": "AUTHENTICATION_ERROR"}

    def test_garbage_token(self, client):
        response = client.get("/reports/mine", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401

    def test_reporter_cannot_use_admin_routes(self, client, reporter_headers):
        response = client.get("/admin/reports", headers=reporter_headers)
        assert response.status_code == 403
        assert response.json()["code"] == "AUTHORIZATION_ERROR"


class TestReportEndpoints:

    def test_submit(self, client, reporter_headers):
        data = submit(client, reporter_headers)
        assert data["status"] == "pending"
        assert data["publicId"].startswith("MBG-")
        assert data["scoring"]["maxScore"] == 18
        assert len(data["files"]) == 2

    def test_submit_validation_envelope(self, client, reporter_headers):
        response = client.post(
            "/reports", json=report_body(description="Terlalu pendek."), headers=reporter_headers,
        )
        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert response.json()["field"] == "description"

    def test_schema_validation_envelope(self, client, reporter_headers):
        body = report_body()
        del body["title"]
        response = client.post("/reports", json=body, headers=reporter_headers)
        assert response.status_code == 400
        assert response.json()["field"] == "title"

    def test_list_mine(self, client, reporter_headers, other_headers):
        submit(client, reporter_headers)
        submit(client, other_headers)
        response = client.get("/reports/mine", headers=reporter_headers)
        body = response.json()
        assert body["pagination"]["total"] == 1
        assert "reporterId" not in body["data"][0]

    def test_attach_evidence_to_someone_elses_report(self, client, reporter_headers, other_headers):
        report = submit(client, reporter_headers)
        response = client.post(
            f"/reports/{report['id']}/evidence",
            json={"files": [{"reference": "u/c.pdf", "fileName": "c.pdf", "contentType": "application/pdf", "sizeBytes": 10}]},
            headers=other_headers,
        )
        assert response.status_code == 403


class TestAdminEndpoints:

    def test_status_conflict_carries_current_status(self, client, reporter_headers, admin_headers):
        report = submit(client, reporter_headers)
        response = client.patch(
            f"/admin/reports/{report['id']}/status", json={"status": "resolved"}, headers=admin_headers,
        )
        assert response.status_code == 409
        assert response.json()["code"] == "CONFLICT"
        assert response.json()["currentStatus"] == "pending"

    def test_status_update_and_history(self, client, reporter_headers, admin_headers):
        report = submit(client, reporter_headers)
        response = client.patch(
            f"/admin/reports/{report['id']}/status",
            json={"status": "analyzing", "notes": "Diteruskan ke tim"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["data"]["sequence"] == 2

        history = client.get(f"/admin/reports/{report['id']}/history", headers=admin_headers).json()["data"]
        assert [e["toStatus"] for e in history["entries"]] == ["pending", "analyzing"]

    def test_unknown_report(self, client, admin_headers):
        response = client.get("/admin/reports/nope/scoring", headers=admin_headers)
        assert response.status_code == 404
        assert response.json()["code"] == "NOT_FOUND"

    def test_bulk_status(self, client, reporter_headers, admin_headers):
        report = submit(client, reporter_headers)
        response = client.patch(
            "/admin/reports/bulk-status",
            json={"reportIds": [report["id"], "nope"], "status": "analyzing"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert (data["updated"], data["failed"]) == (1, 1)

    def test_query_with_camel_case_filters(self, client, reporter_headers, admin_headers):
        submit(client, reporter_headers)
        response = client.get(
            "/admin/reports", params={"cityId": "31.71", "limit": 5}, headers=admin_headers,
        )
        body = response.json()
        assert body["pagination"] == {"page": 1, "limit": 5, "total": 1, "totalPages": 1}

        response = client.get("/admin/reports", params={"cityId": "32.73"}, headers=admin_headers)
        assert response.json()["pagination"]["total"] == 0

    def test_single_day_date_range(self, client, reporter_headers, admin_headers):
        submit(client, reporter_headers)
        response = client.get(
            "/admin/reports",
            params={"startDate": "2025-03-11", "endDate": "2025-03-11"},
            headers=admin_headers,
        )
        assert response.status_code == 200
        assert response.json()["pagination"]["total"] == 1

    def test_scoring_thresholds_and_dashboard(self, client, reporter_headers, admin_headers):
        submit(client, reporter_headers)
        thresholds = client.get("/admin/scoring/thresholds", headers=admin_headers).json()["data"]
        assert thresholds["levels"]["medium"] == {"min": 7, "max": 11}

        stats = client.get("/admin/dashboard", headers=admin_headers).json()["data"]
        assert stats["total"] == 1

    def test_health(self, client):
        assert client.get("/health").json()["status"] == "healthy"
