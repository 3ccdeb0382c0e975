"""
Tests for the FastAPI application.
"""

import pytest
from fastapi.testclient import TestClient

from visaready.api import main
from visaready.api.main import app


SESSIONS = "/api/v1/validation-sessions"


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


def session_payload(**overrides):
    payload = {
        "country": "usa",
        "visaType": "tourist",
        "personalInfo": {
            "applicantName": "Jane Traveler",
            "passportNumber": "X1234567",
            "dateOfBirth": "1990-02-14",
            "nationality": "Canadian",
            "travelDate": "2024-09-01",
            "stayDuration": 14,
            "dataProcessingConsent": True
        },
        "uploadedFiles": [
            {"originalName": "passport.pdf", "mimetype": "application/pdf", "size": 2048},
            {"originalName": "photo.png", "mimetype": "image/png", "size": 512}
        ],
        "checkedDocuments": {"passport": True}
    }
    payload.update(overrides)
    return payload


def create_paid_session(client, payload=None):
    session_id = client.post(SESSIONS, json=payload or session_payload()).json()["sessionId"]
    client.put(f"{SESSIONS}/{session_id}/payment-status", json={"status": "paid"}).raise_for_status()
    return session_id


class TestServiceEndpoints:
    """Test health, info and metrics endpoints."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["service"] == "visaready-api"
        assert response.headers["X-Request-ID"]

    def test_detailed_health(self, client):
        response = client.get("/health/detailed")

        assert response.status_code == 200
        checks = response.json()["checks"]
        assert set(checks) == {"catalog", "session_store", "memory"}
        assert checks["catalog"]["status"] == "healthy"
        assert checks["session_store"]["status"] == "healthy"

    def test_root(self, client):
        body = client.get("/").json()

        assert "create_session" in body["endpoints"]

    def test_metrics(self, client):
        client.post(SESSIONS, json=session_payload())

        metrics = client.get("/metrics").json()["metrics"]

        assert any(key.startswith("operation_count") for key in metrics["counters"])

    def test_request_ids_differ(self, client):
        first = client.get("/health").headers["X-Request-ID"]
        second = client.get("/health").headers["X-Request-ID"]

        assert first != second


class TestCatalogEndpoints:
    """Test requirement catalog endpoints."""

    def test_countries(self, client):
        assert client.get("/api/v1/countries").json()["countries"] == ["uk", "usa"]

    def test_visa_types(self, client):
        body = client.get("/api/v1/countries/USA/visa-types").json()

        assert body["visa_types"] == ["business", "tourist"]

    def test_requirements(self, client):
        body = client.get("/api/v1/requirements/usa/business").json()

        assert [r["id"] for r in body["requirements"]] == ["passport", "ds160", "invitation"]
        assert body["requirements"][0]["formats"] == ["jpg", "pdf", "png"]

    def test_unknown_requirements_are_empty(self, client):
        response = client.get("/api/v1/requirements/atlantis/tourist")

        assert response.status_code == 200
        assert response.json()["requirements"] == []


class TestSessionEndpoints:
    """Test the validation session lifecycle over HTTP."""

    def test_full_lifecycle(self, client):
        created = client.post(SESSIONS, json=session_payload())
        assert created.status_code == 201
        session_id = created.json()["sessionId"]
        client.put(f"{SESSIONS}/{session_id}/payment-status", json={"status": "paid"})

        validated = client.post(f"{SESSIONS}/{session_id}/validate")
        assert validated.status_code == 200
        report = validated.json()["validationResults"]

        # passport.pdf covers every pdf rule; photo.png covers photo
        assert report["score"] == 100
        assert [v["requirementId"] for v in report["verified"]] == [
            "passport", "ds160", "photo", "financial", "itinerary"
        ]
        assert report["issues"] == []
        assert "completedAt" in report

        results = client.get(f"{SESSIONS}/{session_id}/results")
        assert results.status_code == 200
        assert results.json()["results"] == report

    def test_missing_documents_reported(self, client):
        payload = session_payload(uploadedFiles=[
            {"originalName": "scan.docx", "mimetype": "application/octet-stream", "size": 10}
        ])
        session_id = create_paid_session(client, payload)

        report = client.post(f"{SESSIONS}/{session_id}/validate").json()["validationResults"]

        assert report["score"] == 25
        assert [i["requirementId"] for i in report["issues"]] == ["passport", "ds160", "photo"]
        assert report["issues"][0]["title"] == "Missing Valid Passport"

    def test_invalid_personal_info(self, client):
        payload = session_payload()
        payload["personalInfo"]["passportNumber"] = "123"

        response = client.post(SESSIONS, json=payload)

        assert response.status_code == 400
        error = response.json()["error"]
        assert error["code"] == 400
        assert "passport_number" in error["message"]
        assert error["request_id"] == response.headers["X-Request-ID"]

    def test_malformed_body(self, client):
        response = client.post(SESSIONS, json={"country": "usa"})

        assert response.status_code == 422

    def test_validate_unknown_session(self, client):
        response = client.post(f"{SESSIONS}/missing/validate")

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "Validation session not found"

    @pytest.mark.parametrize("payment_status", [None, "pending", "processing", "failed"])
    def test_validate_requires_payment(self, client, payment_status):
        session_id = client.post(SESSIONS, json=session_payload()).json()["sessionId"]
        if payment_status is not None:
            client.put(f"{SESSIONS}/{session_id}/payment-status", json={"status": payment_status})

        response = client.post(f"{SESSIONS}/{session_id}/validate")

        assert response.status_code == 402
        assert response.json()["error"]["message"] == "Payment required"
        assert client.get(f"{SESSIONS}/{session_id}/results").status_code == 404

    def test_results_before_validation(self, client):
        session_id = client.post(SESSIONS, json=session_payload()).json()["sessionId"]

        response = client.get(f"{SESSIONS}/{session_id}/results")

        assert response.status_code == 404
        assert "not available" in response.json()["error"]["message"]

    def test_validation_in_progress(self, client, monkeypatch):
        session_id = client.post(SESSIONS, json=session_payload()).json()["sessionId"]
        monkeypatch.setattr(main.session_service, "_in_flight", {session_id})

        response = client.post(f"{SESSIONS}/{session_id}/validate")

        assert response.status_code == 409

    def test_payment_status(self, client):
        session_id = client.post(SESSIONS, json=session_payload()).json()["sessionId"]

        response = client.put(f"{SESSIONS}/{session_id}/payment-status", json={"status": "paid"})

        assert response.status_code == 200
        assert response.json() == {"sessionId": session_id, "paymentStatus": "paid"}

    def test_payment_status_rejects_unknown_value(self, client):
        session_id = client.post(SESSIONS, json=session_payload()).json()["sessionId"]

        response = client.put(f"{SESSIONS}/{session_id}/payment-status", json={"status": "refunded"})

        assert response.status_code == 422

    def test_payment_status_unknown_session(self, client):
        response = client.put(f"{SESSIONS}/missing/payment-status", json={"status": "paid"})

        assert response.status_code == 404


class TestUninitializedServices:
    """Endpoints degrade to 503 when services are not initialized."""

    def test_session_service_unavailable(self, monkeypatch):
        monkeypatch.setattr(main, "session_service", None)
        client = TestClient(app)

        response = client.post(SESSIONS, json=session_payload())

        assert response.status_code == 503
        assert response.json()["error"]["code"] == 503
