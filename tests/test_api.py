"""
API tests through FastAPI's TestClient against in-memory storage.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests
from fastapi.testclient import TestClient

from api.main import create_app
from models.consent import derive_status
from services.container import build_services
from services.proof_generator import compute_digest
from tests.conftest import ADMIN_KEY, AUDITOR_KEY, PROOF_SECRET

ADMIN = {"X-API-Key": ADMIN_KEY}
AUDITOR = {"X-API-Key": AUDITOR_KEY}


@pytest.fixture
def services(config, storage):
    return build_services(config, storage=storage)


@pytest.fixture
def app(config, services):
    return create_app(config, services=services)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def logged(client):
    """Record one consent through the public endpoint."""
    response = client.post("/api/v1/consent", json={
        "status": "accepted",
        "categories": {"necessary": True, "analytics": True, "advertisement": False},
        "consentId": "api-consent-1",
    })
    assert response.status_code == 201
    return response.json()["consentId"]


class TestConsentEndpoint:

    def test_records_consent(self, client, storage):
        response = client.post(
            "/api/v1/consent",
            json={"status": "rejected", "consentId": "c-1"},
            headers={"User-Agent": "pytest-browser"},
        )

        assert response.status_code == 201
        assert response.json() == {"logged": True, "consentId": "c-1"}
        record = storage.consents.find_by_consent_id("c-1")[0]
        assert record.user_agent == "pytest-browser"
        assert record.status == "rejected"

    def test_all_optional_refused_stores_rejected(self, client, storage):
        categories = {"necessary": True, "functional": False, "analytics": False,
                      "performance": False, "advertisement": False}
        response = client.post("/api/v1/consent", json={
            "status": derive_status(categories).value,
            "categories": categories,
            "consentId": "refused-all",
        })

        assert response.status_code == 201
        record = storage.consents.find_by_consent_id("refused-all")[0]
        assert record.status == "rejected"
        assert record.accepted_categories() == ["necessary"]

    def test_string_category_value_rejected(self, client, storage):
        response = client.post("/api/v1/consent", json={
            "status": "rejected",
            "categories": {"analytics": "false"},
        })

        assert response.status_code == 400
        assert storage.consents.count() == 0

    def test_generates_consent_id(self, client):
        response = client.post("/api/v1/consent", json={"status": "accepted"})

        assert response.status_code == 201
        assert len(response.json()["consentId"]) == 36

    def test_forwarded_ip_used_only_behind_trusted_proxy(self, client, config, storage):
        headers = {"X-Forwarded-For": "198.51.100.77, 10.0.0.1"}
        client.post("/api/v1/consent", json={"status": "accepted", "consentId": "untrusted"}, headers=headers)

        config.api.trust_proxy_headers = True
        client.post("/api/v1/consent", json={"status": "accepted", "consentId": "trusted"}, headers=headers)

        assert storage.consents.find_by_consent_id("untrusted")[0].ip != "198.51.100.0"
        assert storage.consents.find_by_consent_id("trusted")[0].ip == "198.51.100.0"

    def test_missing_status(self, client, storage):
        response = client.post("/api/v1/consent", json={"categories": {}})

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PAYLOAD"
        assert storage.consents.count() == 0

    def test_malformed_json(self, client, storage):
        response = client.post(
            "/api/v1/consent",
            content=b'{"status": ',
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"
        assert storage.consents.count() == 0

    def test_no_auth_required(self, client):
        assert client.post("/api/v1/consent", json={"status": "accepted"}).status_code == 201

    def test_request_id_echoed(self, client):
        response = client.post(
            "/api/v1/consent",
            json={"status": "accepted"},
            headers={"X-Request-ID": "req-123"},
        )
        assert response.headers["X-Request-ID"] == "req-123"


class TestAuthentication:

    def test_missing_key(self, client):
        response = client.get("/api/v1/admin/consents")

        assert response.status_code == 401
        body = response.json()["error"]
        assert body["code"] == "UNAUTHORIZED"
        assert body["request_id"]

    def test_wrong_key(self, client):
        response = client.get("/api/v1/admin/consents", headers={"X-API-Key": "nope"})
        assert response.status_code == 401

    def test_auditor_can_read(self, client, logged):
        assert client.get("/api/v1/admin/consents", headers=AUDITOR).status_code == 200
        assert client.get(f"/api/v1/admin/consents/{logged}/proof", headers=AUDITOR).status_code == 200

    @pytest.mark.parametrize("method,path", [
        ("get", "/api/v1/admin/consents/export"),
        ("post", "/api/v1/admin/scanner/run"),
        ("get", "/api/v1/admin/scanner/settings"),
        ("get", "/api/v1/admin/cookies"),
    ])
    def test_auditor_forbidden(self, client, method, path):
        response = getattr(client, method)(path, headers=AUDITOR)

        assert response.status_code == 403
        assert response.json()["error"]["code"] == "FORBIDDEN"


class TestConsentLogs:

    def test_list(self, client, logged):
        response = client.get("/api/v1/admin/consents", headers=ADMIN)

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["items"][0]["consent_id"] == logged
        assert body["items"][0]["categories"]["analytics"] is True

    def test_invalid_per_page(self, client):
        response = client.get("/api/v1/admin/consents?per_page=7", headers=ADMIN)

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "INVALID_PAYLOAD"

    def test_stats(self, client, logged):
        body = client.get("/api/v1/admin/consents/stats", headers=ADMIN).json()

        assert body["total"] == 1
        assert body["by_status"] == {"accepted": 1}
        assert body["accepted_by_category"] == {"necessary": 1, "analytics": 1}

    def test_detail(self, client, logged):
        body = client.get(f"/api/v1/admin/consents/{logged}", headers=ADMIN).json()

        assert body["consent_id"] == logged
        assert len(body["records"]) == 1

    def test_detail_not_found(self, client):
        response = client.get("/api/v1/admin/consents/missing", headers=ADMIN)

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    def test_export(self, client, logged):
        response = client.get("/api/v1/admin/consents/export", headers=ADMIN)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment" in response.headers["content-disposition"]
        lines = response.text.strip().splitlines()
        assert len(lines) == 2
        assert logged in lines[1]


class TestProofs:

    def test_pdf_download(self, client, storage, logged):
        response = client.get(f"/api/v1/admin/consents/{logged}/proof", headers=ADMIN)

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert response.headers["content-disposition"] == f'attachment; filename="consent-log-{logged}.pdf"'
        assert response.headers["cache-control"] == "private, max-age=0, must-revalidate"
        assert response.content.startswith(b"%PDF")

        record = storage.consents.find_by_consent_id(logged)[0]
        assert response.headers["x-proof-digest"] == compute_digest(record, PROOF_SECRET)

    def test_html_download(self, client, logged):
        response = client.get(f"/api/v1/admin/consents/{logged}/proof?format=html", headers=ADMIN)

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/html")
        assert logged in response.text

    def test_unknown_format(self, client, logged):
        response = client.get(f"/api/v1/admin/consents/{logged}/proof?format=docx", headers=ADMIN)
        assert response.status_code == 400

    def test_missing_record(self, client):
        response = client.get("/api/v1/admin/consents/missing/proof", headers=ADMIN)
        assert response.status_code == 404

    def test_verify(self, client, storage, logged):
        digest = compute_digest(storage.consents.find_by_consent_id(logged)[0], PROOF_SECRET)

        ok = client.get(f"/api/v1/admin/consents/{logged}/verify", params={"digest": digest}, headers=ADMIN)
        bad = client.get(f"/api/v1/admin/consents/{logged}/verify", params={"digest": "0" * 64}, headers=ADMIN)

        assert ok.json() == {"consent_id": logged, "valid": True}
        assert bad.json()["valid"] is False


class TestScanner:

    def test_manual_scan_survives_fetch_failure(self, client, config, tmp_path):
        theme = tmp_path / "theme"
        theme.mkdir()
        (theme / "app.js").write_text("setCookie('newsletter_shown', 1);", encoding="utf-8")

        with patch(
            "services.cookie_discovery.requests.get",
            side_effect=requests.ConnectionError("refused"),
        ):
            response = client.post("/api/v1/admin/scanner/run", headers=ADMIN)

        assert response.status_code == 200
        body = response.json()
        assert body["fetch_failed"] is True
        assert body["new_count"] == 1
        assert body["new_cookies"][0]["name"] == "newsletter_shown"

        cookies = client.get("/api/v1/admin/cookies", headers=ADMIN).json()
        assert [c["name"] for c in cookies] == ["newsletter_shown"]

        activity = client.get("/api/v1/admin/activity?limit=10", headers=ADMIN).json()
        assert any(entry["message"] == "Found 1 new cookies" for entry in activity)

    def test_scan_in_progress(self, client, storage):
        with storage.scan_lock():
            response = client.post("/api/v1/admin/scanner/run", headers=ADMIN)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "SCAN_IN_PROGRESS"

    def test_settings_roundtrip_reschedules(self, client, app):
        app.state.scheduler = MagicMock()

        response = client.put(
            "/api/v1/admin/scanner/settings",
            json={"scan_time": "05:30", "email_notifications": False},
            headers=ADMIN,
        )

        assert response.status_code == 200
        assert response.json()["scan_time"] == "05:30"
        app.state.scheduler.reschedule.assert_called_once()

        current = client.get("/api/v1/admin/scanner/settings", headers=ADMIN).json()
        assert current["scan_time"] == "05:30"
        assert current["email_notifications"] is False
        assert current["scan_enabled"] is True

    def test_invalid_settings(self, client):
        response = client.put("/api/v1/admin/scanner/settings", json={"scan_time": "7pm"}, headers=ADMIN)

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"


class TestHealth:

    def test_health(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "healthy"
        assert body["storage"] == {"backend": "memory", "ok": True}

    def test_unknown_route_uses_error_envelope(self, client):
        response = client.get("/api/v1/nothing-here")

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "HTTP_404"
