"""API integration tests using httpx against the ASGI app"""

from datetime import datetime, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from reportsafe.api.dependencies import ServiceContainer
from reportsafe.main import create_app

ADMIN = {"X-Admin-ID": "admin-1"}

SUBMISSION_FORM = {
    "incident_types": "harassment",
    "description": "Someone is sending me threatening messages",
    "incident_date": "2024-01-15",
    "platforms": "instagram",
    "name": "Jane Doe",
    "email": "jane@example.com",
}


@pytest.fixture
async def client(config):
    app = create_app(config)
    container = ServiceContainer.from_settings(config)
    await container.initialize()
    app.state.container = container

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    await container.close()


async def _submit(client, **overrides) -> str:
    form = {**SUBMISSION_FORM, **overrides}
    response = await client.post("/api/v1/reports", data=form)
    assert response.status_code == 201, response.text
    return response.json()["case_id"]


@pytest.mark.integration
class TestPublicEndpoints:

    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_detailed_health(self, client):
        response = await client.get("/api/v1/reports/health")

        assert response.status_code == 200
        body = response.json()
        assert body["storage_available"] is True
        assert body["database_available"] is True

    async def test_submit_report(self, client):
        response = await client.post("/api/v1/reports", data=SUBMISSION_FORM)

        assert response.status_code == 201
        body = response.json()
        assert body["case_id"].startswith("RS-HR-")
        assert body["message"] == "Report submitted successfully"

    async def test_submit_report_with_evidence(self, client):
        files = [("files", ("screenshot.png", b"\x89PNG fake", "image/png"))]

        response = await client.post("/api/v1/reports", data=SUBMISSION_FORM, files=files)

        assert response.status_code == 201
        case_id = response.json()["case_id"]
        status = await client.get("/api/v1/reports/status", params={"case_id": case_id, "email": "jane@example.com"})
        assert status.json()["evidence_count"] == 1

    async def test_invalid_submission_lists_errors(self, client):
        form = {**SUBMISSION_FORM, "description": "short", "email": "not-an-email"}

        response = await client.post("/api/v1/reports", data=form)

        assert response.status_code == 422
        body = response.json()
        assert body["detail"] == "Validation failed"
        assert len(body["errors"]) == 2

    async def test_status_lookup(self, client):
        case_id = await _submit(client)

        response = await client.get("/api/v1/reports/status", params={"case_id": case_id, "email": "jane@example.com"})

        assert response.status_code == 200
        assert response.json()["status"] == "pending"

    async def test_status_lookup_wrong_email(self, client):
        case_id = await _submit(client)

        response = await client.get("/api/v1/reports/status", params={"case_id": case_id, "email": "x@example.com"})

        assert response.status_code == 403

    async def test_status_lookup_unknown(self, client):
        response = await client.get("/api/v1/reports/status", params={"case_id": "RS-HR-202401-999999"})

        assert response.status_code == 404

    async def test_deletion_request(self, client):
        case_id = await _submit(client)

        response = await client.post(
            f"/api/v1/reports/{case_id}/deletion-request", json={"email": "jane@example.com"}
        )

        assert response.status_code == 200
        assert response.json()["status"] == "pending_review"

    async def test_add_evidence(self, client):
        case_id = await _submit(client)
        files = [("files", ("log.txt", b"chat log", "text/plain"))]

        response = await client.post(f"/api/v1/reports/{case_id}/evidence", files=files)

        assert response.status_code == 201
        assert response.json()["evidence_count"] == 1

    async def test_public_statistics(self, client):
        await _submit(client)

        response = await client.get("/api/v1/reports/statistics")

        assert response.status_code == 200
        assert response.json()["total_reports"] == 1
        assert response.json()["recent_trends"][-1]["count"] == 1


@pytest.mark.integration
class TestAdminEndpoints:

    async def test_admin_header_required(self, client):
        response = await client.get("/api/v1/admin/reports")

        assert response.status_code == 422

    async def test_list_reports(self, client):
        await _submit(client)
        await _submit(client, incident_types="threats")

        response = await client.get("/api/v1/admin/reports", headers=ADMIN, params={"incident_type": "threats"})

        assert response.status_code == 200
        body = response.json()
        assert body["total"] == 1
        assert body["total_pages"] == 1
        assert body["reports"][0]["case_id"].startswith("RS-TH-")

    async def test_view_report(self, client):
        case_id = await _submit(client)

        response = await client.get(f"/api/v1/admin/reports/{case_id}", headers=ADMIN)

        assert response.status_code == 200
        body = response.json()
        assert body["report"]["viewed_count"] == 1
        assert "under_review" in body["next_actions"]

    async def test_update_status(self, client):
        case_id = await _submit(client)

        response = await client.put(
            f"/api/v1/admin/reports/{case_id}/status", headers=ADMIN, json={"status": "resolved", "notes": "Done"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "resolved"
        assert body["resolved_by"] == "admin-1"
        assert body["reviewed_at"] is None

    async def test_update_status_invalid(self, client):
        case_id = await _submit(client)

        response = await client.put(f"/api/v1/admin/reports/{case_id}/status", headers=ADMIN, json={"status": "done"})

        assert response.status_code == 400

    async def test_update_status_unknown_report(self, client):
        response = await client.put(
            "/api/v1/admin/reports/RS-HR-202401-999999/status", headers=ADMIN, json={"status": "resolved"}
        )

        assert response.status_code == 404

    async def test_bulk_status(self, client):
        case_id = await _submit(client)

        response = await client.post(
            "/api/v1/admin/reports/bulk-status",
            headers=ADMIN,
            json={"case_ids": [case_id, "RS-HR-202401-999999"], "status": "archived"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["modified"] == 1
        assert body["failures"][0]["case_id"] == "RS-HR-202401-999999"

    async def test_export_csv(self, client):
        case_id = await _submit(client)

        response = await client.get("/api/v1/admin/reports/export", headers=ADMIN, params={"format": "csv"})

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert "attachment" in response.headers["content-disposition"]
        lines = response.text.splitlines()
        assert lines[0].startswith('"Case ID","Status"')
        assert lines[1].startswith(f'"{case_id}"')

    async def test_delete_report(self, client):
        case_id = await _submit(client)

        response = await client.delete(f"/api/v1/admin/reports/{case_id}", headers=ADMIN)
        assert response.status_code == 200
        assert response.json()["case_id"] == case_id

        response = await client.delete(f"/api/v1/admin/reports/{case_id}", headers=ADMIN)
        assert response.status_code == 404

    async def test_decode_case_id(self, client):
        response = await client.get("/api/v1/admin/case-ids/RS-HR-202401-000042", headers=ADMIN)

        body = response.json()
        assert body["valid"] is True
        assert body["type_name"] == "Harassment"
        assert body["approximate_created_at"] == "2024-01-01"

        response = await client.get("/api/v1/admin/case-ids/not-a-case-id", headers=ADMIN)
        assert response.json()["valid"] is False

    async def test_activity_log(self, client):
        case_id = await _submit(client)
        await client.put(f"/api/v1/admin/reports/{case_id}/status", headers=ADMIN, json={"status": "under_review"})

        response = await client.get("/api/v1/admin/activities", headers=ADMIN, params={"case_id": case_id})

        body = response.json()
        assert body["total"] == 1
        assert body["activities"][0]["action"] == "update_status"

    async def test_statistics(self, client):
        await _submit(client)

        response = await client.get("/api/v1/admin/statistics", headers=ADMIN)

        assert response.status_code == 200
        body = response.json()
        assert body["total_reports"] == 1
        assert body["by_status"]["pending"] == 1

    async def test_patch_rejects_null_for_required_field(self, client):
        case_id = await _submit(client)

        response = await client.patch(f"/api/v1/admin/reports/{case_id}", headers=ADMIN, json={"severity": None})

        assert response.status_code == 422
        assert response.json()["errors"] == ["severity cannot be null"]
        report = await client.get(f"/api/v1/admin/reports/{case_id}", headers=ADMIN)
        assert report.json()["report"]["severity"] == "medium"

    async def test_patch_null_unassigns(self, client):
        case_id = await _submit(client)
        await client.put(f"/api/v1/admin/reports/{case_id}/assign", headers=ADMIN, json={"assignee_id": "admin-2"})

        response = await client.patch(f"/api/v1/admin/reports/{case_id}", headers=ADMIN, json={"assigned_to": None})

        assert response.status_code == 200
        assert response.json()["assigned_to"] is None

    async def test_bare_date_to_includes_today(self, client):
        await _submit(client)
        today = datetime.now(timezone.utc).date().isoformat()

        response = await client.get("/api/v1/admin/reports", headers=ADMIN, params={"date_to": today})

        assert response.status_code == 200
        assert response.json()["total"] == 1

    async def test_malformed_date_to(self, client):
        response = await client.get("/api/v1/admin/reports", headers=ADMIN, params={"date_to": "2024-13-45"})

        assert response.status_code == 422
        assert response.json()["errors"][0].startswith("date_to")

    async def test_filter_by_reporter_email(self, client):
        await _submit(client)
        await _submit(client, email="someone.else@example.com")

        response = await client.get(
            "/api/v1/admin/reports", headers=ADMIN, params={"reporter_email": "SOMEONE.ELSE@example.com"}
        )
        assert response.json()["total"] == 1

        response = await client.get(
            "/api/v1/admin/reports/export",
            headers=ADMIN,
            params={"format": "json", "reporter_email": "jane@example.com"},
        )
        exported = response.json()
        assert len(exported) == 1
        assert exported[0]["reporter"]["email"] == "jane@example.com"

    async def test_download_evidence(self, client):
        files = [("files", ("screenshot.png", b"\x89PNG fake", "image/png"))]
        response = await client.post("/api/v1/reports", data=SUBMISSION_FORM, files=files)
        case_id = response.json()["case_id"]
        report = await client.get(f"/api/v1/admin/reports/{case_id}", headers=ADMIN)
        filename = report.json()["report"]["evidence"][0]["filename"]

        response = await client.get(f"/api/v1/admin/reports/{case_id}/evidence/{filename}", headers=ADMIN)

        assert response.status_code == 200
        assert response.content == b"\x89PNG fake"
        assert response.headers["content-type"] == "image/png"
        assert 'filename="screenshot.png"' in response.headers["content-disposition"]

    async def test_download_unknown_evidence(self, client):
        case_id = await _submit(client)

        response = await client.get(f"/api/v1/admin/reports/{case_id}/evidence/missing.png", headers=ADMIN)

        assert response.status_code == 404

    async def test_dashboard(self, client):
        await _submit(client)
        threat = await _submit(client, incident_types="threats")

        response = await client.get("/api/v1/admin/dashboard", headers=ADMIN)

        assert response.status_code == 200
        body = response.json()
        assert body["statistics"]["total_reports"] == 2
        assert len(body["recent_reports"]) == 2
        assert [r["case_id"] for r in body["priority_cases"]] == [threat]

    async def test_analytics(self, client):
        case_id = await _submit(client)
        await client.put(f"/api/v1/admin/reports/{case_id}/status", headers=ADMIN, json={"status": "resolved"})

        response = await client.get("/api/v1/admin/analytics", headers=ADMIN, params={"period": 7})

        assert response.status_code == 200
        body = response.json()
        assert body["period_days"] == 7
        assert body["by_type"] == {"harassment": 1}
        assert body["resolved_count"] == 1
        assert body["average_response_hours"] is not None
        assert len(body["monthly_trends"]) == 1

    async def test_analytics_period_bounds(self, client):
        response = await client.get("/api/v1/admin/analytics", headers=ADMIN, params={"period": 0})

        assert response.status_code == 422

    async def test_moderator_stats(self, client):
        case_id = await _submit(client)
        await client.put(f"/api/v1/admin/reports/{case_id}/assign", headers=ADMIN, json={"assignee_id": "admin-1"})

        response = await client.get("/api/v1/admin/moderator-stats", headers=ADMIN)

        assert response.status_code == 200
        assert response.json() == {
            "admin_id": "admin-1",
            "assigned_reports": 1,
            "resolved_by_me": 0,
            "pending_assigned": 1,
        }

        response = await client.get("/api/v1/admin/moderator-stats", headers=ADMIN, params={"admin_id": "admin-2"})
        assert response.json()["assigned_reports"] == 0
