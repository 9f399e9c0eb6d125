"""Integration tests for the notification and admin API via TestClient."""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from protean.integrations.fastapi import register_exception_handlers
from safety_notifications.api.routes import admin_router, router
from safety_notifications.categories import NotificationCategory, Severity
from safety_notifications.delivery.endpoint import tokens_for
from safety_notifications.digest.item import DigestType
from safety_notifications.family.family import Family


@pytest.fixture()
def client():
    app = FastAPI()
    app.include_router(router)
    app.include_router(admin_router)
    register_exception_handlers(app)
    return TestClient(app)


class TestGuardianPreferencesAPI:
    def test_defaults_before_anything_is_stored(self, client):
        response = client.get("/notifications/preferences/g-1")

        assert response.status_code == 200
        data = response.json()
        assert data["critical_flags_enabled"] is True
        assert data["medium_flags_mode"] == "digest"
        assert data["low_flags_enabled"] is False
        assert data["sync_threshold_hours"] == 4
        assert data["quiet_hours"]["enabled"] is False

    def test_update_then_read(self, client):
        response = client.put(
            "/notifications/preferences/g-1",
            json={"low_flags_enabled": True, "sync_threshold_hours": 12},
        )
        assert response.status_code == 200
        assert response.json()["id"]

        data = client.get("/notifications/preferences/g-1").json()
        assert data["low_flags_enabled"] is True
        assert data["sync_threshold_hours"] == 12

    def test_child_specific_read_falls_back_to_family_default(self, client):
        client.put("/notifications/preferences/g-1", json={"low_flags_enabled": True})
        client.put("/notifications/preferences/g-1", json={"child_id": "c-1", "medium_flags_mode": "off"})

        for_c1 = client.get("/notifications/preferences/g-1", params={"child_id": "c-1"}).json()
        for_c2 = client.get("/notifications/preferences/g-1", params={"child_id": "c-2"}).json()

        assert for_c1["medium_flags_mode"] == "off"
        assert for_c2["medium_flags_mode"] == "digest"
        assert for_c2["low_flags_enabled"] is True

    def test_invalid_mode_returns_400(self, client):
        response = client.put("/notifications/preferences/g-1", json={"medium_flags_mode": "sometimes"})
        assert response.status_code == 400

    def test_quiet_hours_round_trip(self, client):
        response = client.put(
            "/notifications/preferences/g-1/quiet-hours",
            json={"start": "21:30", "end": "06:45", "timezone": "Europe/London"},
        )
        assert response.status_code == 200

        quiet = client.get("/notifications/preferences/g-1").json()["quiet_hours"]
        assert (quiet["enabled"], quiet["start"], quiet["end"], quiet["timezone"]) == (
            True,
            "21:30",
            "06:45",
            "Europe/London",
        )

        assert client.delete("/notifications/preferences/g-1/quiet-hours").status_code == 200
        assert client.get("/notifications/preferences/g-1").json()["quiet_hours"]["enabled"] is False

    def test_malformed_quiet_hours_returns_422(self, client):
        response = client.put("/notifications/preferences/g-1/quiet-hours", json={"start": "9pm", "end": "07:00"})
        assert response.status_code == 422

    def test_unknown_timezone_returns_400(self, client):
        response = client.put(
            "/notifications/preferences/g-1/quiet-hours",
            json={"start": "22:00", "end": "07:00", "timezone": "Mars/Olympus_Mons"},
        )
        assert response.status_code == 400


class TestChildPreferencesAPI:
    def test_update(self, client):
        response = client.put("/notifications/children/c-1/preferences", json={"weekly_summary_enabled": True})
        assert response.status_code == 200


class TestChannelsAPI:
    def test_defaults(self, client):
        data = client.get("/notifications/channels/g-1/critical_flags").json()
        assert (data["push"], data["email"], data["sms"], data["forced"]) == (True, True, False, False)

    def test_update(self, client):
        client.put("/notifications/channels/g-1/critical_flags", json={"sms": True})

        data = client.get("/notifications/channels/g-1/critical_flags").json()
        assert data["sms"] is True

    def test_security_type_reports_forced_values(self, client):
        client.put("/notifications/channels/g-1/login_alerts", json={"push": False, "email": False, "sms": True})

        data = client.get("/notifications/channels/g-1/login_alerts").json()
        assert (data["push"], data["email"], data["sms"], data["forced"]) == (True, True, False, True)

    def test_unknown_channel_type_returns_422(self, client):
        assert client.get("/notifications/channels/g-1/pigeon").status_code == 422

    def test_contacts(self, client):
        response = client.put(
            "/notifications/channels/g-1/contacts",
            json={"verified_email": "g1@example.com", "verified_phone": "+15550100"},
        )
        assert response.status_code == 200


class TestEndpointsAPI:
    def test_register_and_unregister(self, client, store):
        response = client.post("/notifications/endpoints/g-1", json={"token": "tok-1", "platform": "android"})
        assert response.status_code == 201
        assert [e.token for e in tokens_for(store, "g-1")] == ["tok-1"]

        assert client.delete("/notifications/endpoints/g-1/tok-1").status_code == 200
        assert tokens_for(store, "g-1") == []

    def test_empty_token_returns_422(self, client):
        assert client.post("/notifications/endpoints/g-1", json={"token": ""}).status_code == 422


class TestStealthAdminAPI:
    def test_activate_and_clear(self, client, make_family, store):
        family = make_family()

        response = client.post(
            f"/admin/families/{family.id}/stealth",
            json={"ticket_id": "T-9", "affected_user_ids": ["guardian-1"], "actor": "support@example.com"},
        )
        assert response.status_code == 200
        assert response.json()["window_end"]
        assert store.get(Family, family.id).stealth_active is True

        response = client.request(
            "DELETE", f"/admin/families/{family.id}/stealth", json={"actor": "support@example.com"}
        )
        assert response.status_code == 200
        assert store.get(Family, family.id).stealth_active is False

    def test_requires_affected_users(self, client, make_family):
        family = make_family()

        response = client.post(
            f"/admin/families/{family.id}/stealth",
            json={"ticket_id": "T-9", "affected_user_ids": [], "actor": "support@example.com"},
        )
        assert response.status_code == 422

    def test_duration_out_of_bounds_returns_400(self, client, make_family):
        family = make_family()

        response = client.post(
            f"/admin/families/{family.id}/stealth",
            json={
                "ticket_id": "T-9",
                "affected_user_ids": ["guardian-1"],
                "actor": "support@example.com",
                "duration_hours": 2,
            },
        )
        assert response.status_code == 400


class TestMaintenanceAPI:
    def test_hourly_digest(self, client, pipeline, add_endpoint, now):
        add_endpoint("g-1")
        pipeline.digest.enqueue("g-1", DigestType.HOURLY, Severity.MEDIUM, NotificationCategory.CONTENT_FLAG, now)

        response = client.post("/admin/maintenance/hourly-digest", json={"as_of": now.isoformat()})

        assert response.status_code == 200
        assert response.json()["summary"]["sent"] == 1

    def test_without_body(self, client):
        response = client.post("/admin/maintenance/expire-stealth")

        assert response.status_code == 200
        assert response.json()["summary"] == {"cleared": 0, "purged": 0}

    def test_unknown_job_returns_404(self, client):
        assert client.post("/admin/maintenance/reindex").status_code == 404
