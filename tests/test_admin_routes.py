import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from conftest import make_authorized, make_instance

from verlic.config import settings
from verlic.models import AuthorizedNumber, Message, SystemMetric, WebhookLog, WhatsAppInstance
from verlic.services.message_service import save_message
from verlic.services.metrics_service import record_error


class TestAdminToken:
    def test_missing_configuration_is_500(self, api_client, monkeypatch):
        monkeypatch.setattr(settings, "admin_token", None)
        response = api_client.get("/api/instances", headers={"X-Admin-Token": "anything"})
        assert response.status_code == 500

    def test_wrong_token_is_401(self, api_client, admin_headers):
        assert api_client.get("/api/instances", headers={"X-Admin-Token": "nope"}).status_code == 401

    def test_missing_header_is_401(self, api_client, admin_headers):
        assert api_client.get("/api/metrics").status_code == 401


class TestInstances:
    def test_create_with_gateway(self, api_client, admin_headers, db_session, fake_gateway, monkeypatch):
        monkeypatch.setattr(settings, "public_base_url", "https://console.example/")

        response = api_client.post("/api/instances", json={"instance_name": "loja-centro"}, headers=admin_headers)

        assert response.status_code == 200
        body = response.json()
        assert body["instance_name"] == "loja-centro"
        assert body["status"] == "disconnected"
        assert body["qr_code"] == "data:image/png;base64,QR"
        assert fake_gateway.created == ["loja-centro"]
        assert fake_gateway.webhooks == [("loja-centro", "https://console.example/api/webhook/evolution")]
        assert db_session.query(SystemMetric).filter(SystemMetric.metric_type == "api_request").count() == 1

    def test_create_generates_name(self, api_client, admin_headers):
        response = api_client.post("/api/instances", json={}, headers=admin_headers)
        assert response.json()["instance_name"].startswith("verlic-")

    def test_create_duplicate_is_400(self, api_client, admin_headers, instance):
        response = api_client.post("/api/instances", json={"instance_name": "verlic-test"}, headers=admin_headers)
        assert response.status_code == 400

    def test_create_without_gateway(self, api_client, admin_headers, fake_gateway):
        fake_gateway.is_configured = False
        response = api_client.post("/api/instances", json={"instance_name": "offline"}, headers=admin_headers)
        assert response.json()["qr_code"] is None
        assert fake_gateway.created == []

    def test_list_syncs_known_instances(self, api_client, admin_headers, db_session, fake_gateway):
        instance = make_instance(db_session, qr_code="data:image/png;base64,OLD")
        make_instance(db_session, name="not-on-gateway")
        fake_gateway.remote_instances = [{"name": "verlic-test"}]
        save_message(db_session, instance.id, "5511999998888", "inbound", "oi")

        response = api_client.get("/api/instances", headers=admin_headers)

        body = response.json()
        by_name = {item["instance_name"]: item for item in body["instances"]}
        assert body["evolution_configured"] is True
        assert by_name["verlic-test"]["status"] == "connected"
        assert by_name["verlic-test"]["phone_number"] == "5511988887777"
        assert by_name["verlic-test"]["qr_code"] is None
        assert by_name["verlic-test"]["message_count"] == 1
        assert by_name["not-on-gateway"]["status"] == "disconnected"

    def test_detail_refreshes_qr_when_not_connected(self, api_client, admin_headers, instance, fake_gateway):
        fake_gateway.state = "close"

        response = api_client.get(f"/api/instances/{instance.id}", headers=admin_headers)

        body = response.json()
        assert body["status"] == "disconnected"
        assert body["qr_code"] == "data:image/png;base64,QR"
        assert body["qr_code_raw"] == "2@raw"
        assert body["pairing_code"] == "ABCD1234"

    def test_detail_lists_authorized_numbers(self, api_client, admin_headers, db_session, instance, fake_gateway):
        make_authorized(db_session, instance, "5511999998888", name="Ana")

        body = api_client.get(f"/api/instances/{instance.id}", headers=admin_headers).json()

        assert body["status"] == "connected"
        assert [n["phone_number"] for n in body["authorized_numbers"]] == ["5511999998888"]

    def test_detail_unknown_is_404(self, api_client, admin_headers):
        assert api_client.get(f"/api/instances/{uuid4()}", headers=admin_headers).status_code == 404

    def test_status(self, api_client, admin_headers, instance):
        body = api_client.get(f"/api/instances/{instance.id}/status", headers=admin_headers).json()
        assert body["status"] == "connected"
        assert body["state"] == "open"
        assert body["profile_name"] == "Verlic Bot"
        assert body["phone_number"] == "5511988887777"

    def test_disconnect_action(self, api_client, admin_headers, db_session, fake_gateway):
        instance = make_instance(db_session, status="connected")

        response = api_client.post(
            f"/api/instances/{instance.id}/actions", json={"action": "disconnect"}, headers=admin_headers
        )

        assert response.json() == {
            "success": True,
            "status": "disconnected",
            "qr_code": None,
            "qr_code_raw": None,
            "pairing_code": None,
        }
        assert fake_gateway.logged_out == ["verlic-test"]
        stopped = db_session.query(SystemMetric).filter(SystemMetric.metric_type == "bot_stopped").count()
        assert stopped == 1

    def test_restart_action(self, api_client, admin_headers, db_session, instance, fake_gateway):
        response = api_client.post(
            f"/api/instances/{instance.id}/actions", json={"action": "restart"}, headers=admin_headers
        )
        assert response.json()["success"] is True
        assert fake_gateway.restarted == ["verlic-test"]
        assert db_session.query(SystemMetric).filter(SystemMetric.metric_type == "bot_started").count() == 1

    def test_connect_action_returns_qr(self, api_client, admin_headers, instance):
        body = api_client.post(
            f"/api/instances/{instance.id}/actions", json={"action": "connect"}, headers=admin_headers
        ).json()
        assert body["qr_code"] == "data:image/png;base64,QR"
        assert body["status"] == "connecting"

    @pytest.mark.parametrize("action", ["explode", ""])
    def test_invalid_action(self, api_client, admin_headers, instance, action):
        response = api_client.post(
            f"/api/instances/{instance.id}/actions", json={"action": action}, headers=admin_headers
        )
        assert response.status_code == 400

    def test_action_without_gateway(self, api_client, admin_headers, instance, fake_gateway):
        fake_gateway.is_configured = False
        response = api_client.post(
            f"/api/instances/{instance.id}/actions", json={"action": "restart"}, headers=admin_headers
        )
        assert response.status_code == 400

    def test_delete_cascades(self, api_client, admin_headers, db_session, instance, fake_gateway):
        make_authorized(db_session, instance, "5511999998888")
        save_message(db_session, instance.id, "5511999998888", "inbound", "oi")

        response = api_client.delete(f"/api/instances/{instance.id}", headers=admin_headers)

        assert response.json() == {"success": True}
        assert fake_gateway.deleted == ["verlic-test"]
        assert db_session.query(WhatsAppInstance).count() == 0
        assert db_session.query(AuthorizedNumber).count() == 0
        assert db_session.query(Message).count() == 0


class TestAuthorizedNumbers:
    def test_add_normalizes_digits(self, api_client, admin_headers, instance):
        response = api_client.post(
            "/api/authorized",
            json={"phone_number": "+55 (11) 99999-8888", "name": "Ana", "instance_id": str(instance.id)},
            headers=admin_headers,
        )

        body = response.json()
        assert response.status_code == 200
        assert body["phone_number"] == "5511999998888"
        assert body["instance_name"] == "verlic-test"
        assert body["is_active"] is True

    def test_add_duplicate_is_400(self, api_client, admin_headers, db_session, instance):
        make_authorized(db_session, instance, "5511999998888")
        response = api_client.post(
            "/api/authorized",
            json={"phone_number": "5511999998888", "instance_id": str(instance.id)},
            headers=admin_headers,
        )
        assert response.status_code == 400

    def test_add_unknown_instance_is_404(self, api_client, admin_headers):
        response = api_client.post(
            "/api/authorized",
            json={"phone_number": "5511999998888", "instance_id": str(uuid4())},
            headers=admin_headers,
        )
        assert response.status_code == 404

    def test_list_filters_by_instance(self, api_client, admin_headers, db_session, instance):
        other = make_instance(db_session, name="verlic-other")
        make_authorized(db_session, instance, "5511999998888")
        make_authorized(db_session, other, "5511977776666")

        body = api_client.get(f"/api/authorized?instance_id={instance.id}", headers=admin_headers).json()

        assert [n["phone_number"] for n in body["authorized_numbers"]] == ["5511999998888"]

    def test_update_and_delete(self, api_client, admin_headers, db_session, instance):
        number = make_authorized(db_session, instance, "5511999998888")

        updated = api_client.put(
            f"/api/authorized/{number.id}", json={"is_active": False, "name": "Ana"}, headers=admin_headers
        ).json()
        assert updated["is_active"] is False
        assert updated["name"] == "Ana"

        assert api_client.delete(f"/api/authorized/{number.id}", headers=admin_headers).json() == {"success": True}
        assert db_session.query(AuthorizedNumber).count() == 0

    def test_update_unknown_is_404(self, api_client, admin_headers):
        response = api_client.put(f"/api/authorized/{uuid4()}", json={"name": "x"}, headers=admin_headers)
        assert response.status_code == 404


class TestMessages:
    def test_list_and_conversation(self, api_client, admin_headers, db_session, instance):
        save_message(db_session, instance.id, "5511999998888", "inbound", "pergunta")
        save_message(db_session, instance.id, "5511999998888", "outbound", "resposta", ai_generated=True)

        listing = api_client.get(f"/api/messages?instance_id={instance.id}&limit=1", headers=admin_headers).json()
        conversation = api_client.get(
            f"/api/messages/conversation?instance_id={instance.id}&phone_number=5511999998888",
            headers=admin_headers,
        ).json()

        assert listing["total"] == 2
        assert listing["total_pages"] == 2
        assert listing["messages"][0]["content"] == "resposta"
        assert [m["content"] for m in conversation["messages"]] == ["pergunta", "resposta"]

    def test_ranking(self, api_client, admin_headers, db_session, instance):
        make_authorized(db_session, instance, "5511999998888", name="Ana")
        save_message(db_session, instance.id, "5511999998888", "inbound", "oi")

        body = api_client.get("/api/messages/ranking", headers=admin_headers).json()

        assert body["ranking"] == [{"phone_number": "5511999998888", "name": "Ana", "message_count": 1}]

    def test_clear_context(self, api_client, admin_headers, instance, context_store, fake_redis):
        asyncio.run(context_store.save(instance.id, "5511999998888", [{"role": "user", "content": "oi"}]))

        response = api_client.delete(
            f"/api/messages/context?instance_id={instance.id}&phone_number=5511999998888", headers=admin_headers
        )

        assert response.json() == {"success": True, "cleared": True}
        assert fake_redis.data == {}


class TestMetricsAndDashboard:
    def test_metrics(self, api_client, admin_headers, db_session, instance):
        save_message(db_session, instance.id, "5511999998888", "inbound", "oi")
        record_error(db_session, "gateway", "refused")

        body = api_client.get("/api/metrics", headers=admin_headers).json()

        assert body["message_stats"]["inbound_messages"] == 1
        assert body["summary"]["error"]["count"] == 1
        assert body["recent_errors"][0]["metadata"]["source"] == "gateway"

    def test_dashboard_stats(self, api_client, admin_headers, instance):
        body = api_client.get("/api/dashboard/stats", headers=admin_headers).json()
        assert body["instance_count"] == 1
        assert "deepseek" in body["env_status"]


class TestSettings:
    def test_upsert_and_read(self, api_client, admin_headers):
        api_client.post("/api/settings", json={"key": "system_prompt", "value": "Seja breve."}, headers=admin_headers)
        api_client.post("/api/settings", json={"key": "system_prompt", "value": "Seja gentil."}, headers=admin_headers)

        body = api_client.get("/api/settings", headers=admin_headers).json()

        assert body == {"configs": {"system_prompt": "Seja gentil."}}

    def test_blank_key_is_400(self, api_client, admin_headers):
        response = api_client.post("/api/settings", json={"key": "  ", "value": "x"}, headers=admin_headers)
        assert response.status_code == 400


class TestWebhookLogs:
    def test_list_filters_and_cleanup(self, api_client, admin_headers, db_session):
        now = datetime.now(timezone.utc)
        db_session.add_all(
            [
                WebhookLog(event="messages.upsert", instance_name="a", payload={"n": 1}, created_at=now),
                WebhookLog(event="connection.update", instance_name="a", payload={"n": 2}, created_at=now),
                WebhookLog(
                    event="messages.upsert", instance_name="b", payload={"n": 3}, created_at=now - timedelta(days=10)
                ),
            ]
        )
        db_session.commit()

        filtered = api_client.get("/api/webhooks/logs?event=messages.upsert", headers=admin_headers).json()
        assert [log["payload"]["n"] for log in filtered["logs"]] == [1, 3]

        cleanup = api_client.delete("/api/webhooks/logs?days=7", headers=admin_headers).json()
        assert cleanup == {"success": True, "deleted": 1}
        assert db_session.query(WebhookLog).count() == 2
