"""Tests for the HTTP surface (webhook + maintenance endpoints)."""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from relaybot.communication import messages as msgs
from relaybot.server import SECRET_HEADER, build_directory, create_app
from relaybot.directory import MemoryDirectory, PostgresDirectory

from conftest import ADMIN_ID, make_settings, make_update, sent_texts


def _client(transport, directory=None, **overrides) -> TestClient:
    app = create_app(make_settings(**overrides), transport=transport, directory=directory)
    return TestClient(app)


class TestHealthAndRouting:

    def test_health(self, transport):
        response = _client(transport).get("/")
        assert response.status_code == 200
        assert response.text == "Telegram Bot is running!"

    def test_unknown_path(self, transport):
        response = _client(transport).get("/nope")
        assert response.status_code == 404
        assert response.text == "Not Found"

    def test_wrong_method(self, transport):
        response = _client(transport).get("/webhook")
        assert response.status_code == 404
        assert response.text == "Not Found"

    @pytest.mark.parametrize("field, name", [("bot_token", "BOT_TOKEN"), ("admin_chat_id", "ADMIN_CHAT_ID")])
    def test_missing_required_config(self, transport, field, name):
        client = _client(transport, **{field: None})
        for response in (client.get("/"), client.post("/webhook", json=make_update(chat_id=1, text="hi"))):
            assert response.status_code == 500
            assert response.text == f"Missing {name} environment variable"
        transport.send_text.assert_not_awaited()

    def test_bot_token_reported_first(self, transport):
        response = _client(transport, bot_token="", admin_chat_id="").get("/")
        assert response.text == "Missing BOT_TOKEN environment variable"


class TestWebhook:

    def test_forward_end_to_end(self, transport, directory):
        client = _client(transport, directory)
        response = client.post("/webhook", json=make_update(chat_id=555, text="hello", username="alice"))

        assert response.status_code == 200
        assert response.text == "OK"
        forwarded = sent_texts(transport, ADMIN_ID)
        assert len(forwarded) == 1
        assert "hello" in forwarded[0]
        assert sent_texts(transport, 555) == [msgs.USER_DELIVERED]

    def test_update_without_message(self, transport):
        response = _client(transport).post("/webhook", json={"update_id": 1, "edited_message": {}})
        assert response.status_code == 200
        assert response.text == "OK"
        transport.send_text.assert_not_awaited()
        transport.copy_message.assert_not_awaited()

    def test_secret_mismatch_rejected(self, transport):
        client = _client(transport, webhook_secret="s3cret")
        update = make_update(chat_id=555, text="hello")

        missing = client.post("/webhook", json=update)
        wrong = client.post("/webhook", json=update, headers={SECRET_HEADER: "guess"})

        assert missing.status_code == 401
        assert wrong.status_code == 401
        assert wrong.text == "Unauthorized"
        transport.send_text.assert_not_awaited()

    def test_secret_match_accepted(self, transport):
        client = _client(transport, webhook_secret="s3cret")
        response = client.post(
            "/webhook", json=make_update(chat_id=555, text="hello"), headers={SECRET_HEADER: "s3cret"},
        )
        assert response.status_code == 200
        assert len(sent_texts(transport, ADMIN_ID)) == 1

    def test_no_secret_configured_skips_check(self, transport):
        response = _client(transport).post(
            "/webhook", json=make_update(chat_id=555, text="hello"), headers={SECRET_HEADER: "anything"},
        )
        assert response.status_code == 200

    def test_invalid_json_reports_bot_error(self, transport):
        response = _client(transport).post(
            "/webhook", content=b"{not json", headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 500
        notices = sent_texts(transport, ADMIN_ID)
        assert len(notices) == 1
        assert notices[0].startswith("🚨 Bot error:")

    def test_non_object_payload_reports_bot_error(self, transport):
        response = _client(transport).post("/webhook", json=[1, 2, 3])
        assert response.status_code == 500
        assert sent_texts(transport, ADMIN_ID)[0].startswith("🚨 Bot error:")

    def test_processing_failure_still_acknowledged(self, transport):
        app = create_app(make_settings(), transport=transport, directory=MemoryDirectory())
        app.state.dispatcher.handle_update = AsyncMock(side_effect=RuntimeError("boom"))

        response = TestClient(app).post("/webhook", json=make_update(chat_id=555, text="hello"))

        assert response.status_code == 200
        assert response.text == "OK"
        transport.send_text.assert_awaited_once_with(str(ADMIN_ID), msgs.bot_error("boom"), parse_mode=None)


class TestMaintenanceEndpoints:

    def test_set_webhook_uses_request_origin(self, transport):
        transport.register_webhook = AsyncMock(
            return_value={"ok": True, "result": True, "url": "http://testserver/webhook"},
        )
        response = _client(transport, webhook_secret="s3cret").get("/setWebhook")

        assert response.status_code == 200
        assert response.json()["ok"] is True
        transport.register_webhook.assert_awaited_once_with("http://testserver/webhook", "s3cret")

    def test_set_webhook_without_secret(self, transport):
        _client(transport).get("/setWebhook")
        transport.register_webhook.assert_awaited_once_with("http://testserver/webhook", "")

    def test_me(self, transport):
        response = _client(transport).get("/me")
        assert response.status_code == 200
        assert response.json() == {"ok": True, "result": {"id": 1, "username": "relay_bot"}}

    def test_me_failure_reports_system_error(self, transport):
        transport.get_self_info = AsyncMock(side_effect=RuntimeError("unreachable"))
        response = _client(transport).get("/me")

        assert response.status_code == 500
        transport.send_text.assert_awaited_once_with(
            str(ADMIN_ID), msgs.system_error("unreachable"), parse_mode=None,
        )


class TestBuildDirectory:

    def test_tracking_disabled(self):
        assert build_directory(make_settings(enable_user_tracking="false")) is None

    def test_in_memory_without_database(self):
        assert isinstance(build_directory(make_settings()), MemoryDirectory)

    def test_postgres_with_database(self):
        settings = make_settings(database_url="postgresql://localhost/relay")
        assert isinstance(build_directory(settings), PostgresDirectory)
