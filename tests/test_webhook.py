"""Tests for docs_updater.github.webhook_handler: PR webhooks and HTTP server."""

import hashlib
import hmac
import json
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import urlencode

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from docs_updater.config import create_full_config
from docs_updater.engine.errors import PipelineError
from docs_updater.engine.state import create_initial_state
from docs_updater.github.webhook_handler import (
    WebhookConfigError,
    WebhookHandler,
    WebhookParseError,
    WebhookValidationError,
    create_webhook_handler,
    create_webhook_server,
)


def pr_payload(action="opened", title="Add login flow", labels=(), user_type="User", **extra):
    payload = {
        "action": action,
        "pull_request": {
            "number": 42,
            "title": title,
            "labels": [{"name": name} for name in labels],
            "user": {"login": "octocat", "type": user_type},
        },
        "repository": {"name": "api", "owner": {"login": "acme"}},
    }
    payload.update(extra)
    return payload


def json_request(payload, event="pull_request"):
    headers = {"X-GitHub-Event": event, "Content-Type": "application/json"}
    return headers, json.dumps(payload).encode("utf-8")


@pytest.fixture
def pipeline():
    """Pipeline double whose create_state behaves like the real one."""
    fake = MagicMock()
    fake.config = create_full_config()
    fake.create_state.side_effect = lambda owner, repo, number, overrides=None: (
        create_initial_state(owner, repo, number, create_full_config(overrides))
    )
    fake.run = AsyncMock(side_effect=lambda state: state)
    return fake


@pytest.fixture
def handler(pipeline, metrics):
    return WebhookHandler(pipeline=pipeline, metrics=metrics)


# ── accepted events ──────────────────────────────────────────────────────────


class TestPullRequestEvents:
    @pytest.mark.asyncio
    async def test_opened_runs_pipeline_once(self, handler, pipeline):
        result = await handler.handle_webhook(*json_request(pr_payload("opened")))

        assert result["status"] == "processed"
        assert result["message"] == "Documentation update completed"
        assert result["response"]["pull_number"] == 42
        pipeline.create_state.assert_called_once_with("acme", "api", 42, None)
        pipeline.run.assert_awaited_once()
        state = pipeline.run.await_args.args[0]
        assert (state["owner"], state["repo"], state["pull_number"]) == ("acme", "api", 42)

    @pytest.mark.asyncio
    async def test_synchronize_runs_pipeline(self, handler, pipeline):
        await handler.handle_webhook(*json_request(pr_payload("synchronize")))
        pipeline.run.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_payload_config_is_passed_through(self, handler, pipeline):
        payload = pr_payload(config={"docsPath": "documentation"})

        await handler.handle_webhook(*json_request(payload))

        state = pipeline.run.await_args.args[0]
        assert state["config"].docs_path == "documentation"

    @pytest.mark.asyncio
    async def test_form_encoded_payload(self, handler, pipeline):
        body = urlencode({"payload": json.dumps(pr_payload())}).encode("utf-8")
        headers = {
            "X-GitHub-Event": "pull_request",
            "Content-Type": "application/x-www-form-urlencoded",
        }

        result = await handler.handle_webhook(headers, body)

        assert result["status"] == "processed"
        pipeline.run.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_pipeline_error_is_reported(self, handler, pipeline, metrics):
        pipeline.run.side_effect = PipelineError("Pipeline failed: boom")

        result = await handler.handle_webhook(*json_request(pr_payload()))

        assert result["status"] == "error"
        assert "boom" in result["details"]
        assert handler.get_stats()["total_errors"] == 1
        assert metrics.get_value(
            "docs_updater_webhook_events_total",
            {"event": "pull_request", "action": "opened", "outcome": "error"},
        ) == 1


# ── ignored events ───────────────────────────────────────────────────────────


class TestIgnoredEvents:
    @pytest.mark.asyncio
    async def test_closed_is_ignored(self, handler, pipeline):
        result = await handler.handle_webhook(*json_request(pr_payload("closed")))

        assert result["status"] == "ignored"
        pipeline.create_state.assert_not_called()
        pipeline.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_other_event_type_is_ignored(self, handler, pipeline):
        result = await handler.handle_webhook(*json_request(pr_payload(), event="issues"))

        assert result["status"] == "ignored"
        pipeline.run.assert_not_called()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        pr_payload(title="📚 Update documentation for PR #41"),
        pr_payload(labels=["documentation"]),
        pr_payload(user_type="Bot"),
    ])
    async def test_bot_prs_are_skipped(self, handler, pipeline, payload):
        result = await handler.handle_webhook(*json_request(payload))

        assert result == {"status": "ignored", "reason": "Skipping bot PR"}
        pipeline.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_custom_title_prefix_is_skipped(self, pipeline):
        pipeline.config = create_full_config({"prConfig": {"titleTemplate": "[docs] PR {{PR_NUMBER}}"}})
        handler = create_webhook_handler(pipeline)

        result = await handler.handle_webhook(*json_request(pr_payload(title="[docs] PR 41")))

        assert result["reason"] == "Skipping bot PR"

    @pytest.mark.asyncio
    async def test_ping(self, handler, pipeline):
        result = await handler.handle_webhook(
            *json_request({"zen": "Keep it simple.", "hook_id": 1}, event="ping")
        )

        assert result["status"] == "pong"
        pipeline.run.assert_not_called()


# ── rejected requests ────────────────────────────────────────────────────────


class TestRejectedRequests:
    @pytest.mark.asyncio
    async def test_missing_event_header(self, handler):
        with pytest.raises(WebhookParseError):
            await handler.handle_webhook({"Content-Type": "application/json"}, b"{}")

    @pytest.mark.asyncio
    async def test_unsupported_content_type(self, handler):
        headers = {"X-GitHub-Event": "pull_request", "Content-Type": "text/plain"}
        with pytest.raises(WebhookParseError):
            await handler.handle_webhook(headers, b"{}")

    @pytest.mark.asyncio
    async def test_invalid_json(self, handler):
        headers = {"X-GitHub-Event": "pull_request", "Content-Type": "application/json"}
        with pytest.raises(WebhookParseError):
            await handler.handle_webhook(headers, b"{not json")

    @pytest.mark.asyncio
    async def test_missing_required_fields(self, handler, pipeline):
        payload = pr_payload()
        del payload["repository"]["owner"]

        with pytest.raises(WebhookParseError):
            await handler.handle_webhook(*json_request(payload))
        pipeline.run.assert_not_called()


class TestSignature:
    @pytest.mark.asyncio
    async def test_valid_signature(self, pipeline):
        handler = WebhookHandler(pipeline=pipeline, secret="s3cret")
        headers, body = json_request(pr_payload())
        digest = hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()
        headers["X-Hub-Signature-256"] = f"sha256={digest}"

        result = await handler.handle_webhook(headers, body)

        assert result["status"] == "processed"

    @pytest.mark.asyncio
    async def test_bad_signature(self, pipeline):
        handler = WebhookHandler(pipeline=pipeline, secret="s3cret")
        headers, body = json_request(pr_payload())
        headers["X-Hub-Signature-256"] = "sha256=" + "0" * 64

        with pytest.raises(WebhookValidationError):
            await handler.handle_webhook(headers, body)
        pipeline.run.assert_not_called()

    @pytest.mark.asyncio
    async def test_numeric_secret_from_yaml(self, pipeline):
        handler = WebhookHandler(pipeline=pipeline, secret=20240501)
        headers, body = json_request(pr_payload())
        digest = hmac.new(b"20240501", body, hashlib.sha256).hexdigest()
        headers["X-Hub-Signature-256"] = f"sha256={digest}"

        result = await handler.handle_webhook(headers, body)

        assert result["status"] == "processed"

    @pytest.mark.asyncio
    async def test_missing_signature(self, pipeline):
        handler = WebhookHandler(pipeline=pipeline, secret="s3cret")
        with pytest.raises(WebhookValidationError):
            await handler.handle_webhook(*json_request(pr_payload()))


# ── HTTP server ──────────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def http(handler):
    server = create_webhook_server(handler)
    client = TestClient(TestServer(server.build_app()))
    await client.start_server()
    yield client
    await client.close()


class TestWebhookServer:
    @pytest.mark.asyncio
    async def test_post_webhook(self, http, pipeline):
        headers, body = json_request(pr_payload())
        resp = await http.post("/webhooks/github", data=body, headers=headers)

        assert resp.status == 200
        data = await resp.json()
        assert data["status"] == "processed"
        pipeline.run.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_header_is_400(self, http):
        resp = await http.post(
            "/webhooks/github", data=b"{}", headers={"Content-Type": "application/json"}
        )
        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_invalid_payload_is_400(self, http):
        headers, body = json_request({"action": "opened"})
        resp = await http.post("/webhooks/github", data=body, headers=headers)
        assert resp.status == 400

    @pytest.mark.asyncio
    async def test_pipeline_failure_is_500(self, http, pipeline):
        pipeline.run.side_effect = PipelineError("boom")
        headers, body = json_request(pr_payload())

        resp = await http.post("/webhooks/github", data=body, headers=headers)

        assert resp.status == 500
        assert (await resp.json())["details"] == "boom"

    @pytest.mark.asyncio
    async def test_bad_signature_is_401(self, pipeline):
        server = create_webhook_server(WebhookHandler(pipeline=pipeline, secret="x"))
        async with TestClient(TestServer(server.build_app())) as client:
            headers, body = json_request(pr_payload())
            resp = await client.post("/webhooks/github", data=body, headers=headers)
            assert resp.status == 401

    @pytest.mark.asyncio
    async def test_health(self, http):
        resp = await http.get("/health")
        assert resp.status == 200
        assert (await resp.json())["status"] == "healthy"

    @pytest.mark.asyncio
    async def test_stats(self, http):
        headers, body = json_request(pr_payload("closed"))
        await http.post("/webhooks/github", data=body, headers=headers)

        data = await (await http.get("/stats")).json()

        assert data["stats"]["total_received"] == 1
        assert data["stats"]["total_ignored"] == 1
        assert data["stats"]["by_event"] == {"pull_request.closed": 1}

    @pytest.mark.asyncio
    async def test_metrics(self, http):
        headers, body = json_request(pr_payload("closed"))
        await http.post("/webhooks/github", data=body, headers=headers)

        resp = await http.get("/metrics")

        assert resp.status == 200
        text = await resp.text()
        assert "docs_updater_webhook_events_total{" in text
        assert 'outcome="ignored"' in text


class TestServerConfig:
    def test_invalid_port(self, handler):
        with pytest.raises(WebhookConfigError):
            create_webhook_server(handler, {"port": "eighty"})

    def test_invalid_path(self, handler):
        with pytest.raises(WebhookConfigError):
            create_webhook_server(handler, {"path": "webhooks"})
