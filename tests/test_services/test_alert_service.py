"""Tests for Slack alert delivery."""
import json

import httpx
import pytest

from scout_api.services.alert_service import MAX_FIELDS, SlackAlertService, build_alert_blocks


def slack(handler):
    return httpx.MockTransport(handler)


class TestBuildAlertBlocks:

    def test_message_fields_and_footer(self):
        blocks = build_alert_blocks("*Job Failed*", {"Error": "boom", "Stats": {"created": 1}})

        assert blocks[0]["text"]["text"] == "*Job Failed*"
        fields = [f["text"] for f in blocks[1]["fields"]]
        assert fields == ["*Error:*\nboom", '*Stats:*\n{"created": 1}']
        assert blocks[-1]["type"] == "context"

    def test_fields_are_capped(self):
        context = {f"Key{i}": i for i in range(15)}
        assert len(build_alert_blocks("m", context)[1]["fields"]) == MAX_FIELDS

    def test_no_context(self):
        assert [b["type"] for b in build_alert_blocks("m", {})] == ["section", "context"]


class TestSlackAlertService:

    async def test_sync_failure_posts_message(self):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"ok": True})

        service = SlackAlertService(token="xoxb-1", channel="#alerts", transport=slack(handler))
        sent = await service.sync_failure("llm_schedule", "HTTP 503", {"Date": "2025-12-25"})

        assert sent is True
        body = json.loads(requests[0].content)
        assert requests[0].headers["Authorization"] == "Bearer xoxb-1"
        assert body["channel"] == "#alerts"
        assert "llm_schedule" in body["text"]
        fields = [f["text"] for f in body["blocks"][1]["fields"]]
        assert "*Error:*\nHTTP 503" in fields
        assert "*Date:*\n2025-12-25" in fields
        assert any(f.startswith("*Environment:*") for f in fields)

    async def test_not_configured(self):
        def handler(request):
            raise AssertionError("Slack should not be called")

        service = SlackAlertService(token="", channel="#alerts", transport=slack(handler))
        assert await service.alert("hello") is False

    async def test_slack_error_is_not_raised(self):
        service = SlackAlertService(
            token="xoxb-1", channel="#alerts",
            transport=slack(lambda request: httpx.Response(200, json={"ok": False, "error": "channel_not_found"})),
        )
        assert await service.alert("hello") is False

    async def test_network_error_is_not_raised(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        service = SlackAlertService(token="xoxb-1", channel="#alerts", transport=slack(handler))
        assert await service.alert("hello") is False
