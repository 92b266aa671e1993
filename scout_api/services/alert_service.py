"""
Slack alert service for critical sync failures.

Alerts go to ``chat.postMessage`` with Block Kit blocks: the message as a
Markdown section, up to ten "*Key:* value" context fields, and a footer.
Delivery is best effort; a failed alert is logged and counted but never
raised, so it cannot mask the job error it reports.
"""
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import httpx

from scout_api.core.config import settings
from scout_api.core.logging import get_logger
from scout_api.core.metrics import alerts_sent_total

logger = get_logger(__name__)

SLACK_POST_MESSAGE_URL = "https://slack.com/api/chat.postMessage"

# Slack rejects section blocks with more than ten fields
MAX_FIELDS = 10


def build_alert_blocks(message: str, context: Dict[str, Any]) -> List[Dict[str, Any]]:
    blocks: List[Dict[str, Any]] = [
        {"type": "section", "text": {"type": "mrkdwn", "text": message}},
    ]

    if context:
        fields = []
        for key, value in context.items():
            if isinstance(value, (dict, list)):
                value = json.dumps(value)
            fields.append({"type": "mrkdwn", "text": f"*{key}:*\n{value}"})
        blocks.append({"type": "section", "fields": fields[:MAX_FIELDS]})

    blocks.append({
        "type": "context",
        "elements": [{"type": "mrkdwn", "text": ":basketball: Basketball Spy Alert"}],
    })
    return blocks


class SlackAlertService:
    """
    Sends alerts to a Slack channel through a bot token.

    Usage:
        await SlackAlertService().sync_failure("llm_schedule", str(error), {"Date": "2025-12-25"})
    """

    def __init__(
        self,
        token: Optional[str] = None,
        channel: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = settings.SLACK_BOT_TOKEN if token is None else token
        self.channel = settings.SLACK_CHANNEL if channel is None else channel
        self._transport = transport

    async def alert(self, message: str, context: Optional[Dict[str, Any]] = None) -> bool:
        """
        Post a message with optional context fields.

        Returns:
            True if Slack accepted the message, False otherwise
        """
        if not self.token or not self.channel:
            logger.warning(
                "Slack not configured, alert not sent",
                extra={"has_token": bool(self.token), "has_channel": bool(self.channel)},
            )
            alerts_sent_total.labels(status="skipped").inc()
            return False

        payload = {
            "channel": self.channel,
            "text": message,
            "blocks": build_alert_blocks(message, context or {}),
        }

        try:
            async with httpx.AsyncClient(timeout=10.0, transport=self._transport) as client:
                response = await client.post(
                    SLACK_POST_MESSAGE_URL,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.token}"},
                )
            body = response.json() if response.content else {}
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Exception sending Slack alert: {e}")
            alerts_sent_total.labels(status="failed").inc()
            return False

        if response.status_code >= 400 or not body.get("ok"):
            logger.error(
                "Failed to send Slack alert",
                extra={"status": response.status_code, "error": body.get("error") or response.text[:200]},
            )
            alerts_sent_total.labels(status="failed").inc()
            return False

        logger.info("✅ Slack alert sent")
        alerts_sent_total.labels(status="sent").inc()
        return True

    async def sync_failure(
        self,
        job_name: str,
        error: Optional[str],
        context: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Critical alert for a job that exhausted its retries."""
        message = f":rotating_light: *{job_name} Failed*"
        fields = {
            "Error": error or "Unknown error",
            "Environment": settings.ENVIRONMENT,
            "Time": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC"),
        }
        fields.update(context or {})
        return await self.alert(message, fields)
