"""
OpenAI Responses API client for web-search schedule lookups.

Two ways to get an answer:

1. Synchronous: one POST /responses with a hard timeout.
2. Background: POST /responses with ``background: true`` returns an id right
   away; ResponsePoller then polls GET /responses/{id} until the request
   reaches a terminal state.

The poller is a bounded state machine:

    submitted -> polling -> completed
                         -> failed      (provider failure, or too many
                                         consecutive poll errors)
                         -> cancelled   (cancel event set, e.g. on shutdown)
                         -> timed_out   (attempt budget exhausted)
"""
import asyncio
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from scout_api.core.config import settings
from scout_api.core.exceptions import (
    PollCancelledError,
    PollFailedError,
    PollTimeoutError,
    ProviderError,
)
from scout_api.core.logging import get_logger
from scout_api.services.sync.adapters.base_client import BaseProviderClient

logger = get_logger(__name__)

WEB_SEARCH_TOOL = {"type": "web_search_preview"}

# Response statuses that will never turn into "completed"
FAILED_STATUSES = {"failed", "cancelled", "incomplete", "expired"}


class OpenAIResponsesClient(BaseProviderClient):
    """Thin client over the Responses endpoints we use."""

    provider = "openai"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        api_key = api_key or settings.require_api_key("OPENAI_API_KEY")
        super().__init__(
            base_url=base_url or settings.OPENAI_BASE_URL,
            timeout=timeout or settings.OPENAI_TIMEOUT,
            headers={"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"},
            transport=transport,
        )
        self.model = model or settings.OPENAI_MODEL

    def build_request(self, prompt: str, background: bool = False) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "model": self.model,
            "tools": [WEB_SEARCH_TOOL],
            "input": prompt,
        }
        if background:
            payload["background"] = True
        return payload

    async def create(self, payload: Dict[str, Any], timeout: Optional[float] = None) -> Dict[str, Any]:
        return await self.post_json("/responses", payload, timeout=timeout)

    async def retrieve(self, response_id: str) -> Dict[str, Any]:
        return await self.get_json(f"/responses/{response_id}")

    async def cancel(self, response_id: str) -> Dict[str, Any]:
        return await self.post_json(f"/responses/{response_id}/cancel", {})

    async def complete(self, prompt: str, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Run a web-search prompt synchronously and return the response JSON."""
        return await self.create(self.build_request(prompt), timeout=timeout)

    async def submit_background(self, prompt: str) -> str:
        """Start a background request and return its id."""
        response = await self.create(self.build_request(prompt, background=True))
        response_id = response.get("id")
        if not response_id:
            raise ProviderError(self.provider, "Background request returned no id")
        logger.info(f"Submitted background response {response_id} (status={response.get('status')})")
        return response_id

    async def run_saved_prompt(
        self,
        prompt_id: str,
        message: str,
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Run a prompt stored on the OpenAI side with one user message."""
        payload = {
            "model": self.model,
            "prompt": {"id": prompt_id},
            "input": [{"role": "user", "content": message}],
            "tools": [WEB_SEARCH_TOOL],
        }
        return await self.create(payload, timeout=timeout)


class PollState(str, Enum):
    SUBMITTED = "submitted"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


class ResponsePoller:
    """
    Polls a background response until it finishes or a budget runs out.

    Usage:
        poller = ResponsePoller(client, cancel_event=shutdown_event)
        response = await poller.wait(response_id)
    """

    def __init__(
        self,
        client: OpenAIResponsesClient,
        interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        max_consecutive_failures: Optional[int] = None,
        cancel_event: Optional[asyncio.Event] = None,
    ):
        self.client = client
        self.interval = settings.OPENAI_POLL_INTERVAL if interval is None else interval
        self.max_attempts = max_attempts or settings.OPENAI_POLL_MAX_ATTEMPTS
        self.max_consecutive_failures = max_consecutive_failures or settings.OPENAI_POLL_MAX_FAILURES
        self.cancel_event = cancel_event or asyncio.Event()

        self.state = PollState.SUBMITTED
        self.history: List[PollState] = [PollState.SUBMITTED]
        self.attempts = 0
        self.consecutive_failures = 0

    def _transition(self, state: PollState) -> None:
        logger.debug(f"Poll state {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    async def _sleep(self) -> None:
        """Wait one interval, waking early if cancellation is requested."""
        try:
            await asyncio.wait_for(self.cancel_event.wait(), timeout=self.interval)
        except asyncio.TimeoutError:
            pass

    async def _cancel_remote(self, response_id: str) -> None:
        try:
            await self.client.cancel(response_id)
        except ProviderError as e:
            logger.warning(f"Could not cancel background response {response_id}: {e}")

    async def wait(self, response_id: str) -> Dict[str, Any]:
        """
        Poll until the response completes.

        Returns:
            The completed response JSON

        Raises:
            PollFailedError: Provider reported failure, or polling kept erroring
            PollTimeoutError: max_attempts polls without a terminal status
            PollCancelledError: cancel_event was set
        """
        self._transition(PollState.POLLING)

        while True:
            if self.cancel_event.is_set():
                self._transition(PollState.CANCELLED)
                await self._cancel_remote(response_id)
                raise PollCancelledError(f"Polling of {response_id} cancelled")

            if self.attempts >= self.max_attempts:
                self._transition(PollState.TIMED_OUT)
                raise PollTimeoutError(
                    f"Response {response_id} not finished after {self.attempts} polls"
                )

            self.attempts += 1
            try:
                response = await self.client.retrieve(response_id)
            except ProviderError as e:
                self.consecutive_failures += 1
                logger.warning(
                    f"Poll {self.attempts} for {response_id} failed "
                    f"({self.consecutive_failures}/{self.max_consecutive_failures}): {e}"
                )
                if self.consecutive_failures >= self.max_consecutive_failures:
                    self._transition(PollState.FAILED)
                    raise PollFailedError(
                        f"Polling {response_id} failed {self.consecutive_failures} times in a row"
                    ) from e
                await self._sleep()
                continue

            self.consecutive_failures = 0
            status = response.get("status")
            if status == "completed":
                self._transition(PollState.COMPLETED)
                logger.info(f"Background response {response_id} completed after {self.attempts} polls")
                return response
            if status in FAILED_STATUSES:
                self._transition(PollState.FAILED)
                error = (response.get("error") or {}).get("message") or status
                raise PollFailedError(f"Response {response_id} ended as {status}: {error}")

            await self._sleep()
