"""
LLM web-search schedule sync.

Two runs share the same parse-resolve-upsert path:

LlmScheduleSync (one date)
    Builds a prompt listing our team abbreviations, asks the model for that
    date's games either synchronously or as a background request that is
    polled to completion, and upserts them under "llm-{HOME}-{AWAY}-{date}".
    The answer text is cached under ``nba_schedule_llm:{date}`` so retries
    and repeated runs within the TTL do not hit the API again.

LlmBulkScheduleSync (date range, saved prompt)
    One call to a saved prompt that returns several days at once; games are
    stored under "{date}-{HOME}-{AWAY}" and both the games and the LLM cache
    keys of every covered day are cleared.

An empty answer during the season (October to April) raises
SuspiciousEmptyResult so the job runner retries; off-season it is accepted.
"""
import asyncio
from datetime import date, timedelta
from typing import List, Optional

from scout_api.core.cache import BaseCache, get_cache
from scout_api.core.config import settings
from scout_api.core.exceptions import SuspiciousEmptyResult
from scout_api.core.logging import get_logger
from scout_api.services.sync import llm_parser, schedule_time
from scout_api.services.sync.adapters.openai_client import OpenAIResponsesClient, ResponsePoller
from scout_api.services.sync.cache_invalidation import CacheInvalidator, llm_schedule_key
from scout_api.services.sync.identity_resolver import IdentityResolver, is_found
from scout_api.services.sync.orchestrator import SyncOrchestrator
from scout_api.services.sync.payloads import SOURCE_LLM, LlmGamePayload
from scout_api.services.sync.upsert import SKIPPED, SyncStats

logger = get_logger(__name__)

MODE_SYNC = "sync"
MODE_BACKGROUND = "background"

SCHEDULE_PROMPT = """Search the web for the NBA game schedule for {formatted_date}.

Return ONLY a valid JSON array of games with this exact structure (no markdown, no explanation):
[
  {{
    "home_team": "LAL",
    "away_team": "BOS",
    "scheduled_time": "7:30 PM ET",
    "arena": "Crypto.com Arena"
  }}
]

Use these team abbreviations: {abbreviations}

If no games are scheduled for this date, return an empty array: []

Important:
- Use standard 3-letter NBA team abbreviations
- Include ALL games scheduled for this date
- Times should be in Eastern Time (ET)
- Return ONLY the JSON array, nothing else"""


def _long_date(on_date: date) -> str:
    return f"{on_date:%B} {on_date.day}, {on_date.year}"


def build_prompt(on_date: date, abbreviations: List[str]) -> str:
    return SCHEDULE_PROMPT.format(
        formatted_date=_long_date(on_date),
        abbreviations=", ".join(sorted(abbreviations)),
    )


class _LlmSync(SyncOrchestrator):
    source = SOURCE_LLM

    def __init__(
        self,
        db,
        client: Optional[OpenAIResponsesClient] = None,
        invalidator: Optional[CacheInvalidator] = None,
        cache: Optional[BaseCache] = None,
    ):
        super().__init__(db, client=client, invalidator=invalidator)
        self.cache = cache or get_cache()

    def _make_client(self) -> OpenAIResponsesClient:
        return OpenAIResponsesClient()

    def _store(
        self,
        games: List[LlmGamePayload],
        skipped: int,
        resolver: IdentityResolver,
        style: str,
    ) -> SyncStats:
        stats = SyncStats()
        for _ in range(skipped):
            stats.add(SKIPPED)

        for game in games:
            external_id = game.external_id(style)
            # Reuse an LLM row stored under the other id style for this matchup
            existing = resolver.resolve("game", game)
            if is_found(existing) and existing.external_id in (game.external_id("bulk"), game.external_id("daily")):
                external_id = existing.external_id

            attributes = {
                "home_team_id": game.home_team_id,
                "away_team_id": game.away_team_id,
                "scheduled_at": game.scheduled_at,
                "status": game.status,
                "season": schedule_time.season_for(schedule_time.parse_date(game.game_date))[0],
                "extra_attributes": {"arena": game.arena, "source": SOURCE_LLM},
            }
            outcome, _, previous_scheduled_at = self.engine.upsert_game(
                external_id,
                attributes,
                resolver=resolver,
                natural_key=(game.game_date, game.home_abbreviation, game.away_abbreviation),
            )
            stats.add(outcome)
            self.touch_game(game.game_date, previous_scheduled_at)
        return stats


class LlmScheduleSync(_LlmSync):
    """Games for one date from an LLM web search."""

    data_type = "games"

    def __init__(self, db, cancel_event: Optional[asyncio.Event] = None, **kwargs):
        super().__init__(db, **kwargs)
        self.cancel_event = cancel_event

    async def run(self, on_date: Optional[date] = None, mode: str = MODE_SYNC) -> SyncStats:
        """
        Args:
            on_date: League date to fetch (defaults to today)
            mode: "sync" for one blocking call, "background" to submit and poll

        Raises:
            SuspiciousEmptyResult: No games parsed on an in-season date
            ProviderError / PollError: Transport or polling failure
        """
        if mode not in (MODE_SYNC, MODE_BACKGROUND):
            raise ValueError(f"Unknown LLM sync mode: {mode}")
        on_date = on_date or schedule_time.league_today()
        return await self._tracked(lambda: self._sync(on_date, mode))

    async def _fetch_text(self, prompt: str, mode: str) -> str:
        if mode == MODE_BACKGROUND:
            response_id = await self.client.submit_background(prompt)
            poller = ResponsePoller(self.client, cancel_event=self.cancel_event)
            response = await poller.wait(response_id)
        else:
            response = await self.client.complete(prompt, timeout=settings.OPENAI_TIMEOUT)
        return llm_parser.extract_output_text(response)

    async def _sync(self, on_date: date, mode: str) -> SyncStats:
        resolver = self.build_resolver(with_games=True)
        key = llm_schedule_key(on_date)

        text = self.cache.get(key)
        from_cache = text is not None
        if not from_cache:
            abbreviations = [t.abbreviation for t in resolver.teams.teams]
            text = await self._fetch_text(build_prompt(on_date, abbreviations), mode)

        parsed = llm_parser.parse(text, on_date.isoformat(), resolver.teams)
        if not parsed.games:
            if schedule_time.is_nba_season(on_date):
                logger.error(f"LLM returned no games for {on_date} during the NBA season")
                raise SuspiciousEmptyResult(f"No games returned for {on_date} during the NBA season")
            logger.info(f"LLM returned no games for {on_date} (off-season)")
            return SyncStats(skipped=parsed.skipped, total=parsed.skipped)

        if not from_cache:
            self.cache.set(key, text, settings.CACHE_TTL_LLM_SCHEDULE)
        return self._store(parsed.games, parsed.skipped, resolver, style="daily")


class LlmBulkScheduleSync(_LlmSync):
    """Several days of games from one saved-prompt call."""

    data_type = "schedule"

    async def run(self, days: int = 7, start: Optional[date] = None) -> SyncStats:
        start = start or schedule_time.league_today()
        self.prompt_id = settings.require_api_key("OPENAI_PROMPT_ID")
        return await self._tracked(lambda: self._sync(start, days))

    async def _sync(self, start: date, days: int) -> SyncStats:
        resolver = self.build_resolver(with_games=True)
        end = start + timedelta(days=max(days, 1) - 1)
        message = (
            f"Get the NBA schedule from {_long_date(start)} to {_long_date(end)}. "
            f"Today is {_long_date(schedule_time.league_today())}."
        )
        response = await self.client.run_saved_prompt(
            self.prompt_id, message, timeout=settings.OPENAI_BULK_TIMEOUT
        )
        parsed = llm_parser.parse(llm_parser.extract_output_text(response), start.isoformat(), resolver.teams)

        for offset in range((end - start).days + 1):
            self.touch(start + timedelta(days=offset))

        if not parsed.games:
            if schedule_time.is_nba_season(start):
                raise SuspiciousEmptyResult(f"No games returned for {start}..{end} during the NBA season")
            logger.info(f"LLM bulk schedule empty for {start}..{end} (off-season)")
            return SyncStats(skipped=parsed.skipped, total=parsed.skipped)

        return self._store(parsed.games, parsed.skipped, resolver, style="bulk")

    def invalidate(self) -> None:
        super().invalidate()
        self.invalidator.llm_dates(self.touched_dates)
