"""Integration tests for the sync orchestrators.

Each test follows the pattern:
- Given: Database with sample data and a fake provider client
- When: The orchestrator runs
- Then: Rows, sync metadata and cache state are as expected
"""
import json
from datetime import date, datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy.orm import Session

from scout_api.core.exceptions import ConfigurationError, ProviderError, SuspiciousEmptyResult
from scout_api.models import Game, Player, SyncMetadata, Team
from scout_api.services.game_service import GameService
from scout_api.services.sync.balldontlie_sync import BdlGamesSync, BdlPlayersSync, BdlTeamsSync
from scout_api.services.sync.cache_invalidation import CacheInvalidator
from scout_api.services.sync.llm_sync import LlmBulkScheduleSync, LlmScheduleSync, build_prompt
from scout_api.services.sync.minutes_sync import MinutesSync
from scout_api.services.sync.orchestrator import sync_status
from scout_api.services.sync.primary_sync import PrimaryGamesSync


async def aiter(records):
    for record in records:
        yield record


class FakeBallDontLie:
    def __init__(self, teams=(), players=(), games=()):
        self._teams, self._players, self._games = teams, players, games
        self.game_windows = []

    def teams(self):
        return aiter(self._teams)

    def players(self):
        return aiter(self._players)

    def games(self, start, end):
        self.game_windows.append((start, end))
        return aiter(self._games)

    async def close(self):
        pass


def metadata(db: Session, source: str, data_type: str) -> SyncMetadata:
    return db.query(SyncMetadata).filter_by(source=source, data_type=data_type).one()


def sportsblaze_game(id, home, away, scheduled="2025-12-26T00:30:00Z", status="scheduled"):
    return {"id": id, "status": status, "scheduled": scheduled,
            "home": {"alias": home}, "away": {"alias": away}}


@pytest.fixture
def invalidator(memory_cache):
    return CacheInvalidator(memory_cache)


class TestPrimaryGamesSync:

    async def test_creates_games_and_records_metadata(self, db_session: Session, teams, invalidator, memory_cache):
        client = AsyncMock()
        client.get_schedule.return_value = [
            sportsblaze_game("sb-1", "LAL", "BOS"),
            sportsblaze_game("sb-2", "GSW", "BOS"),  # unknown team
        ]
        memory_cache.set("games:date:2025-12-25", {"games": []}, 60)

        stats = await PrimaryGamesSync(db_session, client=client, invalidator=invalidator).run(date(2025, 12, 25))

        assert stats.as_dict() == {"created": 1, "updated": 0, "skipped": 1, "total": 2}
        client.get_schedule.assert_awaited_once_with("2025-12-25")

        game = db_session.query(Game).one()
        assert game.external_id == "sb-1"
        assert game.home_team_id == teams["LAL"].id
        assert game.season == 2025

        row = metadata(db_session, "sportsblaze", "games")
        assert row.last_sync_status == "success"
        assert (row.records_processed, row.records_created, row.records_skipped) == (2, 1, 1)

        assert memory_cache.get("games:date:2025-12-25") is None

    async def test_second_run_updates(self, db_session: Session, teams, invalidator):
        client = AsyncMock()
        client.get_schedule.return_value = [sportsblaze_game("sb-1", "LAL", "BOS")]
        sync = PrimaryGamesSync(db_session, client=client, invalidator=invalidator)
        await sync.run(date(2025, 12, 25))

        client.get_schedule.return_value = [sportsblaze_game("sb-1", "LAL", "BOS", status="closed")]
        stats = await sync.run(date(2025, 12, 25))

        assert stats.updated == 1
        assert db_session.query(Game).one().status == "final"

    async def test_rescheduled_game_leaves_old_date(self, db_session: Session, teams, invalidator, memory_cache):
        """Should clear the cached listing of the date a game moved away from."""
        client = AsyncMock()
        client.get_schedule.return_value = [sportsblaze_game("sb-1", "LAL", "BOS")]
        sync = PrimaryGamesSync(db_session, client=client, invalidator=invalidator)
        await sync.run(date(2025, 12, 25))

        games = GameService(db_session, memory_cache)
        assert len(games.by_date(date(2025, 12, 25))["games"]) == 1

        # Postponed two days; only the new date is fetched
        client.get_schedule.return_value = [
            sportsblaze_game("sb-1", "LAL", "BOS", scheduled="2025-12-28T00:30:00Z"),
        ]
        await sync.run(date(2025, 12, 27))

        assert games.by_date(date(2025, 12, 25))["games"] == []
        assert len(games.by_date(date(2025, 12, 27))["games"]) == 1

    def test_touch_game_adds_previous_league_date(self, db_session: Session, invalidator):
        sync = PrimaryGamesSync(db_session, client=AsyncMock(), invalidator=invalidator)

        # 01:00 UTC on the 26th is still the 25th in league time
        sync.touch_game("2025-12-27", datetime(2025, 12, 26, 1, 0))
        sync.touch_game("2025-12-28")

        assert sync.touched_dates == {"2025-12-25", "2025-12-27", "2025-12-28"}

    async def test_window_fetches_each_day(self, db_session: Session, teams, invalidator):
        client = AsyncMock()
        client.get_schedule.return_value = []

        await PrimaryGamesSync(db_session, client=client, invalidator=invalidator).run(
            date(2025, 12, 25), date(2025, 12, 27)
        )

        assert [c.args[0] for c in client.get_schedule.await_args_list] == [
            "2025-12-25", "2025-12-26", "2025-12-27",
        ]

    async def test_provider_failure_marks_failed(self, db_session: Session, teams, invalidator, memory_cache):
        client = AsyncMock()
        client.get_schedule.side_effect = ProviderError("sportsblaze", "HTTP 500")
        memory_cache.set("games:date:2025-12-25", {"games": []}, 60)

        with pytest.raises(ProviderError):
            await PrimaryGamesSync(db_session, client=client, invalidator=invalidator).run(date(2025, 12, 25))

        row = metadata(db_session, "sportsblaze", "games")
        assert row.last_sync_status == "failed"
        assert "HTTP 500" in row.error_message
        # Nothing committed, nothing invalidated
        assert memory_cache.get("games:date:2025-12-25") is not None

    async def test_missing_credentials_fail_before_metadata(self, db_session: Session, monkeypatch):
        from scout_api.core.config import settings
        monkeypatch.setattr(settings, "SPORTSBLAZE_API_KEY", "")

        with pytest.raises(ConfigurationError):
            await PrimaryGamesSync(db_session).run(date(2025, 12, 25))

        assert db_session.query(SyncMetadata).count() == 0


class TestBallDontLieSyncs:

    async def test_teams(self, db_session: Session, invalidator, memory_cache):
        client = FakeBallDontLie(teams=[
            {"id": 2, "abbreviation": "BOS", "city": "Boston", "name": "Celtics", "full_name": "Boston Celtics"},
            {"id": 14, "abbreviation": "LAL", "city": "Los Angeles", "name": "Lakers",
             "full_name": "Los Angeles Lakers"},
            {"abbreviation": "BAD"},
        ])
        memory_cache.set("players:team:1:jersey:x", [], 60)

        stats = await BdlTeamsSync(db_session, client=client, invalidator=invalidator).run()

        assert stats.as_dict() == {"created": 2, "updated": 0, "skipped": 1, "total": 3}
        assert {t.abbreviation for t in db_session.query(Team).all()} == {"BOS", "LAL"}
        assert memory_cache.get("players:team:1:jersey:x") is None

    async def test_players(self, db_session: Session, teams, invalidator):
        client = FakeBallDontLie(players=[
            {"id": 434, "first_name": "Jayson", "last_name": "Tatum", "jersey_number": "0",
             "team": {"id": 2}},
            {"id": 500, "first_name": "Some", "last_name": "One", "team": {"id": 99}},
        ])

        stats = await BdlPlayersSync(db_session, client=client, invalidator=invalidator).run()

        assert (stats.created, stats.skipped) == (1, 1)
        tatum = db_session.query(Player).one()
        assert tatum.team_id == teams["BOS"].id

    async def test_games_window(self, db_session: Session, teams, invalidator):
        client = FakeBallDontLie(games=[{
            "id": 1001, "date": "2025-12-25", "datetime": "2025-12-26T01:00:00Z", "status": "Final",
            "season": 2025, "home_team": {"id": 14}, "visitor_team": {"id": 2},
            "home_team_score": 120, "visitor_team_score": 110, "period": 4,
        }])

        stats = await BdlGamesSync(db_session, client=client, invalidator=invalidator).run(
            days=7, today=date(2025, 12, 25)
        )

        assert stats.created == 1
        assert client.game_windows == [(date(2025, 12, 24), date(2026, 1, 1))]
        game = db_session.query(Game).one()
        assert (game.external_id, game.balldontlie_id, game.status) == ("bdl-1001", 1001, "final")
        assert game.scheduled_at == datetime(2025, 12, 26, 1, 0)

    async def test_games_moved_by_provider_clear_old_date(self, db_session: Session, teams, invalidator, memory_cache):
        raw = {
            "id": 1001, "date": "2025-12-25", "datetime": "2025-12-26T01:00:00Z", "status": "scheduled",
            "season": 2025, "home_team": {"id": 14}, "visitor_team": {"id": 2},
        }
        await BdlGamesSync(db_session, client=FakeBallDontLie(games=[raw]), invalidator=invalidator).run(
            days=7, today=date(2025, 12, 25)
        )
        memory_cache.set("games:date:2025-12-25", {"games": ["cached"]}, 60)

        moved = dict(raw, date="2025-12-30", datetime="2025-12-31T01:00:00Z")
        stats = await BdlGamesSync(db_session, client=FakeBallDontLie(games=[moved]), invalidator=invalidator).run(
            days=7, today=date(2025, 12, 25)
        )

        assert stats.updated == 1
        assert memory_cache.get("games:date:2025-12-25") is None


class FakeOpenAI:
    def __init__(self, text):
        self.text = text
        self.prompts = []
        self.saved_prompt_calls = []

    async def complete(self, prompt, timeout=None):
        self.prompts.append(prompt)
        return {"output_text": self.text}

    async def run_saved_prompt(self, prompt_id, message, timeout=None):
        self.saved_prompt_calls.append((prompt_id, message))
        return {"output": [{"type": "message", "content": [{"type": "output_text", "text": self.text}]}]}

    async def close(self):
        pass


CHRISTMAS_ANSWER = json.dumps([
    {"home_team": "LAL", "away_team": "BOS", "scheduled_time": "8:00 PM ET"},
])


class TestLlmScheduleSync:

    async def test_creates_daily_games_and_caches_answer(self, db_session: Session, teams, invalidator, memory_cache):
        client = FakeOpenAI(CHRISTMAS_ANSWER)
        sync = LlmScheduleSync(db_session, client=client, invalidator=invalidator, cache=memory_cache)

        stats = await sync.run(date(2025, 12, 25))

        assert stats.created == 1
        game = db_session.query(Game).one()
        assert game.external_id == "llm-LAL-BOS-2025-12-25"
        assert game.extra_attributes["arena"] == "Crypto.com Arena"
        assert memory_cache.get("nba_schedule_llm:2025-12-25") == CHRISTMAS_ANSWER
        assert "December 25, 2025" in client.prompts[0]

    async def test_cached_answer_skips_api(self, db_session: Session, teams, invalidator, memory_cache):
        memory_cache.set("nba_schedule_llm:2025-12-25", CHRISTMAS_ANSWER, 60)
        client = FakeOpenAI("[]")

        stats = await LlmScheduleSync(db_session, client=client, invalidator=invalidator,
                                      cache=memory_cache).run(date(2025, 12, 25))

        assert stats.created == 1
        assert client.prompts == []

    async def test_reuses_bulk_row(self, db_session: Session, teams, invalidator, memory_cache):
        db_session.add(Game(external_id="2025-12-25-LAL-BOS", home_team_id=teams["LAL"].id,
                            away_team_id=teams["BOS"].id, scheduled_at=datetime(2025, 12, 26, 0, 0)))
        db_session.commit()

        stats = await LlmScheduleSync(db_session, client=FakeOpenAI(CHRISTMAS_ANSWER),
                                      invalidator=invalidator, cache=memory_cache).run(date(2025, 12, 25))

        assert stats.updated == 1
        game = db_session.query(Game).one()
        assert game.scheduled_at == datetime(2025, 12, 26, 1, 0)

    async def test_empty_in_season_is_suspicious(self, db_session: Session, teams, invalidator, memory_cache):
        sync = LlmScheduleSync(db_session, client=FakeOpenAI("[]"), invalidator=invalidator, cache=memory_cache)

        with pytest.raises(SuspiciousEmptyResult):
            await sync.run(date(2025, 12, 25))

        assert metadata(db_session, "llm", "games").last_sync_status == "failed"
        assert memory_cache.get("nba_schedule_llm:2025-12-25") is None

    async def test_empty_off_season_is_fine(self, db_session: Session, teams, invalidator, memory_cache):
        sync = LlmScheduleSync(db_session, client=FakeOpenAI("[]"), invalidator=invalidator, cache=memory_cache)

        stats = await sync.run(date(2025, 7, 15))

        assert stats.total == 0
        assert metadata(db_session, "llm", "games").last_sync_status == "success"

    async def test_unknown_mode(self, db_session: Session):
        with pytest.raises(ValueError):
            await LlmScheduleSync(db_session, client=FakeOpenAI("[]")).run(date(2025, 12, 25), mode="carrier-pigeon")

    def test_prompt_lists_abbreviations(self):
        prompt = build_prompt(date(2025, 12, 5), ["LAL", "BOS"])
        assert "December 5, 2025" in prompt
        assert "BOS, LAL" in prompt


class TestLlmBulkScheduleSync:

    async def test_bulk(self, db_session: Session, teams, invalidator, memory_cache, monkeypatch):
        from scout_api.core.config import settings
        monkeypatch.setattr(settings, "OPENAI_PROMPT_ID", "pmpt_123")
        answer = json.dumps({"games": [
            {"date": "2025-12-25", "home_team": "LAL", "away_team": "BOS", "scheduled_time": "8:00 PM ET"},
            {"date": "2025-12-27", "home_team": "BOS", "away_team": "LAL", "scheduled_time": "7:30 PM ET"},
        ]})
        for day in ("2025-12-25", "2025-12-26", "2025-12-27"):
            memory_cache.set(f"nba_schedule_llm:{day}", "[]", 60)
            memory_cache.set(f"games:date:{day}", {"games": []}, 60)
        client = FakeOpenAI(answer)

        stats = await LlmBulkScheduleSync(db_session, client=client, invalidator=invalidator,
                                          cache=memory_cache).run(days=3, start=date(2025, 12, 25))

        assert stats.created == 2
        assert {g.external_id for g in db_session.query(Game).all()} == {
            "2025-12-25-LAL-BOS", "2025-12-27-BOS-LAL",
        }
        assert client.saved_prompt_calls[0][0] == "pmpt_123"
        assert "December 25, 2025 to December 27, 2025" in client.saved_prompt_calls[0][1]
        for day in ("2025-12-25", "2025-12-26", "2025-12-27"):
            assert memory_cache.get(f"nba_schedule_llm:{day}") is None
            assert memory_cache.get(f"games:date:{day}") is None
        assert metadata(db_session, "llm", "schedule").last_sync_status == "success"

    async def test_requires_prompt_id(self, db_session: Session, monkeypatch):
        from scout_api.core.config import settings
        monkeypatch.setattr(settings, "OPENAI_PROMPT_ID", "")

        with pytest.raises(ConfigurationError):
            await LlmBulkScheduleSync(db_session, client=FakeOpenAI("[]")).run()


class TestMinutesSync:

    async def test_updates_minutes(self, db_session: Session, players, invalidator):
        client = AsyncMock()
        client.get_player_splits.return_value = [
            {"id": "sb-tatum", "stats": {"total": {"minutes": 2500}, "average": {"minutes": 36.8}}},
            {"id": "sb-unknown", "stats": {"total": {"minutes": 10}}},
            {"stats": {}},
        ]

        stats = await MinutesSync(db_session, client=client, invalidator=invalidator).run(season="2025-26")

        assert (stats.updated, stats.skipped) == (1, 2)
        season, ids = client.get_player_splits.await_args.args
        assert season == "2025-26"
        assert ids == ["sb-brown", "sb-james", "sb-tatum"]
        db_session.refresh(players[0])
        assert players[0].minutes_played == 2500.0

    async def test_no_players_with_ids(self, db_session: Session, invalidator):
        client = AsyncMock()
        stats = await MinutesSync(db_session, client=client, invalidator=invalidator).run(season="2025-26")
        assert stats.total == 0
        client.get_player_splits.assert_not_awaited()


class TestSyncStatus:

    async def test_reports_every_pair(self, db_session: Session, teams, invalidator):
        client = AsyncMock()
        client.get_schedule.return_value = []
        await PrimaryGamesSync(db_session, client=client, invalidator=invalidator).run(date(2025, 12, 25))

        status = sync_status(db_session)

        assert list(status) == ["sportsblaze/games"]
        assert status["sportsblaze/games"]["status"] == "success"
        assert status["sportsblaze/games"]["completed_at"].endswith("Z")
