"""
Tests for the game schedule queries.

Test Strategy:
- League-day bounds: a late game in Eastern time belongs to that Eastern day
- Card shape: string ids, camelCase keys, arena fallbacks
- Caching: a cached day is served without touching the database
"""
from datetime import date, datetime

import pytest
from sqlalchemy.orm import Session

from scout_api.models import Game
from scout_api.services.game_service import GameService
from scout_api.services.serializers import format_game
from scout_api.services.sync.cache_invalidation import games_date_key, games_today_key


@pytest.fixture
def games(db_session: Session, teams):
    rows = [
        # 7:30pm ET on Dec 25
        Game(external_id="sb-xmas", home_team_id=teams["LAL"].id, away_team_id=teams["BOS"].id,
             scheduled_at=datetime(2025, 12, 26, 0, 30), status="scheduled", season=2025,
             extra_attributes={"arena": "Crypto.com Arena (Christmas)"}),
        # 12pm ET on Dec 25
        Game(external_id="sb-noon", home_team_id=teams["BOS"].id, away_team_id=teams["LAL"].id,
             scheduled_at=datetime(2025, 12, 25, 17, 0), status="final", season=2025),
        # 11pm ET on Dec 24
        Game(external_id="sb-eve", home_team_id=teams["BOS"].id, away_team_id=teams["LAL"].id,
             scheduled_at=datetime(2025, 12, 25, 4, 0), status="final", season=2025),
    ]
    db_session.add_all(rows)
    db_session.commit()
    return rows


class TestByDate:

    def test_league_day_bounds(self, db_session: Session, games, memory_cache):
        """Should include games in the Eastern calendar day, ordered by tip-off."""
        result = GameService(db_session, memory_cache).by_date(date(2025, 12, 25))

        assert result["date"] == "2025-12-25"
        assert [g["id"] for g in result["games"]] == [str(games[1].id), str(games[0].id)]

    def test_late_game_stays_on_previous_day(self, db_session: Session, games, memory_cache):
        result = GameService(db_session, memory_cache).by_date(date(2025, 12, 24))
        assert [g["id"] for g in result["games"]] == [str(games[2].id)]

    def test_empty_day(self, db_session: Session, games, memory_cache):
        assert GameService(db_session, memory_cache).by_date(date(2025, 7, 4)) == {
            "games": [], "date": "2025-07-04",
        }

    def test_served_from_cache(self, db_session: Session, games, memory_cache):
        memory_cache.set(games_date_key(date(2025, 12, 25)), {"games": ["cached"], "date": "2025-12-25"}, 60)

        result = GameService(db_session, memory_cache).by_date(date(2025, 12, 25))

        assert result["games"] == ["cached"]


class TestToday:

    def test_uses_today_key(self, db_session: Session, games, memory_cache):
        result = GameService(db_session, memory_cache).today(date(2025, 12, 25))

        assert len(result["games"]) == 2
        assert memory_cache.get(games_today_key(date(2025, 12, 25))) == result
        assert memory_cache.get(games_date_key(date(2025, 12, 25))) is None


class TestFormatGame:

    def test_card_shape(self, db_session: Session, games):
        card = format_game(games[1])

        assert card["id"] == str(games[1].id)
        assert card["homeTeam"]["name"] == "Celtics"
        assert card["homeTeam"]["abbreviation"] == "BOS"
        assert card["awayTeam"]["abbreviation"] == "LAL"
        assert card["scheduledAt"] == "2025-12-25T17:00:00.000Z"
        assert card["status"] == "final"
        assert card["arena"] == {
            "name": "TD Garden",
            "city": "Boston",
            "state": "MA",
            "latitude": 42.3662,
            "longitude": -71.0621,
        }

    def test_game_arena_overrides_home_arena(self, db_session: Session, games):
        card = format_game(games[0])

        assert card["arena"]["name"] == "Crypto.com Arena (Christmas)"
        assert card["arena"]["latitude"] == 0.0

    def test_arena_name_fallback(self, db_session: Session, games, teams):
        teams["BOS"].arena_name = None
        db_session.commit()

        assert format_game(games[1])["arena"]["name"] == "Celtics Arena"
