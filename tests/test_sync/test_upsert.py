"""Tests for UpsertEngine find-or-create semantics."""
from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import Session

from scout_api.models import Game, Player, Team, utcnow
from scout_api.services.sync.identity_resolver import IdentityResolver
from scout_api.services.sync.payloads import (
    BdlPlayerPayload,
    BdlTeamPayload,
    SportsBlazeSplitPayload,
)
from scout_api.services.sync.upsert import CREATED, SKIPPED, UPDATED, SyncStats, UpsertEngine


def resolver_for(db: Session) -> IdentityResolver:
    return IdentityResolver(
        teams=db.query(Team).all(),
        players=db.query(Player).all(),
        games=db.query(Game).all(),
    )


def celtics_payload(**overrides) -> BdlTeamPayload:
    data = dict(
        balldontlie_id=2, abbreviation="BOS", name="Boston Celtics", nickname="Celtics",
        location="Boston", extra_attributes={"conference": "East", "division": "Atlantic"},
    )
    data.update(overrides)
    return BdlTeamPayload(**data)


def tatum_payload(**overrides) -> BdlPlayerPayload:
    data = dict(
        balldontlie_id=434, name="Jayson Tatum", team_balldontlie_id=2, jersey="0",
        position="F", height="6-8", weight="210 lbs",
    )
    data.update(overrides)
    return BdlPlayerPayload(**data)


class TestSyncStats:

    def test_add_and_merge(self):
        stats = SyncStats()
        stats.add(CREATED)
        stats.add(SKIPPED)
        other = SyncStats(updated=2, total=2)
        assert stats.merge(other).as_dict() == {"created": 1, "updated": 2, "skipped": 1, "total": 4}


class TestTeamUpsert:

    def test_create_then_update_is_idempotent(self, db_session: Session):
        """Should create once and update on every later run."""
        engine = UpsertEngine(db_session)

        outcome, team = engine.upsert_team(celtics_payload(), resolver_for(db_session))
        db_session.commit()
        assert outcome == CREATED

        outcome, again = engine.upsert_team(celtics_payload(name="Boston Celtics (Updated)"), resolver_for(db_session))
        db_session.commit()
        assert outcome == UPDATED
        assert again.id == team.id
        assert db_session.query(Team).count() == 1
        assert again.name == "Boston Celtics (Updated)"

    def test_adopts_team_matched_by_abbreviation(self, db_session: Session):
        db_session.add(Team(abbreviation="BOS", name="Boston", arena_name="TD Garden",
                            extra_attributes={"founded": 1946}))
        db_session.commit()

        outcome, team = UpsertEngine(db_session).upsert_team(celtics_payload(), resolver_for(db_session))
        db_session.commit()

        assert outcome == UPDATED
        assert team.balldontlie_id == 2
        assert team.arena_name == "TD Garden"
        # Extra attributes are merged, not replaced
        assert team.extra_attributes == {"founded": 1946, "conference": "East", "division": "Atlantic"}

    def test_soft_deleted_team_is_not_resurrected(self, db_session: Session):
        db_session.add(Team(balldontlie_id=2, abbreviation="BOS", name="Boston Celtics", deleted_at=utcnow()))
        db_session.commit()

        outcome, team = UpsertEngine(db_session).upsert_team(celtics_payload(), resolver_for(db_session))

        assert outcome == SKIPPED
        assert team.deleted_at is not None
        assert db_session.query(Team).count() == 1

    def test_ambiguous_abbreviation_is_skipped(self, db_session: Session):
        db_session.add_all([
            Team(abbreviation="BOS", name="Boston Celtics"),
            Team(abbreviation="BOS", name="Boston Celtics"),
        ])
        db_session.commit()

        outcome, team = UpsertEngine(db_session).upsert_team(celtics_payload(), resolver_for(db_session))

        assert (outcome, team) == (SKIPPED, None)


class TestPlayerUpsert:

    def test_player_of_unknown_team_is_skipped(self, db_session: Session):
        outcome, player = UpsertEngine(db_session).upsert_player(tatum_payload(), resolver_for(db_session))
        assert (outcome, player) == (SKIPPED, None)

    def test_create_then_update(self, db_session: Session, teams):
        engine = UpsertEngine(db_session)
        resolver = resolver_for(db_session)

        outcome, player = engine.upsert_player(tatum_payload(), resolver)
        db_session.commit()
        assert outcome == CREATED
        assert player.team_id == teams["BOS"].id

        # Same resolver: the created row was indexed
        outcome, again = engine.upsert_player(tatum_payload(jersey="00"), resolver)
        db_session.commit()
        assert outcome == UPDATED
        assert again.id == player.id
        assert again.jersey == "00"
        assert db_session.query(Player).count() == 1

    def test_update_keeps_minutes(self, db_session: Session, players):
        tatum = players[0]
        UpsertEngine(db_session).upsert_player(tatum_payload(position="F-G"), resolver_for(db_session))
        db_session.commit()
        assert tatum.position == "F-G"
        assert tatum.minutes_played == 2400.0

    def test_update_minutes(self, db_session: Session, players):
        tatum = players[0]
        engine = UpsertEngine(db_session)

        split = SportsBlazeSplitPayload("sb-tatum", minutes_played=2500.0, average_minutes_played=36.8)
        assert engine.update_minutes(tatum, split) == UPDATED
        assert tatum.average_minutes_played == 36.8
        assert tatum.stats_synced_at is not None

        empty = SportsBlazeSplitPayload("sb-tatum", minutes_played=None, average_minutes_played=None)
        assert engine.update_minutes(tatum, empty) == SKIPPED
        assert tatum.minutes_played == 2500.0


class TestGameUpsert:

    def attributes(self, teams, **overrides):
        data = {
            "home_team_id": teams["LAL"].id,
            "away_team_id": teams["BOS"].id,
            "scheduled_at": datetime(2025, 12, 26, 1, 0, tzinfo=timezone.utc),
            "status": "scheduled",
        }
        data.update(overrides)
        return data

    def test_create_stores_naive_utc(self, db_session: Session, teams):
        outcome, game, previous = UpsertEngine(db_session).upsert_game("sb-g-1", self.attributes(teams))
        db_session.commit()

        assert outcome == CREATED
        assert game.external_id == "sb-g-1"
        assert game.scheduled_at == datetime(2025, 12, 26, 1, 0)
        assert previous is None

    def test_rerun_updates_status(self, db_session: Session, teams):
        engine = UpsertEngine(db_session)
        engine.upsert_game("sb-g-1", self.attributes(teams))
        db_session.commit()

        outcome, game, previous = engine.upsert_game("sb-g-1", self.attributes(teams, status="final", home_team_score=120))
        db_session.commit()

        assert outcome == UPDATED
        assert game.status == "final"
        assert db_session.query(Game).count() == 1
        assert previous == datetime(2025, 12, 26, 1, 0)

    def test_reschedule_reports_replaced_tip_off(self, db_session: Session, teams):
        """Should hand back the old tip-off when a game moves to another date."""
        engine = UpsertEngine(db_session)
        engine.upsert_game("sb-g-1", self.attributes(teams))
        db_session.commit()

        moved = datetime(2025, 12, 28, 0, 30, tzinfo=timezone.utc)
        outcome, game, previous = engine.upsert_game("sb-g-1", self.attributes(teams, scheduled_at=moved))

        assert outcome == UPDATED
        assert previous == datetime(2025, 12, 26, 1, 0)
        assert game.scheduled_at == datetime(2025, 12, 28, 0, 30)

    def test_other_provider_duplicate_stays_separate(self, db_session: Session, teams):
        """Should log, not merge, a same-matchup game from another provider."""
        engine = UpsertEngine(db_session)
        engine.upsert_game("sb-g-1", self.attributes(teams))
        db_session.commit()

        outcome, _, _ = engine.upsert_game(
            "2025-12-25-LAL-BOS",
            self.attributes(teams),
            resolver=resolver_for(db_session),
            natural_key=("2025-12-25", "LAL", "BOS"),
        )
        db_session.commit()

        assert outcome == CREATED
        assert db_session.query(Game).count() == 2

    def test_soft_deleted_game_is_skipped(self, db_session: Session, teams):
        engine = UpsertEngine(db_session)
        _, game, _ = engine.upsert_game("sb-g-1", self.attributes(teams))
        game.deleted_at = utcnow()
        db_session.commit()

        outcome, again, previous = engine.upsert_game("sb-g-1", self.attributes(teams, status="final"))

        assert outcome == SKIPPED
        assert again.status == "scheduled"
        assert previous is None
