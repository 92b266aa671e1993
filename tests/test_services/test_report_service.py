"""
Tests for scouting report workflows.

Test Strategy:
- Visibility: scout sees own, org admin sees organization, super admin sees all
- Writes: owner-only updates, owner or super admin deletes (soft)
- Auto-save patch: one subsection at a time without clobbering the rest
- Offline sync: creates, updates, and conflicts for stale or foreign reports
"""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import Session

from scout_api.core.exceptions import AuthorizationError, NotFoundError, ValidationFailed
from scout_api.models import Report
from scout_api.services.report_service import ReportService


@pytest.fixture
def reports(db_session: Session, players, users):
    """Two reports by the scout, one by a scout in another organization."""
    rows = {
        "tatum": Report(player_id=players[0].id, user_id=users["scout"].id,
                        ratings={"offense": {"shooting": {"current": 4, "future": 5, "notes": None}}},
                        notes="Strong first step"),
        "brown": Report(player_id=players[1].id, user_id=users["scout"].id),
        "outsider": Report(player_id=players[0].id, user_id=users["outsider"].id),
    }
    db_session.add_all(rows.values())
    db_session.commit()
    return rows


def later() -> datetime:
    return datetime.now(timezone.utc) + timedelta(minutes=5)


class TestVisibility:

    def test_scout_lists_own(self, db_session: Session, users, reports):
        page = ReportService(db_session, users["scout"]).list_reports()

        assert page["total"] == 2
        assert {r["id"] for r in page["data"]} == {reports["tatum"].id, reports["brown"].id}

    def test_org_admin_lists_organization(self, db_session: Session, users, reports):
        page = ReportService(db_session, users["org_admin"]).list_reports()
        assert {r["id"] for r in page["data"]} == {reports["tatum"].id, reports["brown"].id}

    def test_super_admin_lists_all(self, db_session: Session, users, reports):
        assert ReportService(db_session, users["super_admin"]).list_reports()["total"] == 3

    def test_filter_by_player(self, db_session: Session, users, players, reports):
        page = ReportService(db_session, users["scout"]).list_reports(player_id=players[1].id)
        assert [r["id"] for r in page["data"]] == [reports["brown"].id]

    def test_show_foreign_report(self, db_session: Session, users, reports):
        service = ReportService(db_session, users["other_scout"])
        with pytest.raises(AuthorizationError):
            service.show(reports["tatum"].id)

    def test_org_admin_can_show(self, db_session: Session, users, reports):
        data = ReportService(db_session, users["org_admin"]).show(reports["tatum"].id)
        assert data["notes"] == "Strong first step"
        assert data["player"]["name"] == "Jayson Tatum"
        assert data["user"]["name"] == "Sam Scout"

    def test_show_missing(self, db_session: Session, users):
        with pytest.raises(NotFoundError):
            ReportService(db_session, users["scout"]).show(999)


class TestCurrent:

    def test_returns_existing(self, db_session: Session, users, players, reports):
        data = ReportService(db_session, users["scout"]).current(players[0].id)
        assert data["id"] == reports["tatum"].id

    def test_provisions_skeleton(self, db_session: Session, users, players):
        """Should create an empty, unsynced report on first access."""
        service = ReportService(db_session, users["scout"])

        first = service.current(players[3].id)
        second = service.current(players[3].id)

        assert first["id"] == second["id"]
        assert first["ratings_count"] == 0
        assert first["synced_at"] is None
        assert first["team_id_at_time"] == players[3].team_id
        assert first["ratings"]["athleticism"]["quickness"] == {"current": None, "future": None, "notes": None}

    def test_unknown_player(self, db_session: Session, users):
        with pytest.raises(ValidationFailed) as exc_info:
            ReportService(db_session, users["scout"]).current(999)
        assert "player_id" in exc_info.value.errors

    def test_missing_player_id(self, db_session: Session, users):
        with pytest.raises(ValidationFailed) as exc_info:
            ReportService(db_session, users["scout"]).current(None)
        assert exc_info.value.errors["player_id"] == ["The player id field is required."]


class TestWrites:

    def test_create(self, db_session: Session, users, players):
        data = ReportService(db_session, users["scout"]).create(
            players[0].id, ratings={"defense": {"blocking": {"current": 3}}}, notes="Length"
        )

        assert data["user_id"] == users["scout"].id
        assert data["ratings"]["defense"]["blocking"]["current"] == 3
        assert data["synced_at"] is not None

    def test_create_invalid_rating(self, db_session: Session, users, players):
        with pytest.raises(ValidationFailed) as exc_info:
            ReportService(db_session, users["scout"]).create(
                players[0].id, ratings={"defense": {"blocking": {"current": 9}}}
            )
        assert "ratings.defense.blocking.current" in exc_info.value.errors

    def test_create_unknown_game(self, db_session: Session, users, players):
        with pytest.raises(ValidationFailed) as exc_info:
            ReportService(db_session, users["scout"]).create(players[0].id, game_id=999)
        assert "game_id" in exc_info.value.errors

    def test_update_is_owner_only(self, db_session: Session, users, reports):
        with pytest.raises(AuthorizationError):
            ReportService(db_session, users["super_admin"]).update(reports["tatum"].id, {"notes": "x"})

    def test_update_replaces_fields(self, db_session: Session, users, reports):
        data = ReportService(db_session, users["scout"]).update(
            reports["tatum"].id, {"notes": "Revised", "ratings": {"offense": {"passing": {"current": 2}}}}
        )

        assert data["notes"] == "Revised"
        assert data["ratings"]["offense"]["passing"]["current"] == 2
        assert data["ratings"]["offense"]["shooting"]["current"] is None

    def test_owner_deletes(self, db_session: Session, users, reports):
        ReportService(db_session, users["scout"]).delete(reports["tatum"].id)
        assert db_session.get(Report, reports["tatum"].id).deleted_at is not None

    def test_super_admin_deletes(self, db_session: Session, users, reports):
        ReportService(db_session, users["super_admin"]).delete(reports["tatum"].id)
        assert db_session.get(Report, reports["tatum"].id).deleted_at is not None

    def test_org_admin_cannot_delete(self, db_session: Session, users, reports):
        with pytest.raises(AuthorizationError):
            ReportService(db_session, users["org_admin"]).delete(reports["tatum"].id)


class TestPatch:

    def test_subsection_fields(self, db_session: Session, users, reports):
        data = ReportService(db_session, users["scout"]).patch(reports["tatum"].id, {
            "section": "offense",
            "subsection": "passing",
            "rating": 3,
            "future": 4,
            "subsection_notes": "Sees the floor",
        })

        assert data["ratings"]["offense"]["passing"] == {"current": 3, "future": 4, "notes": "Sees the floor"}
        assert data["ratings"]["offense"]["shooting"]["current"] == 4
        assert data["notes"] == "Strong first step"

    def test_notes_only(self, db_session: Session, users, reports):
        data = ReportService(db_session, users["scout"]).patch(reports["tatum"].id, {"notes": "Updated"})

        assert data["notes"] == "Updated"
        assert data["ratings"]["offense"]["shooting"]["current"] == 4

    def test_invalid_section(self, db_session: Session, users, reports):
        with pytest.raises(ValidationFailed) as exc_info:
            ReportService(db_session, users["scout"]).patch(reports["tatum"].id, {"section": "vibes"})
        assert "section" in exc_info.value.errors

    def test_invalid_subsection(self, db_session: Session, users, reports):
        with pytest.raises(ValidationFailed) as exc_info:
            ReportService(db_session, users["scout"]).patch(
                reports["tatum"].id, {"section": "defense", "subsection": "shooting", "rating": 3}
            )
        assert exc_info.value.errors == {"subsection": ["Invalid subsection"]}

    def test_not_owner(self, db_session: Session, users, reports):
        with pytest.raises(AuthorizationError):
            ReportService(db_session, users["other_scout"]).patch(reports["tatum"].id, {"notes": "x"})


class TestSync:

    def test_creates_and_updates(self, db_session: Session, users, players, reports):
        result = ReportService(db_session, users["scout"]).sync([
            {"player_id": players[3].id, "ratings": {"offense": {"finishing": {"current": 5}}},
             "notes": "Offline", "local_updated_at": later()},
            {"id": reports["brown"].id, "player_id": players[1].id, "notes": "Edited offline",
             "local_updated_at": later()},
        ])

        assert result["synced_count"] == 2
        assert result["conflict_count"] == 0
        assert result["synced"][0]["notes"] == "Offline"
        assert result["synced"][1]["notes"] == "Edited offline"
        assert "player" not in result["synced"][0]

    def test_stale_client_conflicts(self, db_session: Session, users, players, reports):
        """Should return the server copy when it changed after the client edit."""
        stale = datetime(2020, 1, 1, tzinfo=timezone.utc)
        result = ReportService(db_session, users["scout"]).sync([
            {"id": reports["tatum"].id, "player_id": players[0].id, "notes": "Old edit", "local_updated_at": stale},
        ])

        assert result["synced_count"] == 0
        conflict = result["conflicts"][0]
        assert conflict["id"] == reports["tatum"].id
        assert conflict["server_version"]["notes"] == "Strong first step"
        assert conflict["client_version"]["local_updated_at"] == stale.isoformat()
        db_session.expire_all()
        assert db_session.get(Report, reports["tatum"].id).notes == "Strong first step"

    def test_deleted_report_conflicts(self, db_session: Session, users, players, reports):
        ReportService(db_session, users["scout"]).delete(reports["brown"].id)

        result = ReportService(db_session, users["scout"]).sync([
            {"id": reports["brown"].id, "player_id": players[1].id, "local_updated_at": later()},
        ])

        assert result["conflicts"][0]["error"] == "Report not found on server (possibly deleted)"

    def test_foreign_report_conflicts(self, db_session: Session, users, players, reports):
        result = ReportService(db_session, users["scout"]).sync([
            {"id": reports["outsider"].id, "player_id": players[0].id, "local_updated_at": later()},
        ])
        assert result["conflicts"][0]["error"] == "Unauthorized"

    def test_batch_validation(self, db_session: Session, users, players):
        """Should reject the whole batch when any item is invalid."""
        with pytest.raises(ValidationFailed) as exc_info:
            ReportService(db_session, users["scout"]).sync([
                {"player_id": players[0].id, "local_updated_at": later()},
                {"id": 999, "player_id": 998, "ratings": {"offense": {"shooting": {"current": 0}}},
                 "local_updated_at": later()},
            ])

        assert set(exc_info.value.errors) == {
            "reports.1.id", "reports.1.player_id", "reports.1.ratings.offense.shooting.current",
        }
        assert db_session.query(Report).count() == 0
