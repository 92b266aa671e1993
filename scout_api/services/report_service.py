"""
Scouting report workflows.

Authorization rules:
- scouts read only their own reports
- org admins read every report written by members of their organization
- super admins read everything
- only the author may update a report
- the author or a super admin may delete it

The mobile client works offline and pushes batches through ``sync``. A
pushed report whose server copy changed after the client's
``local_updated_at`` is returned as a conflict instead of being written.
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from scout_api.core.exceptions import AuthorizationError, NotFoundError, ValidationFailed
from scout_api.core.logging import get_logger
from scout_api.models import Report, User, utcnow
from scout_api.repositories import GameRepository, PlayerRepository, ReportRepository
from scout_api.services import ratings as rating_schema
from scout_api.services.serializers import serialize_report
from scout_api.services.sync.schedule_time import to_storage

logger = get_logger(__name__)

DEFAULT_PER_PAGE = 20


class ReportService:
    """
    Report reads and writes on behalf of one authenticated user.

    Usage:
        service = ReportService(db, user)
        report = service.current(player_id=12, game_id=None)
    """

    def __init__(self, db: Session, user: User):
        self.db = db
        self.user = user
        self.reports = ReportRepository(db)
        self.players = PlayerRepository(db)
        self.games = GameRepository(db)

    # ========================================================================
    # Validation helpers
    # ========================================================================

    def _existing_player(self, player_id: Optional[int], field: str = "player_id"):
        if player_id is None:
            raise ValidationFailed({field: [f"The {field.replace('_', ' ')} field is required."]})
        player = self.players.find_by_id(player_id)
        if player is None:
            raise ValidationFailed({field: [f"The selected {field.replace('_', ' ')} is invalid."]})
        return player

    def _check_game(self, game_id: Optional[int], field: str = "game_id") -> None:
        if game_id is not None and self.games.find_by_id(game_id) is None:
            raise ValidationFailed({field: [f"The selected {field.replace('_', ' ')} is invalid."]})

    @staticmethod
    def _check_ratings(ratings: Any, field: str = "ratings") -> None:
        errors = rating_schema.validate_ratings(ratings, field=field)
        if errors:
            raise ValidationFailed(errors)

    def _get(self, report_id: int) -> Report:
        report = self.reports.find_by_id(report_id)
        if report is None:
            raise NotFoundError(f"Report {report_id} not found")
        return report

    def _require_owner(self, report: Report) -> None:
        if report.user_id != self.user.id:
            raise AuthorizationError("Unauthorized")

    def can_view(self, report: Report) -> bool:
        if self.user.is_super_admin() or report.user_id == self.user.id:
            return True
        if self.user.is_org_admin():
            return (
                self.user.organization_id is not None
                and report.user is not None
                and report.user.organization_id == self.user.organization_id
            )
        return False

    def _new_report(
        self,
        player_id: int,
        game_id: Optional[int],
        ratings: Optional[Dict[str, Any]],
        notes: Optional[str],
        synced: bool = True,
    ) -> Report:
        player = self._existing_player(player_id)
        return self.reports.create(
            user_id=self.user.id,
            player_id=player.id,
            team_id_at_time=player.team_id,
            game_id=game_id,
            ratings=ratings or rating_schema.skeleton(),
            notes=notes,
            synced_at=utcnow() if synced else None,
        )

    # ========================================================================
    # Reads
    # ========================================================================

    def list_reports(
        self,
        player_id: Optional[int] = None,
        game_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        page: int = 1,
        per_page: int = DEFAULT_PER_PAGE,
    ) -> Dict[str, Any]:
        query = self.reports.visible_to(
            self.user,
            player_id=player_id,
            game_id=game_id,
            start_date=start_date,
            end_date=end_date,
        )
        result = self.reports.paginate(query, page=page, per_page=per_page)
        return {
            "data": [serialize_report(report) for report in result["items"]],
            "current_page": result["current_page"],
            "per_page": result["per_page"],
            "total": result["total"],
            "last_page": result["last_page"],
        }

    def current(self, player_id: Optional[int], game_id: Optional[int] = None) -> Dict[str, Any]:
        """Report for (user, player, game), provisioned with an empty skeleton on first access."""
        player = self._existing_player(player_id)
        self._check_game(game_id)

        report = self.reports.find_current(self.user.id, player.id, game_id)
        if report is None:
            report = self._new_report(player.id, game_id, None, None, synced=False)
            self.db.commit()
            self.db.refresh(report)
            logger.info(f"Provisioned report {report.id} for user {self.user.id}, player {player.id}")
        return serialize_report(report)

    def show(self, report_id: int) -> Dict[str, Any]:
        report = self._get(report_id)
        if not self.can_view(report):
            raise AuthorizationError("Unauthorized")
        return serialize_report(report)

    # ========================================================================
    # Writes
    # ========================================================================

    def create(
        self,
        player_id: Optional[int],
        game_id: Optional[int] = None,
        ratings: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None,
    ) -> Dict[str, Any]:
        self._check_game(game_id)
        self._check_ratings(ratings)
        report = self._new_report(player_id, game_id, ratings, notes)
        self.db.commit()
        self.db.refresh(report)
        return serialize_report(report)

    def update(self, report_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """Full update: ``ratings`` and ``notes`` are replaced when present."""
        report = self._get(report_id)
        self._require_owner(report)
        if "ratings" in data:
            self._check_ratings(data["ratings"])
            report.ratings = data["ratings"]
        if "notes" in data:
            report.notes = data["notes"]
        report.synced_at = utcnow()
        self.reports.update(report)
        self.db.commit()
        self.db.refresh(report)
        return serialize_report(report)

    def patch(self, report_id: int, data: Dict[str, Any]) -> Dict[str, Any]:
        """
        Partial update used by the client's auto-save.

        ``section`` + ``subsection`` address one entry; ``rating`` sets its
        current value, ``future`` its future value and ``subsection_notes``
        its notes. ``ratings`` and ``notes`` replace the whole field.
        """
        report = self._get(report_id)
        self._require_owner(report)

        section = data.get("section")
        subsection = data.get("subsection")
        if section is not None and section not in rating_schema.SECTIONS:
            raise ValidationFailed({"section": ["The selected section is invalid."]})

        ratings = report.ratings
        if section is not None and subsection is not None:
            if not rating_schema.is_valid_subsection(section, subsection):
                raise ValidationFailed({"subsection": ["Invalid subsection"]})
            if "rating" in data:
                ratings = rating_schema.set_value(ratings, section, subsection, "current", data["rating"])
            if "future" in data:
                ratings = rating_schema.set_value(ratings, section, subsection, "future", data["future"])
            if "subsection_notes" in data:
                ratings = rating_schema.set_value(
                    ratings, section, subsection, "notes", data["subsection_notes"]
                )

        if "ratings" in data:
            self._check_ratings(data["ratings"])
            ratings = data["ratings"]
        if ratings is not report.ratings:
            report.ratings = ratings
        if "notes" in data:
            report.notes = data["notes"]

        report.synced_at = utcnow()
        self.reports.update(report)
        self.db.commit()
        self.db.refresh(report)
        return serialize_report(report)

    def delete(self, report_id: int) -> None:
        report = self._get(report_id)
        if report.user_id != self.user.id and not self.user.is_super_admin():
            raise AuthorizationError("Unauthorized")
        self.reports.soft_delete(report)
        self.db.commit()
        logger.info(f"Soft-deleted report {report_id} by user {self.user.id}")

    # ========================================================================
    # Offline sync
    # ========================================================================

    def _validate_batch(self, items: List[Dict[str, Any]]) -> None:
        errors: Dict[str, List[str]] = {}
        for index, item in enumerate(items):
            prefix = f"reports.{index}"
            report_id = item.get("id")
            if report_id is not None and self.reports.find_by_id(report_id, with_trashed=True) is None:
                errors[f"{prefix}.id"] = [f"The selected {prefix}.id is invalid."]
            if self.players.find_by_id(item.get("player_id")) is None:
                errors[f"{prefix}.player_id"] = [f"The selected {prefix}.player_id is invalid."]
            game_id = item.get("game_id")
            if game_id is not None and self.games.find_by_id(game_id) is None:
                errors[f"{prefix}.game_id"] = [f"The selected {prefix}.game_id is invalid."]
            errors.update(rating_schema.validate_ratings(item.get("ratings"), field=f"{prefix}.ratings"))
        if errors:
            raise ValidationFailed(errors)

    def sync(self, items: List[Dict[str, Any]]) -> Dict[str, Any]:
        """
        Apply a batch of client reports.

        Items with an ``id`` update the server copy unless it was modified
        after ``local_updated_at``; items without one are created. Each item
        dict carries ``local_updated_at`` as a datetime.

        Returns:
            {synced, conflicts, synced_count, conflict_count}
        """
        self._validate_batch(items)

        synced: List[Report] = []
        conflicts: List[Dict[str, Any]] = []
        for item in items:
            client_version = _client_version(item)
            report_id = item.get("id")
            if report_id is None:
                report = self._new_report(
                    item["player_id"], item.get("game_id"), item.get("ratings"), item.get("notes")
                )
                synced.append(report)
                continue

            report = self.reports.find_by_id(report_id)
            if report is None:
                conflicts.append({
                    "id": report_id,
                    "error": "Report not found on server (possibly deleted)",
                    "client_version": client_version,
                })
                continue
            if report.user_id != self.user.id:
                conflicts.append({"id": report_id, "error": "Unauthorized", "client_version": client_version})
                continue
            if report.updated_at > to_storage(item["local_updated_at"]):
                conflicts.append({
                    "id": report.id,
                    "server_version": serialize_report(report, include_relations=False),
                    "client_version": client_version,
                })
                continue

            if item.get("ratings") is not None:
                report.ratings = item["ratings"]
            if item.get("notes") is not None:
                report.notes = item["notes"]
            report.synced_at = utcnow()
            self.reports.update(report)
            synced.append(report)

        self.db.commit()
        for report in synced:
            self.db.refresh(report)

        logger.info(
            f"Report sync for user {self.user.id}: {len(synced)} synced, {len(conflicts)} conflicts"
        )
        return {
            "synced": [serialize_report(report, include_relations=False) for report in synced],
            "conflicts": conflicts,
            "synced_count": len(synced),
            "conflict_count": len(conflicts),
        }


def _client_version(item: Dict[str, Any]) -> Dict[str, Any]:
    """The pushed item echoed back, with datetimes as ISO strings."""
    return {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in item.items()
    }
