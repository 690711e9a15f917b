"""
Commute logging service.

A commute log is a weekly aggregate: one row per (user, week_start) with
one commute type and a flag per weekday. A second submission for a week
that is still open is merged into the existing row instead of creating a
duplicate. Points and challenge progress are only applied when a row is
created, never on merge.
"""
import logging
from datetime import date, timedelta
from typing import List, Optional, Tuple

from backend.constants import (
    WEEKDAYS, WEEK_MERGE_WINDOW_DAYS, CURRENT_COMMUTES_WINDOW_DAYS,
    COMMUTE_POINTS_SOURCE
)
from backend.exceptions import UserNotFoundException
from backend.models import CommuteLog
from backend.schemas import CommuteLogCreate
from backend.services.challenge_service import ChallengeService
from backend.services.points_service import (
    PointsService, calculate_commute_points, calculate_co2_saved
)
from backend.storage.base import Storage

logger = logging.getLogger("commute_tracker.commutes")


def merge_day_flags(existing: dict, incoming: dict, same_type: bool) -> dict:
    """
    Merge a week's day flags with a new submission.

    Same commute type: explicit booleans in the submission win (True or
    False), None keeps the stored value.

    Different commute type: only days explicitly set True are switched on;
    every other day keeps its stored value and is never turned off.

    Args:
        existing: Stored flags {day: bool}
        incoming: Submitted flags {day: Optional[bool]}
        same_type: Whether the submission keeps the stored commute type

    Returns:
        Merged flags {day: bool}
    """
    merged = {}
    for day in WEEKDAYS:
        previous = bool(existing.get(day))
        value = incoming.get(day)
        if same_type:
            merged[day] = previous if value is None else bool(value)
        else:
            merged[day] = True if value else previous
    return merged


def is_week_open(week_start: date, today: date) -> bool:
    """A weekly log accepts merges until 7 days after its week_start"""
    return today <= week_start + timedelta(days=WEEK_MERGE_WINDOW_DAYS)


class CommuteService:
    """Service for weekly commute logs"""

    def __init__(self, storage: Storage, challenge_service: Optional[ChallengeService] = None):
        self.storage = storage
        self.points_service = PointsService(storage)
        self.challenge_service = challenge_service or ChallengeService(storage, self.points_service)

    def submit(self, user_id: int, data: CommuteLogCreate,
               today: Optional[date] = None) -> Tuple[CommuteLog, bool]:
        """
        Record a weekly commute submission.

        Args:
            user_id: Owner of the log
            data: Validated submission (days_logged already matches its flags)
            today: Current date (defaults to date.today())

        Returns:
            (log, created) - created is False when merged into an open week
        """
        today = today or date.today()

        if not self.storage.get_user(user_id):
            raise UserNotFoundException(user_id)

        existing = self.storage.get_commute_log_by_user_and_week(user_id, data.week_start)
        if existing and is_week_open(existing.week_start, today):
            return self._merge(existing, data), False

        return self._create(user_id, data), True

    def _create(self, user_id: int, data: CommuteLogCreate) -> CommuteLog:
        flags = {day: bool(value) for day, value in data.day_flags().items()}
        distance_km = data.distance_km or 0

        log = self.storage.create_commute_log({
            "user_id": user_id,
            "week_start": data.week_start,
            "commute_type": data.commute_type,
            "days_logged": data.days_logged,
            "distance_km": distance_km,
            "co2_saved_kg": calculate_co2_saved(data.commute_type, distance_km, data.days_logged),
            **flags,
        })
        logger.info(
            f"User {user_id} logged {data.days_logged} {data.commute_type} days "
            f"for week {data.week_start} (log {log.id})"
        )

        points = calculate_commute_points(data.commute_type, data.days_logged)
        if points > 0:
            self.points_service.award_points(
                user_id,
                COMMUTE_POINTS_SOURCE.format(commute_type=data.commute_type),
                points
            )

        self.challenge_service.apply_commute(
            user_id, data.commute_type, data.days_logged, distance_km
        )
        return log

    def _merge(self, log: CommuteLog, data: CommuteLogCreate) -> CommuteLog:
        existing_flags = {day: getattr(log, day) for day in WEEKDAYS}
        same_type = log.commute_type == data.commute_type
        flags = merge_day_flags(existing_flags, data.day_flags(), same_type)

        days_logged = sum(1 for value in flags.values() if value)
        distance_km = data.distance_km if data.distance_km is not None else (log.distance_km or 0)

        changes = {
            "commute_type": data.commute_type,
            "days_logged": days_logged,
            "distance_km": distance_km,
            "co2_saved_kg": calculate_co2_saved(data.commute_type, distance_km, days_logged),
            **flags,
        }
        logger.info(
            f"Merging submission into log {log.id} for week {log.week_start}: "
            f"{log.commute_type} -> {data.commute_type}, {days_logged} days"
        )
        return self.storage.update_commute_log(log.id, changes)

    def get_logs(self, user_id: int) -> List[CommuteLog]:
        return self.storage.get_commute_logs_by_user(user_id)

    def get_recent_logs(self, user_id: int, today: Optional[date] = None) -> List[CommuteLog]:
        """Logs whose week_start falls in the trailing 30 days"""
        today = today or date.today()
        since = today - timedelta(days=CURRENT_COMMUTES_WINDOW_DAYS)
        return [
            log for log in self.storage.get_commute_logs_by_user(user_id)
            if log.week_start >= since
        ]

    def get_breakdown(self, user_id: int) -> dict:
        """Total days per commute type with percentages, most used first"""
        days_by_type = {}
        total_days = 0
        for log in self.storage.get_commute_logs_by_user(user_id):
            days_by_type[log.commute_type] = days_by_type.get(log.commute_type, 0) + log.days_logged
            total_days += log.days_logged

        breakdown = [
            {
                "type": commute_type,
                "days": days,
                "percentage": int(days * 100 / total_days + 0.5) if total_days else 0,
            }
            for commute_type, days in days_by_type.items()
        ]
        breakdown.sort(key=lambda item: item["days"], reverse=True)
        return {"breakdown": breakdown, "totalDays": total_days}
