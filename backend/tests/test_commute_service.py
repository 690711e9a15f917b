"""
Tests for CommuteService.

Tests cover:
1. Day flag merge rules
2. Merge window
3. Creating vs merging weekly logs (points only on create)
4. Recent logs and commute breakdown
"""
import pytest
from datetime import date, timedelta
from pydantic import ValidationError

from backend.exceptions import UserNotFoundException
from backend.schemas import CommuteLogCreate
from backend.services.challenge_service import ChallengeService
from backend.services.commute_service import CommuteService, merge_day_flags, is_week_open

WEEK = date(2024, 3, 4)
TODAY = date(2024, 3, 6)


def submission(commute_type="cycle", days=("monday", "tuesday", "wednesday"),
               distance_km=10, week_start=WEEK, **explicit):
    flags = {day: True for day in days}
    flags.update(explicit)
    return CommuteLogCreate(
        week_start=week_start,
        commute_type=commute_type,
        days_logged=sum(1 for value in flags.values() if value),
        distance_km=distance_km,
        **flags
    )


class TestMergeDayFlags:
    """Tests for merge_day_flags"""

    def test_same_type_explicit_values_win(self):
        existing = {"monday": True, "tuesday": True}
        merged = merge_day_flags(existing, {"monday": False, "friday": True}, same_type=True)

        assert merged["monday"] is False
        assert merged["tuesday"] is True  # not mentioned, kept
        assert merged["friday"] is True

    def test_different_type_only_switches_days_on(self):
        existing = {"monday": True, "tuesday": True}
        merged = merge_day_flags(existing, {"monday": False, "thursday": True}, same_type=False)

        assert merged["monday"] is True
        assert merged["tuesday"] is True
        assert merged["thursday"] is True
        assert sum(merged.values()) == 3

    def test_all_weekdays_present(self):
        merged = merge_day_flags({}, {}, same_type=True)
        assert len(merged) == 7
        assert not any(merged.values())


class TestWeekWindow:
    """Tests for is_week_open"""

    def test_open_up_to_seven_days_after_start(self):
        assert is_week_open(WEEK, WEEK)
        assert is_week_open(WEEK, WEEK + timedelta(days=7))

    def test_closed_after_seven_days(self):
        assert not is_week_open(WEEK, WEEK + timedelta(days=8))


class TestSubmissionValidation:
    """Incoming payload checks"""

    def test_days_logged_must_match_flags(self):
        with pytest.raises(ValidationError):
            CommuteLogCreate(
                week_start=WEEK, commute_type="cycle", days_logged=3,
                monday=True, tuesday=True
            )

    def test_unknown_commute_type_rejected(self):
        with pytest.raises(ValidationError):
            CommuteLogCreate(week_start=WEEK, commute_type="Cycle", days_logged=1, monday=True)


class TestSubmit:
    """Tests for CommuteService.submit"""

    def test_fresh_week_creates_log_and_awards_points(self, storage, make_user):
        """cycle 3 days 10 km -> co2 6, points 100"""
        user = make_user()
        service = CommuteService(storage)

        log, created = service.submit(user.id, submission(), today=TODAY)

        assert created is True
        assert log.days_logged == 3
        assert log.co2_saved_kg == 6
        assert storage.get_user(user.id).points_total == 100
        transactions = storage.get_points_transactions_by_user(user.id)
        assert [(t.source, t.points) for t in transactions] == [("cycle commute", 100)]

    def test_different_type_merges_into_open_week(self, storage, make_user):
        """public_transport thu/fri on top of cycle mon-wed -> 5 days, no new points"""
        user = make_user()
        service = CommuteService(storage)
        first, _ = service.submit(user.id, submission(), today=TODAY)

        merged, created = service.submit(
            user.id,
            submission("public_transport", days=("thursday", "friday"), distance_km=None),
            today=TODAY
        )

        assert created is False
        assert merged.id == first.id
        assert merged.commute_type == "public_transport"
        assert merged.days_logged == 5
        assert merged.distance_km == 10  # kept from the stored log
        assert merged.co2_saved_kg == 8
        assert len(storage.get_commute_logs_by_user(user.id)) == 1
        assert len(storage.get_points_transactions_by_user(user.id)) == 1
        assert storage.get_user(user.id).points_total == 100

    def test_resubmitting_same_entry_is_idempotent(self, storage, make_user):
        user = make_user()
        service = CommuteService(storage)
        service.submit(user.id, submission(), today=TODAY)

        log, created = service.submit(user.id, submission(), today=TODAY)

        assert created is False
        assert log.days_logged == 3
        assert (log.monday, log.tuesday, log.wednesday, log.thursday) == (True, True, True, False)
        assert storage.get_user(user.id).points_total == 100

    def test_same_type_merge_recounts_days_from_flags(self, storage, make_user):
        """days_logged follows the merged flags, not the payload"""
        user = make_user()
        service = CommuteService(storage)
        service.submit(user.id, submission(), today=TODAY)

        log, _ = service.submit(
            user.id, submission(days=("tuesday",), monday=False), today=TODAY
        )

        assert log.monday is False
        assert log.tuesday is True
        assert log.wednesday is True
        assert log.days_logged == 2

    def test_closed_week_creates_new_log(self, storage, make_user):
        user = make_user()
        service = CommuteService(storage)
        service.submit(user.id, submission(), today=TODAY)

        log, created = service.submit(user.id, submission(), today=WEEK + timedelta(days=8))

        assert created is True
        assert len(storage.get_commute_logs_by_user(user.id)) == 2
        assert storage.get_user(user.id).points_total == 200

    def test_gas_vehicle_week_awards_nothing(self, storage, make_user):
        user = make_user()
        service = CommuteService(storage)

        log, created = service.submit(user.id, submission("gas_vehicle"), today=TODAY)

        assert created is True
        assert log.co2_saved_kg == 0
        assert storage.get_points_transactions_by_user(user.id) == []

    def test_merge_does_not_advance_challenges(self, storage, make_user, make_challenge):
        """Only a newly created weekly log moves challenge progress"""
        user = make_user()
        challenge = make_challenge(goal_type="days", goal_value=10, points_reward=50)
        ChallengeService(storage).join_challenge(user.id, challenge.id)
        service = CommuteService(storage)
        service.submit(user.id, submission(), today=TODAY)

        service.submit(user.id, submission(days=("thursday", "friday")), today=TODAY)

        _, participant = storage.get_user_challenges(user.id)[0]
        assert participant.progress == 3
        assert participant.completed is False
        transactions = storage.get_points_transactions_by_user(user.id)
        assert [(t.source, t.points) for t in transactions] == [("cycle commute", 100)]

    def test_failing_challenge_update_keeps_submission(self, storage, make_user, monkeypatch):
        user = make_user()

        def broken(user_id):
            raise RuntimeError("storage offline")

        monkeypatch.setattr(storage, "get_user_challenges", broken)

        log, created = CommuteService(storage).submit(user.id, submission(), today=TODAY)

        assert created is True
        assert [stored.id for stored in storage.get_commute_logs_by_user(user.id)] == [log.id]
        transactions = storage.get_points_transactions_by_user(user.id)
        assert [(t.source, t.points) for t in transactions] == [("cycle commute", 100)]
        assert storage.get_user(user.id).points_total == 100

    def test_unknown_user(self, storage):
        with pytest.raises(UserNotFoundException):
            CommuteService(storage).submit(404, submission(), today=TODAY)


class TestReadPaths:
    """Tests for recent logs and breakdown"""

    def test_recent_logs_trailing_thirty_days(self, storage, make_user):
        user = make_user()
        service = CommuteService(storage)
        old_week = TODAY - timedelta(days=45)
        service.submit(user.id, submission(week_start=old_week), today=old_week)
        service.submit(user.id, submission(week_start=WEEK), today=TODAY)

        recent = service.get_recent_logs(user.id, today=TODAY)

        assert [log.week_start for log in recent] == [WEEK]

    def test_breakdown_by_type(self, storage, make_user):
        user = make_user()
        service = CommuteService(storage)
        next_week = WEEK + timedelta(days=7)
        service.submit(user.id, submission(), today=TODAY)
        service.submit(
            user.id,
            submission("walk", days=("monday", "tuesday"), week_start=next_week),
            today=next_week
        )

        result = service.get_breakdown(user.id)

        assert result["totalDays"] == 5
        assert result["breakdown"] == [
            {"type": "cycle", "days": 3, "percentage": 60},
            {"type": "walk", "days": 2, "percentage": 40},
        ]

    def test_breakdown_without_logs(self, storage, make_user):
        user = make_user()
        assert CommuteService(storage).get_breakdown(user.id) == {"breakdown": [], "totalDays": 0}
