"""
Points calculation service.
Handles commute points, CO2 savings and the points ledger.
"""
import logging
import math
from typing import List

from backend.constants import (
    POINTS_PER_DAY,
    CONSISTENCY_BONUS_POINTS,
    CONSISTENCY_BONUS_MIN_DAYS,
    COMMUTE_GAS_VEHICLE,
    EMISSION_FACTORS,
    BASELINE_EMISSION_FACTOR,
)
from backend.exceptions import UserNotFoundException
from backend.models import PointsTransaction
from backend.storage.base import Storage

logger = logging.getLogger("commute_tracker.points")


def calculate_commute_points(commute_type: str, days_logged: int) -> int:
    """
    Calculate points for a week of commuting.

    Formula: Points = PerDay[type] × days_logged (+ consistency bonus)

    The consistency bonus is paid for 3+ days of any type except gas_vehicle.
    Unknown types earn 0 per day; the API rejects them before they get here.

    Args:
        commute_type: Commute type name
        days_logged: Number of days commuted this way

    Returns:
        Points earned
    """
    points = POINTS_PER_DAY.get(commute_type, 0) * days_logged

    if days_logged >= CONSISTENCY_BONUS_MIN_DAYS and commute_type != COMMUTE_GAS_VEHICLE:
        points += CONSISTENCY_BONUS_POINTS

    return points


def calculate_co2_saved(commute_type: str, distance_km: float, days_logged: int) -> int:
    """
    Calculate kg of CO2 saved compared to driving an average gas car.

    saved = (0.19 - factor[type]) × distance_km × days_logged,
    floored at 0 and rounded half up to the nearest integer.
    """
    factor = EMISSION_FACTORS.get(commute_type, 0.0)
    saved = (BASELINE_EMISSION_FACTOR - factor) * (distance_km or 0) * days_logged
    return max(0, math.floor(saved + 0.5))


class PointsService:
    """Service for the points ledger"""

    def __init__(self, storage: Storage):
        self.storage = storage

    def award_points(self, user_id: int, source: str, points: int) -> PointsTransaction:
        """Append a ledger entry; the user's balance moves with it"""
        transaction = self.storage.create_points_transaction(user_id, source, points)
        logger.info(f"User {user_id}: {points:+d} points ({source})")
        return transaction

    def get_history(self, user_id: int) -> List[PointsTransaction]:
        """Get ledger entries of a user, newest first"""
        return self.storage.get_points_transactions_by_user(user_id)

    def reconcile_balance(self, user_id: int) -> int:
        """
        Recompute a user's cached balance from the ledger.

        The ledger is the source of truth; any drift in points_total is
        overwritten and reported.

        Returns:
            Ledger balance
        """
        user = self.storage.get_user(user_id)
        if not user:
            raise UserNotFoundException(user_id)

        ledger_total = self.storage.sum_points_transactions(user_id)
        if user.points_total != ledger_total:
            logger.warning(
                f"User {user_id}: balance drift {user.points_total} != ledger {ledger_total}, fixing"
            )
            self.storage.set_user_points_total(user_id, ledger_total)
        return ledger_total

    def reconcile_all_balances(self) -> int:
        """
        Reconcile every user's balance.

        Returns:
            Number of users whose balance was corrected
        """
        corrected = 0
        for user in self.storage.get_users():
            before = user.points_total
            if self.reconcile_balance(user.id) != before:
                corrected += 1
        return corrected
