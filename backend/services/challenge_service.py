"""
Challenge service.
Manages challenges, participation and progress from logged commutes.
"""
import logging
from typing import List, Optional, Tuple

from backend.constants import (
    GOAL_TYPE_DAYS, GOAL_TYPE_KM, CHALLENGE_COMPLETED_SOURCE, ROLE_ADMIN
)
from backend.exceptions import (
    ChallengeNotFoundException, AlreadyParticipatingException,
    PermissionDeniedException, UserNotFoundException, InvalidChallengeUpdateException
)
from backend.models import Challenge, ChallengeParticipant, User
from backend.schemas import ChallengeCreate, ChallengeUpdate
from backend.services.points_service import PointsService
from backend.storage.base import Storage

logger = logging.getLogger("commute_tracker.challenges")


def progress_delta(challenge: Challenge, commute_type: str, days_logged: int, distance_km: int) -> Optional[int]:
    """
    How much one commute submission advances a challenge.

    - Type-specific challenge: only a matching commute counts;
      "days" goals add days_logged, "km" goals add distance_km.
    - General challenge (no commute_type): only "days" goals advance.
    - "co2" goals are never advanced.

    Returns:
        Progress to add, or None if the challenge is not affected
    """
    if challenge.commute_type:
        if challenge.commute_type != commute_type:
            return None
        if challenge.goal_type == GOAL_TYPE_DAYS:
            return days_logged
        if challenge.goal_type == GOAL_TYPE_KM:
            return distance_km or 0
        return None

    if challenge.goal_type == GOAL_TYPE_DAYS:
        return days_logged
    return None


class ChallengeService:
    """Service for challenges and challenge progress"""

    def __init__(self, storage: Storage, points_service: Optional[PointsService] = None):
        self.storage = storage
        self.points_service = points_service or PointsService(storage)

    def get_challenges(self, user: User) -> List[Challenge]:
        """Challenges visible to the user (company + global)"""
        return self.storage.get_challenges(user.company_id)

    def get_challenge(self, challenge_id: int) -> Challenge:
        challenge = self.storage.get_challenge(challenge_id)
        if not challenge:
            raise ChallengeNotFoundException(challenge_id)
        return challenge

    def create_challenge(self, admin: User, data: ChallengeCreate) -> Challenge:
        """Create a challenge for the admin's company"""
        self._require_admin(admin, "create challenges")
        challenge = self.storage.create_challenge({
            **data.model_dump(),
            "company_id": admin.company_id,
        })
        logger.info(f"Challenge {challenge.id} '{challenge.title}' created by user {admin.id}")
        return challenge

    def update_challenge(self, admin: User, challenge_id: int, data: ChallengeUpdate) -> Challenge:
        """
        Partially update a challenge of the admin's company.

        Raises:
            InvalidChallengeUpdateException: The merged dates are inverted, or
                goal_value would drop below a participant's progress
        """
        self._require_admin(admin, "update challenges")
        challenge = self.get_challenge(challenge_id)
        self._require_same_company(admin, challenge, "update")
        changes = data.model_dump(exclude_unset=True)

        start_date = changes.get("start_date", challenge.start_date)
        end_date = changes.get("end_date", challenge.end_date)
        if end_date < start_date:
            raise InvalidChallengeUpdateException(
                challenge_id, "end_date must not be before start_date"
            )

        if "goal_value" in changes:
            participants = self.storage.get_challenge_participants(challenge_id)
            highest = max((p.progress for p in participants), default=0)
            if changes["goal_value"] < highest:
                raise InvalidChallengeUpdateException(
                    challenge_id,
                    f"goal_value cannot be lower than current participant progress ({highest})"
                )

        return self.storage.update_challenge(challenge_id, changes)

    def delete_challenge(self, admin: User, challenge_id: int) -> None:
        """Delete a challenge of the admin's company"""
        self._require_admin(admin, "delete challenges")
        challenge = self.get_challenge(challenge_id)
        self._require_same_company(admin, challenge, "delete")
        if not self.storage.delete_challenge(challenge_id):
            raise ChallengeNotFoundException(challenge_id)
        logger.info(f"Challenge {challenge_id} deleted by user {admin.id}")

    def join_challenge(self, user_id: int, challenge_id: int) -> ChallengeParticipant:
        """Enroll a user in a challenge with zero progress"""
        challenge = self.get_challenge(challenge_id)
        user = self.storage.get_user(user_id)
        if not user:
            raise UserNotFoundException(user_id)
        if challenge.company_id not in (None, user.company_id):
            raise PermissionDeniedException("You can only join challenges of your company")

        already_joined = any(
            joined.id == challenge_id
            for joined, _ in self.storage.get_user_challenges(user_id)
        )
        if already_joined:
            raise AlreadyParticipatingException(user_id, challenge_id)

        return self.storage.join_challenge(challenge_id, user_id)

    def get_user_challenges(self, user_id: int) -> List[Tuple[Challenge, ChallengeParticipant]]:
        return self.storage.get_user_challenges(user_id)

    def apply_commute(self, user_id: int, commute_type: str, days_logged: int, distance_km: int) -> None:
        """
        Advance the user's open challenges with a newly created commute log.

        Progress is clamped to goal_value and never decreases. A participant
        that reaches the goal is marked completed and its points_reward is
        paid exactly once (guarded by the flag read before the update).

        Best effort: errors are logged and swallowed so the commute
        submission that triggered this still succeeds.
        """
        try:
            for challenge, participant in self.storage.get_user_challenges(user_id):
                if participant.completed:
                    continue

                delta = progress_delta(challenge, commute_type, days_logged, distance_km)
                if delta is None:
                    continue

                was_completed = participant.completed
                new_progress = min(participant.progress + delta, challenge.goal_value)
                completed = new_progress >= challenge.goal_value

                self.storage.update_challenge_progress(participant.id, new_progress, completed)

                if completed and not was_completed:
                    logger.info(f"User {user_id} completed challenge {challenge.id} '{challenge.title}'")
                    self.points_service.award_points(
                        user_id,
                        CHALLENGE_COMPLETED_SOURCE.format(title=challenge.title),
                        challenge.points_reward
                    )
        except Exception:
            logger.exception(f"Error updating challenge progress for user {user_id}")

    def _require_admin(self, user: User, action: str) -> None:
        if user.role != ROLE_ADMIN:
            raise PermissionDeniedException(f"Only admins can {action}")

    def _require_same_company(self, user: User, challenge: Challenge, action: str) -> None:
        if challenge.company_id != user.company_id:
            raise PermissionDeniedException(f"You can only {action} challenges for your company")
