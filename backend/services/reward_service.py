"""
Reward service.
Handles the reward catalogue and redemptions.
"""
import logging
from typing import List, Tuple

from backend.constants import ROLE_ADMIN
from backend.exceptions import (
    RewardNotFoundException, InsufficientPointsException,
    PermissionDeniedException, UserNotFoundException
)
from backend.models import Reward, Redemption, User
from backend.schemas import RewardCreate
from backend.storage.base import Storage

logger = logging.getLogger("commute_tracker.rewards")


class RewardService:
    """Service for rewards and redemptions"""

    def __init__(self, storage: Storage):
        self.storage = storage

    def get_rewards(self, user: User) -> List[Reward]:
        """Rewards visible to the user (company + global)"""
        return self.storage.get_rewards(user.company_id)

    def create_reward(self, admin: User, data: RewardCreate) -> Reward:
        """Create a reward for the admin's company"""
        if admin.role != ROLE_ADMIN:
            raise PermissionDeniedException("Only admins can create rewards")
        return self.storage.create_reward({**data.model_dump(), "company_id": admin.company_id})

    def redeem(self, user_id: int, reward_id: int) -> Tuple[Redemption, Reward]:
        """
        Redeem a reward for points.

        The redemption and its negative ledger entry are stored together.
        quantity_limit is not checked or decremented.

        Raises:
            RewardNotFoundException: Unknown reward
            PermissionDeniedException: Reward belongs to another company
            InsufficientPointsException: Balance below cost_points
        """
        reward = self.storage.get_reward(reward_id)
        if not reward:
            raise RewardNotFoundException(reward_id)

        user = self.storage.get_user(user_id)
        if not user:
            raise UserNotFoundException(user_id)
        if reward.company_id not in (None, user.company_id):
            raise PermissionDeniedException("You can only redeem rewards of your company")

        if user.points_total < reward.cost_points:
            raise InsufficientPointsException(reward.cost_points - user.points_total)

        redemption = self.storage.redeem_reward(user_id, reward)
        logger.info(f"User {user_id} redeemed reward {reward.id} for {reward.cost_points} points")
        return redemption, reward

    def get_user_redemptions(self, user_id: int) -> List[Tuple[Reward, Redemption]]:
        return self.storage.get_user_redemptions(user_id)
