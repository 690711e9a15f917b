"""
Storage interface shared by the in-memory and database backends.

Services only talk to this interface, so a backend can be swapped through
dependency injection (see backend.dependencies.get_storage).
"""
from abc import ABC, abstractmethod
from datetime import date
from typing import List, Optional, Tuple

from backend.models import (
    User, Company, CommuteLog, PointsTransaction,
    Challenge, ChallengeParticipant, Reward, Redemption
)


class Storage(ABC):
    """CRUD accessors over the commute tracker schema"""

    # ===== USERS =====

    @abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_username(self, username: str) -> Optional[User]: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[User]: ...

    @abstractmethod
    def get_users(self) -> List[User]: ...

    @abstractmethod
    def create_user(self, data: dict) -> User: ...

    @abstractmethod
    def get_leaderboard(self, company_id: Optional[int], limit: int) -> List[User]: ...

    @abstractmethod
    def set_user_points_total(self, user_id: int, points_total: int) -> User:
        """Overwrite the cached balance (used only by ledger reconciliation)"""

    # ===== COMPANIES =====

    @abstractmethod
    def get_company(self, company_id: int) -> Optional[Company]: ...

    @abstractmethod
    def get_company_by_domain(self, domain: str) -> Optional[Company]: ...

    @abstractmethod
    def create_company(self, data: dict) -> Company: ...

    # ===== COMMUTE LOGS =====

    @abstractmethod
    def create_commute_log(self, data: dict) -> CommuteLog: ...

    @abstractmethod
    def get_commute_logs_by_user(self, user_id: int) -> List[CommuteLog]: ...

    @abstractmethod
    def get_commute_log_by_user_and_week(self, user_id: int, week_start: date) -> Optional[CommuteLog]:
        """Newest log of the user for the given week_start"""

    @abstractmethod
    def update_commute_log(self, log_id: int, changes: dict) -> CommuteLog: ...

    # ===== POINTS LEDGER =====

    @abstractmethod
    def create_points_transaction(self, user_id: int, source: str, points: int) -> PointsTransaction:
        """Append a ledger entry and apply it to the user's balance as one unit"""

    @abstractmethod
    def get_points_transactions_by_user(self, user_id: int) -> List[PointsTransaction]: ...

    @abstractmethod
    def sum_points_transactions(self, user_id: int) -> int: ...

    # ===== CHALLENGES =====

    @abstractmethod
    def create_challenge(self, data: dict) -> Challenge: ...

    @abstractmethod
    def get_challenges(self, company_id: Optional[int] = None) -> List[Challenge]: ...

    @abstractmethod
    def get_challenge(self, challenge_id: int) -> Optional[Challenge]: ...

    @abstractmethod
    def update_challenge(self, challenge_id: int, changes: dict) -> Challenge: ...

    @abstractmethod
    def delete_challenge(self, challenge_id: int) -> bool: ...

    @abstractmethod
    def join_challenge(self, challenge_id: int, user_id: int) -> ChallengeParticipant: ...

    @abstractmethod
    def get_challenge_participants(self, challenge_id: int) -> List[ChallengeParticipant]: ...

    @abstractmethod
    def get_user_challenges(self, user_id: int) -> List[Tuple[Challenge, ChallengeParticipant]]: ...

    @abstractmethod
    def update_challenge_progress(self, participant_id: int, progress: int,
                                  completed: bool) -> ChallengeParticipant: ...

    # ===== REWARDS =====

    @abstractmethod
    def create_reward(self, data: dict) -> Reward: ...

    @abstractmethod
    def get_rewards(self, company_id: Optional[int] = None) -> List[Reward]: ...

    @abstractmethod
    def get_reward(self, reward_id: int) -> Optional[Reward]: ...

    @abstractmethod
    def redeem_reward(self, user_id: int, reward: Reward) -> Redemption:
        """Record a redemption together with its negative ledger entry"""

    @abstractmethod
    def get_user_redemptions(self, user_id: int) -> List[Tuple[Reward, Redemption]]: ...
