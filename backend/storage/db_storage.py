"""
Database storage backend built on the SQLAlchemy repositories.

Every write commits once; on a SQLAlchemy error the session is rolled back
and DatabaseException is raised, so a failed request never leaves a
half-applied change in the session.
"""
import logging
from contextlib import contextmanager
from datetime import date
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.constants import REWARD_REDEEMED_SOURCE
from backend.exceptions import (
    DatabaseException, UserNotFoundException, CommuteLogNotFoundException,
    ChallengeNotFoundException, ParticipantNotFoundException
)
from backend.models import (
    User, Company, CommuteLog, PointsTransaction,
    Challenge, ChallengeParticipant, Reward, Redemption
)
from backend.repositories.user_repository import UserRepository, CompanyRepository
from backend.repositories.commute_repository import CommuteLogRepository
from backend.repositories.points_repository import PointsTransactionRepository
from backend.repositories.challenge_repository import (
    ChallengeRepository, ChallengeParticipantRepository
)
from backend.repositories.reward_repository import RewardRepository, RedemptionRepository
from backend.storage.base import Storage

logger = logging.getLogger("commute_tracker.storage")


class DatabaseStorage(Storage):
    """SQLAlchemy implementation of Storage bound to one session"""

    def __init__(self, db: Session):
        self.db = db
        self.user_repo = UserRepository()
        self.company_repo = CompanyRepository()
        self.commute_repo = CommuteLogRepository()
        self.points_repo = PointsTransactionRepository()
        self.challenge_repo = ChallengeRepository()
        self.participant_repo = ChallengeParticipantRepository()
        self.reward_repo = RewardRepository()
        self.redemption_repo = RedemptionRepository()

    @contextmanager
    def _write(self, operation: str):
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Database {operation} failed: {e}")
            raise DatabaseException(operation, str(e)) from e

    # ===== USERS =====

    def get_user(self, user_id: int) -> Optional[User]:
        return self.user_repo.get_by_id(self.db, user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return self.user_repo.get_by_username(self.db, username)

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.user_repo.get_by_email(self.db, email)

    def get_users(self) -> List[User]:
        return self.user_repo.get_all(self.db)

    def create_user(self, data: dict) -> User:
        with self._write("create user"):
            return self.user_repo.create(self.db, User(points_total=0, streak_count=0, **data))

    def get_leaderboard(self, company_id: Optional[int], limit: int) -> List[User]:
        return self.user_repo.get_leaderboard(self.db, company_id, limit)

    def set_user_points_total(self, user_id: int, points_total: int) -> User:
        user = self.get_user(user_id)
        if not user:
            raise UserNotFoundException(user_id)
        with self._write("set points total"):
            user.points_total = points_total
            return self.user_repo.update(self.db, user)

    # ===== COMPANIES =====

    def get_company(self, company_id: int) -> Optional[Company]:
        return self.company_repo.get_by_id(self.db, company_id)

    def get_company_by_domain(self, domain: str) -> Optional[Company]:
        return self.company_repo.get_by_domain(self.db, domain)

    def create_company(self, data: dict) -> Company:
        with self._write("create company"):
            return self.company_repo.create(self.db, Company(**data))

    # ===== COMMUTE LOGS =====

    def create_commute_log(self, data: dict) -> CommuteLog:
        with self._write("create commute log"):
            return self.commute_repo.create(self.db, CommuteLog(**data))

    def get_commute_logs_by_user(self, user_id: int) -> List[CommuteLog]:
        return self.commute_repo.get_by_user(self.db, user_id)

    def get_commute_log_by_user_and_week(self, user_id: int, week_start: date) -> Optional[CommuteLog]:
        return self.commute_repo.get_by_user_and_week(self.db, user_id, week_start)

    def update_commute_log(self, log_id: int, changes: dict) -> CommuteLog:
        log = self.commute_repo.get_by_id(self.db, log_id)
        if not log:
            raise CommuteLogNotFoundException(log_id)
        with self._write("update commute log"):
            for field, value in changes.items():
                setattr(log, field, value)
            return self.commute_repo.update(self.db, log)

    # ===== POINTS LEDGER =====

    def create_points_transaction(self, user_id: int, source: str, points: int) -> PointsTransaction:
        with self._write("create points transaction"):
            transaction = self._stage_transaction(user_id, source, points)
            self.db.commit()
            self.db.refresh(transaction)
            return transaction

    def _stage_transaction(self, user_id: int, source: str, points: int) -> PointsTransaction:
        """Stage ledger row and balance update in the current transaction"""
        if not self.user_repo.increment_points(self.db, user_id, points):
            self.db.rollback()
            raise UserNotFoundException(user_id)
        return self.points_repo.add(
            self.db,
            PointsTransaction(user_id=user_id, source=source, points=points)
        )

    def get_points_transactions_by_user(self, user_id: int) -> List[PointsTransaction]:
        return self.points_repo.get_by_user(self.db, user_id)

    def sum_points_transactions(self, user_id: int) -> int:
        return self.points_repo.sum_for_user(self.db, user_id)

    # ===== CHALLENGES =====

    def create_challenge(self, data: dict) -> Challenge:
        with self._write("create challenge"):
            return self.challenge_repo.create(self.db, Challenge(**data))

    def get_challenges(self, company_id: Optional[int] = None) -> List[Challenge]:
        return self.challenge_repo.get_all(self.db, company_id)

    def get_challenge(self, challenge_id: int) -> Optional[Challenge]:
        return self.challenge_repo.get_by_id(self.db, challenge_id)

    def update_challenge(self, challenge_id: int, changes: dict) -> Challenge:
        challenge = self.get_challenge(challenge_id)
        if not challenge:
            raise ChallengeNotFoundException(challenge_id)
        with self._write("update challenge"):
            for field, value in changes.items():
                setattr(challenge, field, value)
            return self.challenge_repo.update(self.db, challenge)

    def delete_challenge(self, challenge_id: int) -> bool:
        challenge = self.get_challenge(challenge_id)
        if not challenge:
            return False
        with self._write("delete challenge"):
            self.challenge_repo.delete(self.db, challenge)
        return True

    def join_challenge(self, challenge_id: int, user_id: int) -> ChallengeParticipant:
        participant = ChallengeParticipant(
            challenge_id=challenge_id,
            user_id=user_id,
            progress=0,
            completed=False
        )
        with self._write("join challenge"):
            return self.participant_repo.create(self.db, participant)

    def get_challenge_participants(self, challenge_id: int) -> List[ChallengeParticipant]:
        return self.participant_repo.get_by_challenge(self.db, challenge_id)

    def get_user_challenges(self, user_id: int) -> List[Tuple[Challenge, ChallengeParticipant]]:
        return self.participant_repo.get_with_challenges(self.db, user_id)

    def update_challenge_progress(self, participant_id: int, progress: int,
                                  completed: bool) -> ChallengeParticipant:
        participant = self.participant_repo.get_by_id(self.db, participant_id)
        if not participant:
            raise ParticipantNotFoundException(participant_id)
        with self._write("update challenge progress"):
            participant.progress = progress
            participant.completed = completed
            return self.participant_repo.update(self.db, participant)

    # ===== REWARDS =====

    def create_reward(self, data: dict) -> Reward:
        with self._write("create reward"):
            return self.reward_repo.create(self.db, Reward(**data))

    def get_rewards(self, company_id: Optional[int] = None) -> List[Reward]:
        return self.reward_repo.get_all(self.db, company_id)

    def get_reward(self, reward_id: int) -> Optional[Reward]:
        return self.reward_repo.get_by_id(self.db, reward_id)

    def redeem_reward(self, user_id: int, reward: Reward) -> Redemption:
        with self._write("redeem reward"):
            redemption = self.redemption_repo.add(
                self.db,
                Redemption(user_id=user_id, reward_id=reward.id)
            )
            self._stage_transaction(
                user_id,
                REWARD_REDEEMED_SOURCE.format(title=reward.title),
                -reward.cost_points
            )
            self.db.commit()
            self.db.refresh(redemption)
            return redemption

    def get_user_redemptions(self, user_id: int) -> List[Tuple[Reward, Redemption]]:
        return self.redemption_repo.get_with_rewards(self.db, user_id)
