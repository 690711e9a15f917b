"""
In-memory storage backend.

Keeps model instances in dictionaries keyed by id. Instances are never
attached to a session; they are plain objects shaped like the ORM rows.
Used by tests and local runs without a database.
"""
from datetime import date, datetime
from typing import Dict, List, Optional, Tuple

from backend.constants import REWARD_REDEEMED_SOURCE, ROLE_USER, WEEKDAYS
from backend.exceptions import (
    UserNotFoundException, CommuteLogNotFoundException,
    ChallengeNotFoundException, ParticipantNotFoundException
)
from backend.models import (
    User, Company, CommuteLog, PointsTransaction,
    Challenge, ChallengeParticipant, Reward, Redemption
)
from backend.storage.base import Storage


class MemoryStorage(Storage):
    """Dictionary-backed implementation of Storage"""

    def __init__(self):
        self.users: Dict[int, User] = {}
        self.companies: Dict[int, Company] = {}
        self.commute_logs: Dict[int, CommuteLog] = {}
        self.points_transactions: Dict[int, PointsTransaction] = {}
        self.challenges: Dict[int, Challenge] = {}
        self.challenge_participants: Dict[int, ChallengeParticipant] = {}
        self.rewards: Dict[int, Reward] = {}
        self.redemptions: Dict[int, Redemption] = {}
        self._next_ids: Dict[str, int] = {}

    def _next_id(self, table: str) -> int:
        next_id = self._next_ids.get(table, 1)
        self._next_ids[table] = next_id + 1
        return next_id

    # ===== USERS =====

    def get_user(self, user_id: int) -> Optional[User]:
        return self.users.get(user_id)

    def get_user_by_username(self, username: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.username == username), None)

    def get_user_by_email(self, email: str) -> Optional[User]:
        return next((u for u in self.users.values() if u.email == email), None)

    def get_users(self) -> List[User]:
        return list(self.users.values())

    def create_user(self, data: dict) -> User:
        fields = {
            "company_id": None,
            "role": ROLE_USER,
            "home_address": None,
            "work_address": None,
            "commute_distance_km": None,
            **data,
        }
        user = User(
            id=self._next_id("users"),
            points_total=0,
            streak_count=0,
            created_at=datetime.utcnow(),
            **fields
        )
        self.users[user.id] = user
        return user

    def get_leaderboard(self, company_id: Optional[int], limit: int) -> List[User]:
        users = list(self.users.values())
        if company_id:
            users = [u for u in users if u.company_id == company_id]
        users.sort(key=lambda u: (-u.points_total, u.id))
        return users[:limit]

    def set_user_points_total(self, user_id: int, points_total: int) -> User:
        user = self._require_user(user_id)
        user.points_total = points_total
        return user

    def _require_user(self, user_id: int) -> User:
        user = self.users.get(user_id)
        if not user:
            raise UserNotFoundException(user_id)
        return user

    # ===== COMPANIES =====

    def get_company(self, company_id: int) -> Optional[Company]:
        return self.companies.get(company_id)

    def get_company_by_domain(self, domain: str) -> Optional[Company]:
        return next((c for c in self.companies.values() if c.domain == domain), None)

    def create_company(self, data: dict) -> Company:
        company = Company(id=self._next_id("companies"), domain=data.get("domain"), name=data["name"])
        self.companies[company.id] = company
        return company

    # ===== COMMUTE LOGS =====

    def create_commute_log(self, data: dict) -> CommuteLog:
        fields = {day: False for day in WEEKDAYS}
        fields.update({"distance_km": 0, "co2_saved_kg": 0})
        fields.update(data)
        log = CommuteLog(id=self._next_id("commute_logs"), created_at=datetime.utcnow(), **fields)
        self.commute_logs[log.id] = log
        return log

    def get_commute_logs_by_user(self, user_id: int) -> List[CommuteLog]:
        logs = [log for log in self.commute_logs.values() if log.user_id == user_id]
        return sorted(logs, key=lambda log: (log.week_start, log.id))

    def get_commute_log_by_user_and_week(self, user_id: int, week_start: date) -> Optional[CommuteLog]:
        matches = [
            log for log in self.commute_logs.values()
            if log.user_id == user_id and log.week_start == week_start
        ]
        return max(matches, key=lambda log: log.id) if matches else None

    def update_commute_log(self, log_id: int, changes: dict) -> CommuteLog:
        log = self.commute_logs.get(log_id)
        if not log:
            raise CommuteLogNotFoundException(log_id)
        for field, value in changes.items():
            setattr(log, field, value)
        return log

    # ===== POINTS LEDGER =====

    def create_points_transaction(self, user_id: int, source: str, points: int) -> PointsTransaction:
        user = self._require_user(user_id)
        transaction = PointsTransaction(
            id=self._next_id("points_transactions"),
            user_id=user_id,
            source=source,
            points=points,
            created_at=datetime.utcnow()
        )
        self.points_transactions[transaction.id] = transaction
        user.points_total += points
        return transaction

    def get_points_transactions_by_user(self, user_id: int) -> List[PointsTransaction]:
        transactions = [t for t in self.points_transactions.values() if t.user_id == user_id]
        return sorted(transactions, key=lambda t: t.id, reverse=True)

    def sum_points_transactions(self, user_id: int) -> int:
        return sum(t.points for t in self.points_transactions.values() if t.user_id == user_id)

    # ===== CHALLENGES =====

    def create_challenge(self, data: dict) -> Challenge:
        fields = {"commute_type": None, "company_id": None, **data}
        challenge = Challenge(id=self._next_id("challenges"), created_at=datetime.utcnow(), **fields)
        self.challenges[challenge.id] = challenge
        return challenge

    def get_challenges(self, company_id: Optional[int] = None) -> List[Challenge]:
        challenges = list(self.challenges.values())
        if company_id:
            challenges = [c for c in challenges if c.company_id in (company_id, None)]
        return sorted(challenges, key=lambda c: c.id)

    def get_challenge(self, challenge_id: int) -> Optional[Challenge]:
        return self.challenges.get(challenge_id)

    def update_challenge(self, challenge_id: int, changes: dict) -> Challenge:
        challenge = self.challenges.get(challenge_id)
        if not challenge:
            raise ChallengeNotFoundException(challenge_id)
        for field, value in changes.items():
            setattr(challenge, field, value)
        return challenge

    def delete_challenge(self, challenge_id: int) -> bool:
        if challenge_id not in self.challenges:
            return False
        del self.challenges[challenge_id]
        self.challenge_participants = {
            pid: p for pid, p in self.challenge_participants.items()
            if p.challenge_id != challenge_id
        }
        return True

    def join_challenge(self, challenge_id: int, user_id: int) -> ChallengeParticipant:
        participant = ChallengeParticipant(
            id=self._next_id("challenge_participants"),
            challenge_id=challenge_id,
            user_id=user_id,
            progress=0,
            completed=False,
            joined_at=datetime.utcnow()
        )
        self.challenge_participants[participant.id] = participant
        return participant

    def get_challenge_participants(self, challenge_id: int) -> List[ChallengeParticipant]:
        participants = [p for p in self.challenge_participants.values() if p.challenge_id == challenge_id]
        return sorted(participants, key=lambda p: p.id)

    def get_user_challenges(self, user_id: int) -> List[Tuple[Challenge, ChallengeParticipant]]:
        result = []
        for participant in sorted(self.challenge_participants.values(), key=lambda p: p.id):
            if participant.user_id != user_id:
                continue
            challenge = self.challenges.get(participant.challenge_id)
            if not challenge:
                raise ChallengeNotFoundException(participant.challenge_id)
            result.append((challenge, participant))
        return result

    def update_challenge_progress(self, participant_id: int, progress: int,
                                  completed: bool) -> ChallengeParticipant:
        participant = self.challenge_participants.get(participant_id)
        if not participant:
            raise ParticipantNotFoundException(participant_id)
        participant.progress = progress
        participant.completed = completed
        return participant

    # ===== REWARDS =====

    def create_reward(self, data: dict) -> Reward:
        fields = {"quantity_limit": None, "company_id": None, **data}
        reward = Reward(id=self._next_id("rewards"), created_at=datetime.utcnow(), **fields)
        self.rewards[reward.id] = reward
        return reward

    def get_rewards(self, company_id: Optional[int] = None) -> List[Reward]:
        rewards = list(self.rewards.values())
        if company_id:
            rewards = [r for r in rewards if r.company_id in (company_id, None)]
        return sorted(rewards, key=lambda r: (r.cost_points, r.id))

    def get_reward(self, reward_id: int) -> Optional[Reward]:
        return self.rewards.get(reward_id)

    def redeem_reward(self, user_id: int, reward: Reward) -> Redemption:
        self._require_user(user_id)
        redemption = Redemption(
            id=self._next_id("redemptions"),
            user_id=user_id,
            reward_id=reward.id,
            redeemed_at=datetime.utcnow()
        )
        self.redemptions[redemption.id] = redemption
        self.create_points_transaction(
            user_id,
            REWARD_REDEEMED_SOURCE.format(title=reward.title),
            -reward.cost_points
        )
        return redemption

    def get_user_redemptions(self, user_id: int) -> List[Tuple[Reward, Redemption]]:
        result = []
        for redemption in sorted(self.redemptions.values(), key=lambda r: r.id, reverse=True):
            if redemption.user_id != user_id:
                continue
            reward = self.rewards.get(redemption.reward_id)
            if reward:
                result.append((reward, redemption))
        return result
