"""
User service.
Registration, login, companies, profiles, leaderboard and stats.
"""
import logging
from typing import List, Optional

from backend.auth import hash_password, verify_password
from backend.exceptions import (
    ConflictException, CompanyNotFoundException, AuthenticationException
)
from backend.models import User, Company
from backend.schemas import UserCreate, CompanyCreate
from backend.storage.base import Storage

logger = logging.getLogger("commute_tracker.users")


class UserService:
    """Service for users and companies"""

    def __init__(self, storage: Storage):
        self.storage = storage

    def register(self, data: UserCreate) -> User:
        """
        Create a user with a hashed password.

        Raises:
            ConflictException: Username or email already taken
            CompanyNotFoundException: company_id does not exist
        """
        if self.storage.get_user_by_username(data.username):
            raise ConflictException("username", "Username already exists")
        if self.storage.get_user_by_email(data.email):
            raise ConflictException("email", "Email already exists")
        if data.company_id and not self.storage.get_company(data.company_id):
            raise CompanyNotFoundException(data.company_id)

        fields = data.model_dump(exclude={"password"})
        fields["password"] = hash_password(data.password)
        user = self.storage.create_user(fields)
        logger.info(f"Registered user {user.id} ({user.username})")
        return user

    def authenticate(self, username_or_email: str, password: str) -> User:
        """
        Find a user by username (or email) and check the password.

        Raises:
            AuthenticationException: Unknown user or wrong password
        """
        user = self.storage.get_user_by_username(username_or_email)
        if not user and "@" in username_or_email:
            user = self.storage.get_user_by_email(username_or_email)

        if not user or not verify_password(password, user.password):
            logger.warning(f"Failed login for '{username_or_email}'")
            raise AuthenticationException()
        return user

    def create_company(self, data: CompanyCreate) -> Company:
        """Create a company; domains are unique"""
        if data.domain and self.storage.get_company_by_domain(data.domain):
            raise ConflictException("domain", "Company with this domain already exists")
        return self.storage.create_company(data.model_dump())

    def get_company(self, company_id: Optional[int]) -> Optional[Company]:
        if not company_id:
            return None
        return self.storage.get_company(company_id)

    def get_leaderboard(self, user: User, limit: int) -> List[User]:
        """Top users of the caller's company (all users for solo callers)"""
        return self.storage.get_leaderboard(user.company_id, limit)

    def get_stats(self, user: User) -> dict:
        """Read-only rollup of points, streak, CO2 saved and completed challenges"""
        logs = self.storage.get_commute_logs_by_user(user.id)
        co2_saved = sum(log.co2_saved_kg or 0 for log in logs)

        completed_challenges = sum(
            1 for _, participant in self.storage.get_user_challenges(user.id)
            if participant.completed
        )

        return {
            "points": user.points_total,
            "streak": user.streak_count,
            "co2_saved": co2_saved,
            "completed_challenges": completed_challenges,
        }
