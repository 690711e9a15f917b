"""
User repository - Data access layer for User and Company models.
"""
from typing import List, Optional
from sqlalchemy.orm import Session

from backend.models import User, Company


class UserRepository:
    """Repository for User data access"""

    @staticmethod
    def get_by_id(db: Session, user_id: int) -> Optional[User]:
        """Get user by ID"""
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_by_username(db: Session, username: str) -> Optional[User]:
        """Get user by username"""
        return db.query(User).filter(User.username == username).first()

    @staticmethod
    def get_by_email(db: Session, email: str) -> Optional[User]:
        """Get user by email"""
        return db.query(User).filter(User.email == email).first()

    @staticmethod
    def get_all(db: Session) -> List[User]:
        """Get all users"""
        return db.query(User).order_by(User.id).all()

    @staticmethod
    def get_leaderboard(db: Session, company_id: Optional[int], limit: int) -> List[User]:
        """Get users ordered by points, optionally restricted to one company"""
        query = db.query(User)
        if company_id:
            query = query.filter(User.company_id == company_id)
        return query.order_by(User.points_total.desc(), User.id).limit(limit).all()

    @staticmethod
    def increment_points(db: Session, user_id: int, points: int) -> int:
        """
        Add points to the cached balance without committing.

        Returns:
            Number of rows updated (0 if the user does not exist)
        """
        return db.query(User).filter(User.id == user_id).update(
            {User.points_total: User.points_total + points},
            synchronize_session="fetch"
        )

    @staticmethod
    def create(db: Session, user: User) -> User:
        """Create new user"""
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def update(db: Session, user: User) -> User:
        """Update existing user"""
        db.commit()
        db.refresh(user)
        return user


class CompanyRepository:
    """Repository for Company data access"""

    @staticmethod
    def get_by_id(db: Session, company_id: int) -> Optional[Company]:
        """Get company by ID"""
        return db.query(Company).filter(Company.id == company_id).first()

    @staticmethod
    def get_by_domain(db: Session, domain: str) -> Optional[Company]:
        """Get company by email domain"""
        return db.query(Company).filter(Company.domain == domain).first()

    @staticmethod
    def create(db: Session, company: Company) -> Company:
        """Create new company"""
        db.add(company)
        db.commit()
        db.refresh(company)
        return company
