"""
Reward repository - Data access layer for rewards and redemptions.
"""
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import or_

from backend.models import Reward, Redemption


class RewardRepository:
    """Repository for Reward data access"""

    @staticmethod
    def get_all(db: Session, company_id: Optional[int] = None) -> List[Reward]:
        """Get rewards of a company plus global ones (all rewards without company)"""
        query = db.query(Reward)
        if company_id:
            query = query.filter(
                or_(
                    Reward.company_id == company_id,
                    Reward.company_id.is_(None)
                )
            )
        return query.order_by(Reward.cost_points, Reward.id).all()

    @staticmethod
    def get_by_id(db: Session, reward_id: int) -> Optional[Reward]:
        """Get reward by ID"""
        return db.query(Reward).filter(Reward.id == reward_id).first()

    @staticmethod
    def create(db: Session, reward: Reward) -> Reward:
        """Create new reward"""
        db.add(reward)
        db.commit()
        db.refresh(reward)
        return reward


class RedemptionRepository:
    """Repository for Redemption data access"""

    @staticmethod
    def get_with_rewards(db: Session, user_id: int) -> List[Tuple[Reward, Redemption]]:
        """Get (reward, redemption) pairs for a user, newest first"""
        rows = db.query(Reward, Redemption).join(
            Redemption, Redemption.reward_id == Reward.id
        ).filter(
            Redemption.user_id == user_id
        ).order_by(Redemption.id.desc()).all()
        return [(reward, redemption) for reward, redemption in rows]

    @staticmethod
    def add(db: Session, redemption: Redemption) -> Redemption:
        """Stage a redemption; the caller commits"""
        db.add(redemption)
        return redemption
