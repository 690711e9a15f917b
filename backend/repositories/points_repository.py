"""
Points repository - Data access layer for the points ledger.
"""
from typing import List
from sqlalchemy import func
from sqlalchemy.orm import Session

from backend.models import PointsTransaction


class PointsTransactionRepository:
    """Repository for PointsTransaction data access"""

    @staticmethod
    def get_by_user(db: Session, user_id: int) -> List[PointsTransaction]:
        """Get ledger entries of a user, newest first"""
        return db.query(PointsTransaction).filter(
            PointsTransaction.user_id == user_id
        ).order_by(PointsTransaction.id.desc()).all()

    @staticmethod
    def sum_for_user(db: Session, user_id: int) -> int:
        """Sum of all ledger entries of a user"""
        total = db.query(func.coalesce(func.sum(PointsTransaction.points), 0)).filter(
            PointsTransaction.user_id == user_id
        ).scalar()
        return int(total)

    @staticmethod
    def add(db: Session, transaction: PointsTransaction) -> PointsTransaction:
        """Stage a ledger entry; the caller commits"""
        db.add(transaction)
        return transaction
