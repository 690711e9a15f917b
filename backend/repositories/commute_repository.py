"""
Commute repository - Data access layer for CommuteLog model.
"""
from datetime import date
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import and_

from backend.models import CommuteLog


class CommuteLogRepository:
    """Repository for CommuteLog data access"""

    @staticmethod
    def get_by_id(db: Session, log_id: int) -> Optional[CommuteLog]:
        """Get commute log by ID"""
        return db.query(CommuteLog).filter(CommuteLog.id == log_id).first()

    @staticmethod
    def get_by_user(db: Session, user_id: int) -> List[CommuteLog]:
        """Get all commute logs of a user, oldest week first"""
        return db.query(CommuteLog).filter(
            CommuteLog.user_id == user_id
        ).order_by(CommuteLog.week_start, CommuteLog.id).all()

    @staticmethod
    def get_by_user_and_week(db: Session, user_id: int, week_start: date) -> Optional[CommuteLog]:
        """Get the newest commute log of a user for a week"""
        return db.query(CommuteLog).filter(
            and_(
                CommuteLog.user_id == user_id,
                CommuteLog.week_start == week_start
            )
        ).order_by(CommuteLog.id.desc()).first()

    @staticmethod
    def create(db: Session, log: CommuteLog) -> CommuteLog:
        """Create new commute log"""
        db.add(log)
        db.commit()
        db.refresh(log)
        return log

    @staticmethod
    def update(db: Session, log: CommuteLog) -> CommuteLog:
        """Update existing commute log"""
        db.commit()
        db.refresh(log)
        return log
