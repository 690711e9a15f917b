"""
Challenge repository - Data access layer for challenges and their participants.
"""
from typing import List, Optional, Tuple
from sqlalchemy.orm import Session
from sqlalchemy import or_

from backend.models import Challenge, ChallengeParticipant


class ChallengeRepository:
    """Repository for Challenge data access"""

    @staticmethod
    def get_all(db: Session, company_id: Optional[int] = None) -> List[Challenge]:
        """Get challenges of a company plus global ones (all challenges without company)"""
        query = db.query(Challenge)
        if company_id:
            query = query.filter(
                or_(
                    Challenge.company_id == company_id,
                    Challenge.company_id.is_(None)
                )
            )
        return query.order_by(Challenge.id).all()

    @staticmethod
    def get_by_id(db: Session, challenge_id: int) -> Optional[Challenge]:
        """Get challenge by ID"""
        return db.query(Challenge).filter(Challenge.id == challenge_id).first()

    @staticmethod
    def create(db: Session, challenge: Challenge) -> Challenge:
        """Create new challenge"""
        db.add(challenge)
        db.commit()
        db.refresh(challenge)
        return challenge

    @staticmethod
    def update(db: Session, challenge: Challenge) -> Challenge:
        """Update existing challenge"""
        db.commit()
        db.refresh(challenge)
        return challenge

    @staticmethod
    def delete(db: Session, challenge: Challenge) -> None:
        """Delete a challenge together with its participants"""
        db.query(ChallengeParticipant).filter(
            ChallengeParticipant.challenge_id == challenge.id
        ).delete(synchronize_session=False)
        db.delete(challenge)
        db.commit()


class ChallengeParticipantRepository:
    """Repository for ChallengeParticipant data access"""

    @staticmethod
    def get_by_id(db: Session, participant_id: int) -> Optional[ChallengeParticipant]:
        """Get participant by ID"""
        return db.query(ChallengeParticipant).filter(
            ChallengeParticipant.id == participant_id
        ).first()

    @staticmethod
    def get_by_challenge(db: Session, challenge_id: int) -> List[ChallengeParticipant]:
        """Get participants of a challenge"""
        return db.query(ChallengeParticipant).filter(
            ChallengeParticipant.challenge_id == challenge_id
        ).order_by(ChallengeParticipant.id).all()

    @staticmethod
    def get_with_challenges(db: Session, user_id: int) -> List[Tuple[Challenge, ChallengeParticipant]]:
        """Get (challenge, participant) pairs for a user"""
        rows = db.query(Challenge, ChallengeParticipant).join(
            ChallengeParticipant, ChallengeParticipant.challenge_id == Challenge.id
        ).filter(
            ChallengeParticipant.user_id == user_id
        ).order_by(ChallengeParticipant.id).all()
        return [(challenge, participant) for challenge, participant in rows]

    @staticmethod
    def create(db: Session, participant: ChallengeParticipant) -> ChallengeParticipant:
        """Create new participant"""
        db.add(participant)
        db.commit()
        db.refresh(participant)
        return participant

    @staticmethod
    def update(db: Session, participant: ChallengeParticipant) -> ChallengeParticipant:
        """Update existing participant"""
        db.commit()
        db.refresh(participant)
        return participant
