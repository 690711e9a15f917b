from sqlalchemy import Column, Integer, String, Boolean, DateTime, Date
from datetime import datetime
from backend.database import Base


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    domain = Column(String, nullable=True, unique=True)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, nullable=False, unique=True, index=True)
    email = Column(String, nullable=False, unique=True, index=True)
    name = Column(String, nullable=False)
    password = Column(String, nullable=False)  # argon2 hash
    company_id = Column(Integer, nullable=True, index=True)  # None = solo user
    points_total = Column(Integer, default=0, nullable=False)  # Cache of the ledger sum
    streak_count = Column(Integer, default=0, nullable=False)
    role = Column(String, default="user", nullable=False)  # user, admin
    created_at = Column(DateTime, default=datetime.utcnow)

    # Optional profile details
    home_address = Column(String, nullable=True)
    work_address = Column(String, nullable=True)
    commute_distance_km = Column(Integer, nullable=True)


class CommuteLog(Base):
    __tablename__ = "commute_logs"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    week_start = Column(Date, nullable=False, index=True)
    commute_type = Column(String, nullable=False)
    days_logged = Column(Integer, nullable=False)  # Always the count of true day flags
    distance_km = Column(Integer, default=0)
    co2_saved_kg = Column(Integer, default=0)
    created_at = Column(DateTime, default=datetime.utcnow)

    monday = Column(Boolean, default=False)
    tuesday = Column(Boolean, default=False)
    wednesday = Column(Boolean, default=False)
    thursday = Column(Boolean, default=False)
    friday = Column(Boolean, default=False)
    saturday = Column(Boolean, default=False)
    sunday = Column(Boolean, default=False)


class PointsTransaction(Base):
    __tablename__ = "points_transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    source = Column(String, nullable=False)
    points = Column(Integer, nullable=False)  # Signed
    created_at = Column(DateTime, default=datetime.utcnow)


class Challenge(Base):
    __tablename__ = "challenges"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    points_reward = Column(Integer, nullable=False)
    goal_type = Column(String, nullable=False)  # days, km, co2
    goal_value = Column(Integer, nullable=False)
    commute_type = Column(String, nullable=True)  # None = any commute type
    company_id = Column(Integer, nullable=True, index=True)  # None = global
    created_at = Column(DateTime, default=datetime.utcnow)


class ChallengeParticipant(Base):
    __tablename__ = "challenge_participants"

    id = Column(Integer, primary_key=True, index=True)
    challenge_id = Column(Integer, nullable=False, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    progress = Column(Integer, default=0, nullable=False)
    completed = Column(Boolean, default=False, nullable=False)
    joined_at = Column(DateTime, default=datetime.utcnow)


class Reward(Base):
    __tablename__ = "rewards"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String, nullable=False)
    description = Column(String, nullable=False)
    cost_points = Column(Integer, nullable=False)
    quantity_limit = Column(Integer, nullable=True)  # Informational, never decremented
    company_id = Column(Integer, nullable=True, index=True)  # None = global
    created_at = Column(DateTime, default=datetime.utcnow)


class Redemption(Base):
    __tablename__ = "redemptions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, nullable=False, index=True)
    reward_id = Column(Integer, nullable=False, index=True)
    redeemed_at = Column(DateTime, default=datetime.utcnow)
