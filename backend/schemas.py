from pydantic import BaseModel, Field, model_validator
from datetime import datetime, date
from typing import List, Literal, Optional

from backend.constants import WEEKDAYS

CommuteType = Literal[
    "walk",
    "cycle",
    "public_transport",
    "carpool",
    "electric_vehicle",
    "gas_vehicle",
    "remote_work",
]

GoalType = Literal["days", "km", "co2"]


# Company schemas
class CompanyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    domain: Optional[str] = Field(None, max_length=200)


class CompanyResponse(CompanyCreate):
    id: int

    class Config:
        from_attributes = True


# User schemas
class UserBase(BaseModel):
    username: str = Field(..., min_length=1, max_length=100)
    email: str = Field(..., pattern=r"^[^@\s]+@[^@\s]+$", max_length=200)
    name: str = Field(..., min_length=1, max_length=200)
    company_id: Optional[int] = None
    role: Literal["user", "admin"] = "user"
    home_address: Optional[str] = None
    work_address: Optional[str] = None
    commute_distance_km: Optional[int] = Field(None, ge=0)


class UserCreate(UserBase):
    password: str = Field(..., min_length=6, max_length=128)


class UserResponse(UserBase):
    id: int
    points_total: int = 0
    streak_count: int = 0
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserProfileResponse(UserResponse):
    company: Optional[CompanyResponse] = None


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1)  # Username or email
    password: str = Field(..., min_length=1)


class LoginResponse(UserResponse):
    auth_token: str


# Commute log schemas
class CommuteLogCreate(BaseModel):
    user_id: Optional[int] = None  # Defaults to the authenticated user
    week_start: date
    commute_type: CommuteType
    days_logged: int = Field(..., ge=0, le=7)
    distance_km: Optional[int] = Field(None, ge=0)

    # None means "not mentioned" and matters when merging into an existing week
    monday: Optional[bool] = None
    tuesday: Optional[bool] = None
    wednesday: Optional[bool] = None
    thursday: Optional[bool] = None
    friday: Optional[bool] = None
    saturday: Optional[bool] = None
    sunday: Optional[bool] = None

    @model_validator(mode="after")
    def check_days_match_flags(self):
        selected_days = sum(1 for day in WEEKDAYS if getattr(self, day))
        if self.days_logged != selected_days:
            raise ValueError(
                f"Days logged ({self.days_logged}) must match the number of selected days ({selected_days})"
            )
        return self

    def day_flags(self) -> dict:
        """Day flags as submitted, None for days not mentioned"""
        return {day: getattr(self, day) for day in WEEKDAYS}


class CommuteLogResponse(BaseModel):
    id: int
    user_id: int
    week_start: date
    commute_type: str
    days_logged: int
    distance_km: int = 0
    co2_saved_kg: int = 0
    created_at: Optional[datetime] = None
    monday: bool = False
    tuesday: bool = False
    wednesday: bool = False
    thursday: bool = False
    friday: bool = False
    saturday: bool = False
    sunday: bool = False

    class Config:
        from_attributes = True


class CommuteBreakdownItem(BaseModel):
    type: str
    days: int
    percentage: int


class CommuteBreakdownResponse(BaseModel):
    breakdown: List[CommuteBreakdownItem]
    totalDays: int


# Points schemas
class PointsTransactionResponse(BaseModel):
    id: int
    user_id: int
    source: str
    points: int
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# Challenge schemas
class ChallengeBase(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=1000)
    start_date: date
    end_date: date
    points_reward: int = Field(..., ge=0)
    goal_type: GoalType
    goal_value: int = Field(..., ge=1)
    commute_type: Optional[CommuteType] = None  # None = any commute type


class ChallengeCreate(ChallengeBase):
    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ChallengeUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1, max_length=1000)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    points_reward: Optional[int] = Field(None, ge=0)
    goal_type: Optional[GoalType] = None
    goal_value: Optional[int] = Field(None, ge=1)
    commute_type: Optional[CommuteType] = None  # null clears it (any commute type)

    @model_validator(mode="after")
    def check_no_null_required_fields(self):
        nulled = sorted(
            field for field in self.model_fields_set
            if field != "commute_type" and getattr(self, field) is None
        )
        if nulled:
            raise ValueError(f"Fields cannot be null: {', '.join(nulled)}")
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class ChallengeResponse(ChallengeBase):
    id: int
    company_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ChallengeParticipantResponse(BaseModel):
    id: int
    challenge_id: int
    user_id: int
    progress: int
    completed: bool
    joined_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class UserChallengeResponse(BaseModel):
    challenge: ChallengeResponse
    participant: ChallengeParticipantResponse


# Reward schemas
class RewardCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=1000)
    cost_points: int = Field(..., ge=0)
    quantity_limit: Optional[int] = Field(None, ge=0)


class RewardResponse(RewardCreate):
    id: int
    company_id: Optional[int] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RedemptionResponse(BaseModel):
    id: int
    user_id: int
    reward_id: int
    redeemed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class RedeemResponse(BaseModel):
    redemption: RedemptionResponse
    reward: RewardResponse


# Stats schemas
class StatsResponse(BaseModel):
    points: int
    streak: int
    co2_saved: int
    completed_challenges: int
