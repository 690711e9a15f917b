from fastapi import FastAPI, Depends, HTTPException, Request, Response, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from typing import List, Optional
import logging
import os
from pathlib import Path

from backend.database import engine, Base
from backend import models  # Import all models to register them with Base
from backend.schemas import (
    UserCreate, UserResponse, UserProfileResponse, LoginRequest, LoginResponse,
    CompanyCreate, CompanyResponse,
    CommuteLogCreate, CommuteLogResponse, CommuteBreakdownResponse,
    PointsTransactionResponse, StatsResponse,
    ChallengeCreate, ChallengeUpdate, ChallengeResponse,
    ChallengeParticipantResponse, UserChallengeResponse,
    RewardCreate, RewardResponse, RedeemResponse
)
from backend.auth import (
    create_auth_token, TokenIdentityProvider, StaticIdentityProvider, ChainIdentityProvider
)
from backend.dependencies import get_storage, get_current_user
from backend.exceptions import (
    UserNotFoundException, CompanyNotFoundException, ChallengeNotFoundException,
    RewardNotFoundException, AlreadyParticipatingException, InsufficientPointsException,
    PermissionDeniedException, ConflictException, AuthenticationException,
    InvalidChallengeUpdateException
)
from backend.storage import Storage
from backend.services.user_service import UserService
from backend.services.commute_service import CommuteService
from backend.services.challenge_service import ChallengeService
from backend.services.reward_service import RewardService
from backend.services.points_service import PointsService
from backend.services.scheduler_service import start_scheduler, stop_scheduler
from backend.constants import (
    DEFAULT_LOG_DIRECTORY_PROD, DEFAULT_LOG_DIRECTORY_DEV, CORS_ALLOWED_ORIGINS,
    ALLOW_QUERY_IDENTITY, DEV_USER_ID, SCHEDULER_ENABLED, DEFAULT_LEADERBOARD_LIMIT
)

LOG_DIR = os.getenv("COMMUTE_TRACKER_LOG_DIR", DEFAULT_LOG_DIRECTORY_PROD)
LOG_FILE = os.getenv("COMMUTE_TRACKER_LOG_FILE", "app.log")

# Create log directory if it doesn't exist (for development)
try:
    Path(LOG_DIR).mkdir(parents=True, exist_ok=True)
    log_path = Path(LOG_DIR) / LOG_FILE
except PermissionError:
    # Fallback to local directory if no permissions for /var/log
    LOG_DIR = DEFAULT_LOG_DIRECTORY_DEV
    Path(LOG_DIR).mkdir(parents=True, exist_ok=True)
    log_path = Path(LOG_DIR) / LOG_FILE

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(log_path),
        logging.StreamHandler()  # Also log to console
    ]
)

logger = logging.getLogger("commute_tracker")


def build_identity_provider():
    """Token/query identity, plus the fixed dev user when configured"""
    provider = TokenIdentityProvider(allow_query_param=ALLOW_QUERY_IDENTITY)
    if DEV_USER_ID:
        logger.warning(f"Development identity enabled: unauthenticated requests act as user {DEV_USER_ID}")
        return ChainIdentityProvider(provider, StaticIdentityProvider(int(DEV_USER_ID)))
    return provider


app = FastAPI(
    title="Commute Tracker API",
    description="Sustainable commute tracking with points, challenges and rewards",
    version="1.0.0"
)
app.state.identity_provider = build_identity_provider()

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Schema violations are client errors: 400 with the field errors"""
    logger.info(f"Validation error on {request.method} {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Invalid data", "errors": jsonable_encoder(exc.errors())}
    )


# Startup event
@app.on_event("startup")
async def startup_event():
    Base.metadata.create_all(bind=engine)
    logger.info(f"Commute Tracker API started. Logging to: {log_path}")
    if SCHEDULER_ENABLED:
        start_scheduler()

# Shutdown event
@app.on_event("shutdown")
async def shutdown_event():
    logger.info("Shutting down Commute Tracker API")
    stop_scheduler()

# Health check (no auth required)
@app.get("/")
async def root():
    return {"message": "Commute Tracker API", "status": "active"}


# ===== AUTH ENDPOINTS =====

@app.post("/api/auth/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(data: UserCreate, storage: Storage = Depends(get_storage)):
    """Create an account"""
    try:
        return UserService(storage).register(data)
    except ConflictException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CompanyNotFoundException:
        raise HTTPException(status_code=400, detail="Company not found")


@app.post("/api/auth/login", response_model=LoginResponse)
def login(data: LoginRequest, storage: Storage = Depends(get_storage)):
    """Log in with username or email; returns the user and an auth token"""
    try:
        user = UserService(storage).authenticate(data.username, data.password)
    except AuthenticationException as e:
        raise HTTPException(status_code=401, detail=str(e))

    return LoginResponse(
        **UserResponse.model_validate(user).model_dump(),
        auth_token=create_auth_token(user.id, user.username)
    )


@app.post("/api/auth/logout")
async def logout():
    """Tokens are stateless; the client drops its token"""
    return {"message": "Logged out successfully"}


# ===== USER ENDPOINTS =====

@app.get("/api/user", response_model=UserResponse)
def get_user(current_user: models.User = Depends(get_current_user)):
    """Get the calling user"""
    return current_user


@app.get("/api/user/profile", response_model=UserProfileResponse)
def get_user_profile(
    current_user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    """Get the calling user with their company"""
    company = UserService(storage).get_company(current_user.company_id)
    return UserProfileResponse(
        **UserResponse.model_validate(current_user).model_dump(),
        company=CompanyResponse.model_validate(company) if company else None
    )


@app.get("/api/user/stats", response_model=StatsResponse)
def get_user_stats(
    current_user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    """Points, streak, total CO2 saved and completed challenges"""
    return UserService(storage).get_stats(current_user)


@app.get("/api/user/points", response_model=List[PointsTransactionResponse])
def get_user_points(
    current_user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    """Get the calling user's points ledger, newest first"""
    return PointsService(storage).get_history(current_user.id)


@app.get("/api/user/challenges", response_model=List[UserChallengeResponse])
def get_user_challenges(
    current_user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    """Get the challenges the calling user joined, with progress"""
    pairs = ChallengeService(storage).get_user_challenges(current_user.id)
    return [
        {"challenge": challenge, "participant": participant}
        for challenge, participant in pairs
    ]


@app.get("/api/user/redemptions", response_model=List[RedeemResponse])
def get_user_redemptions(
    current_user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    """Get the calling user's redeemed rewards, newest first"""
    pairs = RewardService(storage).get_user_redemptions(current_user.id)
    return [
        {"reward": reward, "redemption": redemption}
        for reward, redemption in pairs
    ]


@app.get("/api/leaderboard", response_model=List[UserResponse])
def get_leaderboard(
    limit: int = DEFAULT_LEADERBOARD_LIMIT,
    current_user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    """Top users of the caller's company by points"""
    return UserService(storage).get_leaderboard(current_user, limit)


# ===== COMPANY ENDPOINTS =====

@app.post("/api/companies", response_model=CompanyResponse, status_code=status.HTTP_201_CREATED)
def create_company(data: CompanyCreate, storage: Storage = Depends(get_storage)):
    """Create a company"""
    try:
        return UserService(storage).create_company(data)
    except ConflictException as e:
        raise HTTPException(status_code=400, detail=str(e))


# ===== COMMUTE ENDPOINTS =====

@app.get("/api/commutes", response_model=List[CommuteLogResponse])
def get_commutes(
    current_user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    """Get all commute logs of the calling user"""
    return CommuteService(storage).get_logs(current_user.id)


@app.get("/api/commutes/current", response_model=List[CommuteLogResponse])
def get_current_commutes(
    current_user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    """Get the calling user's commute logs from the last 30 days"""
    return CommuteService(storage).get_recent_logs(current_user.id)


@app.get("/api/commutes/breakdown", response_model=CommuteBreakdownResponse)
def get_commute_breakdown(
    current_user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    """Days per commute type with percentages"""
    return CommuteService(storage).get_breakdown(current_user.id)


@app.post("/api/commutes", response_model=CommuteLogResponse)
@app.post("/api/commutes/log", response_model=CommuteLogResponse)
def log_commute(
    data: CommuteLogCreate,
    response: Response,
    current_user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    """
    Log a week of commuting.
    201 when a new weekly log is created, 200 when merged into an open week.
    """
    user_id = data.user_id or current_user.id
    try:
        log, created = CommuteService(storage).submit(user_id, data)
    except UserNotFoundException as e:
        raise HTTPException(status_code=404, detail=str(e))
    except Exception as e:
        logger.exception(f"Error logging commute for user {user_id}: {e}")
        raise HTTPException(status_code=500, detail="Error logging commute")

    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK
    return log


# ===== CHALLENGE ENDPOINTS =====

@app.get("/api/challenges", response_model=List[ChallengeResponse])
def get_challenges(
    current_user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    """Get challenges of the caller's company plus global ones"""
    return ChallengeService(storage).get_challenges(current_user)


@app.post("/api/challenges", response_model=ChallengeResponse, status_code=status.HTTP_201_CREATED)
def create_challenge(
    data: ChallengeCreate,
    current_user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    """Create a challenge (admins only)"""
    try:
        return ChallengeService(storage).create_challenge(current_user, data)
    except PermissionDeniedException as e:
        raise HTTPException(status_code=403, detail=str(e))


@app.put("/api/challenges/{challenge_id}", response_model=ChallengeResponse)
def update_challenge(
    challenge_id: int,
    data: ChallengeUpdate,
    current_user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    """Update a challenge (admins of its company only)"""
    try:
        return ChallengeService(storage).update_challenge(current_user, challenge_id, data)
    except ChallengeNotFoundException:
        raise HTTPException(status_code=404, detail="Challenge not found")
    except InvalidChallengeUpdateException as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PermissionDeniedException as e:
        raise HTTPException(status_code=403, detail=str(e))


@app.delete("/api/challenges/{challenge_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_challenge(
    challenge_id: int,
    current_user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    """Delete a challenge and its participants (admins of its company only)"""
    try:
        ChallengeService(storage).delete_challenge(current_user, challenge_id)
    except ChallengeNotFoundException:
        raise HTTPException(status_code=404, detail="Challenge not found")
    except PermissionDeniedException as e:
        raise HTTPException(status_code=403, detail=str(e))


@app.post(
    "/api/challenges/{challenge_id}/join",
    response_model=ChallengeParticipantResponse,
    status_code=status.HTTP_201_CREATED
)
def join_challenge(
    challenge_id: int,
    userId: Optional[int] = None,
    current_user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    """Join a challenge with zero progress"""
    try:
        return ChallengeService(storage).join_challenge(userId or current_user.id, challenge_id)
    except ChallengeNotFoundException:
        raise HTTPException(status_code=404, detail="Challenge not found")
    except UserNotFoundException:
        raise HTTPException(status_code=404, detail="User not found")
    except PermissionDeniedException as e:
        raise HTTPException(status_code=403, detail=str(e))
    except AlreadyParticipatingException as e:
        raise HTTPException(status_code=400, detail=str(e))


# ===== REWARD ENDPOINTS =====

@app.get("/api/rewards", response_model=List[RewardResponse])
def get_rewards(
    current_user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    """Get rewards of the caller's company plus global ones"""
    return RewardService(storage).get_rewards(current_user)


@app.post("/api/rewards", response_model=RewardResponse, status_code=status.HTTP_201_CREATED)
def create_reward(
    data: RewardCreate,
    current_user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    """Create a reward (admins only)"""
    try:
        return RewardService(storage).create_reward(current_user, data)
    except PermissionDeniedException as e:
        raise HTTPException(status_code=403, detail=str(e))


@app.post(
    "/api/rewards/{reward_id}/redeem",
    response_model=RedeemResponse,
    status_code=status.HTTP_201_CREATED
)
def redeem_reward(
    reward_id: int,
    current_user: models.User = Depends(get_current_user),
    storage: Storage = Depends(get_storage)
):
    """Spend points on a reward"""
    try:
        redemption, reward = RewardService(storage).redeem(current_user.id, reward_id)
    except RewardNotFoundException:
        raise HTTPException(status_code=404, detail="Reward not found")
    except PermissionDeniedException as e:
        raise HTTPException(status_code=403, detail=str(e))
    except InsufficientPointsException as e:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"message": str(e), "pointsNeeded": e.points_needed}
        )

    return {"redemption": redemption, "reward": reward}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("backend.main:app", host="0.0.0.0", port=8000, reload=False)
