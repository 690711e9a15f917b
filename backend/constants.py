"""
Application constants and environment-driven configuration.
"""
import os

# Database
DATABASE_URL = os.getenv("COMMUTE_TRACKER_DATABASE_URL", "sqlite:///./commute_tracker.db")

# Logging
DEFAULT_LOG_DIRECTORY_PROD = "/var/log/commute_tracker"
DEFAULT_LOG_DIRECTORY_DEV = "./logs"

# CORS
CORS_ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv(
        "COMMUTE_TRACKER_CORS_ORIGINS",
        "http://localhost:5173,http://localhost:3000"
    ).split(",")
    if origin.strip()
]

# Auth tokens
AUTH_TOKEN_SECRET = os.getenv("COMMUTE_TRACKER_TOKEN_SECRET", "dev-token-secret-change-me")
AUTH_TOKEN_ALGORITHM = "HS256"
AUTH_TOKEN_TTL_HOURS = 24
AUTH_TOKEN_HEADER = "X-Auth-Token"

# Identity
# userId query parameter accepted as an identity (front end compatibility)
ALLOW_QUERY_IDENTITY = os.getenv("COMMUTE_TRACKER_ALLOW_QUERY_IDENTITY", "true").lower() == "true"
# Fixed identity for development; unset in production
DEV_USER_ID = os.getenv("COMMUTE_TRACKER_DEV_USER_ID")

# Scheduler
SCHEDULER_ENABLED = os.getenv("COMMUTE_TRACKER_SCHEDULER_ENABLED", "true").lower() == "true"
BALANCE_RECONCILE_HOUR = int(os.getenv("COMMUTE_TRACKER_RECONCILE_HOUR", "3"))

# Roles
ROLE_USER = "user"
ROLE_ADMIN = "admin"

# Commute types
COMMUTE_WALK = "walk"
COMMUTE_CYCLE = "cycle"
COMMUTE_PUBLIC_TRANSPORT = "public_transport"
COMMUTE_CARPOOL = "carpool"
COMMUTE_ELECTRIC_VEHICLE = "electric_vehicle"
COMMUTE_GAS_VEHICLE = "gas_vehicle"
COMMUTE_REMOTE_WORK = "remote_work"

COMMUTE_TYPES = (
    COMMUTE_WALK,
    COMMUTE_CYCLE,
    COMMUTE_PUBLIC_TRANSPORT,
    COMMUTE_CARPOOL,
    COMMUTE_ELECTRIC_VEHICLE,
    COMMUTE_GAS_VEHICLE,
    COMMUTE_REMOTE_WORK,
)

# Points earned per logged day
POINTS_PER_DAY = {
    COMMUTE_WALK: 30,
    COMMUTE_CYCLE: 25,
    COMMUTE_PUBLIC_TRANSPORT: 20,
    COMMUTE_CARPOOL: 15,
    COMMUTE_ELECTRIC_VEHICLE: 10,
    COMMUTE_REMOTE_WORK: 15,
    COMMUTE_GAS_VEHICLE: 0,
}

# Flat bonus for a consistent week of sustainable commuting
CONSISTENCY_BONUS_POINTS = 25
CONSISTENCY_BONUS_MIN_DAYS = 3

# Emission factors in kg CO2 per km
EMISSION_FACTORS = {
    COMMUTE_WALK: 0.0,
    COMMUTE_CYCLE: 0.0,
    COMMUTE_PUBLIC_TRANSPORT: 0.03,
    COMMUTE_CARPOOL: 0.07,
    COMMUTE_ELECTRIC_VEHICLE: 0.05,
    COMMUTE_GAS_VEHICLE: 0.19,
    COMMUTE_REMOTE_WORK: 0.0,
}

# Average gas car, the reference every saving is measured against
BASELINE_EMISSION_FACTOR = 0.19

# A weekly log accepts merges until this many days after its week_start
WEEK_MERGE_WINDOW_DAYS = 7

# GET /api/commutes/current window
CURRENT_COMMUTES_WINDOW_DAYS = 30

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")

# Challenge goal types
GOAL_TYPE_DAYS = "days"
GOAL_TYPE_KM = "km"
GOAL_TYPE_CO2 = "co2"

DEFAULT_LEADERBOARD_LIMIT = 10

# Ledger sources
COMMUTE_POINTS_SOURCE = "{commute_type} commute"
CHALLENGE_COMPLETED_SOURCE = "Completed challenge: {title}"
REWARD_REDEEMED_SOURCE = "Redeemed reward: {title}"
