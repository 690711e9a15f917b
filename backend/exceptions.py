"""
Custom exceptions for the commute tracker application.
Provides specific exception types so routes can map them to HTTP responses.
"""


class CommuteTrackerException(Exception):
    """Base exception for commute tracker application"""
    pass


class UserNotFoundException(CommuteTrackerException):
    """Raised when a user is not found"""
    def __init__(self, user_id: int):
        self.user_id = user_id
        super().__init__(f"User with ID {user_id} not found")


class CompanyNotFoundException(CommuteTrackerException):
    """Raised when a company is not found"""
    def __init__(self, company_id: int):
        self.company_id = company_id
        super().__init__(f"Company with ID {company_id} not found")


class CommuteLogNotFoundException(CommuteTrackerException):
    """Raised when a commute log is not found"""
    def __init__(self, log_id: int):
        self.log_id = log_id
        super().__init__(f"Commute log with ID {log_id} not found")


class ChallengeNotFoundException(CommuteTrackerException):
    """Raised when a challenge is not found"""
    def __init__(self, challenge_id: int):
        self.challenge_id = challenge_id
        super().__init__(f"Challenge with ID {challenge_id} not found")


class ParticipantNotFoundException(CommuteTrackerException):
    """Raised when a challenge participant is not found"""
    def __init__(self, participant_id: int):
        self.participant_id = participant_id
        super().__init__(f"Challenge participant with ID {participant_id} not found")


class RewardNotFoundException(CommuteTrackerException):
    """Raised when a reward is not found"""
    def __init__(self, reward_id: int):
        self.reward_id = reward_id
        super().__init__(f"Reward with ID {reward_id} not found")


class AlreadyParticipatingException(CommuteTrackerException):
    """Raised when a user joins a challenge twice"""
    def __init__(self, user_id: int, challenge_id: int):
        self.user_id = user_id
        self.challenge_id = challenge_id
        super().__init__("User is already participating in this challenge")


class InsufficientPointsException(CommuteTrackerException):
    """Raised when a user cannot afford a reward"""
    def __init__(self, points_needed: int):
        self.points_needed = points_needed
        super().__init__("Not enough points")


class PermissionDeniedException(CommuteTrackerException):
    """Raised when the caller may not perform an action"""
    def __init__(self, message: str):
        super().__init__(message)


class InvalidChallengeUpdateException(CommuteTrackerException):
    """Raised when an update would leave a challenge inconsistent"""
    def __init__(self, challenge_id: int, message: str):
        self.challenge_id = challenge_id
        super().__init__(message)


class ConflictException(CommuteTrackerException):
    """Raised when a unique value is already taken"""
    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class AuthenticationException(CommuteTrackerException):
    """Raised when credentials or tokens are invalid"""
    def __init__(self, message: str = "Invalid credentials"):
        super().__init__(message)


class DatabaseException(CommuteTrackerException):
    """Raised when database operations fail"""
    def __init__(self, operation: str, details: str):
        self.operation = operation
        self.details = details
        super().__init__(f"Database {operation} failed: {details}")
