"""
FastAPI dependencies: storage per request and the calling user.
"""
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from backend.auth import IdentityProvider
from backend.database import get_db
from backend.exceptions import AuthenticationException
from backend.models import User
from backend.storage import DatabaseStorage, Storage


def get_storage(db: Session = Depends(get_db)) -> Storage:
    return DatabaseStorage(db)


def get_identity_provider(request: Request) -> IdentityProvider:
    """Provider wired on app.state when the app is built"""
    return request.app.state.identity_provider


def get_current_user(
    request: Request,
    storage: Storage = Depends(get_storage),
    identity_provider: IdentityProvider = Depends(get_identity_provider)
) -> User:
    """Resolve the calling user or fail with 401"""
    try:
        user_id = identity_provider.resolve(request)
    except AuthenticationException as e:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=str(e))

    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")

    user = storage.get_user(user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user
