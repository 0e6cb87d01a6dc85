from typing import Optional
from fastapi import Request, Depends, Header, HTTPException, status
from sqlmodel import Session

from .database import get_session
from .models.user import User

# Set by the authenticating gateway in front of this service
USER_ID_HEADER = "X-User-Id"


async def get_current_user(
    x_user_id: Optional[int] = Header(default=None, alias=USER_ID_HEADER),
    db: Session = Depends(get_session)
) -> Optional[User]:
    """Get the user the gateway authenticated, if any."""
    if x_user_id is None:
        return None
    return db.get(User, x_user_id)


async def require_user(
    current_user: Optional[User] = Depends(get_current_user)
) -> User:
    """Require an authenticated user."""
    if not current_user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated"
        )
    return current_user


async def require_admin(
    current_user: User = Depends(require_user)
) -> User:
    """Require an admin user."""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required"
        )
    return current_user


def get_notifier(request: Request):
    """The application's notifier, created once in main."""
    return request.app.state.notifier
