from typing import NamedTuple

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from medsched.core.clock import Clock, utc_now
from medsched.core.errors import AuthenticationFailed
from medsched.database import get_db
from medsched.models.user import Role, User
from medsched.services.auth_service import AuthService
from medsched.services.notifier import Notifier
from medsched.services.notifier import get_notifier as build_notifier

security = HTTPBearer(auto_error=False)


class AuthContext(NamedTuple):
    user: User
    session_id: int


def get_clock() -> Clock:
    return utc_now


def get_notifier() -> Notifier:
    return build_notifier()


def get_auth_context(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> AuthContext:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authorization header required")

    try:
        user, session_id = AuthService(db, clock=clock).authenticate(credentials.credentials)
    except AuthenticationFailed as exc:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=exc.message) from exc
    return AuthContext(user=user, session_id=session_id)


def get_current_user(context: AuthContext = Depends(get_auth_context)) -> User:
    return context.user


def require_roles(*roles: Role):
    allowed = {role.value for role in roles}

    def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
        return current_user

    return dependency
