from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from medsched.auth.dependencies import get_clock, get_current_user, get_notifier
from medsched.core.clock import Clock
from medsched.database import get_db
from medsched.models.user import User
from medsched.services.auth_service import AuthService
from medsched.services.notifier import Notifier
from medsched.services.user_service import UserService

router = APIRouter(tags=['users'])


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    email_verified: bool
    role: str
    phone: str | None = None
    address: str | None = None
    avatar: str | None = None
    two_factor_enabled: bool
    last_login: datetime | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class UpdateProfileRequest(BaseModel):
    name: str | None = Field(default=None, max_length=100)
    phone: str | None = Field(default=None, max_length=20)
    address: str | None = Field(default=None, max_length=255)
    avatar: str | None = Field(default=None, max_length=255)


class ChangePasswordRequest(BaseModel):
    current_password: str
    new_password: str


def to_user_response(user: User) -> UserResponse:
    return UserResponse.model_validate(user)


@router.get('/profile', response_model=UserResponse)
def get_profile(current_user: User = Depends(get_current_user)):
    return to_user_response(current_user)


@router.put('/profile', response_model=UserResponse)
def update_profile(
    data: UpdateProfileRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = UserService(db).update_profile(current_user, **data.model_dump(exclude_unset=True))
    return to_user_response(user)


@router.put('/change-password')
def change_password(
    data: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
):
    AuthService(db, clock=clock, notifier=notifier).change_password(
        current_user,
        data.current_password,
        data.new_password,
    )
    return {'message': 'Password changed successfully'}
