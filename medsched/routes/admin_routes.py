from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.orm import Session

from medsched.auth.dependencies import require_roles
from medsched.core import config
from medsched.database import get_db
from medsched.models.user import Role, User
from medsched.routes.user_routes import UserResponse, to_user_response
from medsched.services.user_service import UserService

router = APIRouter(tags=['admin'])


class PaginatedUsersResponse(BaseModel):
    items: list[UserResponse]
    total_count: int
    page: int
    page_size: int


@router.get('/users', response_model=PaginatedUsersResponse)
def list_users(
    role: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=config.DEFAULT_PAGE_SIZE, ge=1, le=config.MAX_PAGE_SIZE),
    current_user: User = Depends(require_roles(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    result = UserService(db).list_users(role=role, page=page, page_size=page_size)
    return PaginatedUsersResponse(
        items=[to_user_response(user) for user in result.items],
        total_count=result.total_count,
        page=result.page,
        page_size=result.page_size,
    )


@router.get('/users/{user_id}', response_model=UserResponse)
def get_user(
    user_id: int,
    current_user: User = Depends(require_roles(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    return to_user_response(UserService(db).get_user(user_id))


@router.delete('/users/{user_id}', status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    current_user: User = Depends(require_roles(Role.ADMIN)),
    db: Session = Depends(get_db),
):
    if user_id == current_user.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Admins cannot delete their own account.',
        )

    UserService(db).delete_user(user_id)
