"""User management endpoints - plain CRUD"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from charge_mgmt.api.dependencies import get_user_repository
from charge_mgmt.api.v1.schemas import (
    ApiResponse,
    DeletedSchema,
    UserCreateRequest,
    UserSchema,
    UserUpdateRequest,
)
from charge_mgmt.domain.exceptions import NotFoundError
from charge_mgmt.infrastructure.database.models import UserRecord
from charge_mgmt.infrastructure.database.repositories import UserRepository
from charge_mgmt.infrastructure.database.session import get_db

router = APIRouter()


def _get_or_404(repo: UserRepository, user_id: int) -> UserRecord:
    user = repo.get(user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


@router.get("/users", response_model=ApiResponse[List[UserSchema]])
def list_users(repo: UserRepository = Depends(get_user_repository)):
    return ApiResponse(data=[UserSchema.model_validate(u) for u in repo.list()])


@router.post("/users", response_model=ApiResponse[UserSchema], status_code=201)
def create_user(
    body: UserCreateRequest,
    repo: UserRepository = Depends(get_user_repository),
    db: Session = Depends(get_db),
):
    user = repo.create(body.model_dump(mode="json"))
    db.commit()
    return ApiResponse(data=UserSchema.model_validate(user))


@router.get("/users/{user_id}", response_model=ApiResponse[UserSchema])
def get_user(user_id: int, repo: UserRepository = Depends(get_user_repository)):
    return ApiResponse(data=UserSchema.model_validate(_get_or_404(repo, user_id)))


@router.put("/users/{user_id}", response_model=ApiResponse[UserSchema])
def update_user(
    user_id: int,
    body: UserUpdateRequest,
    repo: UserRepository = Depends(get_user_repository),
    db: Session = Depends(get_db),
):
    """Partial update: only fields present and non-null in the body change"""
    user = _get_or_404(repo, user_id)
    user = repo.update(user, body.model_dump(mode="json", exclude_unset=True, exclude_none=True))
    db.commit()
    return ApiResponse(data=UserSchema.model_validate(user))


@router.delete("/users/{user_id}", response_model=ApiResponse[DeletedSchema])
def delete_user(
    user_id: int,
    repo: UserRepository = Depends(get_user_repository),
    db: Session = Depends(get_db),
):
    repo.delete(_get_or_404(repo, user_id))
    db.commit()
    return ApiResponse(data=DeletedSchema(id=user_id))
