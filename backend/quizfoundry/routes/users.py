# backend/quizfoundry/routes/users.py

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, File, UploadFile
from fastapi.concurrency import run_in_threadpool

from ..core.errors import AppError
from ..core.schemas import UpdateUserRequest, envelope, parse_body
from ..core.validation import is_uuid
from ..deps import AuthUser, authenticate, get_store, rate_limit
from ..services import user_service

router = APIRouter(prefix="/api/users", tags=["users"], dependencies=[Depends(authenticate)])


def _check_target(user_id: str, user: AuthUser) -> None:
    if not is_uuid(user_id):
        raise AppError("Invalid user ID format", 400)
    if user.id != user_id:
        raise AppError("Access denied", 403)


@router.get("")
def list_users(store=Depends(get_store)):
    return envelope(user_service.get_all_users(store))


@router.get("/{user_id}")
def get_user(user_id: str, store=Depends(get_store)):
    if not is_uuid(user_id):
        raise AppError("Invalid user ID format", 400)
    user = user_service.get_user_by_id(store, user_id)
    if user is None:
        raise AppError("User not found", 404)
    return envelope(user)


@router.put("/{user_id}", dependencies=[Depends(rate_limit("user_update"))])
def update_user(
    user_id: str,
    payload: Any = Body(None),
    user: AuthUser = Depends(authenticate),
    store=Depends(get_store),
):
    _check_target(user_id, user)
    data = parse_body(UpdateUserRequest, payload, prefix="Invalid input: ", sep=", ")
    return envelope(user_service.update_user_profile(store, user_id, data.model_dump(exclude_unset=True)))


@router.post("/{user_id}/avatar", dependencies=[Depends(rate_limit("avatar_upload"))])
async def upload_avatar(
    user_id: str,
    avatar: Optional[UploadFile] = File(None),
    user: AuthUser = Depends(authenticate),
    store=Depends(get_store),
):
    _check_target(user_id, user)
    if avatar is None:
        raise AppError("No file uploaded", 400)
    # Never buffer more than one byte past the size limit.
    content = await avatar.read(user_service.AVATAR_MAX_BYTES + 1)
    result = await run_in_threadpool(
        user_service.upload_user_avatar, store, user_id, content, avatar.content_type or ""
    )
    return envelope(result)
