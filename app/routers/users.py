import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from app.auth.auth import Identity, get_current_identity
from app.data.user_manager import UserManager, get_user_manager
from app.schemas.user import UserRegister, dump_user, normalize_user_updates

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("/register")
def register_user(
    payload: UserRegister,
    identity: Identity = Depends(get_current_identity),
    user_manager: UserManager = Depends(get_user_manager),
):
    user, created = user_manager.register_user(
        email=identity.email,
        name=payload.name,
        age=payload.age,
        photo_url=payload.photo_url,
    )
    if not created:
        logger.info(f"Registration for {identity.email} matched existing {user.user_id}")
        return JSONResponse(
            status_code=status.HTTP_200_OK,
            content={"message": "User already registered", "id": user.user_id},
        )
    logger.info(f"Registered user {user.user_id} for uid {identity.uid}")
    return JSONResponse(
        status_code=status.HTTP_201_CREATED,
        content={"message": "User registered", "id": user.user_id},
    )


@router.get("")
def list_users(user_manager: UserManager = Depends(get_user_manager)):
    return {"message": "Users", "users": [dump_user(u) for u in user_manager.get_all_users()]}


@router.get("/{user_id}")
def get_user(user_id: str, user_manager: UserManager = Depends(get_user_manager)):
    user = user_manager.get_user_by_id(user_id)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST, detail="User not found"
        )
    return {"message": "User found", "user": dump_user(user)}


@router.put("/update/{user_id}")
def update_user(
    user_id: str,
    fields: Optional[Dict[str, Any]] = Body(None),
    identity: Identity = Depends(get_current_identity),
    user_manager: UserManager = Depends(get_user_manager),
):
    user = user_manager.update_user(user_id, normalize_user_updates(fields or {}))
    return {"message": "User updated", "user": dump_user(user)}


@router.delete("/delete/{user_id}")
def delete_user(
    user_id: str,
    identity: Identity = Depends(get_current_identity),
    user_manager: UserManager = Depends(get_user_manager),
):
    user_manager.delete_user(user_id)
    logger.info(f"{identity.uid} deleted user {user_id}")
    return {"message": "User deleted", "id": user_id}
