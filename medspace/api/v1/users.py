from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import List

from ...core.config import Settings, get_settings
from ...core.database import get_db
from ...core.security import UserRole
from ...api.deps import get_current_user, require_role, ensure_self_or_admin
from ...services.auth_service import AuthService
from ...services.user_service import UserService
from ...schemas.user import UserCreate, UserUpdate, UserResponse
from ...models.user import User

router = APIRouter(prefix="/users", tags=["Users"])
profile_router = APIRouter(prefix="/profile", tags=["Profile"])

require_admin = require_role([UserRole.ADMIN])

# Self-service profile
@profile_router.get("", response_model=UserResponse)
async def get_profile(
    current_user: User = Depends(get_current_user)
):
    return UserResponse.model_validate(current_user)

@profile_router.put("", response_model=UserResponse)
async def edit_profile(
    update_data: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Partially update the logged-in user's profile."""
    return UserService(db).update_user(current_user.id, update_data)

# Generic user management
@router.post("", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
    _: User = Depends(require_admin)
):
    """Create a user account (admin only)."""
    return AuthService(db, settings).register_user(user_data)

@router.get("", response_model=List[UserResponse])
async def list_users(
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    _: User = Depends(require_admin)
):
    """List all users (admin only)."""
    return UserService(db).list_users(skip, limit)

@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(current_user, user_id)
    return UserService(db).get_user(user_id)

@router.put("/{user_id}", response_model=UserResponse)
async def update_user(
    user_id: int,
    update_data: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Partial update; same path as the self-service profile edit."""
    ensure_self_or_admin(current_user, user_id)
    return UserService(db).update_user(user_id, update_data)

@router.delete("/{user_id}", response_model=UserResponse)
async def delete_user(
    user_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    ensure_self_or_admin(current_user, user_id)
    return UserService(db).delete_user(user_id)
