from fastapi import APIRouter, Depends
from typing import List

from ...api.deps import get_admin_principal, get_auth_service
from ...core.security import Principal
from ...schemas.auth import UserResponse, UserStatusUpdate
from ...services.auth_service import AuthService

router = APIRouter(prefix="/users", tags=["Users"])

@router.get("", response_model=List[UserResponse])
async def list_users(
    principal: Principal = Depends(get_admin_principal),
    auth_service: AuthService = Depends(get_auth_service)
):
    """List all users (admin only)."""
    return await auth_service.list_users(principal)

@router.get("/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    principal: Principal = Depends(get_admin_principal),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Get a single user (admin only)."""
    return await auth_service.get_user(principal, user_id)

@router.patch("/{user_id}/status", response_model=UserResponse)
async def update_user_status(
    user_id: str,
    status_data: UserStatusUpdate,
    principal: Principal = Depends(get_admin_principal),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Update user active status (admin only)."""
    return await auth_service.set_user_active(principal, user_id, status_data.is_active)
