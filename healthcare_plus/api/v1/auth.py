from fastapi import APIRouter, Depends, status

from ...api.deps import (
    get_auth_service, get_current_principal, get_admin_principal, get_principal
)
from ...core.security import Principal
from ...services.auth_service import AuthService
from ...schemas.auth import (
    UserLogin, UserRegister, TokenResponse, UserResponse, ChangePassword,
    ChangeEmail, DeleteAccount, ProfileUpdate, EmailChangeResponse, LoginHistory
)

router = APIRouter(prefix="/auth", tags=["Authentication"])

async def _token_response(auth_service: AuthService, principal: Principal, token) -> TokenResponse:
    user = await auth_service.get_profile(principal)
    return TokenResponse(
        access_token=token.access_token,
        token_type=token.token_type,
        expires_in=token.expires_in,
        user=UserResponse.model_validate(user)
    )

@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Register a new patient account."""
    principal, token = await auth_service.register(
        user_data.name, user_data.email, user_data.phone, user_data.password
    )
    return await _token_response(auth_service, principal, token)

@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: UserLogin,
    auth_service: AuthService = Depends(get_auth_service)
):
    """Authenticate user and return an access token."""
    principal, token = await auth_service.login(login_data.email, login_data.password)
    return await _token_response(auth_service, principal, token)

@router.get("/me", response_model=UserResponse)
async def get_current_user_info(
    principal: Principal = Depends(get_current_principal),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Get current user information."""
    return UserResponse.model_validate(await auth_service.get_profile(principal))

@router.post("/change-password")
async def change_password(
    password_data: ChangePassword,
    principal: Principal = Depends(get_current_principal),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Change user password."""
    await auth_service.change_password(
        principal, password_data.current_password, password_data.new_password
    )
    return {"message": "Password changed successfully"}

@router.post("/change-email", response_model=EmailChangeResponse)
async def change_email(
    email_data: ChangeEmail,
    principal: Principal = Depends(get_admin_principal),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Change the signed-in admin's email."""
    old_email, new_email = await auth_service.change_email(
        principal, email_data.new_email, email_data.password
    )
    return EmailChangeResponse(
        message="Email changed successfully", old_email=old_email, new_email=new_email
    )

@router.put("/update-profile", response_model=UserResponse)
async def update_profile(
    profile_data: ProfileUpdate,
    principal: Principal = Depends(get_current_principal),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Update name and/or phone."""
    user = await auth_service.update_profile(principal, profile_data.name, profile_data.phone)
    return UserResponse.model_validate(user)

@router.delete("/delete-account")
async def delete_account(
    delete_data: DeleteAccount,
    principal: Principal = Depends(get_current_principal),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Delete the caller's account and anonymize their appointments."""
    await auth_service.delete_account(principal, delete_data.password)
    return {"message": "Account deleted successfully"}

@router.get("/login-history/{user_id}", response_model=LoginHistory)
async def login_history(
    user_id: str,
    principal: Principal = Depends(get_admin_principal),
    auth_service: AuthService = Depends(get_auth_service)
):
    """Login and credential-change timestamps for a user (admin only)."""
    return await auth_service.login_history(principal, user_id)

@router.post("/verify-token")
async def verify_token_endpoint(
    principal: Principal = Depends(get_principal)
):
    """Report whether the bearer token resolves to an active user."""
    return {
        "valid": principal.is_authenticated,
        "user_id": principal.id,
        "email": principal.email,
        "role": principal.role.value if principal.role else None
    }
