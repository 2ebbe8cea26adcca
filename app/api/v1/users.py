"""
User administration API endpoints
"""
from fastapi import APIRouter, Depends, Query

from app.dependencies import authorize, get_current_user, get_user_service, require_verified_email
from app.models.user import User, UserRole
from app.schemas.auth import UserEnvelope, UserResponse
from app.schemas.user import UserListResponse, UserUpdate, VerificationStatusUpdate
from app.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])

# Admin routes: authenticated, verified email, admin role
admin_only = [Depends(require_verified_email), Depends(authorize(UserRole.ADMIN))]


@router.get("", response_model=UserListResponse, dependencies=admin_only)
async def list_users(
    skip: int = Query(0, ge=0, description="Number of users to skip"),
    limit: int = Query(20, ge=1, le=100, description="Page size"),
    user_service: UserService = Depends(get_user_service),
):
    """
    List users, newest first

    - Admin only
    """
    users, total = await user_service.list_users(skip=skip, limit=limit)
    return UserListResponse(
        message="Users retrieved successfully",
        users=[UserResponse(**user.to_dict()) for user in users],
        total=total,
        skip=skip,
        limit=limit,
    )


@router.get("/{user_id}", response_model=UserEnvelope, dependencies=admin_only)
async def get_user(
    user_id: str,
    user_service: UserService = Depends(get_user_service),
):
    """
    Get a user by ID

    - Admin only
    """
    user = await user_service.get_user(user_id)
    return UserEnvelope(message="User retrieved successfully", user=UserResponse(**user.to_dict()))


@router.patch("/{user_id}", response_model=UserEnvelope)
async def update_user(
    user_id: str,
    data: UserUpdate,
    current_user: User = Depends(get_current_user),
    user_service: UserService = Depends(get_user_service),
):
    """
    Update profile fields (email, first name, last name, phone)

    - Users may update themselves, admins anyone
    - A new email must be verified again
    """
    user, email_changed = await user_service.update_user(current_user, user_id, data)

    message = "User updated successfully"
    if email_changed:
        message += ". Please verify your new email address to complete the update."

    return UserEnvelope(message=message, user=UserResponse(**user.to_dict()))


@router.delete("/{user_id}", response_model=UserEnvelope, dependencies=admin_only)
async def deactivate_user(
    user_id: str,
    user_service: UserService = Depends(get_user_service),
):
    """
    Deactivate a user (soft delete)

    - Admin only
    - The account can no longer log in or refresh its session
    """
    user = await user_service.deactivate_user(user_id)
    return UserEnvelope(message="User deactivated successfully", user=UserResponse(**user.to_dict()))


@router.patch("/{user_id}/verification-status", response_model=UserEnvelope, dependencies=admin_only)
async def set_verification_status(
    user_id: str,
    data: VerificationStatusUpdate,
    user_service: UserService = Depends(get_user_service),
):
    """
    Approve or reject a doctor's credentials

    - Admin only
    """
    user = await user_service.set_verification_status(user_id, data.verification_status)
    return UserEnvelope(
        message=f"Verification status set to {data.verification_status.value}",
        user=UserResponse(**user.to_dict()),
    )
