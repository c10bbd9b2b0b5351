"""Learner account endpoints: sessions, profile and owned courses."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Path, status
from pymongo.database import Database

from learnhub.database.mongo import get_db
from learnhub.dtos.account import UserProfile, UserProfileUpdate
from learnhub.dtos.auth import (
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenPair,
    UserAuthResponse,
)
from learnhub.dtos.common import ApiResponse, MessageResponse
from learnhub.dtos.course import CourseSummary
from learnhub.middleware.auth import Identity
from learnhub.middleware.rbac import require_user
from learnhub.services.account_service import UserProfileService, user_profile
from learnhub.services.auth_service import user_auth_service
from learnhub.services.course_service import to_summary
from learnhub.services.entitlement_service import EntitlementLedger

router = APIRouter(prefix="/users", tags=["Users"])


@router.post(
    "/register",
    response_model=ApiResponse[UserAuthResponse],
    status_code=status.HTTP_201_CREATED,
)
def register_user(payload: RegisterRequest, db: Database = Depends(get_db)):
    """Register a new learner account."""
    user, token, refresh_token = user_auth_service(db).register(payload)
    return ApiResponse(
        message="User registered successfully",
        data=UserAuthResponse(user=user_profile(user), token=token, refresh_token=refresh_token),
    )


@router.post("/login", response_model=ApiResponse[UserAuthResponse])
def login_user(
    payload: LoginRequest,
    background_tasks: BackgroundTasks,
    db: Database = Depends(get_db),
):
    service = user_auth_service(db)
    user, token, refresh_token = service.login(payload.email, payload.password)
    background_tasks.add_task(service.touch_last_login, str(user.id))
    return ApiResponse(
        message="Login successful",
        data=UserAuthResponse(user=user_profile(user), token=token, refresh_token=refresh_token),
    )


@router.post("/refresh-token", response_model=ApiResponse[TokenPair])
def refresh_user_token(
    payload: Optional[RefreshRequest] = None,
    db: Database = Depends(get_db),
):
    service = user_auth_service(db)
    token, refresh_token = service.refresh(payload.refresh_token if payload else None)
    return ApiResponse(data=TokenPair(token=token, refresh_token=refresh_token))


@router.get("/profile", response_model=ApiResponse[UserProfile])
def get_user_profile(
    db: Database = Depends(get_db),
    identity: Identity = Depends(require_user),
):
    user = UserProfileService(db).get(identity.subject_id)
    return ApiResponse(data=user_profile(user))


@router.put("/profile", response_model=ApiResponse[UserProfile])
def update_user_profile(
    payload: UserProfileUpdate,
    db: Database = Depends(get_db),
    identity: Identity = Depends(require_user),
):
    user = UserProfileService(db).update(identity.subject_id, payload)
    return ApiResponse(message="Profile updated successfully", data=user_profile(user))


@router.post("/change-password", response_model=MessageResponse)
def change_user_password(
    payload: ChangePasswordRequest,
    db: Database = Depends(get_db),
    identity: Identity = Depends(require_user),
):
    user_auth_service(db).change_password(
        identity.subject_id, payload.current_password, payload.new_password
    )
    return MessageResponse(message="Password changed successfully")


@router.get("/courses", response_model=ApiResponse[List[CourseSummary]])
def list_my_courses(
    db: Database = Depends(get_db),
    identity: Identity = Depends(require_user),
):
    """Courses the caller owns."""
    courses = EntitlementLedger(db).list_entitlements(identity.subject_id)
    return ApiResponse(data=[to_summary(c) for c in courses])


@router.post("/courses/{course_id}/purchase", response_model=ApiResponse[CourseSummary])
def purchase_course(
    course_id: str = Path(..., description="Course ID"),
    db: Database = Depends(get_db),
    identity: Identity = Depends(require_user),
):
    """Direct purchase, bypassing hosted checkout."""
    course = EntitlementLedger(db).purchase(identity.subject_id, course_id)
    return ApiResponse(message="Course purchased successfully", data=to_summary(course))
