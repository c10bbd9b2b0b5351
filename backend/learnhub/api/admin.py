"""Admin account endpoints: sessions and profile."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, status
from pymongo.database import Database

from learnhub.database.mongo import get_db
from learnhub.dtos.account import AdminProfile, AdminProfileUpdate
from learnhub.dtos.auth import (
    AdminAuthResponse,
    ChangePasswordRequest,
    LoginRequest,
    RefreshRequest,
    RegisterRequest,
    TokenPair,
)
from learnhub.dtos.common import ApiResponse, MessageResponse
from learnhub.middleware.auth import Identity
from learnhub.middleware.rbac import require_admin
from learnhub.services.account_service import AdminProfileService, admin_profile
from learnhub.services.auth_service import admin_auth_service

router = APIRouter(prefix="/admin", tags=["Admin"])


@router.post(
    "/register",
    response_model=ApiResponse[AdminAuthResponse],
    status_code=status.HTTP_201_CREATED,
)
def register_admin(payload: RegisterRequest, db: Database = Depends(get_db)):
    """Register a new admin account."""
    admin, token, refresh_token = admin_auth_service(db).register(payload)
    return ApiResponse(
        message="Admin registered successfully",
        data=AdminAuthResponse(
            admin=admin_profile(admin), token=token, refresh_token=refresh_token
        ),
    )


@router.post("/login", response_model=ApiResponse[AdminAuthResponse])
def login_admin(
    payload: LoginRequest,
    background_tasks: BackgroundTasks,
    db: Database = Depends(get_db),
):
    """Log in with email and password."""
    service = admin_auth_service(db)
    admin, token, refresh_token = service.login(payload.email, payload.password)
    background_tasks.add_task(service.touch_last_login, str(admin.id))
    return ApiResponse(
        message="Login successful",
        data=AdminAuthResponse(
            admin=admin_profile(admin), token=token, refresh_token=refresh_token
        ),
    )


@router.post("/refresh-token", response_model=ApiResponse[TokenPair])
def refresh_admin_token(
    payload: Optional[RefreshRequest] = None,
    db: Database = Depends(get_db),
):
    """Exchange a refresh token for a new token pair."""
    service = admin_auth_service(db)
    token, refresh_token = service.refresh(payload.refresh_token if payload else None)
    return ApiResponse(data=TokenPair(token=token, refresh_token=refresh_token))


@router.get("/profile", response_model=ApiResponse[AdminProfile])
def get_admin_profile(
    db: Database = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    admin = AdminProfileService(db).get(identity.subject_id)
    return ApiResponse(data=admin_profile(admin))


@router.put("/profile", response_model=ApiResponse[AdminProfile])
def update_admin_profile(
    payload: AdminProfileUpdate,
    db: Database = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    admin = AdminProfileService(db).update(identity.subject_id, payload)
    return ApiResponse(message="Profile updated successfully", data=admin_profile(admin))


@router.post("/change-password", response_model=MessageResponse)
def change_admin_password(
    payload: ChangePasswordRequest,
    db: Database = Depends(get_db),
    identity: Identity = Depends(require_admin),
):
    """Change password. Outstanding refresh tokens stop working."""
    admin_auth_service(db).change_password(
        identity.subject_id, payload.current_password, payload.new_password
    )
    return MessageResponse(message="Password changed successfully")
