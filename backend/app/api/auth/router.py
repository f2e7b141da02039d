"""Password lifecycle endpoints."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.app.db.session import get_db
from backend.app.dependencies.auth import get_current_user
from backend.app.models.user import User
from backend.app.schemas.auth import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    ResetPasswordRequest,
)
from backend.app.schemas.common import MessageResponse
from backend.app.services import accounts
from backend.app.services.email_service import EmailService, get_email_service

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    body: ChangePasswordRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    accounts.change_password(db, current_user, body.current_password, body.new_password)
    return MessageResponse(message="Password updated")


@router.post("/forgot-password", response_model=ForgotPasswordResponse)
async def forgot_password(
    body: ForgotPasswordRequest,
    db: Session = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
):
    token = accounts.request_password_reset(db, body.email, email_service)
    return ForgotPasswordResponse(
        message=accounts.RESET_REQUESTED_MESSAGE,
        reset_token=token if accounts.expose_reset_token() else None,
    )


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(body: ResetPasswordRequest, db: Session = Depends(get_db)):
    accounts.reset_password(db, body.token, body.new_password)
    return MessageResponse(message="Password has been reset")
