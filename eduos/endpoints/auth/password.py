from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from eduos.core.utils.customize_response import success_response
from eduos.core.services import accounts
from eduos.database import get_db
from eduos.schemas import ForgotPasswordRequest, ResetPasswordRequest
from eduos.config import settings


router = APIRouter(prefix="/api/auth", tags=["Password Reset"])


@router.post("/forgot-password")
def forgot_password(payload: ForgotPasswordRequest, db: Session = Depends(get_db)):
    """Same answer whether or not the account exists."""
    message, reset_token = accounts.forgot_password(db, payload.email)

    data = None
    if settings.EXPOSE_RESET_TOKEN and reset_token:
        # development only: there is no mail delivery
        data = {"reset_token": reset_token}
    return success_response(message=message, data=data)


@router.post("/reset-password")
def reset_password(payload: ResetPasswordRequest, db: Session = Depends(get_db)):
    accounts.reset_password(
        db,
        email=payload.email,
        new_password=payload.new_password,
        reset_token=payload.reset_token,
    )
    return success_response(message="Password reset successfully")
