from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging
from eduos.core.utils.customize_response import success_response, success_login_response
from eduos.core.utils.helpers import get_current_user, serialize_user
from eduos.core.utils.face_matcher import FaceMatcher, get_face_matcher
from eduos.core.services import accounts
from eduos.database import get_db
from eduos.models import User
from eduos.schemas import RegisterRequest, LoginRequest, StudentLoginRequest
from eduos.config import settings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def token_data(access_token: str) -> dict:
    return {
        "access_token": access_token,
        "token_type": "bearer",
        "expires_in": settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
def register_user(payload: RegisterRequest, db: Session = Depends(get_db)):
    """Register a teacher, doctor or admin. Students are created by an admin."""
    try:
        user, access_token = accounts.register_non_student(
            db,
            name=payload.name,
            email=payload.email,
            password=payload.password,
            role=payload.role,
            class_id=payload.class_id,
        )
    except HTTPException:
        db.rollback()
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Registration failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to register user"
        )

    return success_login_response(
        message="User created successfully",
        data=token_data(access_token),
        user=serialize_user(user)
    )


@router.post("/login")
def login_user(
    payload: LoginRequest,
    db: Session = Depends(get_db),
    face_matcher: FaceMatcher = Depends(get_face_matcher)
):
    """Login for teachers, doctors and admins (admins also send faceData)"""
    user, access_token = accounts.login_non_student(
        db,
        email=payload.email,
        password=payload.password,
        face_template=payload.face_data,
        face_matcher=face_matcher,
    )
    return success_login_response(
        message="Login successful",
        data=token_data(access_token),
        user=serialize_user(user)
    )


@router.post("/student-login")
def student_login(payload: StudentLoginRequest, db: Session = Depends(get_db)):
    """Login for students by allocated Student ID"""
    user, access_token = accounts.login_student(db, payload.student_id)
    return success_login_response(
        message="Login successful",
        data=token_data(access_token),
        user=serialize_user(user)
    )


@router.get("/me")
def get_me(current_user: User = Depends(get_current_user)):
    return success_response(
        message="User retrieved successfully",
        data=serialize_user(current_user)
    )
