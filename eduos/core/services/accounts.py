"""
Credential store and session issuance.

Non-student identities authenticate with email + password (admins also present
a face template). Students authenticate with their allocated Student ID only.
"""
import logging
from typing import Optional, Tuple
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from eduos.config import settings
from eduos.models import User, UserRole
from eduos.core.utils.face_matcher import FaceMatcher, get_face_matcher
from eduos.core.utils.helpers import (
    password_hasher, normalize_email, PASSWORD_RESET_PURPOSE
)
from eduos.core.utils.exceptions import (
    InvalidRole, DuplicateEmail, DuplicateStudentId, InvalidCredentials,
    WrongLoginChannel, FaceRequired, FaceMismatch, InvalidStudentId,
    WeakPassword, InvalidResetToken, Unauthenticated, NotFound, ValidationFailed
)

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

FORGOT_PASSWORD_MESSAGE = (
    "If an account exists with this email, password reset instructions have been sent."
)


def _email_taken(db: Session, email: str, exclude_user_id: Optional[str] = None) -> bool:
    query = db.query(User).filter(User.email == email)
    if exclude_user_id:
        query = query.filter(User.id != exclude_user_id)
    return db.query(query.exists()).scalar()


def _student_id_taken(db: Session, student_id: str, exclude_user_id: Optional[str] = None) -> bool:
    query = db.query(User).filter(User.student_id == student_id)
    if exclude_user_id:
        query = query.filter(User.id != exclude_user_id)
    return db.query(query.exists()).scalar()


def _commit_identity(db: Session, user: User, conflict_exc) -> User:
    """Commit, mapping a unique-key violation to ``conflict_exc``."""
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise conflict_exc
    db.refresh(user)
    return user


def register_non_student(
    db: Session,
    name: str,
    email: str,
    password: str,
    role: UserRole,
    class_id: Optional[str] = None,
) -> Tuple[User, str]:
    role = UserRole(role)
    if role == UserRole.STUDENT:
        raise InvalidRole()

    normalized_email = normalize_email(email)
    if _email_taken(db, normalized_email):
        raise DuplicateEmail()

    user = User(
        name=name.strip(),
        email=normalized_email,
        password=password_hasher.hash_password(password),
        role=role,
        class_id=class_id or None,
    )
    db.add(user)
    user = _commit_identity(db, user, DuplicateEmail())
    logger.info(f"Registered {role.value} {user.id}")
    return user, password_hasher.create_access_token(user)


def login_non_student(
    db: Session,
    email: str,
    password: str,
    face_template: Optional[str] = None,
    face_matcher: Optional[FaceMatcher] = None,
) -> Tuple[User, str]:
    normalized_email = normalize_email(email)
    user = db.query(User).filter(User.email == normalized_email, User.is_active == True).first()
    if not user:
        logger.warning(f"Login attempt failed: no user with email {normalized_email}")
        raise InvalidCredentials()

    if user.role == UserRole.STUDENT:
        raise WrongLoginChannel()

    if not password_hasher.verify_password(password, user.password):
        logger.warning(f"Login attempt failed: password mismatch for {normalized_email}")
        raise InvalidCredentials()

    if user.role == UserRole.ADMIN:
        if not face_template:
            raise FaceRequired()
        if not user.face_template:
            # first admin login enrolls the template
            user.face_template = face_template
            db.commit()
            db.refresh(user)
            logger.info(f"Stored face template for admin {user.id}")
        else:
            matcher = face_matcher or get_face_matcher()
            if not matcher.is_match(user.face_template, face_template):
                logger.warning(f"Face verification failed for admin {user.id}")
                raise FaceMismatch()

    return user, password_hasher.create_access_token(user)


def login_student(db: Session, student_id: str) -> Tuple[User, str]:
    student_id = (student_id or "").strip()
    if not student_id:
        raise InvalidStudentId()

    user = db.query(User).filter(
        User.student_id == student_id,
        User.role == UserRole.STUDENT,
        User.is_active == True
    ).first()
    if not user:
        raise InvalidStudentId()

    return user, password_hasher.create_access_token(user)


def forgot_password(db: Session, email: str) -> Tuple[str, Optional[str]]:
    """Returns the generic message and, when the account exists, a reset token.

    The caller must not reveal whether a token was produced.
    """
    normalized_email = normalize_email(email)
    user = db.query(User).filter(User.email == normalized_email).first()
    if not user:
        return FORGOT_PASSWORD_MESSAGE, None

    logger.info(f"Password reset requested for user {user.id}")
    return FORGOT_PASSWORD_MESSAGE, password_hasher.create_reset_token(user)


def reset_password(
    db: Session,
    email: str,
    new_password: str,
    reset_token: Optional[str] = None,
) -> User:
    if len(new_password or "") < MIN_PASSWORD_LENGTH:
        raise WeakPassword()

    normalized_email = normalize_email(email)
    user = db.query(User).filter(User.email == normalized_email).first()
    if not user:
        raise NotFound("User not found")

    if reset_token:
        try:
            payload = password_hasher.verify_token(reset_token)
        except Unauthenticated:
            raise InvalidResetToken()
        if payload.get("user_id") != user.id or payload.get("type") != PASSWORD_RESET_PURPOSE:
            raise InvalidResetToken("Invalid reset token")
    elif not settings.ALLOW_TOKENLESS_PASSWORD_RESET:
        raise InvalidResetToken("Reset token is required")
    else:
        logger.warning(f"Password for user {user.id} reset without a token")

    user.password = password_hasher.hash_password(new_password)
    db.commit()
    db.refresh(user)
    return user


def create_student(
    db: Session,
    name: str,
    student_id: str,
    email: Optional[str] = None,
    class_id: Optional[str] = None,
) -> User:
    student_id = (student_id or "").strip()
    if not student_id:
        raise ValidationFailed("Student ID is required")
    if _student_id_taken(db, student_id):
        raise DuplicateStudentId()

    normalized_email = normalize_email(email) or None
    if normalized_email and _email_taken(db, normalized_email):
        raise DuplicateEmail("Email already registered")

    user = User(
        name=name.strip(),
        email=normalized_email,
        password=None,
        role=UserRole.STUDENT,
        student_id=student_id,
        class_id=class_id or None,
    )
    db.add(user)
    return _commit_identity(db, user, DuplicateStudentId("Student ID or email already exists"))


def assign_student_id(db: Session, user_id: str, student_id: str) -> User:
    student_id = (student_id or "").strip()
    if not student_id:
        raise ValidationFailed("Student ID is required")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFound("User not found")
    if user.role != UserRole.STUDENT:
        raise ValidationFailed("User is not a student")
    if _student_id_taken(db, student_id, exclude_user_id=user.id):
        raise DuplicateStudentId()

    user.student_id = student_id
    return _commit_identity(db, user, DuplicateStudentId("Student ID already exists"))
