"""
Append-only audit trail.

Handlers schedule a write after their mutation has committed. Writes run on their
own session and any failure is logged and dropped.
"""
import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Type
from pydantic import BaseModel
from sqlalchemy.orm import Session, joinedload
from eduos.database import SessionLocal
from eduos.models import ActivityLog, User, UserRole, AttendanceStatus, MedicalStatus, Mood

logger = logging.getLogger(__name__)


class ActivityAction(str, Enum):
    MARK_ATTENDANCE = "mark_attendance"
    UPDATE_ATTENDANCE = "update_attendance"
    UPDATE_MARKS = "update_marks"
    CREATE_MEDICAL_REQUEST = "create_medical_request"
    REVIEW_MEDICAL_REQUEST = "review_medical_request"
    CREATE_STUDENT = "create_student"
    ASSIGN_STUDENT_ID = "assign_student_id"
    SUBMIT_CHECKIN = "submit_checkin"


# =========================================================
# 🔹 DETAIL SHAPES (one per action)
# =========================================================

class MarkAttendanceDetails(BaseModel):
    status: AttendanceStatus
    check_in_time: datetime


class UpdateAttendanceDetails(BaseModel):
    student_id: str
    subject: str
    percentage: float


class UpdateMarksDetails(BaseModel):
    student_id: str
    subject: str
    score: float


class CreateMedicalRequestDetails(BaseModel):
    request_id: str
    from_date: date
    to_date: date


class ReviewMedicalRequestDetails(BaseModel):
    request_id: str
    status: MedicalStatus


class CreateStudentDetails(BaseModel):
    student_user_id: str
    student_id: str


class AssignStudentIdDetails(BaseModel):
    student_user_id: str
    student_id: str


class CheckinDetails(BaseModel):
    mood: Mood


DETAIL_SHAPES: Dict[ActivityAction, Type[BaseModel]] = {
    ActivityAction.MARK_ATTENDANCE: MarkAttendanceDetails,
    ActivityAction.UPDATE_ATTENDANCE: UpdateAttendanceDetails,
    ActivityAction.UPDATE_MARKS: UpdateMarksDetails,
    ActivityAction.CREATE_MEDICAL_REQUEST: CreateMedicalRequestDetails,
    ActivityAction.REVIEW_MEDICAL_REQUEST: ReviewMedicalRequestDetails,
    ActivityAction.CREATE_STUDENT: CreateStudentDetails,
    ActivityAction.ASSIGN_STUDENT_ID: AssignStudentIdDetails,
    ActivityAction.SUBMIT_CHECKIN: CheckinDetails,
}


class ActivityEntry(BaseModel):
    user_id: str
    role: UserRole
    action: ActivityAction
    details: BaseModel
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None

    @classmethod
    def build(cls, user: User, action: ActivityAction, details: BaseModel, request=None) -> "ActivityEntry":
        expected = DETAIL_SHAPES[action]
        if not isinstance(details, expected):
            raise TypeError(f"{action.value} expects {expected.__name__}, got {type(details).__name__}")
        return cls(
            user_id=user.id,
            role=UserRole(user.role),
            action=action,
            details=details,
            ip_address=request.client.host if request is not None and request.client else None,
            user_agent=request.headers.get("user-agent") if request is not None else None,
        )


class ActivityLogger:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def record(self, entry: ActivityEntry) -> None:
        """Best-effort write; never raises."""
        db = None
        try:
            db = self.session_factory()
            db.add(ActivityLog(
                user_id=entry.user_id,
                role=entry.role,
                action=entry.action.value,
                details=entry.details.model_dump(mode="json"),
                ip_address=entry.ip_address,
                user_agent=entry.user_agent,
            ))
            db.commit()
        except Exception as e:
            logger.error(f"Activity log error for {entry.action.value} by {entry.user_id}: {e}")
            if db is not None:
                db.rollback()
        finally:
            if db is not None:
                db.close()


_activity_logger: Optional[ActivityLogger] = None


def get_activity_logger() -> ActivityLogger:
    global _activity_logger
    if _activity_logger is None:
        _activity_logger = ActivityLogger()
    return _activity_logger


def list_activities(
    db: Session,
    role: Optional[UserRole] = None,
    user_id: Optional[str] = None,
    limit: int = 100,
) -> List[ActivityLog]:
    query = db.query(ActivityLog).options(joinedload(ActivityLog.user))
    if role:
        query = query.filter(ActivityLog.role == UserRole(role))
    if user_id:
        query = query.filter(ActivityLog.user_id == user_id)
    return query.order_by(ActivityLog.created_at.desc()).limit(limit).all()


def serialize_activity(entry: ActivityLog) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "user_id": entry.user_id,
        "user": {
            "name": entry.user.name,
            "email": entry.user.email,
            "role": UserRole(entry.user.role).value,
        } if entry.user is not None else None,
        "role": UserRole(entry.role).value,
        "action": entry.action,
        "details": entry.details or {},
        "ip_address": entry.ip_address,
        "user_agent": entry.user_agent,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }
