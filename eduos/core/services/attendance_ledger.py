"""
Daily check-in ledger: one record per identity per calendar day.

The (user_id, attendance_date) unique constraint is the arbiter of the one-per-day
rule; the read before insert only gives the common case a clean error.
"""
import logging
from datetime import date, datetime
from typing import Dict, Any, List, Optional
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload
from eduos.config import settings
from eduos.models import DailyAttendance, AttendanceStatus, User, UserRole
from eduos.core.utils.exceptions import AlreadyMarked, OutsideWindow, Forbidden

logger = logging.getLogger(__name__)

ATTENDANCE_ROLES = (UserRole.STUDENT, UserRole.TEACHER)


def within_school_hours(moment: datetime) -> bool:
    return settings.SCHOOL_DAY_START_HOUR <= moment.hour < settings.SCHOOL_DAY_END_HOUR


def classify_check_in(moment: datetime) -> AttendanceStatus:
    """present up to and including LATE_AFTER exactly, late from the first second after"""
    if moment.time() <= settings.LATE_AFTER:
        return AttendanceStatus.PRESENT
    return AttendanceStatus.LATE


def mark_attendance(
    db: Session,
    user: User,
    now: Optional[datetime] = None,
    location: Optional[str] = None,
) -> DailyAttendance:
    role = UserRole(user.role)
    if role not in ATTENDANCE_ROLES:
        raise Forbidden("Only students and teachers mark daily attendance")

    now = now or datetime.now()
    today = now.date()

    already = db.query(DailyAttendance.id).filter(
        DailyAttendance.user_id == user.id,
        DailyAttendance.attendance_date == today
    ).first()
    if already:
        raise AlreadyMarked()

    if not within_school_hours(now):
        raise OutsideWindow(
            f"Attendance can only be marked during school hours "
            f"({settings.SCHOOL_DAY_START_HOUR}:00 - {settings.SCHOOL_DAY_END_HOUR}:00)"
        )

    attendance = DailyAttendance(
        user_id=user.id,
        role=role,
        attendance_date=today,
        check_in_time=now,
        status=classify_check_in(now),
        location=location,
    )
    db.add(attendance)
    try:
        db.commit()
    except IntegrityError:
        # lost the race against a concurrent check-in for the same day
        db.rollback()
        raise AlreadyMarked()
    db.refresh(attendance)
    logger.info(f"Attendance marked for {role.value} {user.id}: {attendance.status.value}")
    return attendance


def attendance_history(db: Session, user_id: str, limit: Optional[int] = None) -> List[DailyAttendance]:
    return db.query(DailyAttendance).filter(
        DailyAttendance.user_id == user_id
    ).order_by(
        DailyAttendance.attendance_date.desc()
    ).limit(limit or settings.DAILY_HISTORY_LIMIT).all()


def serialize_attendance(record: DailyAttendance, include_user: bool = False) -> Dict[str, Any]:
    data = {
        "id": record.id,
        "user_id": record.user_id,
        "role": UserRole(record.role).value,
        "date": record.attendance_date.isoformat(),
        "check_in_time": record.check_in_time.isoformat() if record.check_in_time else None,
        "check_out_time": record.check_out_time.isoformat() if record.check_out_time else None,
        "status": AttendanceStatus(record.status).value,
        "location": record.location,
    }
    if include_user and record.user is not None:
        data["user"] = {
            "name": record.user.name,
            "email": record.user.email,
            "class_id": record.user.class_id,
        }
    return data


def daily_overview(db: Session, on_date: Optional[date] = None) -> Dict[str, Any]:
    """Present/late come from the ledger; absent is the roster complement at query time."""
    on_date = on_date or date.today()

    records = db.query(DailyAttendance).options(
        joinedload(DailyAttendance.user)
    ).filter(
        DailyAttendance.attendance_date == on_date
    ).order_by(DailyAttendance.check_in_time.asc()).all()

    roster = dict(
        db.query(User.role, func.count(User.id)).filter(
            User.role.in_(ATTENDANCE_ROLES)
        ).group_by(User.role).all()
    )

    overview = {}
    for role in ATTENDANCE_ROLES:
        present = sum(1 for r in records if r.role == role and r.status == AttendanceStatus.PRESENT)
        late = sum(1 for r in records if r.role == role and r.status == AttendanceStatus.LATE)
        total = roster.get(role, 0)
        overview[f"{role.value}s"] = {
            "present": present,
            "late": late,
            "absent": max(total - present - late, 0),
            "total": total,
        }

    return {
        "date": on_date.isoformat(),
        "students": overview["students"],
        "teachers": overview["teachers"],
        "records": [serialize_attendance(r, include_user=True) for r in records],
    }
