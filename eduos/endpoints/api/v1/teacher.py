from datetime import datetime
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from sqlalchemy.orm import Session
from eduos.core.utils.customize_response import success_response
from eduos.core.utils.exceptions import ValidationFailed
from eduos.core.utils.helpers import require_roles, current_time, serialize_user
from eduos.core.services import attendance_ledger, performance_ledger
from eduos.core.services.aggregation import class_summary, class_students
from eduos.core.services.medical import students_with_active_approval
from eduos.core.services.activity import (
    ActivityAction, ActivityEntry, ActivityLogger, get_activity_logger,
    MarkAttendanceDetails, UpdateAttendanceDetails, UpdateMarksDetails
)
from eduos.core.services.summary import SummaryKind, SummaryService, get_summary_service
from eduos.database import get_db
from eduos.models import User, UserRole
from eduos.schemas import SubjectAttendanceUpdate, SubjectMarksUpdate, MarkAttendanceRequest


router = APIRouter(prefix="/api/teacher", tags=["Teacher"])

require_teacher = require_roles(UserRole.TEACHER)


def assigned_class(teacher: User) -> str:
    if not teacher.class_id:
        raise ValidationFailed("Teacher not assigned to a class")
    return teacher.class_id


@router.get("/class-overview")
def class_overview(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
    now: datetime = Depends(current_time),
    summarizer: SummaryService = Depends(get_summary_service)
):
    overview = class_summary(db, assigned_class(current_user), on_date=now.date())

    ai_summary = summarizer.narrate(SummaryKind.CLASS, {
        "avg_attendance": overview["avg_attendance"],
        "avg_marks": overview["avg_marks"],
        "total_students": overview["total_students"],
        "students_needing_attention": len(overview["students_needing_attention"]),
    })

    return success_response(
        message="Class overview retrieved successfully",
        data={**overview, "ai_summary": ai_summary}
    )


@router.get("/students")
def list_class_students(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
    now: datetime = Depends(current_time)
):
    students = class_students(db, assigned_class(current_user))
    exempt = students_with_active_approval(db, [s.id for s in students], now.date())

    return success_response(
        message="Students retrieved successfully",
        data=[
            {**serialize_user(s), "has_medical_approval": s.id in exempt}
            for s in students
        ]
    )


@router.post("/attendance")
def update_attendance(
    payload: SubjectAttendanceUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
    activity_logger: ActivityLogger = Depends(get_activity_logger)
):
    record = performance_ledger.upsert_attendance_percentage(
        db, current_user, payload.student_id, payload.subject, payload.percentage
    )

    background_tasks.add_task(activity_logger.record, ActivityEntry.build(
        current_user,
        ActivityAction.UPDATE_ATTENDANCE,
        UpdateAttendanceDetails(student_id=record.student_id, subject=record.subject, percentage=record.percentage),
        request
    ))

    return success_response(
        message="Attendance updated successfully",
        data=performance_ledger.serialize_subject_attendance(record)
    )


@router.post("/marks")
def update_marks(
    payload: SubjectMarksUpdate,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
    activity_logger: ActivityLogger = Depends(get_activity_logger)
):
    record = performance_ledger.upsert_marks(
        db, current_user, payload.student_id, payload.subject, payload.score
    )

    background_tasks.add_task(activity_logger.record, ActivityEntry.build(
        current_user,
        ActivityAction.UPDATE_MARKS,
        UpdateMarksDetails(student_id=record.student_id, subject=record.subject, score=record.score),
        request
    ))

    return success_response(
        message="Marks updated successfully",
        data=performance_ledger.serialize_subject_marks(record)
    )


@router.post("/mark-attendance", status_code=status.HTTP_201_CREATED)
def mark_daily_attendance(
    request: Request,
    background_tasks: BackgroundTasks,
    payload: Optional[MarkAttendanceRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher),
    now: datetime = Depends(current_time),
    activity_logger: ActivityLogger = Depends(get_activity_logger)
):
    attendance = attendance_ledger.mark_attendance(
        db, current_user, now=now, location=payload.location if payload else None
    )

    background_tasks.add_task(activity_logger.record, ActivityEntry.build(
        current_user,
        ActivityAction.MARK_ATTENDANCE,
        MarkAttendanceDetails(status=attendance.status, check_in_time=attendance.check_in_time),
        request
    ))

    return success_response(
        message="Attendance marked successfully",
        data=attendance_ledger.serialize_attendance(attendance)
    )


@router.get("/daily-attendance")
def get_daily_attendance(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_teacher)
):
    records = attendance_ledger.attendance_history(db, current_user.id)
    return success_response(
        message="Attendance history retrieved successfully",
        data=[attendance_ledger.serialize_attendance(r) for r in records]
    )
