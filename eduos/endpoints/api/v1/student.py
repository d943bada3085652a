from datetime import datetime
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from sqlalchemy.orm import Session
from eduos.core.utils.customize_response import success_response
from eduos.core.utils.helpers import require_roles, current_time
from eduos.core.services import attendance_ledger, medical
from eduos.core.services.aggregation import load_student_summaries
from eduos.core.services.activity import (
    ActivityAction, ActivityEntry, ActivityLogger, get_activity_logger,
    MarkAttendanceDetails, CreateMedicalRequestDetails, CheckinDetails
)
from eduos.core.services.summary import SummaryKind, SummaryService, get_summary_service
from eduos.database import get_db
from eduos.models import User, UserRole, Checkin
from eduos.schemas import CheckinRequest, MedicalRequestCreate, MarkAttendanceRequest, QuestionRequest


router = APIRouter(prefix="/api/student", tags=["Student"])

require_student = require_roles(UserRole.STUDENT)


@router.get("/dashboard")
def student_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
    summarizer: SummaryService = Depends(get_summary_service)
):
    summary = load_student_summaries(db, [current_user.id])[current_user.id]
    requests = medical.list_for_student(db, current_user.id)

    ai_summary = summarizer.narrate(SummaryKind.STUDENT, {
        "name": current_user.name,
        "attendance": summary.avg_attendance,
        "subjects": sorted(summary.attendance_by_subject),
        "marks": summary.marks_by_subject,
    })

    return success_response(
        message="Dashboard retrieved successfully",
        data={
            **summary.to_dict(),
            "medical_requests": [medical.serialize_request(r) for r in requests],
            "ai_summary": ai_summary,
        }
    )


@router.post("/checkin", status_code=status.HTTP_201_CREATED)
def submit_checkin(
    payload: CheckinRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
    activity_logger: ActivityLogger = Depends(get_activity_logger)
):
    checkin = Checkin(student_id=current_user.id, mood=payload.mood, text=payload.text or "")
    db.add(checkin)
    db.commit()
    db.refresh(checkin)

    background_tasks.add_task(activity_logger.record, ActivityEntry.build(
        current_user, ActivityAction.SUBMIT_CHECKIN, CheckinDetails(mood=checkin.mood), request
    ))

    return success_response(
        message="Check-in saved successfully",
        data={
            "id": checkin.id,
            "mood": checkin.mood.value,
            "text": checkin.text,
            "created_at": checkin.created_at.isoformat() if checkin.created_at else None
        }
    )


@router.post("/medical-request", status_code=status.HTTP_201_CREATED)
def create_medical_request(
    payload: MedicalRequestCreate,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
    activity_logger: ActivityLogger = Depends(get_activity_logger)
):
    medical_request = medical.create_request(
        db,
        current_user,
        from_date=payload.from_date,
        to_date=payload.to_date,
        reason=payload.reason,
        certificate_url=payload.certificate_url,
    )

    background_tasks.add_task(activity_logger.record, ActivityEntry.build(
        current_user,
        ActivityAction.CREATE_MEDICAL_REQUEST,
        CreateMedicalRequestDetails(
            request_id=medical_request.id,
            from_date=medical_request.from_date,
            to_date=medical_request.to_date,
        ),
        request
    ))

    return success_response(
        message="Medical request submitted successfully",
        data=medical.serialize_request(medical_request)
    )


@router.get("/medical-requests")
def get_medical_requests(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student)
):
    requests = medical.list_for_student(db, current_user.id)
    return success_response(
        message="Medical requests retrieved successfully",
        data=[medical.serialize_request(r) for r in requests]
    )


@router.post("/mark-attendance", status_code=status.HTTP_201_CREATED)
def mark_daily_attendance(
    request: Request,
    background_tasks: BackgroundTasks,
    payload: Optional[MarkAttendanceRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
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
    current_user: User = Depends(require_student)
):
    records = attendance_ledger.attendance_history(db, current_user.id)
    return success_response(
        message="Attendance history retrieved successfully",
        data=[attendance_ledger.serialize_attendance(r) for r in records]
    )


@router.post("/chatbot")
def student_chatbot(
    payload: QuestionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_student),
    summarizer: SummaryService = Depends(get_summary_service)
):
    summary = load_student_summaries(db, [current_user.id])[current_user.id]
    answer = summarizer.narrate(SummaryKind.STUDENT_QUESTION, {
        "question": payload.question,
        "name": current_user.name,
        "attendance": summary.avg_attendance,
        "marks": summary.avg_marks,
        "subjects": sorted(set(summary.attendance_by_subject) | set(summary.marks_by_subject)),
    })
    return success_response(
        message="Answer generated successfully",
        data={"answer": answer}
    )
