from datetime import date, datetime
from typing import Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from sqlalchemy.orm import Session
from eduos.core.utils.customize_response import success_response, paginated_success_response
from eduos.core.utils.helpers import require_roles, current_time, serialize_user, serialize_users, PaginationParams
from eduos.core.services import accounts, attendance_ledger, medical
from eduos.core.services.aggregation import institution_summary
from eduos.core.services.activity import (
    ActivityAction, ActivityEntry, ActivityLogger, get_activity_logger,
    CreateStudentDetails, AssignStudentIdDetails, list_activities, serialize_activity
)
from eduos.core.services.summary import SummaryKind, SummaryService, get_summary_service
from eduos.database import get_db
from eduos.models import User, UserRole
from eduos.schemas import CreateStudentRequest, AssignStudentIdRequest, QuestionRequest


router = APIRouter(prefix="/api/admin", tags=["Admin"])

require_admin = require_roles(UserRole.ADMIN)


def group_by_role(items, role_of) -> dict:
    return {
        f"{role.value}s": [item for item in items if role_of(item) == role.value]
        for role in UserRole
    }


def role_counts(grouped: dict, total: int) -> dict:
    return {"total": total, **{key: len(values) for key, values in grouped.items()}}


@router.get("/dashboard")
def admin_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
    summarizer: SummaryService = Depends(get_summary_service)
):
    summary = institution_summary(db)
    ai_summary = summarizer.narrate(SummaryKind.INSTITUTION, summary)

    return success_response(
        message="Dashboard retrieved successfully",
        data={
            **summary,
            "medical_stats": medical.status_counts(db),
            "ai_summary": ai_summary,
        }
    )


@router.get("/users")
def list_users(
    role: Optional[UserRole] = Query(None),
    pagination: PaginationParams = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)

    total_count = query.count()
    users = serialize_users(
        query.order_by(User.created_at.desc()).offset(pagination.offset).limit(pagination.per_page).all()
    )
    grouped = group_by_role(users, lambda u: u["role"])

    return paginated_success_response(
        message="Users retrieved successfully",
        items={
            "users": users,
            "grouped_users": grouped,
            "counts": role_counts(grouped, len(users)),
        },
        current_page=pagination.page,
        page_size=pagination.per_page,
        total_items=total_count
    )


@router.get("/activities")
def get_activities(
    role: Optional[UserRole] = Query(None),
    user_id: Optional[str] = Query(None, alias="userId"),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin)
):
    activities = [serialize_activity(a) for a in list_activities(db, role=role, user_id=user_id, limit=limit)]
    grouped = group_by_role(activities, lambda a: a["role"])

    return success_response(
        message="Activities retrieved successfully",
        data={
            "activities": activities,
            "grouped_activities": grouped,
            "counts": role_counts(grouped, len(activities)),
        }
    )


@router.post("/create-student", status_code=status.HTTP_201_CREATED)
def create_student(
    payload: CreateStudentRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
    activity_logger: ActivityLogger = Depends(get_activity_logger)
):
    student = accounts.create_student(
        db,
        name=payload.name,
        student_id=payload.student_id,
        email=payload.email,
        class_id=payload.class_id,
    )

    background_tasks.add_task(activity_logger.record, ActivityEntry.build(
        current_user,
        ActivityAction.CREATE_STUDENT,
        CreateStudentDetails(student_user_id=student.id, student_id=student.student_id),
        request
    ))

    return success_response(
        message="Student created successfully",
        data=serialize_user(student)
    )


@router.put("/assign-student-id/{user_id}")
def assign_student_id(
    user_id: str,
    payload: AssignStudentIdRequest,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
    activity_logger: ActivityLogger = Depends(get_activity_logger)
):
    student = accounts.assign_student_id(db, user_id, payload.student_id)

    background_tasks.add_task(activity_logger.record, ActivityEntry.build(
        current_user,
        ActivityAction.ASSIGN_STUDENT_ID,
        AssignStudentIdDetails(student_user_id=student.id, student_id=student.student_id),
        request
    ))

    return success_response(
        message="Student ID assigned successfully",
        data=serialize_user(student)
    )


@router.get("/attendance-overview")
def attendance_overview(
    target_date: Optional[date] = Query(None, alias="date"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
    now: datetime = Depends(current_time)
):
    return success_response(
        message="Attendance overview retrieved successfully",
        data=attendance_ledger.daily_overview(db, target_date or now.date())
    )


@router.post("/ask-question")
def ask_question(
    payload: QuestionRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
    summarizer: SummaryService = Depends(get_summary_service)
):
    summary = institution_summary(db)
    answer = summarizer.narrate(SummaryKind.ADMIN_QUESTION, {"question": payload.question, **summary})
    return success_response(
        message="Answer generated successfully",
        data={"answer": answer}
    )
