from typing import List, Optional
from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request
from sqlalchemy.orm import Session
from eduos.core.utils.customize_response import success_response
from eduos.core.utils.helpers import require_roles
from eduos.core.services import medical
from eduos.core.services.activity import (
    ActivityAction, ActivityEntry, ActivityLogger, get_activity_logger, ReviewMedicalRequestDetails
)
from eduos.core.services.summary import SummaryKind, SummaryService, get_summary_service
from eduos.database import get_db
from eduos.models import User, UserRole, MedicalStatus, MedicalRequest
from eduos.schemas import ReviewRequest


router = APIRouter(prefix="/api/doctor", tags=["Doctor"])

require_doctor = require_roles(UserRole.DOCTOR)


def with_summaries(requests: List[MedicalRequest], summarizer: SummaryService) -> List[dict]:
    summaries = summarizer.narrate_many(SummaryKind.MEDICAL_REQUEST, [{"reason": r.reason} for r in requests])
    return [
        {**medical.serialize_request(r, include_student=True), "ai_summary": summary}
        for r, summary in zip(requests, summaries)
    ]


@router.get("/dashboard")
def doctor_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(require_doctor)
):
    return success_response(
        message="Dashboard retrieved successfully",
        data=medical.status_counts(db)
    )


@router.get("/medical-requests")
def list_medical_requests(
    status: Optional[MedicalStatus] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_doctor),
    summarizer: SummaryService = Depends(get_summary_service)
):
    requests = medical.list_requests(db, status)
    return success_response(
        message="Medical requests retrieved successfully",
        data=with_summaries(requests, summarizer)
    )


@router.get("/medical-requests/{request_id}")
def get_medical_request(
    request_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_doctor),
    summarizer: SummaryService = Depends(get_summary_service)
):
    return success_response(
        message="Medical request retrieved successfully",
        data=with_summaries([medical.get_request(db, request_id)], summarizer)[0]
    )


def _review(
    decision: MedicalStatus,
    request_id: str,
    payload: Optional[ReviewRequest],
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session,
    doctor: User,
    activity_logger: ActivityLogger,
) -> MedicalRequest:
    medical_request = medical.review_request(
        db, doctor, request_id, decision, remark=payload.doctor_remark if payload else None
    )
    background_tasks.add_task(activity_logger.record, ActivityEntry.build(
        doctor,
        ActivityAction.REVIEW_MEDICAL_REQUEST,
        ReviewMedicalRequestDetails(request_id=medical_request.id, status=decision),
        request
    ))
    return medical_request


@router.post("/medical-requests/{request_id}/approve")
def approve_medical_request(
    request_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    payload: Optional[ReviewRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_doctor),
    activity_logger: ActivityLogger = Depends(get_activity_logger)
):
    medical_request = _review(
        MedicalStatus.APPROVED, request_id, payload, request, background_tasks, db, current_user, activity_logger
    )
    return success_response(
        message="Medical request approved",
        data=medical.serialize_request(medical_request, include_student=True)
    )


@router.post("/medical-requests/{request_id}/reject")
def reject_medical_request(
    request_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    payload: Optional[ReviewRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_doctor),
    activity_logger: ActivityLogger = Depends(get_activity_logger)
):
    medical_request = _review(
        MedicalStatus.REJECTED, request_id, payload, request, background_tasks, db, current_user, activity_logger
    )
    return success_response(
        message="Medical request rejected",
        data=medical.serialize_request(medical_request, include_student=True)
    )
