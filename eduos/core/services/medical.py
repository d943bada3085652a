"""
Medical leave requests and the eligibility resolver used to suppress risk flags.
"""
import logging
from datetime import date, datetime
from typing import Dict, Any, Iterable, List, Optional, Set
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload
from eduos.models import MedicalRequest, MedicalStatus, User
from eduos.core.utils.exceptions import (
    AlreadyReviewed, NotFound, ValidationFailed
)

logger = logging.getLogger(__name__)


def create_request(
    db: Session,
    student: User,
    from_date: date,
    to_date: date,
    reason: str,
    certificate_url: Optional[str] = None,
) -> MedicalRequest:
    if to_date < from_date:
        raise ValidationFailed("toDate must be on or after fromDate")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationFailed("Reason is required")

    request = MedicalRequest(
        student_id=student.id,
        from_date=from_date,
        to_date=to_date,
        reason=reason,
        certificate_url=certificate_url or None,
        status=MedicalStatus.PENDING,
        doctor_remark="",
    )
    db.add(request)
    db.commit()
    db.refresh(request)
    return request


def list_for_student(db: Session, student_id: str) -> List[MedicalRequest]:
    return db.query(MedicalRequest).filter(
        MedicalRequest.student_id == student_id
    ).order_by(MedicalRequest.created_at.desc()).all()


def list_requests(db: Session, status: Optional[MedicalStatus] = None) -> List[MedicalRequest]:
    query = db.query(MedicalRequest).options(joinedload(MedicalRequest.student))
    if status:
        query = query.filter(MedicalRequest.status == MedicalStatus(status))
    return query.order_by(MedicalRequest.created_at.desc()).all()


def get_request(db: Session, request_id: str) -> MedicalRequest:
    request = db.query(MedicalRequest).options(
        joinedload(MedicalRequest.student)
    ).filter(MedicalRequest.id == request_id).first()
    if not request:
        raise NotFound("Medical request not found")
    return request


def review_request(
    db: Session,
    doctor: User,
    request_id: str,
    decision: MedicalStatus,
    remark: Optional[str] = None,
) -> MedicalRequest:
    """pending → approved | rejected, exactly once"""
    decision = MedicalStatus(decision)
    if decision == MedicalStatus.PENDING:
        raise ValidationFailed("A review must approve or reject")

    # conditional update keeps the transition single-shot under concurrent reviews
    updated = db.query(MedicalRequest).filter(
        MedicalRequest.id == request_id,
        MedicalRequest.status == MedicalStatus.PENDING
    ).update({
        MedicalRequest.status: decision,
        MedicalRequest.doctor_remark: remark or "",
        MedicalRequest.reviewed_by: doctor.id,
        MedicalRequest.reviewed_at: datetime.now(),
    }, synchronize_session=False)

    if not updated:
        db.rollback()
        get_request(db, request_id)
        raise AlreadyReviewed()

    db.commit()
    request = get_request(db, request_id)
    db.refresh(request)
    logger.info(f"Doctor {doctor.id} {decision.value} medical request {request_id}")
    return request


def status_counts(db: Session) -> Dict[str, int]:
    counts = dict(
        db.query(MedicalRequest.status, func.count(MedicalRequest.id)).group_by(
            MedicalRequest.status
        ).all()
    )
    stats = {s.value: counts.get(s, 0) for s in MedicalStatus}
    stats["total"] = sum(stats.values())
    return stats


def has_active_medical_approval(db: Session, student_id: str, on_date: date) -> bool:
    return db.query(
        db.query(MedicalRequest).filter(
            MedicalRequest.student_id == student_id,
            MedicalRequest.status == MedicalStatus.APPROVED,
            MedicalRequest.from_date <= on_date,
            MedicalRequest.to_date >= on_date
        ).exists()
    ).scalar()


def students_with_active_approval(db: Session, student_ids: Iterable[str], on_date: date) -> Set[str]:
    """Batch form of ``has_active_medical_approval``, read fresh on every call."""
    student_ids = list(student_ids)
    if not student_ids:
        return set()
    rows = db.query(MedicalRequest.student_id).filter(
        MedicalRequest.student_id.in_(student_ids),
        MedicalRequest.status == MedicalStatus.APPROVED,
        MedicalRequest.from_date <= on_date,
        MedicalRequest.to_date >= on_date
    ).distinct().all()
    return {row[0] for row in rows}


def serialize_request(request: MedicalRequest, include_student: bool = False) -> Dict[str, Any]:
    data = {
        "id": request.id,
        "student_id": request.student_id,
        "from_date": request.from_date.isoformat(),
        "to_date": request.to_date.isoformat(),
        "reason": request.reason,
        "certificate_url": request.certificate_url,
        "status": MedicalStatus(request.status).value,
        "doctor_remark": request.doctor_remark or "",
        "reviewed_by": request.reviewed_by,
        "reviewed_at": request.reviewed_at.isoformat() if request.reviewed_at else None,
        "created_at": request.created_at.isoformat() if request.created_at else None,
    }
    if include_student and request.student is not None:
        data["student"] = {
            "id": request.student.id,
            "name": request.student.name,
            "email": request.student.email,
            "class_id": request.student.class_id,
        }
    return data
