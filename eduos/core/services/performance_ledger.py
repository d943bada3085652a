"""
Per-student, per-subject attendance percentages and marks, upserted by teachers.
"""
import logging
from typing import Dict, Any, Type, Union
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from eduos.models import User, UserRole, SubjectAttendance, SubjectMarks
from eduos.core.utils.exceptions import (
    NotFound, NotInClass, OutOfRange, ValidationFailed
)

logger = logging.getLogger(__name__)

LedgerModel = Union[Type[SubjectAttendance], Type[SubjectMarks]]


def _check_range(value: float, field: str) -> float:
    if value is None or not 0 <= value <= 100:
        raise OutOfRange(f"{field} must be between 0 and 100")
    return float(value)


def _student_in_class(db: Session, teacher: User, student_id: str) -> User:
    if not teacher.class_id:
        raise ValidationFailed("Teacher not assigned to a class")

    student = db.query(User).filter(
        User.id == student_id,
        User.role == UserRole.STUDENT
    ).first()
    if not student:
        raise NotFound("Student not found")
    if student.class_id != teacher.class_id:
        raise NotInClass()
    return student


def _upsert(db: Session, model: LedgerModel, field: str, student_id: str, subject: str, value: float):
    existing = db.query(model).filter(
        model.student_id == student_id,
        model.subject == subject
    ).first()
    if existing:
        setattr(existing, field, value)
        db.commit()
        db.refresh(existing)
        return existing

    record = model(student_id=student_id, subject=subject, **{field: value})
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        # a concurrent writer created the row first; overwrite it
        db.rollback()
        record = db.query(model).filter(
            model.student_id == student_id,
            model.subject == subject
        ).one()
        setattr(record, field, value)
        db.commit()
    db.refresh(record)
    return record


def upsert_attendance_percentage(
    db: Session, teacher: User, student_id: str, subject: str, percentage: float
) -> SubjectAttendance:
    percentage = _check_range(percentage, "percentage")
    subject = (subject or "").strip()
    if not subject:
        raise ValidationFailed("Subject is required")
    _student_in_class(db, teacher, student_id)
    record = _upsert(db, SubjectAttendance, "percentage", student_id, subject, percentage)
    logger.info(f"Teacher {teacher.id} set attendance {subject}={percentage} for {student_id}")
    return record


def upsert_marks(
    db: Session, teacher: User, student_id: str, subject: str, score: float
) -> SubjectMarks:
    score = _check_range(score, "score")
    subject = (subject or "").strip()
    if not subject:
        raise ValidationFailed("Subject is required")
    _student_in_class(db, teacher, student_id)
    record = _upsert(db, SubjectMarks, "score", student_id, subject, score)
    logger.info(f"Teacher {teacher.id} set marks {subject}={score} for {student_id}")
    return record


def serialize_subject_attendance(record: SubjectAttendance) -> Dict[str, Any]:
    return {
        "id": record.id,
        "student_id": record.student_id,
        "subject": record.subject,
        "percentage": record.percentage,
    }


def serialize_subject_marks(record: SubjectMarks) -> Dict[str, Any]:
    return {
        "id": record.id,
        "student_id": record.student_id,
        "subject": record.subject,
        "score": record.score,
    }
