"""
Roll-ups of the performance ledger into student, class and institution summaries.

Class and institution means are means of per-student averages, taken only over
students that have at least one record for the metric. Each pass batch-loads the
ledger rows it needs and reduces them in memory.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Iterable, Any
from sqlalchemy.orm import Session
from eduos.config import settings
from eduos.models import User, UserRole, SubjectAttendance, SubjectMarks
from eduos.core.services.medical import students_with_active_approval
from eduos.core.utils.helpers import round_half_up
from eduos.core.utils.exceptions import NotFound

LOW_ATTENDANCE = "Low Attendance"
LOW_PERFORMANCE = "Low Performance"


@dataclass
class StudentSummary:
    student_id: str
    attendance_by_subject: Dict[str, float] = field(default_factory=dict)
    marks_by_subject: Dict[str, float] = field(default_factory=dict)

    @property
    def has_attendance(self) -> bool:
        return bool(self.attendance_by_subject)

    @property
    def has_marks(self) -> bool:
        return bool(self.marks_by_subject)

    @property
    def raw_avg_attendance(self) -> float:
        return mean(self.attendance_by_subject.values())

    @property
    def raw_avg_marks(self) -> float:
        return mean(self.marks_by_subject.values())

    @property
    def avg_attendance(self) -> int:
        return round_half_up(self.raw_avg_attendance)

    @property
    def avg_marks(self) -> int:
        return round_half_up(self.raw_avg_marks)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "attendance_by_subject": self.attendance_by_subject,
            "marks_by_subject": self.marks_by_subject,
            "avg_attendance": self.avg_attendance,
            "avg_marks": self.avg_marks,
        }


def mean(values: Iterable[float]) -> float:
    values = list(values)
    if not values:
        return 0.0
    return sum(values) / len(values)


def load_student_summaries(db: Session, student_ids: List[str]) -> Dict[str, StudentSummary]:
    summaries = {sid: StudentSummary(student_id=sid) for sid in student_ids}
    if not student_ids:
        return summaries

    for row in db.query(SubjectAttendance).filter(SubjectAttendance.student_id.in_(student_ids)):
        summaries[row.student_id].attendance_by_subject[row.subject] = row.percentage
    for row in db.query(SubjectMarks).filter(SubjectMarks.student_id.in_(student_ids)):
        summaries[row.student_id].marks_by_subject[row.subject] = row.score
    return summaries


def mean_of_student_averages(summaries: Iterable[StudentSummary]) -> Dict[str, int]:
    summaries = list(summaries)
    attendance = [s.raw_avg_attendance for s in summaries if s.has_attendance]
    marks = [s.raw_avg_marks for s in summaries if s.has_marks]
    return {
        "attendance": round_half_up(mean(attendance)),
        "marks": round_half_up(mean(marks)),
        "attendance_reported": len(attendance),
        "marks_reported": len(marks),
    }


def needs_attention(summary: StudentSummary) -> bool:
    return (
        summary.raw_avg_attendance < settings.ATTENDANCE_RISK_THRESHOLD
        or summary.raw_avg_marks < settings.MARKS_RISK_THRESHOLD
    )


def student_summary(db: Session, student_id: str) -> StudentSummary:
    student = db.query(User.id).filter(User.id == student_id, User.role == UserRole.STUDENT).first()
    if not student:
        raise NotFound("Student not found")
    return load_student_summaries(db, [student_id])[student_id]


def class_students(db: Session, class_id: str) -> List[User]:
    return db.query(User).filter(
        User.role == UserRole.STUDENT,
        User.class_id == class_id
    ).order_by(User.name.asc()).all()


def class_summary(db: Session, class_id: str, on_date: Optional[date] = None) -> Dict[str, Any]:
    on_date = on_date or date.today()
    students = class_students(db, class_id)
    summaries = load_student_summaries(db, [s.id for s in students])
    exempt = students_with_active_approval(db, summaries.keys(), on_date)

    flagged = []
    for student in students:
        summary = summaries[student.id]
        if needs_attention(summary) and student.id not in exempt:
            flagged.append({
                "id": student.id,
                "name": student.name,
                "email": student.email,
                "student_id": student.student_id,
                "avg_attendance": summary.avg_attendance,
                "avg_marks": summary.avg_marks,
                "has_medical_approval": False,
            })

    means = mean_of_student_averages(summaries.values())
    return {
        "class_id": class_id,
        "total_students": len(students),
        "avg_attendance": means["attendance"],
        "avg_marks": means["marks"],
        "students_needing_attention": flagged,
    }


def institution_summary(db: Session) -> Dict[str, Any]:
    students = db.query(User).filter(User.role == UserRole.STUDENT).all()
    summaries = load_student_summaries(db, [s.id for s in students])

    by_class: Dict[str, List[StudentSummary]] = defaultdict(list)
    for student in students:
        if student.class_id:
            by_class[student.class_id].append(summaries[student.id])

    risk_areas = []
    for class_id in sorted(by_class):
        means = mean_of_student_averages(by_class[class_id])
        # a metric nobody in the class has records for is not a risk signal
        if means["attendance_reported"] and means["attendance"] < settings.ATTENDANCE_RISK_THRESHOLD:
            risk_areas.append({"type": LOW_ATTENDANCE, "class": class_id, "value": f"{means['attendance']}%"})
        if means["marks_reported"] and means["marks"] < settings.MARKS_RISK_THRESHOLD:
            risk_areas.append({"type": LOW_PERFORMANCE, "class": class_id, "value": f"{means['marks']}%"})

    overall = mean_of_student_averages(summaries.values())
    return {
        "overall_attendance": overall["attendance"],
        "overall_performance": overall["marks"],
        "total_classes": len(by_class),
        "total_students": len(students),
        "risk_areas": risk_areas,
    }
