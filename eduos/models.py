import uuid
from datetime import datetime
from enum import Enum
from sqlalchemy import (
    Column, String, Integer, Boolean, DateTime, Text, ForeignKey,
    Date, Enum as SQLEnum, Float, JSON,
    UniqueConstraint, CheckConstraint, Index
)
from sqlalchemy.orm import relationship, declarative_base

Base = declarative_base()


class UserRole(str, Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    DOCTOR = "doctor"
    ADMIN = "admin"


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    LATE = "late"
    ABSENT = "absent"


class MedicalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class Mood(str, Enum):
    HAPPY = "happy"
    NEUTRAL = "neutral"
    SAD = "sad"
    ANXIOUS = "anxious"
    EXCITED = "excited"


def new_id() -> str:
    return str(uuid.uuid4())


##### user management
class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=True)
    password = Column(String(255), nullable=True)
    role = Column(SQLEnum(UserRole), nullable=False)
    class_id = Column(String(50), nullable=True)
    student_id = Column(String(50), unique=True, nullable=True)
    face_template = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    attendance_records = relationship("DailyAttendance", back_populates="user")
    subject_attendance = relationship("SubjectAttendance", back_populates="student")
    subject_marks = relationship("SubjectMarks", back_populates="student")
    medical_requests = relationship(
        "MedicalRequest", back_populates="student", foreign_keys="[MedicalRequest.student_id]"
    )
    checkins = relationship("Checkin", back_populates="student")

    __table_args__ = (
        Index("idx_user_role_class", "role", "class_id"),
    )

    def __repr__(self):
        return f"<User {self.email or self.student_id} ({self.role})>"


############# daily attendance #######
class DailyAttendance(Base):
    __tablename__ = "daily_attendance"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False)
    attendance_date = Column(Date, nullable=False)
    check_in_time = Column(DateTime, nullable=False)
    check_out_time = Column(DateTime, nullable=True)
    status = Column(SQLEnum(AttendanceStatus), nullable=False, default=AttendanceStatus.PRESENT)
    location = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=datetime.now)

    # Relationships
    user = relationship("User", back_populates="attendance_records")

    __table_args__ = (
        UniqueConstraint("user_id", "attendance_date", name="unique_user_date"),
        Index("idx_daily_attendance_date", "attendance_date", "role"),
    )

    def __repr__(self):
        return f"<DailyAttendance {self.user_id} - {self.attendance_date}>"


##### performance ledger ##########
class SubjectAttendance(Base):
    __tablename__ = "subject_attendance"

    id = Column(String(36), primary_key=True, default=new_id)
    student_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    subject = Column(String(100), nullable=False)
    percentage = Column(Float, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    student = relationship("User", back_populates="subject_attendance")

    __table_args__ = (
        UniqueConstraint("student_id", "subject", name="unique_student_subject_attendance"),
        CheckConstraint("percentage >= 0 AND percentage <= 100", name="check_percentage_range"),
    )

    def __repr__(self):
        return f"<SubjectAttendance {self.student_id} {self.subject}: {self.percentage}>"


class SubjectMarks(Base):
    __tablename__ = "subject_marks"

    id = Column(String(36), primary_key=True, default=new_id)
    student_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    subject = Column(String(100), nullable=False)
    score = Column(Float, nullable=False)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    student = relationship("User", back_populates="subject_marks")

    __table_args__ = (
        UniqueConstraint("student_id", "subject", name="unique_student_subject_marks"),
        CheckConstraint("score >= 0 AND score <= 100", name="check_score_range"),
    )

    def __repr__(self):
        return f"<SubjectMarks {self.student_id} {self.subject}: {self.score}>"


class MedicalRequest(Base):
    __tablename__ = "medical_requests"

    id = Column(String(36), primary_key=True, default=new_id)
    student_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    from_date = Column(Date, nullable=False)
    to_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=False)
    certificate_url = Column(String(500), nullable=True)
    status = Column(SQLEnum(MedicalStatus), nullable=False, default=MedicalStatus.PENDING)
    doctor_remark = Column(Text, default="")
    reviewed_by = Column(String(36), ForeignKey("users.id"), nullable=True)
    reviewed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    # Relationships
    student = relationship("User", back_populates="medical_requests", foreign_keys=[student_id])
    reviewer = relationship("User", foreign_keys=[reviewed_by])

    __table_args__ = (
        CheckConstraint("to_date >= from_date", name="check_medical_dates"),
        Index("idx_medical_student_status", "student_id", "status"),
        Index("idx_medical_dates", "from_date", "to_date"),
    )

    def __repr__(self):
        return f"<MedicalRequest {self.student_id} {self.from_date}..{self.to_date} ({self.status})>"


class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id = Column(String(36), primary_key=True, default=new_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    role = Column(SQLEnum(UserRole), nullable=False)
    action = Column(String(50), nullable=False)
    details = Column(JSON, default=dict)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=datetime.now)

    user = relationship("User")

    __table_args__ = (
        Index("idx_activity_user", "user_id", "created_at"),
        Index("idx_activity_role", "role", "created_at"),
    )

    def __repr__(self):
        return f"<ActivityLog {self.action} by {self.user_id}>"


class Checkin(Base):
    __tablename__ = "checkins"

    id = Column(String(36), primary_key=True, default=new_id)
    student_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    mood = Column(SQLEnum(Mood), nullable=False)
    text = Column(Text, default="")
    created_at = Column(DateTime, default=datetime.now)

    student = relationship("User", back_populates="checkins")

    def __repr__(self):
        return f"<Checkin {self.student_id}: {self.mood}>"
