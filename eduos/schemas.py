from datetime import date
from typing import Annotated, Optional
from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, StringConstraints, field_validator
from eduos.models import UserRole, Mood


class RequestBody(BaseModel):
    # the web client posts camelCase, scripts may post snake_case
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


def _strip(value):
    return value.strip() if isinstance(value, str) else value


StrippedStr = Annotated[str, StringConstraints(strip_whitespace=True)]
TrimmedStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
TrimmedEmail = Annotated[EmailStr, BeforeValidator(_strip)]


class CredentialsBody(BaseModel):
    # passwords are taken exactly as typed; other fields trim themselves
    model_config = ConfigDict(populate_by_name=True)


# =========================================================
# 🔹 AUTH
# =========================================================

class RegisterRequest(CredentialsBody):
    name: TrimmedStr
    email: TrimmedEmail
    password: str = Field(..., min_length=1)
    role: UserRole
    class_id: Optional[StrippedStr] = Field(None, alias="classId")


class LoginRequest(CredentialsBody):
    email: TrimmedEmail
    password: str = Field(..., min_length=1)
    face_data: Optional[str] = Field(None, alias="faceData")


class StudentLoginRequest(RequestBody):
    student_id: str = Field(..., min_length=1, alias="studentId")


class ForgotPasswordRequest(RequestBody):
    email: EmailStr


class ResetPasswordRequest(CredentialsBody):
    email: TrimmedEmail
    new_password: str = Field(..., alias="newPassword")
    reset_token: Optional[str] = Field(None, alias="resetToken")


# =========================================================
# 🔹 STUDENT
# =========================================================

class CheckinRequest(RequestBody):
    mood: Mood
    text: str = ""


class MedicalRequestCreate(RequestBody):
    from_date: date = Field(..., alias="fromDate")
    to_date: date = Field(..., alias="toDate")
    reason: str = Field(..., min_length=1)
    certificate_url: Optional[str] = Field(None, alias="certificateUrl")


class MarkAttendanceRequest(RequestBody):
    location: Optional[str] = None


class QuestionRequest(RequestBody):
    question: str = Field(..., min_length=1)


# =========================================================
# 🔹 TEACHER
# =========================================================

class SubjectAttendanceUpdate(RequestBody):
    student_id: str = Field(..., alias="studentId")
    subject: str = Field(..., min_length=1)
    # range is enforced by the ledger so it reports OutOfRange
    percentage: float


class SubjectMarksUpdate(RequestBody):
    student_id: str = Field(..., alias="studentId")
    subject: str = Field(..., min_length=1)
    score: float


# =========================================================
# 🔹 DOCTOR
# =========================================================

class ReviewRequest(RequestBody):
    doctor_remark: Optional[str] = Field(None, alias="doctorRemark")


# =========================================================
# 🔹 ADMIN
# =========================================================

class CreateStudentRequest(RequestBody):
    name: str = Field(..., min_length=1)
    student_id: str = Field(..., min_length=1, alias="studentId")
    email: Optional[EmailStr] = None
    class_id: Optional[str] = Field(None, alias="classId")

    @field_validator("email", mode="before")
    @classmethod
    def blank_email_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


class AssignStudentIdRequest(RequestBody):
    student_id: str = Field(..., min_length=1, alias="studentId")
