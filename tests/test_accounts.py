import json
import pytest

from eduos.config import settings
from eduos.models import User, UserRole
from eduos.core.services import accounts
from eduos.core.utils.face_matcher import EncodingFaceMatcher, BypassFaceMatcher, encode_template
from eduos.core.utils.helpers import password_hasher
from eduos.core.utils.exceptions import (
    InvalidRole, DuplicateEmail, DuplicateStudentId, InvalidCredentials, WrongLoginChannel,
    FaceRequired, FaceMismatch, InvalidStudentId, WeakPassword, InvalidResetToken,
    NotFound, ValidationFailed
)

FACE = encode_template([0.1, 0.2, 0.3, 0.4])
SAME_FACE_NOISY = encode_template([0.12, 0.19, 0.31, 0.41])
OTHER_FACE = encode_template([0.9, -0.7, 0.8, -0.6])


def test_password_hash_round_trip():
    hashed = password_hasher.hash_password("correct horse")

    assert hashed != "correct horse"
    assert password_hasher.verify_password("correct horse", hashed)
    assert not password_hasher.verify_password("wrong horse", hashed)
    assert not password_hasher.verify_password("anything", None)


class TestRegister:
    def test_register_teacher_issues_token(self, db):
        user, token = accounts.register_non_student(
            db, name="Ms Rao", email="Rao@School.edu", password="secret1",
            role=UserRole.TEACHER, class_id="10A"
        )

        assert user.email == "rao@school.edu"
        assert user.class_id == "10A"
        assert password_hasher.verify_token(token)["user_id"] == user.id

    def test_students_cannot_register(self, db):
        with pytest.raises(InvalidRole):
            accounts.register_non_student(
                db, name="Kid", email="kid@school.edu", password="secret1", role=UserRole.STUDENT
            )
        assert db.query(User).count() == 0

    def test_duplicate_email_is_case_insensitive(self, db):
        accounts.register_non_student(
            db, name="A", email="dup@school.edu", password="secret1", role=UserRole.DOCTOR
        )
        with pytest.raises(DuplicateEmail):
            accounts.register_non_student(
                db, name="B", email="DUP@school.edu", password="secret1", role=UserRole.ADMIN
            )


class TestNonStudentLogin:
    def test_teacher_logs_in_with_password(self, db, make_user):
        teacher = make_user(UserRole.TEACHER, email="t@school.edu", password="secret1")

        user, token = accounts.login_non_student(db, "T@school.edu", "secret1")

        assert user.id == teacher.id
        assert token

    def test_wrong_password(self, db, make_user):
        make_user(UserRole.DOCTOR, email="doc@school.edu", password="secret1")

        with pytest.raises(InvalidCredentials):
            accounts.login_non_student(db, "doc@school.edu", "nope")

    def test_unknown_email(self, db):
        with pytest.raises(InvalidCredentials):
            accounts.login_non_student(db, "ghost@school.edu", "secret1")

    def test_student_is_sent_to_student_channel(self, db, make_user):
        make_user(UserRole.STUDENT, email="kid@school.edu", student_id="S1")

        with pytest.raises(WrongLoginChannel):
            accounts.login_non_student(db, "kid@school.edu", "whatever")

    def test_admin_needs_face(self, db, make_user):
        make_user(UserRole.ADMIN, email="admin@school.edu", password="secret1")

        with pytest.raises(FaceRequired):
            accounts.login_non_student(db, "admin@school.edu", "secret1")

    def test_first_admin_login_enrolls_template(self, db, make_user):
        admin = make_user(UserRole.ADMIN, email="admin@school.edu", password="secret1")

        accounts.login_non_student(db, "admin@school.edu", "secret1", FACE, EncodingFaceMatcher())

        db.refresh(admin)
        assert admin.face_template == FACE

    def test_admin_face_is_compared_after_enrollment(self, db, make_user):
        admin = make_user(UserRole.ADMIN, email="admin@school.edu", password="secret1")
        admin.face_template = FACE
        db.commit()

        user, _ = accounts.login_non_student(
            db, "admin@school.edu", "secret1", SAME_FACE_NOISY, EncodingFaceMatcher()
        )
        assert user.id == admin.id

        with pytest.raises(FaceMismatch):
            accounts.login_non_student(db, "admin@school.edu", "secret1", OTHER_FACE, EncodingFaceMatcher())

    def test_bypass_matcher_accepts_any_face(self, db, make_user):
        admin = make_user(UserRole.ADMIN, email="admin@school.edu", password="secret1")
        admin.face_template = FACE
        db.commit()

        user, _ = accounts.login_non_student(
            db, "admin@school.edu", "secret1", OTHER_FACE, BypassFaceMatcher()
        )
        assert user.id == admin.id


class TestStudentLogin:
    def test_login_by_student_id(self, db, make_user):
        student = make_user(student_id="STU-42")

        user, token = accounts.login_student(db, "  STU-42 ")

        assert user.id == student.id
        assert password_hasher.verify_token(token)["role"] == "student"

    def test_unknown_student_id(self, db):
        with pytest.raises(InvalidStudentId):
            accounts.login_student(db, "NOPE")

    def test_non_student_with_student_id_cannot_use_student_channel(self, db, make_user):
        make_user(UserRole.TEACHER, student_id="T-1")

        with pytest.raises(InvalidStudentId):
            accounts.login_student(db, "T-1")


class TestPasswordReset:
    def test_forgot_password_answers_the_same_either_way(self, db, make_user):
        make_user(UserRole.TEACHER, email="t@school.edu", password="secret1")

        known_message, known_token = accounts.forgot_password(db, "t@school.edu")
        unknown_message, unknown_token = accounts.forgot_password(db, "ghost@school.edu")

        assert known_message == unknown_message
        assert known_token is not None
        assert unknown_token is None

    def test_reset_with_valid_token(self, db, make_user):
        teacher = make_user(UserRole.TEACHER, email="t@school.edu", password="secret1")
        _, token = accounts.forgot_password(db, "t@school.edu")

        accounts.reset_password(db, "t@school.edu", "newsecret", token)

        db.refresh(teacher)
        assert password_hasher.verify_password("newsecret", teacher.password)

    def test_short_password_is_rejected(self, db, make_user):
        make_user(UserRole.TEACHER, email="t@school.edu", password="secret1")

        with pytest.raises(WeakPassword):
            accounts.reset_password(db, "t@school.edu", "12345", None)

    def test_unknown_user(self, db):
        with pytest.raises(NotFound):
            accounts.reset_password(db, "ghost@school.edu", "newsecret", "token")

    def test_session_token_is_not_a_reset_token(self, db, make_user):
        teacher = make_user(UserRole.TEACHER, email="t@school.edu", password="secret1")

        with pytest.raises(InvalidResetToken):
            accounts.reset_password(
                db, "t@school.edu", "newsecret", password_hasher.create_access_token(teacher)
            )

    def test_reset_token_is_bound_to_its_user(self, db, make_user):
        make_user(UserRole.TEACHER, email="a@school.edu", password="secret1")
        make_user(UserRole.TEACHER, email="b@school.edu", password="secret1")
        _, token_for_a = accounts.forgot_password(db, "a@school.edu")

        with pytest.raises(InvalidResetToken):
            accounts.reset_password(db, "b@school.edu", "newsecret", token_for_a)

    def test_token_is_required_by_default(self, db, make_user):
        make_user(UserRole.TEACHER, email="t@school.edu", password="secret1")

        with pytest.raises(InvalidResetToken):
            accounts.reset_password(db, "t@school.edu", "newsecret", None)

    def test_tokenless_reset_when_enabled(self, db, make_user, monkeypatch):
        monkeypatch.setattr(settings, "ALLOW_TOKENLESS_PASSWORD_RESET", True)
        teacher = make_user(UserRole.TEACHER, email="t@school.edu", password="secret1")

        accounts.reset_password(db, "t@school.edu", "newsecret", None)

        db.refresh(teacher)
        assert password_hasher.verify_password("newsecret", teacher.password)


class TestStudentAllocation:
    def test_create_student_without_password(self, db):
        student = accounts.create_student(db, name="Asha", student_id="S-100", class_id="10A")

        assert student.role == UserRole.STUDENT
        assert student.password is None
        assert student.email is None

    def test_duplicate_student_id_leaves_one_row(self, db):
        accounts.create_student(db, name="Asha", student_id="S-100")

        with pytest.raises(DuplicateStudentId):
            accounts.create_student(db, name="Ravi", student_id="S-100")

        assert db.query(User).filter(User.student_id == "S-100").count() == 1

    def test_duplicate_student_email(self, db, make_user):
        make_user(UserRole.TEACHER, email="taken@school.edu")

        with pytest.raises(DuplicateEmail):
            accounts.create_student(db, name="Asha", student_id="S-100", email="taken@school.edu")

    def test_assign_student_id(self, db, make_user):
        student = make_user(student_id="OLD")

        updated = accounts.assign_student_id(db, student.id, "NEW")

        assert updated.student_id == "NEW"
        user, _ = accounts.login_student(db, "NEW")
        assert user.id == student.id

    def test_assign_existing_id_conflicts(self, db, make_user):
        make_user(student_id="A")
        other = make_user(student_id="B")

        with pytest.raises(DuplicateStudentId):
            accounts.assign_student_id(db, other.id, "A")

    def test_assign_to_non_student(self, db, make_user):
        teacher = make_user(UserRole.TEACHER)

        with pytest.raises(ValidationFailed):
            accounts.assign_student_id(db, teacher.id, "X")

    def test_assign_to_unknown_user(self, db):
        with pytest.raises(NotFound):
            accounts.assign_student_id(db, "missing", "X")


def test_opaque_face_templates_match_only_themselves():
    matcher = EncodingFaceMatcher()

    assert matcher.is_match("opaque-blob", "opaque-blob")
    assert not matcher.is_match("opaque-blob", "other-blob")
    assert not matcher.is_match(FACE, json.dumps([0.1, 0.2]))
