from datetime import date, timedelta
import pytest

from eduos.models import MedicalStatus
from eduos.core.services import aggregation
from eduos.core.utils.helpers import round_half_up
from eduos.core.utils.exceptions import NotFound

TODAY = date(2026, 10, 19)


@pytest.mark.parametrize("value, expected", [(69.5, 70), (69.49, 69), (0.5, 1), (70, 70), (0, 0)])
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


def test_student_average_is_mean_of_subjects(db, make_user, add_records):
    student = make_user()
    add_records(student, marks={"Math": 80, "Science": 60})

    summary = aggregation.student_summary(db, student.id)

    assert summary.avg_marks == 70
    assert summary.marks_by_subject == {"Math": 80, "Science": 60}


def test_student_without_records_averages_zero(db, make_user):
    summary = aggregation.student_summary(db, make_user().id)

    assert summary.avg_marks == 0
    assert summary.avg_attendance == 0
    assert summary.to_dict()["attendance_by_subject"] == {}


def test_student_summary_unknown_student(db):
    with pytest.raises(NotFound):
        aggregation.student_summary(db, "missing")


class TestClassSummary:
    def test_means_cover_students_with_records_only(self, db, make_user, add_records):
        a = make_user(class_id="10A")
        b = make_user(class_id="10A")
        make_user(class_id="10A")
        add_records(a, attendance={"Math": 90, "Science": 80}, marks={"Math": 70})
        add_records(b, attendance={"Math": 70}, marks={"Math": 90})

        summary = aggregation.class_summary(db, "10A", TODAY)

        assert summary["total_students"] == 3
        # (85 + 70) / 2 = 77.5
        assert summary["avg_attendance"] == 78
        assert summary["avg_marks"] == 80

    def test_flags_students_below_threshold(self, db, make_user, add_records):
        good = make_user(class_id="10A")
        weak_attendance = make_user(class_id="10A")
        weak_marks = make_user(class_id="10A")
        add_records(good, attendance={"Math": 90}, marks={"Math": 90})
        add_records(weak_attendance, attendance={"Math": 74.9}, marks={"Math": 90})
        add_records(weak_marks, attendance={"Math": 90}, marks={"Math": 59})

        flagged = aggregation.class_summary(db, "10A", TODAY)["students_needing_attention"]

        assert {f["id"] for f in flagged} == {weak_attendance.id, weak_marks.id}
        assert all(f["has_medical_approval"] is False for f in flagged)

    def test_other_classes_are_ignored(self, db, make_user, add_records):
        mine = make_user(class_id="10A")
        other = make_user(class_id="10B")
        add_records(mine, attendance={"Math": 90}, marks={"Math": 90})
        add_records(other, attendance={"Math": 10}, marks={"Math": 10})

        summary = aggregation.class_summary(db, "10A", TODAY)

        assert summary["total_students"] == 1
        assert summary["students_needing_attention"] == []

    def test_active_approval_suppresses_flag(self, db, make_user, add_records, approve_leave):
        student = make_user(class_id="10A")
        add_records(student, attendance={"Math": 50}, marks={"Math": 90})
        leave = approve_leave(student, TODAY - timedelta(days=1), TODAY + timedelta(days=1))

        assert aggregation.class_summary(db, "10A", TODAY)["students_needing_attention"] == []

        # once the leave has ended the flag comes back
        assert len(aggregation.class_summary(db, "10A", TODAY + timedelta(days=2))["students_needing_attention"]) == 1

        db.delete(leave)
        db.commit()
        assert len(aggregation.class_summary(db, "10A", TODAY)["students_needing_attention"]) == 1

    @pytest.mark.parametrize("status", [MedicalStatus.PENDING, MedicalStatus.REJECTED])
    def test_unapproved_requests_do_not_suppress(self, db, make_user, add_records, approve_leave, status):
        student = make_user(class_id="10A")
        add_records(student, attendance={"Math": 50}, marks={"Math": 90})
        approve_leave(student, TODAY, TODAY, status=status)

        assert len(aggregation.class_summary(db, "10A", TODAY)["students_needing_attention"]) == 1

    def test_approval_boundaries_are_inclusive(self, db, make_user, add_records, approve_leave):
        student = make_user(class_id="10A")
        add_records(student, attendance={"Math": 50})
        approve_leave(student, TODAY, TODAY + timedelta(days=3))

        for day in (TODAY, TODAY + timedelta(days=3)):
            assert aggregation.class_summary(db, "10A", day)["students_needing_attention"] == []
        assert len(aggregation.class_summary(db, "10A", TODAY - timedelta(days=1))["students_needing_attention"]) == 1


class TestInstitutionSummary:
    def test_single_low_attendance_risk(self, db, make_user, add_records):
        a1 = make_user(class_id="classA")
        a2 = make_user(class_id="classA")
        b1 = make_user(class_id="classB")
        add_records(a1, attendance={"Math": 50})
        add_records(a2, attendance={"Math": 70})
        add_records(b1, marks={"Math": 80})

        summary = aggregation.institution_summary(db)

        assert summary["risk_areas"] == [{"type": "Low Attendance", "class": "classA", "value": "60%"}]
        assert summary["total_classes"] == 2
        assert summary["total_students"] == 3
        assert summary["overall_attendance"] == 60
        assert summary["overall_performance"] == 80

    def test_class_can_raise_both_risks(self, db, make_user, add_records):
        student = make_user(class_id="9C")
        add_records(student, attendance={"Math": 40}, marks={"Math": 30})

        risks = aggregation.institution_summary(db)["risk_areas"]

        assert risks == [
            {"type": "Low Attendance", "class": "9C", "value": "40%"},
            {"type": "Low Performance", "class": "9C", "value": "30%"},
        ]

    def test_rounded_class_mean_is_compared(self, db, make_user, add_records):
        student = make_user(class_id="9C")
        add_records(student, attendance={"Math": 74.5}, marks={"Math": 59.5})

        assert aggregation.institution_summary(db)["risk_areas"] == []

    def test_empty_institution(self, db):
        summary = aggregation.institution_summary(db)

        assert summary == {
            "overall_attendance": 0,
            "overall_performance": 0,
            "total_classes": 0,
            "total_students": 0,
            "risk_areas": [],
        }
