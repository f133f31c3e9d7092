import pytest

from services import grading
from services.errors import MarkOutOfRange, NotFound, ValidationError


@pytest.mark.parametrize(
    "pct, letter",
    [
        (100, "A+"),
        (90, "A+"),
        (89.999, "A"),
        (85, "A"),
        (84.999, "A-"),
        (80, "A-"),
        (75, "B+"),
        (70, "B"),
        (65, "B-"),
        (60, "C+"),
        (55, "C"),
        (50, "C-"),
        (45, "D+"),
        (40, "D"),
        (39.999, "F"),
        (0, "F"),
    ],
)
def test_letter_grade_boundaries(pct, letter):
    assert grading.letter_grade(pct) == letter


def test_grade_points_table():
    assert grading.grade_point("A+") == 4.0
    assert grading.grade_point("A") == 4.0
    assert grading.grade_point("A-") == 3.7
    assert grading.grade_point("B+") == 3.3
    assert grading.grade_point("C-") == 1.7
    assert grading.grade_point("D") == 1.0
    assert grading.grade_point("F") == 0.0


def test_assessment_contribution():
    pct, contribution = grading.assessment_contribution(45, 50, 20)
    assert pct == pytest.approx(90.0)
    assert contribution == pytest.approx(18.0)


def test_sort_semesters_recent_year_then_season():
    semesters = ["Summer 2024", "Fall 2024", "Winter 2024", "Fall 2025", "Fall 2024"]
    assert grading.sort_semesters(semesters) == ["Fall 2025", "Winter 2024", "Fall 2024", "Summer 2024"]


def _assessment(db, factory, max_marks=50, weightage=20):
    subject = factory.subject()
    return grading.create_assessment(db, subject.id, "Quiz 1", "QUIZ", max_marks, weightage)


def test_mark_range_is_inclusive(db, factory):
    assessment = _assessment(db, factory)
    student = factory.student()

    assert grading.grade_assessment(db, assessment.id, student.id, 0).marks_obtained == 0
    assert grading.grade_assessment(db, assessment.id, student.id, 50).marks_obtained == 50

    with pytest.raises(MarkOutOfRange):
        grading.grade_assessment(db, assessment.id, student.id, 50.01)
    with pytest.raises(MarkOutOfRange):
        grading.grade_assessment(db, assessment.id, student.id, -0.01)

    db.expire_all()
    marks = assessment.marks
    assert len(marks) == 1
    assert marks[0].marks_obtained == 50


def test_bulk_grade_skips_out_of_range_rows(db, factory):
    assessment = _assessment(db, factory)
    a, b = factory.student(), factory.student()

    result = grading.bulk_grade(db, assessment.id, [
        {"student_id": a.id, "marks_obtained": 40},
        {"student_id": b.id, "marks_obtained": 51},
        {"student_id": 9999, "marks_obtained": 10},
    ])

    assert result["count"] == 1
    assert [s["error"] for s in result["skipped"]] == ["mark_out_of_range", "not_found"]
    db.expire_all()
    assert [m.student_id for m in assessment.marks] == [a.id]


def test_weightage_total_cannot_exceed_100(db, factory):
    subject = factory.subject()
    grading.create_assessment(db, subject.id, "Midterm", "EXAM", 100, 60)
    second = grading.create_assessment(db, subject.id, "Quiz", "QUIZ", 20, 40)

    with pytest.raises(ValidationError):
        grading.create_assessment(db, subject.id, "Extra", "QUIZ", 10, 0.5)
    with pytest.raises(ValidationError):
        grading.update_assessment(db, second.id, weightage=41)

    # totals below 100 are fine
    assert grading.update_assessment(db, second.id, weightage=30).weightage == 30


def test_null_weightage_in_update_keeps_current_value(db, factory):
    subject = factory.subject()
    assessment = grading.create_assessment(db, subject.id, "Midterm", "EXAM", 100, 40)

    updated = grading.update_assessment(db, assessment.id, title="Mid-semester", weightage=None)

    assert updated.title == "Mid-semester"
    assert updated.weightage == 40


def test_max_marks_cannot_drop_below_recorded_marks(db, factory):
    subject = factory.subject()
    student = factory.student()
    assessment = grading.create_assessment(db, subject.id, "Quiz", "QUIZ", 10, 10)
    grading.grade_assessment(db, assessment.id, student.id, 10)

    with pytest.raises(MarkOutOfRange):
        grading.update_assessment(db, assessment.id, max_marks=5)
    db.refresh(assessment)
    assert assessment.max_marks == 10

    # down to the highest recorded mark is still allowed
    assert grading.update_assessment(db, assessment.id, max_marks=10).max_marks == 10
    assert grading.update_assessment(db, assessment.id, max_marks=20).max_marks == 20


def _internal_marks(student, faculty, course, semester="Fall 2025", total=80):
    return {
        "student_id": student.id,
        "faculty_id": faculty.id,
        "course_id": course.id,
        "semester": semester,
        "sessional_mark": total - 30,
        "attendance_mark": 30,
        "total_mark": total,
    }


def test_internal_marks_upsert_is_idempotent(db, factory):
    student, faculty, course = factory.student(), factory.faculty(), factory.course()

    first = grading.upsert_internal_marks(db, **_internal_marks(student, faculty, course, total=80))
    second = grading.upsert_internal_marks(db, **_internal_marks(student, faculty, course, total=91))

    assert first.id == second.id
    db.expire_all()
    grades = grading.student_grades(db, student.id)
    assert len(grades) == 1
    assert grades[0].total_mark == 91
    assert grades[0].letter_grade == "A+"


def test_internal_marks_validation(db, factory):
    student, faculty, course = factory.student(), factory.faculty(), factory.course()
    row = _internal_marks(student, faculty, course)

    with pytest.raises(ValidationError):
        grading.upsert_internal_marks(db, **dict(row, sessional_mark=70.5))
    with pytest.raises(ValidationError):
        grading.upsert_internal_marks(db, **dict(row, attendance_mark=31))
    with pytest.raises(ValidationError):
        grading.upsert_internal_marks(db, **dict(row, total_mark=None))
    with pytest.raises(NotFound):
        grading.upsert_internal_marks(db, **dict(row, course_id=424242))

    assert grading.student_grades(db, student.id) == []


def test_bulk_internal_marks_partial_success(db, factory):
    faculty, course = factory.faculty(), factory.course()
    a, b = factory.student(), factory.student()

    result = grading.bulk_upsert_internal_marks(db, [
        _internal_marks(a, faculty, course),
        dict(_internal_marks(b, faculty, course), total_mark=120),
        dict(_internal_marks(b, faculty, course), student_id=None),
    ])

    assert result["count"] == 1
    assert len(result["errors"]) == 2
    assert len(grading.student_grades(db, a.id)) == 1
    assert grading.student_grades(db, b.id) == []


def test_cgpa_is_plain_mean_with_weighted_alongside(db, factory):
    student, faculty = factory.student(), factory.faculty()
    four_credit = factory.course(credits=4)
    two_credit = factory.course(credits=2)
    grading.upsert_internal_marks(db, **_internal_marks(student, faculty, four_credit, total=90))  # A+ 4.0
    grading.upsert_internal_marks(db, **_internal_marks(student, faculty, two_credit, total=50))   # C- 1.7

    assert grading.cgpa(db, student.id) == pytest.approx(2.85)
    plain, weighted = grading.compute_cgpa(grading.student_grades(db, student.id))
    assert plain == pytest.approx(2.85)
    assert weighted == pytest.approx(round((4.0 * 4 + 1.7 * 2) / 6, 2))


def test_cgpa_of_a_student_without_grades_is_zero(db, factory):
    assert grading.cgpa(db, factory.student().id) == 0.0


def test_grade_report_summary(db, factory):
    student, faculty = factory.student(), factory.faculty()
    course = factory.course(credits=4)
    grading.upsert_internal_marks(db, **_internal_marks(student, faculty, course, semester="Fall 2025", total=72))
    grading.upsert_internal_marks(db, **_internal_marks(student, faculty, factory.course(), semester="Summer 2025", total=86))

    report = grading.grade_report(db, student.id)
    summary = report["summary"]
    assert summary["total_courses"] == 2
    assert summary["total_credits"] == 7
    assert summary["highest_grade"] == "A"
    assert summary["lowest_grade"] == "B"
    assert summary["cgpa"] == pytest.approx(3.5)
    assert grading.list_semesters(db, student.id) == ["Fall 2025", "Summer 2025"]
