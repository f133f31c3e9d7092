"""Assessment marks, internal marks and the grades derived from them."""

import logging
import re
from datetime import datetime

from sqlalchemy import func

import config
from database import transaction
from models.enrollments import EnrollmentStatus, SectionEnrollment
from models.exams import Assessment, AssessmentMark
from models.results import GradeRecord
from services import storage
from services.errors import Forbidden, MarkOutOfRange, NotFound, ValidationError
from services.identity import (
    find_assessment,
    find_course,
    find_faculty,
    find_student,
    find_subject,
)

logger = logging.getLogger(__name__)

# (lower bound, letter), checked top-down
GRADE_BOUNDS = [
    (90, "A+"),
    (85, "A"),
    (80, "A-"),
    (75, "B+"),
    (70, "B"),
    (65, "B-"),
    (60, "C+"),
    (55, "C"),
    (50, "C-"),
    (45, "D+"),
    (40, "D"),
]

GRADE_POINTS = {
    "A+": 4.0, "A": 4.0, "A-": 3.7,
    "B+": 3.3, "B": 3.0, "B-": 2.7,
    "C+": 2.3, "C": 2.0, "C-": 1.7,
    "D+": 1.3, "D": 1.0, "F": 0.0,
}

INTERNAL_MARK_FIELDS = ("sessional_mark", "attendance_mark", "total_mark")


# ==========================
#      PURE CALCULATIONS
# ==========================

def letter_grade(pct):
    for bound, letter in GRADE_BOUNDS:
        if pct >= bound:
            return letter
    return "F"


def grade_point(letter):
    return GRADE_POINTS.get(letter, 0.0)


def assessment_contribution(marks_obtained, max_marks, weightage):
    """Return (percentage, contribution to the final mark)."""
    if not max_marks or max_marks <= 0:
        raise ValidationError("max_marks must be greater than 0")
    pct = marks_obtained / max_marks * 100
    return pct, pct * weightage / 100


def check_mark_range(marks_obtained, max_marks):
    if marks_obtained is None:
        raise ValidationError("Marks are required")
    if marks_obtained < 0 or marks_obtained > max_marks:
        raise MarkOutOfRange(
            f"Marks must be between 0 and {max_marks:g}",
            details={"marks_obtained": marks_obtained, "max_marks": max_marks},
        )


def _season_rank(semester):
    name = semester.lower()
    if "winter" in name:
        return 3
    if "fall" in name:
        return 2
    if "summer" in name:
        return 1
    return 0


def _year(semester):
    found = re.search(r"(\d{4})", semester)
    return int(found.group(1)) if found else 0


def sort_semesters(semesters):
    """Most recent year first, then Winter > Fall > Summer."""
    return sorted(set(semesters), key=lambda s: (_year(s), _season_rank(s)), reverse=True)


# ==========================
#        ASSESSMENTS
# ==========================

def _check_weightage(db, subject_id, weightage, exclude_id=None):
    if weightage is None or weightage < 0 or weightage > 100:
        raise ValidationError("Weightage must be between 0 and 100")
    query = db.query(func.coalesce(func.sum(Assessment.weightage), 0.0)).filter(Assessment.subject_id == subject_id)
    if exclude_id is not None:
        query = query.filter(Assessment.id != exclude_id)
    total = query.scalar() + weightage
    if total > 100:
        raise ValidationError(
            f"Total weightage for this subject would be {total:g}%, which exceeds 100%",
            details={"total_weightage": total},
        )


def create_assessment(db, subject_id, title, assessment_type, max_marks, weightage, due_date=None, instructions=None):
    find_subject(db, subject_id)
    if not title or not assessment_type:
        raise ValidationError("Title and type are required")
    if max_marks is None or max_marks <= 0:
        raise ValidationError("max_marks must be greater than 0")
    _check_weightage(db, subject_id, weightage)

    assessment = Assessment(
        subject_id=subject_id,
        title=title,
        type=assessment_type,
        max_marks=max_marks,
        weightage=weightage,
        due_date=due_date,
        instructions=instructions,
    )
    with transaction(db, "create assessment"):
        db.add(assessment)
    logger.info("Assessment %r created for subject %s", title, subject_id)
    return assessment


def update_assessment(db, assessment_id, **fields):
    assessment = find_assessment(db, assessment_id)
    subject_id = fields.get("subject_id") or assessment.subject_id
    if fields.get("subject_id"):
        find_subject(db, subject_id)
    if fields.get("max_marks") is not None:
        if fields["max_marks"] <= 0:
            raise ValidationError("max_marks must be greater than 0")
        highest = (
            db.query(func.max(AssessmentMark.marks_obtained))
            .filter(AssessmentMark.assessment_id == assessment.id)
            .scalar()
        )
        if highest is not None and highest > fields["max_marks"]:
            raise MarkOutOfRange(
                f"max_marks cannot be lower than the highest recorded mark ({highest:g})",
                details={"highest_mark": highest, "max_marks": fields["max_marks"]},
            )
    if fields.get("weightage") is not None or fields.get("subject_id"):
        weightage = fields.get("weightage") if fields.get("weightage") is not None else assessment.weightage
        _check_weightage(db, subject_id, weightage, exclude_id=assessment.id)

    with transaction(db, "update assessment"):
        for key, value in fields.items():
            if value is not None:
                setattr(assessment, key, value)
    return assessment


def delete_assessment(db, assessment_id):
    assessment = find_assessment(db, assessment_id)
    with transaction(db, "delete assessment"):
        db.query(AssessmentMark).filter(AssessmentMark.assessment_id == assessment.id).delete()
        db.delete(assessment)


# ==========================
#     ASSESSMENT MARKS
# ==========================

def _upsert_mark(db, assessment, student_id, marks_obtained, feedback):
    mark = (
        db.query(AssessmentMark)
        .filter(AssessmentMark.assessment_id == assessment.id, AssessmentMark.student_id == student_id)
        .first()
    )
    if mark is None:
        mark = AssessmentMark(assessment_id=assessment.id, student_id=student_id)
        db.add(mark)
    mark.marks_obtained = marks_obtained
    if feedback is not None:
        mark.feedback = feedback
    mark.evaluated_at = datetime.utcnow()
    return mark


def grade_assessment(db, assessment_id, student_id, marks_obtained, feedback=None):
    assessment = find_assessment(db, assessment_id)
    find_student(db, student_id)
    check_mark_range(marks_obtained, assessment.max_marks)

    with transaction(db, "grade assessment"):
        mark = _upsert_mark(db, assessment, student_id, marks_obtained, feedback)
    logger.info("Assessment %s graded for student %s: %s", assessment_id, student_id, marks_obtained)
    return mark


def bulk_grade(db, assessment_id, rows):
    """Grade many students at once; rows that fail validation are skipped."""
    assessment = find_assessment(db, assessment_id)
    written, skipped = 0, []

    with transaction(db, "bulk grade"):
        for index, row in enumerate(rows):
            student_id = row.get("student_id")
            try:
                find_student(db, student_id)
                check_mark_range(row.get("marks_obtained"), assessment.max_marks)
            except (NotFound, ValidationError, MarkOutOfRange) as e:
                skipped.append({"row": index, "student_id": student_id, "error": e.kind, "message": e.message})
                continue
            _upsert_mark(db, assessment, student_id, row["marks_obtained"], row.get("feedback"))
            db.flush()
            written += 1

    logger.info("Bulk grading of assessment %s: %d written, %d skipped", assessment_id, written, len(skipped))
    return {"count": written, "skipped": skipped}


# ==========================
#      INTERNAL MARKS
# ==========================

def _validate_internal_marks(row):
    missing = [f for f in ("student_id", "faculty_id", "course_id", "semester") + INTERNAL_MARK_FIELDS if row.get(f) in (None, "")]
    if missing:
        raise ValidationError("Missing required fields", details={"missing": missing})

    limits = {
        "sessional_mark": config.MAX_SESSIONAL_MARK,
        "attendance_mark": config.MAX_ATTENDANCE_MARK,
        "total_mark": config.MAX_TOTAL_MARK,
    }
    for field, limit in limits.items():
        try:
            value = float(row[field])
        except (TypeError, ValueError):
            raise ValidationError(f"{field} must be a number")
        if value < 0 or value > limit:
            raise ValidationError(f"{field} must be between 0 and {limit}", details={field: value})


def _resolve_course_id(db, row):
    if row.get("course_id") is None and row.get("subject_id") is not None:
        row = dict(row, course_id=find_subject(db, row["subject_id"]).course_id)
    return row


def _write_internal_marks(db, row):
    grade = (
        db.query(GradeRecord)
        .filter(
            GradeRecord.student_id == row["student_id"],
            GradeRecord.course_id == row["course_id"],
            GradeRecord.semester == row["semester"],
        )
        .first()
    )
    if grade is None:
        grade = GradeRecord(student_id=row["student_id"], course_id=row["course_id"], semester=row["semester"])
        db.add(grade)
    grade.faculty_id = row["faculty_id"]
    for field in INTERNAL_MARK_FIELDS:
        setattr(grade, field, float(row[field]))
    return grade


def _check_internal_marks(db, row):
    row = _resolve_course_id(db, row)
    _validate_internal_marks(row)
    find_student(db, row["student_id"])
    find_faculty(db, row["faculty_id"])
    find_course(db, row["course_id"])
    return row


def upsert_internal_marks(db, student_id, faculty_id, course_id, semester, sessional_mark, attendance_mark, total_mark):
    row = _check_internal_marks(db, {
        "student_id": student_id,
        "faculty_id": faculty_id,
        "course_id": course_id,
        "semester": semester,
        "sessional_mark": sessional_mark,
        "attendance_mark": attendance_mark,
        "total_mark": total_mark,
    })
    with transaction(db, "upsert internal marks"):
        grade = _write_internal_marks(db, row)
    logger.info("Internal marks saved: student=%s course=%s semester=%s", student_id, course_id, semester)
    return grade


def bulk_upsert_internal_marks(db, rows, course_ids=None):
    """Write every valid row; invalid ones are reported, not fatal.

    When ``course_ids`` is given, rows for any other course are refused.
    """
    if not rows:
        raise ValidationError("Marks array is required")

    written, errors = 0, []
    with transaction(db, "bulk internal marks"):
        for index, raw in enumerate(rows):
            try:
                row = _check_internal_marks(db, dict(raw))
                if course_ids is not None and row["course_id"] not in course_ids:
                    raise Forbidden("You are not assigned to this course")
            except (Forbidden, NotFound, ValidationError) as e:
                errors.append({"row": raw.get("row", index), "error": e.kind, "message": e.message})
                continue
            _write_internal_marks(db, row)
            # keeps a repeated key in the same batch an update, not a second insert
            db.flush()
            written += 1

    logger.info("Bulk internal marks: %d written, %d failed", written, len(errors))
    return {"count": written, "errors": errors}


def internal_marks_for_course(db, course_id, semester=None):
    find_course(db, course_id)
    query = db.query(GradeRecord).filter(GradeRecord.course_id == course_id)
    if semester:
        query = query.filter(GradeRecord.semester == semester)
    return query.order_by(GradeRecord.student_id).all()


# ==========================
#     GRADES AND CGPA
# ==========================

def compute_cgpa(grades):
    """Plain mean of grade points, plus the credit-weighted figure."""
    if not grades:
        return 0.0, 0.0
    points = [g.grade_point for g in grades]
    cgpa = sum(points) / len(points)

    total_credits = sum((g.course.credits or 0) for g in grades)
    if total_credits:
        weighted = sum(g.grade_point * (g.course.credits or 0) for g in grades) / total_credits
    else:
        weighted = cgpa
    return round(cgpa, 2), round(weighted, 2)


def student_grades(db, student_id, semester=None):
    find_student(db, student_id)
    query = db.query(GradeRecord).filter(GradeRecord.student_id == student_id)
    if semester:
        query = query.filter(GradeRecord.semester == semester)
    return query.all()


def cgpa(db, student_id):
    return compute_cgpa(student_grades(db, student_id))[0]


def list_semesters(db, student_id):
    find_student(db, student_id)
    rows = db.query(GradeRecord.semester).filter(GradeRecord.student_id == student_id).distinct()
    return sort_semesters(r.semester for r in rows)


def _assessment_breakdown(db, student_id, course_id):
    rows = (
        db.query(Assessment, AssessmentMark)
        .join(AssessmentMark, AssessmentMark.assessment_id == Assessment.id)
        .filter(AssessmentMark.student_id == student_id)
        .all()
    )
    breakdown = []
    for assessment, mark in rows:
        if assessment.subject.course_id != course_id:
            continue
        pct, contribution = assessment_contribution(mark.marks_obtained, assessment.max_marks, assessment.weightage)
        breakdown.append({
            "assessment_id": assessment.id,
            "title": assessment.title,
            "type": assessment.type,
            "marks_obtained": mark.marks_obtained,
            "max_marks": assessment.max_marks,
            "weightage": assessment.weightage,
            "percentage": round(pct, 2),
            "contribution": round(contribution, 2),
        })
    return breakdown


def grade_report(db, student_id, semester=None):
    grades = student_grades(db, student_id, semester)
    courses = []
    for g in grades:
        courses.append({
            "course_id": g.course_id,
            "course_code": g.course.code,
            "course_name": g.course.name,
            "credits": g.course.credits,
            "semester": g.semester,
            "sessional_mark": g.sessional_mark,
            "attendance_mark": g.attendance_mark,
            "total_mark": g.total_mark,
            "percentage": g.total_mark,
            "letter_grade": g.letter_grade,
            "grade_point": g.grade_point,
            "assessments": _assessment_breakdown(db, student_id, g.course_id),
        })

    plain, weighted = compute_cgpa(grades)
    ranked = sorted(grades, key=lambda g: g.total_mark)
    return {
        "student_id": student_id,
        "semester": semester,
        "courses": courses,
        "summary": {
            "cgpa": plain,
            "weighted_cgpa": weighted,
            "total_credits": sum((g.course.credits or 0) for g in grades),
            "total_courses": len(grades),
            "highest_grade": ranked[-1].letter_grade if ranked else None,
            "lowest_grade": ranked[0].letter_grade if ranked else None,
        },
    }


# ==========================
#      SUBMISSIONS
# ==========================

def submit_assessment(db, student_id, assessment_id, file_bytes=None, filename=None, comments=None, now=None):
    """Store a student's work for an assessment; first submissions need a file."""
    now = now or datetime.utcnow()
    assessment = find_assessment(db, assessment_id)
    find_student(db, student_id)
    if assessment.due_date and now > assessment.due_date:
        raise ValidationError("The due date for this assessment has passed")

    enrolled = (
        db.query(SectionEnrollment)
        .filter(
            SectionEnrollment.student_id == student_id,
            SectionEnrollment.section_id == assessment.subject.section_id,
            SectionEnrollment.status == EnrollmentStatus.ACTIVE.value,
        )
        .first()
    )
    if not enrolled:
        raise Forbidden("You are not enrolled in this subject")

    mark = (
        db.query(AssessmentMark)
        .filter(AssessmentMark.assessment_id == assessment_id, AssessmentMark.student_id == student_id)
        .first()
    )
    if mark is None and not file_bytes:
        raise ValidationError("A file is required for the first submission")

    file_url = storage.store(file_bytes, filename) if file_bytes else None

    try:
        with transaction(db, "submit assessment"):
            if mark is None:
                mark = AssessmentMark(assessment_id=assessment_id, student_id=student_id, marks_obtained=0.0)
                db.add(mark)
            mark.submitted_at = now
            if file_url:
                mark.file_url = file_url
            if comments is not None:
                mark.feedback = comments
    except Exception:
        # the upload is not rolled back with the row
        if file_url:
            logger.error("Submission for assessment %s failed; orphaned upload %s", assessment_id, file_url)
        raise

    logger.info("Student %s submitted assessment %s", student_id, assessment_id)
    return mark
