from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import List, Optional

from database import get_db
from models.students import Role, User
from routers.attendance import ensure_own_student
from routers.auth import ensure_teaches_course, get_current_user, require_roles, taught_course_ids
from services import attendance, grading
from services.errors import ValidationError
from services.identity import find_subject

router = APIRouter(prefix="/api/results", tags=["Results"])
staff = require_roles(Role.ADMIN, Role.FACULTY)

# --- SCHEMAS ---
class InternalMarkSchema(BaseModel):
    student_id: Optional[int] = None
    faculty_id: Optional[int] = None
    course_id: Optional[int] = None
    subject_id: Optional[int] = None
    semester: Optional[str] = None
    sessional_mark: Optional[float] = None
    attendance_mark: Optional[float] = None
    total_mark: Optional[float] = None

class BulkInternalMarkSchema(BaseModel):
    marks: List[InternalMarkSchema]


def grade_view(g):
    return {
        "id": g.id,
        "student_id": g.student_id,
        "course_id": g.course_id,
        "faculty_id": g.faculty_id,
        "semester": g.semester,
        "sessional_mark": g.sessional_mark,
        "attendance_mark": g.attendance_mark,
        "total_mark": g.total_mark,
        "letter_grade": g.letter_grade,
        "grade_point": g.grade_point,
    }


def _with_faculty(row, user):
    # faculty always write under their own id; admins may name one
    if user.faculty and (row.get("faculty_id") is None or user.role != Role.ADMIN.value):
        row["faculty_id"] = user.faculty.id
    return row


# ===========================
#     1. INTERNAL MARKS
# ===========================

@router.get("/internal-marks")
def get_internal_marks(
    course_id: Optional[int] = None,
    subject_id: Optional[int] = None,
    semester: Optional[str] = None,
    db: Session = Depends(get_db),
    user: User = Depends(staff),
):
    if course_id is None and subject_id is None:
        raise ValidationError("course_id or subject_id is required")
    if course_id is None:
        course_id = find_subject(db, subject_id).course_id
    ensure_teaches_course(db, user, course_id)
    return [grade_view(g) for g in grading.internal_marks_for_course(db, course_id, semester)]

@router.post("/internal-marks")
def save_internal_marks(payload: InternalMarkSchema, db: Session = Depends(get_db), user: User = Depends(staff)):
    row = _with_faculty(payload.dict(), user)
    if row.get("course_id") is None and row.get("subject_id") is not None:
        row["course_id"] = find_subject(db, row["subject_id"]).course_id
    if row.get("course_id") is not None:
        ensure_teaches_course(db, user, row["course_id"])
    grade = grading.upsert_internal_marks(
        db,
        row["student_id"],
        row["faculty_id"],
        row["course_id"],
        row["semester"],
        row["sessional_mark"],
        row["attendance_mark"],
        row["total_mark"],
    )
    return {"message": "Internal marks saved", "grade": grade_view(grade)}

@router.post("/internal-marks/bulk")
def save_internal_marks_bulk(payload: BulkInternalMarkSchema, db: Session = Depends(get_db), user: User = Depends(staff)):
    rows = [_with_faculty(m.dict(), user) for m in payload.marks]
    result = grading.bulk_upsert_internal_marks(db, rows, course_ids=taught_course_ids(db, user))
    return {"message": f"Saved internal marks for {result['count']} students", **result}

@router.get("/attendance-mark/subjects/{subject_id}/students/{student_id}")
def suggested_attendance_mark(subject_id: int, student_id: int, db: Session = Depends(get_db), _: User = Depends(staff)):
    pct = attendance.attendance_percentage(db, subject_id, student_id)
    return {"percentage": round(pct, 2), "attendance_mark": attendance.attendance_mark(pct)}


# ===========================
#     2. GRADES & CGPA
# ===========================

@router.get("/students/{student_id}/grades")
def student_grade_report(student_id: int, semester: Optional[str] = None, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    ensure_own_student(user, student_id)
    return grading.grade_report(db, student_id, semester)

@router.get("/students/{student_id}/cgpa")
def student_cgpa(student_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    ensure_own_student(user, student_id)
    plain, weighted = grading.compute_cgpa(grading.student_grades(db, student_id))
    return {"student_id": student_id, "cgpa": plain, "weighted_cgpa": weighted}

@router.get("/students/{student_id}/semesters")
def student_semesters(student_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    ensure_own_student(user, student_id)
    return {"semesters": grading.list_semesters(db, student_id)}
