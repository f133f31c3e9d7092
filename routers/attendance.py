from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import List, Optional

from database import get_db
from models.students import Role, User
from routers.auth import ensure_teaches_course, ensure_teaches_subject, get_current_user, require_roles
from services import attendance as aggregator
from services.errors import Forbidden
from services.identity import find_course, find_subject

router = APIRouter(prefix="/api/attendance", tags=["attendance"])
staff = require_roles(Role.ADMIN, Role.FACULTY)

# --- SCHEMAS ---
class AttendanceItem(BaseModel):
    student_id: int
    status: str
    remarks: Optional[str] = None

class AttendanceSubmit(BaseModel):
    date: str
    records: List[AttendanceItem]


def ensure_own_student(user, student_id):
    """Students may only look at their own records."""
    if user.role == Role.STUDENT.value and (not user.student or user.student.id != student_id):
        raise Forbidden()


# 1. SAVE (upsert per student + date)
@router.post("/subjects/{subject_id}")
def save_subject_attendance(subject_id: int, payload: AttendanceSubmit, db: Session = Depends(get_db), user: User = Depends(staff)):
    ensure_teaches_subject(user, find_subject(db, subject_id))
    recorded_by = user.faculty.id if user.faculty else None
    count = aggregator.record_attendance(
        db, subject_id, payload.date, [r.dict() for r in payload.records], recorded_by=recorded_by
    )
    return {"message": "Attendance Saved!", "count": count}

@router.post("/courses/{course_id}")
def save_course_attendance(course_id: int, payload: AttendanceSubmit, db: Session = Depends(get_db), user: User = Depends(staff)):
    ensure_teaches_course(db, user, find_course(db, course_id).id)
    count = aggregator.record_course_attendance(db, course_id, payload.date, [r.dict() for r in payload.records])
    return {"message": "Attendance Saved!", "count": count}


# 2. REPORTS
@router.get("/subjects/{subject_id}/report")
def subject_report(subject_id: int, db: Session = Depends(get_db), user: User = Depends(staff)):
    ensure_teaches_subject(user, find_subject(db, subject_id))
    return aggregator.subject_report(db, subject_id)

@router.get("/subjects/{subject_id}/students/{student_id}")
def student_subject_percentage(subject_id: int, student_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    ensure_own_student(user, student_id)
    pct = aggregator.attendance_percentage(db, subject_id, student_id)
    return {
        "subject_id": subject_id,
        "student_id": student_id,
        "total_sessions": aggregator.total_sessions(db, subject_id),
        "percentage": round(pct, 2),
        "attendance_mark": aggregator.attendance_mark(pct),
    }

@router.get("/students/{student_id}")
def student_summary(student_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    ensure_own_student(user, student_id)
    return aggregator.student_summary(db, student_id)
