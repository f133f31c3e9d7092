from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import List, Optional

from database import get_db
from models.students import Role, User
from routers.auth import require_roles
from services import enrollment as engine

router = APIRouter(prefix="/api/enrollments", tags=["Enrollments"])
admin_only = require_roles(Role.ADMIN)
staff = require_roles(Role.ADMIN, Role.FACULTY)

# --- SCHEMAS ---
class EnrollSchema(BaseModel):
    student_id: int
    section_id: int

class BulkEnrollSchema(BaseModel):
    student_ids: List[int] = []

class StatusSchema(BaseModel):
    status: Optional[str] = None

class CourseEnrollSchema(BaseModel):
    student_id: int
    course_id: int


def enrollment_view(e):
    return {
        "id": e.id,
        "student_id": e.student_id,
        "section_id": e.section_id,
        "status": e.status,
        "enrolled_at": e.enrolled_at.isoformat() if e.enrolled_at else None,
        "enrollment_no": e.student.enrollment_no if e.student else None,
        "student_name": e.student.user.full_name if e.student and e.student.user else None,
    }


def course_enrollment_view(e):
    return {
        "id": e.id,
        "student_id": e.student_id,
        "course_id": e.course_id,
        "status": e.status,
        "enrolled_at": e.enrolled_at.isoformat() if e.enrolled_at else None,
    }


# ===========================
#     1. SECTION ENROLLMENT
# ===========================

@router.post("", status_code=201)
def enroll_student(payload: EnrollSchema, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    enrollment = engine.enroll(db, payload.student_id, payload.section_id)
    return {"message": "Student enrolled successfully", "enrollment": enrollment_view(enrollment)}

@router.post("/sections/{section_id}/bulk", status_code=201)
def bulk_enroll(section_id: int, payload: BulkEnrollSchema, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    rows = engine.bulk_enroll(db, section_id, payload.student_ids)
    return {
        "message": f"Successfully enrolled {len(rows)} students",
        "count": len(rows),
        "enrollments": [enrollment_view(e) for e in rows],
    }

@router.get("/sections/{section_id}")
def section_roster(section_id: int, db: Session = Depends(get_db), _: User = Depends(staff)):
    rows = engine.section_enrollments(db, section_id)
    return {
        "section_id": section_id,
        "available_spots": engine.available_spots(db, section_id),
        "enrollments": [enrollment_view(e) for e in rows],
    }

@router.get("/students/{student_id}")
def student_sections(student_id: int, db: Session = Depends(get_db), _: User = Depends(staff)):
    return [enrollment_view(e) for e in engine.student_enrollments(db, student_id)]

@router.patch("/{enrollment_id}")
def update_status(enrollment_id: int, payload: StatusSchema, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    enrollment = engine.change_status(db, enrollment_id, payload.status)
    return {"message": "Enrollment status updated", "enrollment": enrollment_view(enrollment)}

@router.delete("/{enrollment_id}")
def remove_enrollment(enrollment_id: int, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    engine.delete_enrollment(db, enrollment_id)
    return {"message": "Enrollment deleted"}


# ===========================
#     2. COURSE ENROLLMENT
# ===========================

@router.post("/courses", status_code=201)
def enroll_in_course(payload: CourseEnrollSchema, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    enrollment = engine.enroll_in_course(db, payload.student_id, payload.course_id)
    return {"message": "Student enrolled in course", "enrollment": course_enrollment_view(enrollment)}

@router.post("/courses/{course_id}/bulk", status_code=201)
def bulk_enroll_in_course(course_id: int, payload: BulkEnrollSchema, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    rows = engine.bulk_enroll_in_course(db, course_id, payload.student_ids)
    return {"count": len(rows), "enrollments": [course_enrollment_view(e) for e in rows]}

@router.patch("/courses/{enrollment_id}")
def update_course_status(enrollment_id: int, payload: StatusSchema, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    enrollment = engine.change_course_enrollment_status(db, enrollment_id, payload.status)
    return {"message": "Enrollment status updated", "enrollment": course_enrollment_view(enrollment)}

@router.delete("/courses/{enrollment_id}")
def remove_course_enrollment(enrollment_id: int, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    engine.delete_course_enrollment(db, enrollment_id)
    return {"message": "Enrollment deleted"}
