from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import func
from pydantic import BaseModel
from typing import Optional

from database import get_db, transaction
from models.enrollments import SectionEnrollment
from models.masters import Course, Section, Subject
from models.schedule import ClassSchedule
from models.students import Role, User
from routers.auth import get_current_user, require_roles
from services.enrollment import lock_section
from services.errors import ValidationError
from services.identity import find_course, find_faculty, find_section, find_subject

router = APIRouter(prefix="/api/masters", tags=["Masters"])
admin_only = require_roles(Role.ADMIN)

# --- SCHEMAS ---
class CourseSchema(BaseModel):
    name: str
    code: str
    description: Optional[str] = None
    department: Optional[str] = None
    credits: int = 3
    faculty_id: Optional[int] = None

    class Config:
        from_attributes = True

class CourseUpdateSchema(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None
    department: Optional[str] = None
    credits: Optional[int] = None
    faculty_id: Optional[int] = None

class SectionSchema(BaseModel):
    course_id: int
    name: str
    capacity: int
    academic_term: Optional[str] = None

class SectionUpdateSchema(BaseModel):
    name: Optional[str] = None
    capacity: Optional[int] = None
    academic_term: Optional[str] = None

class SubjectSchema(BaseModel):
    section_id: int
    name: str
    code: Optional[str] = None
    faculty_id: Optional[int] = None

class SubjectUpdateSchema(BaseModel):
    name: Optional[str] = None
    code: Optional[str] = None
    faculty_id: Optional[int] = None


def course_view(c):
    return {
        "id": c.id,
        "name": c.name,
        "code": c.code,
        "description": c.description,
        "department": c.department,
        "credits": c.credits,
        "faculty_id": c.faculty_id,
    }


def section_view(s, enrolled=None):
    return {
        "id": s.id,
        "course_id": s.course_id,
        "name": s.name,
        "capacity": s.capacity,
        "academic_term": s.academic_term,
        "enrolled": enrolled,
    }


def subject_view(s):
    return {
        "id": s.id,
        "section_id": s.section_id,
        "course_id": s.course_id,
        "name": s.name,
        "code": s.code,
        "faculty_id": s.faculty_id,
    }


def _check_credits(credits):
    if credits is not None and credits < 1:
        raise ValidationError("Credits must be at least 1")


# ===========================
#        1. COURSES
# ===========================

@router.get("/courses")
def list_courses(department: Optional[str] = None, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    query = db.query(Course)
    if department:
        query = query.filter(Course.department == department)
    return [course_view(c) for c in query.order_by(Course.code).all()]

@router.post("/courses", status_code=201)
def add_course(payload: CourseSchema, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    if db.query(Course).filter(Course.code == payload.code).first():
        raise ValidationError("Course code already exists")
    _check_credits(payload.credits)
    if payload.faculty_id is not None:
        find_faculty(db, payload.faculty_id)
    course = Course(**payload.dict())
    with transaction(db, "create course"):
        db.add(course)
    return course_view(course)

@router.get("/courses/{course_id}")
def get_course(course_id: int, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    return course_view(find_course(db, course_id))

@router.put("/courses/{course_id}")
def update_course(course_id: int, payload: CourseUpdateSchema, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    course = find_course(db, course_id)
    fields = payload.dict(exclude_unset=True)
    _check_credits(fields.get("credits"))
    if fields.get("faculty_id") is not None:
        find_faculty(db, fields["faculty_id"])
    with transaction(db, "update course"):
        for key, value in fields.items():
            setattr(course, key, value)
    return course_view(course)

@router.delete("/courses/{course_id}")
def delete_course(course_id: int, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    course = find_course(db, course_id)
    if db.query(Section).filter(Section.course_id == course_id).first():
        raise ValidationError("Course still has sections")
    if db.query(ClassSchedule.id).filter(ClassSchedule.course_id == course_id).first():
        raise ValidationError("Course still has timetable slots")
    with transaction(db, "delete course"):
        db.delete(course)
    return {"message": "Course deleted"}


# ===========================
#        2. SECTIONS
# ===========================

@router.get("/sections")
def list_sections(course_id: Optional[int] = None, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    query = db.query(Section)
    if course_id:
        query = query.filter(Section.course_id == course_id)
    taken = dict(
        db.query(SectionEnrollment.section_id, func.count(SectionEnrollment.id))
        .group_by(SectionEnrollment.section_id)
        .all()
    )
    return [section_view(s, taken.get(s.id, 0)) for s in query.order_by(Section.id).all()]

@router.post("/sections", status_code=201)
def add_section(payload: SectionSchema, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    find_course(db, payload.course_id)
    if payload.capacity < 0:
        raise ValidationError("Capacity cannot be negative")
    section = Section(**payload.dict(), lock_version=0)
    with transaction(db, "create section"):
        db.add(section)
    return section_view(section, 0)

@router.get("/sections/{section_id}")
def get_section(section_id: int, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    section = find_section(db, section_id)
    enrolled = db.query(SectionEnrollment).filter(SectionEnrollment.section_id == section_id).count()
    return section_view(section, enrolled)

@router.put("/sections/{section_id}")
def update_section(section_id: int, payload: SectionUpdateSchema, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    section = find_section(db, section_id)
    fields = payload.dict(exclude_unset=True)
    with transaction(db, "update section"):
        if fields.get("capacity") is not None:
            # same lock the enroll path takes, so the count stays current
            lock_section(db, section_id)
            enrolled = db.query(SectionEnrollment).filter(SectionEnrollment.section_id == section_id).count()
            if fields["capacity"] < enrolled:
                raise ValidationError(f"Capacity cannot be lower than the {enrolled} enrollments already in this section")
        for key, value in fields.items():
            setattr(section, key, value)
    return section_view(section)

@router.delete("/sections/{section_id}")
def delete_section(section_id: int, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    section = find_section(db, section_id)
    if db.query(SectionEnrollment).filter(SectionEnrollment.section_id == section_id).first():
        raise ValidationError("Section still has enrollments")
    if db.query(ClassSchedule.id).filter(ClassSchedule.section_id == section_id).first():
        raise ValidationError("Section still has timetable slots")
    with transaction(db, "delete section"):
        db.query(Subject).filter(Subject.section_id == section_id).delete()
        db.delete(section)
    return {"message": "Section deleted"}


# ===========================
#        3. SUBJECTS
# ===========================

@router.get("/subjects")
def list_subjects(section_id: Optional[int] = None, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    query = db.query(Subject)
    if section_id:
        query = query.filter(Subject.section_id == section_id)
    return [subject_view(s) for s in query.order_by(Subject.id).all()]

@router.post("/subjects", status_code=201)
def add_subject(payload: SubjectSchema, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    find_section(db, payload.section_id)
    if payload.faculty_id is not None:
        find_faculty(db, payload.faculty_id)
    subject = Subject(**payload.dict())
    with transaction(db, "create subject"):
        db.add(subject)
    return subject_view(subject)

@router.put("/subjects/{subject_id}")
def update_subject(subject_id: int, payload: SubjectUpdateSchema, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    subject = find_subject(db, subject_id)
    fields = payload.dict(exclude_unset=True)
    if fields.get("faculty_id") is not None:
        find_faculty(db, fields["faculty_id"])
    with transaction(db, "update subject"):
        for key, value in fields.items():
            setattr(subject, key, value)
    return subject_view(subject)

@router.delete("/subjects/{subject_id}")
def delete_subject(subject_id: int, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    subject = find_subject(db, subject_id)
    with transaction(db, "delete subject"):
        db.delete(subject)
    return {"message": "Subject deleted"}
