import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session, joinedload
from sqlalchemy import or_
from pydantic import BaseModel
from typing import Optional

from database import get_db, transaction
from models.students import Profile, Role, Student, User
from routers.attendance import ensure_own_student
from routers.auth import get_current_user, require_roles
from services import enrollment
from services.errors import NotFound, ValidationError
from services.identity import find_student

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/students", tags=["Students"])
staff = require_roles(Role.ADMIN, Role.FACULTY)

# --- SCHEMAS ---
class StudentUpdateSchema(BaseModel):
    enrollment_no: Optional[str] = None
    department: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None


def student_view(s):
    profile = s.user.profile if s.user else None
    return {
        "id": s.id,
        "user_id": s.user_id,
        "enrollment_no": s.enrollment_no,
        "department": s.department,
        "email": s.user.email if s.user else None,
        "is_approved": s.user.is_approved if s.user else None,
        "first_name": profile.first_name if profile else None,
        "last_name": profile.last_name if profile else None,
        "phone": profile.phone if profile else None,
        "address": profile.address if profile else None,
    }


@router.get("")
def list_students(
    department: Optional[str] = None,
    search: Optional[str] = None,
    db: Session = Depends(get_db),
    _: User = Depends(staff),
):
    query = db.query(Student).options(joinedload(Student.user).joinedload(User.profile))
    if department:
        query = query.filter(Student.department == department)
    if search:
        like = f"%{search}%"
        query = query.join(User, User.id == Student.user_id).outerjoin(Profile, Profile.user_id == User.id).filter(
            or_(Student.enrollment_no.ilike(like), User.email.ilike(like), Profile.first_name.ilike(like))
        )
    return [student_view(s) for s in query.order_by(Student.enrollment_no).all()]

@router.get("/me")
def my_record(user: User = Depends(require_roles(Role.STUDENT))):
    if not user.student:
        raise NotFound("No student record for this account")
    return student_view(user.student)

@router.get("/{student_id}")
def get_student(student_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    ensure_own_student(user, student_id)
    student = find_student(db, student_id)
    data = student_view(student)
    data["enrollments"] = [
        {"id": e.id, "section_id": e.section_id, "status": e.status}
        for e in enrollment.student_enrollments(db, student_id)
    ]
    return data

# UPDATE STUDENT + PROFILE (one transaction)
@router.put("/{student_id}")
def update_student(student_id: int, payload: StudentUpdateSchema, db: Session = Depends(get_db), _: User = Depends(require_roles(Role.ADMIN))):
    student = find_student(db, student_id)
    fields = payload.dict(exclude_unset=True)
    new_no = fields.get("enrollment_no")
    if new_no and new_no != student.enrollment_no:
        if db.query(Student.id).filter(Student.enrollment_no == new_no).first():
            raise ValidationError("Enrollment number already in use")

    with transaction(db, "update student"):
        for key in ("enrollment_no", "department"):
            if fields.get(key) is not None:
                setattr(student, key, fields[key])
        profile = student.user.profile
        profile_fields = {k: v for k, v in fields.items() if k in ("first_name", "last_name", "phone", "address")}
        if profile_fields:
            if profile is None:
                profile = Profile(user_id=student.user_id, first_name=profile_fields.get("first_name") or "")
                db.add(profile)
            for key, value in profile_fields.items():
                setattr(profile, key, value)

    logger.info("Student %s updated", student_id)
    return student_view(student)
