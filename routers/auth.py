import logging
import random

from fastapi import APIRouter, Depends, Request, Response
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional

import config
from database import get_db, transaction
from models.students import Admin, Faculty, Profile, Role, Student, User
from services.errors import Forbidden, Unauthorized, ValidationError
from services.identity import course_ids_for_faculty, department_of, find_user_by_email
from services.security import (
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Authentication"])

# --- SCHEMAS ---
class LoginSchema(BaseModel):
    email: str
    password: str

class RegisterSchema(BaseModel):
    email: str
    password: str
    first_name: str
    last_name: Optional[str] = None
    phone: Optional[str] = None
    role: str = "STUDENT"
    department: Optional[str] = None


# --- DEPENDENCIES ---
def get_current_user(request: Request, db: Session = Depends(get_db)):
    token = request.cookies.get(config.AUTH_COOKIE_NAME)
    if not token:
        raise Unauthorized()
    payload = decode_access_token(token)
    user = db.query(User).filter(User.id == payload["id"]).first()
    if user is None:
        raise Unauthorized("Session user no longer exists")
    return user


def require_roles(*roles):
    allowed = {r.value if isinstance(r, Role) else r for r in roles}

    def checker(user: User = Depends(get_current_user)):
        if user.role not in allowed:
            raise Forbidden()
        return user

    return checker


def ensure_teaches_subject(user, subject):
    """Admins pass; faculty only for subjects assigned to them."""
    if user.role == Role.ADMIN.value:
        return
    if not user.faculty or subject.faculty_id != user.faculty.id:
        raise Forbidden("You are not assigned to this subject")


def ensure_teaches_course(db, user, course_id):
    if user.role == Role.ADMIN.value:
        return
    if not user.faculty or course_id not in course_ids_for_faculty(db, user.faculty.id):
        raise Forbidden("You are not assigned to this course")


def taught_course_ids(db, user):
    """None for admins (no restriction), else the courses the faculty member teaches."""
    if user.role == Role.ADMIN.value:
        return None
    return course_ids_for_faculty(db, user.faculty.id) if user.faculty else set()


def user_view(user):
    return {
        "id": user.id,
        "email": user.email,
        "role": user.role,
        "is_approved": user.is_approved,
        "name": user.full_name,
        "department": department_of(user),
        "student_id": user.student.id if user.student else None,
        "faculty_id": user.faculty.id if user.faculty else None,
    }


def generate_enrollment_no(db):
    while True:
        candidate = f"STU-{random.randint(100000, 999999)}"
        if not db.query(Student.id).filter(Student.enrollment_no == candidate).first():
            return candidate


def create_role_record(db, user, role, department=None):
    """Add the Student/Faculty/Admin row a role needs, if it is missing."""
    if role == Role.STUDENT.value and user.student is None:
        db.add(Student(user=user, enrollment_no=generate_enrollment_no(db), department=department or "Not Assigned"))
    elif role == Role.FACULTY.value and user.faculty is None:
        db.add(Faculty(user=user, department=department or "Not Assigned"))
    elif role == Role.ADMIN.value and user.admin is None:
        db.add(Admin(user=user))


# 1. REGISTER (pending approval)
@router.post("/register", status_code=201)
def register(payload: RegisterSchema, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    role = payload.role.upper()
    if "@" not in email:
        raise ValidationError("A valid email is required")
    if len(payload.password) < 6:
        raise ValidationError("Password must be at least 6 characters")
    if role not in (Role.STUDENT.value, Role.FACULTY.value):
        raise ValidationError("Only STUDENT or FACULTY accounts can be registered")
    if find_user_by_email(db, email):
        raise ValidationError("An account with this email already exists")

    with transaction(db, "register"):
        user = User(email=email, password_hash=hash_password(payload.password), role=role, is_approved=False)
        db.add(user)
        db.add(Profile(user=user, first_name=payload.first_name, last_name=payload.last_name, phone=payload.phone))
        create_role_record(db, user, role, payload.department)

    logger.info("Registered %s as %s (pending approval)", email, role)
    return {"message": "Registration successful. Waiting for admin approval.", "user": user_view(user)}


# 2. LOGIN
@router.post("/login")
def login(response: Response, data: LoginSchema, db: Session = Depends(get_db)):
    user = find_user_by_email(db, data.email)
    if not user or not verify_password(data.password, user.password_hash):
        raise Unauthorized("Invalid email or password")
    if not user.is_approved and user.role != Role.ADMIN.value:
        raise Forbidden("Your account is pending approval")

    token = create_access_token({"id": user.id, "email": user.email, "role": user.role})
    response.set_cookie(
        key=config.AUTH_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="strict",
        secure=config.COOKIE_SECURE,
        max_age=config.JWT_EXPIRE_MINUTES * 60,
    )
    return {"message": "Login successful", "user": user_view(user)}


# 3. LOGOUT
@router.post("/logout")
def logout(response: Response):
    response.delete_cookie(config.AUTH_COOKIE_NAME)
    return {"message": "Logged out"}


# 4. CURRENT SESSION
@router.get("/session")
def session(user: User = Depends(get_current_user)):
    return {"user": user_view(user)}
