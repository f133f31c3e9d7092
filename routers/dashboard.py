from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from sqlalchemy import func
from database import get_db
from models.students import Faculty, Role, Student, User
from models.masters import Course, Section
from models.enrollments import EnrollmentStatus, SectionEnrollment
from routers.auth import require_roles

router = APIRouter(prefix="/api/admin/dashboard", tags=["Dashboard"])


@router.get("")
def dashboard_stats(db: Session = Depends(get_db), _: User = Depends(require_roles(Role.ADMIN))):
    # 1. Basic Counts
    total_students = db.query(Student).count()
    total_faculty = db.query(Faculty).count()
    total_courses = db.query(Course).count()
    pending_approvals = db.query(User).filter(User.is_approved == False, User.role != Role.ADMIN.value).count()
    active_enrollments = (
        db.query(SectionEnrollment).filter(SectionEnrollment.status == EnrollmentStatus.ACTIVE.value).count()
    )

    # 2. Distributions
    students_by_dept = db.query(Student.department, func.count(Student.id)).group_by(Student.department).all()
    faculty_by_dept = db.query(Faculty.department, func.count(Faculty.id)).group_by(Faculty.department).all()

    # 3. Section fill
    taken = dict(
        db.query(SectionEnrollment.section_id, func.count(SectionEnrollment.id))
        .group_by(SectionEnrollment.section_id)
        .all()
    )
    sections = [
        {
            "section_id": s.id,
            "name": s.name,
            "course_id": s.course_id,
            "capacity": s.capacity,
            "enrolled": taken.get(s.id, 0),
        }
        for s in db.query(Section).order_by(Section.id).all()
    ]

    return {
        "total_students": total_students,
        "total_faculty": total_faculty,
        "total_courses": total_courses,
        "pending_approvals": pending_approvals,
        "active_enrollments": active_enrollments,
        "students_by_department": [{"department": d or "Not Assigned", "count": c} for d, c in students_by_dept],
        "faculty_by_department": [{"department": d or "Not Assigned", "count": c} for d, c in faculty_by_dept],
        "sections": sections,
    }
