"""Which published notices a user gets to see."""

from datetime import datetime

from sqlalchemy import or_

from models.communication import Notice, NoticeTarget
from models.masters import Subject
from models.enrollments import SectionEnrollment
from services.enrollment import course_ids_for_student
from services.errors import ValidationError
from services.identity import course_ids_for_faculty, department_of


def parse_target(value):
    try:
        return NoticeTarget(str(value or "ALL").upper())
    except ValueError:
        allowed = ", ".join(t.value for t in NoticeTarget)
        raise ValidationError(f"Invalid target type. Must be one of: {allowed}")


def audience_of(db, user):
    """Role, department, course ids and section ids a user belongs to."""
    course_ids, section_ids = set(), set()
    if user.student:
        course_ids = course_ids_for_student(db, user.student.id)
        section_ids = {
            row.section_id
            for row in db.query(SectionEnrollment.section_id).filter(SectionEnrollment.student_id == user.student.id)
        }
    elif user.faculty:
        course_ids = course_ids_for_faculty(db, user.faculty.id)
        section_ids = {
            row.section_id for row in db.query(Subject.section_id).filter(Subject.faculty_id == user.faculty.id)
        }
    return {
        "role": user.role,
        "department": department_of(user),
        "course_ids": course_ids,
        "section_ids": section_ids,
    }


def matches(notice, audience):
    target = notice.target_type
    if target == NoticeTarget.ALL.value:
        return True
    if target == NoticeTarget.ROLE.value:
        return audience["role"] in (notice.target_roles or [])
    if target == NoticeTarget.DEPARTMENT.value:
        return audience["department"] in (notice.target_departments or [])
    if target == NoticeTarget.COURSE.value:
        return bool(audience["course_ids"] & set(notice.target_course_ids or []))
    if target == NoticeTarget.SECTION.value:
        return bool(audience["section_ids"] & set(notice.target_section_ids or []))
    return False


def notices_for(db, user, now=None):
    now = now or datetime.utcnow()
    candidates = (
        db.query(Notice)
        .filter(
            Notice.is_published == True,
            or_(Notice.expiry_date == None, Notice.expiry_date > now),
        )
        .order_by(Notice.publish_date.desc(), Notice.id.desc())
        .all()
    )
    audience = audience_of(db, user)
    return [n for n in candidates if matches(n, audience)]
