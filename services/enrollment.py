"""Section and course enrollment.

Section enrollments are capacity-bound: the capacity check and the insert run
in one transaction that starts by bumping ``Section.lock_version``. That UPDATE
takes the section row lock (the database write lock on SQLite), so two
enrollers of the same section never read the same count.

Course enrollments are a separate root with no capacity.
"""

import logging
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from database import transaction
from models.enrollments import EnrollmentStatus, SectionEnrollment, CourseEnrollment
from models.masters import Section
from models.students import Student
from services.errors import (
    CapacityExceeded,
    DuplicateEnrollment,
    EnrollmentNotFound,
    NotFound,
    ValidationError,
)
from services.identity import find_course, find_section, find_student

logger = logging.getLogger(__name__)


def parse_status(value):
    if value is None or value == "":
        raise ValidationError("Enrollment status is required")
    try:
        return EnrollmentStatus(str(value).upper())
    except ValueError:
        allowed = ", ".join(s.value for s in EnrollmentStatus)
        raise ValidationError(f"Invalid status. Must be one of: {allowed}")


def lock_section(db, section_id):
    touched = (
        db.query(Section)
        .filter(Section.id == section_id)
        .update({Section.lock_version: Section.lock_version + 1}, synchronize_session=False)
    )
    if not touched:
        raise NotFound("Section not found", details={"id": section_id})


def available_spots(db, section_id):
    """Capacity minus every enrollment row of the section, whatever its status."""
    capacity = db.query(Section.capacity).filter(Section.id == section_id).scalar()
    taken = (
        db.query(func.count(SectionEnrollment.id))
        .filter(SectionEnrollment.section_id == section_id)
        .scalar()
    )
    return (capacity or 0) - taken


def _flush_new_rows(db):
    try:
        db.flush()
    except IntegrityError:
        # unique (student, section) hit by a concurrent writer
        raise DuplicateEnrollment("Student is already enrolled in this section")


# ==========================
#    SECTION ENROLLMENT
# ==========================

def enroll(db, student_id, section_id):
    find_student(db, student_id)
    find_section(db, section_id)

    with transaction(db, "enroll"):
        lock_section(db, section_id)
        if available_spots(db, section_id) < 1:
            raise CapacityExceeded("Section is at full capacity")

        existing = (
            db.query(SectionEnrollment)
            .filter(SectionEnrollment.student_id == student_id, SectionEnrollment.section_id == section_id)
            .first()
        )
        if existing:
            raise DuplicateEnrollment("Student is already enrolled in this section")

        enrollment = SectionEnrollment(
            student_id=student_id,
            section_id=section_id,
            status=EnrollmentStatus.ACTIVE.value,
            enrolled_at=datetime.utcnow(),
        )
        db.add(enrollment)
        _flush_new_rows(db)

    logger.info("Student %s enrolled in section %s", student_id, section_id)
    return enrollment


def bulk_enroll(db, section_id, student_ids):
    """Enroll every student or none of them."""
    if not student_ids:
        raise ValidationError("Student IDs array is required")
    ids = list(dict.fromkeys(student_ids))

    find_section(db, section_id)
    found = {row.id for row in db.query(Student.id).filter(Student.id.in_(ids))}
    missing = [sid for sid in ids if sid not in found]
    if missing:
        raise NotFound("Students not found", details={"student_ids": missing})

    with transaction(db, "bulk enroll"):
        lock_section(db, section_id)
        spots = available_spots(db, section_id)
        if len(ids) > spots:
            raise CapacityExceeded(
                f"Cannot enroll {len(ids)} students. Only {max(spots, 0)} spots available.",
                details={"requested": len(ids), "available": max(spots, 0)},
            )

        already = [
            row.student_id
            for row in db.query(SectionEnrollment.student_id).filter(
                SectionEnrollment.section_id == section_id,
                SectionEnrollment.student_id.in_(ids),
            )
        ]
        if already:
            raise DuplicateEnrollment(
                "One or more students are already enrolled in this section",
                details={"student_ids": sorted(already)},
            )

        now = datetime.utcnow()
        rows = [
            SectionEnrollment(
                student_id=sid,
                section_id=section_id,
                status=EnrollmentStatus.ACTIVE.value,
                enrolled_at=now,
            )
            for sid in ids
        ]
        db.add_all(rows)
        _flush_new_rows(db)

    logger.info("Enrolled %d students in section %s", len(rows), section_id)
    return rows


def get_enrollment(db, enrollment_id):
    enrollment = db.query(SectionEnrollment).filter(SectionEnrollment.id == enrollment_id).first()
    if enrollment is None:
        raise EnrollmentNotFound()
    return enrollment


def change_status(db, enrollment_id, new_status):
    # any -> any; capacity is not rechecked
    status = parse_status(new_status)
    enrollment = get_enrollment(db, enrollment_id)
    with transaction(db, "change enrollment status"):
        enrollment.status = status.value
    logger.info("Enrollment %s set to %s", enrollment_id, status.value)
    return enrollment


def delete_enrollment(db, enrollment_id):
    """Hard delete; attendance and grade rows are left in place."""
    enrollment = get_enrollment(db, enrollment_id)
    with transaction(db, "delete enrollment"):
        db.delete(enrollment)
    logger.info("Enrollment %s deleted", enrollment_id)


def section_enrollments(db, section_id):
    find_section(db, section_id)
    return (
        db.query(SectionEnrollment)
        .filter(SectionEnrollment.section_id == section_id)
        .order_by(SectionEnrollment.enrolled_at, SectionEnrollment.id)
        .all()
    )


def student_enrollments(db, student_id):
    find_student(db, student_id)
    return (
        db.query(SectionEnrollment)
        .filter(SectionEnrollment.student_id == student_id)
        .order_by(SectionEnrollment.enrolled_at.desc())
        .all()
    )


def active_section_ids(db, student_id):
    return [
        row.section_id
        for row in db.query(SectionEnrollment.section_id).filter(
            SectionEnrollment.student_id == student_id,
            SectionEnrollment.status == EnrollmentStatus.ACTIVE.value,
        )
    ]


# ==========================
#    COURSE ENROLLMENT
# ==========================

def enroll_in_course(db, student_id, course_id):
    find_student(db, student_id)
    find_course(db, course_id)
    existing = (
        db.query(CourseEnrollment)
        .filter(CourseEnrollment.student_id == student_id, CourseEnrollment.course_id == course_id)
        .first()
    )
    if existing:
        raise DuplicateEnrollment("Student is already enrolled in this course")

    enrollment = CourseEnrollment(
        student_id=student_id,
        course_id=course_id,
        status=EnrollmentStatus.ACTIVE.value,
        enrolled_at=datetime.utcnow(),
    )
    with transaction(db, "course enroll"):
        db.add(enrollment)
        try:
            db.flush()
        except IntegrityError:
            raise DuplicateEnrollment("Student is already enrolled in this course")
    return enrollment


def bulk_enroll_in_course(db, course_id, student_ids):
    """Existing course enrollments are kept as they are; returns all rows for the ids."""
    if not student_ids:
        raise ValidationError("Student IDs array is required")
    ids = list(dict.fromkeys(student_ids))
    find_course(db, course_id)
    found = {row.id for row in db.query(Student.id).filter(Student.id.in_(ids))}
    missing = [sid for sid in ids if sid not in found]
    if missing:
        raise NotFound("Students not found", details={"student_ids": missing})

    existing = {
        row.student_id: row
        for row in db.query(CourseEnrollment).filter(
            CourseEnrollment.course_id == course_id,
            CourseEnrollment.student_id.in_(ids),
        )
    }
    with transaction(db, "bulk course enroll"):
        for sid in ids:
            if sid not in existing:
                row = CourseEnrollment(
                    student_id=sid,
                    course_id=course_id,
                    status=EnrollmentStatus.ACTIVE.value,
                    enrolled_at=datetime.utcnow(),
                )
                db.add(row)
                existing[sid] = row
    return [existing[sid] for sid in ids]


def get_course_enrollment(db, enrollment_id):
    enrollment = db.query(CourseEnrollment).filter(CourseEnrollment.id == enrollment_id).first()
    if enrollment is None:
        raise EnrollmentNotFound()
    return enrollment


def change_course_enrollment_status(db, enrollment_id, new_status):
    status = parse_status(new_status)
    enrollment = get_course_enrollment(db, enrollment_id)
    with transaction(db, "change course enrollment status"):
        enrollment.status = status.value
    return enrollment


def delete_course_enrollment(db, enrollment_id):
    enrollment = get_course_enrollment(db, enrollment_id)
    with transaction(db, "delete course enrollment"):
        db.delete(enrollment)


def course_ids_for_student(db, student_id):
    """Courses reached through course enrollments or section enrollments."""
    direct = {
        row.course_id
        for row in db.query(CourseEnrollment.course_id).filter(CourseEnrollment.student_id == student_id)
    }
    via_sections = {
        row.course_id
        for row in db.query(Section.course_id)
        .join(SectionEnrollment, SectionEnrollment.section_id == Section.id)
        .filter(SectionEnrollment.student_id == student_id)
    }
    return direct | via_sections
