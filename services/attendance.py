"""Attendance recording and the percentages derived from it.

A class session of a subject is a distinct date on which anyone's attendance
was recorded for it. PRESENT and LATE both count as attended. When no session
exists yet the percentage is 100 (full credit) at every call site.
"""

import logging
from collections import defaultdict
from datetime import date as dt_date, datetime

from sqlalchemy import distinct, func

import config
from database import transaction
from models.attendance import ATTENDED, AttendanceStatus, CourseAttendance, SubjectAttendance
from models.enrollments import EnrollmentStatus, SectionEnrollment
from models.masters import Section, Subject
from models.students import Student
from services.errors import NotFound, ValidationError
from services.identity import find_course, find_student, find_subject

logger = logging.getLogger(__name__)

NO_SESSIONS_PERCENTAGE = 100.0


def parse_date(value):
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, dt_date):
        return value
    try:
        return datetime.strptime(str(value)[:10], "%Y-%m-%d").date()
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid date: {value!r}. Expected YYYY-MM-DD")


def parse_status(value):
    try:
        return AttendanceStatus(str(value).upper())
    except ValueError:
        raise ValidationError(f"Invalid attendance status: {value!r}")


def percentage(attended, total):
    if total == 0:
        return NO_SESSIONS_PERCENTAGE
    return attended / total * 100


def _validated_records(db, records):
    if not records:
        raise ValidationError("Attendance records are required")
    cleaned = {}
    for rec in records:
        student_id = rec.get("student_id")
        if student_id is None:
            raise ValidationError("Each attendance record needs a student_id")
        # last entry wins when a student appears twice in one batch
        cleaned[student_id] = (parse_status(rec.get("status")), rec.get("remarks"))

    ids = list(cleaned)
    found = {row.id for row in db.query(Student.id).filter(Student.id.in_(ids))}
    missing = [sid for sid in ids if sid not in found]
    if missing:
        raise NotFound("Students not found", details={"student_ids": missing})
    return cleaned


# 1. RECORD (upsert by student + subject + date)
def record_attendance(db, subject_id, date, records, recorded_by=None):
    find_subject(db, subject_id)
    day = parse_date(date)
    cleaned = _validated_records(db, records)

    existing = {
        row.student_id: row
        for row in db.query(SubjectAttendance).filter(
            SubjectAttendance.subject_id == subject_id,
            SubjectAttendance.date == day,
            SubjectAttendance.student_id.in_(list(cleaned)),
        )
    }
    with transaction(db, "record attendance"):
        for student_id, (status, remarks) in cleaned.items():
            row = existing.get(student_id)
            if row:
                row.status = status.value
                row.remarks = remarks
                row.recorded_by = recorded_by or row.recorded_by
            else:
                db.add(SubjectAttendance(
                    student_id=student_id,
                    subject_id=subject_id,
                    date=day,
                    status=status.value,
                    remarks=remarks,
                    recorded_by=recorded_by,
                ))

    logger.info("Attendance for subject %s on %s saved (%d rows)", subject_id, day, len(cleaned))
    return len(cleaned)


def record_course_attendance(db, course_id, date, records):
    find_course(db, course_id)
    day = parse_date(date)
    cleaned = _validated_records(db, records)

    existing = {
        row.student_id: row
        for row in db.query(CourseAttendance).filter(
            CourseAttendance.course_id == course_id,
            CourseAttendance.date == day,
            CourseAttendance.student_id.in_(list(cleaned)),
        )
    }
    with transaction(db, "record course attendance"):
        for student_id, (status, remarks) in cleaned.items():
            row = existing.get(student_id)
            if row:
                row.status = status.value
                row.remarks = remarks
            else:
                db.add(CourseAttendance(
                    student_id=student_id,
                    course_id=course_id,
                    date=day,
                    status=status.value,
                    remarks=remarks,
                ))
    logger.info("Attendance for course %s on %s saved (%d rows)", course_id, day, len(cleaned))
    return len(cleaned)


# 2. PERCENTAGES
def total_sessions(db, subject_id):
    return (
        db.query(func.count(distinct(SubjectAttendance.date)))
        .filter(SubjectAttendance.subject_id == subject_id)
        .scalar()
    ) or 0


def attendance_percentage(db, subject_id, student_id):
    find_subject(db, subject_id)
    find_student(db, student_id)
    sessions = total_sessions(db, subject_id)
    attended = (
        db.query(func.count(SubjectAttendance.id))
        .filter(
            SubjectAttendance.subject_id == subject_id,
            SubjectAttendance.student_id == student_id,
            SubjectAttendance.status.in_(ATTENDED),
        )
        .scalar()
    )
    return percentage(attended, sessions)


def attendance_mark(pct):
    """Internal attendance mark out of MAX_ATTENDANCE_MARK."""
    mark = min(pct / 100 * config.MAX_ATTENDANCE_MARK, config.MAX_ATTENDANCE_MARK)
    return round(max(mark, 0), 1)


def _tally(rows):
    counts = {s.value: 0 for s in AttendanceStatus}
    for row in rows:
        counts[row.status] = counts.get(row.status, 0) + 1
    return counts


# 3. REPORTS
def subject_report(db, subject_id):
    subject = find_subject(db, subject_id)
    sessions = total_sessions(db, subject_id)
    rows = db.query(SubjectAttendance).filter(SubjectAttendance.subject_id == subject_id).all()

    by_student = defaultdict(list)
    for row in rows:
        by_student[row.student_id].append(row)

    roster = [
        e.student_id
        for e in db.query(SectionEnrollment).filter(
            SectionEnrollment.section_id == subject.section_id,
            SectionEnrollment.status == EnrollmentStatus.ACTIVE.value,
        )
    ]
    # students with records but no active enrollment still show up
    student_ids = list(dict.fromkeys(roster + sorted(by_student)))

    students = []
    for student_id in student_ids:
        counts = _tally(by_student.get(student_id, []))
        attended = counts["PRESENT"] + counts["LATE"]
        pct = percentage(attended, sessions)
        students.append({
            "student_id": student_id,
            "present": counts["PRESENT"],
            "absent": counts["ABSENT"],
            "late": counts["LATE"],
            "total_sessions": sessions,
            "percentage": round(pct, 2),
            "attendance_mark": attendance_mark(pct),
        })

    overall = _tally(rows)
    possible = sessions * len(student_ids)
    overall_attended = overall["PRESENT"] + overall["LATE"]
    return {
        "subject_id": subject.id,
        "subject_name": subject.name,
        "total_sessions": sessions,
        "total_students": len(student_ids),
        "total_entries": len(rows),
        "present": overall["PRESENT"],
        "absent": overall["ABSENT"],
        "late": overall["LATE"],
        "overall_percentage": round(percentage(overall_attended, possible), 2),
        "students": students,
    }


def student_summary(db, student_id):
    """Per-subject and per-course attendance for one student."""
    find_student(db, student_id)

    subject_rows = (
        db.query(SubjectAttendance, Subject)
        .join(Subject, Subject.id == SubjectAttendance.subject_id)
        .filter(SubjectAttendance.student_id == student_id)
        .all()
    )
    subjects = {}
    for att, subject in subject_rows:
        entry = subjects.setdefault(subject.id, {"subject": subject, "rows": []})
        entry["rows"].append(att)

    subject_summary = []
    for subject_id, entry in subjects.items():
        counts = _tally(entry["rows"])
        sessions = total_sessions(db, subject_id)
        subject_summary.append({
            "subject_id": subject_id,
            "subject_name": entry["subject"].name,
            "course_id": entry["subject"].course_id,
            "present": counts["PRESENT"],
            "absent": counts["ABSENT"],
            "late": counts["LATE"],
            "total_sessions": sessions,
            "percentage": round(percentage(counts["PRESENT"] + counts["LATE"], sessions), 2),
        })

    course_ids = {s["course_id"] for s in subject_summary}
    course_rows = db.query(CourseAttendance).filter(CourseAttendance.student_id == student_id).all()
    course_ids |= {row.course_id for row in course_rows}

    course_summary = []
    for course_id in sorted(course_ids):
        subject_ids = [
            row.id
            for row in db.query(Subject.id).join(Section, Section.id == Subject.section_id).filter(Section.course_id == course_id)
        ]
        subject_sessions = 0
        if subject_ids:
            subject_sessions = (
                db.query(SubjectAttendance.subject_id, SubjectAttendance.date)
                .filter(SubjectAttendance.subject_id.in_(subject_ids))
                .distinct()
                .count()
            )
        course_sessions = (
            db.query(func.count(distinct(CourseAttendance.date)))
            .filter(CourseAttendance.course_id == course_id)
            .scalar()
        ) or 0

        own = [att for att, subject in subject_rows if subject.id in subject_ids]
        own += [row for row in course_rows if row.course_id == course_id]
        counts = _tally(own)
        sessions = subject_sessions + course_sessions
        course_summary.append({
            "course_id": course_id,
            "present": counts["PRESENT"],
            "absent": counts["ABSENT"],
            "late": counts["LATE"],
            "total_sessions": sessions,
            "percentage": round(percentage(counts["PRESENT"] + counts["LATE"], sessions), 2),
        })

    return {"student_id": student_id, "subjects": subject_summary, "courses": course_summary}
