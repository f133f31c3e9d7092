"""Rooms and the weekly class timetable.

A slot belongs to a course and optionally to one of its sections. Booking a
room bumps ``Room.lock_version`` first, so the overlap check and the insert
see the same set of bookings.
"""

import logging
from datetime import datetime

from sqlalchemy import func

from database import transaction
from models.enrollments import CourseEnrollment, EnrollmentStatus, SectionEnrollment
from models.masters import Section
from models.schedule import ClassSchedule, DayOfWeek, Room
from services.errors import Conflict, NotFound, ValidationError
from services.identity import course_ids_for_faculty, find_course, find_room, find_section, find_student

logger = logging.getLogger(__name__)

DAY_ORDER = [d.value for d in DayOfWeek]


def parse_day(value):
    try:
        return DayOfWeek(str(value).strip().upper()).value
    except ValueError:
        raise ValidationError(f"Invalid day of week. Must be one of: {', '.join(DAY_ORDER)}")


def parse_time(value):
    """'9:05' or '09:05' -> '09:05'."""
    try:
        return datetime.strptime(str(value).strip(), "%H:%M").strftime("%H:%M")
    except ValueError:
        raise ValidationError(f"Invalid time '{value}'. Use HH:MM (24h)")


def _sort(slots):
    return sorted(slots, key=lambda s: (DAY_ORDER.index(s.day_of_week), s.start_time, s.id))


# ==========================
#          ROOMS
# ==========================

def create_room(db, name, capacity, room_type=None):
    if not name or not capacity:
        raise ValidationError("Name and capacity are required")
    if capacity < 1:
        raise ValidationError("Capacity must be at least 1")
    taken = db.query(Room).filter(func.lower(Room.name) == name.strip().lower()).first()
    if taken:
        raise Conflict("Room with this name already exists")

    room = Room(name=name.strip(), type=(room_type or "CLASSROOM").upper(), capacity=capacity, lock_version=0)
    with transaction(db, "create room"):
        db.add(room)
    return room


def list_rooms(db):
    return db.query(Room).order_by(Room.name).all()


def delete_room(db, room_id):
    room = find_room(db, room_id)
    if db.query(ClassSchedule.id).filter(ClassSchedule.room_id == room_id).first():
        raise ValidationError("Room is still used by the timetable")
    with transaction(db, "delete room"):
        db.delete(room)


def _lock_room(db, room_id):
    touched = (
        db.query(Room)
        .filter(Room.id == room_id)
        .update({Room.lock_version: Room.lock_version + 1}, synchronize_session=False)
    )
    if not touched:
        raise NotFound("Room not found", details={"id": room_id})


def _check_room_free(db, room_id, day, start, end, exclude_id=None):
    # half-open intervals: a class may start the minute another ends
    query = db.query(ClassSchedule).filter(
        ClassSchedule.room_id == room_id,
        ClassSchedule.day_of_week == day,
        ClassSchedule.start_time < end,
        ClassSchedule.end_time > start,
    )
    if exclude_id is not None:
        query = query.filter(ClassSchedule.id != exclude_id)
    clash = query.first()
    if clash:
        raise Conflict(
            "Room is already booked during this time slot",
            details={"schedule_id": clash.id, "start_time": clash.start_time, "end_time": clash.end_time},
        )


# ==========================
#        TIMETABLE
# ==========================

def _slot_fields(db, course_id, section_id, day_of_week, start_time, end_time, room_id):
    if not day_of_week or not start_time or not end_time:
        raise ValidationError("Missing required fields")
    if section_id is not None:
        section = find_section(db, section_id)
        if course_id is not None and course_id != section.course_id:
            raise ValidationError("Section does not belong to this course")
        course_id = section.course_id
    if course_id is None:
        raise ValidationError("course_id or section_id is required")
    find_course(db, course_id)
    if room_id is not None:
        find_room(db, room_id)

    start, end = parse_time(start_time), parse_time(end_time)
    if start >= end:
        raise ValidationError("start_time must be before end_time")
    return {
        "course_id": course_id,
        "section_id": section_id,
        "day_of_week": parse_day(day_of_week),
        "start_time": start,
        "end_time": end,
        "room_id": room_id,
    }


def create_schedule(db, day_of_week, start_time, end_time, course_id=None, section_id=None, room_id=None):
    fields = _slot_fields(db, course_id, section_id, day_of_week, start_time, end_time, room_id)
    slot = ClassSchedule(**fields)
    with transaction(db, "create schedule"):
        if room_id is not None:
            _lock_room(db, room_id)
            _check_room_free(db, room_id, fields["day_of_week"], fields["start_time"], fields["end_time"])
        db.add(slot)
    logger.info("Scheduled course %s on %s %s-%s", fields["course_id"], fields["day_of_week"], fields["start_time"], fields["end_time"])
    return slot


def find_schedule(db, schedule_id):
    slot = db.query(ClassSchedule).filter(ClassSchedule.id == schedule_id).first()
    if slot is None:
        raise NotFound("Schedule not found", details={"id": schedule_id})
    return slot


def update_schedule(db, schedule_id, **changes):
    slot = find_schedule(db, schedule_id)
    # null clears room and section; other fields keep their value
    changes = {k: v for k, v in changes.items() if v is not None or k in ("room_id", "section_id")}
    current = {
        "course_id": slot.course_id,
        "section_id": slot.section_id,
        "day_of_week": slot.day_of_week,
        "start_time": slot.start_time,
        "end_time": slot.end_time,
        "room_id": slot.room_id,
    }
    # moving to another section re-derives the course
    if changes.get("section_id") is not None and changes.get("course_id") is None:
        current["course_id"] = None
    current.update(changes)
    fields = _slot_fields(db, **current)

    with transaction(db, "update schedule"):
        if fields["room_id"] is not None:
            _lock_room(db, fields["room_id"])
            _check_room_free(
                db, fields["room_id"], fields["day_of_week"], fields["start_time"], fields["end_time"], exclude_id=slot.id
            )
        for key, value in fields.items():
            setattr(slot, key, value)
    return slot


def delete_schedule(db, schedule_id):
    slot = find_schedule(db, schedule_id)
    with transaction(db, "delete schedule"):
        db.delete(slot)


def list_schedules(db, course_id=None, section_id=None, day_of_week=None, room_id=None):
    query = db.query(ClassSchedule)
    if course_id is not None:
        query = query.filter(ClassSchedule.course_id == course_id)
    if section_id is not None:
        query = query.filter(ClassSchedule.section_id == section_id)
    if day_of_week:
        query = query.filter(ClassSchedule.day_of_week == parse_day(day_of_week))
    if room_id is not None:
        query = query.filter(ClassSchedule.room_id == room_id)
    return _sort(query.all())


def faculty_schedule(db, faculty_id):
    course_ids = course_ids_for_faculty(db, faculty_id)
    if not course_ids:
        return []
    return _sort(db.query(ClassSchedule).filter(ClassSchedule.course_id.in_(course_ids)).all())


def student_schedule(db, student_id):
    """Course-wide slots of active courses plus slots of active sections."""
    find_student(db, student_id)
    active = EnrollmentStatus.ACTIVE.value
    section_ids = {
        row.section_id
        for row in db.query(SectionEnrollment.section_id).filter(
            SectionEnrollment.student_id == student_id, SectionEnrollment.status == active
        )
    }
    course_ids = {
        row.course_id
        for row in db.query(CourseEnrollment.course_id).filter(
            CourseEnrollment.student_id == student_id, CourseEnrollment.status == active
        )
    }
    if section_ids:
        course_ids |= {row.course_id for row in db.query(Section.course_id).filter(Section.id.in_(section_ids))}
    if not course_ids:
        return []

    slots = db.query(ClassSchedule).filter(ClassSchedule.course_id.in_(course_ids)).all()
    return _sort(s for s in slots if s.section_id is None or s.section_id in section_ids)
