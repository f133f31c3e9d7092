import pytest

from models.schedule import ClassSchedule
from services import enrollment, schedule
from services.errors import Conflict, ValidationError


def test_rooms_are_unique_by_name(client, factory, login_as):
    login_as(factory.admin())
    created = client.post("/api/schedule/rooms", json={"name": "Lab 1", "capacity": 40, "type": "lab"})
    assert created.status_code == 201
    assert created.json()["type"] == "LAB"

    dup = client.post("/api/schedule/rooms", json={"name": "lab 1", "capacity": 20})
    assert dup.status_code == 409
    assert dup.json()["error"] == "conflict"

    login_as(factory.faculty().user)
    assert [r["name"] for r in client.get("/api/schedule/rooms").json()] == ["Lab 1"]
    login_as(factory.user())
    assert client.get("/api/schedule/rooms").status_code == 403


def test_room_double_booking_is_refused(db, factory):
    course = factory.course()
    room = schedule.create_room(db, "Hall A", 100)
    schedule.create_schedule(db, "monday", "09:00", "10:00", course_id=course.id, room_id=room.id)

    with pytest.raises(Conflict):
        schedule.create_schedule(db, "MONDAY", "9:30", "10:30", course_id=course.id, room_id=room.id)
    with pytest.raises(Conflict):
        schedule.create_schedule(db, "MONDAY", "08:00", "11:00", course_id=course.id, room_id=room.id)

    # back-to-back, another day, or no room at all are fine
    schedule.create_schedule(db, "MONDAY", "10:00", "11:00", course_id=course.id, room_id=room.id)
    schedule.create_schedule(db, "TUESDAY", "09:00", "10:00", course_id=course.id, room_id=room.id)
    schedule.create_schedule(db, "MONDAY", "09:00", "10:00", course_id=course.id)
    assert db.query(ClassSchedule).count() == 4


def test_slot_validation(db, factory):
    course = factory.course()
    other_section = factory.section()

    with pytest.raises(ValidationError):
        schedule.create_schedule(db, "FUNDAY", "09:00", "10:00", course_id=course.id)
    with pytest.raises(ValidationError):
        schedule.create_schedule(db, "MONDAY", "25:00", "26:00", course_id=course.id)
    with pytest.raises(ValidationError):
        schedule.create_schedule(db, "MONDAY", "10:00", "10:00", course_id=course.id)
    with pytest.raises(ValidationError):
        schedule.create_schedule(db, "MONDAY", "09:00", "10:00")
    with pytest.raises(ValidationError):
        schedule.create_schedule(db, "MONDAY", "09:00", "10:00", course_id=course.id, section_id=other_section.id)


def test_section_slot_takes_the_section_course(client, factory, login_as):
    section = factory.section()
    login_as(factory.admin())

    res = client.post(f"/api/schedule/sections/{section.id}", json={
        "day_of_week": "wednesday", "start_time": "14:00", "end_time": "15:30",
    })
    assert res.status_code == 201
    slot = res.json()["schedule"]
    assert slot["course_id"] == section.course_id
    assert slot["day_of_week"] == "WEDNESDAY"
    assert slot["room_name"] == "Unassigned"

    listed = client.get(f"/api/schedule/sections/{section.id}").json()
    assert [s["id"] for s in listed] == [slot["id"]]

    blocked = client.delete(f"/api/masters/sections/{section.id}")
    assert blocked.status_code == 400
    assert blocked.json()["message"] == "Section still has timetable slots"


def test_student_sees_course_wide_and_own_section_slots(client, db, factory, login_as):
    course = factory.course()
    mine = factory.section(course=course)
    theirs = factory.section(course=course)
    student = factory.student()
    enrollment.enroll(db, student.id, mine.id)

    schedule.create_schedule(db, "FRIDAY", "09:00", "10:00", course_id=course.id)
    schedule.create_schedule(db, "MONDAY", "11:00", "12:00", section_id=mine.id)
    schedule.create_schedule(db, "MONDAY", "09:00", "10:00", section_id=mine.id)
    schedule.create_schedule(db, "MONDAY", "08:00", "09:00", section_id=theirs.id)
    schedule.create_schedule(db, "MONDAY", "08:00", "09:00", course_id=factory.course().id)

    login_as(student.user)
    week = client.get("/api/schedule").json()
    assert [(s["day_of_week"], s["start_time"]) for s in week] == [
        ("MONDAY", "09:00"),
        ("MONDAY", "11:00"),
        ("FRIDAY", "09:00"),
    ]

    enrollment.change_status(db, enrollment.section_enrollments(db, mine.id)[0].id, "DROPPED")
    assert client.get("/api/schedule").json() == []


def test_faculty_sees_courses_they_teach(client, db, factory, login_as):
    instructor = factory.faculty()
    section = factory.section()
    factory.subject(section=section, faculty=instructor)
    coordinated = factory.course(faculty=instructor)
    schedule.create_schedule(db, "TUESDAY", "10:00", "11:00", section_id=section.id)
    schedule.create_schedule(db, "MONDAY", "10:00", "11:00", course_id=coordinated.id)
    schedule.create_schedule(db, "MONDAY", "12:00", "13:00", course_id=factory.course().id)

    login_as(instructor.user)
    week = client.get("/api/schedule").json()

    assert [s["course_id"] for s in week] == [coordinated.id, section.course_id]
    assert week[0]["faculty_id"] == instructor.id


def test_moving_a_slot_rechecks_the_room(client, db, factory, login_as):
    course = factory.course()
    room = schedule.create_room(db, "Room 101", 30)
    schedule.create_schedule(db, "MONDAY", "09:00", "10:00", course_id=course.id, room_id=room.id)
    later = schedule.create_schedule(db, "MONDAY", "11:00", "12:00", course_id=course.id, room_id=room.id)
    login_as(factory.admin())

    clash = client.patch(f"/api/schedule/{later.id}", json={"start_time": "09:30", "end_time": "10:30"})
    assert clash.status_code == 409

    freed = client.patch(f"/api/schedule/{later.id}", json={"start_time": "09:30", "end_time": "10:30", "room_id": None})
    assert freed.status_code == 200
    assert freed.json()["room_id"] is None

    assert client.delete(f"/api/schedule/rooms/{room.id}").status_code == 400
    assert client.delete(f"/api/schedule/{later.id}").status_code == 200
    assert client.get(f"/api/schedule/{later.id}").status_code == 404
