from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import Optional

from database import get_db
from models.students import Role, User
from routers.auth import get_current_user, require_roles
from services import schedule as timetable

router = APIRouter(prefix="/api/schedule", tags=["Schedule"])
admin_only = require_roles(Role.ADMIN)
staff = require_roles(Role.ADMIN, Role.FACULTY)

# --- SCHEMAS ---
class RoomSchema(BaseModel):
    name: str
    capacity: int
    type: Optional[str] = None

class ScheduleSchema(BaseModel):
    course_id: Optional[int] = None
    section_id: Optional[int] = None
    room_id: Optional[int] = None
    day_of_week: str
    start_time: str
    end_time: str

class SectionSlotSchema(BaseModel):
    room_id: Optional[int] = None
    day_of_week: str
    start_time: str
    end_time: str

class ScheduleUpdateSchema(BaseModel):
    course_id: Optional[int] = None
    section_id: Optional[int] = None
    room_id: Optional[int] = None
    day_of_week: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None


def room_view(r):
    return {"id": r.id, "name": r.name, "type": r.type, "capacity": r.capacity}


def slot_view(s):
    faculty = s.course.faculty if s.course else None
    return {
        "id": s.id,
        "course_id": s.course_id,
        "course_name": s.course.name if s.course else None,
        "section_id": s.section_id,
        "section_name": s.section.name if s.section else None,
        "room_id": s.room_id,
        "room_name": s.room.name if s.room else "Unassigned",
        "day_of_week": s.day_of_week,
        "start_time": s.start_time,
        "end_time": s.end_time,
        "faculty_id": faculty.id if faculty else None,
        "faculty_name": faculty.user.full_name if faculty else "Unassigned",
    }


# ===========================
#         1. ROOMS
# ===========================

@router.get("/rooms")
def list_rooms(db: Session = Depends(get_db), _: User = Depends(staff)):
    return [room_view(r) for r in timetable.list_rooms(db)]

@router.post("/rooms", status_code=201)
def add_room(payload: RoomSchema, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    return room_view(timetable.create_room(db, payload.name, payload.capacity, payload.type))

@router.delete("/rooms/{room_id}")
def delete_room(room_id: int, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    timetable.delete_room(db, room_id)
    return {"message": "Room deleted"}


# ===========================
#       2. TIMETABLE
# ===========================

@router.get("")
def my_schedule(
    course_id: Optional[int] = None,
    day_of_week: Optional[str] = None,
    room_id: Optional[int] = None,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    """Admins see everything (filterable); faculty and students see their own week."""
    if user.role == Role.ADMIN.value:
        slots = timetable.list_schedules(db, course_id=course_id, day_of_week=day_of_week, room_id=room_id)
    elif user.faculty:
        slots = timetable.faculty_schedule(db, user.faculty.id)
    elif user.student:
        slots = timetable.student_schedule(db, user.student.id)
    else:
        slots = []
    return [slot_view(s) for s in slots]

@router.post("", status_code=201)
def add_schedule(payload: ScheduleSchema, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    slot = timetable.create_schedule(db, **payload.dict())
    return slot_view(slot)

@router.get("/sections/{section_id}")
def section_schedule(section_id: int, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    return [slot_view(s) for s in timetable.list_schedules(db, section_id=section_id)]

@router.post("/sections/{section_id}", status_code=201)
def add_section_schedule(section_id: int, payload: SectionSlotSchema, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    slot = timetable.create_schedule(db, section_id=section_id, **payload.dict())
    return {"message": "Schedule created successfully", "schedule": slot_view(slot)}

@router.get("/{schedule_id}")
def get_schedule(schedule_id: int, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    return slot_view(timetable.find_schedule(db, schedule_id))

@router.patch("/{schedule_id}")
def update_schedule(schedule_id: int, payload: ScheduleUpdateSchema, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    slot = timetable.update_schedule(db, schedule_id, **payload.dict(exclude_unset=True))
    return slot_view(slot)

@router.delete("/{schedule_id}")
def delete_schedule(schedule_id: int, db: Session = Depends(get_db), _: User = Depends(admin_only)):
    timetable.delete_schedule(db, schedule_id)
    return {"message": "Schedule deleted successfully"}
