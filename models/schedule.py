import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from database import Base


class DayOfWeek(str, enum.Enum):
    MONDAY = "MONDAY"
    TUESDAY = "TUESDAY"
    WEDNESDAY = "WEDNESDAY"
    THURSDAY = "THURSDAY"
    FRIDAY = "FRIDAY"
    SATURDAY = "SATURDAY"
    SUNDAY = "SUNDAY"


# 1. ROOMS
class Room(Base):
    __tablename__ = "rooms"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)
    type = Column(String(30), nullable=False, default="CLASSROOM")  # CLASSROOM, LAB, HALL...
    capacity = Column(Integer, nullable=False)
    # Bumped before every booking so two bookings of one room never overlap
    lock_version = Column(Integer, nullable=False, default=0)

# 2. WEEKLY TIMETABLE SLOTS
class ClassSchedule(Base):
    __tablename__ = "class_schedules"
    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    section_id = Column(Integer, ForeignKey("sections.id"), nullable=True, index=True)  # null = whole course
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=True)
    day_of_week = Column(String(10), nullable=False)
    start_time = Column(String(5), nullable=False)  # "HH:MM", 24h
    end_time = Column(String(5), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    course = relationship("models.masters.Course")
    section = relationship("models.masters.Section")
    room = relationship("Room")
