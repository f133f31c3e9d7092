import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base


class AttendanceStatus(str, enum.Enum):
    PRESENT = "PRESENT"
    ABSENT = "ABSENT"
    LATE = "LATE"


# Statuses that count towards attendance
ATTENDED = (AttendanceStatus.PRESENT.value, AttendanceStatus.LATE.value)


class SubjectAttendance(Base):
    __tablename__ = "subject_attendance"
    __table_args__ = (UniqueConstraint("student_id", "subject_id", "date", name="uq_subject_attendance"),)

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    status = Column(String(10), nullable=False)
    remarks = Column(String(255), nullable=True)
    recorded_by = Column(Integer, ForeignKey("faculty.id"), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student = relationship("models.students.Student")
    subject = relationship("models.masters.Subject")


class CourseAttendance(Base):
    __tablename__ = "course_attendance"
    __table_args__ = (UniqueConstraint("student_id", "course_id", "date", name="uq_course_attendance"),)

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)
    status = Column(String(10), nullable=False)
    remarks = Column(String(255), nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student = relationship("models.students.Student")
    course = relationship("models.masters.Course")
