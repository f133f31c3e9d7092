import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base


class EnrollmentStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    DROPPED = "DROPPED"
    COMPLETED = "COMPLETED"
    ON_HOLD = "ON_HOLD"


class SectionEnrollment(Base):
    __tablename__ = "section_enrollments"
    __table_args__ = (UniqueConstraint("student_id", "section_id", name="uq_section_enrollment"),)

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False)
    section_id = Column(Integer, ForeignKey("sections.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=EnrollmentStatus.ACTIVE.value)
    enrolled_at = Column(DateTime, default=datetime.utcnow)

    student = relationship("models.students.Student", back_populates="section_enrollments")
    section = relationship("models.masters.Section")


# Course-level enrollment, kept apart from sections
class CourseEnrollment(Base):
    __tablename__ = "course_enrollments"
    __table_args__ = (UniqueConstraint("student_id", "course_id", name="uq_course_enrollment"),)

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=EnrollmentStatus.ACTIVE.value)
    enrolled_at = Column(DateTime, default=datetime.utcnow)

    student = relationship("models.students.Student", back_populates="course_enrollments")
    course = relationship("models.masters.Course")
