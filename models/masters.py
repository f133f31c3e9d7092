from sqlalchemy import Column, Integer, String, Text, ForeignKey
from sqlalchemy.orm import relationship
from database import Base

# 1. COURSE TABLE
class Course(Base):
    __tablename__ = "courses"
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(150), nullable=False)
    code = Column(String(30), unique=True, index=True, nullable=False)
    description = Column(Text, nullable=True)
    department = Column(String(100), nullable=True)
    credits = Column(Integer, default=3)
    faculty_id = Column(Integer, ForeignKey("faculty.id"), nullable=True)

    faculty = relationship("models.students.Faculty")
    sections = relationship("Section", back_populates="course")

# 2. SECTION TABLE
class Section(Base):
    __tablename__ = "sections"
    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False)
    name = Column(String(50), nullable=False)
    capacity = Column(Integer, nullable=False, default=0)
    academic_term = Column(String(30), nullable=True)  # e.g. "Fall 2025"
    # Bumped by every enrollment write; the UPDATE serializes concurrent enrollers
    lock_version = Column(Integer, nullable=False, default=0)

    course = relationship("Course", back_populates="sections")
    subjects = relationship("Subject", back_populates="section")

# 3. SUBJECT TABLE
class Subject(Base):
    __tablename__ = "subjects"
    id = Column(Integer, primary_key=True, index=True)
    section_id = Column(Integer, ForeignKey("sections.id"), nullable=False)
    name = Column(String(150), nullable=False)
    code = Column(String(30), nullable=True)
    faculty_id = Column(Integer, ForeignKey("faculty.id"), nullable=True)

    section = relationship("Section", back_populates="subjects")
    faculty = relationship("models.students.Faculty")

    @property
    def course_id(self):
        return self.section.course_id if self.section else None
