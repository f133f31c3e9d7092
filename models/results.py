from datetime import datetime

from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base

class GradeRecord(Base):
    __tablename__ = "grade_records"
    __table_args__ = (UniqueConstraint("student_id", "course_id", "semester", name="uq_grade_record"),)

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False)
    faculty_id = Column(Integer, ForeignKey("faculty.id"), nullable=False)
    semester = Column(String(30), nullable=False)   # Example: "Fall 2025"
    sessional_mark = Column(Float, nullable=False)  # out of 70
    attendance_mark = Column(Float, nullable=False) # out of 30
    total_mark = Column(Float, nullable=False)      # out of 100
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    student = relationship("models.students.Student")
    course = relationship("models.masters.Course")
    faculty = relationship("models.students.Faculty")

    # Letter and point are always derived from total_mark, never stored
    @property
    def letter_grade(self):
        from services.grading import letter_grade
        return letter_grade(self.total_mark)

    @property
    def grade_point(self):
        from services.grading import grade_point
        return grade_point(self.letter_grade)
