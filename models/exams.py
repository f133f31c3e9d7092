from datetime import datetime

from sqlalchemy import Column, Integer, String, Float, Text, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from database import Base

# 1. ASSESSMENT (Quiz, Assignment, Midterm...)
class Assessment(Base):
    __tablename__ = "assessments"
    id = Column(Integer, primary_key=True, index=True)
    subject_id = Column(Integer, ForeignKey("subjects.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    type = Column(String(30), nullable=False)
    max_marks = Column(Float, nullable=False)
    weightage = Column(Float, nullable=False)  # percent of the subject's final mark
    due_date = Column(DateTime, nullable=True)
    instructions = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    subject = relationship("models.masters.Subject")
    marks = relationship("AssessmentMark", back_populates="assessment")

# 2. MARKS / SUBMISSIONS PER STUDENT
class AssessmentMark(Base):
    __tablename__ = "assessment_marks"
    __table_args__ = (UniqueConstraint("assessment_id", "student_id", name="uq_assessment_mark"),)

    id = Column(Integer, primary_key=True, index=True)
    assessment_id = Column(Integer, ForeignKey("assessments.id"), nullable=False)
    student_id = Column(Integer, ForeignKey("students.id"), nullable=False, index=True)
    marks_obtained = Column(Float, default=0.0)
    feedback = Column(Text, nullable=True)
    file_url = Column(String(500), nullable=True)
    submitted_at = Column(DateTime, nullable=True)
    evaluated_at = Column(DateTime, nullable=True)

    assessment = relationship("Assessment", back_populates="marks")
    student = relationship("models.students.Student")
