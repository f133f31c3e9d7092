import enum
from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, Text, JSON, ForeignKey
from sqlalchemy.orm import relationship
from database import Base


class NoticeTarget(str, enum.Enum):
    ALL = "ALL"
    ROLE = "ROLE"
    DEPARTMENT = "DEPARTMENT"
    COURSE = "COURSE"
    SECTION = "SECTION"


class Notice(Base):
    __tablename__ = "notices"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False)
    content = Column(Text, nullable=False)
    author_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    target_type = Column(String(20), nullable=False, default=NoticeTarget.ALL.value)
    target_roles = Column(JSON, default=list)        # ["STUDENT", "FACULTY"]
    target_departments = Column(JSON, default=list)  # ["Computer Science"]
    target_course_ids = Column(JSON, default=list)
    target_section_ids = Column(JSON, default=list)
    is_published = Column(Boolean, default=False)
    publish_date = Column(DateTime, default=datetime.utcnow)
    expiry_date = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    author = relationship("models.students.User")
