from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional

# 1. Notice as shown in the feed (Response Model)
class NoticeSchema(BaseModel):
    id: int
    title: str
    content: str
    target_type: str
    target_roles: Optional[List[str]] = None
    target_departments: Optional[List[str]] = None
    target_course_ids: Optional[List[int]] = None
    target_section_ids: Optional[List[int]] = None
    is_published: bool
    publish_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None
    author_id: Optional[int] = None

    class Config:
        from_attributes = True

# 2. Admin/faculty creating a notice
class NoticeCreateSchema(BaseModel):
    title: str
    content: str
    target_type: str = "ALL"
    target_roles: List[str] = []
    target_departments: List[str] = []
    target_course_ids: List[int] = []
    target_section_ids: List[int] = []
    is_published: bool = True
    publish_date: Optional[datetime] = None
    expiry_date: Optional[datetime] = None

class NoticeUpdateSchema(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    target_type: Optional[str] = None
    target_roles: Optional[List[str]] = None
    target_departments: Optional[List[str]] = None
    target_course_ids: Optional[List[int]] = None
    target_section_ids: Optional[List[int]] = None
    is_published: Optional[bool] = None
    expiry_date: Optional[datetime] = None
