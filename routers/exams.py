from fastapi import APIRouter, Depends, File, Form, UploadFile
from sqlalchemy.orm import Session
from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime

from database import get_db
from models.exams import Assessment, AssessmentMark
from models.students import Role, User
from routers.auth import ensure_teaches_subject, get_current_user, require_roles
from services import grading
from services.errors import Forbidden
from services.identity import find_assessment, find_subject

router = APIRouter(prefix="/api/v1/exams", tags=["Exams"])
staff = require_roles(Role.ADMIN, Role.FACULTY)

# --- SCHEMAS ---
class AssessmentSchema(BaseModel):
    subject_id: int
    title: str
    type: str
    max_marks: float
    weightage: float
    due_date: Optional[datetime] = None
    instructions: Optional[str] = None

class AssessmentUpdateSchema(BaseModel):
    subject_id: Optional[int] = None
    title: Optional[str] = None
    type: Optional[str] = None
    max_marks: Optional[float] = None
    weightage: Optional[float] = None
    due_date: Optional[datetime] = None
    instructions: Optional[str] = None

class MarkSchema(BaseModel):
    student_id: int
    marks_obtained: Optional[float] = None
    feedback: Optional[str] = None

class BulkMarkSchema(BaseModel):
    marks: List[MarkSchema]


def assessment_view(a):
    return {
        "id": a.id,
        "subject_id": a.subject_id,
        "title": a.title,
        "type": a.type,
        "max_marks": a.max_marks,
        "weightage": a.weightage,
        "due_date": a.due_date.isoformat() if a.due_date else None,
        "instructions": a.instructions,
    }


def mark_view(m):
    return {
        "id": m.id,
        "assessment_id": m.assessment_id,
        "student_id": m.student_id,
        "marks_obtained": m.marks_obtained,
        "feedback": m.feedback,
        "file_url": m.file_url,
        "submitted_at": m.submitted_at.isoformat() if m.submitted_at else None,
        "evaluated_at": m.evaluated_at.isoformat() if m.evaluated_at else None,
    }


# ===========================
#      1. ASSESSMENTS
# ===========================

@router.get("/assessments")
def list_assessments(subject_id: Optional[int] = None, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    query = db.query(Assessment)
    if subject_id:
        query = query.filter(Assessment.subject_id == subject_id)
    return [assessment_view(a) for a in query.order_by(Assessment.created_at.desc()).all()]

@router.post("/assessments", status_code=201)
def add_assessment(payload: AssessmentSchema, db: Session = Depends(get_db), user: User = Depends(staff)):
    ensure_teaches_subject(user, find_subject(db, payload.subject_id))
    assessment = grading.create_assessment(
        db,
        payload.subject_id,
        payload.title,
        payload.type,
        payload.max_marks,
        payload.weightage,
        due_date=payload.due_date,
        instructions=payload.instructions,
    )
    return assessment_view(assessment)

@router.get("/assessments/{assessment_id}")
def get_assessment(assessment_id: int, db: Session = Depends(get_db), _: User = Depends(get_current_user)):
    return assessment_view(find_assessment(db, assessment_id))

@router.put("/assessments/{assessment_id}")
def update_assessment(assessment_id: int, payload: AssessmentUpdateSchema, db: Session = Depends(get_db), user: User = Depends(staff)):
    ensure_teaches_subject(user, find_assessment(db, assessment_id).subject)
    if payload.subject_id is not None:
        ensure_teaches_subject(user, find_subject(db, payload.subject_id))
    assessment = grading.update_assessment(db, assessment_id, **payload.dict(exclude_unset=True))
    return assessment_view(assessment)

@router.delete("/assessments/{assessment_id}")
def delete_assessment(assessment_id: int, db: Session = Depends(get_db), user: User = Depends(staff)):
    ensure_teaches_subject(user, find_assessment(db, assessment_id).subject)
    grading.delete_assessment(db, assessment_id)
    return {"message": "Assessment deleted"}


# ===========================
#        2. MARKS
# ===========================

@router.get("/assessments/{assessment_id}/marks")
def assessment_marks(assessment_id: int, db: Session = Depends(get_db), user: User = Depends(staff)):
    ensure_teaches_subject(user, find_assessment(db, assessment_id).subject)
    rows = db.query(AssessmentMark).filter(AssessmentMark.assessment_id == assessment_id).all()
    return [mark_view(m) for m in rows]

@router.post("/assessments/{assessment_id}/marks")
def save_mark(assessment_id: int, payload: MarkSchema, db: Session = Depends(get_db), user: User = Depends(staff)):
    ensure_teaches_subject(user, find_assessment(db, assessment_id).subject)
    mark = grading.grade_assessment(db, assessment_id, payload.student_id, payload.marks_obtained, payload.feedback)
    return {"message": "Marks saved", "mark": mark_view(mark)}

@router.post("/assessments/{assessment_id}/marks/bulk")
def save_marks_bulk(assessment_id: int, payload: BulkMarkSchema, db: Session = Depends(get_db), user: User = Depends(staff)):
    ensure_teaches_subject(user, find_assessment(db, assessment_id).subject)
    result = grading.bulk_grade(db, assessment_id, [m.dict() for m in payload.marks])
    return {"message": f"Marks saved for {result['count']} students", **result}


# ===========================
#      3. SUBMISSIONS
# ===========================

@router.post("/assessments/{assessment_id}/submit")
async def submit_assessment(
    assessment_id: int,
    file: Optional[UploadFile] = File(None),
    comments: Optional[str] = Form(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(Role.STUDENT)),
):
    if not user.student:
        raise Forbidden("No student record for this account")
    contents = await file.read() if file else None
    mark = grading.submit_assessment(
        db,
        user.student.id,
        assessment_id,
        file_bytes=contents,
        filename=file.filename if file else None,
        comments=comments,
    )
    return {"message": "Assignment submitted successfully", "submission": mark_view(mark)}
