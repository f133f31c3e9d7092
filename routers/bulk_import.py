"""
Internal Marks Bulk Import Router
Lets faculty upload an Excel/CSV sheet of internal marks. Rows are resolved
by enrollment number and course code, then written through the same upsert
the JSON bulk endpoint uses.
"""

import io
import logging
from typing import Any, Dict, List, Optional

import pandas as pd
from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session

from database import get_db
from models.masters import Course
from models.students import Role, Student, User
from routers.auth import require_roles, taught_course_ids
from services import grading
from services.errors import ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/bulk-import", tags=["Bulk Import"])

REQUIRED_COLUMNS = ["enrollment_no", "course_code", "semester", "sessional_mark", "attendance_mark", "total_mark"]


def safe_str(value) -> Optional[str]:
    """Safely convert value to string, handling NaN and None"""
    if value is None or pd.isna(value):
        return None
    return str(value).strip() if str(value).strip() else None


def safe_float(value) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    try:
        return float(value)
    except (ValueError, TypeError):
        return None


def read_sheet(filename: str, contents: bytes) -> pd.DataFrame:
    name = (filename or "").lower()
    try:
        if name.endswith(".csv"):
            df = pd.read_csv(io.BytesIO(contents))
        elif name.endswith(".xlsx"):
            df = pd.read_excel(io.BytesIO(contents), engine="openpyxl")
        else:
            raise ValidationError("Invalid file format. Please upload an Excel (.xlsx) or CSV file")
    except ValidationError:
        raise
    except Exception as e:
        raise ValidationError(f"Error reading file: {e}")

    df.columns = df.columns.astype(str).str.strip().str.lower()
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValidationError("Missing columns in sheet", details={"missing": missing})
    return df


@router.post("/internal-marks")
async def import_internal_marks(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: User = Depends(require_roles(Role.ADMIN, Role.FACULTY)),
):
    """
    Expected columns: enrollment_no, course_code, semester, sessional_mark,
    attendance_mark, total_mark (faculty_id optional for admins).
    """
    df = read_sheet(file.filename, await file.read())

    students = {s.enrollment_no.lower(): s.id for s in db.query(Student).all()}
    courses = {c.code.lower(): c.id for c in db.query(Course).all()}
    default_faculty = user.faculty.id if user.faculty else None

    errors: List[Dict[str, Any]] = []
    rows: List[Dict[str, Any]] = []
    total_rows = 0

    for idx, row in df.iterrows():
        row_num = idx + 2  # sheet row (1-indexed + header)
        if row.isna().all():
            continue
        total_rows += 1

        enrollment_no = safe_str(row.get("enrollment_no"))
        course_code = safe_str(row.get("course_code"))
        student_id = students.get(enrollment_no.lower()) if enrollment_no else None
        course_id = courses.get(course_code.lower()) if course_code else None
        if not student_id:
            errors.append({"row": row_num, "error": "not_found", "message": f"Student '{enrollment_no}' not found"})
            continue
        if not course_id:
            errors.append({"row": row_num, "error": "not_found", "message": f"Course '{course_code}' not found"})
            continue

        faculty_id = safe_float(row.get("faculty_id")) if "faculty_id" in df.columns and user.role == Role.ADMIN.value else None
        rows.append({
            "row": row_num,
            "student_id": student_id,
            "course_id": course_id,
            "faculty_id": int(faculty_id) if faculty_id is not None else default_faculty,
            "semester": safe_str(row.get("semester")),
            "sessional_mark": safe_float(row.get("sessional_mark")),
            "attendance_mark": safe_float(row.get("attendance_mark")),
            "total_mark": safe_float(row.get("total_mark")),
        })

    imported = 0
    if rows:
        result = grading.bulk_upsert_internal_marks(db, rows, course_ids=taught_course_ids(db, user))
        imported = result["count"]
        errors.extend(result["errors"])

    errors.sort(key=lambda e: e["row"])
    logger.info("Internal marks import %s: %d of %d rows imported", file.filename, imported, total_rows)
    return {
        "total_rows": total_rows,
        "imported_count": imported,
        "error_count": len(errors),
        "errors": errors,
    }
