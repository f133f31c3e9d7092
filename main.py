import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import config
from database import engine, Base
from services.errors import PortalError

# --- IMPORT ROUTERS (APIs) ---
from routers import (
    attendance,
    auth,
    bulk_import,
    communication,
    dashboard,
    enrollments,
    exams,
    masters,
    results,
    schedule,
    students,
    users,
)

# --- IMPORT MODELS ---
from models.students import User, Profile, Student, Faculty, Admin
from models.masters import Course, Section, Subject
from models.enrollments import SectionEnrollment, CourseEnrollment
from models.attendance import SubjectAttendance, CourseAttendance
from models.exams import Assessment, AssessmentMark
from models.results import GradeRecord
from models.communication import Notice
from models.schedule import Room, ClassSchedule

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

# --- CREATE DATABASE TABLES ---
Base.metadata.create_all(bind=engine)

app = FastAPI(title="Campus Portal")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- ERROR RESPONSES: {"error": kind, "message": ...} ---
@app.exception_handler(PortalError)
async def portal_error_handler(request: Request, exc: PortalError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    fields = [".".join(str(p) for p in err["loc"] if p != "body") for err in exc.errors()]
    return JSONResponse(
        status_code=400,
        content={
            "error": "validation_error",
            "message": "Missing or invalid fields",
            "details": {"fields": fields},
        },
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    kind = {401: "unauthorized", 403: "forbidden", 404: "not_found", 405: "method_not_allowed"}.get(exc.status_code, "error")
    return JSONResponse(status_code=exc.status_code, content={"error": kind, "message": str(exc.detail)})


# --- REGISTER ROUTERS ---
app.include_router(auth.router)
app.include_router(users.router)
app.include_router(dashboard.router)
app.include_router(masters.router)
app.include_router(students.router)
app.include_router(enrollments.router)
app.include_router(attendance.router)
app.include_router(exams.router)
app.include_router(results.router)
app.include_router(bulk_import.router)
app.include_router(communication.router)
app.include_router(schedule.router)


@app.get("/api/health")
def health():
    return {"status": "ok"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
