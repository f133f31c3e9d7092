import os

from database import SessionLocal, engine, Base
from models.students import Admin, Faculty, Profile, Role, User
from models.masters import Course, Section, Subject
from models.enrollments import SectionEnrollment, CourseEnrollment
from models.attendance import SubjectAttendance, CourseAttendance
from models.exams import Assessment, AssessmentMark
from models.results import GradeRecord
from models.communication import Notice
from services.security import hash_password

# --- Tables bana do agar missing hain ---
Base.metadata.create_all(bind=engine)

db = SessionLocal()


def get_or_create_user(email, password, role, first_name, department=None):
    user = db.query(User).filter_by(email=email).first()
    if user:
        print(f"ℹ️  Exists: {email}")
        return user
    user = User(email=email, password_hash=hash_password(password), role=role, is_approved=True)
    db.add(user)
    db.add(Profile(user=user, first_name=first_name))
    if role == Role.ADMIN.value:
        db.add(Admin(user=user))
    elif role == Role.FACULTY.value:
        db.add(Faculty(user=user, department=department or "Not Assigned"))
    db.commit()
    db.refresh(user)
    print(f"✅ Added: {email} ({role})")
    return user


def seed_data():
    print("🌱 Seeding Master Data...")

    # 1. ADMIN + ONE FACULTY
    get_or_create_user(
        os.getenv("SEED_ADMIN_EMAIL", "admin@campusportal.org"),
        os.getenv("SEED_ADMIN_PASSWORD", "admin123"),
        Role.ADMIN.value,
        "Administrator",
    )
    instructor = get_or_create_user("faculty@campusportal.org", "faculty123", Role.FACULTY.value, "Default Faculty", "Computer Science")

    # 2. COURSES WITH ONE SECTION EACH
    courses = [
        {"code": "CS101", "name": "Programming Fundamentals", "credits": 4},
        {"code": "CS201", "name": "Data Structures", "credits": 4},
        {"code": "MA101", "name": "Discrete Mathematics", "credits": 3},
    ]
    for c in courses:
        course = db.query(Course).filter_by(code=c["code"]).first()
        if not course:
            course = Course(
                code=c["code"],
                name=c["name"],
                credits=c["credits"],
                department="Computer Science",
                faculty_id=instructor.faculty.id,
            )
            db.add(course)
            db.commit()
            print(f"✅ Added course: {c['code']}")
        if not db.query(Section).filter_by(course_id=course.id).first():
            section = Section(course_id=course.id, name="A", capacity=40, academic_term="Fall 2025", lock_version=0)
            db.add(section)
            db.flush()
            db.add(Subject(section_id=section.id, name=c["name"], code=c["code"], faculty_id=instructor.faculty.id))
            db.commit()
            print(f"  └── Section A added to {c['code']}")

    print("🎉 Seeding Complete!")


if __name__ == "__main__":
    try:
        seed_data()
    finally:
        db.close()
