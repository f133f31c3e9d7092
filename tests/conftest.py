import itertools
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import config
import main
from database import Base, create_db_engine, get_db
from models.masters import Course, Section, Subject
from models.students import Admin, Faculty, Profile, Role, Student, User
from services.security import create_access_token, hash_password

PASSWORD = "secret123"


@pytest.fixture
def engine(tmp_path):
    eng = create_db_engine(f"sqlite:///{tmp_path / 'campus_test.db'}")
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    main.app.dependency_overrides[get_db] = override_get_db
    with TestClient(main.app) as c:
        yield c
    main.app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def no_external_services(monkeypatch):
    monkeypatch.setattr(config, "MAIL_SERVER", "")
    monkeypatch.setattr(config, "CLOUDINARY_CLOUD_NAME", "")


class Factory:
    password = PASSWORD

    def __init__(self, db):
        self.db = db
        self._seq = itertools.count(1)

    def user(self, role=Role.STUDENT.value, email=None, approved=True, department="Computer Science", first_name="Test"):
        n = next(self._seq)
        user = User(
            email=email or f"user{n}@campus.test",
            password_hash=hash_password(PASSWORD),
            role=role,
            is_approved=approved,
        )
        self.db.add(user)
        self.db.add(Profile(user=user, first_name=first_name, last_name=str(n)))
        if role == Role.STUDENT.value:
            self.db.add(Student(user=user, enrollment_no=f"STU-{n:05d}", department=department))
        elif role == Role.FACULTY.value:
            self.db.add(Faculty(user=user, department=department))
        else:
            self.db.add(Admin(user=user))
        self.db.commit()
        return user

    def admin(self, **kwargs):
        return self.user(role=Role.ADMIN.value, **kwargs)

    def student(self, **kwargs):
        return self.user(role=Role.STUDENT.value, **kwargs).student

    def faculty(self, **kwargs):
        return self.user(role=Role.FACULTY.value, **kwargs).faculty

    def course(self, code=None, credits=3, department="Computer Science", faculty=None):
        n = next(self._seq)
        course = Course(
            code=code or f"C{n:03d}",
            name=f"Course {n}",
            credits=credits,
            department=department,
            faculty_id=faculty.id if faculty else None,
        )
        self.db.add(course)
        self.db.commit()
        return course

    def section(self, course=None, capacity=30, term="Fall 2025"):
        course = course or self.course()
        section = Section(course_id=course.id, name="A", capacity=capacity, academic_term=term, lock_version=0)
        self.db.add(section)
        self.db.commit()
        return section

    def subject(self, section=None, faculty=None):
        section = section or self.section()
        subject = Subject(section_id=section.id, name="Subject", code="SUB", faculty_id=faculty.id if faculty else None)
        self.db.add(subject)
        self.db.commit()
        return subject


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def login_as(client):
    """Put a valid auth cookie for ``user`` on the test client."""
    def _login(user):
        token = create_access_token({"id": user.id, "email": user.email, "role": user.role})
        client.cookies.clear()
        client.cookies.set(config.AUTH_COOKIE_NAME, token)
        return client
    return _login
