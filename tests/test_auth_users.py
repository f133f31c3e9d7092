import config
from models.students import Faculty, Role, User
from services import notifications


def test_login_sets_http_only_cookie(client, factory):
    user = factory.admin(email="boss@campus.test")

    res = client.post("/api/auth/login", json={"email": "boss@campus.test", "password": factory.password})

    assert res.status_code == 200
    assert res.json()["user"]["role"] == "ADMIN"
    cookie = res.headers["set-cookie"]
    assert cookie.startswith(f"{config.AUTH_COOKIE_NAME}=")
    assert "HttpOnly" in cookie
    assert "samesite=strict" in cookie.lower()

    session = client.get("/api/auth/session")
    assert session.status_code == 200
    assert session.json()["user"]["id"] == user.id


def test_login_rejects_bad_password_and_unapproved_users(client, factory):
    factory.user(email="new@campus.test", approved=False)

    wrong = client.post("/api/auth/login", json={"email": "new@campus.test", "password": "nope"})
    assert wrong.status_code == 401
    assert wrong.json()["error"] == "unauthorized"

    pending = client.post("/api/auth/login", json={"email": "new@campus.test", "password": factory.password})
    assert pending.status_code == 403
    assert pending.json()["error"] == "forbidden"


def test_requests_without_cookie_are_unauthorized(client):
    res = client.get("/api/admin/dashboard")
    assert res.status_code == 401
    assert res.json() == {"error": "unauthorized", "message": "Not authenticated"}


def test_wrong_role_is_forbidden(client, factory, login_as):
    login_as(factory.user(role=Role.STUDENT.value))
    assert client.get("/api/admin/dashboard").status_code == 403


def test_register_creates_pending_student(client, db):
    res = client.post("/api/auth/register", json={
        "email": "Fresh@Campus.test",
        "password": "longenough",
        "first_name": "Fresh",
        "department": "Physics",
    })
    assert res.status_code == 201

    user = db.query(User).filter(User.email == "fresh@campus.test").one()
    assert user.is_approved is False
    assert user.student.department == "Physics"
    assert user.student.enrollment_no.startswith("STU-")
    assert user.profile.first_name == "Fresh"


def test_register_rejects_missing_fields(client):
    res = client.post("/api/auth/register", json={"email": "x@campus.test"})
    assert res.status_code == 400
    body = res.json()
    assert body["error"] == "validation_error"
    assert "password" in body["details"]["fields"]


def test_approval_succeeds_even_when_mail_fails(client, factory, login_as, monkeypatch):
    monkeypatch.setattr(config, "MAIL_SERVER", "smtp.campus.test")
    monkeypatch.setattr(config, "MAIL_USERNAME", "mailer@campus.test")

    class BrokenMail:
        def __init__(self, conf):
            pass

        async def send_message(self, message):
            raise ConnectionError("smtp down")

    monkeypatch.setattr(notifications, "FastMail", BrokenMail)
    pending = factory.user(approved=False)
    login_as(factory.admin())

    res = client.patch(f"/api/admin/users/{pending.id}/approve", json={"is_approved": True})

    assert res.status_code == 200
    assert res.json()["message"] == "User approved successfully"
    assert res.json()["user"]["is_approved"] is True


def test_approval_calls_notifier(client, factory, login_as, monkeypatch):
    sent = []

    async def fake_notify(email, approved):
        sent.append((email, approved))

    monkeypatch.setattr(notifications, "notify_approval", fake_notify)
    pending = factory.user(approved=False)
    login_as(factory.admin())

    res = client.patch(f"/api/admin/users/{pending.id}/approve", json={"is_approved": False})

    assert res.json()["message"] == "User disapproved successfully"
    assert sent == [(pending.email, False)]


def test_role_change_creates_role_record(client, db, factory, login_as):
    student_user = factory.user(role=Role.STUDENT.value)
    login_as(factory.admin())

    same = client.patch(f"/api/admin/users/{student_user.id}/role", json={"role": "STUDENT"})
    assert same.json()["message"] == "User already has this role"

    res = client.patch(f"/api/admin/users/{student_user.id}/role", json={"role": "faculty"})
    assert res.status_code == 200
    db.expire_all()
    assert db.get(User, student_user.id).role == "FACULTY"
    assert db.query(Faculty).filter(Faculty.user_id == student_user.id).count() == 1

    bad = client.patch(f"/api/admin/users/{student_user.id}/role", json={"role": "DEAN"})
    assert bad.status_code == 400


def test_dashboard_counts(client, factory, login_as):
    factory.student(department="Physics")
    factory.student(department="Physics")
    factory.user(approved=False)
    factory.faculty()
    factory.course()
    login_as(factory.admin())

    stats = client.get("/api/admin/dashboard").json()
    assert stats["total_students"] == 3
    assert stats["total_faculty"] == 1
    assert stats["total_courses"] == 1
    assert stats["pending_approvals"] == 1
    assert {"department": "Physics", "count": 2} in stats["students_by_department"]
