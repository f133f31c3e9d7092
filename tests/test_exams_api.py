from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

import config
from models.exams import AssessmentMark
from services import enrollment, grading, storage
from services.errors import TransactionFailure


def _setup(db, factory):
    section = factory.section()
    instructor = factory.faculty()
    subject = factory.subject(section=section, faculty=instructor)
    student = factory.student()
    enrollment.enroll(db, student.id, section.id)
    return subject, student, instructor


def test_assessment_crud_and_weightage(client, db, factory, login_as):
    subject, _, instructor = _setup(db, factory)
    login_as(instructor.user)

    first = client.post("/api/v1/exams/assessments", json={
        "subject_id": subject.id, "title": "Midterm", "type": "EXAM", "max_marks": 100, "weightage": 70,
    })
    assert first.status_code == 201

    over = client.post("/api/v1/exams/assessments", json={
        "subject_id": subject.id, "title": "Quiz", "type": "QUIZ", "max_marks": 10, "weightage": 31,
    })
    assert over.status_code == 400
    assert over.json()["error"] == "validation_error"

    missing = client.post("/api/v1/exams/assessments", json={"subject_id": subject.id, "title": "No type"})
    assert missing.status_code == 400

    listed = client.get(f"/api/v1/exams/assessments?subject_id={subject.id}").json()
    assert [a["title"] for a in listed] == ["Midterm"]


def test_marks_out_of_range_are_rejected(client, db, factory, login_as):
    subject, student, instructor = _setup(db, factory)
    login_as(instructor.user)
    assessment = client.post("/api/v1/exams/assessments", json={
        "subject_id": subject.id, "title": "Quiz", "type": "QUIZ", "max_marks": 20, "weightage": 10,
    }).json()

    too_high = client.post(f"/api/v1/exams/assessments/{assessment['id']}/marks", json={
        "student_id": student.id, "marks_obtained": 20.5,
    })
    assert too_high.status_code == 400
    assert too_high.json()["error"] == "mark_out_of_range"
    assert db.query(AssessmentMark).count() == 0

    ok = client.post(f"/api/v1/exams/assessments/{assessment['id']}/marks", json={
        "student_id": student.id, "marks_obtained": 20, "feedback": "full marks",
    })
    assert ok.status_code == 200
    assert ok.json()["mark"]["evaluated_at"] is not None

    bulk = client.post(f"/api/v1/exams/assessments/{assessment['id']}/marks/bulk", json={"marks": [
        {"student_id": student.id, "marks_obtained": 15},
        {"student_id": student.id, "marks_obtained": -1},
    ]})
    assert bulk.json()["count"] == 1
    assert len(bulk.json()["skipped"]) == 1


def test_student_submission(client, db, factory, login_as, monkeypatch):
    monkeypatch.setattr(config, "CLOUDINARY_CLOUD_NAME", "demo")
    monkeypatch.setattr(config, "CLOUDINARY_API_KEY", "key")
    monkeypatch.setattr(config, "CLOUDINARY_API_SECRET", "secret")
    uploads = []

    def fake_upload(data, **options):
        uploads.append((data, options))
        return {"secure_url": "https://res.cloudinary.com/demo/raw/upload/essay.pdf"}

    monkeypatch.setattr(storage.cloudinary.uploader, "upload", fake_upload)

    subject, student, instructor = _setup(db, factory)
    login_as(instructor.user)
    assessment = client.post("/api/v1/exams/assessments", json={
        "subject_id": subject.id, "title": "Essay", "type": "ASSIGNMENT", "max_marks": 50, "weightage": 20,
        "due_date": (datetime.utcnow() + timedelta(days=2)).isoformat(),
    }).json()

    login_as(student.user)
    url = f"/api/v1/exams/assessments/{assessment['id']}/submit"

    no_file = client.post(url, data={"comments": "forgot it"})
    assert no_file.status_code == 400

    res = client.post(url, files={"file": ("essay.pdf", b"%PDF-1.4 essay", "application/pdf")}, data={"comments": "done"})
    assert res.status_code == 200
    submission = res.json()["submission"]
    assert submission["file_url"].endswith("essay.pdf")
    assert submission["marks_obtained"] == 0
    assert submission["feedback"] == "done"
    assert uploads[0][0] == b"%PDF-1.4 essay"

    # resubmitting without a file keeps the stored one
    again = client.post(url, data={"comments": "updated"})
    assert again.status_code == 200
    assert again.json()["submission"]["file_url"] == submission["file_url"]
    assert db.query(AssessmentMark).count() == 1


def test_submission_requires_enrollment_and_open_assessment(client, db, factory, login_as, monkeypatch):
    monkeypatch.setattr(config, "CLOUDINARY_CLOUD_NAME", "demo")
    monkeypatch.setattr(config, "CLOUDINARY_API_KEY", "key")
    monkeypatch.setattr(config, "CLOUDINARY_API_SECRET", "secret")
    subject, student, instructor = _setup(db, factory)
    outsider = factory.student()
    login_as(instructor.user)
    closed = client.post("/api/v1/exams/assessments", json={
        "subject_id": subject.id, "title": "Late", "type": "ASSIGNMENT", "max_marks": 10, "weightage": 5,
        "due_date": (datetime.utcnow() - timedelta(days=1)).isoformat(),
    }).json()
    open_ = client.post("/api/v1/exams/assessments", json={
        "subject_id": subject.id, "title": "Open", "type": "ASSIGNMENT", "max_marks": 10, "weightage": 5,
    }).json()
    upload = {"file": ("a.txt", b"answer", "text/plain")}

    login_as(student.user)
    assert client.post(f"/api/v1/exams/assessments/{closed['id']}/submit", files=upload).status_code == 400

    login_as(outsider.user)
    res = client.post(f"/api/v1/exams/assessments/{open_['id']}/submit", files=upload)
    assert res.status_code == 403
    assert res.json()["error"] == "forbidden"


def test_failed_submission_logs_the_orphaned_upload(db, factory, monkeypatch, caplog):
    monkeypatch.setattr(config, "CLOUDINARY_CLOUD_NAME", "demo")
    monkeypatch.setattr(config, "CLOUDINARY_API_KEY", "key")
    monkeypatch.setattr(config, "CLOUDINARY_API_SECRET", "secret")
    monkeypatch.setattr(
        storage.cloudinary.uploader, "upload",
        lambda data, **options: {"secure_url": "https://res.cloudinary.com/demo/raw/upload/lost.pdf"},
    )
    subject, student, _ = _setup(db, factory)
    assessment = grading.create_assessment(db, subject.id, "Essay", "ASSIGNMENT", 50, 20)

    def broken_commit():
        raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", broken_commit)
    with pytest.raises(TransactionFailure):
        grading.submit_assessment(db, student.id, assessment.id, file_bytes=b"essay", filename="lost.pdf")

    assert "orphaned upload https://res.cloudinary.com/demo/raw/upload/lost.pdf" in caplog.text
