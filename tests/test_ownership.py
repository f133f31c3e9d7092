from models.attendance import SubjectAttendance
from models.exams import AssessmentMark
from models.results import GradeRecord
from services import enrollment, grading


def _assigned_subject(db, factory):
    owner = factory.faculty()
    section = factory.section()
    subject = factory.subject(section=section, faculty=owner)
    student = factory.student()
    enrollment.enroll(db, student.id, section.id)
    return owner, subject, student


def test_other_faculty_cannot_grade_or_manage_assessments(client, db, factory, login_as):
    owner, subject, student = _assigned_subject(db, factory)
    assessment = grading.create_assessment(db, subject.id, "Quiz", "QUIZ", 10, 10)
    login_as(factory.faculty().user)

    res = client.post(f"/api/v1/exams/assessments/{assessment.id}/marks", json={
        "student_id": student.id, "marks_obtained": 8,
    })
    assert res.status_code == 403
    assert res.json()["error"] == "forbidden"

    bulk = client.post(f"/api/v1/exams/assessments/{assessment.id}/marks/bulk", json={"marks": [
        {"student_id": student.id, "marks_obtained": 8},
    ]})
    assert bulk.status_code == 403
    assert db.query(AssessmentMark).count() == 0

    created = client.post("/api/v1/exams/assessments", json={
        "subject_id": subject.id, "title": "Sneaky", "type": "QUIZ", "max_marks": 10, "weightage": 5,
    })
    assert created.status_code == 403
    assert client.put(f"/api/v1/exams/assessments/{assessment.id}", json={"title": "Renamed"}).status_code == 403
    assert client.delete(f"/api/v1/exams/assessments/{assessment.id}").status_code == 403
    assert client.get(f"/api/v1/exams/assessments/{assessment.id}/marks").status_code == 403

    login_as(owner.user)
    ok = client.post(f"/api/v1/exams/assessments/{assessment.id}/marks", json={
        "student_id": student.id, "marks_obtained": 8,
    })
    assert ok.status_code == 200


def test_admin_may_grade_any_subject(client, db, factory, login_as):
    _, subject, student = _assigned_subject(db, factory)
    assessment = grading.create_assessment(db, subject.id, "Quiz", "QUIZ", 10, 10)
    login_as(factory.admin())

    res = client.post(f"/api/v1/exams/assessments/{assessment.id}/marks", json={
        "student_id": student.id, "marks_obtained": 10,
    })
    assert res.status_code == 200


def test_attendance_only_by_assigned_faculty(client, db, factory, login_as):
    owner, subject, student = _assigned_subject(db, factory)
    body = {"date": "2025-09-01", "records": [{"student_id": student.id, "status": "PRESENT"}]}

    login_as(factory.faculty().user)
    assert client.post(f"/api/attendance/subjects/{subject.id}", json=body).status_code == 403
    assert client.get(f"/api/attendance/subjects/{subject.id}/report").status_code == 403
    assert client.post(f"/api/attendance/courses/{subject.course_id}", json=body).status_code == 403
    assert db.query(SubjectAttendance).count() == 0

    login_as(owner.user)
    assert client.post(f"/api/attendance/subjects/{subject.id}", json=body).status_code == 200
    # teaching a subject of the course is enough for course attendance
    assert client.post(f"/api/attendance/courses/{subject.course_id}", json=body).status_code == 200


def test_internal_marks_only_for_taught_courses(client, db, factory, login_as):
    owner = factory.faculty()
    other = factory.faculty()
    mine = factory.course(faculty=owner)
    theirs = factory.course(faculty=other)
    student = factory.student()
    login_as(owner.user)

    def marks(course_id, **extra):
        return dict({
            "student_id": student.id, "course_id": course_id, "semester": "Fall 2025",
            "sessional_mark": 50, "attendance_mark": 20, "total_mark": 70,
        }, **extra)

    foreign = client.post("/api/results/internal-marks", json=marks(theirs.id))
    assert foreign.status_code == 403
    assert client.get(f"/api/results/internal-marks?course_id={theirs.id}").status_code == 403

    # faculty_id in the payload cannot be used to write under a colleague's name
    res = client.post("/api/results/internal-marks", json=marks(mine.id, faculty_id=other.id))
    assert res.status_code == 200
    assert res.json()["grade"]["faculty_id"] == owner.id

    bulk = client.post("/api/results/internal-marks/bulk", json={"marks": [marks(mine.id), marks(theirs.id)]})
    assert bulk.json()["count"] == 1
    assert [e["error"] for e in bulk.json()["errors"]] == ["forbidden"]
    assert {g.course_id for g in db.query(GradeRecord)} == {mine.id}


def test_sheet_import_skips_courses_the_faculty_does_not_teach(client, db, factory, login_as):
    owner = factory.faculty()
    factory.course(code="CS101", faculty=owner)
    factory.course(code="CS202", faculty=factory.faculty())
    student = factory.student()
    login_as(owner.user)

    sheet = (
        "enrollment_no,course_code,semester,sessional_mark,attendance_mark,total_mark\n"
        f"{student.enrollment_no},CS101,Fall 2025,50,28,78\n"
        f"{student.enrollment_no},CS202,Fall 2025,50,28,78\n"
    )
    res = client.post("/api/bulk-import/internal-marks", files={"file": ("marks.csv", sheet.encode(), "text/csv")})

    body = res.json()
    assert body["imported_count"] == 1
    assert body["errors"] == [{"row": 3, "error": "forbidden", "message": "You are not assigned to this course"}]
