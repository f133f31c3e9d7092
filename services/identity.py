"""Lookups for the entities every engine starts from.

Each finder returns the row or raises ``NotFound``; none of them write.
"""

from models.students import User, Student, Faculty
from models.masters import Course, Section, Subject
from models.exams import Assessment
from models.schedule import Room
from services.errors import NotFound


def _get(db, model, entity_id, label):
    row = db.query(model).filter(model.id == entity_id).first() if entity_id is not None else None
    if row is None:
        raise NotFound(f"{label} not found", details={"id": entity_id})
    return row


def find_user(db, user_id):
    return _get(db, User, user_id, "User")


def find_user_by_email(db, email):
    return db.query(User).filter(User.email == email.strip().lower()).first()


def find_student(db, student_id):
    return _get(db, Student, student_id, "Student")


def find_student_by_enrollment_no(db, enrollment_no):
    student = db.query(Student).filter(Student.enrollment_no == enrollment_no).first()
    if student is None:
        raise NotFound("Student not found", details={"enrollment_no": enrollment_no})
    return student


def find_faculty(db, faculty_id):
    return _get(db, Faculty, faculty_id, "Faculty")


def find_course(db, course_id):
    return _get(db, Course, course_id, "Course")


def find_course_by_code(db, code):
    course = db.query(Course).filter(Course.code == code).first()
    if course is None:
        raise NotFound("Course not found", details={"code": code})
    return course


def find_section(db, section_id):
    return _get(db, Section, section_id, "Section")


def find_subject(db, subject_id):
    return _get(db, Subject, subject_id, "Subject")


def find_assessment(db, assessment_id):
    return _get(db, Assessment, assessment_id, "Assessment")


def department_of(user):
    """Department of the student/faculty record behind a user, if any."""
    if user.student:
        return user.student.department
    if user.faculty:
        return user.faculty.department
    return None


def course_ids_for_faculty(db, faculty_id):
    """Courses a faculty member coordinates or teaches a subject in."""
    coordinated = {row.id for row in db.query(Course.id).filter(Course.faculty_id == faculty_id)}
    taught = {
        row.course_id
        for row in db.query(Section.course_id)
        .join(Subject, Subject.section_id == Section.id)
        .filter(Subject.faculty_id == faculty_id)
    }
    return coordinated | taught


def find_room(db, room_id):
    return _get(db, Room, room_id, "Room")
