from decimal import Decimal

import pytest
from sqlalchemy.orm import Query

from academy.core.config import settings
from academy.models import (
    Course, CourseStatus, Enrollment, EnrollmentStatus, Payment, PaymentStatus, UserRole
)

from conftest import make_user


@pytest.fixture
def paid_course(db, tutor):
    course = Course(
        title="Advanced Calculus",
        price=Decimal("15000.00"),
        max_students=30,
        tutor_id=tutor.id,
        status=CourseStatus.ACTIVE.value,
        enrolled_count=0
    )
    db.add(course)
    db.commit()
    db.refresh(course)
    return course


def request_payload(course_id):
    return {
        "course_id": course_id,
        "full_name": "Sam Student",
        "phone": "+7 700 000 0000",
        "email": "student@academy.io",
        "preferred_contact": "KASPI",
        "message": "Please call in the evening"
    }


def test_enroll_in_free_course(client, course, student_headers, tutor):
    response = client.post("/api/enrollments", headers=student_headers, json={"course_id": course.id})
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "ACTIVE"
    assert body["tutor_id"] == tutor.id

    check = client.get(f"/api/enrollments/check/{course.id}", headers=student_headers).json()
    assert check == {"enrolled": True, "status": "ACTIVE", "pending_request": False}

    again = client.post("/api/enrollments", headers=student_headers, json={"course_id": course.id})
    assert again.status_code == 400


def test_paid_course_requires_request(client, paid_course, student_headers):
    response = client.post("/api/enrollments", headers=student_headers, json={"course_id": paid_course.id})
    assert response.status_code == 402


def test_full_course_rejects_enrollment(client, db, course, student_headers):
    course.max_students = 1
    course.enrolled_count = 1
    db.commit()

    response = client.post("/api/enrollments", headers=student_headers, json={"course_id": course.id})
    assert response.status_code == 400
    assert response.json() == {"error": "Course is full"}


def test_tutor_course_capacity(client, db, course, tutor, student_headers, monkeypatch):
    monkeypatch.setattr(settings, "TUTOR_COURSE_CAPACITY", 1)
    other = make_user(db, "busy@academy.io", UserRole.STUDENT)
    db.add(Enrollment(course_id=course.id, student_id=other.id, tutor_id=tutor.id, status=EnrollmentStatus.ACTIVE.value))
    db.commit()

    response = client.post("/api/enrollments", headers=student_headers, json={"course_id": course.id})
    assert response.status_code == 400


def test_my_enrollments_report_progress(client, course, enrolled_student, student_headers):
    material_id = course.topics[0].materials[0].id
    response = client.post(
        f"/api/materials/{material_id}/progress",
        headers=student_headers,
        json={"status": "COMPLETED", "time_spent": 120}
    )
    assert response.status_code == 200
    assert response.json()["completed_at"] is not None

    enrollments = client.get("/api/enrollments/me", headers=student_headers).json()
    assert len(enrollments) == 1
    assert enrollments[0]["completed_materials"] == 1
    assert enrollments[0]["total_materials"] == 2
    assert enrollments[0]["progress_percentage"] == 50

    progress = client.get(f"/api/courses/{course.id}/progress", headers=student_headers).json()
    assert progress["topics"][0]["completed_materials"] == 1
    assert progress["topics"][0]["completed"] is False


def test_progress_requires_enrollment(client, course, student_headers):
    material_id = course.topics[0].materials[0].id
    response = client.post(
        f"/api/materials/{material_id}/progress",
        headers=student_headers,
        json={"status": "IN_PROGRESS"}
    )
    assert response.status_code == 403


def test_cancel_enrollment(client, course, student_headers):
    enrollment_id = client.post(
        "/api/enrollments", headers=student_headers, json={"course_id": course.id}
    ).json()["id"]

    response = client.post(f"/api/enrollments/{enrollment_id}/cancel", headers=student_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "CANCELLED"

    # Re-enrolling reactivates the same row
    again = client.post("/api/enrollments", headers=student_headers, json={"course_id": course.id})
    assert again.status_code == 201
    assert again.json()["id"] == enrollment_id


def test_enrollment_request_snapshot_and_duplicates(client, paid_course, student_headers):
    response = client.post("/api/enrollment-requests", headers=student_headers, json=request_payload(paid_course.id))
    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "PENDING"
    assert body["course_title"] == "Advanced Calculus"
    assert body["course_price"] == 15000.0

    duplicate = client.post("/api/enrollment-requests", headers=student_headers, json=request_payload(paid_course.id))
    assert duplicate.status_code == 400

    mine = client.get("/api/enrollment-requests/me", headers=student_headers).json()
    assert [r["id"] for r in mine] == [body["id"]]


def test_approve_request_creates_paid_enrollment(client, db, paid_course, student, student_headers, admin_headers):
    request_id = client.post(
        "/api/enrollment-requests", headers=student_headers, json=request_payload(paid_course.id)
    ).json()["id"]

    response = client.post(
        f"/api/admin/enrollment-requests/{request_id}/approve",
        headers=admin_headers,
        json={"notes": "Paid via Kaspi"}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["request"]["status"] == "APPROVED"
    assert body["request"]["admin_notes"] == "Paid via Kaspi"
    assert body["enrollment"]["status"] == "ACTIVE"
    assert body["enrollment"]["payment_status"] == "PAID"

    payment = db.query(Payment).filter(Payment.student_id == student.id).one()
    assert payment.method == "MANUAL"
    assert payment.status == PaymentStatus.PAID.value
    assert Decimal(payment.amount) == Decimal("15000.00")

    again = client.post(f"/api/admin/enrollment-requests/{request_id}/approve", headers=admin_headers)
    assert again.status_code == 400


def test_approve_respects_tutor_load(client, paid_course, student_headers, admin_headers, monkeypatch):
    monkeypatch.setattr(settings, "TUTOR_MAX_STUDENTS", 0)
    request_id = client.post(
        "/api/enrollment-requests", headers=student_headers, json=request_payload(paid_course.id)
    ).json()["id"]

    response = client.post(f"/api/admin/enrollment-requests/{request_id}/approve", headers=admin_headers)
    assert response.status_code == 400

    pending = client.get("/api/admin/enrollment-requests", headers=admin_headers, params={"status": "PENDING"}).json()
    assert pending["total"] == 1


def test_reject_request(client, paid_course, student_headers, admin_headers):
    request_id = client.post(
        "/api/enrollment-requests", headers=student_headers, json=request_payload(paid_course.id)
    ).json()["id"]

    response = client.post(
        f"/api/admin/enrollment-requests/{request_id}/reject",
        headers=admin_headers,
        json={"notes": "No payment received"}
    )
    assert response.status_code == 200
    assert response.json()["status"] == "REJECTED"

    check = client.get(f"/api/enrollments/check/{paid_course.id}", headers=student_headers).json()
    assert check["enrolled"] is False
    assert check["pending_request"] is False


def test_admin_override_enrollment(client, paid_course, student, admin_headers):
    response = client.post("/api/admin/enrollments", headers=admin_headers, json={
        "student_id": student.id,
        "course_id": paid_course.id
    })
    assert response.status_code == 201
    assert response.json()["status"] == "ACTIVE"


@pytest.fixture
def locked_entities(monkeypatch):
    """Entities queried with FOR UPDATE during the test."""
    locked = []
    original = Query.with_for_update

    def recording(self, *args, **kwargs):
        locked.append(self.column_descriptions[0]["entity"])
        return original(self, *args, **kwargs)

    monkeypatch.setattr(Query, "with_for_update", recording)
    return locked


def test_seat_changes_lock_the_course_row(client, db, course, student_headers, locked_entities):
    enrollment_id = client.post(
        "/api/enrollments", headers=student_headers, json={"course_id": course.id}
    ).json()["id"]
    assert locked_entities == [Course]

    client.post(f"/api/enrollments/{enrollment_id}/cancel", headers=student_headers)
    assert locked_entities == [Course, Course]

    db.refresh(course)
    assert course.enrolled_count == 0


def test_approval_locks_the_course_row(client, paid_course, student_headers, admin_headers, locked_entities):
    request_id = client.post(
        "/api/enrollment-requests", headers=student_headers, json=request_payload(paid_course.id)
    ).json()["id"]

    response = client.post(f"/api/admin/enrollment-requests/{request_id}/approve", headers=admin_headers)
    assert response.status_code == 200
    assert Course in locked_entities
