"""
Tests for the enrollment lifecycle: enrolling, progress and lesson completion.
"""

from datetime import datetime

import pytest

from wikiclase.errors import BadRequest, Conflict, NotFound
from wikiclase.models import EnrollmentStatus, LessonProgress
from wikiclase.services import enrollments as service
from wikiclase.services.courses import create_lesson


class TestEnroll:
    """Direct enrollment."""

    def test_enroll_creates_active_enrollment(self, student, make_course):
        course = make_course()

        enrollment = service.enroll(student.id, course.id)

        assert enrollment.status == EnrollmentStatus.ACTIVE
        assert enrollment.progress == 0
        assert enrollment.enrolled_at is not None
        assert enrollment.completed_at is None

    def test_second_enroll_for_same_pair_conflicts(self, student, make_course):
        course = make_course()
        service.enroll(student.id, course.id)

        with pytest.raises(Conflict):
            service.enroll(student.id, course.id)

        assert len(service.get_user_enrollments(student.id)) == 1

    def test_enroll_unknown_course(self, student):
        with pytest.raises(NotFound):
            service.enroll(student.id, 999)

    def test_enroll_unknown_user(self, make_course):
        course = make_course()
        with pytest.raises(NotFound):
            service.enroll(999, course.id)

    def test_enroll_route(self, client, student, make_course):
        course = make_course()

        response = client.post("/enrollments/", json={"user_id": student.id, "course_id": course.id})
        assert response.status_code == 201
        assert response.get_json()["status"] == "ACTIVE"

        response = client.post("/enrollments/", json={"user_id": student.id, "course_id": course.id})
        assert response.status_code == 409
        assert "already enrolled" in response.get_json()["error"]

    def test_enroll_route_missing_fields(self, client):
        response = client.post("/enrollments/", json={"user_id": 1})
        assert response.status_code == 400


class TestUpdateProgress:
    """Manual progress updates."""

    def test_partial_progress_keeps_active(self, student, make_course, make_enrollment):
        enrollment = make_enrollment(student, make_course())

        enrollment = service.update_progress(enrollment.id, 40)

        assert enrollment.progress == 40
        assert enrollment.status == EnrollmentStatus.ACTIVE
        assert enrollment.completed_at is None

    def test_progress_100_completes(self, student, make_course, make_enrollment):
        enrollment = make_enrollment(student, make_course())

        enrollment = service.update_progress(enrollment.id, 100)

        assert enrollment.status == EnrollmentStatus.COMPLETED
        assert enrollment.completed_at is not None

    def test_reapplying_100_overwrites_completed_at(self, monkeypatch, student, make_course, make_enrollment):
        enrollment = make_enrollment(student, make_course())
        first = datetime(2026, 3, 1, 10, 0, 0)
        second = datetime(2026, 3, 2, 10, 0, 0)

        monkeypatch.setattr("wikiclase.services.enrollments.utcnow", lambda: first)
        service.update_progress(enrollment.id, 100)

        monkeypatch.setattr("wikiclase.services.enrollments.utcnow", lambda: second)
        enrollment = service.update_progress(enrollment.id, 100)

        assert enrollment.status == EnrollmentStatus.COMPLETED
        assert enrollment.completed_at == second

    @pytest.mark.parametrize("value", [-1, 101, "50", 12.5, True])
    def test_invalid_progress_rejected(self, student, make_course, make_enrollment, value):
        enrollment = make_enrollment(student, make_course())

        with pytest.raises(BadRequest):
            service.update_progress(enrollment.id, value)

    @pytest.mark.parametrize("status", [EnrollmentStatus.PENDING, EnrollmentStatus.CANCELLED])
    def test_progress_rejected_when_not_started_or_cancelled(self, student, make_course, make_enrollment, status):
        enrollment = make_enrollment(student, make_course(), status=status)

        with pytest.raises(BadRequest):
            service.update_progress(enrollment.id, 10)

    def test_completed_enrollment_cannot_lower_progress(self, student, make_course, make_enrollment):
        enrollment = make_enrollment(student, make_course())
        service.update_progress(enrollment.id, 100)

        with pytest.raises(BadRequest):
            service.update_progress(enrollment.id, 40)

        enrollment = service.get_enrollment(enrollment.id)
        assert enrollment.progress == 100
        assert enrollment.status == EnrollmentStatus.COMPLETED

    def test_unknown_enrollment(self, app):
        with pytest.raises(NotFound):
            service.update_progress(999, 10)

    def test_progress_route(self, client, student, make_course, make_enrollment):
        enrollment = make_enrollment(student, make_course())

        response = client.put(f"/enrollments/{enrollment.id}/progress", json={"progress": 100})

        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "COMPLETED"
        assert data["completed_at"] is not None

    def test_progress_route_out_of_range(self, client, student, make_course, make_enrollment):
        enrollment = make_enrollment(student, make_course())

        response = client.put(f"/enrollments/{enrollment.id}/progress", json={"progress": 150})

        assert response.status_code == 400


class TestCompleteLesson:
    """Lesson completion and progress recomputation."""

    def test_two_lesson_walkthrough(self, student, make_course):
        course = make_course(lessons=2)
        first, second = course.lessons
        enrollment = service.enroll(student.id, course.id)

        lesson_progress, enrollment = service.complete_lesson(enrollment.id, first.id)
        assert lesson_progress.completed is True
        assert lesson_progress.completed_at is not None
        assert enrollment.progress == 50
        assert enrollment.status == EnrollmentStatus.ACTIVE

        _, enrollment = service.complete_lesson(enrollment.id, second.id)
        assert enrollment.progress == 100
        assert enrollment.status == EnrollmentStatus.COMPLETED
        assert enrollment.completed_at is not None

    def test_repeated_completion_is_not_double_counted(self, student, make_course):
        course = make_course(lessons=3)
        enrollment = service.enroll(student.id, course.id)
        lesson = course.lessons[0]

        service.complete_lesson(enrollment.id, lesson.id)
        _, enrollment = service.complete_lesson(enrollment.id, lesson.id)

        assert enrollment.progress == 33
        assert enrollment.status == EnrollmentStatus.ACTIVE
        assert LessonProgress.query.filter_by(enrollment_id=enrollment.id).count() == 1

    def test_any_order_completes_exactly_once(self, monkeypatch, student, make_course):
        course = make_course(lessons=3)
        enrollment = service.enroll(student.id, course.id)
        completions = []
        original = service._mark_completed

        def tracking(e):
            completions.append(e.id)
            original(e)

        monkeypatch.setattr(service, "_mark_completed", tracking)

        for lesson in reversed(course.lessons):
            _, enrollment = service.complete_lesson(enrollment.id, lesson.id)
        service.complete_lesson(enrollment.id, course.lessons[0].id)

        assert enrollment.progress == 100
        assert enrollment.status == EnrollmentStatus.COMPLETED
        assert completions == [enrollment.id]

    def test_rounds_half_up(self, student, make_course):
        course = make_course(lessons=8)
        enrollment = service.enroll(student.id, course.id)

        _, enrollment = service.complete_lesson(enrollment.id, course.lessons[0].id)

        # 12.5 -> 13
        assert enrollment.progress == 13

    def test_course_without_lessons(self, student, make_course):
        empty = make_course()
        other = make_course(lessons=1)
        enrollment = service.enroll(student.id, empty.id)

        _, enrollment = service.complete_lesson(enrollment.id, other.lessons[0].id)

        assert enrollment.progress == 0
        assert enrollment.status == EnrollmentStatus.ACTIVE

    def test_lesson_added_after_completion_keeps_full_progress(self, student, make_course):
        course = make_course(lessons=1)
        enrollment = service.enroll(student.id, course.id)
        service.complete_lesson(enrollment.id, course.lessons[0].id)

        bonus = create_lesson(course.id, {"title": "Bonus"})
        _, enrollment = service.complete_lesson(enrollment.id, bonus.id)

        assert enrollment.progress == 100
        assert enrollment.status == EnrollmentStatus.COMPLETED
        assert LessonProgress.query.filter_by(enrollment_id=enrollment.id, completed=True).count() == 2

    def test_unknown_lesson(self, student, make_course):
        enrollment = service.enroll(student.id, make_course().id)

        with pytest.raises(NotFound):
            service.complete_lesson(enrollment.id, 999)

    def test_pending_enrollment_cannot_complete_lessons(self, student, make_course, make_enrollment):
        course = make_course(lessons=1)
        enrollment = make_enrollment(student, course, status=EnrollmentStatus.PENDING)

        with pytest.raises(BadRequest):
            service.complete_lesson(enrollment.id, course.lessons[0].id)

    def test_complete_lesson_route(self, client, student, make_course):
        course = make_course(lessons=2)
        enrollment = service.enroll(student.id, course.id)
        lesson_id = course.lessons[0].id

        response = client.post(f"/enrollments/{enrollment.id}/lessons/{lesson_id}/complete")

        assert response.status_code == 200
        data = response.get_json()
        assert data["lesson_progress"]["lesson_id"] == lesson_id
        assert data["lesson_progress"]["completed"] is True
        assert data["enrollment"]["progress"] == 50


class TestStatusTransitions:
    """Explicit status changes."""

    def test_active_to_completed_sets_full_progress(self, student, make_course, make_enrollment):
        enrollment = make_enrollment(student, make_course())

        enrollment = service.update_enrollment(enrollment.id, "COMPLETED")

        assert enrollment.status == EnrollmentStatus.COMPLETED
        assert enrollment.progress == 100
        assert enrollment.completed_at is not None

    @pytest.mark.parametrize("start", [EnrollmentStatus.COMPLETED, EnrollmentStatus.CANCELLED])
    def test_terminal_states_cannot_reactivate(self, student, make_course, make_enrollment, start):
        enrollment = make_enrollment(student, make_course(), status=start)

        with pytest.raises(BadRequest):
            service.update_enrollment(enrollment.id, "ACTIVE")

    def test_invalid_status(self, student, make_course, make_enrollment):
        enrollment = make_enrollment(student, make_course())

        with pytest.raises(BadRequest):
            service.update_enrollment(enrollment.id, "PAUSED")

    def test_status_route_accepts_lowercase(self, client, student, make_course, make_enrollment):
        enrollment = make_enrollment(student, make_course(), status=EnrollmentStatus.PENDING)

        response = client.put(f"/enrollments/{enrollment.id}", json={"status": "active"})

        assert response.status_code == 200
        assert response.get_json()["status"] == "ACTIVE"


class TestQueries:
    """Listing, lookup, deletion and stats."""

    def test_list_filters_and_paginates(self, client, make_user, make_course, make_enrollment):
        course = make_course()
        users = [make_user() for _ in range(3)]
        for user in users:
            make_enrollment(user, course)
        make_enrollment(make_user(), make_course(), status=EnrollmentStatus.PENDING)

        response = client.get(f"/enrollments/?course_id={course.id}&take=2")
        assert response.status_code == 200
        assert len(response.get_json()) == 2

        response = client.get("/enrollments/?status=pending")
        assert [e["status"] for e in response.get_json()] == ["PENDING"]

    def test_invalid_status_filter(self, client):
        response = client.get("/enrollments/?status=unknown")
        assert response.status_code == 400

    def test_get_includes_lesson_progress(self, client, student, make_course):
        course = make_course(lessons=1)
        enrollment = service.enroll(student.id, course.id)
        service.complete_lesson(enrollment.id, course.lessons[0].id)

        response = client.get(f"/enrollments/{enrollment.id}")

        assert response.status_code == 200
        assert len(response.get_json()["lesson_progress"]) == 1

    def test_get_missing(self, client):
        response = client.get("/enrollments/999")
        assert response.status_code == 404
        assert response.get_json() == {"error": "Enrollment with ID 999 not found"}

    def test_delete(self, client, student, make_course, make_enrollment):
        enrollment_id = make_enrollment(student, make_course()).id

        response = client.delete(f"/enrollments/{enrollment_id}")

        assert response.status_code == 200
        assert client.get(f"/enrollments/{enrollment_id}").status_code == 404

    def test_stats(self, make_user, make_course, make_enrollment):
        course = make_course()
        make_enrollment(make_user(), course, progress=50)
        make_enrollment(make_user(), course, status=EnrollmentStatus.COMPLETED, progress=100)
        make_enrollment(make_user(), course, status=EnrollmentStatus.CANCELLED, progress=25)
        make_enrollment(make_user(), course, status=EnrollmentStatus.PENDING)

        stats = service.get_stats(course_id=course.id)

        assert stats["total_enrollments"] == 4
        assert stats["active_enrollments"] == 1
        assert stats["completed_enrollments"] == 1
        assert stats["cancelled_enrollments"] == 1
        assert stats["pending_enrollments"] == 1
        # (50 + 100 + 25 + 0) / 4 = 43.75
        assert stats["average_progress"] == 44
        assert stats["completion_rate"] == 25

    def test_stats_without_enrollments(self, app):
        stats = service.get_stats()

        assert stats["total_enrollments"] == 0
        assert stats["average_progress"] == 0
        assert stats["completion_rate"] == 0
