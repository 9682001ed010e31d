"""Enrollment lifecycle: creation, status transitions and progress."""
from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from wikiclase.errors import BadRequest, Conflict, NotFound
from wikiclase.extensions import db
from wikiclase.models import Course, Enrollment, EnrollmentStatus, Lesson, LessonProgress, User
from wikiclase.utils.dates import utcnow
from wikiclase.utils.db import transaction
from wikiclase.utils.numbers import percentage, round_half_up

# Allowed moves of Enrollment.status; COMPLETED and CANCELLED are terminal.
TRANSITIONS = {
    EnrollmentStatus.PENDING: {EnrollmentStatus.ACTIVE, EnrollmentStatus.CANCELLED},
    EnrollmentStatus.ACTIVE: {EnrollmentStatus.COMPLETED, EnrollmentStatus.CANCELLED},
    EnrollmentStatus.COMPLETED: set(),
    EnrollmentStatus.CANCELLED: set(),
}


def can_transition(current, target):
    return target in TRANSITIONS[current]


def get_enrollment(enrollment_id):
    enrollment = db.session.get(Enrollment, enrollment_id)
    if not enrollment:
        raise NotFound(f"Enrollment with ID {enrollment_id} not found")
    return enrollment


def find_enrollment(user_id, course_id):
    return Enrollment.query.filter_by(user_id=user_id, course_id=course_id).first()


def enroll(user_id, course_id):
    """Enroll a user directly (free or admin-granted access) as ACTIVE."""
    if find_enrollment(user_id, course_id):
        raise Conflict("User is already enrolled in this course")

    if not db.session.get(Course, course_id):
        raise NotFound(f"Course with ID {course_id} not found")

    if not db.session.get(User, user_id):
        raise NotFound(f"User with ID {user_id} not found")

    enrollment = Enrollment(
        user_id=user_id,
        course_id=course_id,
        status=EnrollmentStatus.ACTIVE,
        progress=0,
    )
    try:
        with transaction() as session:
            session.add(enrollment)
    except IntegrityError:
        raise Conflict("User is already enrolled in this course")

    current_app.logger.info(f"User {user_id} enrolled in course {course_id} (enrollment {enrollment.id})")
    return enrollment


def _ensure_accepts_progress(enrollment):
    if enrollment.status in (EnrollmentStatus.PENDING, EnrollmentStatus.CANCELLED):
        raise BadRequest(f"Cannot record progress on a {enrollment.status.value} enrollment")


def _mark_completed(enrollment):
    enrollment.status = EnrollmentStatus.COMPLETED
    enrollment.completed_at = utcnow()
    current_app.logger.info(f"Enrollment {enrollment.id} completed")


def update_progress(enrollment_id, progress):
    enrollment = get_enrollment(enrollment_id)

    if isinstance(progress, bool) or not isinstance(progress, int):
        raise BadRequest("Progress must be an integer between 0 and 100")
    if progress < 0 or progress > 100:
        raise BadRequest("Progress must be an integer between 0 and 100")

    _ensure_accepts_progress(enrollment)
    if enrollment.status == EnrollmentStatus.COMPLETED and progress < 100:
        raise BadRequest("A completed enrollment keeps progress at 100")

    with transaction():
        enrollment.progress = progress
        # re-applying 100 keeps COMPLETED and refreshes completed_at
        if progress >= 100:
            _mark_completed(enrollment)

    return enrollment


def complete_lesson(enrollment_id, lesson_id):
    """Mark a lesson completed and recompute the enrollment's progress.

    Returns ``(lesson_progress, enrollment)``.
    """
    enrollment = get_enrollment(enrollment_id)
    _ensure_accepts_progress(enrollment)

    if not db.session.get(Lesson, lesson_id):
        raise NotFound(f"Lesson with ID {lesson_id} not found")

    with transaction() as session:
        lesson_progress = LessonProgress.query.filter_by(
            enrollment_id=enrollment.id,
            lesson_id=lesson_id,
        ).first()

        if lesson_progress is None:
            lesson_progress = LessonProgress(enrollment_id=enrollment.id, lesson_id=lesson_id)
            session.add(lesson_progress)

        if not lesson_progress.completed:
            lesson_progress.completed = True
            lesson_progress.completed_at = utcnow()

        session.flush()

        total_lessons = Lesson.query.filter_by(course_id=enrollment.course_id).count()
        completed_lessons = (
            LessonProgress.query
            .join(Lesson, Lesson.id == LessonProgress.lesson_id)
            .filter(
                LessonProgress.enrollment_id == enrollment.id,
                LessonProgress.completed.is_(True),
                Lesson.course_id == enrollment.course_id,
            )
            .count()
        )

        if enrollment.status == EnrollmentStatus.COMPLETED:
            # lessons added after completion do not reopen it
            enrollment.progress = 100
        elif total_lessons == 0:
            enrollment.progress = 0
        else:
            enrollment.progress = round_half_up(percentage(completed_lessons, total_lessons))
            if completed_lessons == total_lessons:
                _mark_completed(enrollment)

    return lesson_progress, enrollment


def update_enrollment(enrollment_id, status):
    enrollment = get_enrollment(enrollment_id)

    try:
        target = EnrollmentStatus(status)
    except ValueError:
        raise BadRequest(f"Invalid enrollment status: {status}")

    if target == enrollment.status:
        return enrollment

    if not can_transition(enrollment.status, target):
        raise BadRequest(f"Cannot move enrollment from {enrollment.status.value} to {target.value}")

    with transaction():
        if target == EnrollmentStatus.COMPLETED:
            enrollment.progress = 100
            _mark_completed(enrollment)
        else:
            enrollment.status = target

    current_app.logger.info(f"Enrollment {enrollment.id} moved to {target.value}")
    return enrollment


def remove_enrollment(enrollment_id):
    enrollment = get_enrollment(enrollment_id)
    with transaction() as session:
        session.delete(enrollment)
    current_app.logger.info(f"Enrollment {enrollment_id} removed")


def list_enrollments(skip=0, take=10, user_id=None, course_id=None, status=None):
    query = Enrollment.query
    if user_id is not None:
        query = query.filter_by(user_id=user_id)
    if course_id is not None:
        query = query.filter_by(course_id=course_id)
    if status is not None:
        query = query.filter_by(status=status)

    return (
        query.order_by(Enrollment.enrolled_at.desc(), Enrollment.id.desc())
        .offset(skip)
        .limit(take)
        .all()
    )


def get_user_enrollments(user_id, status=None):
    return list_enrollments(skip=0, take=None, user_id=user_id, status=status)


def get_course_enrollments(course_id, status=None):
    return list_enrollments(skip=0, take=None, course_id=course_id, status=status)


def get_stats(course_id=None, user_id=None):
    query = db.session.query(Enrollment.status, func.count(Enrollment.id))
    progress_query = db.session.query(func.avg(Enrollment.progress))
    if course_id is not None:
        query = query.filter(Enrollment.course_id == course_id)
        progress_query = progress_query.filter(Enrollment.course_id == course_id)
    if user_id is not None:
        query = query.filter(Enrollment.user_id == user_id)
        progress_query = progress_query.filter(Enrollment.user_id == user_id)

    counts = {status: 0 for status in EnrollmentStatus}
    for status, count in query.group_by(Enrollment.status).all():
        counts[status] = count

    total = sum(counts.values())
    average_progress = progress_query.scalar() or 0

    return {
        "total_enrollments": total,
        "active_enrollments": counts[EnrollmentStatus.ACTIVE],
        "completed_enrollments": counts[EnrollmentStatus.COMPLETED],
        "pending_enrollments": counts[EnrollmentStatus.PENDING],
        "cancelled_enrollments": counts[EnrollmentStatus.CANCELLED],
        "average_progress": round_half_up(average_progress),
        "completion_rate": percentage(counts[EnrollmentStatus.COMPLETED], total),
    }
