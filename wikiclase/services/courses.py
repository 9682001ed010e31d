import re
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError

from wikiclase.errors import BadRequest, Conflict, NotFound
from wikiclase.extensions import db
from wikiclase.models import Course, CourseStatus, Enrollment, EnrollmentStatus, Lesson, User
from wikiclase.utils.dates import utcnow
from wikiclase.utils.db import transaction
from wikiclase.utils.numbers import percentage

COURSE_FIELDS = ("title", "description", "short_description", "price", "currency", "image_url", "slug", "status")
LESSON_FIELDS = ("title", "content", "video_url", "duration", "order", "is_preview")


def slugify(text):
    text = re.sub(r"[^a-zA-Z0-9]+", "-", text)
    return text.strip("-").lower()


def _parse_price(value):
    try:
        price = Decimal(str(value))
    except InvalidOperation:
        raise BadRequest("Price must be a number")
    if not price.is_finite():
        raise BadRequest("Price must be a number")
    if price < 0:
        raise BadRequest("Price cannot be negative")
    return price


def _parse_status(value):
    try:
        return CourseStatus(value)
    except ValueError:
        raise BadRequest(f"Invalid course status: {value}")


def get_course(course_id):
    course = db.session.get(Course, course_id)
    if not course:
        raise NotFound(f"Course with ID {course_id} not found")
    return course


def get_course_by_slug(slug):
    course = Course.query.filter_by(slug=slug).first()
    if not course:
        raise NotFound(f"Course with slug '{slug}' not found")
    return course


def create_course(data):
    title = (data.get("title") or "").strip()
    instructor_id = data.get("instructor_id")
    if not title or not instructor_id:
        raise BadRequest("Missing required fields: title, instructor_id")

    if not db.session.get(User, instructor_id):
        raise NotFound(f"User with ID {instructor_id} not found")

    course = Course(
        title=title,
        slug=data.get("slug") or slugify(title),
        description=data.get("description") or "",
        short_description=data.get("short_description"),
        price=_parse_price(data.get("price", 0)),
        currency=(data.get("currency") or "USD").upper(),
        image_url=data.get("image_url"),
        status=CourseStatus.DRAFT,
        instructor_id=instructor_id,
    )
    try:
        with transaction() as session:
            session.add(course)
    except IntegrityError:
        raise Conflict(f"A course with slug '{course.slug}' already exists")

    current_app.logger.info(f"Course {course.id} '{course.title}' created")
    return course


def update_course(course_id, data):
    course = get_course(course_id)

    updates = {key: data[key] for key in COURSE_FIELDS if key in data}
    if "price" in updates:
        updates["price"] = _parse_price(updates["price"])
    if "currency" in updates:
        updates["currency"] = (updates["currency"] or "USD").upper()
    if "status" in updates:
        updates["status"] = _parse_status(updates["status"])

    try:
        with transaction():
            for key, value in updates.items():
                setattr(course, key, value)
            if updates.get("status") == CourseStatus.PUBLISHED and not course.published_at:
                course.published_at = utcnow()
    except IntegrityError:
        raise Conflict(f"A course with slug '{updates.get('slug')}' already exists")

    return course


def delete_course(course_id):
    course = get_course(course_id)
    if course.enrollments:
        raise BadRequest("Cannot delete course with enrollments")

    with transaction() as session:
        session.delete(course)
    current_app.logger.info(f"Course {course_id} deleted")


def list_courses(skip=0, take=10, status=None, instructor_id=None):
    query = Course.query
    if status is not None:
        query = query.filter_by(status=status)
    if instructor_id is not None:
        query = query.filter_by(instructor_id=instructor_id)
    return query.order_by(Course.created_at.desc(), Course.id.desc()).offset(skip).limit(take).all()


def search_courses(term, limit=20):
    pattern = f"%{term.strip().lower()}%"
    return (
        Course.query.filter(
            Course.status == CourseStatus.PUBLISHED,
            or_(
                func.lower(Course.title).like(pattern),
                func.lower(Course.description).like(pattern),
                func.lower(Course.short_description).like(pattern),
            ),
        )
        .limit(limit)
        .all()
    )


def get_popular_courses(limit=10):
    enrollment_count = func.count(Enrollment.id)
    return (
        db.session.query(Course)
        .outerjoin(Enrollment, Enrollment.course_id == Course.id)
        .filter(Course.status == CourseStatus.PUBLISHED)
        .group_by(Course.id)
        .order_by(enrollment_count.desc(), Course.id)
        .limit(limit)
        .all()
    )


def get_courses_by_instructor(instructor_id):
    return Course.query.filter_by(instructor_id=instructor_id).order_by(Course.created_at.desc()).all()


def get_course_stats(course_id):
    course = get_course(course_id)
    enrollments = course.enrollments
    total = len(enrollments)
    completed = len([e for e in enrollments if e.status == EnrollmentStatus.COMPLETED])

    return {
        "total_enrollments": total,
        "active_enrollments": len([e for e in enrollments if e.status == EnrollmentStatus.ACTIVE]),
        "completed_enrollments": completed,
        "total_lessons": course.total_lessons,
        "completion_rate": percentage(completed, total),
    }


def get_lesson(lesson_id):
    lesson = db.session.get(Lesson, lesson_id)
    if not lesson:
        raise NotFound(f"Lesson with ID {lesson_id} not found")
    return lesson


def create_lesson(course_id, data):
    course = get_course(course_id)

    if not data.get("title"):
        raise BadRequest("Missing title")

    fields = {key: data[key] for key in LESSON_FIELDS if key in data}
    if fields.get("order") is None:
        fields["order"] = course.total_lessons + 1
    lesson = Lesson(course=course, **fields)

    with transaction() as session:
        session.add(lesson)
    return lesson


def update_lesson(lesson_id, data):
    lesson = get_lesson(lesson_id)
    with transaction():
        for key in LESSON_FIELDS:
            if key in data:
                setattr(lesson, key, data[key])
    return lesson


def delete_lesson(lesson_id):
    lesson = get_lesson(lesson_id)
    with transaction() as session:
        session.delete(lesson)
