from flask import current_app
from sqlalchemy import func, or_

from wikiclase.errors import BadRequest, NotFound
from wikiclase.extensions import db
from wikiclase.models import Course, Enrollment, EnrollmentStatus, Role, User
from wikiclase.utils.db import transaction
from wikiclase.utils.numbers import percentage, round_half_up

PROFILE_FIELDS = ("first_name", "last_name", "image_url")
IDENTITY_EVENTS = ("user.created", "user.updated", "user.deleted")


def _parse_role(value):
    try:
        return Role(value)
    except ValueError:
        raise BadRequest(f"Invalid role: {value}")


def get_user(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound(f"User with ID {user_id} not found")
    return user


def get_user_by_email(email):
    user = User.query.filter_by(email=email.strip().lower()).first()
    if not user:
        raise NotFound(f"User with email {email} not found")
    return user


def get_user_by_external_id(external_id):
    if not external_id:
        raise BadRequest("External user id is required")
    user = User.query.filter_by(external_id=external_id).first()
    if not user:
        raise NotFound(f"User with external ID {external_id} not found")
    return user


def list_users():
    return User.query.order_by(User.created_at.desc(), User.id.desc()).all()


def search_users(term, limit=10):
    pattern = f"%{term.strip().lower()}%"
    return (
        User.query.filter(
            or_(
                func.lower(User.first_name).like(pattern),
                func.lower(User.last_name).like(pattern),
                func.lower(User.email).like(pattern),
            )
        )
        .limit(limit)
        .all()
    )


def update_user(user_id, data):
    user = get_user(user_id)
    with transaction():
        for key in PROFILE_FIELDS:
            if key in data:
                setattr(user, key, data[key])
    return user


def _ensure_deletable(user):
    active = Enrollment.query.filter_by(user_id=user.id, status=EnrollmentStatus.ACTIVE).count()
    if active:
        raise BadRequest("Cannot delete user with active enrollments")
    if user.courses_created:
        raise BadRequest("Cannot delete an instructor who still owns courses")


def delete_user(user_id):
    user = get_user(user_id)
    _ensure_deletable(user)

    with transaction() as session:
        session.delete(user)
    current_app.logger.info(f"User {user_id} deleted")


def get_courses_created(user_id):
    get_user(user_id)
    return Course.query.filter_by(instructor_id=user_id).order_by(Course.created_at.desc()).all()


def get_user_progress(user_id, course_id=None):
    get_user(user_id)

    query = Enrollment.query.filter_by(user_id=user_id)
    if course_id is not None:
        query = query.filter_by(course_id=course_id)

    result = []
    for enrollment in query.all():
        course_lesson_ids = {lesson.id for lesson in enrollment.course.lessons}
        completed = len([
            p for p in enrollment.lesson_progress
            if p.completed and p.lesson_id in course_lesson_ids
        ])
        total = len(course_lesson_ids)

        data = enrollment.to_dict()
        data.update({
            "completed_lessons": completed,
            "total_lessons": total,
            "progress_percentage": round_half_up(percentage(completed, total)),
        })
        result.append(data)
    return result


def find_or_create_user(external_id, email, first_name=None, last_name=None, image_url=None):
    """Find a user by identity-provider id, creating it or refreshing its profile."""
    if not external_id:
        raise BadRequest("External user id is required")
    email = email.strip().lower()
    profile = {"first_name": first_name, "last_name": last_name, "image_url": image_url}

    user = User.query.filter_by(external_id=external_id).first()
    with transaction() as session:
        if user is None:
            user = User.query.filter_by(email=email).first()
            if user is None:
                user = User(email=email, **profile)
                session.add(user)
                current_app.logger.info(f"Creating user for external id {external_id}")
            user.external_id = external_id
        else:
            user.email = email

        for key, value in profile.items():
            if value:
                setattr(user, key, value)

    return user


def delete_user_by_external_id(external_id):
    if not external_id:
        raise BadRequest("External user id is required")

    user = User.query.filter_by(external_id=external_id).first()
    if user is None:
        current_app.logger.info(f"No user for external id {external_id}, nothing to delete")
        return False

    _ensure_deletable(user)
    user_id = user.id
    with transaction() as session:
        session.delete(user)
    current_app.logger.info(f"Deleted user {user_id} for external id {external_id}")
    return True


def update_user_role(external_id, role):
    user = get_user_by_external_id(external_id)
    with transaction():
        user.role = _parse_role(role)
    return user


def handle_identity_event(payload):
    event_type = payload.get("type")
    data = payload.get("data") or {}

    if event_type in IDENTITY_EVENTS and not data.get("id"):
        raise BadRequest("User id not found in webhook payload")

    if event_type in ("user.created", "user.updated"):
        addresses = data.get("email_addresses") or []
        email = addresses[0].get("email_address") if addresses else None
        if not email:
            raise BadRequest("Email not found in webhook payload")

        user = find_or_create_user(
            data.get("id"),
            email,
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            image_url=data.get("image_url"),
        )
        return {"received": True, "user_id": user.id}

    if event_type == "user.deleted":
        delete_user_by_external_id(data.get("id"))
        return {"received": True}

    current_app.logger.info(f"Unhandled identity event type: {event_type}")
    return {"received": True}
