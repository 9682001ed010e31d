import itertools
from decimal import Decimal

import pytest
from flask_jwt_extended import create_access_token

from wikiclase import create_app
from wikiclase.config import TestingConfig
from wikiclase.extensions import db
from wikiclase.models import (
    Course,
    CourseStatus,
    Enrollment,
    EnrollmentStatus,
    Lesson,
    Payment,
    PaymentStatus,
    Role,
    User,
)
from wikiclase.utils.dates import utcnow


@pytest.fixture
def app():
    app = create_app(TestingConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    counter = itertools.count(1)

    def _make(role=Role.STUDENT, **kwargs):
        n = next(counter)
        kwargs.setdefault("email", f"user{n}@example.com")
        kwargs.setdefault("first_name", "User")
        kwargs.setdefault("last_name", str(n))
        user = User(role=role, **kwargs)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def instructor(make_user):
    return make_user(role=Role.INSTRUCTOR, first_name="Ada", last_name="Lovelace")


@pytest.fixture
def student(make_user):
    return make_user(first_name="Grace", last_name="Hopper")


@pytest.fixture
def make_course(app, instructor):
    counter = itertools.count(1)

    def _make(lessons=0, price=0, status=CourseStatus.PUBLISHED, **kwargs):
        n = next(counter)
        kwargs.setdefault("title", f"Course {n}")
        kwargs.setdefault("slug", f"course-{n}")
        kwargs.setdefault("instructor_id", instructor.id)
        course = Course(price=Decimal(str(price)), status=status, **kwargs)
        for order in range(1, lessons + 1):
            course.lessons.append(Lesson(title=f"Lesson {order}", order=order))
        db.session.add(course)
        db.session.commit()
        return course

    return _make


@pytest.fixture
def make_enrollment(app):
    def _make(user, course, status=EnrollmentStatus.ACTIVE, progress=0):
        enrollment = Enrollment(user_id=user.id, course_id=course.id, status=status, progress=progress)
        if status == EnrollmentStatus.COMPLETED:
            enrollment.completed_at = utcnow()
        db.session.add(enrollment)
        db.session.commit()
        return enrollment

    return _make


@pytest.fixture
def make_payment(app):
    def _make(enrollment, status=PaymentStatus.PENDING, amount="49.99", **kwargs):
        if status in (PaymentStatus.SUCCEEDED, PaymentStatus.REFUNDED):
            kwargs.setdefault("paid_at", utcnow())
        payment = Payment(
            enrollment_id=enrollment.id,
            amount=Decimal(amount),
            currency="USD",
            status=status,
            **kwargs,
        )
        db.session.add(payment)
        db.session.commit()
        return payment

    return _make


@pytest.fixture
def auth_headers(app):
    def _headers(user):
        token = create_access_token(identity=str(user.id))
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def admin_headers(make_user, auth_headers):
    return auth_headers(make_user(role=Role.ADMIN, email="admin@example.com"))


@pytest.fixture
def student_headers(student, auth_headers):
    return auth_headers(student)
