"""Certificate issuance and lookup.

Numbers look like ``CERT-202610-0007``: the issuing year and month followed
by a four digit sequence that restarts every calendar month. The sequence
lives in ``CertificateCounter`` and is incremented under a row lock in the
same transaction that inserts the certificate.
"""
from flask import current_app, render_template
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from wikiclase.errors import BadRequest, NotFound
from wikiclase.extensions import db
from wikiclase.models import Certificate, CertificateCounter, Enrollment, EnrollmentStatus
from wikiclase.utils.dates import month_bounds, utcnow
from wikiclase.utils.db import transaction
from wikiclase.utils.mailer import send_email

MAX_ISSUE_ATTEMPTS = 3


def format_certificate_number(issued_at, sequence):
    return f"CERT-{issued_at.year}{issued_at.month:02d}-{sequence:04d}"


def _next_sequence(session, period):
    counter = (
        session.query(CertificateCounter)
        .filter_by(period=period)
        .with_for_update()
        .first()
    )
    if counter is None:
        counter = CertificateCounter(period=period, last_value=0)
        session.add(counter)

    counter.last_value += 1
    return counter.last_value


def issue_certificate(enrollment_id):
    enrollment = db.session.get(Enrollment, enrollment_id)
    if not enrollment:
        raise NotFound(f"Enrollment with ID {enrollment_id} not found")

    if enrollment.status != EnrollmentStatus.COMPLETED:
        raise BadRequest("Certificate can only be generated for completed courses")

    if enrollment.certificate:
        return enrollment.certificate

    for attempt in range(1, MAX_ISSUE_ATTEMPTS + 1):
        issued_at = utcnow()
        try:
            with transaction() as session:
                sequence = _next_sequence(session, f"{issued_at.year}{issued_at.month:02d}")
                certificate = Certificate(
                    enrollment_id=enrollment.id,
                    certificate_number=format_certificate_number(issued_at, sequence),
                    issued_at=issued_at,
                )
                session.add(certificate)
            break
        except IntegrityError:
            existing = Certificate.query.filter_by(enrollment_id=enrollment.id).first()
            if existing:
                return existing
            current_app.logger.warning(
                f"Certificate number collision for enrollment {enrollment.id} (attempt {attempt})"
            )
            if attempt == MAX_ISSUE_ATTEMPTS:
                raise

    current_app.logger.info(f"Issued certificate {certificate.certificate_number} for enrollment {enrollment.id}")
    _notify_student(certificate)
    return certificate


def _notify_student(certificate):
    enrollment = certificate.enrollment
    student = enrollment.user
    context = {
        "platform_name": current_app.config.get("PLATFORM_NAME"),
        "student_name": student.full_name,
        "course_title": enrollment.course.title,
        "certificate_number": certificate.certificate_number,
    }
    try:
        send_email(
            to=student.email,
            subject=f"Your certificate for {enrollment.course.title}",
            body=render_template("emails/certificate_issued.txt", **context),
            html=render_template("emails/certificate_issued.html", **context),
        )
    except Exception as e:
        current_app.logger.error(f"Error sending certificate email to {student.email}: {e}")


def get_certificate(certificate_id):
    certificate = db.session.get(Certificate, certificate_id)
    if not certificate:
        raise NotFound(f"Certificate with ID {certificate_id} not found")
    return certificate


def get_user_certificates(user_id):
    return (
        Certificate.query.join(Enrollment, Enrollment.id == Certificate.enrollment_id)
        .filter(Enrollment.user_id == user_id)
        .order_by(Certificate.issued_at.desc())
        .all()
    )


def get_course_certificates(course_id):
    return (
        Certificate.query.join(Enrollment, Enrollment.id == Certificate.enrollment_id)
        .filter(Enrollment.course_id == course_id)
        .order_by(Certificate.issued_at.desc())
        .all()
    )


def verify_certificate(certificate_number):
    certificate = Certificate.query.filter_by(certificate_number=certificate_number).first()
    if not certificate:
        raise NotFound(f"Certificate with number {certificate_number} not found")

    enrollment = certificate.enrollment
    course = enrollment.course
    return {
        "is_valid": True,
        "certificate": {
            "id": certificate.id,
            "certificate_number": certificate.certificate_number,
            "issued_at": certificate.issued_at.isoformat(),
            "student": enrollment.user.full_name,
            "course": course.title,
            "instructor": course.instructor.full_name if course.instructor else None,
        },
    }


def get_certificate_stats():
    now = utcnow()
    month_start, month_end = month_bounds(now.year, now.month)
    year_start = month_bounds(now.year, 1)[0]
    year_end = month_bounds(now.year + 1, 1)[0]

    def count_between(start, end):
        return (
            db.session.query(func.count(Certificate.id))
            .filter(Certificate.issued_at >= start, Certificate.issued_at < end)
            .scalar()
        )

    return {
        "total_certificates": Certificate.query.count(),
        "certificates_this_month": count_between(month_start, month_end),
        "certificates_this_year": count_between(year_start, year_end),
    }
