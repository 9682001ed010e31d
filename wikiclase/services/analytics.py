"""Read-only dashboard rollups."""
import calendar
from collections import defaultdict
from datetime import timedelta

from sqlalchemy import func

from wikiclase.errors import BadRequest, NotFound
from wikiclase.extensions import db
from wikiclase.models import (
    Certificate,
    Course,
    Enrollment,
    EnrollmentStatus,
    Payment,
    PaymentStatus,
    User,
)
from wikiclase.utils.dates import month_bounds, utcnow
from wikiclase.utils.numbers import percentage

REVENUE_PERIODS = {
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
    "1y": timedelta(days=365),
}


def _count(model, *criteria):
    return db.session.query(func.count(model.id)).filter(*criteria).scalar() or 0


def _revenue(*criteria):
    total = (
        db.session.query(func.sum(Payment.amount))
        .filter(Payment.status == PaymentStatus.SUCCEEDED, *criteria)
        .scalar()
    )
    return float(total or 0)


def get_dashboard_stats():
    total_enrollments = _count(Enrollment)
    total_payments = _count(Payment)
    completed_enrollments = _count(Enrollment, Enrollment.status == EnrollmentStatus.COMPLETED)
    successful_payments = _count(Payment, Payment.status == PaymentStatus.SUCCEEDED)

    thirty_days_ago = utcnow() - timedelta(days=30)

    return {
        "overview": {
            "total_users": _count(User),
            "total_courses": _count(Course),
            "total_enrollments": total_enrollments,
            "total_payments": total_payments,
            "total_certificates": _count(Certificate),
            "active_enrollments": _count(Enrollment, Enrollment.status == EnrollmentStatus.ACTIVE),
            "completed_enrollments": completed_enrollments,
            "successful_payments": successful_payments,
            "total_revenue": _revenue(),
            "completion_rate": percentage(completed_enrollments, total_enrollments),
            "payment_success_rate": percentage(successful_payments, total_payments),
        },
        "recent_activity": {
            "new_users_last_30_days": _count(User, User.created_at >= thirty_days_ago),
            "new_enrollments_last_30_days": _count(Enrollment, Enrollment.enrolled_at >= thirty_days_ago),
            "new_payments_last_30_days": _count(Payment, Payment.created_at >= thirty_days_ago),
        },
        "monthly_stats": get_monthly_stats(utcnow().year),
    }


def get_monthly_stats(year):
    stats = []
    for month in range(1, 13):
        start, end = month_bounds(year, month)
        stats.append({
            "month": month,
            "month_name": calendar.month_name[month],
            "users": _count(User, User.created_at >= start, User.created_at < end),
            "enrollments": _count(Enrollment, Enrollment.enrolled_at >= start, Enrollment.enrolled_at < end),
            "payments": _count(
                Payment,
                Payment.status == PaymentStatus.SUCCEEDED,
                Payment.paid_at >= start,
                Payment.paid_at < end,
            ),
            "revenue": _revenue(Payment.paid_at >= start, Payment.paid_at < end),
        })
    return stats


def _recent(enrollments, limit=10):
    return sorted(enrollments, key=lambda e: (e.enrolled_at, e.id), reverse=True)[:limit]


def _succeeded_amount(enrollments):
    return sum(
        float(e.payment.amount)
        for e in enrollments
        if e.payment and e.payment.status == PaymentStatus.SUCCEEDED
    )


def _average_progress(enrollments):
    if not enrollments:
        return 0
    return sum(e.progress or 0 for e in enrollments) / len(enrollments)


def get_course_analytics(course_id):
    course = db.session.get(Course, course_id)
    if not course:
        raise NotFound(f"Course with ID {course_id} not found")

    enrollments = course.enrollments
    total = len(enrollments)
    completed = len([e for e in enrollments if e.status == EnrollmentStatus.COMPLETED])
    total_revenue = _succeeded_amount(enrollments)

    return {
        "course": {
            "id": course.id,
            "title": course.title,
            "price": float(course.price or 0),
            "currency": course.currency,
            "total_lessons": course.total_lessons,
        },
        "enrollment_stats": {
            "total_enrollments": total,
            "active_enrollments": len([e for e in enrollments if e.status == EnrollmentStatus.ACTIVE]),
            "completed_enrollments": completed,
            "completion_rate": percentage(completed, total),
            "average_progress": _average_progress(enrollments),
        },
        "revenue": {
            "total_revenue": total_revenue,
            "average_revenue_per_student": total_revenue / total if total else 0,
        },
        "recent_enrollments": [
            {
                "id": e.id,
                "user": {"id": e.user.id, "name": e.user.full_name, "email": e.user.email},
                "status": e.status.value,
                "progress": e.progress,
                "enrolled_at": e.enrolled_at.isoformat() if e.enrolled_at else None,
                "completed_at": e.completed_at.isoformat() if e.completed_at else None,
            }
            for e in _recent(enrollments)
        ],
    }


def get_user_analytics(user_id):
    user = db.session.get(User, user_id)
    if not user:
        raise NotFound(f"User with ID {user_id} not found")

    enrollments = user.enrollments
    total = len(enrollments)
    completed = len([e for e in enrollments if e.status == EnrollmentStatus.COMPLETED])
    certificates = [e.certificate for e in enrollments if e.certificate]
    total_spent = _succeeded_amount(enrollments)

    return {
        "user": {
            "id": user.id,
            "name": user.full_name,
            "email": user.email,
            "joined_at": user.created_at.isoformat() if user.created_at else None,
        },
        "enrollment_stats": {
            "total_enrollments": total,
            "active_enrollments": len([e for e in enrollments if e.status == EnrollmentStatus.ACTIVE]),
            "completed_enrollments": completed,
            "certificates": len(certificates),
            "completion_rate": percentage(completed, total),
            "average_progress": _average_progress(enrollments),
        },
        "financials": {
            "total_spent": total_spent,
            "average_course_price": total_spent / total if total else 0,
        },
        "recent_activity": [
            {
                "id": e.id,
                "course": {"id": e.course.id, "title": e.course.title, "slug": e.course.slug},
                "status": e.status.value,
                "progress": e.progress,
                "enrolled_at": e.enrolled_at.isoformat() if e.enrolled_at else None,
                "completed_at": e.completed_at.isoformat() if e.completed_at else None,
            }
            for e in _recent(enrollments)
        ],
        "certificates": [
            {
                "id": c.id,
                "certificate_number": c.certificate_number,
                "issued_at": c.issued_at.isoformat(),
                "course": {"id": c.enrollment.course.id, "title": c.enrollment.course.title},
            }
            for c in certificates
        ],
    }


def get_popular_courses(limit=10):
    enrollment_count = func.count(Enrollment.id).label("enrollment_count")
    completion_count = func.count(Enrollment.completed_at).label("completion_count")
    rows = (
        db.session.query(Course, enrollment_count, completion_count)
        .outerjoin(Enrollment, Enrollment.course_id == Course.id)
        .group_by(Course.id)
        .order_by(enrollment_count.desc(), Course.id)
        .limit(limit)
        .all()
    )

    return [
        {
            "id": course.id,
            "title": course.title,
            "slug": course.slug,
            "image_url": course.image_url,
            "price": float(course.price or 0),
            "currency": course.currency,
            "total_enrollments": enrollments,
            "completions": completions,
        }
        for course, enrollments, completions in rows
    ]


def get_revenue_stats(period="30d"):
    if period not in REVENUE_PERIODS:
        raise BadRequest(f"Invalid period '{period}', expected one of {', '.join(REVENUE_PERIODS)}")

    start = utcnow() - REVENUE_PERIODS[period]
    payments = (
        Payment.query.filter(Payment.status == PaymentStatus.SUCCEEDED, Payment.paid_at >= start)
        .order_by(Payment.paid_at.desc())
        .all()
    )

    total_revenue = sum(float(p.amount) for p in payments)

    daily = defaultdict(float)
    by_course = {}
    for p in payments:
        daily[p.paid_at.date().isoformat()] += float(p.amount)

        course = p.enrollment.course
        entry = by_course.setdefault(course.id, {
            "course_id": course.id,
            "course_name": course.title,
            "revenue": 0.0,
            "payments": 0,
        })
        entry["revenue"] += float(p.amount)
        entry["payments"] += 1

    top_courses = sorted(by_course.values(), key=lambda c: c["revenue"], reverse=True)

    return {
        "summary": {
            "total_revenue": total_revenue,
            "total_payments": len(payments),
            "average_order_value": total_revenue / len(payments) if payments else 0,
            "period": period,
        },
        "daily_revenue": [{"date": day, "revenue": revenue} for day, revenue in sorted(daily.items())],
        "top_courses": top_courses[:10],
    }
