"""Checkout, webhook reconciliation and refunds.

Payment and Enrollment status always change together inside one
``transaction()`` so a crash can never leave them disagreeing.
"""
from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from wikiclase.errors import BadRequest, Conflict, NotFound
from wikiclase.extensions import db
from wikiclase.models import Course, Enrollment, EnrollmentStatus, Payment, PaymentStatus, User
from wikiclase.services.enrollments import can_transition, find_enrollment
from wikiclase.utils import payment_gateway
from wikiclase.utils.dates import utcnow
from wikiclase.utils.db import transaction
from wikiclase.utils.numbers import percentage

CHECKOUT_SESSION_COMPLETED = "checkout.session.completed"
PAYMENT_INTENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_INTENT_FAILED = "payment_intent.payment_failed"


def create_checkout(user_id, course_id, success_url, cancel_url):
    course = db.session.get(Course, course_id)
    if not course:
        raise NotFound(f"Course with ID {course_id} not found")

    user = db.session.get(User, user_id)
    if not user:
        raise NotFound(f"User with ID {user_id} not found")

    if find_enrollment(user_id, course_id):
        raise Conflict("User is already enrolled in this course")

    if course.is_free:
        raise BadRequest("This course is free, enroll directly")

    if not success_url or not cancel_url:
        raise BadRequest("success_url and cancel_url are required")

    session_data = payment_gateway.create_checkout_session(course, user, success_url, cancel_url)

    enrollment = Enrollment(user_id=user_id, course_id=course_id, status=EnrollmentStatus.PENDING, progress=0)
    payment = Payment(
        enrollment=enrollment,
        amount=course.price,
        currency=course.currency,
        status=PaymentStatus.PENDING,
        session_id=session_data["id"],
    )
    try:
        with transaction() as session:
            session.add(enrollment)
            session.add(payment)
    except IntegrityError:
        raise Conflict("User is already enrolled in this course")

    current_app.logger.info(
        f"Checkout session {payment.session_id} created for user {user_id} on course {course_id}"
    )

    return {
        "session_id": payment.session_id,
        "payment_url": session_data.get("url"),
        "payment_id": payment.id,
        "enrollment_id": enrollment.id,
    }


def handle_webhook_event(event):
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}

    if event_type == CHECKOUT_SESSION_COMPLETED:
        payment = _find_payment(session_id=obj.get("id"))
        _mark_succeeded(payment, payment_intent_id=obj.get("payment_intent"), receipt_url=obj.get("receipt_url"))
    elif event_type == PAYMENT_INTENT_SUCCEEDED:
        payment = _find_payment(payment_intent_id=obj.get("id"))
        _mark_succeeded(payment, receipt_url=_charge_receipt(obj))
    elif event_type == PAYMENT_INTENT_FAILED:
        payment = _find_payment(payment_intent_id=obj.get("id"))
        _mark_failed(payment)
    else:
        current_app.logger.info(f"Unhandled payment event type: {event_type}")
        return {"received": True}

    return {"received": True, "payment_id": payment.id, "status": payment.status.value}


def _charge_receipt(payment_intent):
    charges = (payment_intent.get("charges") or {}).get("data") or []
    return charges[0].get("receipt_url") if charges else None


def _find_payment(session_id=None, payment_intent_id=None):
    payment = None
    if session_id:
        payment = Payment.query.filter_by(session_id=session_id).first()
    elif payment_intent_id:
        payment = Payment.query.filter_by(payment_intent_id=payment_intent_id).first()

    if not payment:
        current_app.logger.warning(
            f"No payment matches session={session_id} payment_intent={payment_intent_id}"
        )
        raise NotFound("Payment not found")
    return payment


def _mark_succeeded(payment, payment_intent_id=None, receipt_url=None):
    if payment.status == PaymentStatus.SUCCEEDED:
        current_app.logger.info(f"Payment {payment.id} already succeeded, ignoring duplicate event")
        return payment

    if payment.status == PaymentStatus.REFUNDED:
        current_app.logger.warning(f"Payment {payment.id} was refunded, ignoring success event")
        return payment

    enrollment = payment.enrollment
    with transaction():
        payment.status = PaymentStatus.SUCCEEDED
        payment.paid_at = utcnow()
        if payment_intent_id:
            payment.payment_intent_id = payment_intent_id
        if receipt_url:
            payment.receipt_url = receipt_url

        if enrollment.status == EnrollmentStatus.PENDING:
            enrollment.status = EnrollmentStatus.ACTIVE
        elif enrollment.status == EnrollmentStatus.CANCELLED:
            current_app.logger.warning(
                f"Payment {payment.id} succeeded but enrollment {enrollment.id} is cancelled"
            )

    current_app.logger.info(f"Payment {payment.id} succeeded, enrollment {enrollment.id} is {enrollment.status.value}")
    return payment


def _mark_failed(payment):
    if payment.status in (PaymentStatus.SUCCEEDED, PaymentStatus.REFUNDED):
        current_app.logger.warning(
            f"Ignoring stale failure event for payment {payment.id} ({payment.status.value})"
        )
        return payment

    enrollment = payment.enrollment
    with transaction():
        payment.status = PaymentStatus.FAILED
        if can_transition(enrollment.status, EnrollmentStatus.CANCELLED):
            enrollment.status = EnrollmentStatus.CANCELLED

    current_app.logger.info(f"Payment {payment.id} failed, enrollment {enrollment.id} is {enrollment.status.value}")
    return payment


def refund(payment_id, amount=None, reason=None):
    payment = get_payment(payment_id)

    if payment.status != PaymentStatus.SUCCEEDED:
        raise BadRequest("Only successful payments can be refunded")

    if not payment.payment_intent_id:
        raise BadRequest("Payment has no associated payment intent")

    if amount is None:
        refund_amount = payment.amount
    else:
        try:
            refund_amount = Decimal(str(amount))
        except InvalidOperation:
            raise BadRequest("Refund amount must be a number")
        if not refund_amount.is_finite():
            raise BadRequest("Refund amount must be a number")
        if refund_amount <= 0 or refund_amount > payment.amount:
            raise BadRequest("Refund amount must be greater than 0 and at most the amount paid")

    result = payment_gateway.create_refund(payment.payment_intent_id, refund_amount, reason)

    enrollment = payment.enrollment
    with transaction():
        payment.status = PaymentStatus.REFUNDED
        payment.refund_id = result.get("id")
        payment.refunded_at = utcnow()
        if can_transition(enrollment.status, EnrollmentStatus.CANCELLED):
            enrollment.status = EnrollmentStatus.CANCELLED

    current_app.logger.info(f"Payment {payment.id} refunded ({refund_amount} {payment.currency})")

    return {
        "refund_id": result.get("id"),
        "amount": float(refund_amount),
        "status": result.get("status"),
        "payment": payment.to_dict(),
    }


def get_payment(payment_id):
    payment = db.session.get(Payment, payment_id)
    if not payment:
        raise NotFound(f"Payment with ID {payment_id} not found")
    return payment


def get_payment_by_session(session_id):
    payment = Payment.query.filter_by(session_id=session_id).first()
    if not payment:
        raise NotFound(f"Payment with session ID {session_id} not found")
    return payment


def get_user_payments(user_id):
    return (
        Payment.query.join(Enrollment, Enrollment.id == Payment.enrollment_id)
        .filter(Enrollment.user_id == user_id)
        .order_by(Payment.created_at.desc())
        .all()
    )


def get_course_payments(course_id):
    return (
        Payment.query.join(Enrollment, Enrollment.id == Payment.enrollment_id)
        .filter(Enrollment.course_id == course_id)
        .order_by(Payment.created_at.desc())
        .all()
    )


def get_payment_stats(course_id=None, user_id=None):
    query = db.session.query(Payment.status, func.count(Payment.id), func.sum(Payment.amount)).join(
        Enrollment, Enrollment.id == Payment.enrollment_id
    )
    if course_id is not None:
        query = query.filter(Enrollment.course_id == course_id)
    if user_id is not None:
        query = query.filter(Enrollment.user_id == user_id)

    counts = {status: 0 for status in PaymentStatus}
    revenue = 0
    for status, count, total in query.group_by(Payment.status).all():
        counts[status] = count
        if status == PaymentStatus.SUCCEEDED:
            revenue = float(total or 0)

    total_payments = sum(counts.values())

    return {
        "total_payments": total_payments,
        "successful_payments": counts[PaymentStatus.SUCCEEDED],
        "failed_payments": counts[PaymentStatus.FAILED],
        "refunded_payments": counts[PaymentStatus.REFUNDED],
        "pending_payments": counts[PaymentStatus.PENDING],
        "total_revenue": revenue,
        "success_rate": percentage(counts[PaymentStatus.SUCCEEDED], total_payments),
    }
