import json

from flask import Blueprint, jsonify, request, current_app

from wikiclase.errors import BadRequest
from wikiclase.services import payments as service
from wikiclase.utils import payment_gateway
from wikiclase.utils.auth import role_required
from wikiclase.utils.params import int_arg, json_body

bp = Blueprint("payments", __name__)


@bp.route("/checkout", methods=["POST"])
def create_checkout():
    """Open a checkout session and a pending enrollment for a paid course."""
    data = json_body()
    user_id = data.get("user_id")
    course_id = data.get("course_id")

    if not all([user_id, course_id]):
        return jsonify({"error": "Missing fields"}), 400

    result = service.create_checkout(
        user_id,
        course_id,
        success_url=data.get("success_url"),
        cancel_url=data.get("cancel_url"),
    )
    return jsonify(result), 201


@bp.route("/webhook", methods=["POST"])
def payment_webhook():
    payload = request.get_data()
    payment_gateway.verify_webhook_signature(payload, request.headers.get("Stripe-Signature"))

    try:
        event = json.loads(payload)
    except ValueError:
        raise BadRequest("Invalid webhook payload")
    if not isinstance(event, dict):
        raise BadRequest("Invalid webhook payload")

    current_app.logger.info(f"Payment webhook received: {event.get('type')} ({event.get('id')})")
    return jsonify(service.handle_webhook_event(event)), 200


@bp.route("/stats", methods=["GET"])
def payment_stats():
    return jsonify(service.get_payment_stats(course_id=int_arg("course_id"), user_id=int_arg("user_id")))


@bp.route("/<int:payment_id>", methods=["GET"])
def get_payment(payment_id):
    return jsonify(service.get_payment(payment_id).to_dict())


@bp.route("/session/<session_id>", methods=["GET"])
def get_payment_by_session(session_id):
    return jsonify(service.get_payment_by_session(session_id).to_dict())


@bp.route("/user/<int:user_id>", methods=["GET"])
def user_payments(user_id):
    return jsonify([p.to_dict() for p in service.get_user_payments(user_id)])


@bp.route("/course/<int:course_id>", methods=["GET"])
def course_payments(course_id):
    return jsonify([p.to_dict() for p in service.get_course_payments(course_id)])


@bp.route("/<int:payment_id>/refund", methods=["POST"])
@role_required("ADMIN")
def refund_payment(payment_id):
    data = json_body()
    result = service.refund(payment_id, amount=data.get("amount"), reason=data.get("reason"))
    return jsonify(result), 200
