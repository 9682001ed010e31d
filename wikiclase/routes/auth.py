import hashlib
import hmac

from flask import Blueprint, current_app, jsonify, request

from wikiclase.errors import BadRequest, Unauthorized
from wikiclase.services import users as service
from wikiclase.utils.auth import role_required
from wikiclase.utils.params import json_body

bp = Blueprint("auth", __name__)


def _verify_identity_signature(payload):
    secret = current_app.config.get("IDENTITY_WEBHOOK_SECRET")
    if not secret:
        return

    signature = request.headers.get("X-Webhook-Signature", "")
    expected = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()
    if not signature or not hmac.compare_digest(expected, signature):
        raise Unauthorized("Invalid webhook signature")


@bp.route("/webhook", methods=["POST"])
def identity_webhook():
    """Sync users from identity provider events (user.created / updated / deleted)."""
    _verify_identity_signature(request.get_data())

    payload = json_body()
    if not payload.get("type"):
        raise BadRequest("Missing event type")

    current_app.logger.info(f"Identity webhook received: {payload.get('type')}")
    return jsonify(service.handle_identity_event(payload)), 200


@bp.route("/user/<external_id>", methods=["GET"])
def get_user(external_id):
    return jsonify(service.get_user_by_external_id(external_id).to_dict())


@bp.route("/user/<external_id>/role", methods=["POST"])
@role_required("ADMIN")
def update_role(external_id):
    data = json_body()
    role = data.get("role")
    if not role:
        return jsonify({"error": "Missing 'role'"}), 400

    user = service.update_user_role(external_id, str(role).upper())
    return jsonify(user.to_dict()), 200
