from flask import Blueprint, jsonify, request

from wikiclase.errors import BadRequest
from wikiclase.models import EnrollmentStatus
from wikiclase.services import users as service
from wikiclase.services.enrollments import get_user_enrollments
from wikiclase.utils.auth import role_required
from wikiclase.utils.params import enum_arg, int_arg, json_body

bp = Blueprint("users", __name__)


@bp.route("/", methods=["GET"])
def list_users():
    return jsonify([u.to_dict() for u in service.list_users()])


@bp.route("/search", methods=["GET"])
def search_users():
    term = request.args.get("q", "").strip()
    if not term:
        raise BadRequest("Missing search term 'q'")
    users = service.search_users(term, limit=int_arg("limit", 10, minimum=1, maximum=100))
    return jsonify([u.to_dict() for u in users])


@bp.route("/email/<email>", methods=["GET"])
def get_user_by_email(email):
    return jsonify(service.get_user_by_email(email).to_dict())


@bp.route("/<int:user_id>", methods=["GET"])
def get_user(user_id):
    return jsonify(service.get_user(user_id).to_dict())


@bp.route("/<int:user_id>/enrollments", methods=["GET"])
def user_enrollments(user_id):
    service.get_user(user_id)
    enrollments = get_user_enrollments(user_id, status=enum_arg("status", EnrollmentStatus))
    return jsonify([e.to_dict() for e in enrollments])


@bp.route("/<int:user_id>/courses", methods=["GET"])
def courses_created(user_id):
    return jsonify([c.to_dict() for c in service.get_courses_created(user_id)])


@bp.route("/<int:user_id>/progress", methods=["GET"])
def user_progress(user_id):
    return jsonify(service.get_user_progress(user_id, course_id=int_arg("course_id")))


@bp.route("/<int:user_id>", methods=["PUT"])
def update_user(user_id):
    user = service.update_user(user_id, json_body())
    return jsonify(user.to_dict())


@bp.route("/<int:user_id>", methods=["DELETE"])
@role_required("ADMIN")
def delete_user(user_id):
    service.delete_user(user_id)
    return jsonify({"message": "User deleted"}), 200
