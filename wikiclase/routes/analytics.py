from flask import Blueprint, jsonify, request

from wikiclase.services import analytics as service
from wikiclase.utils.auth import role_required
from wikiclase.utils.params import int_arg

bp = Blueprint("analytics", __name__)


@bp.route("/dashboard", methods=["GET"])
@role_required("ADMIN")
def dashboard():
    """Return analytics summary for the admin dashboard"""
    return jsonify(service.get_dashboard_stats()), 200


@bp.route("/courses/popular", methods=["GET"])
@role_required("ADMIN")
def popular_courses():
    return jsonify(service.get_popular_courses(limit=int_arg("limit", 10, minimum=1, maximum=100)))


@bp.route("/courses/<int:course_id>", methods=["GET"])
@role_required("ADMIN")
def course_analytics(course_id):
    return jsonify(service.get_course_analytics(course_id))


@bp.route("/users/<int:user_id>", methods=["GET"])
@role_required("ADMIN")
def user_analytics(user_id):
    return jsonify(service.get_user_analytics(user_id))


@bp.route("/revenue", methods=["GET"])
@role_required("ADMIN")
def revenue():
    return jsonify(service.get_revenue_stats(request.args.get("period", "30d")))
