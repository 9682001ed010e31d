from flask import Blueprint, jsonify

from wikiclase.errors import BadRequest
from wikiclase.models import EnrollmentStatus
from wikiclase.services import enrollments as service
from wikiclase.utils.params import enum_arg, int_arg, json_body, pagination

bp = Blueprint("enrollments", __name__)


@bp.route("/", methods=["POST"])
def create_enrollment():
    data = json_body()
    user_id = data.get("user_id")
    course_id = data.get("course_id")

    if not all([user_id, course_id]):
        return jsonify({"error": "Missing fields: user_id, course_id"}), 400

    enrollment = service.enroll(user_id, course_id)
    return jsonify(enrollment.to_dict()), 201


@bp.route("/", methods=["GET"])
def list_enrollments():
    skip, take = pagination()
    enrollments = service.list_enrollments(
        skip=skip,
        take=take,
        user_id=int_arg("user_id"),
        course_id=int_arg("course_id"),
        status=enum_arg("status", EnrollmentStatus),
    )
    return jsonify([e.to_dict() for e in enrollments])


@bp.route("/stats", methods=["GET"])
def enrollment_stats():
    return jsonify(service.get_stats(course_id=int_arg("course_id"), user_id=int_arg("user_id")))


@bp.route("/<int:enrollment_id>", methods=["GET"])
def get_enrollment(enrollment_id):
    return jsonify(service.get_enrollment(enrollment_id).to_dict(include_lessons=True))


@bp.route("/user/<int:user_id>", methods=["GET"])
def user_enrollments(user_id):
    enrollments = service.get_user_enrollments(user_id, status=enum_arg("status", EnrollmentStatus))
    return jsonify([e.to_dict(include_lessons=True) for e in enrollments])


@bp.route("/course/<int:course_id>", methods=["GET"])
def course_enrollments(course_id):
    enrollments = service.get_course_enrollments(course_id, status=enum_arg("status", EnrollmentStatus))
    return jsonify([e.to_dict() for e in enrollments])


@bp.route("/<int:enrollment_id>", methods=["PUT"])
def update_enrollment(enrollment_id):
    data = json_body()
    if "status" not in data:
        return jsonify({"error": "Missing 'status'"}), 400

    enrollment = service.update_enrollment(enrollment_id, str(data["status"]).upper())
    return jsonify(enrollment.to_dict())


@bp.route("/<int:enrollment_id>/progress", methods=["PUT"])
def update_progress(enrollment_id):
    data = json_body()
    if "progress" not in data:
        raise BadRequest("Missing 'progress'")

    enrollment = service.update_progress(enrollment_id, data["progress"])
    return jsonify(enrollment.to_dict())


@bp.route("/<int:enrollment_id>/lessons/<int:lesson_id>/complete", methods=["POST"])
def complete_lesson(enrollment_id, lesson_id):
    lesson_progress, enrollment = service.complete_lesson(enrollment_id, lesson_id)
    return jsonify({
        "lesson_progress": lesson_progress.to_dict(),
        "enrollment": enrollment.to_dict(),
    })


@bp.route("/<int:enrollment_id>", methods=["DELETE"])
def delete_enrollment(enrollment_id):
    service.remove_enrollment(enrollment_id)
    return jsonify({"message": "Enrollment deleted"}), 200
