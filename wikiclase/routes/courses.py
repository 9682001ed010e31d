from flask import Blueprint, jsonify, request

from wikiclase.errors import BadRequest
from wikiclase.models import CourseStatus
from wikiclase.services import courses as service
from wikiclase.utils.auth import role_required
from wikiclase.utils.params import enum_arg, int_arg, json_body, pagination

bp = Blueprint("courses", __name__)


@bp.route("/", methods=["GET"])
def list_courses():
    skip, take = pagination()
    courses = service.list_courses(
        skip=skip,
        take=take,
        status=enum_arg("status", CourseStatus),
        instructor_id=int_arg("instructor_id"),
    )
    return jsonify([c.to_dict() for c in courses])


@bp.route("/", methods=["POST"])
def create_course():
    course = service.create_course(json_body())
    return jsonify(course.to_dict()), 201


@bp.route("/popular", methods=["GET"])
def popular_courses():
    courses = service.get_popular_courses(limit=int_arg("limit", 10, minimum=1, maximum=100))
    return jsonify([c.to_dict() for c in courses])


@bp.route("/search", methods=["GET"])
def search_courses():
    term = request.args.get("q", "").strip()
    if not term:
        raise BadRequest("Missing search term 'q'")
    return jsonify([c.to_dict() for c in service.search_courses(term)])


@bp.route("/slug/<slug>", methods=["GET"])
def get_course_by_slug(slug):
    return jsonify(service.get_course_by_slug(slug).to_dict(include_lessons=True))


@bp.route("/instructor/<int:instructor_id>", methods=["GET"])
def instructor_courses(instructor_id):
    return jsonify([c.to_dict() for c in service.get_courses_by_instructor(instructor_id)])


@bp.route("/<int:course_id>", methods=["GET"])
def get_course(course_id):
    return jsonify(service.get_course(course_id).to_dict(include_lessons=True))


@bp.route("/<int:course_id>/stats", methods=["GET"])
def course_stats(course_id):
    return jsonify(service.get_course_stats(course_id))


@bp.route("/<int:course_id>", methods=["PUT"])
def update_course(course_id):
    course = service.update_course(course_id, json_body())
    return jsonify(course.to_dict())


@bp.route("/<int:course_id>", methods=["DELETE"])
@role_required("ADMIN")
def delete_course(course_id):
    service.delete_course(course_id)
    return jsonify({"message": "Course deleted"}), 200


# Lessons

@bp.route("/<int:course_id>/lessons", methods=["POST"])
def create_lesson(course_id):
    lesson = service.create_lesson(course_id, json_body())
    return jsonify(lesson.to_dict()), 201


@bp.route("/lessons/<int:lesson_id>", methods=["PUT"])
def update_lesson(lesson_id):
    lesson = service.update_lesson(lesson_id, json_body())
    return jsonify(lesson.to_dict())


@bp.route("/lessons/<int:lesson_id>", methods=["DELETE"])
def delete_lesson(lesson_id):
    service.delete_lesson(lesson_id)
    return jsonify({"message": "Lesson deleted"}), 200
