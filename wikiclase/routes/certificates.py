import io

from flask import Blueprint, jsonify, send_file

from wikiclase.services import certificates as service
from wikiclase.utils.params import json_body
from wikiclase.utils.pdf import render_certificate_pdf

bp = Blueprint("certificates", __name__)


@bp.route("/", methods=["POST"])
def issue_certificate():
    data = json_body()
    enrollment_id = data.get("enrollment_id")
    if not enrollment_id:
        return jsonify({"error": "Enrollment ID is required"}), 400

    certificate = service.issue_certificate(enrollment_id)
    return jsonify(certificate.to_dict()), 201


@bp.route("/stats", methods=["GET"])
def certificate_stats():
    return jsonify(service.get_certificate_stats())


@bp.route("/<int:certificate_id>", methods=["GET"])
def get_certificate(certificate_id):
    certificate = service.get_certificate(certificate_id)
    data = certificate.to_dict()
    data["student"] = certificate.enrollment.user.full_name
    data["course"] = certificate.enrollment.course.title
    return jsonify(data)


@bp.route("/<int:certificate_id>/download", methods=["GET"])
def download_certificate(certificate_id):
    certificate = service.get_certificate(certificate_id)
    pdf = render_certificate_pdf(certificate)

    return send_file(
        io.BytesIO(pdf),
        download_name=f"certificate-{certificate.certificate_number}.pdf",
        as_attachment=True,
        mimetype="application/pdf",
    )


@bp.route("/user/<int:user_id>", methods=["GET"])
def user_certificates(user_id):
    return jsonify([c.to_dict() for c in service.get_user_certificates(user_id)])


@bp.route("/course/<int:course_id>", methods=["GET"])
def course_certificates(course_id):
    return jsonify([c.to_dict() for c in service.get_course_certificates(course_id)])


@bp.route("/verify/<certificate_number>", methods=["GET"])
def verify_certificate(certificate_number):
    return jsonify(service.verify_certificate(certificate_number))
