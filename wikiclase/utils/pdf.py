from flask import render_template, current_app


def render_certificate_pdf(certificate):
    """Render the certificate template into PDF bytes."""
    from weasyprint import HTML

    enrollment = certificate.enrollment
    student = enrollment.user
    course = enrollment.course
    completed_at = enrollment.completed_at or certificate.issued_at

    html = render_template(
        "certificate.html",
        platform_name=current_app.config.get("PLATFORM_NAME"),
        certificate_number=certificate.certificate_number,
        student_name=student.full_name,
        course_title=course.title,
        instructor_name=course.instructor.full_name if course.instructor else None,
        completed_on=completed_at.strftime("%B %d, %Y"),
    )
    return HTML(string=html).write_pdf()
