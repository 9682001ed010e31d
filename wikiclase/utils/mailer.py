from flask import current_app
from flask_mail import Message

from wikiclase.extensions import mail


def send_email(to, subject, body, html=None):
    """Generic email sender function that ensures the sender doesn't receive copies."""

    sender = current_app.config.get("MAIL_DEFAULT_SENDER")

    if to == sender or (isinstance(to, list) and sender in to):
        current_app.logger.info(f"Skipped sending email to sender address: {sender}")
        return False

    msg = Message(
        subject=subject,
        recipients=[to] if isinstance(to, str) else to,
        sender=sender,
    )
    msg.body = body
    if html:
        msg.html = html

    mail.send(msg)
    current_app.logger.info(f"Email sent successfully to {to}")
    return True
