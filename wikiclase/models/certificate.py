from wikiclase.extensions import db
from wikiclase.utils.dates import utcnow


class Certificate(db.Model):
    __tablename__ = "certificate"

    id = db.Column(db.Integer, primary_key=True)
    enrollment_id = db.Column(db.Integer, db.ForeignKey("enrollment.id", ondelete="CASCADE"), unique=True, nullable=False)
    certificate_number = db.Column(db.String(32), unique=True, nullable=False)
    issued_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    enrollment = db.relationship("Enrollment", back_populates="certificate")

    def to_dict(self):
        return {
            "id": self.id,
            "enrollment_id": self.enrollment_id,
            "certificate_number": self.certificate_number,
            "issued_at": self.issued_at.isoformat() if self.issued_at else None,
        }


class CertificateCounter(db.Model):
    """Last sequence handed out per calendar month (``YYYYMM``)."""

    __tablename__ = "certificate_counter"

    period = db.Column(db.String(6), primary_key=True)
    last_value = db.Column(db.Integer, nullable=False, default=0)
