from wikiclase.extensions import db
from wikiclase.models.enums import PaymentStatus
from wikiclase.utils.dates import utcnow


class Payment(db.Model):
    __tablename__ = "payment"

    id = db.Column(db.Integer, primary_key=True)
    enrollment_id = db.Column(db.Integer, db.ForeignKey("enrollment.id", ondelete="CASCADE"), unique=True, nullable=False)
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(3), nullable=False, default="USD")
    status = db.Column(db.Enum(PaymentStatus, name="payment_status"), nullable=False, default=PaymentStatus.PENDING)
    session_id = db.Column(db.String(255), unique=True, nullable=True)
    payment_intent_id = db.Column(db.String(255), unique=True, nullable=True)
    receipt_url = db.Column(db.String(500), nullable=True)
    refund_id = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    paid_at = db.Column(db.DateTime, nullable=True)
    refunded_at = db.Column(db.DateTime, nullable=True)

    enrollment = db.relationship("Enrollment", back_populates="payment")

    def to_dict(self):
        return {
            "id": self.id,
            "enrollment_id": self.enrollment_id,
            "amount": float(self.amount),
            "currency": self.currency,
            "status": self.status.value,
            "session_id": self.session_id,
            "payment_intent_id": self.payment_intent_id,
            "receipt_url": self.receipt_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "refunded_at": self.refunded_at.isoformat() if self.refunded_at else None,
        }
