from app.extensions import db
from app.models.base import PKType, TimestampMixin

OUTBOX_STATUSES = {"pending", "sent", "failed", "skipped"}


class EmailOutbox(TimestampMixin, db.Model):
    __tablename__ = "email_outbox"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    kind = db.Column(db.String(32), nullable=False, index=True)
    recipient = db.Column(db.String(255), nullable=True)
    subject = db.Column(db.String(255), nullable=False)
    html = db.Column(db.Text, nullable=False)
    reference = db.Column(db.String(64), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    attempts = db.Column(db.Integer, nullable=False, default=0)
    last_error = db.Column(db.Text, nullable=True)
    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
