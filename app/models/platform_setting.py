from app.extensions import db
from app.models.base import TimestampMixin

PLATFORM_FEE_KEY = "platform_fee_pct"


class PlatformSetting(TimestampMixin, db.Model):
    """Operator-tunable key/value pairs, e.g. the commission taken on service prices."""

    __tablename__ = "platform_settings"

    key = db.Column(db.String(64), primary_key=True)
    value = db.Column(db.String(255), nullable=False)
    description = db.Column(db.String(255), nullable=True)
