from app.extensions import db
from app.models.base import PKType, TimestampMixin


class Wallet(TimestampMixin, db.Model):
    __tablename__ = "wallets"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)
    balance = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_earned = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total_spent = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    user = db.relationship("User", back_populates="wallet")
    transactions = db.relationship("WalletTransaction", back_populates="wallet", lazy="dynamic")


class WalletTransaction(TimestampMixin, db.Model):
    """Append-only ledger line. Never updated after insert."""

    __tablename__ = "wallet_transactions"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    wallet_id = db.Column(PKType, db.ForeignKey("wallets.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(PKType, db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = db.Column(db.Numeric(12, 2), nullable=False)
    type = db.Column(db.String(16), nullable=False)
    category = db.Column(db.String(32), nullable=False)
    description = db.Column(db.String(255), nullable=True)
    reference_id = db.Column(db.String(64), nullable=True, index=True)

    wallet = db.relationship("Wallet", back_populates="transactions")

    __table_args__ = (
        db.CheckConstraint("type IN ('credit', 'debit')", name="ck_wallet_tx_type"),
        db.UniqueConstraint("wallet_id", "reference_id", name="uq_wallet_tx_reference"),
    )
