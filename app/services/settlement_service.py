from datetime import datetime, timezone

from flask import current_app

from app.errors import AppError, UpstreamError
from app.extensions import db
from app.integrations import get_gateway
from app.models import Payment, Settlement
from app.models.base import from_minor_units


def _settled_at(created_at):
    if not created_at:
        return None
    return datetime.fromtimestamp(int(created_at), tz=timezone.utc)


def _transaction_payment_id(tx):
    source = tx.get("source")
    if isinstance(source, dict) and source.get("id"):
        return source["id"]
    return tx.get("entity_id")


class SettlementService:
    @staticmethod
    def _upsert(item):
        settlement = Settlement.query.filter_by(razorpay_settlement_id=item["id"]).first()
        if settlement is None:
            settlement = Settlement(razorpay_settlement_id=item["id"])
            db.session.add(settlement)
        settlement.amount = from_minor_units(item.get("amount"))
        settlement.fees = from_minor_units(item.get("fees"))
        settlement.tax = from_minor_units(item.get("tax"))
        settlement.utr = item.get("utr")
        settlement.status = item.get("status")
        settlement.settled_at = _settled_at(item.get("created_at"))
        return settlement

    @staticmethod
    def _mark_payments(gateway, settlement):
        try:
            transactions = gateway.settlement_transactions(
                settlement.razorpay_settlement_id, count=current_app.config["SETTLEMENT_TRANSACTION_COUNT"]
            )
        except AppError as exc:
            current_app.logger.warning(
                "Skipping transactions of settlement %s: %s", settlement.razorpay_settlement_id, exc.message
            )
            return 0

        updated = 0
        for tx in transactions:
            if tx.get("type") != "payment":
                continue
            payment_id = _transaction_payment_id(tx)
            if not payment_id:
                continue
            updated += Payment.query.filter_by(razorpay_payment_id=payment_id).update(
                {
                    Payment.status: "settled",
                    Payment.settlement_id: settlement.razorpay_settlement_id,
                    Payment.settled_at: settlement.settled_at,
                },
                synchronize_session=False,
            )
        return updated

    @staticmethod
    def sync():
        """Mirror recent gateway settlements and flip their payments to settled. Safe to re-run."""
        gateway = get_gateway()
        current_app.logger.info("Syncing settlements from Razorpay")
        try:
            items = gateway.list_settlements(count=current_app.config["SETTLEMENT_SYNC_COUNT"])
        except AppError as exc:
            current_app.logger.error("Settlement fetch failed: %s", exc.message)
            raise UpstreamError("Failed to fetch settlements") from exc

        synced = 0
        updated_payments = 0
        for item in items:
            if not item.get("id"):
                continue
            settlement = SettlementService._upsert(item)
            db.session.commit()
            synced += 1
            updated_payments += SettlementService._mark_payments(gateway, settlement)
            db.session.commit()

        current_app.logger.info("Synced %s settlements, updated %s payments", synced, updated_payments)
        return {"success": True, "synced_settlements": synced, "updated_payments": updated_payments}
