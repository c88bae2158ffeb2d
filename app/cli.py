from decimal import Decimal, InvalidOperation

import click

from app.extensions import db
from app.models import TestPhoneWhitelist, User
from app.models.platform_setting import PLATFORM_FEE_KEY
from app.models.user import USER_ROLES
from app.services import OtpService, PlatformService, ReceiptService, SettlementService
from app.services.otp_service import OTP_PATTERN


def register_cli(app):
    @app.cli.command("sync-settlements")
    def sync_settlements():
        """Pull recent Razorpay settlements and mark their payments settled."""
        result = SettlementService.sync()
        click.echo(
            f"Synced {result['synced_settlements']} settlements, updated {result['updated_payments']} payments"
        )

    @app.cli.command("dispatch-receipts")
    @click.option("--limit", default=100, show_default=True)
    def dispatch_receipts(limit):
        """Send queued payment receipts that have not gone out yet."""
        result = ReceiptService.dispatch_pending(limit=limit)
        click.echo(f"Attempted {result['attempted']} receipts, sent {result['sent']}")

    @app.cli.command("cleanup-otp")
    def cleanup_otp():
        """Delete stale OTP attempt records and expired codes."""
        click.echo(f"Removed {OtpService.cleanup_attempts()} rows")

    @app.cli.command("set-platform-fee")
    @click.argument("percentage")
    def set_platform_fee(percentage):
        """Set the commission percentage taken on service prices."""
        try:
            value = Decimal(percentage)
        except InvalidOperation as exc:
            raise click.ClickException("Percentage must be a number") from exc
        if not 0 <= value <= 100:
            raise click.ClickException("Percentage must be between 0 and 100")
        PlatformService.set_setting(PLATFORM_FEE_KEY, value, description="Platform fee on service price (%)")
        click.echo(f"Platform fee set to {PlatformService.fee_percentage()}%")

    @app.cli.command("whitelist-test-phone")
    @click.argument("phone")
    @click.argument("otp_code")
    @click.option("--disable", is_flag=True, help="Deactivate instead of adding.")
    def whitelist_test_phone(phone, otp_code, disable):
        """Give a review/test phone a fixed OTP that skips SMS delivery."""
        if not OTP_PATTERN.match(otp_code):
            raise click.ClickException("OTP code must be 6 digits")
        entry = TestPhoneWhitelist.query.filter_by(phone=phone).first()
        if entry is None:
            entry = TestPhoneWhitelist(phone=phone, otp_code=otp_code)
            db.session.add(entry)
        entry.otp_code = otp_code
        entry.is_active = not disable
        db.session.commit()
        click.echo(f"{phone} {'disabled' if disable else 'whitelisted'}")

    @app.cli.command("set-role")
    @click.argument("phone")
    @click.argument("role", type=click.Choice(sorted(USER_ROLES)))
    def set_role(phone, role):
        """Change the role of the user with this phone number (e.g. bootstrap an admin)."""
        user = User.query.filter_by(phone=phone).first()
        if not user:
            raise click.ClickException("User not found")
        user.role = role
        db.session.commit()
        click.echo(f"{phone} is now {role}")
