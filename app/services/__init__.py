from app.services.auth_service import AuthService
from app.services.geo_service import GeoService
from app.services.otp_service import OtpService
from app.services.payment_service import PaymentService
from app.services.platform_service import PlatformService
from app.services.receipt_service import ReceiptService
from app.services.settlement_service import SettlementService
from app.services.wallet_service import WalletService

__all__ = [
    "AuthService",
    "GeoService",
    "OtpService",
    "PaymentService",
    "PlatformService",
    "ReceiptService",
    "SettlementService",
    "WalletService",
]
