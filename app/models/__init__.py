from app.models.booking import Booking
from app.models.email_outbox import EmailOutbox
from app.models.otp import EmailOtp, OtpRateLimit, PhoneOtp, TestPhoneWhitelist
from app.models.payment import Payment
from app.models.penalty import CancellationPenalty
from app.models.platform_setting import PlatformSetting
from app.models.salon import Salon
from app.models.settlement import Settlement
from app.models.user import User
from app.models.wallet import Wallet, WalletTransaction

__all__ = [
    "User",
    "Salon",
    "Booking",
    "Payment",
    "Settlement",
    "Wallet",
    "WalletTransaction",
    "CancellationPenalty",
    "PhoneOtp",
    "EmailOtp",
    "OtpRateLimit",
    "TestPhoneWhitelist",
    "EmailOutbox",
    "PlatformSetting",
]
