from flask import current_app

from app.integrations.firebase import FirebaseIdentity
from app.integrations.mailer import MailerError, ResendMailer
from app.integrations.maps import MapboxGeocoder
from app.integrations.razorpay_gateway import RazorpayGateway, compute_signature, compute_webhook_signature
from app.integrations.sms import Fast2Sms, SmsDispatcher, TwilioSms, mask_phone


def init_integrations(app):
    """Build the outbound clients once per app; tests replace entries in ``app.extensions``."""
    timeout = app.config["HTTP_TIMEOUT_SECONDS"]
    logger = app.logger
    app.extensions["razorpay"] = RazorpayGateway(
        app.config.get("RAZORPAY_KEY_ID"),
        app.config.get("RAZORPAY_KEY_SECRET"),
        webhook_secret=app.config.get("RAZORPAY_WEBHOOK_SECRET"),
        logger=logger,
    )
    app.extensions["sms"] = SmsDispatcher(
        [
            TwilioSms(
                app.config.get("TWILIO_ACCOUNT_SID"),
                app.config.get("TWILIO_AUTH_TOKEN"),
                app.config.get("TWILIO_PHONE_NUMBER"),
                timeout=timeout,
                logger=logger,
            ),
            Fast2Sms(app.config.get("FAST2SMS_API_KEY"), timeout=timeout, logger=logger),
        ],
        logger=logger,
    )
    app.extensions["mailer"] = ResendMailer(
        app.config.get("RESEND_API_KEY"),
        app.config["EMAIL_FROM"],
        timeout=timeout,
        logger=logger,
    )
    app.extensions["maps"] = MapboxGeocoder(app.config.get("MAPBOX_TOKEN"), timeout=timeout, logger=logger)
    app.extensions["firebase"] = FirebaseIdentity(app.config.get("FIREBASE_WEB_API_KEY"), timeout=timeout, logger=logger)


def get_gateway():
    return current_app.extensions["razorpay"]


def get_sms():
    return current_app.extensions["sms"]


def get_mailer():
    return current_app.extensions["mailer"]


def get_maps():
    return current_app.extensions["maps"]


def get_firebase():
    return current_app.extensions["firebase"]


__all__ = [
    "FirebaseIdentity",
    "MailerError",
    "MapboxGeocoder",
    "RazorpayGateway",
    "ResendMailer",
    "SmsDispatcher",
    "compute_signature",
    "compute_webhook_signature",
    "get_firebase",
    "get_gateway",
    "get_mailer",
    "get_maps",
    "get_sms",
    "init_integrations",
    "mask_phone",
]
