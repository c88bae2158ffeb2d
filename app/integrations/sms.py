import logging

from twilio.base.exceptions import TwilioException
from twilio.http.http_client import TwilioHttpClient
from twilio.rest import Client

from app.integrations.http import HttpFailure, request_json

OTP_MESSAGE = "Your Grumming verification code is: {otp}. Valid for 5 minutes. Do not share this code."


def mask_phone(phone):
    phone = phone or ""
    if len(phone) <= 6:
        return "***"
    return phone[:5] + "***" + phone[-2:]


class TwilioSms:
    name = "Twilio"

    def __init__(self, account_sid, auth_token, from_number, timeout=10, logger=None):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)
        self._client = None

    @property
    def is_configured(self):
        return bool(self.account_sid and self.auth_token and self.from_number)

    def client(self):
        if self._client is None:
            self._client = Client(
                self.account_sid, self.auth_token, http_client=TwilioHttpClient(timeout=self.timeout)
            )
        return self._client

    def send(self, phone, body):
        if not self.is_configured:
            self.logger.info("Twilio credentials not configured, skipping Twilio")
            return False
        # requests' transport errors are OSError subclasses.
        try:
            message = self.client().messages.create(to=phone, from_=self.from_number, body=body)
        except (TwilioException, OSError) as exc:
            self.logger.error("Error sending SMS via Twilio: %s", exc)
            return False
        if getattr(message, "sid", None):
            return True
        self.logger.error("Twilio accepted no message for %s", mask_phone(phone))
        return False


class Fast2Sms:
    name = "Fast2SMS"

    def __init__(self, api_key, timeout=10, logger=None):
        self.api_key = api_key
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    @property
    def is_configured(self):
        return bool(self.api_key)

    def send(self, phone, body):
        if not self.is_configured:
            self.logger.info("FAST2SMS_API_KEY not configured, skipping Fast2SMS")
            return False
        # Fast2SMS wants the bare 10-digit national number.
        number = "".join(ch for ch in phone.replace("+91", "", 1) if ch.isdigit())
        if len(number) != 10:
            self.logger.error("Invalid phone number length for Fast2SMS")
            return False
        try:
            status, payload = request_json(
                "POST",
                "https://www.fast2sms.com/dev/bulkV2",
                headers={"authorization": self.api_key},
                json_body={"route": "q", "message": body, "language": "english", "flash": 0, "numbers": number},
                timeout=self.timeout,
            )
        except HttpFailure as exc:
            self.logger.error("Error sending SMS via Fast2SMS: %s", exc)
            return False
        result = (payload or {}).get("return")
        if result is True or result == "true":
            return True
        self.logger.error("Fast2SMS error %s: %s", status, (payload or {}).get("status_code", "unknown"))
        return False


class SmsDispatcher:
    """Tries each provider in order and stops at the first that accepts the message."""

    def __init__(self, providers, logger=None):
        self.providers = list(providers)
        self.logger = logger or logging.getLogger(__name__)

    def send_otp(self, phone, otp):
        body = OTP_MESSAGE.format(otp=otp)
        for provider in self.providers:
            if provider.send(phone, body):
                self.logger.info("SMS sent to %s via %s", mask_phone(phone), provider.name)
                return provider.name
        self.logger.error("All SMS providers failed for %s", mask_phone(phone))
        return None
