import logging

from app.errors import AuthenticationError, ConfigurationError, UpstreamError
from app.integrations.http import HttpFailure, request_json


class FirebaseIdentity:
    lookup_url = "https://identitytoolkit.googleapis.com/v1/accounts:lookup"

    def __init__(self, api_key, timeout=10, logger=None):
        self.api_key = api_key
        self.timeout = timeout
        self.logger = logger or logging.getLogger(__name__)

    def lookup(self, id_token):
        """Resolve an ID token to its Firebase account, e.g. ``{"localId": ..., "phoneNumber": ...}``."""
        if not self.api_key:
            raise ConfigurationError("Firebase not configured")
        try:
            _status, payload = request_json(
                "POST",
                self.lookup_url,
                params={"key": self.api_key},
                json_body={"idToken": id_token},
                timeout=self.timeout,
            )
        except HttpFailure as exc:
            self.logger.error("Firebase lookup failed: %s", exc)
            raise UpstreamError("Failed to verify Firebase token") from exc

        payload = payload or {}
        if payload.get("error"):
            self.logger.warning("Firebase token verification failed: %s", payload["error"])
            message = (payload["error"] or {}).get("message", "unknown error")
            raise AuthenticationError(f"Invalid Firebase token: {message}")
        users = payload.get("users") or []
        if not users:
            raise AuthenticationError("Firebase user not found")
        return users[0]
