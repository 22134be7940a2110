"""Tracking tokens handed to candidates by the portal lookup."""

import hashlib
import hmac

TOKEN_LENGTH = 32

DEFAULT_PORTAL_SECRET = "recruitment-portal-secret"


class PortalTokenSigner:
    """
    Issues and verifies candidate tracking tokens.

    A token is the first 32 hex characters of
    HMAC-SHA256(secret, "<email>:<candidate_id>"). Emails are lowercased
    before signing so lookups are case-insensitive.
    """

    def __init__(self, secret: str = DEFAULT_PORTAL_SECRET):
        if not secret:
            raise ValueError("portal secret cannot be empty")
        self._secret = secret.encode("utf-8")

    def issue(self, email: str, candidate_id: int) -> str:
        message = f"{email.strip().lower()}:{candidate_id}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()[:TOKEN_LENGTH]

    def verify(self, token: str, email: str, candidate_id: int) -> bool:
        if not isinstance(token, str) or len(token) != TOKEN_LENGTH:
            return False
        return hmac.compare_digest(token, self.issue(email, candidate_id))


def phone_last_digits(phone: str, count: int = 5) -> str:
    """Digits-only tail of a stored phone number ('' when too short)."""
    digits = "".join(ch for ch in (phone or "") if ch.isdigit())
    if len(digits) < count:
        return ""
    return digits[-count:]
