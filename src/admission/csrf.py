"""
Double-submit CSRF protection.

The token lives in a script-readable cookie so server-rendered forms and
client code can echo it back through the ``X-CSRF-Token`` header or the
``csrf_token`` form field.
"""
from __future__ import annotations

import base64
import hmac
import html
import secrets
from typing import Optional, Tuple

CSRF_COOKIE_NAME = "csrf_token"
CSRF_HEADER_NAME = "X-CSRF-Token"
CSRF_FORM_FIELD = "csrf_token"
CSRF_TOKEN_BYTES = 32
CSRF_COOKIE_MAX_AGE = 8 * 3600

STATE_CHANGING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def generate_csrf_token() -> str:
    """32 random bytes, base64url encoded (padded)."""
    return base64.urlsafe_b64encode(secrets.token_bytes(CSRF_TOKEN_BYTES)).decode("ascii")


def csrf_hidden_input(token: str) -> str:
    """Hidden form field carrying ``token``; empty when there is no token."""
    if not token:
        return ""
    return f'<input type="hidden" name="{CSRF_FORM_FIELD}" value="{html.escape(token, quote=True)}">'


class CSRFGuard:
    def ensure_token(self, cookie_token: Optional[str]) -> Tuple[str, bool]:
        """Return (token, issued); ``issued`` is True when a new cookie must be set."""
        if cookie_token:
            return cookie_token, False
        return generate_csrf_token(), True

    def verify(
        self,
        method: str,
        cookie_token: str,
        header_token: Optional[str],
        form_token: Optional[str],
    ) -> bool:
        """
        Safe methods always pass. State-changing methods must echo the cookie
        value exactly, via the header or (when the header is absent) the form field.
        """
        if method.upper() not in STATE_CHANGING_METHODS:
            return True
        submitted = header_token or form_token
        if not submitted or not cookie_token:
            return False
        return hmac.compare_digest(submitted.encode("utf-8"), cookie_token.encode("utf-8"))
