"""Google OAuth credential lifecycle for the calendar integration.

Consent URL, code exchange, refresh, revoke, and building authenticated
credentials from a stored token set. Nothing here caches credentials between
calls: two requests that both see an expired token each refresh on their own.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional
import base64
import hashlib
import hmac
import logging
import os
import time

import httpx
import orjson
from google.auth.exceptions import RefreshError as GoogleRefreshError
from google.auth.exceptions import TransportError
from google.auth.transport.requests import Request
from google.oauth2 import id_token
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow

from app.core.config import settings

from .calendar_errors import (
    AuthExchangeError,
    AuthUrlError,
    RefreshError,
    RevokeError,
    TokenExpiredNoRefresh,
    TokenVerifyError,
)

logger = logging.getLogger(__name__)

# Google may hand back previously granted scopes alongside ours
# (include_granted_scopes); don't let oauthlib treat that as an error.
os.environ.setdefault("OAUTHLIB_RELAX_TOKEN_SCOPE", "1")

SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/calendar.readonly",
]

AUTH_URI = "https://accounts.google.com/o/oauth2/auth"
TOKEN_URI = "https://oauth2.googleapis.com/token"
REVOKE_URI = "https://oauth2.googleapis.com/revoke"

_SIGNED_STATE_PREFIX = "sig:"


@dataclass
class TokenSet:
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expiry_date: Optional[datetime] = None  # naive UTC
    scope: Optional[str] = None
    token_type: Optional[str] = None

    @property
    def expired(self) -> bool:
        return self.expiry_date is not None and self.expiry_date < datetime.utcnow()

    @classmethod
    def from_record(cls, record: Any) -> "TokenSet":
        return cls(
            access_token=record.access_token,
            refresh_token=record.refresh_token,
            expiry_date=record.expiry_date,
            scope=record.scope,
            token_type=record.token_type,
        )


class TokenManager:
    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        redirect_uri: Optional[str] = None,
    ) -> None:
        self.client_id = client_id if client_id is not None else settings.GOOGLE_CLIENT_ID
        self.client_secret = client_secret if client_secret is not None else settings.GOOGLE_CLIENT_SECRET
        self.redirect_uri = redirect_uri or settings.GOOGLE_REDIRECT_URI

    def _require_credentials(self, error_cls=AuthUrlError) -> None:
        if not self.client_id or not self.client_secret:
            logger.warning("Google Calendar credentials not configured")
            raise error_cls("Google Calendar credentials not configured")

    def _flow(self) -> Flow:
        return Flow.from_client_config(
            {
                "web": {
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "redirect_uris": [self.redirect_uri],
                    "auth_uri": AUTH_URI,
                    "token_uri": TOKEN_URI,
                }
            },
            scopes=SCOPES,
            redirect_uri=self.redirect_uri,
        )

    def _credentials(
        self,
        access_token: Optional[str],
        refresh_token: Optional[str],
        expiry: Optional[datetime],
    ) -> Credentials:
        return Credentials(
            token=access_token,
            refresh_token=refresh_token,
            token_uri=TOKEN_URI,
            client_id=self.client_id,
            client_secret=self.client_secret,
            scopes=SCOPES,
            expiry=expiry,
        )

    def generate_auth_url(self, state: Optional[str] = None) -> str:
        """Return the consent URL; always offline + forced consent so Google issues a refresh token."""
        self._require_credentials(AuthUrlError)
        try:
            auth_url, _ = self._flow().authorization_url(
                access_type="offline",
                include_granted_scopes="true",
                prompt="consent",
                state=state,
            )
        except Exception as exc:  # noqa: BLE001
            logger.error("Error generating auth URL: %s", exc, exc_info=True)
            raise AuthUrlError() from exc
        return auth_url

    def exchange_code(self, code: str) -> TokenSet:
        self._require_credentials(AuthExchangeError)
        flow = self._flow()
        try:
            flow.fetch_token(code=code)
        except Exception as exc:  # noqa: BLE001 - oauthlib raises a zoo of types
            logger.error("Error exchanging code for tokens: %s", exc)
            raise AuthExchangeError() from exc
        creds = flow.credentials
        if not creds.refresh_token:
            # prompt=consent should always yield one; keep going but make it visible
            logger.warning("Google OAuth flow returned no refresh token")
        scopes = getattr(creds, "granted_scopes", None) or creds.scopes or SCOPES
        return TokenSet(
            access_token=creds.token,
            refresh_token=creds.refresh_token,
            expiry_date=creds.expiry,
            scope=" ".join(scopes),
            token_type="Bearer",
        )

    def refresh_access_token(self, refresh_token: str) -> TokenSet:
        """Mint a new access token; the refresh token itself is not rotated."""
        creds = self._credentials(None, refresh_token, None)
        try:
            creds.refresh(Request())
        except (GoogleRefreshError, TransportError) as exc:
            logger.error("Error refreshing access token: %s", exc)
            raise RefreshError() from exc
        logger.info("Google Calendar access token refreshed")
        return TokenSet(
            access_token=creds.token,
            refresh_token=refresh_token,
            expiry_date=creds.expiry,
            scope=" ".join(creds.scopes or SCOPES),
            token_type="Bearer",
        )

    def get_authenticated_client(self, tokens: TokenSet) -> Credentials:
        if tokens.expired:
            if not tokens.refresh_token:
                raise TokenExpiredNoRefresh()
            refreshed = self.refresh_access_token(tokens.refresh_token)
            return self._credentials(
                refreshed.access_token,
                tokens.refresh_token,
                refreshed.expiry_date,
            )
        return self._credentials(tokens.access_token, tokens.refresh_token, tokens.expiry_date)

    def revoke_token(self, token: str) -> bool:
        try:
            response = httpx.post(
                REVOKE_URI,
                params={"token": token},
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=10.0,
            )
        except httpx.HTTPError as exc:
            logger.error("Error revoking token: %s", exc)
            raise RevokeError() from exc
        if response.status_code != 200:
            logger.error("Error revoking token: %s %s", response.status_code, response.text)
            raise RevokeError()
        return True

    def verify_id_token(self, token: str) -> dict:
        """Verify a Google-issued ID token against our client id and return its claims."""
        try:
            return id_token.verify_oauth2_token(token, Request(), audience=self.client_id)
        except (ValueError, TransportError) as exc:
            logger.error("Error verifying token: %s", exc)
            raise TokenVerifyError() from exc


# ─── OAuth state: which account started the consent flow ─────────────────────
def _b64_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64_decode(value: str) -> bytes:
    padding = "=" * (-len(value) % 4)
    return base64.urlsafe_b64decode(value + padding)


def encode_state(account_id: str) -> str:
    """Return a short‑lived HMAC-signed state embedding the account id.

    Payload shape: {"aid": <str>, "exp": epochSeconds}
    """
    exp = int(time.time()) + settings.OAUTH_STATE_TTL
    payload = orjson.dumps({"aid": account_id, "exp": exp})
    digest = hmac.new(settings.SECRET_KEY.encode("utf-8"), payload, hashlib.sha256).digest()
    return f"{_SIGNED_STATE_PREFIX}{_b64_encode(payload)}.{_b64_encode(digest)}"


def decode_state(token: str) -> str:
    """Verify and decode a signed state; return the account id or raise ValueError."""
    if not token or not token.startswith(_SIGNED_STATE_PREFIX):
        raise ValueError("not_signed")
    try:
        encoded_payload, encoded_digest = token[len(_SIGNED_STATE_PREFIX):].split(".", 1)
        payload = _b64_decode(encoded_payload)
        provided = _b64_decode(encoded_digest)
    except ValueError as exc:
        raise ValueError("malformed_state") from exc
    expected = hmac.new(settings.SECRET_KEY.encode("utf-8"), payload, hashlib.sha256).digest()
    if not hmac.compare_digest(expected, provided):
        raise ValueError("bad_signature")
    try:
        data = orjson.loads(payload)
    except orjson.JSONDecodeError as exc:
        raise ValueError("bad_payload") from exc
    if int(data.get("exp") or 0) <= int(time.time()):
        raise ValueError("expired")
    account_id = data.get("aid")
    if not isinstance(account_id, str) or not account_id:
        raise ValueError("missing_account")
    return account_id
