"""JWT bearer tokens for BWS client authentication (PyJWT).

Por qué un adapter:
- La firma HMAC es un detalle de infraestructura (PyJWT); el Core solo ve el
  string opaco que viaja en `Authorization: Bearer ...`.
"""

from __future__ import annotations

import base64
import binascii
import logging
import time
from datetime import datetime, timedelta, timezone

import jwt

from core.config import AppSettings, TokenPolicy
from core.errors import InvalidKeyEncoding, InvalidTtl

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS = ("HS256", "HS512")
DEFAULT_AUDIENCE = "BWS"


def decode_signing_key(signing_key_b64: str) -> bytes:
    """Strict base64 decoding; a partially decodable key is rejected."""

    if not signing_key_b64 or not signing_key_b64.strip():
        raise InvalidKeyEncoding("The signing key is empty.")
    try:
        return base64.b64decode(signing_key_b64.strip(), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidKeyEncoding(f"The signing key is not valid base64: {exc}") from exc


class TokenIssuer:
    """Builds compact HMAC-signed JWTs.

    A pure function of its inputs plus wall-clock time: two calls at different
    times produce different, independently valid tokens.
    """

    def __init__(self, *, algorithm: str = "HS256", audience: str = DEFAULT_AUDIENCE) -> None:
        if algorithm not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"Unsupported algorithm {algorithm!r}, use one of {SUPPORTED_ALGORITHMS}")
        self.algorithm = algorithm
        self.audience = audience

    @classmethod
    def from_settings(cls, settings: AppSettings) -> "TokenIssuer":
        return cls(algorithm=settings.token_algorithm, audience=settings.token_audience)

    def issue(self, client_id: str, signing_key_b64: str, ttl_minutes: int) -> str:
        """Issue a token for `client_id` signed with the base64 encoded key."""

        return self.issue_with_key(client_id, decode_signing_key(signing_key_b64), ttl_minutes)

    def issue_with_key(
        self,
        client_id: str,
        signing_key: bytes,
        ttl_minutes: int,
        *,
        issuer: str | None = None,
    ) -> str:
        if ttl_minutes <= 0:
            raise InvalidTtl(f"Token lifetime must be positive, got {ttl_minutes} minutes.")

        now = datetime.now(tz=timezone.utc)
        claims = {
            "sub": client_id,
            "iss": issuer or client_id,
            "aud": self.audience,
            "iat": now,
            "nbf": now,
            "exp": now + timedelta(minutes=ttl_minutes),
        }
        token = jwt.encode(claims, signing_key, algorithm=self.algorithm)
        logger.debug("Issued %s token for %s, valid %d min", self.algorithm, client_id, ttl_minutes)
        return token


class BearerTokenSource:
    """Supplies the bearer token for every call of one client/channel.

    With the `fixed` policy the token captured at construction is reused
    unchanged for the client's whole lifetime, so its expiry must outlast
    every call made through the client. The `refresh` policy re-issues the
    token once it is within `refresh_margin_seconds` of expiry.
    """

    def __init__(
        self,
        issuer: TokenIssuer,
        client_id: str,
        signing_key: bytes,
        *,
        ttl_minutes: int,
        policy: TokenPolicy = TokenPolicy.FIXED,
        refresh_margin_seconds: int = 60,
    ) -> None:
        self._issuer = issuer
        self._client_id = client_id
        self._signing_key = signing_key
        self._ttl_minutes = ttl_minutes
        self._policy = policy
        self._margin = refresh_margin_seconds
        self._token, self._expires_at = self._mint()

    @classmethod
    def from_settings(cls, settings: AppSettings, client_id: str, signing_key: bytes) -> "BearerTokenSource":
        return cls(
            TokenIssuer.from_settings(settings),
            client_id,
            signing_key,
            ttl_minutes=settings.token_ttl_minutes,
            policy=settings.token_policy,
            refresh_margin_seconds=settings.token_refresh_margin_seconds,
        )

    def _mint(self) -> tuple[str, float]:
        token = self._issuer.issue_with_key(self._client_id, self._signing_key, self._ttl_minutes)
        return token, time.time() + self._ttl_minutes * 60

    @property
    def policy(self) -> TokenPolicy:
        return self._policy

    def token(self) -> str:
        if self._policy is TokenPolicy.REFRESH and time.time() >= self._expires_at - self._margin:
            logger.info("Bearer token close to expiry, issuing a new one")
            self._token, self._expires_at = self._mint()
        return self._token

    def authorization(self) -> str:
        return f"Bearer {self.token()}"
