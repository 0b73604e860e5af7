"""
auth/tokens.py -- Bearer token issuing and validation.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with JWT_SECRET_KEY and
       carry the identity id, username, email and one role entry per role,
       plus iss/aud/exp/iat/jti. Lifetime is fixed at 60 minutes.

  Validation checks signature, issuer, audience and expiry -- all four, every
       time. Dropping any one of them lets a token minted for a different
       service (or a stale one) through. Every failure surfaces as a single
       InvalidTokenError; the route layer turns that into a 401.

  Claim names follow the short JWT forms (nameid, unique_name, email, role)
       so standard bearer middleware on other stacks maps them to the usual
       identity/name/email/role claim types without configuration.

  Tokens are stateless and cannot be revoked before expiry. A denylist keyed
       by jti, consulted in validate(), is the extension point if revocation
       is ever needed.

  Misconfiguration (empty secret, issuer or audience) raises
       MisconfiguredSigningError at construction. The app builds its issuer
       during lifespan startup, so a broken deployment never serves requests.

Layer rule: no imports from api/, tasks/, or notes/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import JWTError, jwt

from auth.models import Claims, Identity

if TYPE_CHECKING:
    from core.config import Settings

_ALGORITHM = "HS256"
TOKEN_LIFETIME = timedelta(minutes=60)

_REQUIRED_CLAIMS = {
    "require_exp": True,
    "require_iat": True,
    "require_iss": True,
    "require_aud": True,
    "require_sub": True,
    "require_jti": True,
}


class MisconfiguredSigningError(RuntimeError):
    """Signing secret, issuer or audience is missing. Fatal at startup."""


class InvalidTokenError(Exception):
    """The token failed signature, issuer, audience, expiry or shape checks."""


class TokenIssuer:
    """Mints and validates signed bearer tokens.

    Usage:
        issuer = TokenIssuer.from_settings(get_settings())
        token = issuer.issue(identity, ["User"])
        claims = issuer.validate(token)
    """

    def __init__(self, secret_key: str, issuer: str, audience: str) -> None:
        missing = [
            name for name, value in (("secret", secret_key), ("issuer", issuer), ("audience", audience)) if not value
        ]
        if missing:
            raise MisconfiguredSigningError(f"Token signing is not configured: missing {', '.join(missing)}.")
        self._secret_key = secret_key
        self.issuer = issuer
        self.audience = audience

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenIssuer:
        return cls(settings.jwt_secret_key, settings.jwt_issuer, settings.jwt_audience)

    def issue(self, identity: Identity, roles: list[str] | set[str], issued_at: datetime | None = None) -> str:
        """Encode a signed token for the identity.

        Args:
            identity:  The authenticated identity (must have an id).
            roles:     Role names to embed, one `role` entry each.
            issued_at: Override for the issue time. Only tests pass this, to
                       mint already-expired tokens.
        """
        now = issued_at or datetime.now(timezone.utc)
        payload = {
            "sub": identity.id,
            "jti": str(uuid.uuid4()),
            "iat": int(now.timestamp()),
            "nameid": identity.id,
            "unique_name": identity.username,
            "email": identity.email,
            "role": sorted(roles),
            "iss": self.issuer,
            "aud": self.audience,
            "exp": int((now + TOKEN_LIFETIME).timestamp()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=_ALGORITHM)

    def validate(self, token: str) -> Claims:
        """Verify the token and return its claims.

        Raises InvalidTokenError on any failure: bad signature, wrong issuer,
        wrong audience, expired, or a payload missing identity claims.
        """
        try:
            payload = jwt.decode(
                token,
                self._secret_key,
                algorithms=[_ALGORITHM],
                audience=self.audience,
                issuer=self.issuer,
                options=_REQUIRED_CLAIMS,
            )
        except JWTError as exc:
            raise InvalidTokenError(str(exc)) from exc

        identity_id = payload.get("nameid") or payload.get("sub")
        username = payload.get("unique_name")
        if not identity_id or not username:
            raise InvalidTokenError("Token is missing identity claims.")

        roles = payload.get("role", [])
        if isinstance(roles, str):
            roles = [roles]
        return Claims(
            identity_id=identity_id,
            username=username,
            email=payload.get("email", ""),
            roles=frozenset(roles),
            token_id=payload["jti"],
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
        )
