"""JWT access token validation (ES256).

The identity provider issues the tokens; this service only verifies
them against the provider's public key (JWT_PUBLIC_KEY).  Without a
configured key, dev and test runs generate an ephemeral key pair, and
create_access_token mints tokens signed by it for local runs and the
test suite.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime, timedelta

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from app.core.config import SETTINGS

ALGORITHM = "ES256"
ISSUER = SETTINGS.jwt_issuer
AUDIENCE = SETTINGS.jwt_audience
ACCESS_TOKEN_TTL_MIN = 15


def load_public_key(pem: str) -> ec.EllipticCurvePublicKey:
    """Parse the identity provider's PEM public key; it must be P-256 for ES256."""
    key = serialization.load_pem_public_key(pem.encode())
    if not isinstance(key, ec.EllipticCurvePublicKey) or not isinstance(
        key.curve, ec.SECP256R1
    ):
        raise ValueError("JWT_PUBLIC_KEY must be an EC P-256 public key")
    return key


# ---------------------------------------------------------------------------
# Key management
# ---------------------------------------------------------------------------
# Configured: verify with the provider's key; no signing key in process.
# Dev/test without a key: ephemeral EC key pair generated on import.
_private_key: ec.EllipticCurvePrivateKey | None
if SETTINGS.jwt_public_key:
    _private_key = None
    _public_key = load_public_key(SETTINGS.jwt_public_key)
else:
    _private_key = ec.generate_private_key(ec.SECP256R1())
    _public_key = _private_key.public_key()


def create_access_token(
    *,
    sub: str,
    roles: list[str] | None = None,
    ttl: timedelta | None = None,
) -> str:
    """Build and sign a JWT access token.

    Claims: sub, iss, aud, exp, iat, jti, roles.  Only available with the
    ephemeral key pair; a configured JWT_PUBLIC_KEY means the identity
    provider holds the signing key.
    """
    if _private_key is None:
        raise RuntimeError("no signing key: tokens are issued by the identity provider")
    now = datetime.now(UTC)
    payload = {
        "sub": sub,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "exp": now + (ttl if ttl is not None else timedelta(minutes=ACCESS_TOKEN_TTL_MIN)),
        "iat": now,
        "jti": str(uuid.uuid4()),
        "roles": roles or ["student"],
    }
    return jwt.encode(payload, _private_key, algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """Verify signature and claims, return the payload.

    Pins algorithm to ES256 to prevent alg:none and alg-switching attacks.
    Validates exp, iss, and aud automatically via PyJWT options.

    Raises jwt.ExpiredSignatureError, jwt.InvalidTokenError on failure.
    """
    return jwt.decode(
        token,
        _public_key,
        algorithms=[ALGORITHM],
        issuer=ISSUER,
        audience=AUDIENCE,
        options={"require": ["sub", "exp", "iat", "jti"]},
    )
