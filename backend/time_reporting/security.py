"""Bearer token verification.

Tokens are issued elsewhere; this module only verifies the signature and
returns the claims.
"""
from __future__ import annotations

from typing import Any, Dict

import jwt

from .config import settings


def decode_identity_token(token: str) -> Dict[str, Any]:
    """Decode and verify an identity JWT.

    Raises:
        jwt.InvalidTokenError: If the signature, expiry or audience is invalid.
    """
    options = {"verify_aud": settings.token_audience is not None}
    return jwt.decode(
        token,
        settings.token_secret,
        algorithms=settings.token_algorithms,
        audience=settings.token_audience,
        options=options,
    )
