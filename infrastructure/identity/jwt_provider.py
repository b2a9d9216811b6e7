"""PyJWT implementation of IdentityProvider.

Verifies bearer ID tokens issued by the external identity provider:
- RS256 with the configured public key, HS256 with the shared secret otherwise
- issuer/audience are only checked when configured
- ``sub`` becomes the user id, ``email`` is optional
"""

from typing import Any

import jwt

from config import IdentitySettings
from errors import AuthenticationError
from infrastructure.identity.protocol import Identity
from shared.logging import get_logger

log = get_logger(__name__)


class JwtIdentityProvider:
    def __init__(self, settings: IdentitySettings) -> None:
        self._settings = settings
        if settings.use_rs256:
            # Support keys provided via env with literal \n sequences
            self._key: Any = settings.identity_public_key.replace("\\n", "\n")
            self._algorithm = "RS256"
        else:
            self._key = settings.identity_secret
            self._algorithm = "HS256"

    async def verify(self, token: str) -> Identity:
        if not self._key:
            log.warning("identity_provider_not_configured")
            raise AuthenticationError("Invalid token")

        settings = self._settings
        try:
            claims = jwt.decode(
                token,
                self._key,
                algorithms=[self._algorithm],
                audience=settings.identity_audience or None,
                issuer=settings.identity_issuer or None,
                leeway=settings.identity_leeway_seconds,
                options={
                    "require": ["sub", "exp"],
                    "verify_aud": bool(settings.identity_audience),
                },
            )
        except jwt.ExpiredSignatureError:
            log.info("identity_token_expired")
            raise AuthenticationError("Invalid token")
        except jwt.InvalidTokenError as e:
            log.info("identity_token_rejected", error=str(e), error_type=type(e).__name__)
            raise AuthenticationError("Invalid token")

        return Identity(user_id=str(claims["sub"]), email=str(claims.get("email") or ""))
