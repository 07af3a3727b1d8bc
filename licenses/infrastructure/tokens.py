"""
Signed validation tokens.

A successful validation can be handed downstream as a short-lived HS256
JWT so other services can trust the result without calling back.
"""

from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Mapping

from django.utils import timezone
from jose import JWTError, jwt

from core.config import LicensingConfig
from core.domain.exceptions import InvalidRequestError


class LicenseTokenSigner:
    """Issue and verify validation tokens."""

    def __init__(self, config: LicensingConfig, clock: Callable[[], datetime] = timezone.now):
        self.secret = config.jwt_secret
        self.algorithm = config.jwt_algorithm
        self.ttl = timedelta(seconds=config.jwt_ttl_seconds)
        self.clock = clock

    def issue(self, validation: Mapping[str, Any]) -> str:
        """
        Create a token for a successful validation result.

        Args:
            validation: Data of the validation result

        Returns:
            Encoded JWT
        """
        now = self.clock()
        claims = {
            "valid": bool(validation.get("valid")),
            "license_id": validation.get("license_id"),
            "expires_at": validation.get("expires_at"),
            "requires_machine_id": bool(validation.get("requires_machine_id")),
            "iat": int(now.timestamp()),
            "exp": int((now + self.ttl).timestamp()),
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Dict[str, Any]:
        """
        Decode a token, checking signature and expiry.

        Raises:
            InvalidRequestError: If the token is invalid or expired
        """
        try:
            return jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError as exc:
            raise InvalidRequestError("Invalid token", code="INVALID_TOKEN") from exc
