"""
Token Service Module

Issues and validates the stateless JWTs that bind a caller to an account.
Tokens are never stored server side; a token is valid while its HMAC
signature checks out and its ``exp`` claim lies in the future.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt

from .errors import InvalidTokenError
from .storage import Account


HMAC_ALGORITHMS = ("HS256", "HS384", "HS512")


@dataclass(frozen=True)
class Claims:
    """Decoded token payload"""
    account_id: int
    account_number: int
    issued_at: datetime
    expires_at: datetime


class TokenService:
    """Signs and verifies account tokens with a shared secret"""

    def __init__(self, secret: str, algorithm: str = "HS256", expiry_hours: int = 24):
        if not secret:
            raise ValueError("Token signing secret must not be empty")
        if algorithm not in HMAC_ALGORITHMS:
            raise ValueError(f"Unsupported signing algorithm: {algorithm}")
        self._secret = secret
        self.algorithm = algorithm
        self.expiry = timedelta(hours=expiry_hours)

    def issue(self, account: Account, now: Optional[datetime] = None) -> str:
        """
        Issue a signed token for an account

        Args:
            account: Account the token authenticates
            now: Issue time (defaults to the current time)

        Returns:
            Encoded JWT string
        """
        now = now or datetime.now(timezone.utc)
        payload = {
            "id": account.id,
            "accountNumber": account.account_number,
            "iat": now,
            "exp": now + self.expiry,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def validate(self, token: Optional[str]) -> Claims:
        """
        Validate a token and return its claims

        Raises:
            InvalidTokenError: If the token is missing, expired, signed with
                another key or algorithm, or carries a malformed payload
        """
        if not token:
            raise InvalidTokenError("Missing token")

        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "iat"]}
            )
        except jwt.ExpiredSignatureError:
            raise InvalidTokenError("Token expired")
        except jwt.InvalidAlgorithmError:
            raise InvalidTokenError("Unexpected signing method")
        except jwt.InvalidTokenError as e:
            raise InvalidTokenError(f"Invalid token: {e}")

        account_id = payload.get("id")
        account_number = payload.get("accountNumber")
        if not _is_int(account_id) or not _is_int(account_number):
            raise InvalidTokenError("Invalid token: malformed claims")

        return Claims(
            account_id=account_id,
            account_number=account_number,
            issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        )


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)
