# account_service/security.py
from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from .errors import TokenExpired, TokenInvalid

ALGORITHM = "HS256"


class PasswordHasher:
    """bcrypt hashing through passlib; verification is constant time."""

    def __init__(self, rounds: int = 10):
        self.rounds = rounds
        self._context = CryptContext(
            schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=rounds
        )

    def hash(self, plaintext: str) -> str:
        return self._context.hash(plaintext)

    def verify(self, plaintext: str, digest: Optional[str]) -> bool:
        if not digest:
            return False
        try:
            return self._context.verify(plaintext, digest)
        except ValueError:
            # unrecognized or malformed hash
            return False

    def dummy_verify(self) -> None:
        self._context.dummy_verify()


class TokenIssuer:
    def __init__(self, secret: str, ttl_seconds: int = 3600, algorithm: str = ALGORITHM):
        self.secret = secret
        self.ttl_seconds = ttl_seconds
        self.algorithm = algorithm

    def issue(self, account_id: int, now: Optional[datetime] = None) -> str:
        moment = now or datetime.now(timezone.utc)
        claims = {
            "sub": str(account_id),
            "iat": int(moment.timestamp()),
            "exp": int((moment + timedelta(seconds=self.ttl_seconds)).timestamp()),
        }
        return jwt.encode(claims, self.secret, algorithm=self.algorithm)

    def verify(self, token: str) -> int:
        """Return the account id embedded in ``token``.

        Raises TokenExpired once the TTL has elapsed and TokenInvalid for a
        bad signature, malformed token or missing subject.
        """
        try:
            payload = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise TokenExpired() from exc
        except JWTError as exc:
            raise TokenInvalid() from exc
        try:
            return int(payload["sub"])
        except (KeyError, TypeError, ValueError) as exc:
            raise TokenInvalid() from exc
