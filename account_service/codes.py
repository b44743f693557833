# account_service/codes.py
"""Password-reset verification codes.

An account holds at most one code. ``issue_code`` overwrites whatever was
there with a fresh 6-digit code, a full attempt budget and a new expiry,
then sends it. ``consume_code`` charges an attempt before looking at the
submitted code at all, so expired or exhausted codes still cost attempts;
it then checks, in order, the remaining budget, the expiry and the value.
A successful consume zeroes the budget, which burns the code.
"""

import hmac
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional, Tuple

from .errors import (
    AccountNotFound,
    AttemptsExhausted,
    CodeExpired,
    CodeMismatch,
    DispatchFailure,
    NoContactChannel,
)
from .identifiers import IdentifierKind, classify_identifier, mask_email, mask_phone
from .log import get_logger
from .models import Account
from .notifications import Channel, NotificationDispatcher
from .security import PasswordHasher
from .store import CredentialStore

logger = get_logger("codes")

CODE_LENGTH = 6


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite hands back naive datetimes
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def generate_code(length: int = CODE_LENGTH) -> str:
    return f"{secrets.randbelow(10 ** length):0{length}d}"


def mask_destination(channel: Channel, destination: str) -> str:
    if channel is Channel.SMS:
        return mask_phone(destination)
    return mask_email(destination)


def choose_channel(kind: IdentifierKind, account: Account) -> Tuple[Channel, str]:
    if kind is IdentifierKind.PHONE and account.phone:
        return Channel.SMS, account.phone
    if account.email:
        return Channel.EMAIL, account.email
    if account.phone:
        return Channel.SMS, account.phone
    raise NoContactChannel()


@dataclass
class IssuedCode:
    channel: Channel
    destination: str
    expires_at: datetime


class VerificationCodePolicy:
    def __init__(
        self,
        store: CredentialStore,
        dispatcher: NotificationDispatcher,
        hasher: PasswordHasher,
        code_ttl_seconds: int = 600,
        max_attempts: int = 5,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.dispatcher = dispatcher
        self.hasher = hasher
        self.code_ttl_seconds = code_ttl_seconds
        self.max_attempts = max_attempts
        self.clock = clock

    def issue_code(self, identifier: str) -> IssuedCode:
        kind = classify_identifier(identifier)
        account = self.store.find_by_login_identifier(identifier)
        if account is None:
            raise AccountNotFound()
        channel, destination = choose_channel(kind, account)

        code = generate_code()
        expires_at = self.clock() + timedelta(seconds=self.code_ttl_seconds)
        if self.store.update_reset_state(identifier, code, self.max_attempts, expires_at) is None:
            raise AccountNotFound()
        logger.info("Issued reset code for account %s via %s", account.id, channel.value)

        result = self.dispatcher.send(channel, destination, code)
        if not result.ok:
            logger.error(
                "Dispatch of reset code for account %s failed: %s", account.id, result.error
            )
            raise DispatchFailure()
        return IssuedCode(channel, mask_destination(channel, destination), expires_at)

    def consume_code(self, identifier: str, submitted_code: str, new_password: str) -> Account:
        account = self.store.find_by_login_identifier(identifier)
        if account is None:
            raise AccountNotFound()

        account = self.store.charge_reset_attempt(account.id)
        if account is None:
            raise AccountNotFound()

        if account.reset_code_remaining < 1 or not account.reset_code:
            logger.info("Reset attempt on exhausted code for account %s", account.id)
            raise AttemptsExhausted()
        expires_at = _as_utc(account.reset_code_expires_at)
        if expires_at is None or self.clock() > expires_at:
            raise CodeExpired()
        if not hmac.compare_digest(submitted_code.encode(), account.reset_code.encode()):
            logger.info(
                "Wrong reset code for account %s, %s attempts left",
                account.id,
                account.reset_code_remaining,
            )
            raise CodeMismatch()

        password_hash = self.hasher.hash(new_password)
        if not self.store.redeem_reset_code(account.id, account.reset_code, password_hash):
            # another request burned the code between our charge and redeem
            raise AttemptsExhausted()
        logger.info("Password reset by code for account %s", account.id)
        account.reset_code_remaining = 0
        account.password_hash = password_hash
        return account
