# account_service/service.py
from typing import List, Optional, Tuple

from .codes import IssuedCode, VerificationCodePolicy
from .errors import Forbidden, InvalidCredentials, Unauthorized, ValidationError
from .identifiers import (
    EMAIL_PATTERN,
    PASSWORD_MAX_LENGTH,
    PASSWORD_MIN_LENGTH,
    PHONE_PATTERN,
    USERNAME_PATTERN,
    looks_like_phone,
)
from .log import get_logger
from .models import Account
from .security import PasswordHasher, TokenIssuer
from .store import AccountDraft, CredentialStore

logger = get_logger("service")


def _require(field: str, value: Optional[str]) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(field, f"{field} is required")
    return str(value)


def _optional(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def validate_password(password: Optional[str], field: str = "password") -> str:
    password = _require(field, password)
    if not PASSWORD_MIN_LENGTH <= len(password) <= PASSWORD_MAX_LENGTH:
        raise ValidationError(
            field, f"Password must be {PASSWORD_MIN_LENGTH}-{PASSWORD_MAX_LENGTH} characters"
        )
    return password


def validate_username(username: Optional[str]) -> str:
    username = _require("username", username).strip()
    if not USERNAME_PATTERN.match(username):
        raise ValidationError(
            "username",
            "Username may only contain CJK characters, letters, digits and underscores, 3-20 characters",
        )
    if looks_like_phone(username):
        raise ValidationError(
            "username", "Username must not be an 11-digit number starting with 1"
        )
    return username


class AccountService:
    """Registration, login, password change and code-based password reset."""

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
        codes: VerificationCodePolicy,
    ):
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.codes = codes

    def register(
        self,
        username: Optional[str],
        password: Optional[str],
        email: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Tuple[Account, str]:
        username = validate_username(username)
        password = validate_password(password)
        email = _optional(email)
        phone = _optional(phone)
        if email is None and phone is None:
            raise ValidationError("email", "Either email or phone is required")
        if email is not None:
            email = email.lower()
            if not EMAIL_PATTERN.match(email):
                raise ValidationError("email", "Please enter a valid email address")
        if phone is not None and not PHONE_PATTERN.match(phone):
            raise ValidationError("phone", "Please enter a valid phone number")

        draft = AccountDraft(
            username=username,
            username_normalized=username.lower(),
            password_hash=self.hasher.hash(password),
            email=email,
            phone=phone,
        )
        account = self.store.create(draft)
        logger.info("Registered account %s (%s)", account.id, account.username)
        return account, self.tokens.issue(account.id)

    def login(self, identifier: Optional[str], password: Optional[str]) -> Tuple[Account, str]:
        identifier = _require("identifier", identifier).strip()
        password = _require("password", password)
        account = self.store.find_by_login_identifier(identifier)
        if account is None:
            self.hasher.dummy_verify()
            logger.info("Failed login, unknown identifier")
            raise InvalidCredentials()
        if not self.hasher.verify(password, account.password_hash):
            logger.info("Failed login for account %s", account.id)
            raise InvalidCredentials()
        return account, self.tokens.issue(account.id)

    def authenticate(self, token: Optional[str]) -> Account:
        if not token:
            raise Unauthorized()
        account = self.store.get(self.tokens.verify(token))
        if account is None:
            raise Unauthorized()
        return account

    def require_role(self, account: Account, *roles: str) -> Account:
        if account.role not in roles:
            raise Forbidden()
        return account

    def change_password(
        self,
        account_id: int,
        current_password: Optional[str],
        new_password: Optional[str],
    ) -> None:
        current_password = _require("current_password", current_password)
        new_password = validate_password(new_password, "new_password")
        account = self.store.get(account_id)
        if account is None:
            raise Unauthorized()
        if not self.hasher.verify(current_password, account.password_hash):
            raise InvalidCredentials("Current password is incorrect")
        self.store.update_password(account_id, self.hasher.hash(new_password))
        logger.info("Password changed for account %s", account_id)

    def issue_reset_code(self, identifier: Optional[str]) -> IssuedCode:
        identifier = _require("identifier", identifier).strip()
        return self.codes.issue_code(identifier)

    def consume_reset_code(
        self,
        identifier: Optional[str],
        code: Optional[str],
        new_password: Optional[str],
    ) -> Account:
        identifier = _require("identifier", identifier).strip()
        code = _require("code", code).strip()
        new_password = validate_password(new_password, "new_password")
        return self.codes.consume_code(identifier, code, new_password)

    def list_accounts(self) -> List[Account]:
        return self.store.list_accounts()
