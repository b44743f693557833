# account_service/store.py
import re
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError

from .database import Database
from .errors import DuplicateField, ValidationError
from .identifiers import IdentifierKind, classify_identifier, normalize_identifier
from .log import get_logger
from .models import ROLES, Account

logger = get_logger("store")

_LOOKUP_COLUMNS = {
    IdentifierKind.EMAIL: Account.email,
    IdentifierKind.PHONE: Account.phone,
    IdentifierKind.USERNAME: Account.username_normalized,
}

# constraint name -> field reported to the user
_DUPLICATE_FIELDS = {
    "uq_accounts_username": "username",
    "uq_accounts_username_normalized": "username",
    "uq_accounts_email": "email",
    "uq_accounts_phone": "phone",
}
# SQLite names the column, not the constraint
_SQLITE_UNIQUE = re.compile(r"^UNIQUE constraint failed: accounts\.(\w+)")
# PostgreSQL/MySQL quote the constraint name; the offending value may appear
# earlier on the line (MySQL) or on a DETAIL line (PostgreSQL)
_QUOTED_CONSTRAINT = re.compile(r"""["'`](?:accounts\.)?(uq_accounts_\w+)["'`]""")


@dataclass
class AccountDraft:
    username: str
    username_normalized: str
    password_hash: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: str = "user"


def _violated_constraint(exc: IntegrityError) -> Optional[str]:
    diag = getattr(exc.orig, "diag", None)
    name = getattr(diag, "constraint_name", None)
    if name:
        return name
    message = str(exc.orig) if exc.orig is not None else str(exc)
    first_line = message.splitlines()[0] if message else ""
    match = _SQLITE_UNIQUE.match(first_line)
    if match:
        return f"uq_accounts_{match.group(1)}"
    names = _QUOTED_CONSTRAINT.findall(first_line)
    return names[-1] if names else None


def duplicate_field_from_error(exc: IntegrityError) -> Optional[str]:
    return _DUPLICATE_FIELDS.get(_violated_constraint(exc))


class CredentialStore:
    """Persistence for account records.

    Every method runs in its own short transaction; the reset-state writes
    are single conditional UPDATE statements so concurrent requests for the
    same account never lose a decrement.
    """

    def __init__(self, database: Database):
        self.database = database

    def find_by_login_identifier(self, identifier: str) -> Optional[Account]:
        kind = classify_identifier(identifier)
        column = _LOOKUP_COLUMNS[kind]
        value = normalize_identifier(kind, identifier)
        with self.database.session() as session:
            return session.execute(select(Account).where(column == value)).scalar_one_or_none()

    def get(self, account_id: int) -> Optional[Account]:
        with self.database.session() as session:
            return session.get(Account, account_id)

    def list_accounts(self) -> List[Account]:
        with self.database.session() as session:
            return list(session.execute(select(Account).order_by(Account.id)).scalars())

    def create(self, draft: AccountDraft) -> Account:
        if draft.role not in ROLES:
            raise ValidationError("role", f"Role must be one of: {', '.join(ROLES)}")
        account = Account(
            username=draft.username,
            username_normalized=draft.username_normalized,
            email=draft.email,
            phone=draft.phone,
            role=draft.role,
            password_hash=draft.password_hash,
            reset_code_remaining=0,
        )
        try:
            with self.database.session() as session:
                session.add(account)
                session.flush()
                session.refresh(account)
        except IntegrityError as exc:
            field = duplicate_field_from_error(exc)
            if field is None:
                raise
            logger.info("Registration rejected, duplicate %s", field)
            raise DuplicateField(field) from exc
        return account

    def update_reset_state(
        self,
        identifier: str,
        code: Optional[str],
        remaining: int,
        expires_at: Optional[datetime],
    ) -> Optional[Account]:
        kind = classify_identifier(identifier)
        column = _LOOKUP_COLUMNS[kind]
        value = normalize_identifier(kind, identifier)
        stmt = (
            update(Account)
            .where(column == value)
            .values(
                reset_code=code,
                reset_code_remaining=remaining,
                reset_code_expires_at=expires_at,
            )
            .execution_options(synchronize_session=False)
        )
        with self.database.session() as session:
            if session.execute(stmt).rowcount == 0:
                return None
            return session.execute(select(Account).where(column == value)).scalar_one()

    def charge_reset_attempt(self, account_id: int) -> Optional[Account]:
        """Atomically take one attempt off the reset budget and return the new state."""
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values(reset_code_remaining=func.coalesce(Account.reset_code_remaining, 0) - 1)
            .execution_options(synchronize_session=False)
        )
        with self.database.session() as session:
            if session.execute(stmt).rowcount == 0:
                return None
            return session.execute(
                select(Account).where(Account.id == account_id)
            ).scalar_one()

    def redeem_reset_code(self, account_id: int, code: str, password_hash: str) -> bool:
        """Burn ``code`` and store the new hash, only if the code is still live."""
        stmt = (
            update(Account)
            .where(
                Account.id == account_id,
                Account.reset_code == code,
                Account.reset_code_remaining > 0,
            )
            .values(reset_code_remaining=0, password_hash=password_hash)
            .execution_options(synchronize_session=False)
        )
        with self.database.session() as session:
            return session.execute(stmt).rowcount == 1

    def update_password(self, account_id: int, password_hash: str) -> None:
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values(password_hash=password_hash)
            .execution_options(synchronize_session=False)
        )
        with self.database.session() as session:
            session.execute(stmt)
