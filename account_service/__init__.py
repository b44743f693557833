# account_service/__init__.py
from .codes import IssuedCode, VerificationCodePolicy
from .config import Settings, load_settings
from .database import Base, Database
from .errors import AccountError
from .models import Account
from .service import AccountService
from .store import CredentialStore

__all__ = [
    "Account",
    "AccountError",
    "AccountService",
    "Base",
    "CredentialStore",
    "Database",
    "IssuedCode",
    "Settings",
    "VerificationCodePolicy",
    "load_settings",
]
