# account_service/identifiers.py
"""Login identifier classification, field formats and destination masking."""

import enum
import re

USERNAME_PATTERN = re.compile(r"^[\u4e00-\u9fa5a-zA-Z0-9_]{3,20}\Z")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+\Z")
# ASCII digits only; \d would also match full-width digits
PHONE_PATTERN = re.compile(r"^(13|14|15|16|17|18|19)[0-9]{9}\Z")
PHONE_LOGIN_PATTERN = re.compile(r"^1[0-9]{10}\Z")

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 16


class IdentifierKind(str, enum.Enum):
    EMAIL = "email"
    PHONE = "phone"
    USERNAME = "username"


def classify_identifier(value: str) -> IdentifierKind:
    """Decide which unique account field a login identifier refers to.

    Anything containing "@" is an email, an 11-digit string starting with
    "1" is a phone number, everything else is a username.
    """
    if "@" in value:
        return IdentifierKind.EMAIL
    if PHONE_LOGIN_PATTERN.match(value):
        return IdentifierKind.PHONE
    return IdentifierKind.USERNAME


def looks_like_phone(value: str) -> bool:
    return bool(PHONE_LOGIN_PATTERN.match(value))


def normalize_identifier(kind: IdentifierKind, value: str) -> str:
    value = value.strip()
    if kind is IdentifierKind.PHONE:
        return value
    return value.lower()


def mask_phone(phone: str) -> str:
    if len(phone) <= 6:
        return "*" * len(phone)
    return phone[:3] + "*" * (len(phone) - 6) + phone[-3:]


def mask_email(email: str) -> str:
    local, sep, domain = email.partition("@")
    if not sep:
        return email
    if len(local) <= 2:
        return email
    return local[:2] + "*" * (len(local) - 2) + "@" + domain
