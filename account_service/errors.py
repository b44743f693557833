# account_service/errors.py
"""Failures raised by the account core.

Every error carries a stable machine-readable ``code``, a user-facing
``message`` and the HTTP status the API layer answers with.
"""

from typing import Optional


class AccountError(Exception):
    code = "account_error"
    status_code = 400
    default_message = "Request could not be completed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AccountError):
    code = "validation_error"
    default_message = "Invalid input"

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"Invalid value for {field}")


class DuplicateField(AccountError):
    code = "duplicate_field"
    status_code = 409

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"This {field} is already registered")


class InvalidCredentials(AccountError):
    code = "invalid_credentials"
    status_code = 401
    default_message = "Invalid account or password"


class AccountNotFound(AccountError):
    code = "account_not_found"
    status_code = 404
    default_message = "Account not found"


class NoContactChannel(AccountError):
    code = "no_contact_channel"
    default_message = "Account has no email or phone to send a code to"


class CodeExpired(AccountError):
    code = "code_expired"
    default_message = "Verification code has expired, please request a new one"


class CodeMismatch(AccountError):
    code = "code_mismatch"
    default_message = "Verification code is incorrect"


class AttemptsExhausted(AccountError):
    code = "attempts_exhausted"
    status_code = 429
    default_message = "Verification code is no longer usable, please request a new one"


class DispatchFailure(AccountError):
    code = "dispatch_failure"
    status_code = 502
    default_message = "Could not send the verification code, please try again"


class Unauthorized(AccountError):
    code = "unauthorized"
    status_code = 401
    default_message = "Authentication required"


class TokenInvalid(Unauthorized):
    code = "token_invalid"
    default_message = "Invalid token"


class TokenExpired(Unauthorized):
    code = "token_expired"
    default_message = "Token has expired"


class Forbidden(AccountError):
    code = "forbidden"
    status_code = 403
    default_message = "Administration rights required"
