# account_service/schemas.py
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


# --- Request bodies ---
# Fields are optional here so missing values reach the service and come
# back as the same validation_error as every other bad input.
class RegisterData(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None


class LoginData(BaseModel):
    identifier: Optional[str] = None
    password: Optional[str] = None


class ChangePasswordData(BaseModel):
    current_password: Optional[str] = None
    new_password: Optional[str] = None


class ResetCodeRequest(BaseModel):
    identifier: Optional[str] = None


class PasswordReset(BaseModel):
    identifier: Optional[str] = None
    code: Optional[str] = None
    new_password: Optional[str] = None


# --- Responses ---
class AccountOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: str
    created_at: Optional[datetime] = None


class TokenResponse(BaseModel):
    success: bool = True
    access_token: str
    token_type: str = "bearer"
    account: AccountOut


class AccountResponse(BaseModel):
    success: bool = True
    account: AccountOut


class AccountListResponse(BaseModel):
    success: bool = True
    accounts: List[AccountOut]


class ResetCodeResponse(BaseModel):
    success: bool = True
    channel: str
    destination: str
    expires_at: datetime


class MessageResponse(BaseModel):
    success: bool = True
    msg: str
