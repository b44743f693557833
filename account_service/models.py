# account_service/models.py
from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, UniqueConstraint, func

from .database import Base

ROLES = ("user", "editor", "admin")


# --- Database Model: Account ---
class Account(Base):
    __tablename__ = "accounts"
    # constraint names are how duplicate-key failures map back to a field
    __table_args__ = (
        UniqueConstraint("username", name="uq_accounts_username"),
        UniqueConstraint("username_normalized", name="uq_accounts_username_normalized"),
        UniqueConstraint("email", name="uq_accounts_email"),
        UniqueConstraint("phone", name="uq_accounts_phone"),
        CheckConstraint(
            "role IN (" + ", ".join(f"'{role}'" for role in ROLES) + ")",
            name="ck_accounts_role",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(20), nullable=False)
    username_normalized = Column(String(20), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    role = Column(String(16), nullable=False, default="user")
    password_hash = Column(String, nullable=False)
    reset_code = Column(String(6), nullable=True)
    reset_code_remaining = Column(Integer, nullable=False, default=0)
    reset_code_expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Account id={self.id} username={self.username!r} role={self.role}>"
