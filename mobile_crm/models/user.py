from typing import Optional

from sqlalchemy import (
    Integer,
    String,
    DateTime,
    func,
)
from mobile_crm.db.base import Base
from sqlalchemy.orm import Mapped, mapped_column
from datetime import datetime

class User(Base):
    """
    Shop operator account. The credential store is single-tenant:
    exactly one row is created by bootstrap registration.
    """

    __tablename__ = "users"

    id :Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True, comment="User id")

    username :Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        comment="Login name, immutable",
    )

    password_hash :Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="bcrypt hash of the login password",
    )

    # =========
    # 🔐 Secondary credentials
    # =========
    pin :Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="bcrypt hash of the privacy PIN, or legacy plaintext (migrated on first verify)",
    )

    recovery_key_hash :Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="bcrypt hash of the static recovery key",
    )

    email :Mapped[Optional[str]] = mapped_column(String(255), nullable=True, comment="Address used for OTP delivery")

    # otp_hash / otp_expires_at 必须同时为空或同时有值
    otp_hash :Mapped[Optional[str]] = mapped_column(
        String(255),
        nullable=True,
        comment="bcrypt hash of the in-flight one-time password",
    )
    otp_expires_at :Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
        comment="Expiry of the in-flight one-time password",
    )

    created_at :Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
        comment="Account creation timestamp",
    )

    def has_pending_otp(self) -> bool:
        return self.otp_hash is not None and self.otp_expires_at is not None

    def clear_otp(self) -> None:
        self.otp_hash = None
        self.otp_expires_at = None

    def __repr__(self) -> str:
        return f"<User id={self.id} username={self.username}>"
