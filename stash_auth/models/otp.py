import enum
import uuid
import datetime as dt
from sqlalchemy import String, Enum, Boolean, DateTime, ForeignKey, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column
from stash_auth.core.db import Base


class OtpPurpose(str, enum.Enum):
    email_mfa = "email_mfa"
    totp_mfa = "totp_mfa"


class Otp(Base):
    __tablename__ = "otps"
    __table_args__ = (UniqueConstraint("auth_id", "profile_id", "purpose", "target", name="uq_otp_scope"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    public_id: Mapped[str] = mapped_column(String(48), default=lambda: f"otp_{uuid.uuid4().hex}")
    auth_id: Mapped[str] = mapped_column(String(36), ForeignKey("auths.id", ondelete="CASCADE"), index=True)
    profile_id: Mapped[str] = mapped_column(String(36))
    purpose: Mapped[OtpPurpose] = mapped_column(Enum(OtpPurpose))
    target: Mapped[str] = mapped_column(String(36))   # the entity the code guards
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    secret: Mapped[str | None] = mapped_column(String(64), nullable=True)
    expires_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    verified: Mapped[bool] = mapped_column(Boolean, default=False)
    deleted: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
