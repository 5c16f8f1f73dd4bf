import enum
import datetime as dt
from sqlalchemy import String, Integer, Enum, DateTime, Text, func
from sqlalchemy.orm import Mapped, mapped_column
from stash_auth.core.db import Base


class LogStatus(str, enum.Enum):
    success = "success"
    fail = "fail"


class LogAction(str, enum.Enum):
    signup = "signup"
    signin = "signin"
    forgot_password = "forgot_password"
    reset_password = "reset_password"
    change_password = "change_password"
    send_verification = "send_verification"
    onboard = "onboard"
    onboard_bento = "onboard_bento"
    email_verification = "email_verification"
    mobile_verification = "mobile_verification"
    plaid_verification = "plaid_verification"
    mfa_setup = "mfa_setup"
    mfa_enable = "mfa_enable"
    mfa_disable = "mfa_disable"


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user: Mapped[str] = mapped_column(String(32), default="auth")
    action: Mapped[LogAction] = mapped_column(Enum(LogAction))
    status: Mapped[LogStatus] = mapped_column(Enum(LogStatus))
    code: Mapped[int] = mapped_column(Integer)
    message: Mapped[str] = mapped_column(Text)
    email: Mapped[str] = mapped_column(String(255), default="")
    phone: Mapped[str] = mapped_column(String(32), default="")
    auth_id: Mapped[str] = mapped_column(String(36), default="")
    profile_id: Mapped[str] = mapped_column(String(36), default="")
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
