import uuid
from sqlalchemy import String, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from stash_auth.core.db import Base


class Setting(Base):
    __tablename__ = "settings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    auth_id: Mapped[str] = mapped_column(String(36), ForeignKey("auths.id", ondelete="CASCADE"), index=True)
    profile_id: Mapped[str] = mapped_column(String(36), ForeignKey("profiles.id", ondelete="CASCADE"))
    appearance_mode: Mapped[str] = mapped_column(String(16), default="light")
    notifications: Mapped[bool] = mapped_column(Boolean, default=True)


class AuthSetting(Base):
    """Security settings; the MFA flags drive the sign-in gate."""
    __tablename__ = "auth_settings"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    auth_id: Mapped[str] = mapped_column(String(36), ForeignKey("auths.id", ondelete="CASCADE"), unique=True, index=True)
    setting_id: Mapped[str] = mapped_column(String(36), ForeignKey("settings.id", ondelete="CASCADE"))
    was_totp_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    was_email_enabled: Mapped[bool] = mapped_column(Boolean, default=False)
    face_touch_id: Mapped[bool] = mapped_column(Boolean, default=False)
    transfer_pin: Mapped[bool] = mapped_column(Boolean, default=False)
