import uuid
from sqlalchemy import String, Enum, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from stash_auth.core.db import Base
from stash_auth.models.auth import ProfileKind


class Profile(Base):
    """One row per account; `kind` tags which of the optional columns apply."""
    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    auth_id: Mapped[str] = mapped_column(String(36), ForeignKey("auths.id", ondelete="CASCADE"), unique=True, index=True)
    kind: Mapped[ProfileKind] = mapped_column(Enum(ProfileKind))
    verified: Mapped[bool] = mapped_column(Boolean, default=True)
    is_default: Mapped[bool] = mapped_column(Boolean, default=True)

    # personal
    first_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    # business
    business_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    api_public_key: Mapped[str | None] = mapped_column(String(128), nullable=True)
    api_secret_key: Mapped[str | None] = mapped_column(String(128), nullable=True)
    # admin
    employee_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
