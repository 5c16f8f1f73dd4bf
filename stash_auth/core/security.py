from datetime import datetime, timedelta, timezone
from typing import Optional
import base64
import secrets
from io import BytesIO

from passlib.context import CryptContext
from jose import jwt
import pyotp
import qrcode

from stash_auth.core.config import settings


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

def hash_password(plain: str) -> str:
    return pwd_context.hash(plain)

def verify_password(plain: str, hashed: str | None) -> bool:
    if not hashed:
        return False
    return pwd_context.verify(plain, hashed)

def create_access_token(
        subject: str,
        extra: Optional[dict] = None,
        expires_minutes: int | None = None
        ) -> str:
    to_encode = {"sub": subject, "iat": datetime.now(tz=timezone.utc)}
    if extra:
        to_encode.update(extra)
    expire = datetime.now(tz=timezone.utc) + timedelta(
        minutes=expires_minutes or settings.ACCESS_TOKEN_EXPIRE_MINUTES
        )
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)

def decode_access_token(token: str) -> dict:
    """Raises jose.JWTError on a bad signature or an expired token."""
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])

# --- API keys (business profiles) ---

def generate_api_key_pair() -> tuple[str, str]:
    return f"pk_{secrets.token_hex(24)}", f"sk_{secrets.token_hex(32)}"

# --- TOTP provisioning ---

def generate_totp_secret() -> str:
    # 32 chars base32
    return pyotp.random_base32(length=32)

def totp_uri_from_secret(secret: str, name: str, issuer: str | None = None) -> str:
    totp = pyotp.TOTP(secret)
    return totp.provisioning_uri(name=name, issuer_name=issuer or settings.APP_NAME)

def qr_png_base64_from_text(text: str) -> str:
    img = qrcode.make(text)
    buf = BytesIO()
    img.save(buf, "PNG")
    return base64.b64encode(buf.getvalue()).decode("ascii")
