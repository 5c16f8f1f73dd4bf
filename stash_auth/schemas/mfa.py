import enum
from pydantic import Field

from stash_auth.schemas.common import CamelModel


class MfaMethod(str, enum.Enum):
    totp = "totp"
    email = "email"


class TotpSetupOut(CamelModel):
    secret: str
    otpauth_url: str
    qr_base64_png: str


class MfaCodeIn(CamelModel):
    otp: str = Field(..., min_length=6, max_length=8)


class MfaDisableIn(CamelModel):
    method: MfaMethod
    password: str = Field(..., min_length=8)
