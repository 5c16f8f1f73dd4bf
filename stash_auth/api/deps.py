from dataclasses import dataclass

from fastapi import Depends, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError

from stash_auth.core.exceptions import UnauthorizedError
from stash_auth.core.security import decode_access_token
from stash_auth.services import Services


bearer = HTTPBearer(auto_error=False)


def get_services(request: Request) -> Services:
    return request.app.state.services


@dataclass(frozen=True)
class TokenClaims:
    auth_id: str
    username: str | None
    mfa_enabled: bool
    mfa_completed: bool


async def get_token_claims(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
) -> TokenClaims:
    """
    Decode the bearer token. The account itself is loaded by the handler,
    inside its own transaction.
    """
    if creds is None:
        raise UnauthorizedError("Unauthorized")
    try:
        payload = decode_access_token(creds.credentials)
    except JWTError:
        raise UnauthorizedError("Invalid or expired token")

    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub:
        raise UnauthorizedError("Invalid token payload")

    claims = TokenClaims(
        auth_id=sub,
        username=payload.get("username"),
        mfa_enabled=bool(payload.get("mfaEnabled")),
        mfa_completed=bool(payload.get("mfaCompleted")),
    )
    if claims.mfa_enabled and not claims.mfa_completed:
        raise UnauthorizedError("MFA not completed")
    return claims
