from dataclasses import dataclass

from fastapi import HTTPException
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_401_UNAUTHORIZED,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
)


@dataclass
class AuditContext:
    """Identifying fields written next to every audit-log entry."""
    email: str = ""
    phone: str = ""
    auth_id: str = ""
    profile_id: str = ""


class ApiError(HTTPException):
    """Business-rule rejection. Raised inside a transaction it aborts it."""

    def __init__(self, detail: str, status_code: int, audit: AuditContext | None = None):
        super().__init__(status_code=status_code, detail=detail)
        self.audit = audit or AuditContext()


class BadRequestError(ApiError):
    def __init__(self, detail: str = "invalid request", audit: AuditContext | None = None):
        super().__init__(detail, HTTP_400_BAD_REQUEST, audit)


class UnauthorizedError(ApiError):
    def __init__(self, detail: str = "Unauthorized", audit: AuditContext | None = None):
        super().__init__(detail, HTTP_401_UNAUTHORIZED, audit)


class NotFoundError(ApiError):
    def __init__(self, detail: str = "User not found", audit: AuditContext | None = None):
        super().__init__(detail, HTTP_404_NOT_FOUND, audit)


class ConflictError(ApiError):
    def __init__(self, detail: str = "Already exists", audit: AuditContext | None = None):
        super().__init__(detail, HTTP_409_CONFLICT, audit)


class ProviderError(Exception):
    """An external provider (KYC, email, SMS) could not be reached or refused the call."""

    def __init__(self, provider: str, detail: str):
        super().__init__(f"{provider}: {detail}")
        self.provider = provider
        self.detail = detail
