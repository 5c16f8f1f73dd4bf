import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from stash_auth.core.exceptions import ApiError, AuditContext, ProviderError
from stash_auth.models.audit_log import LogAction, LogStatus
from stash_auth.services import Services

logger = logging.getLogger(__name__)


@dataclass
class Outcome:
    """What a successful unit of work hands back to the response layer."""
    message: str
    data: dict[str, Any] = field(default_factory=dict)
    code: int = 200
    audit: AuditContext = field(default_factory=AuditContext)
    # runs only after the commit went through (code delivery)
    after_commit: Callable[[], Awaitable[None]] | None = None


def envelope(
    code: int,
    action: str,
    message: str,
    data: dict[str, Any] | None = None,
    error: str | None = None,
    dev_error: str | None = None,
) -> JSONResponse:
    body: dict[str, Any] = {
        "status": LogStatus.success.value if code < 400 else LogStatus.fail.value,
        "code": code,
        "action": action,
        "message": message,
    }
    if code < 400:
        body["data"] = data or {}
    else:
        body["error"] = error or message
        if dev_error:
            body["devError"] = dev_error
    return JSONResponse(status_code=code, content=jsonable_encoder(body))


async def _audit(
    db: AsyncSession,
    services: Services,
    action: LogAction,
    code: int,
    message: str,
    audit: AuditContext,
) -> None:
    status = LogStatus.success if code < 400 else LogStatus.fail
    try:
        async with db.begin():
            await services.stores.audit.record(
                db, action=action, status=status, code=code, message=message, audit=audit
            )
    except SQLAlchemyError:
        logger.exception("audit log write failed for %s", action.value)


async def run_in_transaction(
    db: AsyncSession,
    services: Services,
    action: LogAction,
    work: Callable[[AsyncSession], Awaitable[Outcome]],
) -> JSONResponse:
    """
    Run `work` inside one transaction on `db`.

    Commit when it returns, roll back when it raises. Either way exactly one
    audit entry is written afterwards and the envelope is rendered.
    """
    try:
        async with db.begin():
            outcome = await work(db)
    except ApiError as exc:
        logger.info("%s rejected (%s): %s", action.value, exc.status_code, exc.detail)
        await _audit(db, services, action, exc.status_code, exc.detail, exc.audit)
        return envelope(exc.status_code, action.value, exc.detail)
    except (SQLAlchemyError, ProviderError) as exc:
        logger.exception("%s failed", action.value)
        await _audit(db, services, action, 500, str(exc), AuditContext())
        return envelope(500, action.value, "server error", dev_error=str(exc))
    except Exception as exc:
        # unexpected failures get the same envelope
        logger.exception("%s crashed", action.value)
        await _audit(db, services, action, 500, repr(exc), AuditContext())
        return envelope(500, action.value, "server error", dev_error=repr(exc))

    if outcome.after_commit is not None:
        await outcome.after_commit()
    await _audit(db, services, action, outcome.code, outcome.message, outcome.audit)
    return envelope(outcome.code, action.value, outcome.message, data=outcome.data)
