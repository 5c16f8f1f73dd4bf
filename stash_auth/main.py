import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from stash_auth.api.v1._helpers import envelope
from stash_auth.api.v1.auth import router as auth_router
from stash_auth.api.v1.mfa import router as mfa_router
from stash_auth.api.v1.onboarding import router as onboarding_router
from stash_auth.api.v1.verification import router as verification_router
from stash_auth.core.config import settings
from stash_auth.core.exceptions import ApiError
from stash_auth.services import build_services

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(title="Stash Auth API", version="0.1.0")
app.state.services = build_services(settings)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)
app.include_router(verification_router)
app.include_router(onboarding_router)
app.include_router(mfa_router)


def _action(request: Request) -> str:
    parts = [p for p in request.url.path.split("/") if p]
    return "_".join(parts[:2]) if parts[:1] == ["mfa"] else (parts[0] if parts else "")


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    # rejected before any transaction opens
    parts = []
    for e in exc.errors():
        loc = ".".join(str(p) for p in e.get("loc", ()) if p not in ("body", "query", "path"))
        parts.append(f"{loc}: {e['msg']}" if loc else e["msg"])
    message = "; ".join(parts)
    logger.info("validation failed on %s: %s", request.url.path, message)
    return envelope(400, _action(request), message or "invalid request")


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    # raised by dependencies (bearer token) outside of a transaction
    return envelope(exc.status_code, _action(request), exc.detail)


@app.get("/health")
async def health():
    return {"status": "ok"}
