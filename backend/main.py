# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
FastAPI application factory.

Responsibilities
----------------
* Instantiate the FastAPI app.
* Register CORS and request-logging middleware.
* Map request validation errors to 400.
* Mount the feature routers (auth, webauthn, users, admin).
* Own the lifecycle of the long-lived services: the SQLAlchemy engine and
  the mailer are built once at startup, shared by every request via
  ``app.state``, and shut down cleanly.  Anything already present on
  ``app.state`` (tests inject an in-memory database and a recording mailer)
  is used as-is.
* Expose a /health endpoint for container liveness checks.
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from starlette.middleware.base import BaseHTTPMiddleware

from database import make_engine, make_session_factory
from core.config import settings
from core.logger import logger
from core.mail import Mailer
from auth.router import router as auth_router
from passkeys.router import router as passkeys_router
from users.router import router as users_router
from admin.router import router as admin_router

# ---------------------------------------------------------------------------
# Request-logging middleware
# ---------------------------------------------------------------------------
# Logs every inbound request: method, path, client IP, status, latency.
# Bodies and query strings are NOT echoed – they carry passwords, codes and
# tokens.  Only the path and metadata are recorded.


class _RequestLogMiddleware(BaseHTTPMiddleware):
    """Log method, path, client IP, response status and latency (ms)."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        client_ip = request.client.host if request.client else "unknown"

        logger.info(
            "%s %s | client=%s status=%d latency=%.1fms",
            request.method,
            request.url.path,
            client_ip,
            response.status_code,
            elapsed_ms,
        )
        return response


async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [{"loc": list(err.get("loc", ())), "msg": err.get("msg", "")} for err in exc.errors()]
    return JSONResponse(status_code=400, content={"detail": "Invalid body", "errors": errors})


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


@asynccontextmanager
async def _lifespan(app: FastAPI):
    logger.info("VRChat Remix API starting up")
    state = app.state

    owns_engine = getattr(state, "session_factory", None) is None
    if owns_engine:
        state.engine = make_engine(settings.database_url)
        state.session_factory = make_session_factory(state.engine)

    if getattr(state, "mailer", None) is None:
        state.mailer = Mailer(settings)

    try:
        yield
    finally:
        if owns_engine:
            state.engine.dispose()
            state.session_factory = None
        logger.info("VRChat Remix API shutting down")


def create_app() -> FastAPI:
    app = FastAPI(title="VRChat Remix API", version="1.0.0", lifespan=_lifespan)

    # -----------------------------------------------------------------------
    # CORS
    # -----------------------------------------------------------------------
    # Cookies are the credential, so only the configured frontend origin is
    # allowed, with credentials.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.app_url],
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE"],
        allow_headers=["Content-Type"],
    )
    app.add_middleware(_RequestLogMiddleware)
    app.add_exception_handler(RequestValidationError, _validation_error)

    # -----------------------------------------------------------------------
    # Routers
    # -----------------------------------------------------------------------
    app.include_router(auth_router)
    app.include_router(passkeys_router)
    app.include_router(users_router)
    app.include_router(admin_router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
