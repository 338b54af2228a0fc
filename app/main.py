import asyncio
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from app.api.v1.router import api_router
from app.core.errors import AppError, InternalError, ValidationError
from app.core.logger import new_request_id, setup_logging
from app.core.settings import settings
from app.db.session import engine

# Setup Logging
setup_logging()
logger = logging.getLogger("API")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application Lifecycle Management.

    Startup: nothing to restore, every request is self-contained
    Shutdown: release pooled DB connections
    """
    # --- STARTUP ---
    logger.info(f"🌐 {settings.APP_NAME} API Starting... (env={settings.ENV})")

    yield  # Application runs here

    # --- SHUTDOWN ---
    logger.info("🛑 API Stopping...")
    try:
        async with asyncio.timeout(10):
            await engine.dispose()
    except asyncio.TimeoutError:
        logger.critical("❌ Shutdown timeout exceeded! Forcing termination.")
    finally:
        logger.info("✅ Shutdown Complete.")


# Initialize App
app = FastAPI(
    title=settings.APP_NAME,
    description="Marketplace order placement and distributor ledger",
    version="1.0.0",
    lifespan=lifespan,
)


class RequestContextMiddleware:
    """
    Tags the request with an id (echoed back as X-Request-ID, stamped on every
    log line) and caps its duration.

    Plain ASGI so the deadline cancels the handler task itself: the open
    transaction unwinds through transaction()/get_session and is rolled back
    before the 504 goes out.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = new_request_id(Headers(scope=scope).get("X-Request-ID"))
        response_started = False

        async def send_with_request_id(message: Message):
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
                MutableHeaders(scope=message)["X-Request-ID"] = request_id
            await send(message)

        try:
            async with asyncio.timeout(settings.REQUEST_TIMEOUT_SECONDS):
                await self.app(scope, receive, send_with_request_id)
        except asyncio.TimeoutError:
            logger.error(f"⏱️ Request timed out: {scope['method']} {scope['path']}")
            if response_started:
                raise
            response = JSONResponse(
                status_code=504,
                content={"error": {"code": "timeout", "message": "Request timed out", "details": {}}},
                headers={"X-Request-ID": request_id},
            )
            await response(scope, receive, send)


app.add_middleware(RequestContextMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"❌ {exc.code} on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.info(f"↩️ {exc.status_code} {exc.code} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    error = ValidationError("Invalid request", {"errors": exc.errors()})
    return JSONResponse(status_code=error.status_code, content=jsonable_encoder(error.to_dict()))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception(f"❌ Unhandled error on {request.method} {request.url.path}: {exc}")
    error = InternalError("Internal server error")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


# Include the V1 Router
app.include_router(api_router, prefix="/api/v1")

if __name__ == "__main__":
    uvicorn.run("app.main:app", host="0.0.0.0", port=8000, reload=settings.ENV == "dev")
