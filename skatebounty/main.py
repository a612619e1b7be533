from __future__ import annotations
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError
from skatebounty.config import settings
from skatebounty.errors import BountyError
from skatebounty.logging_setup import configure_logging
from skatebounty.routes.system import router as system_router
from skatebounty.routes.bounties import router as bounties_router
from skatebounty.routes.spots import router as spots_router
from skatebounty.routes.reviews import router as reviews_router
from skatebounty.routes.profiles import router as profiles_router
from skatebounty.routes.realtime import router as realtime_router
from skatebounty.services.realtime import get_notifier
import structlog

configure_logging()
log = structlog.get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info(
        "startup", env=settings.environment, version=settings.app_version, git_sha=settings.git_sha,
        require_acceptance=settings.require_acceptance_before_submission,
        timestamp_mode=settings.submission_timestamp_mode,
    )
    yield
    # Shutdown
    await get_notifier().aclose()
    log.info("shutdown")

app = FastAPI(
    title=f"{settings.app_display_name} API",
    version=settings.app_version,
    lifespan=lifespan,
    description=f"{settings.app_display_name} API for skate bounties and crowd-verified proof",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.environment == "dev" else settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(system_router)
app.include_router(bounties_router)
app.include_router(spots_router)
app.include_router(reviews_router)
app.include_router(profiles_router)
app.include_router(realtime_router)

@app.exception_handler(BountyError)
async def bounty_error(request: Request, exc: BountyError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "field": exc.field})

@app.exception_handler(DBAPIError)
async def store_error(request: Request, exc: DBAPIError):
    log.error("store_error", error=str(exc.orig), path=request.url.path)
    return JSONResponse(status_code=503, content={"detail": "The store is unavailable, try again", "field": None})

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    structlog.contextvars.bind_contextvars(request_id=rid)
    response: Response = await call_next(request)
    response.headers["X-Request-ID"] = rid
    structlog.contextvars.clear_contextvars()
    return response
