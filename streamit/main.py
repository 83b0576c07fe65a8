import time
import logging
from contextlib import asynccontextmanager
from dotenv import load_dotenv

# Load environment variables from .env file before anything else
load_dotenv()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from streamit.core.config import settings
from streamit.core.logging import setup_logging, request_id_ctx
from streamit.core.errors import StreamitError
from streamit.core.db import init_models, SessionLocal
from streamit.api.router import api_router
from streamit.modules.videos.pipeline import fail_orphaned_items
from streamit.platform.provider_registry import registry


setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await init_models()
    if settings.PIPELINE_SWEEP_ON_STARTUP:
        await fail_orphaned_items(SessionLocal, registry.broadcaster())
    yield
    await registry.pipeline().shutdown()
    await registry.event_bus().close()


app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Range", "Accept-Ranges", "Content-Length"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start_time = time.time()

    response = await call_next(request)

    process_time = (time.time() - start_time) * 1000
    formatted_process_time = f"{process_time:.2f}ms"

    logger.info(
        f"Request: {request.method} {request.url.path} - Response: {response.status_code} - Time: {formatted_process_time}"
    )

    return response


@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id", "-")
    request_id_ctx.set(rid)
    response = await call_next(request)
    return response


@app.exception_handler(StreamitError)
async def streamit_error_handler(request: Request, exc: StreamitError):
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code} for {request.method} {request.url.path}: {exc.message}", exc_info=True)
        body = {"error": "internal", "message": "An internal server error occurred."}
    else:
        body = exc.to_dict()
    return JSONResponse(status_code=exc.status_code, content=body, headers=exc.headers)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.critical(f"Unhandled exception for request {request.method} {request.url.path}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"error": "internal", "message": "An internal server error occurred."},
    )


app.include_router(api_router, prefix=settings.API_PREFIX)
