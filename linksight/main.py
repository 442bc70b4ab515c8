import logging
import os
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

# Load env from linksight/.env
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

# Import after dotenv is loaded
from linksight.core.config import settings, validate_config, cors_origins
from linksight.core.database import create_all_tables
from linksight.core.logging import configure_logging
from linksight.core.middleware.request_id import RequestIdMiddleware
from linksight.core.validation import validate_env
from linksight.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from linksight.api import health, premium, users
from linksight.features.premium.limits import seed_limits

configure_logging(settings.ENV, settings.LOG_LEVEL)
validate_env()
validate_config(strict=settings.CONFIG_STRICT)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("linksight")
    logger.info("Starting Linksight backend...")
    app.state.startup_time = time.time()
    try:
        create_all_tables()
        if settings.PREMIUM_SEED_ON_STARTUP:
            inserted = seed_limits()
            logger.info(f"[startup] seeded {inserted} premium limit rows")
    except ValueError as e:
        # No DATABASE_URL: serve liveness only, readiness reports the failure
        logger.warning(f"[startup] database not initialized: {e}")
    try:
        yield
    finally:
        logging.getLogger("linksight").info("Stopping Linksight backend...")


app = FastAPI(title="Linksight - Premium API", lifespan=lifespan)

# Middlewares
app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(premium.router)
app.include_router(users.router)
app.include_router(health.router)
app.include_router(health.root_router)
