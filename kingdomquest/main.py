import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

# Load env from the package directory before settings are read
package_dir = os.path.dirname(os.path.abspath(__file__))
if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv(dotenv_path=os.path.join(package_dir, ".env"))

from kingdomquest.core.config import settings, validate_config  # noqa: E402
from kingdomquest.core.logging import configure_logging  # noqa: E402
from kingdomquest.core.middleware.request_id import RequestIdMiddleware  # noqa: E402
from kingdomquest.core.middleware.metrics import MetricsMiddleware  # noqa: E402
from kingdomquest.core.validation import validate_env  # noqa: E402
from kingdomquest.core.errors import (  # noqa: E402
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_handler,
    unhandled_exception_handler,
)
from kingdomquest.api import access, health, metrics, streaks  # noqa: E402

configure_logging(settings.ENV)
validate_env()
validate_config(strict=getattr(settings, "CONFIG_STRICT", False))


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("kingdomquest")
    logger.info("Starting KingdomQuest backend...")
    try:
        yield
    finally:
        logging.getLogger("kingdomquest").info("Stopping KingdomQuest backend...")


app = FastAPI(title="KingdomQuest - Backend", lifespan=lifespan)

# Middlewares
app.add_middleware(MetricsMiddleware)
app.add_middleware(RequestIdMiddleware)

app.add_exception_handler(AppError, app_error_handler)
app.add_exception_handler(RequestValidationError, request_validation_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(streaks.router, tags=["streaks"])
app.include_router(access.router)
app.include_router(health.router)
app.include_router(metrics.router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("kingdomquest.main:app", host="0.0.0.0", port=int(os.getenv("PORT", "8000")), reload=False)
