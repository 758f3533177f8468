"""FastAPI application entry point."""
import os

# Force UTC before anything caches timezone information
os.environ['TZ'] = 'UTC'

import asyncio
import time

if hasattr(time, "tzset"):
    time.tzset()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from contextlib import asynccontextmanager

from backend.config import get_settings
from backend.version import APP_VERSION
from backend.routers import game, health
from backend.services.game.exceptions import GameError
from backend.tasks.session_maintenance import schedule_periodic_maintenance

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logs_dir = Path("logs")
logs_dir.mkdir(exist_ok=True)

log_file = logs_dir / "mvd.log"
sql_log_file = logs_dir / "mvd_sql.log"
api_log_file = logs_dir / "mvd_api.log"


def _rotating_handler(path: Path, max_bytes: int, backup_count: int, fmt: str = LOG_FORMAT) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backup_count, encoding='utf-8')
    handler.setFormatter(logging.Formatter(fmt))
    return handler


rotating_handler = _rotating_handler(log_file, 1024 * 1024, 5)
sql_rotating_handler = _rotating_handler(sql_log_file, 1024 * 1024, 5)
api_rotating_handler = _rotating_handler(api_log_file, 2 * 1024 * 1024, 10, '%(asctime)s - %(levelname)s - %(message)s')

# force=True overrides uvicorn's own configuration
logging.basicConfig(
    level=logging.INFO,
    format=LOG_FORMAT,
    handlers=[
        logging.StreamHandler(),
        rotating_handler,
    ],
    force=True,
)

logger = logging.getLogger(__name__)

# Request log gets its own file and stays out of the root logger
api_logger = logging.getLogger("mvd.api")
api_logger.handlers.clear()
api_logger.addHandler(api_rotating_handler)
api_logger.setLevel(logging.INFO)
api_logger.propagate = False

uvicorn_access_logger = logging.getLogger("uvicorn.access")
uvicorn_access_logger.setLevel(logging.INFO)
if rotating_handler not in uvicorn_access_logger.handlers:
    uvicorn_access_logger.addHandler(rotating_handler)

sqlalchemy_logger = logging.getLogger("sqlalchemy.engine.Engine")
sqlalchemy_logger.handlers.clear()
sqlalchemy_logger.addHandler(sql_rotating_handler)
sqlalchemy_logger.setLevel(logging.INFO)
sqlalchemy_logger.propagate = False


class SQLTransactionFilter(logging.Filter):
    """Drop transaction noise and flatten multi-line statements in the SQL log."""

    NOISE = ('ROLLBACK', 'BEGIN', 'COMMIT', 'generated in', 'cached since')

    def filter(self, record):
        if record.levelno != logging.INFO:
            return True

        message = record.getMessage()
        if any(keyword in message for keyword in self.NOISE):
            return False

        if any(kw in message for kw in ('SELECT', 'DELETE', 'INSERT', 'UPDATE')):
            record.msg = ' '.join(message.split())
            record.args = ()

        return True


sqlalchemy_logger.addFilter(SQLTransactionFilter())

settings = get_settings()


@asynccontextmanager
async def lifespan(app_instance: FastAPI):
    """Start and stop background tasks."""
    logger.info("=" * 60)
    logger.info(f"Mom vs Dad API {APP_VERSION} starting")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Database: {settings.database_url.split('@')[-1] if '@' in settings.database_url else 'SQLite'}")
    logger.info(f"AI scenarios: {'enabled' if settings.ai_enabled and settings.openai_api_key else 'fallback templates only'}")
    logger.info("=" * 60)

    maintenance_task = None
    try:
        maintenance_task = asyncio.create_task(schedule_periodic_maintenance())
        logger.info(f"Session maintenance task started (runs every {settings.session_maintenance_interval_minutes} minutes)")
    except Exception as e:
        logger.error(f"Failed to start session maintenance: {e}")

    try:
        yield
    finally:
        logger.info("Shutting down background tasks...")
        if maintenance_task:
            maintenance_task.cancel()
            try:
                await asyncio.wait_for(maintenance_task, timeout=2.0)
            except asyncio.CancelledError:
                logger.info("Session maintenance task cancelled")
            except asyncio.TimeoutError:
                logger.warning("Session maintenance task did not cancel within timeout")
            except Exception as e:
                logger.error(f"Error cancelling session maintenance task: {e}")

        logger.info("Mom vs Dad API shutting down")


app = FastAPI(
    title="Mom vs Dad API",
    description="Round-based party voting game",
    version=APP_VERSION,
    lifespan=lifespan,
)


@app.exception_handler(GameError)
async def game_error_handler(request: Request, exc: GameError):
    """Map the game error taxonomy onto HTTP status codes."""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    else:
        logger.info(f"{exc.code} on {request.url.path}: {exc.message}")

    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Return Pydantic validation errors as a readable field list."""
    logger.warning(f"Validation error on {request.url.path}: {exc.errors()}")

    errors = []
    for error in exc.errors():
        loc = error.get("loc", [])
        errors.append({
            "field": " -> ".join(str(x) for x in loc[1:]) if len(loc) > 1 else "unknown field",
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "unknown"),
        })

    return JSONResponse(
        status_code=422,
        content={
            "detail": "Request validation failed",
            "code": "validation_error",
            "errors": errors,
        }
    )


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log start, completion and timing of every HTTP request to the API log."""
    start_time = time.time()
    client_ip = request.client.host if request.client else "unknown"
    method = request.method
    path = request.url.path
    request_id = f"{method}:{path}:{int(start_time * 1000) % 100000}"

    api_logger.info(f">> {request_id} | START | {method} {path} | IP: {client_ip}")
    if request.query_params:
        api_logger.info(f">> {request_id} | QUERY | {request.query_params}")

    try:
        response = await call_next(request)
    except Exception as e:
        api_logger.error(
            f"<< {request_id} | EXCEPTION | {method} {path} | "
            f"Error: {str(e)[:100]} | Time: {time.time() - start_time:.3f}s"
        )
        raise

    log = api_logger.warning if response.status_code >= 400 else api_logger.info
    log(
        f"<< {request_id} | COMPLETE | {method} {path} | "
        f"Status: {response.status_code} | Time: {time.time() - start_time:.3f}s"
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(game.router)
app.include_router(health.router)


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Mom vs Dad API",
        "version": APP_VERSION,
        "environment": settings.environment,
        "docs": "/docs",
    }
