import os
import time
import logging
from datetime import datetime, timezone
from pathlib import Path
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

backend_dir = Path(__file__).parent.parent
env_path = backend_dir / ".env"
loaded = load_dotenv(dotenv_path=env_path)
if loaded:
    logger.info(f"Environment loaded from: {env_path}")
else:
    logger.warning(f"No .env file loaded from: {env_path}")

from .config import get_settings, clear_settings_cache  # noqa: E402
from .database import Base, engine, fix_sequences  # noqa: E402
from .exceptions import ServiceError  # noqa: E402
from .routers import cells, pdls, scanned_visitors, visitors  # noqa: E402

clear_settings_cache()

# Every model must be imported before create_all()
from .models.pdl import Pdl  # noqa: F401,E402
from .models.visitor import Visitor  # noqa: F401,E402
from .models.cell import Cell  # noqa: F401,E402
from .models.scanned_visitor import ScannedVisitor, OPEN_ENTRY_INDEX_NAME  # noqa: F401,E402

app_settings = get_settings()
logger.info(f"🔧 Environment: {app_settings.environment}, timezone: {app_settings.app_timezone}")

app = FastAPI(title="Jail Visitation Backend", version="0.1.0", redirect_slashes=False)

allowed_origins = [
    "http://localhost:3000",
    "http://localhost:3001",
]

cors_origin_env = os.getenv("CORS_ORIGIN", "")
cors_origin_configured = cors_origin_env and cors_origin_env != "http://localhost:3000"

if cors_origin_configured:
    for origin in (o.strip() for o in cors_origin_env.split(",")):
        if origin and origin not in allowed_origins:
            allowed_origins.append(origin)

# Scanners on the facility network reach the API from arbitrary hosts
if app_settings.environment == "production" and not cors_origin_configured:
    logger.warning("⚠️ CORS_ORIGIN not set in production, allowing all origins")
    allowed_origins = ["*"]

logger.info(f"🌐 Allowed CORS origins: {allowed_origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = int((time.perf_counter() - started) * 1000)
    message = f"{request.method} {request.url.path} {response.status_code} - {elapsed_ms}ms"
    if response.status_code >= 500:
        logger.error(message)
    elif response.status_code >= 400:
        logger.warning(message)
    else:
        logger.info(message)
    return response


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    logger.warning(f"{request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{field}: {err.get('msg')}" if field else str(err.get("msg")))
    message = "Invalid request: " + "; ".join(problems)
    logger.warning(f"{request.method} {request.url.path}: {message}")
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=getattr(exc, "headers", None),
    )


from sqlalchemy import inspect, text  # noqa: E402


def create_tables():
    """Creates missing tables and brings older databases up to date."""
    try:
        logger.info("Creating database tables...")
        expected_tables = list(Base.metadata.tables.keys())
        Base.metadata.create_all(bind=engine)

        # Columns added after the first deployments
        required_columns = {
            "visitors": {"verified_conjugal": "INTEGER DEFAULT 0"},
            "scanned_visitors": {"purpose": "TEXT"},
        }
        inspector = inspect(engine)
        with engine.connect() as conn:
            for table, columns in required_columns.items():
                if table not in inspector.get_table_names():
                    continue
                existing = [col["name"] for col in inspector.get_columns(table)]
                for col_name, col_type in columns.items():
                    if col_name in existing:
                        continue
                    try:
                        conn.execute(text(f"ALTER TABLE {table} ADD COLUMN {col_name} {col_type}"))
                        conn.commit()
                        logger.info(f"✅ Column added: {table}.{col_name}")
                    except Exception as e:
                        conn.rollback()
                        logger.warning(f"⚠️ Could not add column {table}.{col_name}: {e}")

            # create_all() only builds indexes for new tables
            try:
                conn.execute(text(
                    f"CREATE UNIQUE INDEX IF NOT EXISTS {OPEN_ENTRY_INDEX_NAME} "
                    "ON scanned_visitors (lower(visitor_name), lower(pdl_name), lower(cell)) "
                    "WHERE time_out IS NULL"
                ))
                conn.commit()
            except Exception as e:
                conn.rollback()
                logger.warning(
                    f"⚠️ Could not create {OPEN_ENTRY_INDEX_NAME} (duplicate open visits in existing data?): {e}"
                )

        existing_tables = inspect(engine).get_table_names()
        missing_tables = [t for t in expected_tables if t not in existing_tables]
        if missing_tables:
            logger.warning(f"⚠️ Missing tables: {', '.join(missing_tables)}")
        else:
            logger.info("✅ All tables created/verified")

    except Exception as e:
        logger.error(f"❌ Error creating tables: {str(e)}", exc_info=True)
        raise


try:
    create_tables()
    fix_sequences()
except Exception as e:
    logger.error(f"❌ Database initialisation failed: {str(e)}", exc_info=True)
    logger.warning("⚠️ Server will keep starting, some endpoints may fail")

app.include_router(pdls.router)
app.include_router(visitors.router, prefix="/api")
app.include_router(cells.router, prefix="/api")
app.include_router(scanned_visitors.router, prefix="/api")


@app.get("/", tags=["root"])
async def root():
    return {"message": "Jail visitation backend"}


@app.get("/api/health", tags=["health"])
async def health():
    return {
        "status": "OK",
        "message": "Server is running!",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
