import logging
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import settings
from .errors import ConfigurationError
from .api.routes_health import router as health_router
from .api.routes_leads import router as leads_router
from .api.routes_batches import router as batches_router
from .models import create_all

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title="Travel CRM Lead Extraction API",
    version="1.0.0",
    description="Extracts structured travel leads from WhatsApp-style conversations with chunking, batching and progress tracking."
)

# ✅ Enable CORS (answers pre-flight OPTIONS with 200)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    loc = errors[0].get("loc", ()) if errors else ()
    field = loc[-1] if loc and loc[0] == "body" and len(loc) > 1 else None
    if isinstance(field, str):
        message = f"{field} is required"
    else:
        message = "Invalid request body"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    detail = "Method not allowed" if exc.status_code == 405 else exc.detail
    return JSONResponse(status_code=exc.status_code, content={"error": detail}, headers=exc.headers)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error("Server configuration error: %s", exc)
    return JSONResponse(status_code=500, content={"error": "Server configuration error"})


# Register routers
app.include_router(health_router)
app.include_router(leads_router)
app.include_router(batches_router)

# Database setup on startup
@app.on_event("startup")
def startup():
    logger.info("🚀 Starting up Travel CRM Lead Extraction API...")
    logger.info("🌐 Environment: %s", settings.ENV)
    if not settings.DATABASE_URL:
        logger.warning("DATABASE_URL is not set, batch endpoints will return 500")
        return
    # Auto-create tables if they don’t exist
    try:
        create_all()
    except OperationalError as e:
        raise RuntimeError("❌ Database connection failed. Check DATABASE_URL and credentials.") from e

# Base route
@app.get("/")
def root():
    return {
        "name": "Travel CRM Lead Extraction API",
        "env": settings.ENV,
        "status": "running",
        "docs_url": "/docs"
    }
