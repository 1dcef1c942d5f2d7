import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .cache import get_redis_client, redis_configured
from .config import ALLOWED_ORIGINS, AVAILABILITY_POLICY, GOOGLE_MAPS_API_KEY, LOG_LEVEL
from .database import init_firebase
from .domain.admin import router as admin_router
from .domain.scheduling import router as scheduling_router

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

# Reduce verbosity of third-party libraries
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting up...")
    try:
        init_firebase()
        logger.info("Firebase Admin ready")
    except Exception as e:
        logger.error(f"Failed to initialize Firebase Admin: {e}")

    if not GOOGLE_MAPS_API_KEY:
        logger.warning("⚠️ GOOGLE_MAPS_API_KEY not set - geocoding disabled, unknown locations stay unknown")
    logger.info(f"Availability policy: {AVAILABILITY_POLICY}")

    if redis_configured():
        try:
            get_redis_client()  # Connection test
            logger.info("Redis connection established")
        except Exception as e:
            logger.warning(f"Redis connection failed - geocode cache will operate in memory only: {e}")

    yield
    logger.info("Application shutting down...")


app = FastAPI(title="Visit Slots API", version="1.0.0", lifespan=lifespan)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """
    Convert 422 validation errors to 401 authentication errors
    when the issue is with the Authorization header
    """
    for error in exc.errors():
        if error.get("loc") and "authorization" in str(error.get("loc")).lower():
            logger.warning(
                f"Authentication failed for {request.url.path}: Missing or invalid Authorization header"
            )
            return JSONResponse(
                status_code=401,
                content={"detail": "No autorizado. Falta token."},
            )

    logger.warning(f"Validation error for {request.url.path}: {exc.errors()}")
    return JSONResponse(status_code=422, content={"detail": exc.errors()})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    try:
        response = await call_next(request)
        return response
    except Exception as e:
        logger.error(f"{request.method} {request.url.path} - Error: {str(e)}")
        raise


# CORS Configuration
logger.info(f"CORS allowed origins: {ALLOWED_ORIGINS}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    # Browsers refuse credentials with a wildcard origin
    allow_credentials="*" not in ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(scheduling_router)
app.include_router(admin_router)


# Routes


@app.get("/")
def root():
    return {"message": "Visit Slots API is running"}


@app.get("/health")
def health():
    return {"status": "healthy"}


@app.get("/health/redis")
async def redis_health_check():
    """Check Redis connectivity for monitoring"""
    if not redis_configured():
        return {"status": "disabled", "redis": {"connected": False}}
    try:
        redis_client = get_redis_client()

        start_time = time.time()
        redis_client.ping()
        response_time = (time.time() - start_time) * 1000

        return {
            "status": "healthy",
            "redis": {"connected": True, "response_time_ms": round(response_time, 2)},
        }
    except Exception as e:
        return {"status": "unhealthy", "redis": {"connected": False, "error": str(e)}}
