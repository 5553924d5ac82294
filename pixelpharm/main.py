"""
PixelPharm - Main Application
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pixelpharm.config import settings
from pixelpharm.database import init_db
from pixelpharm.exceptions import PixelPharmError
from pixelpharm.api.ai import router as ai_router
from pixelpharm.api.biomarkers import router as biomarkers_router
from pixelpharm.api.health import router as health_router
from pixelpharm.api.uploads import router as uploads_router


# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup and shutdown events
    """
    logger.info("Starting PixelPharm backend...")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"OCR backends: {settings.ocr_backend_list}")

    try:
        init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    yield

    logger.info("Shutting down PixelPharm backend...")


app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
PixelPharm - Health Analytics API

- Blood test and body composition uploads (S3)
- Biomarker extraction with Claude, AWS Textract and pattern matching
- Biomarker history, trends and abnormal value tracking
- AI health analysis with a rule-based fallback
    """,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    """Root endpoint - API information"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "healthy",
        "environment": settings.ENVIRONMENT,
        "endpoints": {
            "docs": "/docs",
            "health": "/health",
            "api": settings.API_V1_STR,
        }
    }


@app.get("/health")
async def health_check():
    """Liveness check"""
    return {
        "status": "healthy",
        "version": settings.APP_VERSION,
        "environment": settings.ENVIRONMENT
    }


app.include_router(uploads_router, prefix=settings.API_V1_STR, tags=["Uploads"])
app.include_router(ai_router, prefix=settings.API_V1_STR, tags=["AI Processing"])
app.include_router(biomarkers_router, prefix=settings.API_V1_STR, tags=["Biomarkers"])
app.include_router(health_router, prefix=settings.API_V1_STR, tags=["Health Analysis"])


@app.exception_handler(PixelPharmError)
async def pixelpharm_exception_handler(request: Request, exc: PixelPharmError):
    """Service errors carry their own status code"""
    log = logger.error if exc.http_code >= 500 else logger.warning
    log(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse(
        status_code=exc.http_code,
        content={
            "success": False,
            "error": exc.message,
            "code": exc.error_code,
        }
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle all unhandled exceptions"""
    logger.error(f"Unhandled exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "An internal server error occurred",
            "code": "INTERNAL_SERVER_ERROR",
            "details": str(exc) if settings.DEBUG else None
        }
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "pixelpharm.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
