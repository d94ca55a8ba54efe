# schoolrun/main.py
"""
SchoolRun - Main API Entry Point
"""
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
import uvicorn
from contextlib import asynccontextmanager

from .config.settings import get_settings
from .config.logging import setup_logging, get_logger
from .core.database import SessionLocal, init_db
from .core.middleware import LoggingMiddleware, RequestIDMiddleware
from .core.exceptions import custom_exception_handler
from .services.monitor_service import GeofenceMonitor
from .utils.date_utils import utc_now
from .api.v1.endpoints import routes, trips, alerts

settings = get_settings()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    setup_logging(settings)
    logger.info(f"Starting {settings.APP_NAME} {settings.VERSION}...")

    init_db()

    app.state.monitor = None
    if settings.MONITOR_ENABLED:
        app.state.monitor = GeofenceMonitor.from_settings(settings, SessionLocal)
        app.state.monitor.start()

    yield

    # Shutdown
    if app.state.monitor is not None:
        await app.state.monitor.stop()
    logger.info(f"Shutting down {settings.APP_NAME}...")


# Create FastAPI application
app = FastAPI(
    title="SchoolRun API",
    description="After-school pickup route optimization and missed school monitoring",
    version=settings.VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

# Add middleware (last added runs first)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)

# Add exception handlers
app.add_exception_handler(HTTPException, custom_exception_handler)

# Include routers
app.include_router(
    routes.router,
    prefix="/api/v1/routes",
    tags=["Route Optimization"]
)
app.include_router(
    trips.router,
    prefix="/api/v1/trips",
    tags=["Trips"]
)
app.include_router(
    alerts.router,
    prefix="/api/v1",
    tags=["Missed School Alerts"]
)


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": f"{settings.APP_NAME} API",
        "version": settings.VERSION,
        "status": "operational"
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    monitor = getattr(app.state, "monitor", None)
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "version": settings.VERSION,
        "monitor_running": bool(monitor and monitor.is_running)
    }


if __name__ == "__main__":
    uvicorn.run(
        "schoolrun.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG,
        workers=1
    )
