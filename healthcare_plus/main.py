from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
import time
import logging

from .api.v1.auth import router as auth_router
from .api.v1.appointments import router as appointments_router
from .api.v1.health_tips import router as health_tips_router
from .api.v1.users import router as users_router
from .core.config import settings
from .core.exceptions import AppError, ValidationError
from .core.storage import get_store
from .seed import initialize_data
from .services.notification_service import NotificationDispatcher

logging.basicConfig(level=logging.DEBUG if settings.DEBUG else logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.VERSION,
    description="Appointment booking and triage for Healthcare Plus",
    openapi_url="/api/v1/openapi.json",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Started and stopped with the application
app.state.dispatcher = NotificationDispatcher(config=settings)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# TestClient requests are not host-checked
if not settings.TESTING:
    app.add_middleware(TrustedHostMiddleware, allowed_hosts=settings.ALLOWED_HOSTS)

@app.middleware("http")
async def log_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed = time.perf_counter() - started
    response.headers["X-Process-Time"] = f"{elapsed:.6f}"

    logger.info(f"{request.method} {request.url.path} -> {response.status_code} in {elapsed * 1000:.1f}ms")
    return response

# Error descriptors
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{exc.kind} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err["loc"] if p != "body"), "message": err["msg"]}
        for err in exc.errors()
    ]
    error = ValidationError("Please fill in all required fields correctly", errors=errors)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())

@app.exception_handler(404)
async def not_found_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=404,
        content={
            "success": False,
            "error": "NotFound",
            "message": f"No route for {request.method} {request.url.path}",
            "path": request.url.path
        }
    )

@app.exception_handler(500)
async def internal_error_handler(request: Request, exc: Exception):
    logger.exception(f"Unhandled error on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": "InternalError",
            "message": "Something went wrong on our side"
        }
    )

for router in (auth_router, appointments_router, health_tips_router, users_router):
    app.include_router(router, prefix="/api/v1")

@app.on_event("startup")
async def startup_event():
    """Prepare the data directory and start the notification dispatcher."""
    # Resolve through overrides so tests seed their own store
    store = app.dependency_overrides.get(get_store, get_store)()
    logger.info(f"Starting {settings.APP_NAME} with data directory {store.data_dir}")

    try:
        await initialize_data(store)
    except AppError as e:
        logger.error(f"Could not prepare data directory {store.data_dir}: {e.message}")
        raise

    await app.state.dispatcher.init()
    logger.info("Startup complete")

@app.on_event("shutdown")
async def shutdown_event():
    """Let in-flight notifications finish."""
    logger.info(f"Stopping {settings.APP_NAME}; {app.state.dispatcher.pending} notification(s) in flight")
    await app.state.dispatcher.shutdown()

@app.get("/health")
async def health_check():
    """Liveness plus a check that the data directory is usable."""
    store = app.dependency_overrides.get(get_store, get_store)()
    return {
        "status": "healthy",
        "storage": "ok" if store.data_dir.is_dir() else "missing",
        "version": settings.VERSION
    }

@app.get("/")
async def root():
    return {
        "message": f"{settings.APP_NAME} is running",
        "version": settings.VERSION,
        "docs": "/docs"
    }

@app.get("/api/v1/info")
async def api_info():
    """Route map of the v1 API."""
    return {
        "name": settings.APP_NAME,
        "version": settings.VERSION,
        "routes": {
            "auth": "/api/v1/auth",
            "users": "/api/v1/users",
            "appointments": "/api/v1/appointments",
            "health_tips": "/api/v1/healthtips",
            "openapi": "/api/v1/openapi.json"
        }
    }

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("healthcare_plus.main:app", host="0.0.0.0", port=8000, reload=settings.DEBUG)
