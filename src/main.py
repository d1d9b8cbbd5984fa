"""
Main FastAPI Application Entry Point
Travel & Expense Management System
"""

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError
from contextlib import asynccontextmanager
import time

from src.config.settings import settings
from src.config.database import engine, Base
from src.utils.exceptions import AppException, ErrorCode, classify_integrity_error
from src.utils.logger import setup_logger
from src.middleware.logging_middleware import LoggingMiddleware

# Register every model on Base.metadata
from src.models import (  # noqa: F401
    user, department, project, travel_request, approval, claim,
    attachment, bailout, notification, audit_log, chart_of_account
)

# Import routes
from src.routes import (
    auth, user as user_routes, department as department_routes, project as project_routes,
    travel_request as travel_request_routes, claim as claim_routes, approval as approval_routes,
    bailout as bailout_routes, attachment as attachment_routes, notification as notification_routes,
    audit_log as audit_log_routes, dashboard, chart_of_account as chart_of_account_routes
)

# Setup logger
logger = setup_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan events for application startup and shutdown
    """
    logger.info(f"Starting {settings.APP_NAME} ({settings.ENVIRONMENT})...")

    Base.metadata.create_all(bind=engine)
    logger.info("Database tables created successfully")

    logger.info("Application started successfully")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Business travel requests, expense claims and multi-level approvals",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json",
    lifespan=lifespan
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Add logging middleware
app.add_middleware(LoggingMiddleware)


# Exception handlers
@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    """Handle business rule failures"""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc}")
    else:
        logger.warning(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=exc.headers)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle validation errors"""
    logger.warning(f"Validation error: {exc.errors()}")
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=jsonable_encoder({
            "success": False,
            "code": ErrorCode.VALIDATION_ERROR.value,
            "message": "Validation error",
            "errors": exc.errors()
        })
    )


@app.exception_handler(IntegrityError)
async def integrity_exception_handler(request: Request, exc: IntegrityError):
    """Handle constraint violations that slipped past service checks"""
    code = classify_integrity_error(exc)
    logger.error(f"Integrity error on {request.url.path}: {exc.orig}")
    if code == ErrorCode.DUPLICATE_ENTRY:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"success": False, "code": code.value, "message": "A record with this value already exists"}
        )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"success": False, "code": code.value, "message": "Referenced record does not exist or is in use"}
    )


@app.exception_handler(StaleDataError)
async def stale_data_exception_handler(request: Request, exc: StaleDataError):
    """Concurrent update lost the optimistic version check"""
    logger.warning(f"Concurrent modification on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={
            "success": False,
            "code": ErrorCode.CONFLICT.value,
            "message": "The record was modified by another request. Reload and try again."
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(f"Unhandled exception: {str(exc)}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "code": ErrorCode.INTERNAL_ERROR.value,
            "message": "Internal server error",
            "detail": str(exc) if settings.DEBUG else "An error occurred"
        }
    )


# Health check endpoint
@app.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "app_name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": time.time()
    }


# Root endpoint
@app.get("/", tags=["Root"])
async def root():
    """Root endpoint"""
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": "/api/docs",
        "health": "/health"
    }


# Include routers
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(user_routes.router, prefix="/api/users", tags=["Users"])
app.include_router(department_routes.router, prefix="/api/departments", tags=["Departments"])
app.include_router(project_routes.router, prefix="/api/projects", tags=["Projects"])
app.include_router(travel_request_routes.router, prefix="/api/travel-requests", tags=["Travel Requests"])
app.include_router(claim_routes.router, prefix="/api/claims", tags=["Claims"])
app.include_router(approval_routes.router, prefix="/api/approvals", tags=["Approvals"])
app.include_router(bailout_routes.router, prefix="/api/bailouts", tags=["Bailouts"])
app.include_router(attachment_routes.router, prefix="/api/attachments", tags=["Attachments"])
app.include_router(notification_routes.router, prefix="/api/notifications", tags=["Notifications"])
app.include_router(audit_log_routes.router, prefix="/api/audit-logs", tags=["Audit Logs"])
app.include_router(dashboard.router, prefix="/api/dashboard", tags=["Dashboard"])
app.include_router(chart_of_account_routes.router, prefix="/api/chart-of-accounts", tags=["Chart of Accounts"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "src.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
