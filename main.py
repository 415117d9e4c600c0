
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn
from sqlalchemy.exc import IntegrityError

from app.config import settings
from app.core.exceptions import RBACError
from app.core.logging_config import setup_logging, get_logger
from app.routes import (
    audit_log_router,
    auth_router,
    menu_router,
)
from app.routes.iam import permission_router, resource_router, role_router
from app.utils.response_utils import ResponseWrapper, conflict_from_integrity_error


# Setup logging as early as possible
setup_logging(log_level=settings.LOG_LEVEL, force_configure=True)

logger = get_logger(__name__)
logger.info("🚀 Main module starting...")

app = FastAPI(
    title=settings.APP_NAME,
    description="Role-based access control and menu visibility API",
    version=settings.APP_VERSION,
)

# Set up CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RBACError)
async def rbac_error_handler(request: Request, exc: RBACError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(
        status_code=exc.status_code,
        content=ResponseWrapper.error(message=exc.message, error_code=exc.error_code, details=exc.details),
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    return await rbac_error_handler(request, conflict_from_integrity_error(exc))


# Include routers
app.include_router(auth_router, prefix=settings.API_PREFIX)
app.include_router(menu_router, prefix=settings.API_PREFIX)
app.include_router(audit_log_router, prefix=settings.API_PREFIX)

# Include IAM routers
app.include_router(permission_router, prefix=f"{settings.API_PREFIX}/iam")
app.include_router(resource_router, prefix=f"{settings.API_PREFIX}/iam")
app.include_router(role_router, prefix=f"{settings.API_PREFIX}/iam")


@app.get("/")
async def root():
    return {"message": f"Welcome to {settings.APP_NAME} API"}


@app.get("/health")
async def health_check():
    return {"message": "I Am Alive!!"}


@app.on_event("startup")
async def startup_event():
    """Application startup event"""
    logger.info(f"🌟 {settings.APP_NAME} starting up (env: {settings.ENV})...")


@app.on_event("shutdown")
async def shutdown_event():
    """Application shutdown event"""
    logger.info(f"🛑 {settings.APP_NAME} shutting down...")


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
