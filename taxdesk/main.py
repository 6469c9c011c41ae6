"""taxdesk FastAPI application."""

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from taxdesk.api.health import router as health_router
from taxdesk.api.taxes import router as taxes_router
from taxdesk.config import settings
from taxdesk.storage.repositories import RepositoryError

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="taxdesk - Tax Configuration Service",
    description="Tenant-scoped tax definitions with priority/compound tax calculation",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health_router, tags=["Health"])
app.include_router(taxes_router, prefix="/v1", tags=["Taxes"])


@app.exception_handler(RepositoryError)
async def repository_error_handler(request: Request, exc: RepositoryError):
    """Store unavailable - the whole request fails, nothing partial is returned."""
    logger.error("Repository error on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Tax store unavailable"},
    )


@app.get("/")
async def root():
    """Root endpoint."""
    return {"service": "taxdesk", "version": "0.1.0", "docs": "/docs"}
