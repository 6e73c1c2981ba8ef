"""
PayCall Backend - Main FastAPI Application
Pay-per-call tool marketplace for autonomous agents
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from paycall_backend.api.agents import router as agents_router
from paycall_backend.api.analytics import router as analytics_router
from paycall_backend.api.data import router as data_router
from paycall_backend.api.demo import router as demo_router
from paycall_backend.api.providers import router as providers_router
from paycall_backend.api.tools import router as tools_router
from paycall_backend.core.config import settings
from paycall_backend.core.exceptions import MarketplaceError
from paycall_backend.database.connection import init_database, close_database

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager"""
    # Startup
    logger.info("Starting PayCall API...")
    await init_database()
    logger.info("Database initialized")

    yield

    # Shutdown
    logger.info("Shutting down PayCall API...")
    await close_database()
    logger.info("Database connections closed")

# Create FastAPI app
app = FastAPI(
    title="PayCall API",
    description="Pay-per-call data tools for autonomous agents, settled on-chain",
    version="1.0.0",
    docs_url="/docs" if settings.is_development else None,
    redoc_url="/redoc" if settings.is_development else None,
    lifespan=lifespan
)

# Security middleware
app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=settings.allowed_hosts_list
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

@app.exception_handler(MarketplaceError)
async def marketplace_error_handler(request: Request, exc: MarketplaceError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

# API Routes
app.include_router(tools_router, prefix="/tools", tags=["tools"])
app.include_router(data_router, prefix="/data", tags=["data"])
app.include_router(agents_router, prefix="/agents", tags=["agents"])
app.include_router(providers_router, prefix="/providers", tags=["providers"])
app.include_router(analytics_router, prefix="/analytics", tags=["analytics"])
app.include_router(demo_router, prefix="/demo", tags=["demo"])

@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "paycall-api",
        "version": "1.0.0",
        "environment": settings.ENVIRONMENT,
        "network": settings.NETWORK
    }

@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "PayCall API - pay-per-call tools for AI agents",
        "docs": "/docs" if settings.is_development else "Contact support for documentation",
        "version": "1.0.0"
    }

if __name__ == "__main__":
    uvicorn.run(
        "paycall_backend.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.is_development,
        workers=1 if settings.is_development else 4
    )
