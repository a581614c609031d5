"""
Roadside Claims Backend - Main Application Entry Point
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from roadside.core.config import settings
from roadside.core.logging import logger
from roadside.core.middleware import AuditLoggingMiddleware, SecurityHeadersMiddleware
from roadside.db import Base, engine
from roadside.api.routes import claims, policies, providers, websocket


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifecycle management."""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} in {settings.APP_ENV} mode")
    if settings.DATABASE_CREATE_TABLES:
        Base.metadata.create_all(bind=engine)
    yield
    # Shutdown
    logger.info("Shutting down...")


app = FastAPI(
    title=settings.APP_NAME,
    description="Roadside Assistance Claims Intake",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(AuditLoggingMiddleware)
app.add_middleware(SecurityHeadersMiddleware)

# CORS Configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API Routers
app.include_router(claims.router, prefix="/claims", tags=["Claims"])
app.include_router(policies.router, prefix="/policies", tags=["Policies"])
app.include_router(providers.router, prefix="/providers", tags=["Providers"])
app.include_router(websocket.router, prefix="/ws", tags=["WebSocket"])


@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "app": settings.APP_NAME,
        "env": settings.APP_ENV,
    }
