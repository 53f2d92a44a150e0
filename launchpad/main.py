from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from .api import health, swap
from .config import settings
from .logging_config import setup_logging
from .middleware import RequestLoggingMiddleware
from .services.prices import get_price_service

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await swap.get_quote_client().close()
    await get_price_service().close()


# Create FastAPI app
app = FastAPI(
    lifespan=lifespan,
    title="Launchpad Settlement API",
    description="Swap pricing and build quotes for the launchpad settlement engine",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestLoggingMiddleware)

# Include routers
app.include_router(health.router, tags=["Health"])
app.include_router(swap.router, tags=["Swap"])


@app.get("/")
async def root():
    """Root endpoint with basic info"""
    return {
        "name": "Launchpad Settlement API",
        "version": "0.1.0",
        "chain": settings.chain_name,
        "docs": "/docs",
        "health": "/healthz"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "launchpad.main:app",
        host=settings.host,
        port=settings.port,
        reload=True,
        log_level=settings.log_level.lower()
    )
