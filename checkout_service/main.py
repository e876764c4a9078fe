"""
Checkout Service Application

Drives the storefront's payment checkout: method selection, card
validation, QR proof of payment and status display.
"""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from dotenv import load_dotenv

from .core.config import settings
from .core.session import session_manager
from .routes import checkout_router

# Load environment variables
load_dotenv(os.path.join(os.path.dirname(__file__), "..", "config", ".env"))

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Checkout service starting up...")
    logger.info(f"Store URL: {settings.store_api_url}")

    yield

    logger.info("Checkout service shutting down...")
    session_manager.close_all()
    from .routes.checkout import store_client
    if store_client:
        await store_client.close()


# Create FastAPI app
app = FastAPI(
    title="Storefront Checkout",
    description="Checkout session service for the storefront",
    version="1.0.0",
    lifespan=lifespan,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(checkout_router)


@app.get("/")
async def home():
    return {
        "message": "Storefront Checkout API",
        "docs": "/docs",
        "endpoints": {
            "sessions": "/api/checkout/sessions",
            "shipping_options": "/api/checkout/shipping-options",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "service": "storefront-checkout",
        "store_configured": bool(settings.store_api_url),
        "open_sessions": len(session_manager.sessions),
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "checkout_service.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
