"""
Mock Cart Backend

An in-memory implementation of the cart, coupon and product endpoints
the cart engine talks to. Used for local development and tests.
"""

import os
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from dotenv import load_dotenv

from cart_sync.config import get_settings

from .routes import products_router, cart_router, coupons_router

# Load environment variables
load_dotenv(os.path.join(os.path.dirname(__file__), "..", "config", ".env"))

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=settings.effective_log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan events"""
    logger.info("Mock cart backend starting up...")
    yield
    logger.info("Mock cart backend shutting down...")


# Create FastAPI app
app = FastAPI(
    title="Mock Cart Backend",
    description="In-memory cart, coupon and product API for cart sync development",
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


@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc: HTTPException):
    """Wrap errors in the standard response envelope"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"statusCode": exc.status_code, "message": str(exc.detail), "data": None},
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg", "Invalid request") if errors else "Invalid request"
    return JSONResponse(
        status_code=422,
        content={"statusCode": 422, "message": message, "data": None},
    )


# Include API routers
app.include_router(products_router)
app.include_router(cart_router)
app.include_router(coupons_router)


@app.get("/")
async def home():
    """API index"""
    return {
        "message": "Mock Cart Backend API",
        "docs": "/docs",
        "endpoints": {
            "products": "/api/products/{id}",
            "cart": "/api/cart",
            "coupons": "/api/coupons",
        },
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy", "service": "mock-cart-backend"}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "mock_backend.main:app",
        host=settings.mock_host,
        port=settings.mock_port,
        reload=settings.debug,
    )
