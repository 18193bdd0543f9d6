"""
Agribridge API
FastAPI application entry point

Serves the marketplace's review threads, carts, checkout and order
tracking. Persistence lives in Supabase; carts live in key-value storage.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from agribridge import __version__
from agribridge.adapters.supabase_client import supabase_store
from agribridge.api.deps import close_cart_storage
from agribridge.api.routes import cart, orders, reviews
from agribridge.core.config import settings
from agribridge.core.exceptions import AgribridgeError, DataStoreError

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format=settings.LOG_FORMAT,
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} API v{__version__} ({settings.ENVIRONMENT})")
    yield
    await supabase_store.close()
    close_cart_storage()
    logger.info("Shutdown complete")


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(AgribridgeError)
async def agribridge_error_handler(request: Request, exc: AgribridgeError):
    """User-facing notification payload; the client shows it as a toast."""
    status_code = exc.status_code
    if isinstance(exc, DataStoreError) and exc.details.get("http_status") == 404:
        status_code = 404
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc!r}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected: {exc.code}")
    return JSONResponse(status_code=status_code, content=exc.to_dict())


app.include_router(reviews.router, prefix="/api/products", tags=["Reviews"])
app.include_router(cart.router, prefix="/api/cart", tags=["Cart"])
app.include_router(orders.router, prefix="/api/orders", tags=["Orders"])


@app.get("/")
async def root():
    return {"message": f"{settings.APP_NAME} API", "status": "operational"}


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "version": __version__,
        "supabase_configured": settings.supabase_configured,
        "cart_storage": settings.CART_STORAGE_BACKEND,
    }
