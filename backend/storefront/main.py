from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from storefront.core.config import settings
from storefront.core.database import connect_to_mongo, close_mongo_connection, get_database
from storefront.api.routes import cart
from storefront.data.products import Catalog
from storefront.data.promo_codes import PromoCodeRegistry
from storefront.services.cart_service import CartStore, StockPolicy
from storefront.services.persistence import InMemoryCartStorage, MongoCartStorage
from storefront.services.sync import BroadcastHub, MongoSyncChannel

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="Cart and pricing API for the configurable product storefront",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.BACKEND_CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def build_storage():
    """Select the cart storage backend from settings."""
    if settings.CART_STORAGE_BACKEND == "mongo":
        await connect_to_mongo()
        return MongoCartStorage(get_database()[settings.CART_COLLECTION])
    if settings.CART_STORAGE_BACKEND != "memory":
        logger.warning(f"Unknown CART_STORAGE_BACKEND {settings.CART_STORAGE_BACKEND!r}, using memory")
    return InMemoryCartStorage()


async def build_sync_channel(hub: BroadcastHub):
    """Select the cross-context sync transport from settings."""
    if settings.SYNC_BACKEND == "mongo":
        if get_database() is None:
            await connect_to_mongo()
        channel = MongoSyncChannel(get_database()[settings.SYNC_COLLECTION], settings.SYNC_CHANNEL_NAME)
        channel.start()
        return channel
    if settings.SYNC_BACKEND != "memory":
        logger.warning(f"Unknown SYNC_BACKEND {settings.SYNC_BACKEND!r}, using memory")
    return hub.open_channel(settings.SYNC_CHANNEL_NAME)


# Startup and shutdown events
@app.on_event("startup")
async def startup_event():
    """Wire the cart engine together."""
    logger.info("Starting up storefront backend...")
    hub = BroadcastHub()
    catalog = Catalog()
    store = CartStore(
        catalog=catalog,
        storage=await build_storage(),
        channel=await build_sync_channel(hub),
        stock_policy=StockPolicy(settings.STOCK_POLICY),
    )
    store.start()
    await store.load_from_storage()

    app.state.sync_hub = hub
    app.state.catalog = catalog
    app.state.promo_registry = PromoCodeRegistry()
    app.state.cart_store = store
    logger.info("Storefront backend started successfully")


@app.on_event("shutdown")
async def shutdown_event():
    """Clean up services on shutdown."""
    logger.info("Shutting down storefront backend...")
    store = getattr(app.state, "cart_store", None)
    if store:
        if isinstance(store.channel, MongoSyncChannel):
            await store.channel.flush()
        store.close()
        if store.channel:
            await store.channel.wait_closed()
    await close_mongo_connection()
    logger.info("Storefront backend shut down successfully")


# Health check endpoint
@app.get("/health")
async def health_check():
    """Health check endpoint."""
    store = getattr(app.state, "cart_store", None)
    return {
        "status": "healthy",
        "service": "storefront-backend",
        "version": "1.0.0",
        "cart_state": store.state.value if store else "uninitialized"
    }


# Include routers
app.include_router(cart.router, prefix=f"{settings.API_V1_PREFIX}/cart", tags=["Cart"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
