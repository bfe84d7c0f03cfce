from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging

from core.config import get_settings, validate_production_config
from core.database import Base, SessionLocal, engine
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging

# ========== Authentication ==========
from modules.auth.routes.auth_routes import router as auth_router

# ========== Menu ==========
from modules.menu.routes.menu_routes import router as menu_router

# ========== Orders ==========
from modules.orders.models import order_models  # noqa: F401
from modules.orders.routes.order_routes import router as order_router
from modules.orders.routes.websocket_routes import router as order_feed_router
from modules.orders.services.order_numbering_service import OrderNumberingService
from modules.orders.websocket.order_event_broadcaster import OrderEventBroadcaster

logger = logging.getLogger(__name__)

settings = get_settings()

app = FastAPI(
    title="RestaurantPOS - Order API",
    description="""
    Order lifecycle and station routing for restaurant front and back of house.

    ## Features

    * **Orders** - Servers place and amend orders, cashiers check them out
    * **Station Routing** - Grill and kitchen displays see only their own items
    * **Order Feed** - Every order change is pushed live over `/ws/orders`
    * **Menu** - Read-only catalog the orders are priced from

    ## Authentication

    Every endpoint except `/auth/*` and `/ping` requires a bearer token from
    `/auth/login`.
    """,
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(auth_router)
app.include_router(menu_router)
app.include_router(order_router)
app.include_router(order_feed_router)


@app.on_event("startup")
async def startup_event():
    """Initialize services on application startup"""
    configure_logging(settings)
    validate_production_config(settings)

    Base.metadata.create_all(bind=engine)

    app.state.order_broadcaster = OrderEventBroadcaster(
        send_timeout=settings.websocket_send_timeout_seconds
    )
    app.state.order_numbering = OrderNumberingService(
        SessionLocal, timezone_name=settings.order_counter_timezone
    )
    logger.info(f"RestaurantPOS API started ({settings.environment})")


@app.on_event("shutdown")
async def shutdown_event():
    """Cleanup on application shutdown"""
    broadcaster = getattr(app.state, "order_broadcaster", None)
    if broadcaster is not None:
        await broadcaster.close_all_connections()


@app.get("/ping")
def ping():
    return {"status": "success", "message": "RestaurantPOS backend is running"}
