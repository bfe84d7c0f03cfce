from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session
from typing import List, Optional

from core.auth import CurrentUser, get_current_user
from core.database import get_db
from core.response_models import StandardResponse
from core.response_utils import create_response
from modules.menu.enums.menu_enums import Station
from ..enums.order_enums import OrderStatus
from ..schemas.order_schemas import (
    OrderCreate, OrderFilter, OrderOut, OrderUpdate, StationClearResult
)
from ..services.order_numbering_service import OrderNumberingService
from ..services.order_service import OrderService
from ..websocket.order_event_broadcaster import OrderEventBroadcaster

router = APIRouter(prefix="/orders", tags=["Orders"])


def get_broadcaster(request: Request) -> Optional[OrderEventBroadcaster]:
    return getattr(request.app.state, "order_broadcaster", None)


def get_numbering_service(request: Request) -> Optional[OrderNumberingService]:
    return getattr(request.app.state, "order_numbering", None)


def get_order_service(
    db: Session = Depends(get_db),
    broadcaster: Optional[OrderEventBroadcaster] = Depends(get_broadcaster),
    numbering: Optional[OrderNumberingService] = Depends(get_numbering_service),
) -> OrderService:
    return OrderService(db, broadcaster=broadcaster, numbering=numbering)


@router.post(
    "",
    response_model=StandardResponse[OrderOut],
    status_code=status.HTTP_201_CREATED,
)
async def create_order(
    order_data: OrderCreate,
    current_user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Place a new order. The total is priced from the menu, never the client."""
    order = await service.create_order(current_user, order_data)
    return create_response(order, "Order created successfully")


@router.get("", response_model=StandardResponse[List[OrderOut]])
async def get_orders(
    order_status: Optional[OrderStatus] = Query(
        None, alias="status", description="Filter by order status"
    ),
    server_id: Optional[int] = Query(
        None, alias="serverId", description="Filter by server user ID"
    ),
    current_user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """
    List orders, newest first.

    - **status**: OPEN, SERVED, DONE, CANCELLED or COMPLETED
    - **serverId**: only orders taken by this server
    """
    orders = await service.list_orders(
        current_user, OrderFilter(status=order_status, server_id=server_id)
    )
    return create_response(orders)


@router.get("/active", response_model=StandardResponse[List[OrderOut]])
async def get_active_orders(
    current_user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """The calling server's own OPEN orders."""
    return create_response(await service.list_active_orders(current_user))


@router.get("/grill", response_model=StandardResponse[List[OrderOut]])
async def get_grill_orders(
    current_user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return create_response(await service.list_by_station(current_user, Station.GRILL))


@router.get("/kitchen", response_model=StandardResponse[List[OrderOut]])
async def get_kitchen_orders(
    current_user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return create_response(
        await service.list_by_station(current_user, Station.KITCHEN)
    )


@router.get("/cashier", response_model=StandardResponse[List[OrderOut]])
async def get_cashier_orders(
    current_user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Orders awaiting payment, oldest first."""
    return create_response(await service.list_for_cashier(current_user))


@router.delete("/last", response_model=StandardResponse[OrderOut])
async def cancel_last_order(
    current_user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Cancel the calling server's most recent OPEN order."""
    order = await service.cancel_last_order(current_user)
    return create_response(order, "Order cancelled successfully")


@router.delete("/grill", response_model=StandardResponse[StationClearResult])
async def clear_grill_orders(
    current_user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Complete every OPEN order on the grill board."""
    result = await service.clear_station(current_user, Station.GRILL)
    return create_response(result, "Grill orders cleared")


@router.delete("/kitchen", response_model=StandardResponse[StationClearResult])
async def clear_kitchen_orders(
    current_user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    """Signal kitchen displays to clear. Orders are left as they are."""
    result = await service.clear_station(current_user, Station.KITCHEN)
    return create_response(result, "Kitchen orders cleared")


@router.get("/{order_id}", response_model=StandardResponse[OrderOut])
async def get_order(
    order_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    return create_response(await service.get_order(current_user, order_id))


@router.patch("/{order_id}", response_model=StandardResponse[OrderOut])
async def update_order(
    order_id: int,
    order_data: OrderUpdate,
    current_user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = await service.update_order(current_user, order_id, order_data)
    return create_response(order, "Order updated successfully")


@router.patch("/{order_id}/served", response_model=StandardResponse[OrderOut])
async def mark_order_served(
    order_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = await service.mark_served(current_user, order_id)
    return create_response(order, "Order marked as served")


@router.patch("/{order_id}/done", response_model=StandardResponse[OrderOut])
async def mark_order_done(
    order_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = await service.mark_done(current_user, order_id)
    return create_response(order, "Order marked as done")


@router.patch("/{order_id}/checkout", response_model=StandardResponse[OrderOut])
async def checkout_order(
    order_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = await service.checkout(current_user, order_id)
    return create_response(order, "Order checked out successfully")


@router.delete("/{order_id}", response_model=StandardResponse[OrderOut])
async def delete_order(
    order_id: int,
    current_user: CurrentUser = Depends(get_current_user),
    service: OrderService = Depends(get_order_service),
):
    order = await service.delete_order(current_user, order_id)
    return create_response(order, "Order deleted successfully")
