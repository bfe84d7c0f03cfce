"""
Order lifecycle engine.

Prices submitted items against the menu catalog, owns the order status state
machine, routes orders to preparation stations and announces every committed
change on the order feed.

Concurrent requests are not serialized here: two updates to the same order
race and the last commit wins.
"""

import logging
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import exists
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload, selectinload

from core.auth import CurrentUser
from core.exceptions import InvalidStateError, NotFoundError, ValidationError
from modules.menu.enums.menu_enums import Station
from modules.menu.models.menu_models import MenuItem
from modules.menu.services.menu_service import get_menu_items_by_ids
from ..enums.order_enums import (
    OrderEventType, OrderItemStatus, OrderStatus, StationClearMode
)
from ..models.order_models import Order, OrderItem
from ..permissions import OrderOperation, authorize, ensure_owner
from ..schemas.order_schemas import (
    OrderCreate, OrderFilter, OrderItemCreate, OrderOut, OrderUpdate,
    StationClearResult
)
from ..websocket.order_event_broadcaster import OrderEventBroadcaster
from .order_numbering_service import OrderNumberingService

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")

MAX_ITEM_QUANTITY = 10_000

# Largest value a Numeric(10, 2) column holds
MAX_ORDER_TOTAL = Decimal("99999999.99")

VALID_TRANSITIONS = {
    OrderStatus.OPEN: {
        OrderStatus.SERVED, OrderStatus.DONE, OrderStatus.CANCELLED,
        OrderStatus.COMPLETED
    },
    OrderStatus.SERVED: {OrderStatus.COMPLETED},
    OrderStatus.DONE: set(),
    OrderStatus.CANCELLED: set(),
    OrderStatus.COMPLETED: set(),
}

# Statuses a server may set through a general order update. Completion
# belongs to the cashier's checkout.
SERVER_SETTABLE_STATUSES = {
    OrderStatus.SERVED, OrderStatus.DONE, OrderStatus.CANCELLED
}

STATION_CLEAR_MODES = {
    Station.GRILL: StationClearMode.COMPLETE_ORDERS,
    Station.KITCHEN: StationClearMode.SIGNAL_ONLY,
    Station.BEVERAGE: StationClearMode.SIGNAL_ONLY,
}

STATION_CLEAR_EVENTS = {
    Station.GRILL: OrderEventType.GRILL_CLEAR,
    Station.KITCHEN: OrderEventType.KITCHEN_CLEAR,
    Station.BEVERAGE: OrderEventType.BEVERAGE_CLEAR,
}

CASHIER_STATUSES = (OrderStatus.OPEN.value, OrderStatus.SERVED.value)


def transition_order(order: Order, target: OrderStatus,
                     message: Optional[str] = None) -> OrderStatus:
    """Move an order along the state machine, returning its previous status."""
    current = OrderStatus(order.status)
    if target not in VALID_TRANSITIONS[current]:
        raise InvalidStateError(
            message or f"Invalid status transition from {current.value} "
                       f"to {target.value}"
        )
    order.status = target.value
    return current


def filter_items_for_station(order_out: OrderOut, station: Station) -> OrderOut:
    """Ticket view of an order: only the lines the station prepares."""
    return order_out.model_copy(update={
        "items": [
            item for item in order_out.items
            if item.menu_item.station == station
        ]
    })


class OrderService:
    """Order engine bound to one database session.

    Every public operation checks the actor's role before touching any
    state and announces its change only after the change is committed.
    """

    def __init__(
        self,
        db: Session,
        broadcaster: Optional[OrderEventBroadcaster] = None,
        numbering: Optional[OrderNumberingService] = None,
    ):
        self.db = db
        self.broadcaster = broadcaster
        self.numbering = numbering

    # ---- helpers -------------------------------------------------------

    def _order_query(self):
        return self.db.query(Order).options(
            selectinload(Order.items).joinedload(OrderItem.menu_item),
            joinedload(Order.server),
        )

    def _get_order(self, order_id: int) -> Order:
        order = self._order_query().filter(Order.id == order_id).first()
        if not order:
            raise NotFoundError(f"Order with id {order_id} not found")
        return order

    def _hydrate(self, order: Order) -> OrderOut:
        return OrderOut.model_validate(order)

    def _reload(self, order_id: int) -> OrderOut:
        self.db.expire_all()
        return self._hydrate(self._get_order(order_id))

    def _commit(self, action: str):
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Failed to {action}")
            raise

    def _price_items(
        self, items: Sequence[OrderItemCreate]
    ) -> Tuple[List[OrderItem], Decimal]:
        """Validate submitted lines and build priced order items.

        Nothing is written; callers persist the result.
        """
        if not items:
            raise ValidationError("Items array is required and must not be empty")

        bad_quantities = [
            item.menu_item_id for item in items
            if isinstance(item.quantity, bool) or not isinstance(item.quantity, int)
            or not 0 < item.quantity <= MAX_ITEM_QUANTITY
        ]
        if bad_quantities:
            raise ValidationError(
                f"Quantity must be a whole number between 1 and "
                f"{MAX_ITEM_QUANTITY} for menu items: {bad_quantities}"
            )

        requested_ids = [item.menu_item_id for item in items]
        catalog: Dict[int, MenuItem] = get_menu_items_by_ids(self.db, requested_ids)

        missing = sorted({i for i in requested_ids if i not in catalog})
        if missing:
            raise ValidationError(f"Menu items not found: {missing}")

        inactive = sorted({i for i in requested_ids if not catalog[i].active})
        if inactive:
            raise ValidationError(f"Menu items are not available: {inactive}")

        total = Decimal("0")
        order_items = []
        for item in items:
            menu_item = catalog[item.menu_item_id]
            price = Decimal(menu_item.price)
            total += price * item.quantity
            order_items.append(OrderItem(
                menu_item_id=menu_item.id,
                quantity=item.quantity,
                price=price,
                notes=item.notes or None,
                status=OrderItemStatus.PENDING.value,
            ))

        total = total.quantize(CENTS)
        if total > MAX_ORDER_TOTAL:
            raise ValidationError(
                f"Order total {total} exceeds the maximum of {MAX_ORDER_TOTAL}"
            )

        return order_items, total

    async def _announce(self, event_type: OrderEventType, payload) -> None:
        if self.broadcaster is None:
            logger.warning(f"Order feed not initialized; {event_type.value} not sent")
            return
        await self.broadcaster.broadcast(event_type, payload)

    # ---- commands ------------------------------------------------------

    async def create_order(self, actor: CurrentUser, order_data: OrderCreate) -> OrderOut:
        authorize(actor, OrderOperation.CREATE)

        order_items, total_price = self._price_items(order_data.items)

        if self.numbering is None:
            raise RuntimeError("Order numbering service is not configured")
        order_number = self.numbering.next_order_number()

        order = Order(
            order_number=order_number,
            status=OrderStatus.OPEN.value,
            table_number=order_data.table_number,
            total_price=total_price,
            server_id=actor.id,
            items=order_items,
        )
        self.db.add(order)
        self._commit("create order")

        created = self._reload(order.id)
        logger.info(f"Order created: #{created.order_number} by {actor.username}")

        await self._announce(OrderEventType.ORDER_NEW, created)
        return created

    async def update_order(
        self, actor: CurrentUser, order_id: int, update: OrderUpdate
    ) -> OrderOut:
        authorize(actor, OrderOperation.UPDATE)

        order = self._get_order(order_id)
        if order.status != OrderStatus.OPEN.value:
            raise InvalidStateError("Cannot modify order that is not OPEN")

        if update.status is not None and update.status != OrderStatus.OPEN:
            if update.status not in SERVER_SETTABLE_STATUSES:
                raise InvalidStateError(
                    f"Status {update.status.value} cannot be set by an order "
                    f"update; use checkout"
                )

        if update.items is not None:
            # Priced before anything is removed so a bad item list leaves
            # the order untouched
            new_items, total_price = self._price_items(update.items)
            order.items.clear()
            order.items.extend(new_items)
            order.total_price = total_price

        if update.status is not None and update.status != OrderStatus.OPEN:
            transition_order(order, update.status)

        if "table_number" in update.model_fields_set:
            order.table_number = update.table_number

        self._commit("update order")

        updated = self._reload(order_id)
        logger.info(f"Order updated: #{updated.order_number}")

        await self._announce(OrderEventType.ORDER_UPDATE, updated)
        return updated

    async def cancel_last_order(self, actor: CurrentUser) -> OrderOut:
        authorize(actor, OrderOperation.CANCEL_LAST)

        order = (
            self._order_query()
            .filter(
                Order.server_id == actor.id,
                Order.status == OrderStatus.OPEN.value,
            )
            .order_by(Order.created_at.desc(), Order.id.desc())
            .first()
        )
        if not order:
            raise NotFoundError("No recent order found to cancel")

        transition_order(order, OrderStatus.CANCELLED)
        self._commit("cancel order")

        cancelled = self._reload(order.id)
        logger.info(f"Order cancelled: #{cancelled.order_number} by {actor.username}")

        await self._announce(OrderEventType.ORDER_CANCEL, cancelled)
        return cancelled

    async def mark_served(self, actor: CurrentUser, order_id: int) -> OrderOut:
        authorize(actor, OrderOperation.MARK_SERVED)

        order = self._get_order(order_id)
        ensure_owner(actor, order.server_id, "mark as served")
        transition_order(
            order, OrderStatus.SERVED, "Only OPEN orders can be marked as served"
        )
        self._commit("mark order served")

        served = self._reload(order_id)
        logger.info(f"Order served: #{served.order_number} by {actor.username}")

        await self._announce(OrderEventType.ORDER_SERVED, served)
        return served

    async def mark_done(self, actor: CurrentUser, order_id: int) -> OrderOut:
        authorize(actor, OrderOperation.MARK_DONE)

        order = self._get_order(order_id)
        ensure_owner(actor, order.server_id, "mark as done")
        transition_order(
            order, OrderStatus.DONE, "Only OPEN orders can be marked as done"
        )
        self._commit("mark order done")

        done = self._reload(order_id)
        logger.info(f"Order marked as done: #{done.order_number} by {actor.username}")

        await self._announce(OrderEventType.ORDER_DONE, done)
        return done

    async def checkout(self, actor: CurrentUser, order_id: int) -> OrderOut:
        authorize(actor, OrderOperation.CHECKOUT)

        order = self._get_order(order_id)
        transition_order(
            order, OrderStatus.COMPLETED,
            "Only OPEN or SERVED orders can be checked out"
        )
        self._commit("check out order")

        completed = self._reload(order_id)
        logger.info(f"Order checked out: #{completed.order_number} by {actor.username}")

        await self._announce(OrderEventType.ORDER_COMPLETED, completed)
        return completed

    async def delete_order(self, actor: CurrentUser, order_id: int) -> OrderOut:
        authorize(actor, OrderOperation.DELETE)

        order = self._get_order(order_id)
        ensure_owner(actor, order.server_id, "delete")
        snapshot = self._hydrate(order)

        # Order lines go with the order through the ON DELETE CASCADE
        # foreign key
        self.db.query(Order).filter(Order.id == order_id).delete(
            synchronize_session=False
        )
        self._commit("delete order")
        self.db.expunge_all()

        logger.info(f"Order deleted: #{snapshot.order_number} by {actor.username}")

        await self._announce(OrderEventType.ORDER_DELETE, snapshot)
        return snapshot

    async def clear_station(
        self, actor: CurrentUser, station: Station
    ) -> StationClearResult:
        """
        Clear a station's board.

        Grill clears complete the open grill orders in the store; kitchen and
        beverage clears are only a signal, each display archives its own
        tickets.
        """
        authorize(actor, OrderOperation.CLEAR_STATION, station)

        mode = STATION_CLEAR_MODES[station]
        orders = self._station_orders(station)

        if mode == StationClearMode.COMPLETE_ORDERS:
            for order in orders:
                transition_order(order, OrderStatus.COMPLETED)
            self._commit(f"clear {station.value} orders")

        result = StationClearResult(station=station, cleared=len(orders), mode=mode)
        logger.info(
            f"{station.value} station cleared by {actor.username}: "
            f"{result.cleared} orders ({mode.value})"
        )

        await self._announce(STATION_CLEAR_EVENTS[station], result)
        return result

    # ---- queries -------------------------------------------------------

    async def get_order(self, actor: CurrentUser, order_id: int) -> OrderOut:
        authorize(actor, OrderOperation.VIEW)
        return self._hydrate(self._get_order(order_id))

    async def list_orders(
        self, actor: CurrentUser, order_filter: Optional[OrderFilter] = None
    ) -> List[OrderOut]:
        authorize(actor, OrderOperation.LIST)

        query = self._order_query()
        if order_filter is not None:
            if order_filter.status is not None:
                query = query.filter(Order.status == order_filter.status.value)
            if order_filter.server_id is not None:
                query = query.filter(Order.server_id == order_filter.server_id)

        orders = query.order_by(Order.created_at.desc(), Order.id.desc()).all()
        return [self._hydrate(order) for order in orders]

    async def list_active_orders(self, actor: CurrentUser) -> List[OrderOut]:
        authorize(actor, OrderOperation.LIST_ACTIVE)

        orders = (
            self._order_query()
            .filter(
                Order.status == OrderStatus.OPEN.value,
                Order.server_id == actor.id,
            )
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )
        return [self._hydrate(order) for order in orders]

    def _station_orders(self, station: Station) -> List[Order]:
        """OPEN orders holding at least one item prepared at the station."""
        has_station_item = exists().where(
            OrderItem.order_id == Order.id,
            OrderItem.menu_item_id == MenuItem.id,
            MenuItem.station == station.value,
        )
        return (
            self._order_query()
            .filter(Order.status == OrderStatus.OPEN.value, has_station_item)
            .order_by(Order.created_at.asc(), Order.id.asc())
            .all()
        )

    async def list_by_station(
        self, actor: CurrentUser, station: Station
    ) -> List[OrderOut]:
        """Station tickets, oldest first, showing only the station's items."""
        authorize(actor, OrderOperation.LIST_STATION, station)
        return [
            filter_items_for_station(self._hydrate(order), station)
            for order in self._station_orders(station)
        ]

    async def list_for_cashier(self, actor: CurrentUser) -> List[OrderOut]:
        authorize(actor, OrderOperation.LIST_CASHIER)

        orders = (
            self._order_query()
            .filter(Order.status.in_(CASHIER_STATUSES))
            .order_by(Order.created_at.asc(), Order.id.asc())
            .all()
        )
        return [self._hydrate(order) for order in orders]
