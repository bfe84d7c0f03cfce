import pytest
from decimal import Decimal
from unittest.mock import AsyncMock

from core.exceptions import (
    AuthorizationError, InvalidStateError, NotFoundError, ValidationError
)
from modules.orders.enums.order_enums import OrderEventType, OrderStatus
from modules.orders.models.order_models import Order, OrderItem
from modules.orders.schemas.order_schemas import (
    OrderCreate, OrderFilter, OrderItemCreate, OrderUpdate
)
from modules.orders.services.order_service import OrderService


def burger_and_salad(table_number=None):
    return OrderCreate(
        items=[
            OrderItemCreate(menu_item_id=1, quantity=2),
            OrderItemCreate(menu_item_id=2, quantity=1, notes="no croutons"),
        ],
        table_number=table_number,
    )


class TestCreateOrder:

    @pytest.mark.asyncio
    async def test_create_order_prices_from_menu(
        self, order_service, broadcaster, server, menu_items
    ):
        """Two burgers at 850 and a salad at 550 total 2250."""
        order = await order_service.create_order(server, burger_and_salad("7"))

        assert order.total_price == Decimal("2250.00")
        assert order.status == OrderStatus.OPEN
        assert order.table_number == "7"
        assert order.server_id == server.id
        assert order.server.username == "server1"
        assert [i.quantity for i in order.items] == [2, 1]
        assert order.items[0].menu_item.name == "Classic Burger"
        assert order.items[1].notes == "no croutons"
        assert all(item.status == "pending" for item in order.items)

        assert broadcaster.types() == [OrderEventType.ORDER_NEW.value]
        _, data = broadcaster.events[0]
        assert data["totalPrice"] == 2250.0
        assert data["orderNumber"] == order.order_number

    @pytest.mark.asyncio
    async def test_create_order_snapshots_prices(
        self, order_service, db_session, server, menu_items
    ):
        order = await order_service.create_order(server, burger_and_salad())

        menu_items["Classic Burger"].price = Decimal("999")
        db_session.commit()

        reloaded = await order_service.get_order(server, order.id)
        assert reloaded.items[0].price == Decimal("850.00")
        assert reloaded.total_price == Decimal("2250.00")

    @pytest.mark.asyncio
    async def test_create_order_numbers_are_sequential(
        self, order_service, server, menu_items
    ):
        first = await order_service.create_order(server, burger_and_salad())
        second = await order_service.create_order(server, burger_and_salad())

        assert first.order_number == 1
        assert second.order_number == 2

    @pytest.mark.asyncio
    async def test_create_order_without_table_is_takeaway(
        self, order_service, server, menu_items
    ):
        order = await order_service.create_order(server, burger_and_salad())
        assert order.table_number is None

    @pytest.mark.asyncio
    async def test_create_order_allows_repeated_menu_item(
        self, order_service, server, menu_items
    ):
        order = await order_service.create_order(server, OrderCreate(items=[
            OrderItemCreate(menu_item_id=1, quantity=1, notes="rare"),
            OrderItemCreate(menu_item_id=1, quantity=1, notes="well done"),
        ]))

        assert len(order.items) == 2
        assert order.total_price == Decimal("1700.00")

    @pytest.mark.asyncio
    async def test_create_order_empty_items(
        self, order_service, broadcaster, db_session, server, menu_items
    ):
        with pytest.raises(ValidationError):
            await order_service.create_order(server, OrderCreate(items=[]))

        assert db_session.query(Order).count() == 0
        assert broadcaster.events == []

    @pytest.mark.asyncio
    async def test_create_order_unknown_menu_item(
        self, order_service, broadcaster, db_session, server, menu_items
    ):
        """Missing ids are listed and nothing is written or announced."""
        with pytest.raises(ValidationError) as exc_info:
            await order_service.create_order(server, OrderCreate(items=[
                OrderItemCreate(menu_item_id=1, quantity=1),
                OrderItemCreate(menu_item_id=42, quantity=1),
                OrderItemCreate(menu_item_id=99, quantity=1),
            ]))

        assert "[42, 99]" in exc_info.value.detail
        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderItem).count() == 0
        assert broadcaster.events == []

    @pytest.mark.asyncio
    async def test_create_order_inactive_menu_item(
        self, order_service, db_session, server, menu_items
    ):
        with pytest.raises(ValidationError) as exc_info:
            await order_service.create_order(server, OrderCreate(items=[
                OrderItemCreate(menu_item_id=4, quantity=1),
            ]))

        assert "not available" in exc_info.value.detail
        assert db_session.query(Order).count() == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [0, -2])
    async def test_create_order_non_positive_quantity(
        self, order_service, db_session, server, menu_items, quantity
    ):
        with pytest.raises(ValidationError):
            await order_service.create_order(server, OrderCreate(items=[
                OrderItemCreate(menu_item_id=1, quantity=quantity),
            ]))

        assert db_session.query(Order).count() == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("quantity", [10_001, 10**20])
    async def test_create_order_quantity_above_limit(
        self, order_service, numbering, db_session, server, menu_items, quantity
    ):
        """Oversized quantities are rejected before an order number is used."""
        with pytest.raises(ValidationError) as exc_info:
            await order_service.create_order(server, OrderCreate(items=[
                OrderItemCreate(menu_item_id=1, quantity=quantity),
            ]))

        assert "between 1 and 10000" in exc_info.value.detail
        assert db_session.query(Order).count() == 0
        assert numbering.current() is None

    @pytest.mark.asyncio
    async def test_create_order_total_above_limit(
        self, order_service, numbering, db_session, server, menu_items
    ):
        menu_items["Classic Burger"].price = Decimal("20000")
        db_session.commit()

        with pytest.raises(ValidationError) as exc_info:
            await order_service.create_order(server, OrderCreate(items=[
                OrderItemCreate(menu_item_id=1, quantity=10_000),
            ]))

        assert "exceeds the maximum" in exc_info.value.detail
        assert db_session.query(Order).count() == 0
        assert numbering.current() is None

    @pytest.mark.asyncio
    async def test_create_order_requires_server_role(
        self, order_service, broadcaster, db_session, cashier, menu_items
    ):
        with pytest.raises(AuthorizationError):
            await order_service.create_order(cashier, burger_and_salad())

        assert db_session.query(Order).count() == 0
        assert broadcaster.events == []

    @pytest.mark.asyncio
    async def test_create_order_without_broadcaster_still_commits(
        self, db_session, numbering, server, menu_items
    ):
        service = OrderService(db_session, broadcaster=None, numbering=numbering)

        order = await service.create_order(server, burger_and_salad())

        assert db_session.query(Order).filter(Order.id == order.id).count() == 1

    @pytest.mark.asyncio
    async def test_create_order_announces_committed_order(
        self, db_session, numbering, server, menu_items
    ):
        """The feed receives the hydrated order after it is committed."""
        feed = AsyncMock()
        feed.broadcast.return_value = 0
        service = OrderService(db_session, broadcaster=feed, numbering=numbering)

        order = await service.create_order(server, burger_and_salad())

        feed.broadcast.assert_awaited_once()
        event_type, payload = feed.broadcast.await_args.args
        assert event_type == OrderEventType.ORDER_NEW
        assert payload.id == order.id


class TestListAndGet:

    @pytest.mark.asyncio
    async def test_list_orders_newest_first(
        self, order_service, server, cashier, menu_items
    ):
        first = await order_service.create_order(server, burger_and_salad())
        second = await order_service.create_order(server, burger_and_salad())

        orders = await order_service.list_orders(cashier)

        assert [o.id for o in orders] == [second.id, first.id]

    @pytest.mark.asyncio
    async def test_list_orders_filters(
        self, order_service, server, other_server, owner, menu_items
    ):
        mine = await order_service.create_order(server, burger_and_salad())
        theirs = await order_service.create_order(other_server, burger_and_salad())
        await order_service.mark_served(other_server, theirs.id)

        by_server = await order_service.list_orders(
            owner, OrderFilter(server_id=server.id)
        )
        served = await order_service.list_orders(
            owner, OrderFilter(status=OrderStatus.SERVED)
        )

        assert [o.id for o in by_server] == [mine.id]
        assert [o.id for o in served] == [theirs.id]

    @pytest.mark.asyncio
    async def test_list_active_orders_only_own_open(
        self, order_service, server, other_server, menu_items
    ):
        open_order = await order_service.create_order(server, burger_and_salad())
        served = await order_service.create_order(server, burger_and_salad())
        await order_service.mark_served(server, served.id)
        await order_service.create_order(other_server, burger_and_salad())

        active = await order_service.list_active_orders(server)

        assert [o.id for o in active] == [open_order.id]

    @pytest.mark.asyncio
    async def test_get_order_not_found(self, order_service, server):
        with pytest.raises(NotFoundError):
            await order_service.get_order(server, 999)


class TestUpdateOrder:

    @pytest.mark.asyncio
    async def test_update_replaces_items_and_total(
        self, order_service, broadcaster, db_session, server, menu_items
    ):
        order = await order_service.create_order(server, burger_and_salad())

        updated = await order_service.update_order(server, order.id, OrderUpdate(
            items=[OrderItemCreate(menu_item_id=3, quantity=3)]
        ))

        assert [i.menu_item_id for i in updated.items] == [3]
        assert updated.total_price == Decimal("900.00")
        assert db_session.query(OrderItem).filter(
            OrderItem.order_id == order.id
        ).count() == 1
        assert broadcaster.types()[-1] == OrderEventType.ORDER_UPDATE.value

    @pytest.mark.asyncio
    async def test_update_with_bad_items_leaves_order_untouched(
        self, order_service, db_session, server, menu_items
    ):
        order = await order_service.create_order(server, burger_and_salad())

        with pytest.raises(ValidationError):
            await order_service.update_order(server, order.id, OrderUpdate(
                items=[OrderItemCreate(menu_item_id=77, quantity=1)]
            ))

        db_session.expire_all()
        reloaded = await order_service.get_order(server, order.id)
        assert len(reloaded.items) == 2
        assert reloaded.total_price == Decimal("2250.00")

    @pytest.mark.asyncio
    async def test_update_with_empty_items_rejected(
        self, order_service, server, menu_items
    ):
        order = await order_service.create_order(server, burger_and_salad())

        with pytest.raises(ValidationError):
            await order_service.update_order(
                server, order.id, OrderUpdate(items=[])
            )

    @pytest.mark.asyncio
    async def test_update_table_number(self, order_service, server, menu_items):
        order = await order_service.create_order(server, burger_and_salad("3"))

        moved = await order_service.update_order(
            server, order.id, OrderUpdate(table_number=12)
        )
        assert moved.table_number == "12"

        untouched = await order_service.update_order(
            server, order.id, OrderUpdate(items=None)
        )
        assert untouched.table_number == "12"

        takeaway = await order_service.update_order(
            server, order.id, OrderUpdate(table_number=None)
        )
        assert takeaway.table_number is None

    @pytest.mark.asyncio
    async def test_update_status_to_cancelled(self, order_service, server, menu_items):
        order = await order_service.create_order(server, burger_and_salad())

        updated = await order_service.update_order(
            server, order.id, OrderUpdate(status=OrderStatus.CANCELLED)
        )

        assert updated.status == OrderStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_update_status_cannot_complete(
        self, order_service, server, menu_items
    ):
        order = await order_service.create_order(server, burger_and_salad())

        with pytest.raises(InvalidStateError):
            await order_service.update_order(
                server, order.id, OrderUpdate(status=OrderStatus.COMPLETED)
            )

    @pytest.mark.asyncio
    @pytest.mark.parametrize("operation", ["mark_served", "mark_done", "checkout_first"])
    async def test_non_open_order_rejects_update(
        self, order_service, server, cashier, menu_items, operation
    ):
        order = await order_service.create_order(server, burger_and_salad())
        if operation == "mark_served":
            await order_service.mark_served(server, order.id)
        elif operation == "mark_done":
            await order_service.mark_done(server, order.id)
        else:
            await order_service.checkout(cashier, order.id)

        with pytest.raises(InvalidStateError):
            await order_service.update_order(server, order.id, OrderUpdate(
                items=[OrderItemCreate(menu_item_id=3, quantity=1)]
            ))
        with pytest.raises(InvalidStateError):
            await order_service.update_order(
                server, order.id, OrderUpdate(status=OrderStatus.OPEN)
            )

    @pytest.mark.asyncio
    async def test_update_requires_server_role(
        self, order_service, server, owner, menu_items
    ):
        order = await order_service.create_order(server, burger_and_salad())

        with pytest.raises(AuthorizationError):
            await order_service.update_order(
                owner, order.id, OrderUpdate(table_number="1")
            )

    @pytest.mark.asyncio
    async def test_update_missing_order(self, order_service, server):
        with pytest.raises(NotFoundError):
            await order_service.update_order(server, 404, OrderUpdate())


class TestCancelLastOrder:

    @pytest.mark.asyncio
    async def test_cancels_most_recent_open_order(
        self, order_service, broadcaster, db_session, server, menu_items
    ):
        first = await order_service.create_order(server, burger_and_salad())
        second = await order_service.create_order(server, burger_and_salad())

        cancelled = await order_service.cancel_last_order(server)

        assert cancelled.id == second.id
        assert cancelled.status == OrderStatus.CANCELLED
        assert db_session.query(Order).count() == 2
        still_open = await order_service.get_order(server, first.id)
        assert still_open.status == OrderStatus.OPEN
        assert broadcaster.types()[-1] == OrderEventType.ORDER_CANCEL.value

    @pytest.mark.asyncio
    async def test_skips_other_servers_orders(
        self, order_service, server, other_server, menu_items
    ):
        mine = await order_service.create_order(server, burger_and_salad())
        await order_service.create_order(other_server, burger_and_salad())

        cancelled = await order_service.cancel_last_order(server)

        assert cancelled.id == mine.id

    @pytest.mark.asyncio
    async def test_no_open_orders(
        self, order_service, broadcaster, server, other_server, menu_items
    ):
        """Server A with nothing open gets NotFound and nothing is announced."""
        await order_service.create_order(other_server, burger_and_salad())
        broadcaster.events.clear()

        with pytest.raises(NotFoundError):
            await order_service.cancel_last_order(server)

        assert broadcaster.events == []


class TestStatusTransitions:

    @pytest.mark.asyncio
    async def test_mark_served(self, order_service, broadcaster, server, menu_items):
        order = await order_service.create_order(server, burger_and_salad())

        served = await order_service.mark_served(server, order.id)

        assert served.status == OrderStatus.SERVED
        assert broadcaster.types()[-1] == OrderEventType.ORDER_SERVED.value

    @pytest.mark.asyncio
    async def test_mark_served_by_non_owner(
        self, order_service, broadcaster, server, other_server, menu_items
    ):
        order = await order_service.create_order(server, burger_and_salad())
        broadcaster.events.clear()

        with pytest.raises(AuthorizationError):
            await order_service.mark_served(other_server, order.id)

        reloaded = await order_service.get_order(server, order.id)
        assert reloaded.status == OrderStatus.OPEN
        assert broadcaster.events == []

    @pytest.mark.asyncio
    async def test_mark_served_twice(self, order_service, server, menu_items):
        order = await order_service.create_order(server, burger_and_salad())
        await order_service.mark_served(server, order.id)

        with pytest.raises(InvalidStateError):
            await order_service.mark_served(server, order.id)
        with pytest.raises(InvalidStateError):
            await order_service.mark_done(server, order.id)

    @pytest.mark.asyncio
    async def test_mark_done(self, order_service, broadcaster, server, menu_items):
        order = await order_service.create_order(server, burger_and_salad())

        done = await order_service.mark_done(server, order.id)

        assert done.status == OrderStatus.DONE
        assert broadcaster.types()[-1] == OrderEventType.ORDER_DONE.value

    @pytest.mark.asyncio
    async def test_mark_done_by_non_owner(
        self, order_service, server, other_server, menu_items
    ):
        order = await order_service.create_order(server, burger_and_salad())

        with pytest.raises(AuthorizationError):
            await order_service.mark_done(other_server, order.id)

    @pytest.mark.asyncio
    async def test_checkout_from_open(
        self, order_service, broadcaster, server, cashier, menu_items
    ):
        order = await order_service.create_order(server, burger_and_salad())

        completed = await order_service.checkout(cashier, order.id)

        assert completed.status == OrderStatus.COMPLETED
        assert broadcaster.types()[-1] == OrderEventType.ORDER_COMPLETED.value

    @pytest.mark.asyncio
    async def test_checkout_from_served_by_owner(
        self, order_service, server, owner, menu_items
    ):
        order = await order_service.create_order(server, burger_and_salad())
        await order_service.mark_served(server, order.id)

        completed = await order_service.checkout(owner, order.id)

        assert completed.status == OrderStatus.COMPLETED

    @pytest.mark.asyncio
    @pytest.mark.parametrize("terminal", ["done", "cancelled", "completed"])
    async def test_checkout_from_terminal_state(
        self, order_service, server, cashier, menu_items, terminal
    ):
        order = await order_service.create_order(server, burger_and_salad())
        if terminal == "done":
            await order_service.mark_done(server, order.id)
        elif terminal == "cancelled":
            await order_service.cancel_last_order(server)
        else:
            await order_service.checkout(cashier, order.id)

        with pytest.raises(InvalidStateError):
            await order_service.checkout(cashier, order.id)

        with pytest.raises(InvalidStateError):
            await order_service.mark_served(server, order.id)

    @pytest.mark.asyncio
    async def test_checkout_requires_cashier_or_owner(
        self, order_service, server, menu_items
    ):
        order = await order_service.create_order(server, burger_and_salad())

        with pytest.raises(AuthorizationError):
            await order_service.checkout(server, order.id)


class TestDeleteOrder:

    @pytest.mark.asyncio
    async def test_delete_cascades_items(
        self, order_service, broadcaster, db_session, server, menu_items
    ):
        order = await order_service.create_order(server, burger_and_salad())

        deleted = await order_service.delete_order(server, order.id)

        assert deleted.id == order.id
        assert len(deleted.items) == 2
        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderItem).count() == 0

        event_type, data = broadcaster.events[-1]
        assert event_type == OrderEventType.ORDER_DELETE.value
        assert data["id"] == order.id
        assert len(data["items"]) == 2

    @pytest.mark.asyncio
    async def test_delete_any_status(self, order_service, db_session, server, menu_items):
        order = await order_service.create_order(server, burger_and_salad())
        await order_service.mark_done(server, order.id)

        await order_service.delete_order(server, order.id)

        assert db_session.query(Order).count() == 0

    @pytest.mark.asyncio
    async def test_delete_by_non_owner(
        self, order_service, db_session, server, other_server, menu_items
    ):
        order = await order_service.create_order(server, burger_and_salad())

        with pytest.raises(AuthorizationError):
            await order_service.delete_order(other_server, order.id)

        assert db_session.query(Order).count() == 1

    @pytest.mark.asyncio
    async def test_delete_missing(self, order_service, server):
        with pytest.raises(NotFoundError):
            await order_service.delete_order(server, 12345)
