import pytest
from datetime import date, timedelta
from unittest.mock import MagicMock

from sqlalchemy.exc import OperationalError

from core.database import SessionLocal
from modules.orders.models.order_models import OrderCounter
from modules.orders.services.order_numbering_service import (
    COUNTER_ROW_ID, OrderNumberingService
)


class FakeClock:
    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today

    def advance(self, days: int = 1):
        self.today += timedelta(days=days)


@pytest.fixture
def clock():
    return FakeClock(date(2024, 3, 1))


@pytest.fixture
def numbering_service(db_session, clock):
    return OrderNumberingService(SessionLocal, clock=clock)


def broken_session_factory():
    session = MagicMock()
    session.__enter__.return_value = session
    session.execute.side_effect = OperationalError("UPDATE", {}, Exception("disk I/O error"))
    return session


class TestOrderNumberingService:

    def test_first_number_is_one(self, numbering_service):
        assert numbering_service.current() is None
        assert numbering_service.next_order_number() == 1
        assert numbering_service.current() == (date(2024, 3, 1), 1)

    def test_consecutive_numbers_same_day(self, numbering_service):
        """Sequential calls on the same day return n, n+1."""
        first = numbering_service.next_order_number()
        second = numbering_service.next_order_number()
        third = numbering_service.next_order_number()

        assert [second - first, third - second] == [1, 1]

    def test_resets_on_new_day(self, numbering_service, clock):
        for _ in range(5):
            numbering_service.next_order_number()

        clock.advance()

        assert numbering_service.next_order_number() == 1
        assert numbering_service.next_order_number() == 2
        assert numbering_service.current() == (date(2024, 3, 2), 2)

    def test_counter_shared_between_instances(self, db_session, clock):
        first = OrderNumberingService(SessionLocal, clock=clock)
        second = OrderNumberingService(SessionLocal, clock=clock)

        assert first.next_order_number() == 1
        assert second.next_order_number() == 2
        assert first.next_order_number() == 3

    def test_continues_existing_row(self, db_session, clock, numbering_service):
        db_session.add(OrderCounter(id=COUNTER_ROW_ID, counter_date=clock.today, counter=41))
        db_session.commit()

        assert numbering_service.next_order_number() == 42

    def test_stale_row_from_previous_day(self, db_session, clock, numbering_service):
        db_session.add(OrderCounter(
            id=COUNTER_ROW_ID, counter_date=clock.today - timedelta(days=3), counter=88
        ))
        db_session.commit()

        assert numbering_service.next_order_number() == 1

    def test_reset(self, numbering_service):
        numbering_service.next_order_number()
        numbering_service.next_order_number()

        numbering_service.reset()

        assert numbering_service.current() == (date(2024, 3, 1), 0)
        assert numbering_service.next_order_number() == 1

    def test_falls_back_to_memory_when_store_unavailable(self, clock):
        service = OrderNumberingService(broken_session_factory, clock=clock)

        assert service.next_order_number() == 1
        assert service.next_order_number() == 2

        clock.advance()
        assert service.next_order_number() == 1

    def test_fallback_continues_from_last_stored_number(self, numbering_service):
        numbering_service.next_order_number()
        numbering_service.next_order_number()

        numbering_service.session_factory = broken_session_factory

        assert numbering_service.next_order_number() == 3

    def test_fallback_logs_warning(self, clock, caplog):
        service = OrderNumberingService(broken_session_factory, clock=clock)

        with caplog.at_level("WARNING"):
            service.next_order_number()

        assert "in-memory order number 1" in caplog.text
