# backend/modules/orders/services/order_numbering_service.py

"""
Daily order numbering.

Order numbers are the short ticket numbers shouted across the pass: they
start at 1 every local calendar day and count up from there. The sequence
lives in a single ``order_counters`` row that is advanced with one
conditional UPDATE, so reading and bumping the counter cannot interleave.
"""

from datetime import date, datetime
from typing import Callable, Optional, Tuple
from zoneinfo import ZoneInfo
import logging

from sqlalchemy import case, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.order_models import OrderCounter

logger = logging.getLogger(__name__)

COUNTER_ROW_ID = 1


def local_today(timezone_name: str = "") -> date:
    if timezone_name:
        return datetime.now(ZoneInfo(timezone_name)).date()
    return date.today()


class OrderNumberingService:
    """Issues the next daily order number.

    Runs in its own short transaction, independent of the order being
    created. If the store cannot be reached the service keeps handing out
    numbers from memory instead of failing the order; numbers issued that
    way may repeat once the store is back.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Optional[Callable[[], date]] = None,
        timezone_name: str = "",
    ):
        self.session_factory = session_factory
        self.clock = clock or (lambda: local_today(timezone_name))
        self._memory_date: Optional[date] = None
        self._memory_counter = 0

    def next_order_number(self) -> int:
        today = self.clock()
        try:
            number = self._advance_stored_counter(today)
        except SQLAlchemyError as e:
            number = self._advance_memory_counter(today)
            logger.warning(
                f"Order counter store unavailable ({e}); "
                f"issued in-memory order number {number}"
            )
            return number

        self._memory_date = today
        self._memory_counter = number
        return number

    def _advance_stored_counter(self, today: date) -> int:
        stmt = (
            update(OrderCounter)
            .where(OrderCounter.id == COUNTER_ROW_ID)
            .values(
                counter=case(
                    (OrderCounter.counter_date == today, OrderCounter.counter + 1),
                    else_=1,
                ),
                counter_date=today,
            )
            .returning(OrderCounter.counter)
            .execution_options(synchronize_session=False)
        )

        with self.session_factory() as session:
            number = session.execute(stmt).scalar_one_or_none()
            if number is None:
                # First order ever: create the row, or lose the race to a
                # concurrent creator and advance theirs
                session.add(OrderCounter(id=COUNTER_ROW_ID, counter_date=today, counter=1))
                try:
                    session.commit()
                    return 1
                except IntegrityError:
                    session.rollback()
                    number = session.execute(stmt).scalar_one()
            session.commit()
            return number

    def _advance_memory_counter(self, today: date) -> int:
        if self._memory_date != today:
            self._memory_date = today
            self._memory_counter = 1
        else:
            self._memory_counter += 1
        return self._memory_counter

    def reset(self) -> None:
        """Restart today's sequence so the next number issued is 1."""
        today = self.clock()
        with self.session_factory() as session:
            session.merge(OrderCounter(id=COUNTER_ROW_ID, counter_date=today, counter=0))
            session.commit()
        self._memory_date = today
        self._memory_counter = 0
        logger.info("Order counter reset")

    def current(self) -> Optional[Tuple[date, int]]:
        """Stored ``(date, counter)`` pair, or None before the first order."""
        with self.session_factory() as session:
            row = session.get(OrderCounter, COUNTER_ROW_ID)
            if row is None:
                return None
            return row.counter_date, row.counter
