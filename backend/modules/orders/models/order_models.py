from sqlalchemy import (Column, Integer, String, ForeignKey, Date,
                        Numeric, Text, CheckConstraint)
from sqlalchemy.orm import relationship
from core.database import Base
from core.mixins import TimestampMixin
from modules.auth.models.user_models import User  # noqa: F401
from modules.menu.models.menu_models import MenuItem  # noqa: F401
from ..enums.order_enums import OrderStatus, OrderItemStatus


class Order(Base, TimestampMixin):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    # Resets daily, so it is not unique on its own
    order_number = Column(Integer, nullable=False, index=True)
    status = Column(String(20), nullable=False, default=OrderStatus.OPEN.value,
                    index=True)
    # NULL means takeaway
    table_number = Column(String(20), nullable=True)
    total_price = Column(Numeric(10, 2), nullable=False, default=0)
    server_id = Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"),
                       nullable=False, index=True)

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OrderItem.id",
    )
    server = relationship("User", lazy="joined")


class OrderItem(Base, TimestampMixin):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"),
                      nullable=False, index=True)
    menu_item_id = Column(Integer,
                          ForeignKey("menu_items.id", ondelete="RESTRICT"),
                          nullable=False, index=True)
    quantity = Column(Integer, nullable=False)
    # Price snapshot taken when the line was created
    price = Column(Numeric(10, 2), nullable=False)
    notes = Column(Text, nullable=True)
    status = Column(String(20), nullable=False,
                    default=OrderItemStatus.PENDING.value)

    order = relationship("Order", back_populates="items")
    menu_item = relationship("MenuItem", lazy="joined")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )


class OrderCounter(Base):
    """Single-row store behind the daily order number sequence."""
    __tablename__ = "order_counters"

    id = Column(Integer, primary_key=True)
    counter_date = Column(Date, nullable=False)
    counter = Column(Integer, nullable=False, default=0)
