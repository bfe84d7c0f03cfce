# backend/modules/menu/models/menu_models.py

from sqlalchemy import Boolean, CheckConstraint, Column, Integer, Numeric, String

from core.database import Base
from core.mixins import TimestampMixin


class MenuItem(Base, TimestampMixin):
    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    category = Column(String(100), nullable=False, index=True)
    # Stored as the Station value ("grill", "kitchen", ...)
    station = Column(String(50), nullable=False, index=True)
    active = Column(Boolean, nullable=False, default=True, index=True)

    __table_args__ = (
        CheckConstraint("price >= 0", name="ck_menu_items_price_non_negative"),
    )
