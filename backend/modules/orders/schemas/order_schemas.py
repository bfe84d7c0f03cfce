from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator
from pydantic.alias_generators import to_camel
from typing import Optional, List, Union
from datetime import datetime

from modules.menu.enums.menu_enums import Station
from modules.menu.schemas.menu_schemas import MenuItemOut, Money
from ..enums.order_enums import OrderStatus, StationClearMode


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


def _table_number_to_str(v):
    # Terminals send table numbers as either numbers or strings
    if v is None or v == "":
        return None
    if isinstance(v, bool):
        raise ValueError("tableNumber must be a string or number")
    return str(v)


class OrderItemCreate(CamelModel):
    menu_item_id: int
    # Range is enforced by the order service so direct callers get the
    # same ValidationError as API clients
    quantity: StrictInt
    notes: Optional[str] = None


class OrderCreate(CamelModel):
    items: List[OrderItemCreate] = Field(default_factory=list)
    table_number: Optional[Union[str, int]] = None

    @field_validator("table_number", mode="before")
    @classmethod
    def normalize_table_number(cls, v):
        return _table_number_to_str(v)


class OrderUpdate(CamelModel):
    items: Optional[List[OrderItemCreate]] = None
    status: Optional[OrderStatus] = None
    table_number: Optional[Union[str, int]] = None

    @field_validator("table_number", mode="before")
    @classmethod
    def normalize_table_number(cls, v):
        return _table_number_to_str(v)


class OrderFilter(CamelModel):
    status: Optional[OrderStatus] = None
    server_id: Optional[int] = None


class ServerOut(CamelModel):
    id: int
    username: str


class OrderItemOut(CamelModel):
    id: int
    order_id: int
    menu_item_id: int
    quantity: int
    price: Money
    notes: Optional[str] = None
    status: str
    menu_item: MenuItemOut
    created_at: datetime
    updated_at: datetime


class OrderOut(CamelModel):
    id: int
    order_number: int
    status: OrderStatus
    table_number: Optional[str] = None
    total_price: Money
    server_id: int
    server: ServerOut
    items: List[OrderItemOut] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class StationClearResult(CamelModel):
    station: Station
    cleared: int
    mode: StationClearMode
