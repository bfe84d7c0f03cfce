from datetime import datetime
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel

from ..enums.menu_enums import Station

# Currency amounts are Decimal internally but leave the API as JSON numbers
Money = Annotated[
    Decimal, PlainSerializer(float, return_type=float, when_used="json")
]


class MenuItemOut(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )

    id: int
    name: str
    price: Money
    category: str
    station: Station
    active: bool
    created_at: datetime
    updated_at: datetime
