from enum import Enum


class Station(str, Enum):
    """Preparation area a menu item is routed to."""

    GRILL = "grill"
    KITCHEN = "kitchen"
    BEVERAGE = "beverage"
