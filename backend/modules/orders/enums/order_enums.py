from enum import Enum


class OrderStatus(str, Enum):
    OPEN = "OPEN"
    SERVED = "SERVED"
    DONE = "DONE"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class OrderItemStatus(str, Enum):
    # Persisted on every line but never transitioned; reserved for
    # per-item preparation tracking.
    PENDING = "pending"


class OrderEventType(str, Enum):
    ORDER_NEW = "order:new"
    ORDER_UPDATE = "order:update"
    ORDER_CANCEL = "order:cancel"
    ORDER_SERVED = "order:served"
    ORDER_DONE = "order:done"
    ORDER_COMPLETED = "order:completed"
    ORDER_DELETE = "order:delete"
    GRILL_CLEAR = "grill:clear"
    KITCHEN_CLEAR = "kitchen:clear"
    BEVERAGE_CLEAR = "beverage:clear"


class StationClearMode(str, Enum):
    # OPEN orders holding the station's items are moved to COMPLETED
    COMPLETE_ORDERS = "complete_orders"
    # Only a broadcast; displays archive their tickets locally
    SIGNAL_ONLY = "signal_only"
