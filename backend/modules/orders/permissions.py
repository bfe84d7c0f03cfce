# backend/modules/orders/permissions.py

"""
Role permissions for order operations.

Every order operation is looked up once in ``ORDER_PERMISSIONS``; station
operations additionally resolve the station's own worker role through
``STATION_ROLES``.
"""

from enum import Enum
from typing import Dict, FrozenSet, Optional

from core.auth import CurrentUser
from core.exceptions import AuthorizationError
from modules.auth.enums.role_enums import RoleName
from modules.menu.enums.menu_enums import Station


class OrderOperation(str, Enum):
    """Operations exposed by the order engine"""

    CREATE = "order:create"
    LIST = "order:list"
    VIEW = "order:view"
    LIST_ACTIVE = "order:list_active"
    UPDATE = "order:update"
    CANCEL_LAST = "order:cancel_last"
    MARK_SERVED = "order:mark_served"
    MARK_DONE = "order:mark_done"
    CHECKOUT = "order:checkout"
    DELETE = "order:delete"
    LIST_CASHIER = "order:list_cashier"
    LIST_STATION = "station:list"
    CLEAR_STATION = "station:clear"


ALL_ROLES: FrozenSet[RoleName] = frozenset(RoleName)

ORDER_PERMISSIONS: Dict[OrderOperation, FrozenSet[RoleName]] = {
    OrderOperation.CREATE: frozenset({RoleName.SERVER}),
    OrderOperation.LIST: ALL_ROLES,
    OrderOperation.VIEW: ALL_ROLES,
    OrderOperation.LIST_ACTIVE: frozenset({RoleName.SERVER}),
    OrderOperation.UPDATE: frozenset({RoleName.SERVER}),
    OrderOperation.CANCEL_LAST: frozenset({RoleName.SERVER}),
    OrderOperation.MARK_SERVED: frozenset({RoleName.SERVER}),
    OrderOperation.MARK_DONE: frozenset({RoleName.SERVER}),
    OrderOperation.CHECKOUT: frozenset({RoleName.CASHIER, RoleName.OWNER}),
    OrderOperation.DELETE: frozenset({RoleName.SERVER}),
    OrderOperation.LIST_CASHIER: frozenset({RoleName.CASHIER, RoleName.OWNER}),
    # Station workers are added per station from STATION_ROLES
    OrderOperation.LIST_STATION: frozenset({RoleName.OWNER}),
    OrderOperation.CLEAR_STATION: frozenset({RoleName.OWNER}),
}

STATION_OPERATIONS = frozenset(
    {OrderOperation.LIST_STATION, OrderOperation.CLEAR_STATION}
)

# Beverage has no dedicated worker role, so only owners reach it
STATION_ROLES: Dict[Station, RoleName] = {
    Station.GRILL: RoleName.GRILL_COOK,
    Station.KITCHEN: RoleName.KITCHEN_STAFF,
}


def allowed_roles(
    operation: OrderOperation, station: Optional[Station] = None
) -> FrozenSet[RoleName]:
    roles = ORDER_PERMISSIONS.get(operation, frozenset())
    if operation in STATION_OPERATIONS:
        if station is None:
            raise ValueError(f"{operation.value} requires a station")
        station_role = STATION_ROLES.get(station)
        if station_role is not None:
            roles = roles | {station_role}
    return roles


def is_allowed(
    role: RoleName, operation: OrderOperation, station: Optional[Station] = None
) -> bool:
    return role in allowed_roles(operation, station)


def authorize(
    actor: CurrentUser,
    operation: OrderOperation,
    station: Optional[Station] = None,
) -> None:
    """
    Check the actor's role against the permission table.

    Raises:
        AuthorizationError: If the role may not perform the operation
    """
    if not is_allowed(actor.role, operation, station):
        raise AuthorizationError(
            f"Role {actor.role.value} is not permitted to perform "
            f"{operation.value}"
        )


def ensure_owner(actor: CurrentUser, server_id: int, action: str) -> None:
    """Servers may only act on orders they created."""
    if actor.id != server_id:
        raise AuthorizationError(f"You can only {action} your own orders")
