from enum import Enum


class RoleName(str, Enum):
    OWNER = "OWNER"
    SERVER = "SERVER"
    CASHIER = "CASHIER"
    GRILL_COOK = "GRILL_COOK"
    KITCHEN_STAFF = "KITCHEN_STAFF"
