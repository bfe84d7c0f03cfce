#!/usr/bin/env python3
"""
Seed the POS database with roles, staff accounts and a starter menu.

Safe to run repeatedly: existing rows are left as they are.

    python scripts/seed_data.py
"""

import logging
import os
import sys
from decimal import Decimal

# Add parent directory to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy.orm import Session  # noqa: E402

from core.auth import get_password_hash  # noqa: E402
from core.config import get_settings  # noqa: E402
from core.database import Base, SessionLocal, engine  # noqa: E402
from core.logging_config import configure_logging  # noqa: E402
from modules.auth.enums.role_enums import RoleName  # noqa: E402
from modules.auth.models.user_models import Role, User  # noqa: E402
from modules.menu.enums.menu_enums import Station  # noqa: E402
from modules.menu.models.menu_models import MenuItem  # noqa: E402
from modules.orders.models import order_models  # noqa: E402,F401

logger = logging.getLogger("seed_data")

DEFAULT_OWNER = ("admin", "admin123")

TEST_USERS = [
    ("server1", "server123", RoleName.SERVER),
    ("cashier1", "cashier123", RoleName.CASHIER),
    ("grill1", "grill123", RoleName.GRILL_COOK),
    ("kitchen1", "kitchen123", RoleName.KITCHEN_STAFF),
]

STARTER_MENU = [
    ("Classic Burger", "850", "Mains", Station.GRILL),
    ("Cheeseburger", "950", "Mains", Station.GRILL),
    ("Grilled Chicken", "1100", "Mains", Station.GRILL),
    ("Ribeye Steak", "2200", "Mains", Station.GRILL),
    ("Caesar Salad", "550", "Starters", Station.KITCHEN),
    ("Tomato Soup", "450", "Starters", Station.KITCHEN),
    ("French Fries", "350", "Sides", Station.KITCHEN),
    ("Chocolate Cake", "500", "Desserts", Station.KITCHEN),
    ("Lemonade", "300", "Drinks", Station.BEVERAGE),
    ("Iced Tea", "300", "Drinks", Station.BEVERAGE),
    ("Espresso", "250", "Drinks", Station.BEVERAGE),
]


def seed_roles(db: Session) -> dict:
    roles = {}
    for role_name in RoleName:
        role = db.query(Role).filter(Role.name == role_name.value).first()
        if not role:
            role = Role(name=role_name.value)
            db.add(role)
            logger.info(f"Created role {role_name.value}")
        roles[role_name] = role
    db.commit()
    return roles


def seed_user(db: Session, roles: dict, username: str, password: str, role: RoleName):
    if db.query(User).filter(User.username == username).first():
        logger.info(f"User {username} already exists")
        return
    db.add(User(
        username=username,
        password_hash=get_password_hash(password),
        role_id=roles[role].id,
        is_active=True,
    ))
    db.commit()
    logger.info(f"Created {role.value} account (username: {username}, password: {password})")


def seed_menu(db: Session):
    if db.query(MenuItem).count():
        logger.info("Menu already seeded")
        return
    for name, price, category, station in STARTER_MENU:
        db.add(MenuItem(
            name=name, price=Decimal(price), category=category,
            station=station.value, active=True,
        ))
    db.commit()
    logger.info(f"Created {len(STARTER_MENU)} menu items")


def main():
    configure_logging(get_settings())
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        roles = seed_roles(db)
        seed_user(db, roles, *DEFAULT_OWNER, RoleName.OWNER)
        for username, password, role in TEST_USERS:
            seed_user(db, roles, username, password, role)
        seed_menu(db)
        logger.info("Database seeding completed")
    except Exception:
        db.rollback()
        logger.exception("Error seeding database")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
