# backend/modules/menu/services/menu_service.py

"""
Read-only menu catalog lookups.

The order engine only ever reads the catalog: it resolves submitted ids to
names, prices and stations and snapshots the price into each order line.
"""

from typing import Dict, Iterable, List

from sqlalchemy.orm import Session

from core.exceptions import NotFoundError
from ..models.menu_models import MenuItem


def get_menu_items_by_ids(db: Session, menu_item_ids: Iterable[int]) -> Dict[int, MenuItem]:
    """Resolve ids to catalog entries; unknown ids are simply absent."""
    ids = set(menu_item_ids)
    if not ids:
        return {}
    items = db.query(MenuItem).filter(MenuItem.id.in_(ids)).all()
    return {item.id: item for item in items}


async def list_active_menu_items(db: Session) -> List[MenuItem]:
    return (
        db.query(MenuItem)
        .filter(MenuItem.active.is_(True))
        .order_by(MenuItem.category.asc(), MenuItem.name.asc())
        .all()
    )


async def get_menu_item(db: Session, menu_item_id: int) -> MenuItem:
    item = db.query(MenuItem).filter(MenuItem.id == menu_item_id).first()
    if not item:
        raise NotFoundError("Menu item not found")
    return item


async def list_menu_items_by_category(db: Session, category: str) -> List[MenuItem]:
    return (
        db.query(MenuItem)
        .filter(MenuItem.category == category, MenuItem.active.is_(True))
        .order_by(MenuItem.name.asc())
        .all()
    )
