from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from core.auth import CurrentUser, get_current_user
from core.database import get_db
from core.response_models import StandardResponse
from core.response_utils import create_response
from ..schemas.menu_schemas import MenuItemOut
from ..services.menu_service import (
    get_menu_item, list_active_menu_items, list_menu_items_by_category
)

router = APIRouter(prefix="/menu", tags=["Menu"])


@router.get("", response_model=StandardResponse[List[MenuItemOut]])
async def get_menu(
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    """All active menu items, grouped by category then name."""
    items = await list_active_menu_items(db)
    return create_response([MenuItemOut.model_validate(i) for i in items])


@router.get("/category/{category}", response_model=StandardResponse[List[MenuItemOut]])
async def get_menu_by_category(
    category: str,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    items = await list_menu_items_by_category(db, category)
    return create_response([MenuItemOut.model_validate(i) for i in items])


@router.get("/{menu_item_id}", response_model=StandardResponse[MenuItemOut])
async def get_menu_item_by_id(
    menu_item_id: int,
    db: Session = Depends(get_db),
    current_user: CurrentUser = Depends(get_current_user),
):
    item = await get_menu_item(db, menu_item_id)
    return create_response(MenuItemOut.model_validate(item))
