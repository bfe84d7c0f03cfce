from .menu_models import MenuItem

__all__ = ["MenuItem"]
