from .user_models import Role, User

__all__ = ["Role", "User"]
