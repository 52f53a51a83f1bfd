from .base import Base
from .error_code import ErrorCode
from .user import User
from .drink_session import DrinkSession
from .drink import DEFAULT_DRINK_NAME, Drink

__all__ = [
    "Base",
    "ErrorCode",
    "User",
    "DrinkSession",
    "Drink",
    "DEFAULT_DRINK_NAME",
]
