from .app_factory import create_app
from .errors import EditConflictError, NotFoundError, StoreError, StoreTimeoutError
from .menu_store import DEFAULT_TIMEOUT, Menu, MenuStore
from .menu_validation import validate_menu

__all__ = [
    "create_app",
    "DEFAULT_TIMEOUT",
    "Menu",
    "MenuStore",
    "validate_menu",
    "StoreError",
    "NotFoundError",
    "EditConflictError",
    "StoreTimeoutError",
]
