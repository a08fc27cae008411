from __future__ import annotations

from .menu_store import Menu

__all__ = ["validate_menu", "MAX_TITLE_BYTES", "MAX_DESCRIPTION_BYTES", "MAX_NUTRITION_VALUE"]

MAX_TITLE_BYTES = 100
MAX_DESCRIPTION_BYTES = 1000
MAX_NUTRITION_VALUE = 10000


def validate_menu(menu: Menu) -> dict[str, str]:
    """Check field constraints and return ``{field: message}`` for every failure.

    Keys use the JSON field names. An empty dict means the menu may be stored.
    When several checks fail for one field the first message is kept.
    """
    errors: dict[str, str] = {}

    def check(ok: bool, key: str, message: str) -> None:
        if not ok:
            errors.setdefault(key, message)

    title_len = len(menu.title.encode("utf-8"))
    description_len = len(menu.description.encode("utf-8"))

    check(menu.title != "", "title", "must be provided")
    check(title_len <= MAX_TITLE_BYTES, "title", f"must not be more than {MAX_TITLE_BYTES} bytes long")
    check(
        description_len <= MAX_DESCRIPTION_BYTES,
        "description",
        f"must not be more than {MAX_DESCRIPTION_BYTES} bytes long",
    )
    check(menu.nutrition_value >= 0, "nutritionValue", "must not be negative")
    check(
        menu.nutrition_value <= MAX_NUTRITION_VALUE,
        "nutritionValue",
        f"must not be more than {MAX_NUTRITION_VALUE}",
    )
    return errors
