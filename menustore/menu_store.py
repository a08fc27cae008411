"""Menu persistence over the ``menus`` table.

Schema:
    menus(id INTEGER PK, created_at TIMESTAMP, updated_at TIMESTAMP,
          title VARCHAR(100), description TEXT, nutrition_value INTEGER,
          version INTEGER DEFAULT 1)

Every operation is a single round trip on a fresh Session, executed on a worker
thread and bounded by ``timeout`` seconds. ``update`` is conditioned on the
caller's last-known ``version``; a write that matches no row is an edit conflict.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeVar

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import EditConflictError, NotFoundError, StoreError, StoreTimeoutError

__all__ = ["DEFAULT_TIMEOUT", "Menu", "MenuStore"]

DEFAULT_TIMEOUT = 3.0

T = TypeVar("T")

_COLUMNS = "id, created_at, updated_at, title, description, nutrition_value, version"
_PG_QUERY_CANCELED = "57014"


@dataclass
class Menu:
    title: str = ""
    description: str = ""
    nutrition_value: int = 0
    id: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    version: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
            "title": self.title,
            "description": self.description,
            "nutritionValue": self.nutrition_value,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Menu:
        """Build a Menu from its JSON shape; server-assigned keys are ignored.

        Raises ValueError when a field has the wrong type.
        """
        title = data.get("title", "")
        description = data.get("description", "")
        nutrition = data.get("nutritionValue", 0)
        if not isinstance(title, str):
            raise ValueError("title must be a string")
        if not isinstance(description, str):
            raise ValueError("description must be a string")
        if isinstance(nutrition, bool) or not isinstance(nutrition, int):
            raise ValueError("nutritionValue must be an integer")
        return cls(title=title, description=description, nutrition_value=nutrition)


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


def _as_datetime(value: object) -> datetime | None:
    # sqlite hands CURRENT_TIMESTAMP back as text, postgres as datetime
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, str):
        return datetime.fromisoformat(value)
    raise ValueError(f"unexpected timestamp value {value!r}")


def _row_to_menu(r: Any) -> Menu:
    return Menu(
        id=int(r[0]),
        created_at=_as_datetime(r[1]),
        updated_at=_as_datetime(r[2]),
        title=str(r[3]),
        description=r[4] if r[4] is not None else "",
        nutrition_value=int(r[5] or 0),
        version=int(r[6]),
    )


def _is_query_canceled(err: DBAPIError) -> bool:
    return getattr(err.orig, "sqlstate", None) == _PG_QUERY_CANCELED


class MenuStore:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        timeout: float = DEFAULT_TIMEOUT,
        logger: logging.Logger | None = None,
        max_workers: int = 8,
    ) -> None:
        self._session_factory = session_factory
        self.timeout = float(timeout)
        self.log = logger or logging.getLogger(__name__)
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="menustore")

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    # ---- operations ------------------------------------------------------------

    def list_all(self) -> list[Menu]:
        """Return every menu in backing-store order; ``[]`` for an empty table."""

        def _op(db: Session) -> list[Menu]:
            rows = db.execute(text(f"SELECT {_COLUMNS} FROM menus")).fetchall()
            return [_row_to_menu(r) for r in rows]

        return self._run("list", _op)

    def create(self, menu: Menu) -> Menu:
        """Insert ``menu`` and write the generated id, timestamps and version back into it.

        Field constraints are not checked here; run ``validate_menu`` first.
        """
        params = {
            "title": menu.title,
            "description": menu.description,
            "nutrition_value": menu.nutrition_value,
        }

        def _op(db: Session) -> tuple[int, datetime | None, datetime | None, int]:
            row = db.execute(
                text(
                    """
                    INSERT INTO menus (title, description, nutrition_value)
                    VALUES (:title, :description, :nutrition_value)
                    RETURNING id, created_at, updated_at, version
                    """
                ),
                params,
            ).first()
            if row is None:
                raise StoreError("insert returned no row", op="create")
            return int(row[0]), _as_datetime(row[1]), _as_datetime(row[2]), int(row[3])

        menu.id, menu.created_at, menu.updated_at, menu.version = self._run("create", _op)
        self.log.debug("menus.create id=%s", menu.id)
        return menu

    def get_by_id(self, menu_id: int) -> Menu:
        if menu_id < 1:
            raise NotFoundError(menu_id, op="get")

        def _op(db: Session) -> Menu:
            row = db.execute(
                text(f"SELECT {_COLUMNS} FROM menus WHERE id = :id"), {"id": menu_id}
            ).first()
            if row is None:
                raise NotFoundError(menu_id, op="get")
            return _row_to_menu(row)

        return self._run("get", _op, menu_id=menu_id)

    def update(self, menu: Menu) -> Menu:
        """Replace title, description and nutrition value if ``menu.version`` is current.

        On success ``updated_at`` and ``version`` are refreshed in place. A stale
        version, a deleted row or an unknown id all raise EditConflictError.
        """
        if menu.id is None or menu.id < 1 or menu.version is None:
            raise EditConflictError(menu.id, version=menu.version)
        params = {
            "title": menu.title,
            "description": menu.description,
            "nutrition_value": menu.nutrition_value,
            "id": menu.id,
            "version": menu.version,
        }

        def _op(db: Session) -> tuple[datetime | None, int]:
            row = db.execute(
                text(
                    """
                    UPDATE menus
                    SET title = :title, description = :description, nutrition_value = :nutrition_value,
                        updated_at = CURRENT_TIMESTAMP, version = version + 1
                    WHERE id = :id AND version = :version
                    RETURNING updated_at, version
                    """
                ),
                params,
            ).first()
            if row is None:
                raise EditConflictError(menu.id, version=menu.version)
            return _as_datetime(row[0]), int(row[1])

        try:
            menu.updated_at, menu.version = self._run("update", _op, menu_id=menu.id)
        except EditConflictError:
            self.log.info("menus.update conflict id=%s version=%s", menu.id, menu.version)
            raise
        return menu

    def delete(self, menu_id: int) -> None:
        """Delete by id. Removing a row that does not exist is not an error."""
        if menu_id < 1:
            raise NotFoundError(menu_id, op="delete")

        def _op(db: Session) -> int:
            res = db.execute(text("DELETE FROM menus WHERE id = :id"), {"id": menu_id})
            return res.rowcount

        removed = self._run("delete", _op, menu_id=menu_id)
        self.log.debug("menus.delete id=%s removed=%s", menu_id, removed)

    # ---- plumbing --------------------------------------------------------------

    def _run(self, op: str, fn: Callable[[Session], T], *, menu_id: object | None = None) -> T:
        future = self._executor.submit(self._in_session, op, fn, menu_id)
        try:
            return future.result(timeout=self.timeout)
        except FutureTimeoutError:
            future.cancel()
            self.log.error("menus.%s abandoned after %ss id=%s", op, self.timeout, menu_id)
            raise StoreTimeoutError(op, self.timeout, menu_id=menu_id) from None

    def _in_session(self, op: str, fn: Callable[[Session], T], menu_id: object | None) -> T:
        try:
            db = self._session_factory()
        except Exception as e:
            self.log.error("menus.%s no session id=%s: %s", op, menu_id, e)
            raise StoreError(f"cannot {op} menu id={menu_id}: {e}", op=op, menu_id=menu_id) from e
        try:
            self._apply_statement_timeout(db)
            result = fn(db)
            db.commit()
            return result
        except StoreError:
            db.rollback()
            raise
        except DBAPIError as e:
            db.rollback()
            if _is_query_canceled(e):
                raise StoreTimeoutError(op, self.timeout, menu_id=menu_id) from e
            self.log.error("menus.%s failed id=%s: %s", op, menu_id, e.orig)
            raise StoreError(f"cannot {op} menu id={menu_id}: {e.orig}", op=op, menu_id=menu_id) from e
        except (SQLAlchemyError, ValueError, TypeError) as e:
            db.rollback()
            self.log.error("menus.%s failed id=%s: %s", op, menu_id, e)
            raise StoreError(f"cannot {op} menu id={menu_id}: {e}", op=op, menu_id=menu_id) from e
        finally:
            db.close()

    def _apply_statement_timeout(self, db: Session) -> None:
        # postgres cancels server-side as well; other dialects rely on the thread deadline
        if db.get_bind().dialect.name == "postgresql":
            db.execute(text(f"SET LOCAL statement_timeout = {int(self.timeout * 1000)}"))
