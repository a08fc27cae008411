"""MenuStore against a file-backed SQLite database."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace

import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from menustore.errors import EditConflictError, NotFoundError, StoreError, StoreTimeoutError
from menustore.menu_store import DEFAULT_TIMEOUT, Menu, MenuStore


def _soup(**kw) -> Menu:
    base = {"title": "Tomato soup", "description": "With basil", "nutrition_value": 250}
    base.update(kw)
    return Menu(**base)


class _SlowSession:
    """Session proxy that stalls before every statement."""

    def __init__(self, inner, delay: float):
        self._inner = inner
        self._delay = delay

    def execute(self, *args, **kwargs):
        time.sleep(self._delay)
        return self._inner.execute(*args, **kwargs)

    def __getattr__(self, name):
        return getattr(self._inner, name)


def _no_session():
    raise AssertionError("backing store must not be touched")


def test_default_deadline_is_three_seconds(store):
    assert DEFAULT_TIMEOUT == 3.0
    assert store.timeout == 3.0


def test_list_empty_table_returns_empty_list(store):
    assert store.list_all() == []


def test_create_assigns_generated_fields(store):
    m = _soup(id=999, version=42)
    out = store.create(m)
    assert out is m
    assert m.id is not None and m.id != 999
    assert m.created_at is not None
    assert m.updated_at == m.created_at
    assert m.version == 1


def test_create_then_get_roundtrip(store):
    m = store.create(_soup())
    got = store.get_by_id(m.id)
    assert got.id == m.id
    assert got.title == "Tomato soup"
    assert got.description == "With basil"
    assert got.nutrition_value == 250
    assert got.created_at is not None and got.updated_at is not None
    assert got.updated_at == got.created_at
    assert got == m


def test_list_returns_all_rows(store):
    a = store.create(_soup(title="A"))
    b = store.create(_soup(title="B"))
    rows = store.list_all()
    assert sorted(r.id for r in rows) == sorted([a.id, b.id])
    assert {r.title for r in rows} == {"A", "B"}


@pytest.mark.parametrize("bad_id", [0, -1])
def test_get_non_positive_id_is_not_found_without_io(bad_id):
    s = MenuStore(_no_session)
    try:
        with pytest.raises(NotFoundError) as exc:
            s.get_by_id(bad_id)
        assert exc.value.menu_id == bad_id
    finally:
        s.close()


def test_get_missing_row_is_not_found_with_id(store):
    with pytest.raises(NotFoundError) as exc:
        store.get_by_id(12345)
    assert exc.value.menu_id == 12345
    assert "12345" in str(exc.value)


def test_update_refreshes_version_and_fields(store):
    m = store.create(_soup())
    created_at = m.created_at
    m.title = "Pea soup"
    m.nutrition_value = 300
    store.update(m)
    assert m.version == 2
    assert m.created_at == created_at
    got = store.get_by_id(m.id)
    assert got.title == "Pea soup"
    assert got.nutrition_value == 300
    assert got.version == 2
    assert got.updated_at >= got.created_at


def test_update_again_with_returned_token_succeeds(store):
    m = store.create(_soup())
    store.update(m)
    first_updated = m.updated_at
    store.update(m)
    assert m.version == 3
    assert m.updated_at >= first_updated


def test_update_with_same_stale_token_twice_conflicts(store):
    m = store.create(_soup())
    stale = m.version
    first = Menu(id=m.id, version=stale, title="First", description="", nutrition_value=1)
    second = Menu(id=m.id, version=stale, title="Second", description="", nutrition_value=2)
    store.update(first)
    with pytest.raises(EditConflictError):
        store.update(second)
    assert store.get_by_id(m.id).title == "First"
    # the losing value is left untouched
    assert second.version == stale


def test_update_deleted_row_conflicts(store):
    m = store.create(_soup())
    store.delete(m.id)
    with pytest.raises(EditConflictError):
        store.update(m)


def test_update_unknown_id_conflicts(store):
    with pytest.raises(EditConflictError):
        store.update(_soup(id=777, version=1))


def test_update_without_token_conflicts_without_io():
    s = MenuStore(_no_session)
    try:
        with pytest.raises(EditConflictError):
            s.update(_soup(id=1, version=None))
        with pytest.raises(EditConflictError):
            s.update(_soup(id=None, version=1))
    finally:
        s.close()


def test_concurrent_updates_single_winner(store):
    m = store.create(_soup())

    def attempt(title):
        try:
            store.update(Menu(id=m.id, version=1, title=title, description="", nutrition_value=0))
            return "ok"
        except EditConflictError:
            return "conflict"

    with ThreadPoolExecutor(max_workers=2) as pool:
        results = list(pool.map(attempt, ["left", "right"]))
    assert sorted(results) == ["conflict", "ok"]
    assert store.get_by_id(m.id).version == 2


def test_delete_removes_row(store):
    m = store.create(_soup())
    store.delete(m.id)
    with pytest.raises(NotFoundError):
        store.get_by_id(m.id)


def test_delete_nonexistent_is_success(store):
    assert store.delete(4242) is None


@pytest.mark.parametrize("bad_id", [0, -5])
def test_delete_non_positive_id_is_not_found_without_io(bad_id):
    s = MenuStore(_no_session)
    try:
        with pytest.raises(NotFoundError):
            s.delete(bad_id)
    finally:
        s.close()


def test_io_failure_is_store_error(store, engine):
    with engine.begin() as conn:
        conn.execute(text("DROP TABLE menus"))
    with pytest.raises(StoreError) as exc:
        store.list_all()
    assert not isinstance(exc.value, (NotFoundError, EditConflictError, StoreTimeoutError))
    assert exc.value.op == "list"
    assert exc.value.__cause__ is not None


def test_get_io_failure_carries_id(store, engine):
    with engine.begin() as conn:
        conn.execute(text("DROP TABLE menus"))
    with pytest.raises(StoreError) as exc:
        store.get_by_id(7)
    assert exc.value.menu_id == 7
    assert "id=7" in str(exc.value)


def test_deadline_exceeded_raises_timeout(session_factory):
    s = MenuStore(lambda: _SlowSession(session_factory(), 0.3), timeout=0.05)
    try:
        t0 = time.perf_counter()
        with pytest.raises(StoreTimeoutError) as exc:
            s.list_all()
        assert time.perf_counter() - t0 < 0.25
        assert exc.value.op == "list"
        assert exc.value.timeout == pytest.approx(0.05)
    finally:
        s.close()


def test_create_timeout_leaves_menu_untouched(session_factory):
    s = MenuStore(lambda: _SlowSession(session_factory(), 0.3), timeout=0.05)
    m = _soup()
    try:
        with pytest.raises(StoreTimeoutError):
            s.create(m)
        assert m.id is None and m.version is None
    finally:
        s.close()


def test_injected_logger_receives_conflicts(session_factory, caplog):
    import logging

    logger = logging.getLogger("tests.menustore")
    s = MenuStore(session_factory, logger=logger)
    try:
        with caplog.at_level(logging.INFO, logger="tests.menustore"):
            with pytest.raises(EditConflictError):
                s.update(_soup(id=5, version=1))
        assert any("conflict" in r.getMessage() for r in caplog.records if r.name == "tests.menustore")
    finally:
        s.close()


class _QueryCanceled(Exception):
    sqlstate = "57014"


class _EmptyResult:
    def fetchall(self):
        return []


class _FakeSession:
    """Records statements; optionally fails every non-SET statement."""

    def __init__(self, dialect="sqlite", error=None):
        self._bind = SimpleNamespace(dialect=SimpleNamespace(name=dialect))
        self.error = error
        self.statements = []
        self.committed = self.rolled_back = self.closed = False

    def get_bind(self):
        return self._bind

    def execute(self, stmt, params=None):
        sql = str(stmt).strip()
        self.statements.append(sql)
        if self.error is not None and not sql.startswith("SET LOCAL"):
            raise self.error
        return _EmptyResult()

    def commit(self):
        self.committed = True

    def rollback(self):
        self.rolled_back = True

    def close(self):
        self.closed = True


def test_postgres_receives_statement_timeout():
    fake = _FakeSession(dialect="postgresql")
    s = MenuStore(lambda: fake)
    try:
        assert s.list_all() == []
    finally:
        s.close()
    assert fake.statements[0] == "SET LOCAL statement_timeout = 3000"
    assert fake.statements[1].startswith("SELECT")
    assert fake.committed and fake.closed


def test_other_dialects_skip_statement_timeout():
    fake = _FakeSession(dialect="sqlite")
    s = MenuStore(lambda: fake)
    try:
        s.list_all()
    finally:
        s.close()
    assert not any(sql.startswith("SET LOCAL") for sql in fake.statements)


def test_server_side_cancel_is_timeout():
    canceled = OperationalError("SELECT 1", {}, _QueryCanceled("canceling statement due to statement timeout"))
    fake = _FakeSession(dialect="postgresql", error=canceled)
    s = MenuStore(lambda: fake)
    try:
        with pytest.raises(StoreTimeoutError) as exc:
            s.get_by_id(3)
    finally:
        s.close()
    assert exc.value.op == "get"
    assert exc.value.menu_id == 3
    assert exc.value.__cause__ is canceled
    assert fake.rolled_back and fake.closed


def test_session_factory_failure_is_store_error():
    def _not_initialized():
        raise RuntimeError("DB not initialized; call init_engine first")

    s = MenuStore(_not_initialized)
    try:
        with pytest.raises(StoreError) as exc:
            s.list_all()
    finally:
        s.close()
    assert not isinstance(exc.value, StoreTimeoutError)
    assert isinstance(exc.value.__cause__, RuntimeError)
