import os
import sys

import pytest

# Path setup before any project imports to satisfy E402
ROOT = os.path.dirname(__file__)
PARENT = os.path.abspath(os.path.join(ROOT, ".."))
if PARENT not in sys.path:  # pragma: no cover - environment dependent
    sys.path.insert(0, PARENT)


@pytest.fixture
def engine(tmp_path):
    from menustore.db import create_all, make_engine

    eng = make_engine(f"sqlite:///{tmp_path / 'menus.db'}")
    create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    from sqlalchemy.orm import sessionmaker

    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture
def store(session_factory):
    from menustore.menu_store import MenuStore

    s = MenuStore(session_factory)
    yield s
    s.close()


@pytest.fixture
def app(tmp_path):
    from menustore.app_factory import create_app

    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test",
            "database_url": f"sqlite:///{tmp_path / 'app.db'}",
            "FORCE_DB_REINIT": True,
            "CREATE_ALL": True,
        }
    )
    yield app
    app.menu_store.close()


@pytest.fixture
def client(app):
    return app.test_client()
