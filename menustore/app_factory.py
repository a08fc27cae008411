"""Flask application factory.

Wires configuration, the database engine, logging, the MenuStore and the
``/v1/menus`` blueprint, plus RFC7807 error handlers.
"""

from __future__ import annotations

import atexit
import logging
import time
import uuid
from typing import Any

from dotenv import load_dotenv
from flask import Flask, g, request
from werkzeug.wrappers.response import Response

from .config import Config
from .db import create_all, get_new_session, init_engine
from .errors import register_error_handlers
from .logging_setup import install_log_handler
from .menu_api import bp as menu_api_bp
from .menu_store import MenuStore


def create_app(config_override: dict[str, Any] | None = None) -> Flask:
    load_dotenv()
    app = Flask(__name__)

    # --- Configuration ---
    cfg = Config.from_env()
    if config_override:
        known = {k: v for k, v in config_override.items() if hasattr(cfg, k)}
        if known:
            cfg.override(known)
        for k, v in config_override.items():  # also allow direct Flask config keys
            if k.isupper():
                app.config[k] = v
    app.config.update(cfg.to_flask_dict())

    install_log_handler(cfg.log_level)
    log = logging.getLogger("menustore.http")

    # --- DB setup ---
    engine = init_engine(cfg.database_url, force=bool(app.config.get("FORCE_DB_REINIT")))
    if app.config.get("CREATE_ALL"):
        create_all(engine)

    app.menu_store = MenuStore(  # type: ignore[attr-defined]
        get_new_session,
        timeout=cfg.store_timeout_seconds,
        logger=logging.getLogger("menustore.store"),
    )
    # worker threads are released when the interpreter exits
    atexit.register(app.menu_store.close)  # type: ignore[attr-defined]

    register_error_handlers(app)

    @app.before_request
    def _before_req() -> None:
        g._t0 = time.perf_counter()
        g.request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())

    @app.after_request
    def _after_req(resp: Response) -> Response:
        dur_ms = int((time.perf_counter() - getattr(g, "_t0", time.perf_counter())) * 1000)
        rid = getattr(g, "request_id", str(uuid.uuid4()))
        resp.headers["X-Request-Id"] = rid
        resp.headers["X-Request-Duration-ms"] = str(dur_ms)
        if "Cache-Control" not in resp.headers:
            resp.headers["Cache-Control"] = "no-store"
        log.info("%s %s status=%s duration_ms=%s", request.method, request.path, resp.status_code, dur_ms)
        return resp

    @app.get("/healthz")
    def healthz() -> tuple[dict[str, Any], int]:
        return {"status": "ok"}, 200

    app.register_blueprint(menu_api_bp)
    return app
