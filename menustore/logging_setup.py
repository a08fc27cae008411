"""Root logging configuration.

Every record gets ``request_id`` and ``path`` attributes taken from the Flask
request context ("-" outside a request) so store log lines can be correlated
with the HTTP request that caused them.
"""

from __future__ import annotations

import logging

from flask import g, has_request_context, request

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [rid=%(request_id)s path=%(path)s] %(message)s"


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if has_request_context():
            record.request_id = getattr(g, "request_id", "-")
            record.path = request.path
        else:
            record.request_id = "-"
            record.path = "-"
        return True


class _MenuStoreHandler(logging.StreamHandler):
    pass


def install_log_handler(level: str | int = logging.INFO) -> None:
    root = logging.getLogger()
    root.setLevel(level)
    # Avoid duplicate attachment when the app factory runs more than once
    if any(isinstance(h, _MenuStoreHandler) for h in root.handlers):
        return
    h = _MenuStoreHandler()
    h.addFilter(RequestContextFilter())
    h.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(h)


__all__ = ["LOG_FORMAT", "RequestContextFilter", "install_log_handler"]
