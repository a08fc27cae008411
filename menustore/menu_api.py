from __future__ import annotations

from typing import Any

from flask import Blueprint, abort, current_app, jsonify, request
from werkzeug.wrappers.response import Response

from .errors import EditConflictError, ValidationError
from .etag import make_etag, version_from_if_match
from .http_errors import invalid_header
from .menu_store import Menu, MenuStore
from .menu_validation import validate_menu

bp = Blueprint("menu_api", __name__, url_prefix="/v1/menus")

_EDITABLE = ("title", "description", "nutritionValue")


def _store() -> MenuStore:
    return current_app.menu_store  # type: ignore[attr-defined]


def _json_body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        abort(400, description="body must be a JSON object")
    return data


def _menu_from(data: dict[str, Any]) -> Menu:
    try:
        return Menu.from_dict(data)
    except ValueError as e:
        abort(400, description=str(e))


def _with_etag(resp: Response, menu: Menu) -> Response:
    resp.headers["ETag"] = make_etag(menu.id, menu.version or 0)
    return resp


@bp.get("")
def list_menus():
    menus = _store().list_all()
    return jsonify({"menus": [m.to_dict() for m in menus]})


@bp.post("")
def create_menu():
    menu = _menu_from(_json_body())
    errors = validate_menu(menu)
    if errors:
        raise ValidationError(errors)
    _store().create(menu)
    resp = _with_etag(jsonify({"menu": menu.to_dict()}), menu)
    resp.status_code = 201
    resp.headers["Location"] = f"/v1/menus/{menu.id}"
    return resp


@bp.get("/<int:menu_id>")
def show_menu(menu_id: int):
    menu = _store().get_by_id(menu_id)
    return _with_etag(jsonify({"menu": menu.to_dict()}), menu)


@bp.patch("/<int:menu_id>")
def update_menu(menu_id: int):
    """Partial update.

    The version token comes from ``If-Match`` (ETag of a previous read) or a
    ``version`` key in the body; without either, or with ``If-Match: *``, the
    version just read is used. An If-Match that is not a tag for this menu is a 400.
    """
    store = _store()
    current = store.get_by_id(menu_id)
    data = _json_body()

    version = None
    if_match = request.headers.get("If-Match")
    if if_match is not None and if_match.strip() != "*":
        version = version_from_if_match(if_match, menu_id)
        if version is None:
            return invalid_header("If-Match")
    if version is None and "version" in data:
        raw = data["version"]
        if isinstance(raw, bool) or not isinstance(raw, int):
            abort(400, description="version must be an integer")
        version = raw
    if version is not None and version != current.version:
        raise EditConflictError(menu_id, version=version)

    merged = current.to_dict()
    merged.update({k: data[k] for k in _EDITABLE if k in data})
    menu = _menu_from(merged)
    menu.id = current.id
    menu.created_at = current.created_at
    menu.updated_at = current.updated_at
    menu.version = current.version

    errors = validate_menu(menu)
    if errors:
        raise ValidationError(errors)
    store.update(menu)
    return _with_etag(jsonify({"menu": menu.to_dict()}), menu)


@bp.delete("/<int:menu_id>")
def delete_menu(menu_id: int):
    _store().delete(menu_id)
    return jsonify({"message": "menu successfully deleted"})
