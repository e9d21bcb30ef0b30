"""Navigation API endpoints.

Provides menu listing, the navigation tree of one menu, drop projections,
committed moves and item create, update and delete.
"""

import asyncio
import json

from aiohttp import web

from navstage.app_keys import editors_key, projector_key, store_key
from navstage.core.projector import DragMove, RowRect
from navstage.core.reconciler import ReorderInProgressError
from navstage.core.tree import build_tree, tree_to_dicts
from navstage.core.types import MENU_LOCATIONS, is_int, is_number
from navstage.store import ItemFields, ItemNotFoundError, StoreError


def create_navigation_routes() -> list[web.RouteDef]:
    return [
        web.get("/api/menus", get_menus),
        web.put(r"/api/navigation/items/{item_id:\d+}", put_item),
        web.delete(r"/api/navigation/items/{item_id:\d+}", delete_item),
        web.get("/api/navigation/{menu_key}/{language}", get_navigation),
        web.post("/api/navigation/{menu_key}/{language}/items", post_item),
        web.post("/api/navigation/{menu_key}/{language}/projection", post_projection),
        web.post("/api/navigation/{menu_key}/{language}/move", post_move),
    ]


async def get_menus(request: web.Request) -> web.Response:
    store = request.app[store_key]
    try:
        menus = await asyncio.to_thread(store.list_menus)
    except StoreError as e:
        return web.json_response({"error": str(e)}, status=500)
    return web.json_response(
        {
            "menus": [
                {"menu_key": menu_key, "language_code": language_code}
                for menu_key, language_code in menus
            ],
        },
    )


async def get_navigation(request: web.Request) -> web.Response:
    menu_key, language = _menu_from_request(request)
    store = request.app[store_key]
    try:
        items = await asyncio.to_thread(store.load_items, menu_key, language)
    except StoreError as e:
        return web.json_response({"error": str(e)}, status=500)
    return web.json_response({"items": tree_to_dicts(build_tree(items))})


async def post_projection(request: web.Request) -> web.Response:
    menu_key, language = _menu_from_request(request)
    move = await _drag_move_from_request(request)
    store = request.app[store_key]
    projector = request.app[projector_key]

    try:
        items = await asyncio.to_thread(store.load_items, menu_key, language)
    except StoreError as e:
        return web.json_response({"error": str(e)}, status=500)

    projection = projector.project(build_tree(items), move)
    return web.json_response(
        {"projection": projection.to_dict() if projection is not None else None},
    )


async def post_move(request: web.Request) -> web.Response:
    menu_key, language = _menu_from_request(request)
    move = await _drag_move_from_request(request)
    store = request.app[store_key]

    try:
        items = await asyncio.to_thread(store.load_items, menu_key, language)
    except StoreError as e:
        return web.json_response({"error": str(e)}, status=500)

    if not any(item.id == move.active_id for item in items):
        return web.json_response(
            {"error": "Navigation item not found", "id": move.active_id},
            status=404,
        )

    editor = request.app[editors_key].get(menu_key, language)
    try:
        editor.load(items)
    except ReorderInProgressError as e:
        return web.json_response({"error": str(e)}, status=409)

    editor.start_drag(move.active_id)
    editor.move(move)
    outcome = await editor.drop()

    if outcome is None:
        return web.json_response(
            {"items": tree_to_dicts(editor.tree), "moved": False, "persisted": False},
        )

    if outcome.unconfirmed:
        return web.json_response(
            {
                "error": outcome.error,
                "items": tree_to_dicts(outcome.tree),
                "moved": True,
                "persisted": False,
                "pending": True,
            },
            status=202,
        )

    if not outcome.ok:
        return web.json_response(
            {
                "error": outcome.error,
                "items": tree_to_dicts(outcome.tree),
                "failed_ids": sorted(outcome.failed_ids),
            },
            status=422,
        )

    return web.json_response(
        {"items": tree_to_dicts(outcome.tree), "moved": True, "persisted": outcome.persisted},
    )


async def post_item(request: web.Request) -> web.Response:
    menu_key, language = _menu_from_request(request)
    data = await _json_object_from_request(request)
    store = request.app[store_key]

    try:
        fields = _parse_item_fields({**data, "menu_key": menu_key, "language_code": language})
        translation_group_id = data.get("translation_group_id")
        if translation_group_id is not None and not isinstance(translation_group_id, str):
            raise ValueError("translation_group_id must be a string or null")
        created = await asyncio.to_thread(store.create_item, fields, translation_group_id)
    except ValueError as e:
        return web.json_response({"error": str(e)}, status=400)
    except StoreError as e:
        return web.json_response({"error": str(e)}, status=500)

    return web.json_response(
        {
            "item": created.item.to_dict(),
            "placeholders": [item.to_dict() for item in created.placeholders],
            "message": created.message,
        },
        status=201,
    )


async def put_item(request: web.Request) -> web.Response:
    item_id = int(request.match_info["item_id"])
    data = await _json_object_from_request(request)
    store = request.app[store_key]

    try:
        fields = _parse_item_fields(data)
        item = await asyncio.to_thread(store.update_item, item_id, fields)
    except ItemNotFoundError as e:
        return web.json_response({"error": str(e), "id": item_id}, status=404)
    except ValueError as e:
        return web.json_response({"error": str(e)}, status=400)
    except StoreError as e:
        return web.json_response({"error": str(e)}, status=500)

    return web.json_response({"item": item.to_dict(), "message": "Item updated successfully"})


async def delete_item(request: web.Request) -> web.Response:
    item_id = int(request.match_info["item_id"])
    store = request.app[store_key]

    try:
        await asyncio.to_thread(store.delete_item, item_id)
    except ItemNotFoundError as e:
        return web.json_response({"error": str(e), "id": item_id}, status=404)
    except StoreError as e:
        return web.json_response({"error": str(e)}, status=500)

    return web.json_response({"id": item_id, "message": "Item deleted successfully"})


def _menu_from_request(request: web.Request) -> tuple[str, str]:
    menu_key = request.match_info["menu_key"].upper()
    if menu_key not in MENU_LOCATIONS:
        raise web.HTTPNotFound(
            text=json.dumps({"error": "Menu not found", "menu_key": menu_key}),
            content_type="application/json",
        )
    return menu_key, request.match_info["language"]


async def _json_object_from_request(request: web.Request) -> dict:
    try:
        data = await request.json()
    except ValueError as e:
        raise _bad_request(str(e)) from e
    if not isinstance(data, dict):
        raise _bad_request("Request body must be a JSON object")
    return data


async def _drag_move_from_request(request: web.Request) -> DragMove:
    try:
        data = await request.json()
        return _parse_drag_move(data)
    except ValueError as e:
        raise _bad_request(str(e)) from e


def _bad_request(message: str) -> web.HTTPBadRequest:
    return web.HTTPBadRequest(
        text=json.dumps({"error": message}),
        content_type="application/json",
    )


def _parse_item_fields(data: dict) -> ItemFields:
    """Parse the editable fields of an item request body.

    Missing required fields are left empty for the store to reject.

    Raises:
        ValueError: If a field has the wrong type
    """
    strings: dict[str, str] = {}
    for key in ("label", "url", "language_code", "menu_key"):
        value = data.get(key, "")
        if not isinstance(value, str):
            raise ValueError(f"{key} must be a string")
        strings[key] = value.strip()

    order = data.get("order", 0)
    if not is_int(order):
        raise ValueError("order must be an integer")

    parent_id = data.get("parent_id")
    if parent_id is not None and not is_int(parent_id):
        raise ValueError("parent_id must be an integer or null")

    page_slug = data.get("page_slug")
    if page_slug is not None and not isinstance(page_slug, str):
        raise ValueError("page_slug must be a string or null")

    return ItemFields(
        label=strings["label"],
        url=strings["url"],
        language_code=strings["language_code"],
        menu_key=strings["menu_key"].upper(),
        order=order,
        parent_id=parent_id,
        page_slug=page_slug or None,
    )


def _parse_drag_move(data: object) -> DragMove:
    """Parse a drag move request body.

    Raises:
        ValueError: If the body is not a valid drag move
    """
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")

    active_id = data.get("active_id")
    if not is_int(active_id):
        raise ValueError("active_id must be an integer")

    over_id = data.get("over_id")
    if over_id is not None and not is_int(over_id):
        raise ValueError("over_id must be an integer or null")

    numbers: dict[str, float | None] = {}
    for key in ("delta_x", "delta_y", "pointer_y"):
        value = data.get(key)
        if value is not None and not is_number(value):
            raise ValueError(f"{key} must be a number")
        numbers[key] = float(value) if value is not None else None

    over_rect = None
    rect = data.get("over_rect")
    if rect is not None:
        if (
            not isinstance(rect, dict)
            or not is_number(rect.get("top"))
            or not is_number(rect.get("height"))
        ):
            raise ValueError("over_rect must be an object with numeric top and height")
        over_rect = RowRect(top=float(rect["top"]), height=float(rect["height"]))

    before = data.get("before")
    if before is not None and not isinstance(before, bool):
        raise ValueError("before must be a boolean")

    return DragMove(
        active_id=active_id,
        over_id=over_id,
        delta_x=numbers["delta_x"] or 0.0,
        delta_y=numbers["delta_y"] or 0.0,
        pointer_y=numbers["pointer_y"],
        over_rect=over_rect,
        before=before,
    )
