"""
Item catalog -> Lua table source.

The output is a single `return { ... }` chunk keyed by item name, in the
layout the inventory runtime expects:

    return {
        ['waterbottle'] = {
            label = 'Water Bottle',
            weight = 500,
            client = {
                usetime = 2500,
                status = {
                    ['thirst'] = 200000,
                },
            },
        },
    }

Field order inside every table is fixed so the same catalog always produces
byte-identical text. Optional fields that are absent or falsy are left out,
and nested tables with nothing to show are left out with them.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from item_schema import ItemValidationError, item_context, validate_item

LUA_CONTENT_TYPE = "text/plain"
LUA_FILENAME = "items.lua"

ITEM_SCALAR_FIELDS = ("weight", "degrade", "consume")
CLIENT_FIELD_ORDER = ("anim", "prop", "usetime", "notification", "image", "imageurl", "status")
CLIENT_NUMBER_FIELDS = {"usetime"}
BUTTON_FIELD_ORDER = ("label", "group", "action")

# A table entry: (key, literal) or (key, nested entries). Key None means a list element.
LuaEntry = Tuple[Optional[str], Union[str, List["LuaEntry"]]]

_ORIGIN_RE = re.compile(r"^https?://[^/]+", re.IGNORECASE)
_LUA_ESCAPES = {
    "\\": "\\\\",
    "'": "\\'",
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}


def lua_string(value: Any) -> str:
    """Quote a value as a single-quoted Lua string literal."""
    out = []
    for ch in str(value):
        if ch in _LUA_ESCAPES:
            out.append(_LUA_ESCAPES[ch])
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\{ord(ch):03d}")
        else:
            out.append(ch)
    return "'" + "".join(out) + "'"


def lua_number(value: Any) -> str:
    if isinstance(value, bool):
        raise TypeError("booleans are not numbers")
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    return str(value).strip()


def lua_expression(value: Any) -> str:
    """Raw expression token for status values; strings are trusted and emitted verbatim."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return lua_number(value)
    return str(value).strip()


def bracket_key(name: str) -> str:
    return f"[{lua_string(name)}]"


def rewrite_image_url(url: str, base_url: str) -> str:
    """Point an asset URL at ``base_url``, dropping whatever origin it was recorded with.

    Idempotent for a fixed base: rewriting an already-rewritten URL returns it unchanged.
    """
    path = _ORIGIN_RE.sub("", str(url).strip(), count=1)
    if path and not path.startswith("/"):
        path = "/" + path
    return base_url.rstrip("/") + path


class LuaWriter:
    """Ordered key/value emitter; all quoting goes through the entries the caller builds."""

    def __init__(self, indent: str = "    ") -> None:
        self.indent = indent
        self.depth = 0
        self.lines: List[str] = []

    def line(self, text: str) -> None:
        self.lines.append(f"{self.indent * self.depth}{text}")

    def field(self, key: str, literal: str) -> None:
        self.line(f"{key} = {literal},")

    def table(self, key: Optional[str], entries: Sequence[LuaEntry]) -> None:
        self.line("{" if key is None else f"{key} = {{")
        self.depth += 1
        for entry_key, value in entries:
            if isinstance(value, list):
                self.table(entry_key, value)
            else:
                self.field(entry_key, value)
        self.depth -= 1
        self.line("},")

    def text(self) -> str:
        return "\n".join(self.lines) + "\n"


def _status_entries(status: Dict[str, Any]) -> List[LuaEntry]:
    return [(bracket_key(key), lua_expression(value)) for key, value in status.items()]


def _client_entries(client: Dict[str, Any], base_url: str) -> List[LuaEntry]:
    entries: List[LuaEntry] = []
    for key in CLIENT_FIELD_ORDER:
        value = client.get(key)
        if not value:
            continue
        if key == "status":
            entries.append((key, _status_entries(value)))
        elif key == "imageurl":
            entries.append((key, lua_string(rewrite_image_url(value, base_url))))
        elif key in CLIENT_NUMBER_FIELDS:
            entries.append((key, lua_number(value)))
        else:
            entries.append((key, lua_string(value)))
    return entries


def item_entries(item: Dict[str, Any], base_url: str) -> List[LuaEntry]:
    entries: List[LuaEntry] = [("label", lua_string(item["label"]))]
    for key in ITEM_SCALAR_FIELDS:
        if item.get(key):
            entries.append((key, lua_number(item[key])))
    if item.get("stack"):
        entries.append(("stack", "true"))

    client = item.get("client")
    if client:
        client_entries = _client_entries(client, base_url)
        if client_entries:
            entries.append(("client", client_entries))

    server = item.get("server")
    if server and server.get("export"):
        entries.append(("server", [("export", lua_string(server["export"]))]))

    buttons = item.get("buttons")
    if buttons:
        entries.append((
            "buttons",
            [
                (None, [(key, lua_string(button[key])) for key in BUTTON_FIELD_ORDER])
                for button in buttons
            ],
        ))
    return entries


def select_exportable(items: Sequence[Any], on_invalid: str = "abort") -> List[Dict[str, Any]]:
    """Apply the invalid-item policy.

    "abort" raises ItemValidationError listing every problem in the catalog.
    "skip" drops malformed items and later duplicates of an already exported
    name, logging one warning per dropped item.
    """
    if on_invalid not in ("abort", "skip"):
        raise ValueError(f"unknown invalid-item policy: {on_invalid!r}")

    selected: List[Dict[str, Any]] = []
    errors: List[str] = []
    seen: Dict[str, int] = {}
    for index, record in enumerate(items):
        ctx = item_context(record, index)
        problems = validate_item(record, ctx)
        if not problems and record["name"] in seen:
            problems = [f"{ctx}: duplicate name (first used by items[{seen[record['name']]}])"]
        if problems:
            if on_invalid == "skip":
                logging.warning("Skipping item in Lua export: %s", "; ".join(problems))
            errors.extend(problems)
            continue
        seen[record["name"]] = index
        selected.append(record)

    if errors and on_invalid == "abort":
        raise ItemValidationError(errors)
    return selected


def emit_items_lua(items: Sequence[Any], base_url: str, on_invalid: str = "abort") -> str:
    writer = LuaWriter()
    writer.line("return {")
    writer.depth = 1
    for item in select_exportable(items, on_invalid):
        writer.table(bracket_key(item["name"]), item_entries(item, base_url))
    writer.depth = 0
    writer.line("}")
    return writer.text()
