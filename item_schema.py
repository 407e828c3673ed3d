"""
Item record shape and validation.

An item is a plain JSON object:

    {
      "name": "waterbottle",            # required, unique
      "label": "Water Bottle",          # required
      "weight": 500, "degrade": 60, "consume": 1, "stack": true,
      "client": {
        "anim": "...", "prop": "...", "usetime": 2500, "notification": "...",
        "image": "...", "imageurl": "https://host/uploads/images/x.png",
        "status": {"thirst": 200000}
      },
      "server": {"export": "resource.fn"},
      "buttons": [{"label": "...", "group": "...", "action": "..."}]
    }

Optional fields that are absent or falsy are ignored everywhere. Unknown keys
are kept in storage but never exported.
"""

import math
import re
from typing import Any, Dict, List, Sequence

NUMERIC_FIELDS = ("weight", "degrade", "consume")
CLIENT_STRING_FIELDS = ("anim", "prop", "notification", "image", "imageurl")
BUTTON_FIELDS = ("label", "group", "action")

_NUMERIC_TEXT_RE = re.compile(r"-?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class ItemValidationError(ValueError):
    def __init__(self, errors: Sequence[str]):
        self.errors = list(errors)
        joined = "\n".join(f"- {msg}" for msg in self.errors)
        super().__init__(f"Item validation failed:\n{joined}")


def is_number(value: Any) -> bool:
    """True for ints/floats (not bools) and for strings holding a plain decimal number."""
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return math.isfinite(value)
    if isinstance(value, str):
        return bool(_NUMERIC_TEXT_RE.fullmatch(value.strip()))
    return False


def item_context(record: Any, index: int) -> str:
    name = record.get("name") if isinstance(record, dict) else None
    if isinstance(name, str) and name.strip():
        return f"items[{index}] ({name.strip()})"
    return f"items[{index}]"


def _validate_non_empty_str(entry: Dict[str, Any], key: str, ctx: str, errors: List[str]) -> None:
    value = entry.get(key)
    if not isinstance(value, str) or not value.strip():
        errors.append(f"{ctx}: '{key}' must be a non-empty string")


def _validate_optional_str(entry: Dict[str, Any], key: str, ctx: str, errors: List[str]) -> None:
    value = entry.get(key)
    if value and not isinstance(value, str):
        errors.append(f"{ctx}: '{key}' must be a string when provided")


def _validate_optional_number(entry: Dict[str, Any], key: str, ctx: str, errors: List[str]) -> None:
    value = entry.get(key)
    if value and not is_number(value):
        errors.append(f"{ctx}: '{key}' must be a number when provided")


def _validate_status(status: Any, ctx: str, errors: List[str]) -> None:
    if not status:
        return
    if not isinstance(status, dict):
        errors.append(f"{ctx}: 'client.status' must be an object")
        return
    for key, value in status.items():
        if not isinstance(key, str) or not key.strip():
            errors.append(f"{ctx}: 'client.status' keys must be non-empty strings")
            continue
        if isinstance(value, bool) or is_number(value):
            continue
        if isinstance(value, str) and value.strip():
            continue
        errors.append(f"{ctx}: 'client.status.{key}' must be a number, boolean or expression")


def _validate_client(client: Any, ctx: str, errors: List[str]) -> None:
    if not client:
        return
    if not isinstance(client, dict):
        errors.append(f"{ctx}: 'client' must be an object")
        return
    for key in CLIENT_STRING_FIELDS:
        _validate_optional_str(client, key, f"{ctx} client", errors)
    _validate_optional_number(client, "usetime", f"{ctx} client", errors)
    _validate_status(client.get("status"), ctx, errors)


def _validate_server(server: Any, ctx: str, errors: List[str]) -> None:
    if not server:
        return
    if not isinstance(server, dict):
        errors.append(f"{ctx}: 'server' must be an object")
        return
    _validate_optional_str(server, "export", f"{ctx} server", errors)


def _validate_buttons(buttons: Any, ctx: str, errors: List[str]) -> None:
    if not buttons:
        return
    if not isinstance(buttons, list):
        errors.append(f"{ctx}: 'buttons' must be a list")
        return
    for i, button in enumerate(buttons):
        if not isinstance(button, dict):
            errors.append(f"{ctx}: 'buttons[{i}]' must be an object")
            continue
        for key in BUTTON_FIELDS:
            _validate_non_empty_str(button, key, f"{ctx} buttons[{i}]", errors)


def validate_item(record: Any, ctx: str = "item") -> List[str]:
    errors: List[str] = []
    if not isinstance(record, dict):
        errors.append(f"{ctx}: item must be an object")
        return errors

    _validate_non_empty_str(record, "name", ctx, errors)
    _validate_non_empty_str(record, "label", ctx, errors)
    for key in NUMERIC_FIELDS:
        _validate_optional_number(record, key, ctx, errors)
    stack = record.get("stack")
    if stack and not isinstance(stack, bool):
        errors.append(f"{ctx}: 'stack' must be a boolean when provided")

    _validate_client(record.get("client"), ctx, errors)
    _validate_server(record.get("server"), ctx, errors)
    _validate_buttons(record.get("buttons"), ctx, errors)
    return errors


def validate_items(records: Sequence[Any]) -> List[str]:
    """Validate a whole collection, including name uniqueness."""
    errors: List[str] = []
    seen: Dict[str, int] = {}
    for index, record in enumerate(records):
        ctx = item_context(record, index)
        errors.extend(validate_item(record, ctx))
        if not isinstance(record, dict):
            continue
        name = record.get("name")
        if not isinstance(name, str) or not name.strip():
            continue
        if name in seen:
            errors.append(f"{ctx}: duplicate name (first used by items[{seen[name]}])")
        else:
            seen[name] = index
    return errors
