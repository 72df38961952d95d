"""JSON-text encoding for complex record fields.

Complex values (skill maps, inventories, rosters) are stored as JSON text,
one string per field. Missing or empty text decodes to an empty container
of the field's shape.
"""

import json
import logging
from typing import Any

logger = logging.getLogger(__name__)

# table → {field: empty value}
JSON_FIELDS: dict[str, dict[str, Any]] = {
    "characters": {"skills": {}, "equipment": {}, "inventory": []},
    "game_instances": {"characters": [], "room_states": []},
    "rooms": {"enemies": []},
    "dungeons": {"room_sequence": []},
    "commands": {"resolved_intent": {}, "result": {}},
    "players": {},
}


def encode_fields(table: str, fields: dict[str, Any]) -> dict[str, Any]:
    """Serialize complex fields to JSON text. Other fields pass through."""
    shapes = JSON_FIELDS.get(table, {})
    encoded = dict(fields)
    for name in shapes:
        if name in encoded and not isinstance(encoded[name], str):
            encoded[name] = json.dumps(encoded[name])
    return encoded


def decode_fields(table: str, fields: dict[str, Any]) -> dict[str, Any]:
    """Parse complex fields from JSON text, defaulting missing/empty ones."""
    shapes = JSON_FIELDS.get(table, {})
    decoded = dict(fields)
    for name, empty in shapes.items():
        raw = decoded.get(name)
        if raw is None or raw == "":
            decoded[name] = type(empty)()
        elif isinstance(raw, str):
            try:
                decoded[name] = json.loads(raw)
                if decoded[name] is None:
                    decoded[name] = type(empty)()
            except json.JSONDecodeError:
                logger.warning("Field %s.%s is not valid JSON, using empty value", table, name)
                decoded[name] = type(empty)()
    return decoded
