"""Record storage for the game service.

Data layout:
  data/
    players.json         Player accounts
    characters.json      Characters (skills/equipment/inventory as JSON text)
    commands.json        Submitted commands, append-only until their tick resolves
    game_instances.json  Adventure attempts (characters/room_states as JSON text)
    rooms.json           Room content (enemies as JSON text)
    dungeons.json        Dungeon content (room_sequence as JSON text)
    config.json          Service settings (see depths.config)
    content.json         Optional overrides for game content

Each table file is a list of {"id", "fields", "created_time"} records.
``GameStore`` is the typed API; ``TickSession`` stages character writes
for one tick so they commit with the instance in a single guarded batch.
"""

# Re-export public symbols so `from depths import storage` is enough.

from .records import (  # noqa: F401
    TABLES,
    CachedRecordStore,
    Change,
    ConflictError,
    Guard,
    JsonRecordStore,
    RecordStore,
    StorageError,
)

from .fields import (  # noqa: F401
    decode_fields,
    encode_fields,
)

from .game import (  # noqa: F401
    GameStore,
    character_from_record,
    instance_from_record,
    utc_now,
)

from .session import TickSession  # noqa: F401
