"""Create demo content (the Goblin Warren) for development/testing."""

import logging

from depths.models import Dungeon, Enemy, GameInstance, Room
from depths.storage import TABLES, GameStore

logger = logging.getLogger(__name__)

DEMO_ROOMS = [
    Room(
        id="",
        name="Warren Mouth",
        description="A low tunnel reeking of smoke. Two goblins squabble over a bone.",
        room_type="combat",
        ascii_layout="####################\n#.........G........#\n#..................#\n#....G.............#\n####################",
        enemies=[
            Enemy(id="goblin_1", name="Goblin Scout", skills={"swordsmanship": 2, "dodge": 1}),
            Enemy(id="goblin_2", name="Goblin Brute", current_hp=12, max_hp=12,
                  skills={"axe_fighting": 3}, attack_skill="axe_fighting", weapon_damage=2),
        ],
    ),
    Room(
        id="",
        name="Hoard Nook",
        description="Stolen trinkets are piled against the wall.",
        room_type="treasure",
    ),
    Room(
        id="",
        name="Tripwire Gallery",
        description="A narrow passage strung with rusted wire and loose stones.",
        room_type="trap",
    ),
    Room(
        id="",
        name="Chieftain's Den",
        description="Bones crunch underfoot. The goblin chieftain rises from a throne of crates.",
        room_type="boss",
        enemies=[
            Enemy(id="chieftain", name="Goblin Chieftain", current_hp=25, max_hp=25,
                  skills={"swordsmanship": 6, "parry": 3, "perception": 10}, weapon_damage=3),
        ],
    ),
]


async def create_demo_data(store: GameStore) -> GameInstance:
    """Wipe all tables and create the demo dungeon, a hero and an instance."""
    for table in TABLES:
        for record in await store.records.read(table):
            await store.records.delete(table, record["id"])

    room_ids = [(await store.create_room(room)).id for room in DEMO_ROOMS]
    dungeon = await store.create_dungeon(Dungeon(
        id="",
        name="The Goblin Warren",
        description="A cramped burrow of tunnels under the old mill.",
        room_sequence=room_ids,
        narration_style="heroic",
    ))
    player_id = await store.create_player("Demo Player")
    hero = await store.create_character("Aldric", player_id=player_id)
    instance = await store.create_instance(dungeon.id, [hero.id], tick_interval="1min")
    logger.info("Demo data created: dungeon %s, instance %s", dungeon.id, instance.id)
    return instance
