"""Tests for depths.intent — keyword fallback parser and IntentService."""

from unittest.mock import AsyncMock

import pytest

from depths.intent import IntentService, parse_fallback
from depths.llm import LLMError
from depths.models import EnemyRef, IntentKind, IntentRequest

ENEMIES = [EnemyRef(id="g1", name="Goblin Scout"), EnemyRef(id="r1", name="Rat")]


def _req(text: str, enemies=()) -> IntentRequest:
    return IntentRequest(raw_input=text, available_skills=["swordsmanship"], visible_enemies=list(enemies))


# ── Keyword fallback ────────────────────────────────────


@pytest.mark.parametrize("text,kind,skill,confidence", [
    ("attack", IntentKind.ATTACK, "swordsmanship", 0.8),
    ("hit it with my axe", IntentKind.ATTACK, "axe_fighting", 0.8),
    ("attack with bow", IntentKind.ATTACK, "archery", 0.8),
    ("kill it with a punch", IntentKind.ATTACK, "unarmed_combat", 0.8),
    ("walk somewhere", IntentKind.MOVE, "navigation", 0.7),
    ("raise my shield", IntentKind.USE_SKILL, "shield_use", 0.8),
    ("defend", IntentKind.USE_SKILL, "shield_use", 0.8),
    ("drink something", IntentKind.USE_ITEM, None, 0.7),
    ("cast a spell", IntentKind.USE_SKILL, "arcane_magic", 0.6),
    ("cast fire", IntentKind.USE_SKILL, "fire_magic", 0.6),
    ("magic frost", IntentKind.USE_SKILL, "ice_magic", 0.6),
    ("cast shock", IntentKind.USE_SKILL, "lightning_magic", 0.6),
    ("cast heal", IntentKind.USE_SKILL, "healing_magic", 0.6),
    ("look around", IntentKind.INTERACT, "perception", 0.6),
    ("dance wildly", IntentKind.UNKNOWN, None, 0.1),
])
def test_fallback_keywords(text, kind, skill, confidence):
    intent = parse_fallback(_req(text))
    assert intent.intent == kind
    assert intent.skill_suggested == skill
    assert intent.confidence == confidence
    assert intent.source == "fallback"


def test_fallback_is_case_insensitive():
    assert parse_fallback(_req("  ATTACK  ")).intent == IntentKind.ATTACK


def test_fallback_attack_defaults_to_first_enemy():
    assert parse_fallback(_req("attack", ENEMIES)).target == "g1"


def test_fallback_attack_matches_enemy_name():
    assert parse_fallback(_req("attack the rat", ENEMIES)).target == "r1"


def test_fallback_attack_without_enemies_has_no_target():
    assert parse_fallback(_req("attack")).target is None


@pytest.mark.parametrize("text,direction", [
    ("go north", "north"),
    ("move forward", "north"),
    ("step back", "south"),
    ("run right", "east"),
    ("walk left", "west"),
    ("run", None),
])
def test_fallback_move_direction(text, direction):
    assert parse_fallback(_req(text)).target == direction


@pytest.mark.parametrize("text,item", [
    ("drink potion", "health_potion"),
    ("use healing draught", "health_potion"),
    ("consume mana", "energy_potion"),
])
def test_fallback_item_names(text, item):
    assert parse_fallback(_req(text)).target == item


def test_attack_words_win_over_later_tables():
    # "use" is an item word, but attack is checked first
    assert parse_fallback(_req("use sword to attack")).intent == IntentKind.ATTACK


# ── IntentService ───────────────────────────────────────


async def test_service_without_llm_uses_fallback(content):
    service = IntentService(None, content)
    intent = await service.interpret(_req("attack", ENEMIES))
    assert intent.intent == IntentKind.ATTACK
    assert intent.source == "fallback"


async def test_service_parses_fenced_llm_json(content):
    reply = '```json\n{"intent": "attack", "target": "r1", "skill_suggested": "archery", "confidence": 0.9}\n```'
    llm = AsyncMock(return_value=reply)
    intent = await IntentService(llm, content).interpret(_req("shoot the rat", ENEMIES))
    assert intent.intent == IntentKind.ATTACK
    assert intent.target == "r1"
    assert intent.skill_suggested == "archery"
    assert intent.confidence == 0.9
    assert intent.source == "llm"
    assert llm.call_args[0][0] == "intent"


async def test_service_extracts_json_from_prose(content):
    llm = AsyncMock(return_value='Sure! {"intent": "interact", "confidence": 0.7} Hope that helps.')
    intent = await IntentService(llm, content).interpret(_req("peer at the walls"))
    assert intent.intent == IntentKind.INTERACT
    assert intent.target is None


async def test_service_falls_back_on_llm_error(content):
    llm = AsyncMock(side_effect=LLMError("down"))
    intent = await IntentService(llm, content).interpret(_req("go north"))
    assert intent.intent == IntentKind.MOVE
    assert intent.source == "fallback"


async def test_service_falls_back_on_unparsable_output(content):
    llm = AsyncMock(return_value="I think they want to attack")
    intent = await IntentService(llm, content).interpret(_req("drink potion"))
    assert intent.intent == IntentKind.USE_ITEM
    assert intent.source == "fallback"


async def test_service_maps_unrecognized_intent_to_unknown(content):
    llm = AsyncMock(return_value='{"intent": "fly", "confidence": 0.95}')
    intent = await IntentService(llm, content).interpret(_req("fly away"))
    assert intent.intent == IntentKind.UNKNOWN
    assert intent.source == "llm"


async def test_service_clamps_confidence(content):
    llm = AsyncMock(return_value='{"intent": "move", "target": "east", "confidence": 1.7}')
    intent = await IntentService(llm, content).interpret(_req("go east"))
    assert intent.confidence == 1.0


def test_prompt_lists_skills_enemies_and_input(content):
    prompt = IntentService(None, content).build_prompt(_req("attack the rat", ENEMIES))
    assert "Available skills: swordsmanship" in prompt
    assert "Rat (r1)" in prompt
    assert "Player input: attack the rat" in prompt


def test_prompt_without_enemies_says_none(content):
    prompt = IntentService(None, content).build_prompt(_req("look"))
    assert "Current enemies: none" in prompt
