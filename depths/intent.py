"""Intent interpretation: free-text command → structured Intent.

The service asks the configured LLM first and falls back to a keyword
parser whenever the backend is unreachable, errors, or returns something
that isn't a JSON object. The fallback is deterministic: the same input
always yields the same intent and confidence.

Keyword tables (checked in this order, first match wins):

    attack    attack hit strike fight kill           0.8
    move      move go walk run step                  0.7
    defend    defend block guard shield protect      0.8  (use_skill shield_use)
    use_item  use drink consume apply                0.7
    cast      cast spell magic                       0.6  (use_skill)
    examine   examine look search inspect check      0.6  (interact perception)
    otherwise unknown                                0.1
"""

import json
import logging
import re

from depths.content import GameContent
from depths.llm import LLM, LLMError
from depths.models import Intent, IntentKind, IntentRequest
from depths.narration import TemplateError, render_template

logger = logging.getLogger(__name__)

ATTACK_WORDS = {"attack", "hit", "strike", "fight", "kill"}
MOVE_WORDS = {"move", "go", "walk", "run", "step"}
DEFEND_WORDS = {"defend", "block", "guard", "shield", "protect"}
ITEM_WORDS = {"use", "drink", "consume", "apply"}
CAST_WORDS = {"cast", "spell", "magic"}
EXAMINE_WORDS = {"examine", "look", "search", "inspect", "check"}

WEAPON_SKILLS = [
    ({"sword", "blade", "slash"}, "swordsmanship"),
    ({"bow", "arrow", "shoot"}, "archery"),
    ({"axe", "chop"}, "axe_fighting"),
    ({"punch", "kick", "fist"}, "unarmed_combat"),
]

SPELL_SKILLS = [
    ({"fire", "flame", "burn"}, "fire_magic"),
    ({"ice", "frost", "freeze"}, "ice_magic"),
    ({"lightning", "thunder", "shock"}, "lightning_magic"),
    ({"heal", "cure", "restore"}, "healing_magic"),
]

DIRECTIONS = [
    ({"north", "up", "forward"}, "north"),
    ({"south", "down", "back"}, "south"),
    ({"east", "right"}, "east"),
    ({"west", "left"}, "west"),
]

ITEM_NAMES = [
    ({"potion", "health", "healing"}, "health_potion"),
    ({"energy", "mana"}, "energy_potion"),
]


def _first_match(words: set[str], table: list[tuple[set[str], str]]) -> str | None:
    for keywords, value in table:
        if words & keywords:
            return value
    return None


def parse_fallback(request: IntentRequest) -> Intent:
    """Keyword parser used when the LLM is unavailable."""
    text = request.raw_input.lower().strip()
    words = set(text.split())

    if words & ATTACK_WORDS:
        target = None
        if request.visible_enemies:
            target = request.visible_enemies[0].id
            for enemy in request.visible_enemies:
                if enemy.name.lower() in text:
                    target = enemy.id
                    break
        return Intent(
            intent=IntentKind.ATTACK,
            target=target,
            skill_suggested=_first_match(words, WEAPON_SKILLS) or "swordsmanship",
            confidence=0.8,
        )

    if words & MOVE_WORDS:
        return Intent(
            intent=IntentKind.MOVE,
            target=_first_match(words, DIRECTIONS),
            skill_suggested="navigation",
            confidence=0.7,
        )

    if words & DEFEND_WORDS:
        return Intent(intent=IntentKind.USE_SKILL, skill_suggested="shield_use", confidence=0.8)

    if words & ITEM_WORDS:
        return Intent(
            intent=IntentKind.USE_ITEM,
            target=_first_match(words, ITEM_NAMES),
            confidence=0.7,
        )

    if words & CAST_WORDS:
        return Intent(
            intent=IntentKind.USE_SKILL,
            skill_suggested=_first_match(words, SPELL_SKILLS) or "arcane_magic",
            confidence=0.6,
        )

    if words & EXAMINE_WORDS:
        return Intent(intent=IntentKind.INTERACT, skill_suggested="perception", confidence=0.6)

    return Intent(intent=IntentKind.UNKNOWN, confidence=0.1)


def _parse_json_output(text: str) -> dict | None:
    """Parse JSON from LLM output, stripping markdown fences."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        lines = cleaned.split("\n")
        lines = [l for l in lines[1:] if not l.strip().startswith("```")]
        cleaned = "\n".join(lines)
    else:
        # Chat models sometimes wrap the object in prose
        match = re.search(r"\{.*\}", cleaned, re.DOTALL)
        if match:
            cleaned = match.group(0)
    try:
        data = json.loads(cleaned)
        return data if isinstance(data, dict) else None
    except json.JSONDecodeError as e:
        logger.warning(f"Intent output is not valid JSON: {e}")
        return None


def _intent_from_llm(data: dict) -> Intent:
    confidence = data.get("confidence", 0.0)
    if not isinstance(confidence, (int, float)) or isinstance(confidence, bool):
        confidence = 0.0
    target = data.get("target")
    skill = data.get("skill_suggested")
    return Intent(
        intent=IntentKind.parse(data.get("intent")),
        target=str(target) if target not in (None, "") else None,
        skill_suggested=str(skill) if skill not in (None, "") else None,
        confidence=min(1.0, max(0.0, float(confidence))),
        source="llm",
    )


class IntentService:
    """Turns raw player input into an Intent.

    Args:
        llm:     Callable matching the LLM protocol, or None to always use
                 the keyword parser.
        content: Supplies the prompt template.
    """

    def __init__(self, llm: LLM | None, content: GameContent) -> None:
        self._llm = llm
        self._content = content

    def build_prompt(self, request: IntentRequest) -> str:
        return render_template(
            self._content.intent_prompt,
            {
                "skills": ", ".join(request.available_skills) or "none",
                "enemies": ", ".join(
                    f"{e.name} ({e.id})" for e in request.visible_enemies
                ) or "none",
                "input": request.raw_input,
            },
            self._content.template_cache(),
        )

    async def interpret(self, request: IntentRequest) -> Intent:
        if self._llm is None:
            return parse_fallback(request)

        try:
            prompt = self.build_prompt(request)
            text = await self._llm("intent", prompt)
        except (LLMError, TemplateError) as e:
            logger.warning("Intent LLM unavailable, using keyword parser: %s", e)
            return parse_fallback(request)

        data = _parse_json_output(text)
        if data is None:
            return parse_fallback(request)
        return _intent_from_llm(data)
