"""Handlebars narration for action results.

Templates come from ``GameContent.narration`` and are compiled once per
content value (the cache lives on the content object, not in this module).
Names are rendered with triple-stash ``{{{...}}}`` so apostrophes survive.
"""

from collections.abc import Callable
from typing import Any

import pybars

from depths.content import GameContent
from depths.models import (
    AttackResult,
    EnemyAction,
    InteractResult,
    ItemUseResult,
    MoveResult,
    SkillCheckResult,
    UnknownResult,
)

_compiler = pybars.Compiler()


class TemplateError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


def format_skill_name(skill_id: str | None) -> str:
    """"fire_magic" → "Fire Magic"."""
    if not skill_id:
        return "Unknown Skill"
    return " ".join(word[:1].upper() + word[1:] for word in skill_id.split("_"))


def _helper_skill(this, skill_id):
    """{{skill skill_id}} — readable skill name."""
    return format_skill_name(skill_id)


_HELPERS: dict[str, Callable] = {
    "skill": _helper_skill,
}


def render_template(
    template_str: str,
    context: dict[str, Any],
    cache: dict[str, Callable] | None = None,
) -> str:
    """Compile and render a Handlebars template with the given context."""
    try:
        compiled = cache.get(template_str) if cache is not None else None
        if compiled is None:
            compiled = _compiler.compile(template_str)
            if cache is not None:
                cache[template_str] = compiled
        return str(compiled(context, helpers=_HELPERS)).strip()
    except Exception as e:
        raise TemplateError(f"Template error: {e}") from e


def render(content: GameContent, key: str, **context: Any) -> str:
    template = content.narration.get(key)
    if template is None:
        return ""
    return render_template(template, context, content.template_cache())


def narrate(result, content: GameContent) -> str:
    """Build the narration line for one action result."""
    name = result.character or "Hero"

    if result.error:
        return render(content, "error", character=name)

    if isinstance(result, AttackResult):
        if result.attack is None:
            return render(content, "attack.no_target", character=name)
        ctx = {
            "character": name,
            "target": result.target or "the enemy",
            "skill_used": result.skill_used,
            "damage": result.damage,
        }
        if not result.success:
            text = render(content, "attack.miss", **ctx)
        elif result.attack.critical:
            text = render(content, "attack.critical", **ctx)
        else:
            text = render(content, "attack.hit", **ctx)
        if result.target_defeated:
            text = f"{text} {render(content, 'attack.defeated', **ctx)}"
        return _with_level_up(text, result.skill_progress, name, content)

    if isinstance(result, SkillCheckResult):
        key = "skill.success" if result.success else "skill.failure"
        text = render(content, key, character=name, skill_id=result.skill_id)
        return _with_level_up(text, result.skill_progress, name, content)

    if isinstance(result, ItemUseResult):
        if not result.success:
            return render(content, "item.failure", character=name)
        text = render(content, "item.success", character=name, item=result.item or "an item")
        if result.healing is not None:
            text = f"{text} {render(content, 'item.healing', amount=result.healing.actual_healing)}"
        if result.energy_restored:
            text = f"{text} {render(content, 'item.energy', amount=result.energy_restored)}"
        return text

    if isinstance(result, MoveResult):
        return render(content, "move.success", character=name, direction=result.direction or "")

    if isinstance(result, InteractResult):
        return render(content, "interact", character=name, description=result.description)

    if isinstance(result, UnknownResult):
        return render(content, "unknown", character=name, message=result.message)

    return ""


def _with_level_up(text: str, progress, name: str, content: GameContent) -> str:
    if progress is None or not progress.leveled_up:
        return text
    level_up = render(
        content, "skill.level_up",
        character=name, skill_id=progress.skill_id, level=progress.new_level,
    )
    return f"{text} {level_up}"


def narrate_enemy(action: EnemyAction, content: GameContent) -> str:
    ctx = {"enemy": action.enemy, "target": action.target or "someone", "damage": action.damage}
    if action.attack is None:
        return ""
    if not action.attack.hit:
        return render(content, "enemy.miss", **ctx)
    key = "enemy.critical" if action.attack.critical else "enemy.hit"
    text = render(content, key, **ctx)
    if action.target_status in ("knocked_out", "dead"):
        text = f"{text} {render(content, f'enemy.{action.target_status}', **ctx)}"
    return text
