"""Command resolution pipeline.

For each command in a tick:
  1. Skip characters who are not active (failed "unable" result).
  2. Interpret the raw text into an Intent (LLM, keyword fallback).
  3. Intents under the confidence floor become "unknown".
  4. Dispatch to exactly one resolver per IntentKind.
  5. Narrate the result from the content's Handlebars templates.

Result format: one tagged variant per intent (``type`` is attack / move /
skill_check / item_use / interact / unknown), each with ``success`` and
type-specific fields. After all commands, ``run_enemy_phase`` lets the
room's living enemies attack in initiative order.
"""

from .core import RESOLVERS, effective_kind, resolve_command  # noqa: F401
from .enemies import run_enemy_phase  # noqa: F401
from .handlers import ResolveContext, match_enemy  # noqa: F401
