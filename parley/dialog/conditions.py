"""
Condition evaluation for starters and conditional branches.

The same first-match rule picks the entry point of a conversation and
the successor of a branching line:

    next_id = select(line.conditional_next.values(), flags.lookup, line.next)
"""

from __future__ import annotations

import logging
from typing import Callable, Iterable, Optional

from parley.dialog.models import Condition, ConditionGroup, Operator, Quantifier

logger = logging.getLogger(__name__)

Lookup = Callable[[str], Optional[str]]


def _to_number(value: str) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def check(condition: Condition, lookup: Lookup) -> bool:
    """
    Test a single condition.

    An unresolved key, or a value that is not a number for a numeric
    operator, makes the condition false. Neither is an error.
    """
    actual = lookup(condition.key)
    if actual is None:
        return False

    if condition.operator is Operator.EQ:
        return str(actual) == condition.value

    left = _to_number(actual)
    right = _to_number(condition.value)
    if left is None or right is None:
        return False

    if condition.operator is Operator.GT:
        return left > right
    if condition.operator is Operator.LT:
        return left < right
    if condition.operator is Operator.GTE:
        return left >= right
    return left <= right


def passes(candidate: ConditionGroup, lookup: Lookup) -> bool:
    """Whether a starter or branch is satisfied."""
    if not candidate.conditions:
        return True

    require_all = candidate.quantifier is Quantifier.ALL
    passed = require_all
    for condition in candidate.conditions:
        result = check(condition, lookup)
        if require_all and not result:
            passed = False
        elif not require_all and result:
            passed = True
    return passed


def select(candidates: Iterable[ConditionGroup], lookup: Lookup, default_id: str = "") -> str:
    """
    Return the id of the first satisfied candidate, in order.

    Args:
        candidates: Starters or conditional branches, in document order
        lookup: Resolves a condition key to its current value
        default_id: Returned when nothing passes

    A candidate with no conditions always passes, so documents end their
    starter list with an unconditional default.
    """
    for candidate in candidates:
        if passes(candidate, lookup):
            logger.debug(f"Condition group '{candidate.id}' selected")
            return candidate.id
    logger.debug(f"No condition group passed, using '{default_id}'")
    return default_id
