"""
Invariant checks for structured rule definitions.

Definitions are authored content, so problems are collected rather than
raised one at a time; ``check_rule`` raises a single RuleDefinitionError
listing everything wrong with a rule.
"""

import logging
from numbers import Number
from typing import List, Tuple

from src.utils.exceptions import RuleDefinitionError

from .models import (
    ComponentType,
    NumericRange,
    ProcedureStep,
    ScoringMethod,
    StructuredRule,
)

logger = logging.getLogger(__name__)

# Gaps up to one point between bands are tolerated (integer totals,
# fractional weights landing between bands are clamped at evaluation time)
MAX_BAND_GAP = 1


def _is_number(value) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def score_domain(rule: StructuredRule) -> Tuple[float, float]:
    """Lowest and highest total the rule's components can produce."""
    low = high = 0
    threshold = rule.scoring.method == ScoringMethod.THRESHOLD
    for c in rule.components:
        if c.type == ComponentType.BOOLEAN:
            weight = 1 if threshold else c.weight
            if not _is_number(weight):
                continue
            low += min(0, weight)
            high += max(0, weight)
        elif c.type == ComponentType.SELECT:
            values = [o.value for o in c.options if _is_number(o.value)]
            if values:
                low += min(values)
                high += max(values)
        elif _is_number(c.min) and _is_number(c.max):
            low += c.min
            high += c.max
    return low, high


def validate_rule(rule: StructuredRule) -> List[str]:
    """Return a list of human-readable problems; empty when the rule is valid."""
    problems: List[str] = []

    if not rule.id:
        problems.append("rule id is empty")
    if not rule.components:
        problems.append("rule has no components")

    seen = set()
    for c in rule.components:
        if c.id in seen:
            problems.append(f"duplicate component id '{c.id}'")
        seen.add(c.id)

        if c.type == ComponentType.SELECT:
            if not c.options:
                problems.append(f"select component '{c.id}' has no options")
            for option in c.options:
                if not _is_number(option.value):
                    problems.append(
                        f"option '{option.label}' of '{c.id}' has non-numeric value"
                    )
        elif c.type == ComponentType.NUMBER_RANGE:
            if c.min is None or c.max is None:
                problems.append(f"number_range component '{c.id}' needs min and max")
            elif c.min > c.max:
                problems.append(f"number_range component '{c.id}' has min > max")
        elif c.type == ComponentType.BOOLEAN:
            if c.value is not None and not _is_number(c.value):
                problems.append(f"boolean component '{c.id}' has non-numeric value")

    if not rule.scoring.ranges:
        problems.append("scoring has no ranges")
    elif rule.scoring.method == ScoringMethod.ALGORITHM:
        problems.extend(_validate_steps(rule, seen))
    else:
        problems.extend(_validate_numeric_ranges(rule))

    risks = {r.risk for r in rule.scoring.ranges}
    for risk in rule.suggested_treatments:
        if risk not in risks:
            problems.append(f"suggested treatments keyed by unknown risk '{risk}'")

    return problems


def _validate_numeric_ranges(rule: StructuredRule) -> List[str]:
    problems: List[str] = []
    if any(not isinstance(r, NumericRange) for r in rule.scoring.ranges):
        return [f"{rule.scoring.method.value} scoring must use numeric ranges"]

    ordered = rule.scoring.numeric_ranges
    for band in ordered:
        if band.min > band.max:
            problems.append(f"range '{band.risk}' has min > max")
    for prev, nxt in zip(ordered, ordered[1:]):
        if nxt.min <= prev.max:
            problems.append(f"ranges '{prev.risk}' and '{nxt.risk}' overlap")
        elif nxt.min - prev.max > MAX_BAND_GAP:
            problems.append(f"gap between ranges '{prev.risk}' and '{nxt.risk}'")

    low, high = score_domain(rule)
    if ordered and (ordered[0].min > low or ordered[-1].max < high):
        problems.append(
            f"ranges cover [{ordered[0].min}, {ordered[-1].max}] "
            f"but totals span [{low}, {high}]"
        )
    return problems


def _validate_steps(rule: StructuredRule, component_ids: set) -> List[str]:
    problems: List[str] = []
    steps = rule.scoring.ranges
    if any(not isinstance(s, ProcedureStep) for s in steps):
        return ["algorithm scoring must use procedure steps"]

    for i, step in enumerate(steps):
        unknown = step.referenced_components - component_ids
        if unknown:
            problems.append(
                f"step {i + 1} ('{step.risk}') references unknown components {sorted(unknown)}"
            )
        if step.is_fallback and i != len(steps) - 1:
            problems.append(f"step {i + 1} ('{step.risk}') always holds; later steps are unreachable")
    return problems


def check_rule(rule: StructuredRule) -> StructuredRule:
    """Raise RuleDefinitionError if the rule breaks any invariant; return it otherwise."""
    problems = validate_rule(rule)
    if problems:
        raise RuleDefinitionError(
            f"Invalid rule definition '{rule.id}': {'; '.join(problems)}",
            rule_id=rule.id,
            problems=problems,
        )
    return rule
