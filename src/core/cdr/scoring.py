"""
Reference evaluator for structured rules.

  sum        total = weighted sum of component contributions, numeric range lookup
  threshold  same lookup, but boolean criteria count 1 each regardless of weight
  algorithm  ordered procedure steps; the first step whose clauses hold wins

Evaluation never raises. Totals outside every range are clamped to the nearest
range and flagged; malformed inputs are treated as unanswered.
"""

import logging
import math
from numbers import Number
from typing import Any, Dict, List, Mapping, Optional, Set, Tuple

from .models import (
    Component,
    ComponentType,
    EvaluationResult,
    NumericRange,
    ProcedureStep,
    ScoringMethod,
    StructuredRule,
    TrackingStatus,
)

logger = logging.getLogger(__name__)

_TRUE_STRINGS = {"true", "yes", "y", "1", "present"}
_FALSE_STRINGS = {"false", "no", "n", "0", "absent"}


# ----------------------------------------------------------------------
# Input coercion
# ----------------------------------------------------------------------

def _is_finite(raw: Any) -> bool:
    try:
        return math.isfinite(raw)
    except TypeError:
        return False


def _as_bool(raw: Any) -> Optional[bool]:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, Number):
        return raw != 0 if _is_finite(raw) else None
    if isinstance(raw, str):
        lowered = raw.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return None


def _as_number(raw: Any) -> Optional[float]:
    """Finite numeric value of ``raw``; NaN and infinities count as malformed."""
    if isinstance(raw, bool):
        return None
    if isinstance(raw, Number):
        return raw if _is_finite(raw) else None
    if isinstance(raw, str):
        try:
            value = float(raw)
        except ValueError:
            return None
        return value if math.isfinite(value) else None
    return None


def contribution(
    component: Component, raw: Any, method: ScoringMethod = ScoringMethod.SUM
) -> Optional[float]:
    """Numeric contribution of one input, or None when unanswered or malformed."""
    if raw is None:
        return None

    if component.type == ComponentType.BOOLEAN:
        present = _as_bool(raw)
        if present is None:
            return None
        if method == ScoringMethod.THRESHOLD:
            return 1 if present else 0
        return component.weight if present else 0

    if component.type == ComponentType.SELECT:
        if isinstance(raw, Number) and not _is_finite(raw):
            return None
        option = component.option_for(raw)
        return option.value if option is not None else None

    # number_range and algorithm components carry their raw value
    return _as_number(raw)


# ----------------------------------------------------------------------
# Range / step resolution
# ----------------------------------------------------------------------

def find_range(ranges: List[NumericRange], total: float) -> Tuple[Optional[NumericRange], bool]:
    """
    First range (by ascending min) containing ``total``, inclusive both ends.

    Returns (range, clamped). Out-of-domain totals resolve to the nearest
    range; inside a gap the closer boundary wins, the lower range on a tie.
    """
    ordered = sorted(ranges, key=lambda r: (r.min, r.max))
    if not ordered:
        return None, True

    for band in ordered:
        if band.contains(total):
            return band, False

    if total < ordered[0].min:
        return ordered[0], True
    if total > ordered[-1].max:
        return ordered[-1], True

    below = [r for r in ordered if r.max < total]
    above = [r for r in ordered if r.min > total]
    if not below or not above:
        # only reachable for a total that compares false with everything (NaN)
        return ordered[0], True
    if total - below[-1].max <= above[0].min - total:
        return below[-1], True
    return above[0], True


def step_holds(step: ProcedureStep, positives: Set[str], total: float) -> bool:
    if step.when_any and not any(c in positives for c in step.when_any):
        return False
    if step.when_all and not all(c in positives for c in step.when_all):
        return False
    if step.when_none and any(c in positives for c in step.when_none):
        return False
    if (step.min is not None or step.max is not None) and not math.isfinite(total):
        return False
    if step.min is not None and total < step.min:
        return False
    if step.max is not None and total > step.max:
        return False
    return True


def _distance_to_bounds(step: ProcedureStep, total: float) -> float:
    if step.min is not None and total < step.min:
        return step.min - total
    if step.max is not None and total > step.max:
        return total - step.max
    return 0.0


def walk_steps(
    steps: List[ProcedureStep], positives: Set[str], total: float
) -> Tuple[Optional[int], bool]:
    """
    Index of the first step that holds.

    When none holds, the total is clamped to the nearest purely bounded step
    (earlier step on a tie), as ``find_range`` does for numeric bands. Without
    such steps, or for a non-finite total, the last step is returned. Either
    way the result is flagged as clamped.
    """
    if not steps:
        return None, True
    for i, step in enumerate(steps):
        if step_holds(step, positives, total):
            return i, False

    bounded = [
        i for i, step in enumerate(steps)
        if not step.referenced_components and not step.is_fallback
    ]
    if bounded and math.isfinite(total):
        nearest = min(bounded, key=lambda i: _distance_to_bounds(steps[i], total))
        return nearest, True
    return len(steps) - 1, True


# ----------------------------------------------------------------------
# Public API
# ----------------------------------------------------------------------

def suggested_treatments(rule: StructuredRule, risk: str) -> List[str]:
    """Ordered recommended actions for a risk label; empty when none are defined."""
    return rule.treatments_for(risk)


def tracking_status(answered: List[str], components: List[Component]) -> TrackingStatus:
    if not components or not answered:
        return TrackingStatus.PENDING
    if len(answered) == len(components):
        return TrackingStatus.COMPLETED
    return TrackingStatus.PARTIAL


def evaluate(
    rule: StructuredRule,
    inputs: Mapping[str, Any],
    auto_populated: Optional[Mapping[str, Any]] = None,
) -> EvaluationResult:
    """
    Score ``rule`` against component inputs keyed by component id.

    ``auto_populated`` carries values extracted upstream (narrative analysis,
    vitals, test results). They fill components the caller left out and count
    as answered; explicit ``inputs`` always win. Missing components report
    their source, so section2 items can be shown as awaiting results.
    """
    method = rule.scoring.method
    contributions: Dict[str, float] = {}
    filled: List[str] = []
    auto_populated = auto_populated or {}

    for component in rule.components:
        if component.id in inputs:
            raw = inputs[component.id]
        elif component.id in auto_populated:
            raw = auto_populated[component.id]
            filled.append(component.id)
        else:
            continue
        value = contribution(component, raw, method)
        if value is None:
            if raw is not None:
                logger.warning(
                    "Ignoring invalid input %r for component '%s' of rule '%s'",
                    raw, component.id, rule.id,
                )
            continue
        contributions[component.id] = value

    unknown = (set(inputs) | set(auto_populated)) - {c.id for c in rule.components}
    if unknown:
        logger.debug("Rule '%s' ignores unknown inputs %s", rule.id, sorted(unknown))

    total = sum(contributions.values())
    answered = [c.id for c in rule.components if c.id in contributions]
    unanswered = [c for c in rule.components if c.id not in contributions]
    missing = [c.id for c in unanswered]

    risk = interpretation = ""
    step_index = None
    if method == ScoringMethod.ALGORITHM:
        positives = {cid for cid, value in contributions.items() if value > 0}
        steps = rule.scoring.steps
        step_index, clamped = walk_steps(steps, positives, total)
        if step_index is not None:
            risk = steps[step_index].risk
            interpretation = steps[step_index].interpretation
    else:
        band, clamped = find_range(rule.scoring.numeric_ranges, total)
        if band is not None:
            risk, interpretation = band.risk, band.interpretation

    if clamped:
        logger.info("Rule '%s': total %s outside defined ranges, clamped to '%s'", rule.id, total, risk)

    return EvaluationResult(
        rule_id=rule.id,
        method=method,
        total=total,
        risk=risk,
        interpretation=interpretation,
        clamped=clamped,
        step_index=step_index,
        treatments=suggested_treatments(rule, risk),
        answered=answered,
        missing=missing,
        status=tracking_status(answered, rule.components),
        auto_populated=[cid for cid in filled if cid in contributions],
        missing_sources={c.id: c.source.value for c in unanswered},
        fill_hints={c.id: c.auto_populate_from for c in unanswered if c.auto_populate_from},
    )
