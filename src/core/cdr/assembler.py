"""
ContextAssembler: builds the bounded CDR reference block injected into prompts.

The catalog index is always emitted so the model knows the full rule set.
Full definitions of the candidate rules follow, admitted greedily in the
given order while they fit the character budget, then the fixed
integration instructions.
"""

import logging
from typing import List, Sequence

from .models import NarrativeRule, ProcedureStep, StructuredRule

logger = logging.getLogger(__name__)

MAX_CONTEXT_CHARS = 16000  # ~4K tokens
MAX_STRUCTURED_CHARS = 12000
STRUCTURED_LIMIT = 10

HEADER = "CLINICAL DECISION RULES REFERENCE:"
CATALOG_HEADING = "Available CDR Catalog:"
RULES_HEADING = "Applicable Rules for This Encounter:"
FALLBACK = (
    "No specific CDRs matched this presentation. Review the catalog above and "
    "apply any relevant rules based on clinical judgment."
)

INSTRUCTIONS = [
    "CDR INTEGRATION INSTRUCTIONS:",
    "1. For each applicable CDR above, determine if the patient presentation meets "
    "the rule's prerequisites/applicability criteria",
    "2. If applicable: identify which data points are present and which are missing "
    "from the narrative",
    "3. Calculate partial or complete scores where sufficient data exists",
    "4. State the score interpretation and clinical implication",
    "5. Note specifically which data points are missing that would be needed for "
    "complete calculation",
    "6. If a rule's prerequisites are NOT met, briefly state why it does not apply",
]


def build_instructions() -> str:
    return "\n".join(INSTRUCTIONS)


def format_rule_block(rule: NarrativeRule) -> str:
    return f"--- {rule.name} ({rule.category}) ---\n{rule.full_text}\n"


def assemble(
    candidate_rules: Sequence[NarrativeRule],
    catalog_index: str,
    max_chars: int = MAX_CONTEXT_CHARS,
) -> str:
    """
    Assemble the context block for an encounter.

    ``candidate_rules`` must already be ranked; this function never reorders.
    A rule block that does not fit the remaining budget is skipped and later,
    smaller blocks are still tried. Only the instructions can push the output
    past ``max_chars``; they are never truncated.
    """
    if not catalog_index:
        return ""

    parts = [HEADER, "", CATALOG_HEADING, catalog_index, ""]

    with_text = [r for r in candidate_rules if r.full_text and r.full_text.strip()]
    if not with_text:
        parts.append(FALLBACK)
        return "\n".join(parts)

    parts.extend([RULES_HEADING, ""])

    header_text = "\n".join(parts)
    instructions = build_instructions()
    # Newlines joining the trailing parts, plus one per admitted block
    # (charged in ``cost``), count against the budget.
    remaining = max_chars - len(header_text) - len(instructions) - 2

    included: List[str] = []
    skipped = 0
    for rule in with_text:
        block = format_rule_block(rule)
        cost = len(block) + 1
        if cost <= remaining:
            included.append(block)
            remaining -= cost
        else:
            skipped += 1

    if skipped:
        logger.info(
            "Context budget %d chars: included %d rules, skipped %d",
            max_chars, len(included), skipped,
        )

    parts.append("\n".join(included))
    parts.append("")
    parts.append(instructions)
    return "\n".join(parts)


# ----------------------------------------------------------------------
# Structured definitions
# ----------------------------------------------------------------------

def _component_summary(rule: StructuredRule) -> str:
    labels = []
    for c in rule.components:
        if c.options:
            labels.append(f"{c.label}({c.options[0].value}-{c.options[-1].value})")
        else:
            labels.append(c.label)
    return ", ".join(labels)


def _scoring_summary(rule: StructuredRule) -> str:
    bands = []
    for band in rule.scoring.ranges:
        if isinstance(band, ProcedureStep):
            if band.is_fallback:
                bands.append(f"otherwise {band.risk}")
            else:
                clauses = []
                if band.when_any:
                    clauses.append("any of " + "/".join(band.when_any))
                if band.when_all:
                    clauses.append("all of " + "/".join(band.when_all))
                if band.when_none:
                    clauses.append("none of " + "/".join(band.when_none))
                if band.min is not None or band.max is not None:
                    low = "" if band.min is None else band.min
                    high = "" if band.max is None else band.max
                    clauses.append(f"{low}-{high}")
                bands.append(f"{' and '.join(clauses)} {band.risk}")
        else:
            bands.append(f"{band.min}-{band.max} {band.risk}")
    return f"Scoring: {rule.scoring.method.value}. {', '.join(bands)}"


def format_structured_definitions(
    rules: Sequence[StructuredRule],
    max_chars: int = MAX_STRUCTURED_CHARS,
    structured_limit: int = STRUCTURED_LIMIT,
) -> str:
    """
    Two-tier summary of matched structured rules.

    Tier 1 is an ``id|name|category`` index of every match; tier 2 gives the
    application, components, scoring bands and required tests of the first
    ``structured_limit`` rules. Output is cut at ``max_chars``.
    """
    if not rules:
        return ""

    index_line = ", ".join(
        f"{r.id}|{r.name}|{r.category or 'GENERAL'}" for r in rules
    )
    sections = ["Matched CDR Index:", index_line, "", "Applicable Rule Definitions:"]

    for rule in rules[:structured_limit]:
        lines = [f"--- {rule.name} ({rule.category or 'GENERAL'}) ---"]
        if rule.application:
            lines.append(f"Application: {rule.application}")
        if rule.components:
            lines.append(f"Components: {_component_summary(rule)}")
        lines.append(_scoring_summary(rule))
        if rule.required_tests:
            lines.append(f"Required tests: {', '.join(rule.required_tests)}")
        sections.append("\n".join(lines))
        sections.append("")

    output = "\n".join(sections)
    if len(output) > max_chars:
        output = output[:max_chars]
    return output.strip()
