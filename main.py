"""
Main application entry point
Demonstrates how to use the CDR engine
"""

import logging

from src.core.cdr.assembler import assemble, format_structured_definitions
from src.core.cdr.catalog import get_catalog
from src.core.cdr.scoring import evaluate
from src.core.cdr.selector import match_structured_rules, select_relevant_rules
from src.core.config import config


SAMPLE_NARRATIVE = (
    "58 year old male with substernal chest pain radiating to the left arm for 2 hours, "
    "diaphoretic. History of hypertension and diabetes. ECG shows non-specific "
    "repolarization changes, initial troponin within normal limits."
)

SAMPLE_HEART_INPUTS = {
    "history": "Moderately suspicious",
    "ecg": "Non-specific repolarization abnormality",
    "age": "45-64",
    "risk_factors": "1-2 risk factors",
    "troponin": 0,
}


def main():
    """Main application workflow"""
    logging.basicConfig(
        level=config.logging_config['level'],
        format=config.logging_config['format'],
    )

    print("="*60)
    print("CDR Engine - Clinical Decision Rule Context Assembly")
    print("Loading catalog...")
    print("="*60)

    catalog = get_catalog()
    parsed = catalog.load()
    print(f"\n{len(parsed)} rules in {len(parsed.categories)} categories, "
          f"{len(catalog.definitions())} structured definitions")

    # 1. Rank narrative rules for the presentation
    print("\n[1/3] Selecting rules for sample narrative...")
    selected = select_relevant_rules(SAMPLE_NARRATIVE, parsed)
    for rule in selected:
        print(f"   • {rule.name} ({rule.category})")

    # 2. Assemble the bounded context block
    print("\n[2/3] Assembling context block...")
    context = assemble(selected, catalog.index(), max_chars=config.cdr_config['max_context_chars'])
    print(f"   ✓ {len(context)} chars (budget {config.cdr_config['max_context_chars']})")
    print("\n" + "-"*60)
    print(context)
    print("-"*60)

    # 3. Score a structured rule
    print("\n[3/3] Scoring HEART...")
    heart = catalog.structured("heart")
    result = evaluate(heart, SAMPLE_HEART_INPUTS)
    print(f"   ✓ Total {result.total:g}: {result.risk}. {result.interpretation}")
    if result.treatments:
        print(f"   Suggested: {', '.join(result.treatments)}")

    matched = match_structured_rules(["chest pain", "pulmonary embolism"], catalog.definitions())
    print("\n" + "="*60)
    print("STRUCTURED DEFINITIONS FOR DIFFERENTIAL")
    print("="*60)
    print(format_structured_definitions(matched))

    print("\n✓ Done!")


if __name__ == "__main__":
    main()
