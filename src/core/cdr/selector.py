"""
RuleSelector: ranks catalog rules against a clinical presentation.

Two independent strategies:
  - narrative rules: category trigger keywords activate categories, then each
    rule in an active category is scored by how many of its keywords appear
  - structured rules: chief complaints matched against differential diagnoses,
    names matched against free-text rule mentions
"""

import logging
import re
from functools import lru_cache
from typing import Dict, Iterable, List, Optional, Pattern

from .models import Catalog, NarrativeRule, StructuredRule

logger = logging.getLogger(__name__)


# Level-1 triggers: any hit activates the category
CATEGORY_KEYWORDS: Dict[str, List[str]] = {
    "TRAUMA": [
        "trauma", "fall", "fell", "mvc", "motor vehicle", "accident", "injury", "hit",
        "struck", "collision", "laceration", "fracture", "head injury", "blunt",
        "penetrating", "assault", "gcs", "concussion", "cervical", "c-spine",
        "neck pain", "spine",
    ],
    "CARDIOVASCULAR": [
        "chest pain", "cardiac", "heart", "stemi", "nstemi", "mi", "myocardial",
        "troponin", "ekg", "ecg", "palpitations", "arrhythmia", "afib",
        "atrial fibrillation", "dvt", "deep vein", "aortic", "hypertensive",
        "blood pressure", "bp", "syncope", "angina", "acs", "acute coronary",
    ],
    "PULMONARY": [
        "shortness of breath", "sob", "dyspnea", "pe", "pulmonary embolism",
        "pneumonia", "cough", "wheezing", "asthma", "copd", "respiratory", "oxygen",
        "hypoxia", "pleuritic", "pneumothorax", "hemoptysis", "lung",
    ],
    "NEUROLOGY": [
        "headache", "stroke", "tia", "seizure", "weakness", "numbness",
        "altered mental status", "ams", "confusion", "dizziness", "vertigo",
        "subarachnoid", "sah", "hemorrhage", "meningitis", "facial droop",
        "slurred speech", "aphasia", "neurological", "neuro",
    ],
    "GASTROINTESTINAL": [
        "abdominal pain", "nausea", "vomiting", "diarrhea", "gi bleed", "melena",
        "hematemesis", "appendicitis", "cholecystitis", "pancreatitis", "bowel",
        "rectal", "liver", "hepatic", "gallbladder", "biliary", "gastric",
        "esophageal", "varices",
    ],
    "GENITOURINARY": [
        "flank pain", "hematuria", "dysuria", "urinary", "renal", "kidney", "stone",
        "nephrolithiasis", "uti", "urinalysis", "testicular", "scrotal", "torsion",
        "ovarian", "pelvic", "vaginal bleeding", "ectopic", "pregnancy",
    ],
    "INFECTIOUS DISEASE": [
        "fever", "sepsis", "infection", "abscess", "cellulitis", "meningitis",
        "pneumonia", "uti", "bacteremia", "endocarditis", "osteomyelitis", "sirs",
        "qsofa", "immunocompromised", "hiv", "wound infection",
    ],
    "TOXICOLOGY": [
        "overdose", "ingestion", "poisoning", "toxic", "substance", "alcohol",
        "intoxication", "withdrawal", "acetaminophen", "tylenol", "aspirin",
        "salicylate", "opioid", "benzodiazepine", "drug", "suicide attempt",
        "intentional ingestion",
    ],
    "ENDOCRINE": [
        "diabetes", "diabetic", "dka", "hyperglycemia", "hypoglycemia", "glucose",
        "blood sugar", "thyroid", "thyrotoxicosis", "myxedema", "adrenal", "addison",
        "cushing", "insulin", "a1c", "ketoacidosis",
    ],
    "HEMATOLOGY / COAGULATION": [
        "bleeding", "coagulopathy", "anticoagulant", "warfarin", "inr", "platelet",
        "thrombocytopenia", "anemia", "hemoglobin", "hematocrit", "transfusion",
        "blood loss", "hit", "heparin", "coumadin", "bruising", "petechiae", "dvt",
        "pe", "clot", "embolism", "sickle cell",
    ],
    "PEDIATRIC — Additional": [
        "pediatric", "child", "infant", "neonate", "newborn", "toddler", "adolescent",
        "year old", "yo", "month old", "mo", "baby", "kawasaki", "intussusception",
        "pyloric", "croup", "bronchiolitis", "rsv", "neonatal",
    ],
    "PROCEDURAL / AIRWAY": [
        "intubation", "airway", "rapid sequence", "rsi", "sedation",
        "procedural sedation", "ventilator", "difficult airway", "cricothyrotomy",
        "tracheostomy", "mallampati", "lemon", "tube", "ett",
    ],
    "ENVIRONMENTAL": [
        "heat", "cold", "hypothermia", "hyperthermia", "heat stroke", "frostbite",
        "drowning", "submersion", "altitude", "burn", "lightning", "envenomation",
        "bite", "sting", "snake", "exposure", "environmental",
    ],
    "DISPOSITION / RISK STRATIFICATION": [
        "discharge", "admit", "observation", "transfer", "icu", "risk", "ama",
        "against medical advice", "low risk", "high risk", "chest pain unit",
        "disposition", "safe discharge",
    ],
}

# Keywords this short match whole words only ("mi" must not hit "vomiting")
SHORT_KEYWORD_LENGTH = 2


@lru_cache(maxsize=512)
def _word_pattern(keyword: str) -> Pattern:
    return re.compile(rf"\b{re.escape(keyword)}\b", re.IGNORECASE)


def contains_keyword(text: str, keyword: str) -> bool:
    """``text`` is expected lower-cased."""
    if len(keyword) <= SHORT_KEYWORD_LENGTH:
        return _word_pattern(keyword).search(text) is not None
    return keyword in text


def active_categories(text: str) -> List[str]:
    """Categories whose trigger keywords appear in ``text``, in declaration order."""
    lower = text.lower()
    return [
        category
        for category, keywords in CATEGORY_KEYWORDS.items()
        if any(contains_keyword(lower, kw) for kw in keywords)
    ]


def count_keyword_hits(text: str, rule: NarrativeRule) -> int:
    lower = text.lower()
    return sum(1 for kw in rule.keywords if contains_keyword(lower, kw.lower()))


def select_relevant_rules(text: str, catalog: Catalog) -> List[NarrativeRule]:
    """
    Narrative rules relevant to a presentation, most keyword hits first.

    Only rules in activated categories are scored; rules without a single hit
    are dropped. Ties keep catalog order.
    """
    active = set(active_categories(text))
    if not active:
        return []

    scored = []
    for category in catalog.categories:
        if category.name not in active:
            continue
        for rule in category.rules:
            hits = count_keyword_hits(text, rule)
            if hits > 0:
                scored.append((hits, rule))

    scored.sort(key=lambda pair: pair[0], reverse=True)
    logger.debug(
        "Selected %d rules from %d active categories", len(scored), len(active)
    )
    return [rule for _, rule in scored]


# ----------------------------------------------------------------------
# Structured definitions
# ----------------------------------------------------------------------

def _normalise(text: str) -> str:
    return text.replace("_", " ").strip().lower()


def match_structured_rules(
    diagnoses: Iterable[str],
    definitions: Iterable[StructuredRule],
    cdr_context: Optional[Iterable[str]] = None,
) -> List[StructuredRule]:
    """
    Structured rules applicable to a differential.

    A rule matches when one of its chief complaints and a diagnosis contain
    each other (either direction), or when its name or full name appears in
    one of the ``cdr_context`` strings. Results are unique by id, library order.
    """
    dx_texts = [_normalise(d) for d in diagnoses if d and d.strip()]
    context_texts = [c.lower() for c in (cdr_context or []) if c]
    if not dx_texts and not context_texts:
        return []

    matched: List[StructuredRule] = []
    seen = set()
    for rule in definitions:
        if rule.id in seen:
            continue

        is_match = False
        for complaint in rule.applicable_chief_complaints:
            wanted = _normalise(complaint)
            if any(wanted in dx or dx in wanted for dx in dx_texts):
                is_match = True
                break

        if not is_match and context_texts:
            names = (rule.name.lower(), rule.full_name.lower())
            is_match = any(name in ctx for ctx in context_texts for name in names)

        if is_match:
            seen.add(rule.id)
            matched.append(rule)
    return matched
