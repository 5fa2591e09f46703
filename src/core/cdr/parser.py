"""
CorpusParser: turns the markdown rule corpus into a typed Catalog.

The corpus uses three header levels: a document title, ``# CATEGORY`` headers
(only a fixed set of names is accepted) and ``## Rule Name`` headers. Parsing
is best effort: anything that does not match the expected shape is dropped,
never raised.
"""

import logging
import re
from enum import Enum
from typing import FrozenSet, Iterable, List, Optional, Set

from .models import Catalog, Category, NarrativeRule

logger = logging.getLogger(__name__)


CATEGORY_NAMES: FrozenSet[str] = frozenset({
    "TRAUMA",
    "CARDIOVASCULAR",
    "PULMONARY",
    "NEUROLOGY",
    "GASTROINTESTINAL",
    "GENITOURINARY",
    "INFECTIOUS DISEASE",
    "TOXICOLOGY",
    "ENDOCRINE",
    "HEMATOLOGY / COAGULATION",
    "PEDIATRIC — Additional",
    "PROCEDURAL / AIRWAY",
    "ENVIRONMENTAL",
    "DISPOSITION / RISK STRATIFICATION",
})

STOP_WORDS: FrozenSet[str] = frozenset({
    "the", "for", "in", "of", "to", "a", "an", "and", "or", "is", "are",
    "was", "were", "be", "been", "being", "has", "have", "had", "do", "does",
    "did", "will", "would", "could", "should", "may", "might", "shall", "can",
    "with", "at", "by", "from", "on", "as", "it", "its", "this", "that",
    "these", "those", "not", "no", "but", "if", "then", "than", "so", "all",
    "each", "every", "any", "both", "who", "whom", "which", "what", "when",
    "where", "how", "whether", "after", "before", "during", "about", "into",
    "through", "between", "above", "below", "up", "down", "out", "off",
    "over", "under", "again", "further", "other", "some", "such", "only",
    "same", "also", "very", "just", "more", "most", "own", "here", "there",
})

# Single '#' followed by a space, never '##'
_CATEGORY_HEADER = re.compile(r"^# (?!#)(.*)$")
_RULE_HEADER = re.compile(r"^## (.*)$")
_APPLICATION = re.compile(r"\*\*Application:\*\*[ \t]*(.+)")
_NON_KEYWORD_CHARS = re.compile(r"[^a-zA-Z0-9\s/-]")


class ParserState(Enum):
    OUTSIDE_CATEGORY = "outside_category"
    IN_CATEGORY = "in_category"
    IN_RULE = "in_rule"


# ----------------------------------------------------------------------
# Keyword extraction
# ----------------------------------------------------------------------

def tokenize(text: str, min_length: int, stop_words: FrozenSet[str] = STOP_WORDS) -> Set[str]:
    """Lower-cased tokens longer than ``min_length`` that are not stop words."""
    cleaned = _NON_KEYWORD_CHARS.sub(" ", text)
    tokens = set()
    for word in cleaned.split():
        word = word.lower()
        if len(word) > min_length and word not in stop_words:
            tokens.add(word)
    return tokens


def extract_keywords(application: str, rule_name: str) -> Set[str]:
    """Keywords from the Application sentence (len > 2) and the rule name (len > 1)."""
    return tokenize(application, 2) | tokenize(rule_name, 1)


def extract_application(rule_text: str) -> str:
    match = _APPLICATION.search(rule_text)
    return match.group(1).strip() if match else ""


# ----------------------------------------------------------------------
# Parser
# ----------------------------------------------------------------------

class CorpusParser:
    """
    Line-oriented state machine over the corpus.

    Transitions:
      any state        --'# KNOWN'-->   IN_CATEGORY
      any state        --'# unknown'--> OUTSIDE_CATEGORY (lines dropped until next '# ')
      IN_CATEGORY/RULE --'## Name'-->   IN_RULE
    """

    def __init__(self, category_names: Optional[Iterable[str]] = None):
        self.category_names = frozenset(category_names or CATEGORY_NAMES)
        self._state = ParserState.OUTSIDE_CATEGORY

    def parse(self, raw_text: str) -> Catalog:
        self._state = ParserState.OUTSIDE_CATEGORY
        self._categories: List[Category] = []
        self._category: Optional[Category] = None
        self._category_lines: List[str] = []
        self._rule_name: Optional[str] = None
        self._rule_lines: List[str] = []

        for line in raw_text.splitlines():
            self._feed(line)
        self._close_category()

        catalog = Catalog(self._categories)
        logger.debug(
            "Parsed %d rules in %d categories", len(catalog), len(catalog.categories)
        )
        return catalog

    @property
    def state(self) -> ParserState:
        return self._state

    def _feed(self, line: str) -> None:
        header = _CATEGORY_HEADER.match(line)
        if header:
            self._close_category()
            name = header.group(1).strip()
            if name in self.category_names:
                self._open_category(name, line)
            else:
                logger.debug("Dropping unrecognised category header: %r", name)
                self._state = ParserState.OUTSIDE_CATEGORY
            return

        if self._state is ParserState.OUTSIDE_CATEGORY:
            return

        self._category_lines.append(line)
        rule_header = _RULE_HEADER.match(line)
        if rule_header:
            self._close_rule()
            self._rule_name = rule_header.group(1).strip()
            self._rule_lines = [line]
            self._state = ParserState.IN_RULE
        elif self._state is ParserState.IN_RULE:
            self._rule_lines.append(line)

    def _open_category(self, name: str, header_line: str) -> None:
        # A repeated category header continues the existing category
        existing = next((c for c in self._categories if c.name == name), None)
        if existing is None:
            existing = Category(name=name)
            self._categories.append(existing)
        self._category = existing
        self._category_lines = [header_line]
        self._state = ParserState.IN_CATEGORY

    def _close_rule(self) -> None:
        if self._rule_name is None or self._category is None:
            return
        full_text = "\n".join(self._rule_lines).strip()
        application = extract_application(full_text)
        self._category.rules.append(
            NarrativeRule(
                name=self._rule_name,
                category=self._category.name,
                full_text=full_text,
                keywords=extract_keywords(application, self._rule_name),
            )
        )
        self._rule_name = None
        self._rule_lines = []

    def _close_category(self) -> None:
        self._close_rule()
        if self._category is not None:
            block = "\n".join(self._category_lines).strip()
            if self._category.full_text:
                self._category.full_text += "\n\n" + block
            else:
                self._category.full_text = block
        self._category = None
        self._category_lines = []
        self._state = ParserState.OUTSIDE_CATEGORY


def parse(raw_text: str) -> Catalog:
    """Parse corpus text with the default category set."""
    return CorpusParser().parse(raw_text)
