"""
RuleCatalog: the process-wide view of all clinical decision rules.

Holds the parsed narrative corpus (for prompt context) and the structured
definitions (for scoring). Construct one at process start and pass it to
consumers; ``get_catalog()`` provides that instance for entry points.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from src.utils.exceptions import CorpusLoadError

from .models import Catalog, Category, NarrativeRule, StructuredRule, slugify
from .parser import CorpusParser
from .validation import check_rule

logger = logging.getLogger(__name__)


class RuleCatalog:
    """
    Lazily parsed, read-only rule catalog.

    ``load()`` parses on first call and caches the result. Two callers racing
    on the first load both parse; the parse is pure, so either result is the
    same and nothing is corrupted.
    """

    def __init__(
        self,
        corpus_path: Optional[Union[str, Path]] = None,
        text: Optional[str] = None,
        definitions: Optional[Iterable[Union[StructuredRule, Dict[str, Any]]]] = None,
        parser: Optional[CorpusParser] = None,
    ):
        if corpus_path is None and text is None:
            raise ValueError("RuleCatalog needs a corpus_path or corpus text")
        self.corpus_path = Path(corpus_path) if corpus_path is not None else None
        self._text = text
        self._parser = parser or CorpusParser()
        self._catalog: Optional[Catalog] = None
        rules = [
            d if isinstance(d, StructuredRule) else rule_from_document(d)
            for d in (definitions or [])
        ]
        self._definitions: Dict[str, StructuredRule] = {r.id: r for r in rules}

    @property
    def is_loaded(self) -> bool:
        return self._catalog is not None

    def load(self) -> Catalog:
        """Parse the corpus once; later calls return the cached catalog."""
        if self._catalog is None:
            catalog = self._parser.parse(self._read_corpus())
            logger.info(
                "RuleCatalog loaded %d rules from %d categories",
                len(catalog),
                len(catalog.categories),
            )
            self._catalog = catalog
        return self._catalog

    def _read_corpus(self) -> str:
        if self._text is not None:
            return self._text
        try:
            return self.corpus_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise CorpusLoadError(
                f"Cannot read CDR corpus at {self.corpus_path}: {e}",
                path=str(self.corpus_path),
            ) from e

    # ------------------------------------------------------------------
    # Narrative rules
    # ------------------------------------------------------------------

    def index(self) -> str:
        """One line per category: '<CATEGORY>: <rule1, rule2, ...>'."""
        return self.load().index()

    @property
    def categories(self) -> List[Category]:
        return list(self.load().categories)

    def rules(self) -> List[NarrativeRule]:
        return self.load().rules

    def get(self, key: str) -> Optional[NarrativeRule]:
        """Narrative rule by id or name."""
        return self.load().get(key)

    # ------------------------------------------------------------------
    # Structured definitions
    # ------------------------------------------------------------------

    def definitions(self) -> List[StructuredRule]:
        return list(self._definitions.values())

    def structured(self, key: str) -> Optional[StructuredRule]:
        """Structured definition by id, or by name when no id matches."""
        if key in self._definitions:
            return self._definitions[key]
        wanted = slugify(key)
        for rule in self._definitions.values():
            if slugify(rule.name) == wanted or rule.id == wanted:
                return rule
        return None


def load_definitions() -> List[StructuredRule]:
    """All shipped structured definitions, in library order."""
    from .data.cardiovascular import CARDIOVASCULAR_RULES
    from .data.trauma import TRAUMA_RULES
    from .data.pulmonary_infectious import PULMONARY_INFECTIOUS_RULES

    return CARDIOVASCULAR_RULES + TRAUMA_RULES + PULMONARY_INFECTIOUS_RULES


def rule_from_document(doc: Dict[str, Any]) -> StructuredRule:
    """
    Build a structured rule from a stored document and check its invariants.

    Raises RuleDefinitionError for a document whose bands or components are
    inconsistent, so a bad document never reaches the evaluator.
    """
    return check_rule(StructuredRule.from_document(doc))


_default_catalog: Optional[RuleCatalog] = None


def get_catalog() -> RuleCatalog:
    """Default catalog built from configuration and the shipped definition library."""
    global _default_catalog
    if _default_catalog is None:
        from src.core.config import config
        _default_catalog = RuleCatalog(
            corpus_path=config.cdr_config['corpus_path'],
            definitions=load_definitions(),
        )
    return _default_catalog
