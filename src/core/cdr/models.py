"""Data models for the clinical decision rule catalog and scoring."""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Union


class ComponentType(Enum):
    SELECT = "select"
    BOOLEAN = "boolean"
    NUMBER_RANGE = "number_range"
    ALGORITHM = "algorithm"


class ComponentSource(Enum):
    SECTION1 = "section1"      # history / exam, available at first contact
    SECTION2 = "section2"      # needs lab or imaging results
    USER_INPUT = "user_input"


class ScoringMethod(Enum):
    SUM = "sum"
    THRESHOLD = "threshold"
    ALGORITHM = "algorithm"


class TrackingStatus(Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    COMPLETED = "completed"


def slugify(name: str) -> str:
    """Lower-case identifier derived from a rule name ('HEART Score' -> 'heart_score')."""
    return re.sub(r"[^a-z0-9]+", "_", name.lower()).strip("_")


# ----------------------------------------------------------------------
# Narrative form (corpus parser output)
# ----------------------------------------------------------------------

@dataclass
class NarrativeRule:
    """A rule block as written in the corpus, kept verbatim for prompt context."""
    name: str
    category: str
    full_text: str
    keywords: Set[str] = field(default_factory=set)

    @property
    def id(self) -> str:
        return slugify(self.name)


@dataclass
class Category:
    name: str
    rules: List[NarrativeRule] = field(default_factory=list)
    full_text: str = ""


@dataclass
class Catalog:
    """Parsed corpus: categories in document order plus an id/name reverse index."""
    categories: List[Category] = field(default_factory=list)

    def __post_init__(self):
        self._by_key: Dict[str, NarrativeRule] = {}
        for category in self.categories:
            for rule in category.rules:
                self._by_key.setdefault(rule.id, rule)
                self._by_key.setdefault(rule.name.lower(), rule)

    @property
    def rules(self) -> List[NarrativeRule]:
        return [r for c in self.categories for r in c.rules]

    @property
    def category_names(self) -> List[str]:
        return [c.name for c in self.categories]

    def category(self, name: str) -> Optional[Category]:
        for c in self.categories:
            if c.name == name:
                return c
        return None

    def get(self, key: str) -> Optional[NarrativeRule]:
        """Look up a rule by id ('heart_score') or name ('HEART Score'), case-insensitive."""
        lowered = key.strip().lower()
        return self._by_key.get(lowered) or self._by_key.get(slugify(lowered))

    def index(self) -> str:
        """Compact one-line-per-category summary: 'CATEGORY: rule1, rule2'."""
        return "\n".join(
            f"{c.name}: {', '.join(r.name for r in c.rules)}" for c in self.categories
        )

    def __len__(self) -> int:
        return sum(len(c.rules) for c in self.categories)


# ----------------------------------------------------------------------
# Structured form (authored definitions, used for scoring)
# ----------------------------------------------------------------------

@dataclass
class ComponentOption:
    label: str
    value: float


@dataclass
class Component:
    """One scored input criterion of a rule."""
    id: str
    label: str
    type: ComponentType
    source: ComponentSource = ComponentSource.SECTION1
    options: List[ComponentOption] = field(default_factory=list)
    min: Optional[float] = None
    max: Optional[float] = None
    value: Optional[float] = None  # point weight when a boolean is true
    auto_populate_from: Optional[str] = None

    @property
    def weight(self) -> float:
        return 1 if self.value is None else self.value

    def option_for(self, choice: Any) -> Optional[ComponentOption]:
        """Resolve a select input given either the option label or its value."""
        if isinstance(choice, str):
            wanted = choice.strip().lower()
            for option in self.options:
                if option.label.lower() == wanted:
                    return option
            return None
        if isinstance(choice, bool):
            return None
        for option in self.options:
            if option.value == choice:
                return option
        return None


@dataclass
class NumericRange:
    """Interpretation band over the total score, inclusive on both ends."""
    min: float
    max: float
    risk: str
    interpretation: str

    def contains(self, score: float) -> bool:
        return self.min <= score <= self.max


@dataclass
class ProcedureStep:
    """
    One step of a sequential decision procedure (algorithm-method rules).

    A step holds when every clause it declares holds; a step without clauses
    is the "otherwise" step. Steps are preconditions, not a partition.
    """
    risk: str
    interpretation: str
    when_any: List[str] = field(default_factory=list)
    when_all: List[str] = field(default_factory=list)
    when_none: List[str] = field(default_factory=list)
    min: Optional[float] = None
    max: Optional[float] = None

    @property
    def is_fallback(self) -> bool:
        return not (
            self.when_any or self.when_all or self.when_none
            or self.min is not None or self.max is not None
        )

    @property
    def referenced_components(self) -> Set[str]:
        return set(self.when_any) | set(self.when_all) | set(self.when_none)


Band = Union[NumericRange, ProcedureStep]


@dataclass
class Scoring:
    method: ScoringMethod
    ranges: List[Band] = field(default_factory=list)

    @property
    def numeric_ranges(self) -> List[NumericRange]:
        """Numeric bands sorted by ascending lower bound."""
        numeric = [r for r in self.ranges if isinstance(r, NumericRange)]
        return sorted(numeric, key=lambda r: (r.min, r.max))

    @property
    def steps(self) -> List[ProcedureStep]:
        return [r for r in self.ranges if isinstance(r, ProcedureStep)]


@dataclass
class StructuredRule:
    """A machine-evaluable clinical decision rule."""
    id: str
    name: str
    full_name: str
    category: str
    application: str
    components: List[Component]
    scoring: Scoring
    applicable_chief_complaints: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    required_tests: List[str] = field(default_factory=list)
    suggested_treatments: Dict[str, List[str]] = field(default_factory=dict)

    def component(self, component_id: str) -> Optional[Component]:
        for c in self.components:
            if c.id == component_id:
                return c
        return None

    def treatments_for(self, risk: str) -> List[str]:
        return list(self.suggested_treatments.get(risk, []))

    # ------------------------------------------------------------------
    # Document-store mapping
    # ------------------------------------------------------------------

    def to_document(self) -> Dict[str, Any]:
        """Serialise to the camelCase document shape stored per rule id."""
        doc: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "fullName": self.full_name,
            "category": self.category,
            "application": self.application,
            "applicableChiefComplaints": list(self.applicable_chief_complaints),
            "keywords": list(self.keywords),
            "components": [_component_to_doc(c) for c in self.components],
            "scoring": {
                "method": self.scoring.method.value,
                "ranges": [_band_to_doc(r) for r in self.scoring.ranges],
            },
        }
        if self.required_tests:
            doc["requiredTests"] = list(self.required_tests)
        if self.suggested_treatments:
            doc["suggestedTreatments"] = {
                risk: list(actions) for risk, actions in self.suggested_treatments.items()
            }
        return doc

    @classmethod
    def from_document(cls, doc: Dict[str, Any]) -> "StructuredRule":
        """Build a rule from a stored document; unknown keys (e.g. ``embedding``) are ignored."""
        method = ScoringMethod(doc["scoring"]["method"])
        if method == ScoringMethod.ALGORITHM:
            ranges: List[Band] = [_step_from_doc(r) for r in doc["scoring"]["ranges"]]
        else:
            ranges = [
                NumericRange(r["min"], r["max"], r["risk"], r["interpretation"])
                for r in doc["scoring"]["ranges"]
            ]
        return cls(
            id=doc["id"],
            name=doc["name"],
            full_name=doc.get("fullName", doc["name"]),
            category=doc.get("category", ""),
            application=doc.get("application", ""),
            components=[_component_from_doc(c) for c in doc.get("components", [])],
            scoring=Scoring(method=method, ranges=ranges),
            applicable_chief_complaints=list(doc.get("applicableChiefComplaints", [])),
            keywords=list(doc.get("keywords", [])),
            required_tests=list(doc.get("requiredTests", [])),
            suggested_treatments={
                risk: list(actions)
                for risk, actions in (doc.get("suggestedTreatments") or {}).items()
            },
        )


@dataclass
class EvaluationResult:
    """Outcome of scoring one rule against a set of component inputs."""
    rule_id: str
    method: ScoringMethod
    total: float
    risk: str
    interpretation: str
    clamped: bool = False
    step_index: Optional[int] = None
    treatments: List[str] = field(default_factory=list)
    answered: List[str] = field(default_factory=list)
    missing: List[str] = field(default_factory=list)
    status: TrackingStatus = TrackingStatus.PENDING
    auto_populated: List[str] = field(default_factory=list)
    missing_sources: Dict[str, str] = field(default_factory=dict)  # id -> section1/section2/user_input
    fill_hints: Dict[str, str] = field(default_factory=dict)       # id -> autoPopulateFrom

    @property
    def awaiting_results(self) -> List[str]:
        """Missing components that need lab or imaging results."""
        return [
            cid for cid, source in self.missing_sources.items()
            if source == ComponentSource.SECTION2.value
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rule_id": self.rule_id,
            "method": self.method.value,
            "total": self.total,
            "risk": self.risk,
            "interpretation": self.interpretation,
            "clamped": self.clamped,
            "step_index": self.step_index,
            "treatments": list(self.treatments),
            "answered": list(self.answered),
            "missing": list(self.missing),
            "status": self.status.value,
            "auto_populated": list(self.auto_populated),
            "missing_sources": dict(self.missing_sources),
            "fill_hints": dict(self.fill_hints),
            "awaiting_results": self.awaiting_results,
        }


# ----------------------------------------------------------------------
# Document helpers
# ----------------------------------------------------------------------

def _component_to_doc(c: Component) -> Dict[str, Any]:
    doc: Dict[str, Any] = {
        "id": c.id,
        "label": c.label,
        "type": c.type.value,
        "source": c.source.value,
    }
    if c.options:
        doc["options"] = [{"label": o.label, "value": o.value} for o in c.options]
    if c.min is not None:
        doc["min"] = c.min
    if c.max is not None:
        doc["max"] = c.max
    if c.value is not None:
        doc["value"] = c.value
    if c.auto_populate_from:
        doc["autoPopulateFrom"] = c.auto_populate_from
    return doc


def _component_from_doc(doc: Dict[str, Any]) -> Component:
    return Component(
        id=doc["id"],
        label=doc.get("label", doc["id"]),
        type=ComponentType(doc["type"]),
        source=ComponentSource(doc.get("source", ComponentSource.SECTION1.value)),
        options=[ComponentOption(o["label"], o["value"]) for o in doc.get("options", [])],
        min=doc.get("min"),
        max=doc.get("max"),
        value=doc.get("value"),
        auto_populate_from=doc.get("autoPopulateFrom"),
    )


def _band_to_doc(band: Band) -> Dict[str, Any]:
    if isinstance(band, NumericRange):
        return {
            "min": band.min,
            "max": band.max,
            "risk": band.risk,
            "interpretation": band.interpretation,
        }
    doc: Dict[str, Any] = {"risk": band.risk, "interpretation": band.interpretation}
    if band.min is not None:
        doc["min"] = band.min
    if band.max is not None:
        doc["max"] = band.max
    if band.when_any:
        doc["whenAny"] = list(band.when_any)
    if band.when_all:
        doc["whenAll"] = list(band.when_all)
    if band.when_none:
        doc["whenNone"] = list(band.when_none)
    return doc


def _step_from_doc(doc: Dict[str, Any]) -> ProcedureStep:
    # Legacy documents describe steps as {min, max, risk, interpretation};
    # those bounds become a clause on the total.
    return ProcedureStep(
        risk=doc["risk"],
        interpretation=doc["interpretation"],
        when_any=list(doc.get("whenAny", [])),
        when_all=list(doc.get("whenAll", [])),
        when_none=list(doc.get("whenNone", [])),
        min=doc.get("min"),
        max=doc.get("max"),
    )
