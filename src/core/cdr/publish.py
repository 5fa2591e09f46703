"""
Publish the structured definition library to a document store.

Each rule becomes one document keyed by its id, so re-running the publisher
overwrites in place. An optional embedding of the rule's descriptive text is
attached for semantic search.

Usage (from project root)
-------------------------
    python -m src.core.cdr.publish --out build/cdr_library --skip-embeddings
    CDR_EMBEDDING_URL=https://... python -m src.core.cdr.publish
"""

import argparse
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

import requests
from tqdm import tqdm

from src.core.config import config
from src.utils.exceptions import RuleDefinitionError

from .models import StructuredRule
from .validation import check_rule

logger = logging.getLogger(__name__)

Embedder = Callable[[str], List[float]]


# ---------------------------------------------------------------------------
# Documents
# ---------------------------------------------------------------------------

def build_embedding_text(rule: StructuredRule) -> str:
    """Descriptive text for semantic search: names, application, complaints, keywords."""
    parts = [
        rule.name,
        rule.full_name,
        rule.application,
        " ".join(rule.applicable_chief_complaints),
        " ".join(rule.keywords),
    ]
    return " ".join(p for p in parts if p)


def build_document(rule: StructuredRule, embed: Optional[Embedder] = None) -> Dict[str, Any]:
    doc = rule.to_document()
    if embed is not None:
        doc["embedding"] = list(embed(build_embedding_text(rule)))
    return doc


class JsonDirectorySink:
    """Document sink writing one ``<id>.json`` file per document."""

    def __init__(self, path):
        self.path = Path(path)
        self.path.mkdir(parents=True, exist_ok=True)

    def put(self, doc_id: str, doc: Dict[str, Any]) -> Path:
        target = self.path / f"{doc_id}.json"
        tmp = target.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(doc, f, indent=2, ensure_ascii=False)
        tmp.replace(target)
        return target

    def get(self, doc_id: str) -> Optional[Dict[str, Any]]:
        target = self.path / f"{doc_id}.json"
        if not target.exists():
            return None
        with open(target, "r", encoding="utf-8") as f:
            return json.load(f)

    def ids(self) -> List[str]:
        return sorted(p.stem for p in self.path.glob("*.json"))


# ---------------------------------------------------------------------------
# Embeddings
# ---------------------------------------------------------------------------

class HttpEmbedder:
    """
    Calls a prediction endpoint of the form
    ``{"instances": [{"content": ..., "task_type": ...}]}`` ->
    ``{"predictions": [{"embeddings": {"values": [...]}}]}``.
    """

    def __init__(self, url: str, token: str = "", dimension: int = 768, timeout: int = 30):
        self.url = url
        self.token = token
        self.dimension = dimension
        self.timeout = timeout

    def __call__(self, text: str) -> List[float]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        resp = requests.post(
            self.url,
            json={"instances": [{"content": text, "task_type": "RETRIEVAL_DOCUMENT"}]},
            headers=headers,
            timeout=self.timeout,
        )
        resp.raise_for_status()
        predictions = resp.json().get("predictions") or [{}]
        values = predictions[0].get("embeddings", {}).get("values") or []
        if len(values) != self.dimension:
            raise ValueError(
                f"Unexpected embedding response: got {len(values)} dimensions, "
                f"expected {self.dimension}"
            )
        return values


# ---------------------------------------------------------------------------
# Publishing
# ---------------------------------------------------------------------------

def publish(
    definitions: Iterable[StructuredRule],
    sink,
    embed: Optional[Embedder] = None,
    progress: bool = False,
) -> int:
    """
    Validate and write every definition to ``sink``; returns the count written.

    Invalid definitions are logged and skipped so one bad rule does not block
    the rest of the library.
    """
    rules = list(definitions)
    written = 0
    for rule in tqdm(rules, desc="Publishing", unit="rule", disable=not progress):
        try:
            check_rule(rule)
        except RuleDefinitionError as e:
            logger.error("Skipping invalid rule '%s': %s", rule.id, "; ".join(e.problems))
            continue
        sink.put(rule.id, build_document(rule, embed))
        written += 1
    logger.info("Published %d/%d rule definitions", written, len(rules))
    return written


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def parse_args(argv=None):
    cfg = config.publish_config
    p = argparse.ArgumentParser(description="Publish structured CDR definitions")
    p.add_argument("--out", default=str(cfg["output_dir"]),
                   help="Directory receiving one JSON document per rule")
    p.add_argument("--skip-embeddings", action="store_true",
                   help="Do not attach embedding vectors")
    p.add_argument("--embedding-url", default=cfg["embedding_url"])
    return p.parse_args(argv)


def main(argv=None):
    from .catalog import load_definitions

    logging.basicConfig(
        level=config.logging_config["level"],
        format=config.logging_config["format"],
    )
    args = parse_args(argv)
    cfg = config.publish_config

    embed = None
    if args.embedding_url and not args.skip_embeddings:
        embed = HttpEmbedder(
            args.embedding_url,
            token=cfg["embedding_token"],
            dimension=cfg["embedding_dimension"],
            timeout=cfg["embedding_timeout"],
        )
    elif not args.skip_embeddings and not cfg["skip_embeddings"]:
        logger.warning("No embedding endpoint configured; publishing without embeddings")

    sink = JsonDirectorySink(args.out)
    definitions = load_definitions()
    written = publish(definitions, sink, embed=embed, progress=True)
    print(f"\nWrote {written} documents to {sink.path}")
    return 0 if written == len(definitions) else 1


if __name__ == "__main__":
    raise SystemExit(main())
