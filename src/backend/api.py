"""
FastAPI backend for the CDR engine.
Thin HTTP wrapper: catalog index, context assembly, structured definitions, scoring.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.core.cdr.assembler import assemble, format_structured_definitions
from src.core.cdr.catalog import RuleCatalog, get_catalog
from src.core.cdr.scoring import evaluate
from src.core.cdr.selector import match_structured_rules, select_relevant_rules
from src.core.config import config
from src.utils.exceptions import CdrEngineError, CorpusLoadError

logging.basicConfig(
    level=config.logging_config['level'],
    format=config.logging_config['format'],
)
logger = logging.getLogger("cdr_engine")

app = FastAPI(title=config.api_config['title'], version=config.api_config['version'])

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api_config['cors_origins'],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

catalog: Optional[RuleCatalog] = None


def get_rule_catalog() -> RuleCatalog:
    global catalog
    if catalog is None:
        catalog = get_catalog()
    return catalog


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: str
    timestamp: str
    rules_loaded: int


class CategoryEntry(BaseModel):
    name: str
    rules: List[str]


class CatalogResponse(BaseModel):
    index: str
    categories: List[CategoryEntry]


class ContextRequest(BaseModel):
    """Clinical narrative to build a CDR reference block for"""
    narrative: str
    max_chars: Optional[int] = None


class ContextResponse(BaseModel):
    context: str
    selected: List[str]
    chars: int


class MatchRequest(BaseModel):
    """Differential diagnoses (and optional free-text CDR mentions) to match"""
    diagnoses: List[str]
    cdr_context: List[str] = []


class MatchResponse(BaseModel):
    matched: List[str]
    formatted: str


class EvaluateRequest(BaseModel):
    inputs: Dict[str, Any]
    auto_populated: Dict[str, Any] = {}


# ---------------------------------------------------------------------------
# Lifecycle & errors
# ---------------------------------------------------------------------------

@app.on_event("startup")
async def startup_event():
    """Load the catalog once; an unreadable corpus aborts startup"""
    logger.info("Starting CDR Engine API...")
    rule_catalog = get_rule_catalog()
    rule_catalog.load()
    logger.info(
        "CDR Engine API ready: %d narrative rules, %d structured definitions",
        len(rule_catalog.rules()), len(rule_catalog.definitions()),
    )


@app.exception_handler(CdrEngineError)
async def engine_error_handler(request: Request, exc: CdrEngineError):
    status = 503 if isinstance(exc, CorpusLoadError) else 500
    logger.error("%s on %s: %s", exc.code, request.url.path, exc.message)
    return JSONResponse(status_code=status, content=exc.to_dict())


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Health check endpoint"""
    rule_catalog = get_rule_catalog()
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now().isoformat(),
        rules_loaded=len(rule_catalog.rules()) if rule_catalog.is_loaded else 0,
    )


@app.get("/v1/cdr/catalog", response_model=CatalogResponse)
async def get_catalog_index():
    rule_catalog = get_rule_catalog()
    return CatalogResponse(
        index=rule_catalog.index(),
        categories=[
            CategoryEntry(name=c.name, rules=[r.name for r in c.rules])
            for c in rule_catalog.categories
        ],
    )


@app.post("/v1/cdr/context", response_model=ContextResponse)
async def build_context(request: ContextRequest):
    """Rank narrative rules for the presentation and assemble the bounded context block"""
    rule_catalog = get_rule_catalog()
    max_chars = request.max_chars
    if max_chars is None:
        max_chars = config.cdr_config['max_context_chars']
    if max_chars <= 0:
        raise HTTPException(status_code=422, detail="max_chars must be positive")

    selected = select_relevant_rules(request.narrative, rule_catalog.load())
    context = assemble(selected, rule_catalog.index(), max_chars=max_chars)
    logger.info("Context built: %d candidate rules, %d chars", len(selected), len(context))
    return ContextResponse(
        context=context,
        selected=[r.id for r in selected],
        chars=len(context),
    )


@app.get("/v1/cdr/definitions")
async def list_definitions():
    """All structured definitions in document form"""
    return [rule.to_document() for rule in get_rule_catalog().definitions()]


@app.post("/v1/cdr/definitions/match", response_model=MatchResponse)
async def match_definitions(request: MatchRequest):
    matched = match_structured_rules(
        request.diagnoses, get_rule_catalog().definitions(), request.cdr_context
    )
    return MatchResponse(
        matched=[r.id for r in matched],
        formatted=format_structured_definitions(
            matched,
            max_chars=config.cdr_config['structured_max_chars'],
            structured_limit=config.cdr_config['structured_limit'],
        ),
    )


@app.post("/v1/cdr/{rule_id}/evaluate")
async def evaluate_rule(rule_id: str, request: EvaluateRequest):
    """Score one structured rule against component inputs keyed by component id"""
    rule = get_rule_catalog().structured(rule_id)
    if rule is None:
        raise HTTPException(status_code=404, detail=f"Unknown rule: {rule_id}")
    return evaluate(rule, request.inputs, request.auto_populated).to_dict()


if __name__ == "__main__":
    import uvicorn
    logger.info("Starting CDR Engine API Server on http://localhost:8000")
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
