"""Test configuration and fixtures"""

import pytest

from src.core.cdr.catalog import RuleCatalog, load_definitions
from src.core.cdr.parser import parse
from src.core.config import DEFAULT_CORPUS_PATH


SAMPLE_CORPUS = """\
# Clinical Decision Rules

Preamble that is not part of any category.

## Stray Rule Before Categories

**Application:** Should never be parsed.

# TRAUMA

Imaging decisions after injury.

## Canadian C-Spine Rule

**Application:** Determines need for cervical spine imaging in alert trauma patients.

### Step 1
High-risk factors mandate imaging.

## NEXUS Criteria

**Application:** Rules out cervical spine injury.

# NOT A REAL CATEGORY

## Orphan Rule

**Application:** Belongs to an unknown category.

# CARDIOVASCULAR

## HEART Score

**Application:** Risk stratifies chest pain patients for major adverse cardiac events.

## Rule Without Application

Some text but no application line.
"""


@pytest.fixture
def sample_corpus():
    """Small corpus exercising every parser transition"""
    return SAMPLE_CORPUS


@pytest.fixture
def sample_catalog(sample_corpus):
    return parse(sample_corpus)


@pytest.fixture
def definitions():
    """Shipped structured definition library"""
    return load_definitions()


@pytest.fixture
def definitions_by_id(definitions):
    return {d.id: d for d in definitions}


@pytest.fixture
def rule_catalog(definitions):
    """Catalog over the shipped corpus and definitions"""
    return RuleCatalog(corpus_path=DEFAULT_CORPUS_PATH, definitions=definitions)
