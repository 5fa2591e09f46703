"""
Exception types for the CDR engine.

Only two failures are allowed to escape the engine: an unreadable corpus
(fatal, there is nothing to serve) and an authored rule that breaks the
scoring data contract.
"""

from typing import Any, Dict, Optional


class CdrEngineError(Exception):
    """Base exception for all CDR engine errors."""

    def __init__(
        self,
        message: str,
        code: str = "CDR_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class CorpusLoadError(CdrEngineError):
    """The corpus file is missing or unreadable."""

    def __init__(self, message: str, path: str = "", details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            code="CORPUS_LOAD_ERROR",
            details={"path": path, **(details or {})},
        )
        self.path = path


class RuleDefinitionError(CdrEngineError):
    """A structured rule definition violates the scoring data contract."""

    def __init__(self, message: str, rule_id: str = "unknown", problems=None):
        problems = list(problems or [])
        super().__init__(
            message=message,
            code="RULE_DEFINITION_ERROR",
            details={"rule_id": rule_id, "problems": problems},
        )
        self.rule_id = rule_id
        self.problems = problems
