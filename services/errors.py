# services/errors.py
"""
Error taxonomy for role comparison.

PreconditionError -> caller handed us something we refuse to analyze
AnalysisError     -> something broke while computing; wraps the cause
"""

from typing import Optional


class ComparisonError(Exception):
    """Base class for every failure surfaced by the comparison engine."""


class PreconditionError(ComparisonError, ValueError):
    """
    Input violates a precondition of the analysis.

    reason is a short machine-readable code, e.g. "too_few_roles",
    "duplicate_permission", "unknown_role".
    """

    def __init__(self, message: str, reason: str = "invalid_input", role_id: Optional[str] = None):
        super().__init__(message)
        self.reason = reason
        self.role_id = role_id


class AnalysisError(ComparisonError):
    """Unexpected failure inside the pipeline. The original exception is kept on .cause."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause
