"""
Validation module for diagram source validation.
"""

from app.validation.diagram_validator import (
    DiagramValidator,
    DiagramValidationResult,
    ValidationIssue,
    ValidationSeverity,
    validate_diagram,
    get_validation_summary,
)

__all__ = [
    "DiagramValidator",
    "DiagramValidationResult",
    "ValidationIssue",
    "ValidationSeverity",
    "validate_diagram",
    "get_validation_summary",
]
