"""
Structural validation and auto-fix for SoC diagrams.
"""

from socdrc.validation.diagram_validator import (
    AutoFixAction,
    DiagramValidationResult,
    DiagramValidator,
    DuplicateStrategy,
    IssueDetails,
    IssueSeverity,
    IssueType,
    ValidationIssue,
    get_validation_summary,
    raise_on_errors,
    validate_diagram,
)

from socdrc.validation.diagram_fixer import (
    DiagramAutoFixer,
    DiagramReconciler,
    FixResult,
    apply_auto_fixes,
    auto_fix_diagram,
    validate_and_fix_diagram,
)
