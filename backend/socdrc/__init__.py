"""
SoC architecture DRC.

Two passes over a diagram:
1. structural validation + auto-fix   (socdrc.validation)
2. design rule check + report         (socdrc.drc)

Typical use:
    diagram = Diagram.from_json(text)
    fixed, validation, fix = validate_and_fix_diagram(diagram)
    result = run_check(fixed)
"""

from socdrc.ir.diagram import Diagram, Edge, Interface, Node
from socdrc.ir.errors import DiagramFormatError, SocDrcError, StructuralValidationError
from socdrc.validation.diagram_validator import (
    DiagramValidationResult,
    ValidationIssue,
    validate_diagram,
)
from socdrc.validation.diagram_fixer import (
    FixResult,
    apply_auto_fixes,
    auto_fix_diagram,
    validate_and_fix_diagram,
)
from socdrc.drc.options import DRCOptions
from socdrc.drc.report import DRCResult
from socdrc.drc.checker import DRCChecker, run_check

__version__ = "0.1.0"
