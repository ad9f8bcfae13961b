"""
Design Rule Check engine for SoC diagrams.

Provides:
- the fixed rule catalog (CONN / AXI / ADDR / TOPO / PERF / NAME)
- the checker that evaluates it
- the aggregated, persistable result
"""

from socdrc.drc.registry import (
    RuleCategory,
    RuleDefinition,
    RuleRegistry,
    ViolationSeverity,
    get_rule_registry,
)
from socdrc.drc.catalog import RULE_CATALOG, register_all_rules
from socdrc.drc.violations import DRCViolation, ViolationDetails
from socdrc.drc.options import DRCOptions
from socdrc.drc.report import DRCResult, DRCSummary, aggregate
from socdrc.drc.checker import DRCChecker, RuleRun, run_check

__all__ = [
    "RuleCategory",
    "RuleDefinition",
    "RuleRegistry",
    "ViolationSeverity",
    "get_rule_registry",
    "RULE_CATALOG",
    "register_all_rules",
    "DRCViolation",
    "ViolationDetails",
    "DRCOptions",
    "DRCResult",
    "DRCSummary",
    "aggregate",
    "DRCChecker",
    "RuleRun",
    "run_check",
]
