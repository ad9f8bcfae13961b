"""
Rule Registry - Central store for DRC rule definitions.

Rule ids, names, categories and severities are fixed here; the checker only
decides whether a rule fired.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional


class ViolationSeverity(Enum):
    CRITICAL = "critical"  # Design will not work, DRC fails
    WARNING = "warning"    # Likely mistake, DRC still passes
    INFO = "info"          # Suggestion


class RuleCategory(Enum):
    """Categories of design rules"""
    CONNECTIVITY = "Connectivity"
    AXI4_PARAMETERS = "AXI4 Parameters"
    ADDRESS_SPACE = "Address Space"
    TOPOLOGY = "Topology"
    PERFORMANCE = "Performance"
    NAMING = "Naming"


@dataclass(frozen=True)
class RuleDefinition:
    """A design rule as listed in the catalog"""
    rule_id: str
    name: str
    category: RuleCategory
    severity: ViolationSeverity
    description: str

    def to_dict(self) -> dict:
        return {
            "ruleId": self.rule_id,
            "name": self.name,
            "category": self.category.value,
            "severity": self.severity.value,
            "description": self.description,
        }


class RuleRegistry:
    """
    Registry of design rules, kept in registration order.

    Registration order is the order the checker runs rules in.
    """

    def __init__(self):
        self.rules: Dict[str, RuleDefinition] = {}
        self._category_index: Dict[RuleCategory, List[str]] = {cat: [] for cat in RuleCategory}

    def register(self, rule: RuleDefinition) -> None:
        """Register a rule in the registry"""
        if rule.rule_id in self.rules:
            raise ValueError(f"Rule '{rule.rule_id}' is already registered")
        self.rules[rule.rule_id] = rule
        self._category_index[rule.category].append(rule.rule_id)

    def get(self, rule_id: str) -> Optional[RuleDefinition]:
        """Get a rule by ID"""
        return self.rules.get(rule_id)

    def get_by_category(self, category: RuleCategory) -> List[RuleDefinition]:
        """Get all rules in a category"""
        return [self.rules[rid] for rid in self._category_index.get(category, [])]

    def list_all(self) -> List[RuleDefinition]:
        """List all registered rules"""
        return list(self.rules.values())

    def grouped(self) -> Dict[str, List[dict]]:
        """Rules grouped by category name, for listing endpoints"""
        return {
            category.value: [r.to_dict() for r in self.get_by_category(category)]
            for category in RuleCategory
            if self._category_index[category]
        }


def get_rule_registry() -> RuleRegistry:
    """Build a registry holding the full rule catalog"""
    from socdrc.drc.catalog import register_all_rules

    registry = RuleRegistry()
    register_all_rules(registry)
    return registry
