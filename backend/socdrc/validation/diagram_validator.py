"""
Diagram Validator - Structural checks that must pass before DRC.

Catches issues like:
- Duplicate node IDs (classified so the fixer knows how to repair them)
- Edges pointing at missing nodes or missing interfaces
- Self-loops
- Duplicate or mirrored edges
- Connections drawn slave -> master

Issues reference edges by index into the validated diagram, since edge ids
in saved diagrams are not guaranteed unique.
"""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Tuple

from socdrc.config import DRC_POSITION_EPSILON
from socdrc.ir.diagram import Diagram, Edge, InterfaceDirection, Node
from socdrc.ir.errors import StructuralValidationError

logger = logging.getLogger(__name__)


class IssueType(Enum):
    DUPLICATE_NODE_ID = "duplicate_node_id"
    MISSING_NODE = "missing_node"
    MISSING_INTERFACE = "missing_interface"
    SELF_LOOP = "self_loop"
    DUPLICATE_EDGE = "duplicate_edge"
    REVERSED_CONNECTION = "reversed_connection"


class IssueSeverity(Enum):
    ERROR = "error"      # DRC refuses to run
    WARNING = "warning"  # DRC runs, auto-fix still recommended


class AutoFixAction(Enum):
    REMOVE = "remove"
    REMOVE_DUPLICATE = "remove_duplicate"
    REVERSE = "reverse"
    RENAME = "rename"
    OFFSET_POSITION = "offset_position"


class DuplicateStrategy(Enum):
    DIFFERENT_POSITION = "different_position"
    EXACT_DUPLICATE = "exact_duplicate"
    SAME_POSITION_DIFFERENT_PROPS = "same_position_different_props"


@dataclass
class IssueDetails:
    """Context attached to an issue. Which fields are set depends on the issue type."""
    source: Optional[str] = None
    target: Optional[str] = None
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None
    source_node_name: Optional[str] = None
    target_node_name: Optional[str] = None
    duplicate_strategy: Optional[DuplicateStrategy] = None
    node_indices: List[int] = field(default_factory=list)
    positions: List[Dict[str, float]] = field(default_factory=list)
    properties: List[Dict[str, Any]] = field(default_factory=list)
    reversed_tuple: Optional[bool] = None
    duplicate_of: Optional[int] = None

    def to_dict(self) -> dict:
        data = {
            "source": self.source,
            "target": self.target,
            "sourceHandle": self.source_handle,
            "targetHandle": self.target_handle,
            "sourceNodeName": self.source_node_name,
            "targetNodeName": self.target_node_name,
            "duplicateStrategy": self.duplicate_strategy.value if self.duplicate_strategy else None,
            "nodeIndices": self.node_indices or None,
            "positions": self.positions or None,
            "properties": self.properties or None,
            "reversedTuple": self.reversed_tuple,
            "duplicateOf": self.duplicate_of,
        }
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IssueDetails":
        strategy = data.get("duplicateStrategy")
        return cls(
            source=data.get("source"),
            target=data.get("target"),
            source_handle=data.get("sourceHandle"),
            target_handle=data.get("targetHandle"),
            source_node_name=data.get("sourceNodeName"),
            target_node_name=data.get("targetNodeName"),
            duplicate_strategy=DuplicateStrategy(strategy) if strategy else None,
            node_indices=list(data.get("nodeIndices") or []),
            positions=list(data.get("positions") or []),
            properties=list(data.get("properties") or []),
            reversed_tuple=data.get("reversedTuple"),
            duplicate_of=data.get("duplicateOf"),
        )


@dataclass
class ValidationIssue:
    """A single structural issue found in the diagram"""
    type: IssueType
    severity: IssueSeverity
    description: str
    details: IssueDetails = field(default_factory=IssueDetails)
    auto_fix: Optional[AutoFixAction] = None
    node_id: Optional[str] = None
    edge_index: Optional[int] = None
    edge_id: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "type": self.type.value,
            "severity": self.severity.value,
            "description": self.description,
            "details": self.details.to_dict(),
            "autoFix": self.auto_fix.value if self.auto_fix else None,
            "nodeId": self.node_id,
            "edgeIndex": self.edge_index,
            "edgeId": self.edge_id,
        }
        return {k: v for k, v in data.items() if v is not None}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValidationIssue":
        """Rebuild an issue sent back by a client. Unknown enum values raise ValueError."""
        auto_fix = data.get("autoFix")
        return cls(
            type=IssueType(data["type"]),
            severity=IssueSeverity(data["severity"]),
            description=data.get("description", ""),
            details=IssueDetails.from_dict(data.get("details") or {}),
            auto_fix=AutoFixAction(auto_fix) if auto_fix else None,
            node_id=data.get("nodeId"),
            edge_index=data.get("edgeIndex"),
            edge_id=data.get("edgeId"),
        )


@dataclass
class DiagramValidationResult:
    """Result of structural validation"""
    is_valid: bool
    issues: List[ValidationIssue] = field(default_factory=list)
    stats: Dict[str, int] = field(default_factory=dict)

    @property
    def error_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == IssueSeverity.ERROR)

    @property
    def warning_count(self) -> int:
        return sum(1 for i in self.issues if i.severity == IssueSeverity.WARNING)

    @property
    def errors(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == IssueSeverity.ERROR]

    def to_dict(self) -> dict:
        return {
            "isValid": self.is_valid,
            "errorCount": self.error_count,
            "warningCount": self.warning_count,
            "issues": [i.to_dict() for i in self.issues],
            "stats": self.stats,
        }

    def get_summary(self) -> str:
        """Get human-readable summary"""
        status = "Valid" if self.is_valid else "Invalid"
        return f"{status} | Errors: {self.error_count}, Warnings: {self.warning_count}"


def _edge_details(edge: Edge, source_name: Optional[str] = None, target_name: Optional[str] = None) -> IssueDetails:
    return IssueDetails(
        source=edge.source,
        target=edge.target,
        source_handle=edge.source_handle,
        target_handle=edge.target_handle,
        source_node_name=source_name,
        target_node_name=target_name,
    )


class DiagramValidator:
    """
    Structural validator for SoC diagrams.

    Usage:
        validator = DiagramValidator()
        result = validator.validate(diagram)

        if not result.is_valid:
            for issue in result.issues:
                print(f"[{issue.severity.value}] {issue.description}")
    """

    def __init__(self, position_epsilon: float = DRC_POSITION_EPSILON):
        self.position_epsilon = position_epsilon

    def validate(self, diagram: Diagram) -> DiagramValidationResult:
        """Validate the entire diagram."""
        issues: List[ValidationIssue] = []

        issues.extend(self._check_duplicate_node_ids(diagram))

        dangling_issues, dangling = self._check_dangling_edges(diagram)
        issues.extend(dangling_issues)

        loop_issues, loops = self._check_self_loops(diagram, dangling)
        issues.extend(loop_issues)

        skipped = dangling | loops
        duplicate_issues, duplicates = self._check_duplicate_edges(diagram, skipped)
        issues.extend(duplicate_issues)

        issues.extend(self._check_reversed_connections(diagram, skipped | duplicates))

        stats = self._calculate_stats(diagram, len(dangling))
        result = DiagramValidationResult(
            is_valid=not any(i.severity == IssueSeverity.ERROR for i in issues),
            issues=issues,
            stats=stats,
        )
        logger.debug("[VALIDATOR] %s", result.get_summary())
        return result

    def _check_duplicate_node_ids(self, diagram: Diagram) -> List[ValidationIssue]:
        issues = []
        indices_by_id: Dict[str, List[int]] = defaultdict(list)
        for index, node in enumerate(diagram.nodes):
            indices_by_id[node.id].append(index)

        for node_id, indices in indices_by_id.items():
            if len(indices) < 2:
                continue
            group = [diagram.nodes[i] for i in indices]
            positions = [{"x": n.position.x, "y": n.position.y} for n in group]
            properties = [self._compared_properties(n) for n in group]
            strategy = self._classify_duplicates(group, properties)
            name = group[0].display_name
            count = len(indices)

            if strategy == DuplicateStrategy.DIFFERENT_POSITION:
                auto_fix = AutoFixAction.RENAME
                description = (
                    f"Duplicate node ID '{node_id}' ({name}) appears {count} times at different "
                    f"positions; the copies look like separate components and will get unique IDs"
                )
            elif strategy == DuplicateStrategy.EXACT_DUPLICATE:
                auto_fix = AutoFixAction.REMOVE_DUPLICATE
                description = (
                    f"Duplicate node ID '{node_id}' ({name}) appears {count} times at the same "
                    f"position with identical properties; the extra copies will be removed"
                )
            else:
                auto_fix = AutoFixAction.OFFSET_POSITION
                description = (
                    f"Duplicate node ID '{node_id}' ({name}) appears {count} times at the same "
                    f"position with different properties; the copies will be renamed and moved apart"
                )

            issues.append(ValidationIssue(
                type=IssueType.DUPLICATE_NODE_ID,
                severity=IssueSeverity.ERROR,
                description=description,
                auto_fix=auto_fix,
                node_id=node_id,
                details=IssueDetails(
                    duplicate_strategy=strategy,
                    node_indices=list(indices),
                    positions=positions,
                    properties=properties,
                ),
            ))
        return issues

    @staticmethod
    def _compared_properties(node: Node) -> Dict[str, Any]:
        return {
            "label": node.properties.label,
            "type": node.properties.type,
            "interfaces": len(node.interfaces),
        }

    def _classify_duplicates(self, group: List[Node], properties: List[Dict[str, Any]]) -> DuplicateStrategy:
        first = group[0].position
        for node in group[1:]:
            if (abs(node.position.x - first.x) > self.position_epsilon
                    or abs(node.position.y - first.y) > self.position_epsilon):
                return DuplicateStrategy.DIFFERENT_POSITION
        if all(p == properties[0] for p in properties[1:]):
            return DuplicateStrategy.EXACT_DUPLICATE
        return DuplicateStrategy.SAME_POSITION_DIFFERENT_PROPS

    def _check_dangling_edges(self, diagram: Diagram) -> Tuple[List[ValidationIssue], Set[int]]:
        issues = []
        dangling: Set[int] = set()

        # Duplicated ids contribute the union of their instances' interfaces
        interfaces_by_node: Dict[str, Set[str]] = defaultdict(set)
        names: Dict[str, str] = {}
        for node in diagram.nodes:
            interfaces_by_node[node.id].update(i.id for i in node.interfaces)
            names.setdefault(node.id, node.display_name)

        for index, edge in enumerate(diagram.edges):
            issue = None
            if edge.source not in names:
                issue = (IssueType.MISSING_NODE, f"Source node '{edge.source}' does not exist")
            elif edge.target not in names:
                issue = (IssueType.MISSING_NODE, f"Target node '{edge.target}' does not exist")
            elif edge.source_handle and edge.source_handle not in interfaces_by_node[edge.source]:
                issue = (
                    IssueType.MISSING_INTERFACE,
                    f"Source interface '{edge.source_handle}' does not exist on node '{names[edge.source]}'",
                )
            elif edge.target_handle and edge.target_handle not in interfaces_by_node[edge.target]:
                issue = (
                    IssueType.MISSING_INTERFACE,
                    f"Target interface '{edge.target_handle}' does not exist on node '{names[edge.target]}'",
                )
            if issue is None:
                continue

            issue_type, description = issue
            dangling.add(index)
            issues.append(ValidationIssue(
                type=issue_type,
                severity=IssueSeverity.ERROR,
                description=description,
                auto_fix=AutoFixAction.REMOVE,
                edge_index=index,
                edge_id=edge.id,
                details=_edge_details(edge, names.get(edge.source), names.get(edge.target)),
            ))
        return issues, dangling

    def _check_self_loops(self, diagram: Diagram, skip: Set[int]) -> Tuple[List[ValidationIssue], Set[int]]:
        issues = []
        loops: Set[int] = set()
        for index, edge in enumerate(diagram.edges):
            if index in skip or edge.source != edge.target:
                continue
            if self._owner_instance(diagram, edge.source, edge.source_handle) != self._owner_instance(
                    diagram, edge.target, edge.target_handle):
                # joins two copies of a duplicated id; the rename separates them
                continue
            loops.add(index)
            node = diagram.find_node(edge.source)
            name = node.display_name if node else edge.source
            issues.append(ValidationIssue(
                type=IssueType.SELF_LOOP,
                severity=IssueSeverity.WARNING,
                description=f"Edge connects node '{name}' to itself",
                auto_fix=AutoFixAction.REMOVE,
                node_id=edge.source,
                edge_index=index,
                edge_id=edge.id,
                details=_edge_details(edge, name, name),
            ))
        return issues, loops

    @staticmethod
    def _owner_instance(diagram: Diagram, node_id: str, handle: Optional[str]) -> int:
        """Which copy of a (possibly duplicated) node id an edge end attaches to; the fixer uses the same rule."""
        instances = diagram.instances(node_id)
        if handle:
            for position, node in enumerate(instances):
                if node.has_interface(handle):
                    return position
        return 0

    def _check_duplicate_edges(self, diagram: Diagram, skip: Set[int]) -> Tuple[List[ValidationIssue], Set[int]]:
        issues = []
        duplicates: Set[int] = set()
        kept: Dict[Tuple[Tuple[str, str], ...], int] = {}

        for index, edge in enumerate(diagram.edges):
            if index in skip:
                continue
            key = tuple(sorted([
                (edge.source, edge.source_handle or ""),
                (edge.target, edge.target_handle or ""),
            ]))
            if key not in kept:
                kept[key] = index
                continue

            first = diagram.edges[kept[key]]
            is_reversed = (edge.source, edge.source_handle) != (first.source, first.source_handle)
            duplicates.add(index)
            direction = "reversed duplicate" if is_reversed else "duplicate"
            issues.append(ValidationIssue(
                type=IssueType.DUPLICATE_EDGE,
                severity=IssueSeverity.WARNING,
                description=(
                    f"Edge {edge.source} -> {edge.target} is a {direction} of edge #{kept[key]} "
                    f"({first.source} -> {first.target})"
                ),
                auto_fix=AutoFixAction.REMOVE_DUPLICATE,
                edge_index=index,
                edge_id=edge.id,
                details=IssueDetails(
                    source=edge.source,
                    target=edge.target,
                    source_handle=edge.source_handle,
                    target_handle=edge.target_handle,
                    reversed_tuple=is_reversed,
                    duplicate_of=kept[key],
                ),
            ))
        return issues, duplicates

    def _check_reversed_connections(self, diagram: Diagram, skip: Set[int]) -> List[ValidationIssue]:
        issues = []
        for index, edge in enumerate(diagram.edges):
            if index in skip or not (edge.source_handle and edge.target_handle):
                continue
            source_intf = diagram.resolve_interface(edge.source, edge.source_handle)
            target_intf = diagram.resolve_interface(edge.target, edge.target_handle)
            if source_intf is None or target_intf is None:
                continue
            if (source_intf.direction == InterfaceDirection.SLAVE
                    and target_intf.direction == InterfaceDirection.MASTER):
                source_name = diagram.find_node(edge.source).display_name
                target_name = diagram.find_node(edge.target).display_name
                issues.append(ValidationIssue(
                    type=IssueType.REVERSED_CONNECTION,
                    severity=IssueSeverity.WARNING,
                    description=(
                        f"Connection looks reversed: slave '{source_name}.{source_intf.name}' "
                        f"drives master '{target_name}.{target_intf.name}'"
                    ),
                    auto_fix=AutoFixAction.REVERSE,
                    edge_index=index,
                    edge_id=edge.id,
                    details=_edge_details(edge, source_name, target_name),
                ))
        return issues

    def _calculate_stats(self, diagram: Diagram, dangling_count: int) -> Dict[str, int]:
        id_counts = Counter(n.id for n in diagram.nodes)
        return {
            "nodes": len(diagram.nodes),
            "edges": len(diagram.edges),
            "interfaces": sum(len(n.interfaces) for n in diagram.nodes),
            "duplicate_node_groups": sum(1 for count in id_counts.values() if count > 1),
            "dangling_edges": dangling_count,
        }


def validate_diagram(diagram: Diagram) -> DiagramValidationResult:
    """Convenience function to validate a diagram."""
    return DiagramValidator().validate(diagram)


def get_validation_summary(diagram: Diagram) -> str:
    """Get a quick validation summary string."""
    return validate_diagram(diagram).get_summary()


def raise_on_errors(diagram: Diagram) -> DiagramValidationResult:
    """Validate diagram and raise StructuralValidationError if errors found.

    Warnings do not raise. Returns the validation result otherwise.
    """
    result = validate_diagram(diagram)
    if not result.is_valid:
        raise StructuralValidationError(result.errors)
    return result
