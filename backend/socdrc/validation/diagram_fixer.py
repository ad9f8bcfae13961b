"""
Diagram Auto-Fixer - Applies the repairs suggested by the structural validator.

Every issue carries an auto-fix action; the reconciler applies them as one
pure transformation and returns a new diagram:

- remove            -> drop the edge
- remove_duplicate  -> drop the edge, or drop the extra copies of an exact duplicate node
- reverse           -> swap the edge endpoints
- rename            -> give duplicate copies unique ids
- offset_position   -> rename and move overlapping copies apart
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Set, Tuple

from socdrc.ir.diagram import Diagram, Edge, Node, Position
from socdrc.validation.diagram_validator import (
    AutoFixAction,
    DiagramValidationResult,
    DiagramValidator,
    IssueSeverity,
    IssueType,
    ValidationIssue,
)

logger = logging.getLogger(__name__)

# Canvas units each renamed overlapping copy is moved by, per copy index
OFFSET_STEP = 50


@dataclass
class FixResult:
    """Result of a fix operation"""
    success: bool
    fix_type: str  # "auto" | "none"
    issues_fixed: List[str] = field(default_factory=list)
    issues_remaining: List[str] = field(default_factory=list)
    changes_made: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "fixType": self.fix_type,
            "issuesFixed": self.issues_fixed,
            "issuesRemaining": self.issues_remaining,
            "changesMade": self.changes_made,
        }


@dataclass
class _NodeGroupFix:
    node_id: str
    indices: List[int]
    renames: Dict[int, str] = field(default_factory=dict)
    removed: Set[int] = field(default_factory=set)


class DiagramReconciler:
    """
    Applies a list of validation issues to a diagram.

    The input diagram is never modified. Issues must come from validating
    that same diagram: an index that is out of range or points at a different
    node or edge raises ValueError.
    """

    def __init__(self, diagram: Diagram):
        self.diagram = diagram
        self.changes: List[str] = []

    def apply(self, issues: Sequence[ValidationIssue]) -> Diagram:
        groups: Dict[str, _NodeGroupFix] = {}
        offsets: Dict[int, float] = {}
        edges_to_remove: Set[int] = set()
        edges_to_reverse: Set[int] = set()
        taken = {n.id for n in self.diagram.nodes}

        for issue in issues:
            action = issue.auto_fix
            if action is None:
                continue
            if action == AutoFixAction.REMOVE:
                edges_to_remove.add(self._edge_index(issue))
            elif action == AutoFixAction.REMOVE_DUPLICATE:
                if issue.type == IssueType.DUPLICATE_NODE_ID:
                    self._plan_group(issue, groups, taken, remove=True)
                else:
                    edges_to_remove.add(self._edge_index(issue))
            elif action == AutoFixAction.REVERSE:
                edges_to_reverse.add(self._edge_index(issue))
            elif action == AutoFixAction.RENAME:
                self._plan_group(issue, groups, taken)
            elif action == AutoFixAction.OFFSET_POSITION:
                group = self._plan_group(issue, groups, taken)
                if group is not None:
                    for copy_index, node_index in enumerate(group.indices[1:], start=1):
                        offsets[node_index] = OFFSET_STEP * copy_index
            else:
                raise ValueError(f"Unsupported auto-fix action: {action}")

        nodes = self._rewrite_nodes(groups, offsets)
        edges = self._rewrite_edges(groups, edges_to_remove, edges_to_reverse)
        if not self.changes:
            return self.diagram
        return self.diagram.model_copy(update={"nodes": nodes, "edges": edges})

    def _edge_index(self, issue: ValidationIssue) -> int:
        index = issue.edge_index
        if index is None or not 0 <= index < len(self.diagram.edges):
            raise ValueError(
                f"Issue '{issue.type.value}' references edge index {index}, "
                f"diagram has {len(self.diagram.edges)} edges"
            )
        edge = self.diagram.edges[index]
        if issue.edge_id is not None and edge.id != issue.edge_id:
            raise ValueError(
                f"Issue '{issue.type.value}' is stale: edge #{index} is '{edge.id}', expected '{issue.edge_id}'"
            )
        return index

    def _plan_group(
        self,
        issue: ValidationIssue,
        groups: Dict[str, _NodeGroupFix],
        taken: Set[str],
        remove: bool = False,
    ) -> Optional[_NodeGroupFix]:
        node_id = issue.node_id
        indices = issue.details.node_indices
        if not node_id or len(indices) < 2:
            raise ValueError(f"Duplicate node issue for '{node_id}' carries no node indices")
        for index in indices:
            if not 0 <= index < len(self.diagram.nodes) or self.diagram.nodes[index].id != node_id:
                raise ValueError(f"Issue for duplicate node '{node_id}' is stale: node #{index} does not match")
        if node_id in groups:
            return None

        group = _NodeGroupFix(node_id=node_id, indices=list(indices))
        for copy_index, node_index in enumerate(indices[1:], start=1):
            if remove:
                group.removed.add(node_index)
                continue
            suffix = copy_index
            new_id = f"{node_id}-{suffix}"
            while new_id in taken:
                suffix += 1
                new_id = f"{node_id}-{suffix}"
            taken.add(new_id)
            group.renames[node_index] = new_id
        groups[node_id] = group
        return group

    def _rewrite_nodes(self, groups: Dict[str, _NodeGroupFix], offsets: Dict[int, float]) -> List[Node]:
        removed = set().union(*(g.removed for g in groups.values())) if groups else set()
        renames = {i: new_id for g in groups.values() for i, new_id in g.renames.items()}

        nodes = []
        for index, node in enumerate(self.diagram.nodes):
            if index in removed:
                self.changes.append(f"Removed exact duplicate of node '{node.id}' (#{index})")
                continue
            update = {}
            if index in renames:
                update["id"] = renames[index]
                self.changes.append(f"Renamed duplicate node '{node.id}' (#{index}) -> '{renames[index]}'")
            if index in offsets:
                delta = offsets[index]
                update["position"] = Position(x=node.position.x + delta, y=node.position.y + delta)
                self.changes.append(f"Moved node '{node.id}' (#{index}) by ({delta}, {delta})")
            nodes.append(node.model_copy(update=update) if update else node)
        return nodes

    def _resolve_endpoint(
        self,
        groups: Dict[str, _NodeGroupFix],
        node_id: str,
        handle: Optional[str],
    ) -> Optional[str]:
        """New node id for one edge endpoint, None if the endpoint no longer exists."""
        group = groups.get(node_id)
        if group is None:
            return node_id

        nodes = self.diagram.nodes
        primary = group.indices[0]
        owner = primary
        if handle:
            owner = next((i for i in group.indices if nodes[i].has_interface(handle)), primary)
        if owner in group.removed:
            if handle and not nodes[primary].has_interface(handle):
                return None
            owner = primary
        return group.renames.get(owner, node_id)

    def _rewrite_edges(
        self,
        groups: Dict[str, _NodeGroupFix],
        edges_to_remove: Set[int],
        edges_to_reverse: Set[int],
    ) -> List[Edge]:
        edges = []
        for index, edge in enumerate(self.diagram.edges):
            if index in edges_to_remove:
                self.changes.append(f"Removed edge #{index}: {edge.source} -> {edge.target}")
                continue

            source = self._resolve_endpoint(groups, edge.source, edge.source_handle)
            target = self._resolve_endpoint(groups, edge.target, edge.target_handle)
            if source is None or target is None:
                self.changes.append(
                    f"Removed edge #{index}: {edge.source} -> {edge.target} "
                    f"(its interface only existed on a removed duplicate)"
                )
                continue

            if index in edges_to_reverse:
                edge = edge.reversed()
                source, target = target, source
                self.changes.append(f"Reversed edge #{index}: now {edge.source} -> {edge.target}")

            if (source, target) != (edge.source, edge.target):
                edge = edge.model_copy(update={"source": source, "target": target})
                self.changes.append(f"Re-pointed edge #{index} to {source} -> {target}")
            edges.append(edge)
        return edges


def apply_auto_fixes(diagram: Diagram, issues: Sequence[ValidationIssue]) -> Diagram:
    """Apply every issue's auto-fix action and return the repaired diagram."""
    return DiagramReconciler(diagram).apply(issues)


class DiagramAutoFixer:
    """
    Validate -> reconcile -> re-validate.

    Usage:
        fixer = DiagramAutoFixer()
        fixed_diagram, result = fixer.fix(diagram)
    """

    def __init__(self, validator: Optional[DiagramValidator] = None):
        self.validator = validator or DiagramValidator()

    def fix(
        self,
        diagram: Diagram,
        validation_result: Optional[DiagramValidationResult] = None,
    ) -> Tuple[Diagram, FixResult]:
        """
        Fix diagram issues.

        Returns:
            Tuple of (fixed_diagram, fix_result)
        """
        if validation_result is None:
            validation_result = self.validator.validate(diagram)

        fixable = [i for i in validation_result.issues if i.auto_fix is not None]
        reconciler = DiagramReconciler(diagram)
        fixed_diagram = reconciler.apply(fixable)

        final_validation = self.validator.validate(fixed_diagram)
        remaining = [i.type.value for i in final_validation.issues if i.severity == IssueSeverity.ERROR]

        result = FixResult(
            success=final_validation.is_valid,
            fix_type="auto" if reconciler.changes else "none",
            issues_fixed=sorted({i.type.value for i in fixable}),
            issues_remaining=remaining,
            changes_made=reconciler.changes,
        )
        logger.info(
            "[FIXER] Applied %d change(s) for %d issue(s), %d error(s) remaining",
            len(result.changes_made), len(fixable), len(remaining),
        )
        return fixed_diagram, result


# ============================================================
# Convenience Functions
# ============================================================

def auto_fix_diagram(diagram: Diagram) -> Tuple[Diagram, FixResult]:
    """
    Convenience function to auto-fix a diagram.

    Returns:
        Tuple of (fixed_diagram, fix_result)
    """
    return DiagramAutoFixer().fix(diagram)


def validate_and_fix_diagram(diagram: Diagram) -> Tuple[Diagram, DiagramValidationResult, FixResult]:
    """
    Validate diagram, fix if needed, return all results.

    Returns:
        Tuple of (fixed_diagram, final_validation, fix_result)
    """
    validator = DiagramValidator()
    initial_result = validator.validate(diagram)

    if not initial_result.issues:
        return diagram, initial_result, FixResult(
            success=True,
            fix_type="none",
            changes_made=["No fixes needed"],
        )

    fixed_diagram, fix_result = DiagramAutoFixer(validator).fix(diagram, initial_result)
    final_result = validator.validate(fixed_diagram)
    return fixed_diagram, final_result, fix_result
