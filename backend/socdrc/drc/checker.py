"""
DRC Checker - Runs the rule catalog against a structurally valid diagram.

Each run gets its own RuleRun holding the violation list and the evaluation
counter, so checker instances can be shared freely.

Usage:
    checker = DRCChecker()
    result = checker.check(diagram, DRCOptions(check_optional_ports=True))
    print(result.get_summary())
"""

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from socdrc.drc.address import (
    AddressParseError,
    AddressRange,
    format_address,
    is_hex_literal,
    next_aligned,
    parse_address,
    parse_size,
)
from socdrc.drc.options import DRCOptions
from socdrc.drc.registry import RuleDefinition, RuleRegistry, get_rule_registry
from socdrc.drc.report import DRCResult, aggregate
from socdrc.drc.violations import (
    AddressAlignmentDetails,
    AddressFormatDetails,
    AddressOverlapDetails,
    BandwidthDetails,
    BusMismatchDetails,
    ClockDomainDetails,
    CycleDetails,
    DRCViolation,
    DuplicateNameDetails,
    FanInDetails,
    FanoutDetails,
    MissingDirectionDetails,
    MissingEndpointDetails,
    NamingDetails,
    RoleMismatchDetails,
    UnconnectedInterfaceDetails,
    ViolationDetails,
    WidthMismatchDetails,
)
from socdrc.ir.diagram import Diagram, Edge, Interface, InterfaceDirection, Node, NodeCategory
from socdrc.validation.diagram_validator import raise_on_errors

logger = logging.getLogger(__name__)

INTERCONNECT_KEYWORDS = ("crossbar", "arbiter", "interconnect")

# (source, target) direction pairs that cannot work; master -> anything but slave is handled separately
ROLE_MISMATCHES = {
    (InterfaceDirection.SLAVE, InterfaceDirection.SLAVE): (
        "Slave interface connected to slave interface",
        "Slaves only answer masters; put an interconnect or bridge between them",
    ),
    (InterfaceDirection.OUTPUT, InterfaceDirection.OUTPUT): (
        "Output signal connected to output signal",
        "Connect outputs to inputs only",
    ),
    (InterfaceDirection.INPUT, InterfaceDirection.INPUT): (
        "Input signal connected to input signal",
        "Drive inputs from an output",
    ),
    (InterfaceDirection.INPUT, InterfaceDirection.OUTPUT): (
        "Input connected to output; the connection may be drawn reversed",
        "Reverse the connection so it runs from the output to the input",
    ),
}


def normalise_bus_type(bus_type: Optional[str]) -> Optional[str]:
    """'axi-4', 'AXI4' and 'Axi 4' all compare equal."""
    if not bus_type:
        return None
    return re.sub(r"[^A-Z0-9]", "", bus_type.upper()) or None


def is_axi(intf: Interface) -> bool:
    # No declared bus type is treated as AXI4
    bus = normalise_bus_type(intf.bus_type)
    return bus is None or bus.startswith("AXI")


def is_interconnect(node: Node) -> bool:
    if node.category == NodeCategory.INTERCONNECT:
        return True
    if (node.properties.type or "").strip().lower() == "interconnect":
        return True
    label = (node.properties.label or "").lower()
    return any(keyword in label for keyword in INTERCONNECT_KEYWORDS)


@dataclass(frozen=True)
class Connection:
    """An edge with its endpoints looked up in the diagram"""
    index: int
    edge: Edge
    source_node: Optional[Node]
    target_node: Optional[Node]
    source_intf: Optional[Interface]
    target_intf: Optional[Interface]

    @property
    def resolved(self) -> bool:
        if self.source_node is None or self.target_node is None:
            return False
        if self.edge.source_handle and self.source_intf is None:
            return False
        if self.edge.target_handle and self.target_intf is None:
            return False
        return True

    def describe(self) -> str:
        source = self.source_node.display_name if self.source_node else self.edge.source
        target = self.target_node.display_name if self.target_node else self.edge.target
        if self.source_intf is not None:
            source = f"{source}.{self.source_intf.name}"
        if self.target_intf is not None:
            target = f"{target}.{self.target_intf.name}"
        return f"{source} -> {target}"


@dataclass(frozen=True)
class RoleEdge:
    """A master -> slave link, oriented by interface role rather than drawing direction"""
    edge_id: str
    master_node: Node
    master_intf: Interface
    slave_node: Node
    slave_intf: Interface


class RuleRun:
    """State for a single DRC run: resolved connections, violations, evaluation count."""

    def __init__(self, diagram: Diagram, options: DRCOptions):
        self.diagram = diagram
        self.options = options
        self.violations: List[DRCViolation] = []
        self.total_checks = 0
        self.connections = [self._resolve(i, e) for i, e in enumerate(diagram.edges)]

    def _resolve(self, index: int, edge: Edge) -> Connection:
        source_node = self.diagram.find_node(edge.source)
        target_node = self.diagram.find_node(edge.target)
        return Connection(
            index=index,
            edge=edge,
            source_node=source_node,
            target_node=target_node,
            source_intf=self._pick_interface(source_node, edge.source_handle, InterfaceDirection.MASTER),
            target_intf=self._pick_interface(target_node, edge.target_handle, InterfaceDirection.SLAVE),
        )

    @staticmethod
    def _pick_interface(
        node: Optional[Node],
        handle: Optional[str],
        default_direction: InterfaceDirection,
    ) -> Optional[Interface]:
        if node is None:
            return None
        if handle:
            return node.interface(handle)
        # Node-level connection: use the first interface with the expected role
        return next((i for i in node.interfaces if i.direction == default_direction), None)

    @property
    def resolved_connections(self) -> List[Connection]:
        return [c for c in self.connections if c.resolved]

    def interface_pairs(self) -> List[Connection]:
        """Resolved connections where both ends have an interface"""
        return [
            c for c in self.connections
            if c.resolved and c.source_intf is not None and c.target_intf is not None
        ]

    def role_edges(self) -> List[RoleEdge]:
        links = []
        for conn in self.interface_pairs():
            roles = (conn.source_intf.direction, conn.target_intf.direction)
            if roles == (InterfaceDirection.MASTER, InterfaceDirection.SLAVE):
                links.append(RoleEdge(conn.edge.id, conn.source_node, conn.source_intf,
                                      conn.target_node, conn.target_intf))
            elif roles == (InterfaceDirection.SLAVE, InterfaceDirection.MASTER):
                links.append(RoleEdge(conn.edge.id, conn.target_node, conn.target_intf,
                                      conn.source_node, conn.source_intf))
        return links

    def evaluated(self, count: int = 1) -> None:
        self.total_checks += count

    def report(
        self,
        rule: RuleDefinition,
        location: str,
        description: str,
        suggestion: str,
        components: Tuple[str, ...] = (),
        interfaces: Tuple[str, ...] = (),
        connections: Tuple[str, ...] = (),
        details: Optional[ViolationDetails] = None,
    ) -> DRCViolation:
        violation = DRCViolation(
            id=f"DRC-VIOLATION-{len(self.violations) + 1}",
            rule_id=rule.rule_id,
            rule_name=rule.name,
            category=rule.category,
            severity=rule.severity,
            location=location,
            description=description,
            suggestion=suggestion,
            affected_components=tuple(components),
            affected_interfaces=tuple(interfaces),
            affected_connections=tuple(connections),
            details=details,
        )
        self.violations.append(violation)
        logger.debug("[DRC] %s %s: %s", violation.id, rule.rule_id, description)
        return violation

    def result(self, now: Optional[datetime] = None) -> DRCResult:
        return aggregate(self.violations, self.total_checks, now=now)


class DRCChecker:
    """
    Design rule checker for SoC diagrams.

    Rules run in registry order. ``run_rules`` does not re-validate
    structure, so dangling edges are reported as CONN-002; use ``run_check``
    to refuse diagrams that still have structural errors.
    """

    def __init__(self, registry: Optional[RuleRegistry] = None):
        self.registry = registry or get_rule_registry()
        self._checks: Dict[str, Callable[[RuleRun, RuleDefinition], None]] = {
            "CONN-001": self._check_unconnected_interfaces,
            "CONN-002": self._check_missing_endpoints,
            "CONN-003": self._check_bus_types,
            "CONN-004": self._check_undeclared_directions,
            "CONN-005": self._check_role_matching,
            "AXI-001": self._check_data_width,
            "AXI-002": self._check_address_width,
            "AXI-003": self._check_id_width,
            "ADDR-001": self._check_address_overlap,
            "ADDR-002": self._check_address_format,
            "ADDR-003": self._check_address_alignment,
            "TOPO-001": self._check_fan_in,
            "TOPO-002": self._check_cycles,
            "TOPO-003": self._check_interconnect_fanout,
            "PERF-001": self._check_clock_domains,
            "PERF-002": self._check_bandwidth,
            "NAME-001": self._check_naming_convention,
            "NAME-002": self._check_duplicate_names,
        }

    def run_rules(self, diagram: Diagram, options: Optional[DRCOptions] = None) -> RuleRun:
        run = RuleRun(diagram, options or DRCOptions())
        for rule in self.registry.list_all():
            check = self._checks.get(rule.rule_id)
            if check is None:
                raise ValueError(f"No check implemented for rule {rule.rule_id}")
            check(run, rule)
        return run

    def check(
        self,
        diagram: Diagram,
        options: Optional[DRCOptions] = None,
        now: Optional[datetime] = None,
    ) -> DRCResult:
        result = self.run_rules(diagram, options).result(now)
        logger.info("[DRC] %s", result.get_summary())
        return result

    # ============================================================
    # CONNECTIVITY
    # ============================================================

    def _check_unconnected_interfaces(self, run: RuleRun, rule: RuleDefinition) -> None:
        connected = set()
        for conn in run.resolved_connections:
            if conn.source_intf is not None:
                connected.add((conn.edge.source, conn.source_intf.id))
            if conn.target_intf is not None:
                connected.add((conn.edge.target, conn.target_intf.id))

        for node in run.diagram.nodes:
            for intf in node.interfaces:
                run.evaluated()
                if (node.id, intf.id) in connected:
                    continue
                if intf.optional and not run.options.check_optional_ports:
                    continue
                if intf.direction == InterfaceDirection.MASTER:
                    suggestion = "Connect it to a slave interface or mark it optional if intentional"
                elif intf.direction == InterfaceDirection.SLAVE:
                    suggestion = "Connect it from a master interface or remove it if unused"
                else:
                    suggestion = "Connect the interface or mark it optional"
                run.report(
                    rule,
                    location=f"{node.display_name}.{intf.name}",
                    description=f"Interface '{intf.name}' on '{node.display_name}' has no connections",
                    suggestion=suggestion,
                    components=(node.id,),
                    interfaces=(intf.id,),
                    details=UnconnectedInterfaceDetails(
                        node=node.display_name,
                        interface=intf.name,
                        direction=intf.direction.value if intf.direction else None,
                        bus_type=intf.bus_type,
                        optional=intf.optional,
                    ),
                )

    def _check_missing_endpoints(self, run: RuleRun, rule: RuleDefinition) -> None:
        for conn in run.connections:
            run.evaluated()
            if conn.resolved:
                continue
            edge = conn.edge
            if conn.source_node is None:
                end, node_id, handle, exists = "source", edge.source, edge.source_handle, False
                description = f"Source component '{edge.source}' does not exist"
            elif conn.target_node is None:
                end, node_id, handle, exists = "target", edge.target, edge.target_handle, False
                description = f"Target component '{edge.target}' does not exist"
            elif conn.source_intf is None:
                end, node_id, handle, exists = "source", edge.source, edge.source_handle, True
                description = (
                    f"Source interface '{edge.source_handle}' does not exist on "
                    f"'{conn.source_node.display_name}'"
                )
            else:
                end, node_id, handle, exists = "target", edge.target, edge.target_handle, True
                description = (
                    f"Target interface '{edge.target_handle}' does not exist on "
                    f"'{conn.target_node.display_name}'"
                )
            run.report(
                rule,
                location=conn.describe(),
                description=description,
                suggestion="Remove the connection or add the missing component or interface",
                components=(edge.source, edge.target),
                interfaces=tuple(h for h in (edge.source_handle, edge.target_handle) if h),
                connections=(edge.id,),
                details=MissingEndpointDetails(
                    edge_id=edge.id,
                    end=end,
                    node_id=node_id,
                    interface_id=handle,
                    node_exists=exists,
                ),
            )

    def _check_bus_types(self, run: RuleRun, rule: RuleDefinition) -> None:
        for conn in run.interface_pairs():
            run.evaluated()
            source_bus = normalise_bus_type(conn.source_intf.bus_type)
            target_bus = normalise_bus_type(conn.target_intf.bus_type)
            if source_bus is None or target_bus is None or source_bus == target_bus:
                continue
            run.report(
                rule,
                location=conn.describe(),
                description=f"Bus type mismatch: {conn.source_intf.bus_type} -> {conn.target_intf.bus_type}",
                suggestion="Change the interface types to match or add a protocol converter",
                components=(conn.edge.source, conn.edge.target),
                interfaces=(conn.source_intf.id, conn.target_intf.id),
                connections=(conn.edge.id,),
                details=BusMismatchDetails(
                    source_node=conn.source_node.display_name,
                    source_interface=conn.source_intf.name,
                    source_bus_type=conn.source_intf.bus_type,
                    target_node=conn.target_node.display_name,
                    target_interface=conn.target_intf.name,
                    target_bus_type=conn.target_intf.bus_type,
                ),
            )

    def _check_undeclared_directions(self, run: RuleRun, rule: RuleDefinition) -> None:
        edges_by_intf: Dict[Tuple[str, str], List[str]] = defaultdict(list)
        owners: Dict[Tuple[str, str], Tuple[Node, Interface]] = {}
        for conn in run.resolved_connections:
            for node, intf in ((conn.source_node, conn.source_intf), (conn.target_node, conn.target_intf)):
                if intf is None:
                    continue
                key = (node.id, intf.id)
                owners.setdefault(key, (node, intf))
                edges_by_intf[key].append(conn.edge.id)

        for key, (node, intf) in owners.items():
            run.evaluated()
            if intf.direction is not None:
                continue
            run.report(
                rule,
                location=f"{node.display_name}.{intf.name}",
                description=f"Connected interface '{intf.name}' on '{node.display_name}' declares no direction",
                suggestion="Set the interface direction (master, slave, input, output or bidirectional)",
                components=(node.id,),
                interfaces=(intf.id,),
                connections=tuple(edges_by_intf[key]),
                details=MissingDirectionDetails(
                    node=node.display_name,
                    interface=intf.name,
                    edge_id=edges_by_intf[key][0],
                ),
            )

    def _check_role_matching(self, run: RuleRun, rule: RuleDefinition) -> None:
        for conn in run.interface_pairs():
            source_dir = conn.source_intf.direction
            target_dir = conn.target_intf.direction
            if source_dir is None or target_dir is None:
                continue
            if InterfaceDirection.BIDIRECTIONAL in (source_dir, target_dir):
                continue
            run.evaluated()
            mismatch = ROLE_MISMATCHES.get((source_dir, target_dir))
            if mismatch is None:
                if source_dir != InterfaceDirection.MASTER or target_dir == InterfaceDirection.SLAVE:
                    continue
                mismatch = (
                    f"Master interface drives a {target_dir.value} interface",
                    "Connect master interfaces to slave interfaces only; use the slave port of an interconnect",
                )
            description, suggestion = mismatch
            run.report(
                rule,
                location=conn.describe(),
                description=description,
                suggestion=suggestion,
                components=(conn.edge.source, conn.edge.target),
                interfaces=(conn.source_intf.id, conn.target_intf.id),
                connections=(conn.edge.id,),
                details=RoleMismatchDetails(
                    source_node=conn.source_node.display_name,
                    source_interface=conn.source_intf.name,
                    source_direction=source_dir.value,
                    target_node=conn.target_node.display_name,
                    target_interface=conn.target_intf.name,
                    target_direction=target_dir.value,
                ),
            )

    # ============================================================
    # AXI4 PARAMETERS
    # ============================================================

    def _check_data_width(self, run: RuleRun, rule: RuleDefinition) -> None:
        self._check_width(
            run, rule, "data_width", "dataWidth", "data width",
            lambda s, t: "Use matching data widths or add a width converter",
        )

    def _check_address_width(self, run: RuleRun, rule: RuleDefinition) -> None:
        self._check_width(
            run, rule, "addr_width", "addrWidth", "address width",
            lambda s, t: "Use consistent address widths or add an address translation stage",
        )

    def _check_id_width(self, run: RuleRun, rule: RuleDefinition) -> None:
        self._check_width(
            run, rule, "id_width", "idWidth", "ID width",
            lambda s, t: f"Widen the narrower side to {max(s, t)} bits or add an ID remapper",
        )

    def _check_width(
        self,
        run: RuleRun,
        rule: RuleDefinition,
        attribute: str,
        parameter: str,
        label: str,
        suggest: Callable[[int, int], str],
    ) -> None:
        for conn in run.interface_pairs():
            if not (is_axi(conn.source_intf) and is_axi(conn.target_intf)):
                continue
            source_width = getattr(conn.source_intf, attribute)
            target_width = getattr(conn.target_intf, attribute)
            if source_width is None or target_width is None:
                continue
            run.evaluated()
            if source_width == target_width:
                continue
            run.report(
                rule,
                location=conn.describe(),
                description=f"AXI4 {label} mismatch: {source_width}-bit -> {target_width}-bit",
                suggestion=suggest(source_width, target_width),
                components=(conn.edge.source, conn.edge.target),
                interfaces=(conn.source_intf.id, conn.target_intf.id),
                connections=(conn.edge.id,),
                details=WidthMismatchDetails(
                    parameter=parameter,
                    source_node=conn.source_node.display_name,
                    source_interface=conn.source_intf.name,
                    source_width=source_width,
                    target_node=conn.target_node.display_name,
                    target_interface=conn.target_intf.name,
                    target_width=target_width,
                ),
            )

    # ============================================================
    # ADDRESS SPACE
    # ============================================================

    @staticmethod
    def _address_map(run: RuleRun) -> Tuple[List[AddressRange], List[Tuple[Node, str, str]], int]:
        """(well-formed ranges, malformed (node, field, value) entries, declared strings examined)"""
        ranges = []
        malformed = []
        examined = 0
        for node in run.diagram.nodes:
            base_text = node.properties.base_address
            size_text = node.properties.address_size
            base = size = None
            if base_text is not None:
                examined += 1
                if is_hex_literal(base_text):
                    base = parse_address(base_text)
                else:
                    malformed.append((node, "baseAddress", base_text))
            if size_text is not None:
                examined += 1
                try:
                    size = parse_size(size_text)
                except AddressParseError:
                    malformed.append((node, "addressSize", size_text))
            if base is not None and size is not None:
                ranges.append(AddressRange(node.id, node.display_name, base, size))
        return ranges, malformed, examined

    def _check_address_overlap(self, run: RuleRun, rule: RuleDefinition) -> None:
        ranges, _, _ = self._address_map(run)
        for i, first in enumerate(ranges):
            for second in ranges[i + 1:]:
                run.evaluated()
                if not first.overlaps(second):
                    continue
                run.report(
                    rule,
                    location=f"{first.label} <-> {second.label}",
                    description=(
                        f"Address space overlap: {first.label} {first.describe()} "
                        f"overlaps {second.label} {second.describe()}"
                    ),
                    suggestion="Reassign the address ranges so they do not intersect",
                    components=(first.node_id, second.node_id),
                    details=AddressOverlapDetails(
                        first_node=first.label,
                        first_base=format_address(first.base),
                        first_end=format_address(first.end),
                        second_node=second.label,
                        second_base=format_address(second.base),
                        second_end=format_address(second.end),
                    ),
                )

    def _check_address_format(self, run: RuleRun, rule: RuleDefinition) -> None:
        _, malformed, examined = self._address_map(run)
        run.evaluated(examined)
        for node, address_field, value in malformed:
            if address_field == "baseAddress":
                description = f"Base address '{value}' on '{node.display_name}' is not a 0x-prefixed hex literal"
                suggestion = "Write the base address as hex, e.g. 0x4000_0000"
            else:
                description = f"Address size '{value}' on '{node.display_name}' is not a valid size"
                suggestion = "Write the size as hex (0x1000), decimal bytes, or with a unit (4KB, 1MB)"
            run.report(
                rule,
                location=node.display_name,
                description=description,
                suggestion=suggestion,
                components=(node.id,),
                details=AddressFormatDetails(node=node.display_name, address_field=address_field, value=value),
            )

    def _check_address_alignment(self, run: RuleRun, rule: RuleDefinition) -> None:
        ranges, _, _ = self._address_map(run)
        for region in ranges:
            run.evaluated()
            if region.is_aligned:
                continue
            suggested = format_address(next_aligned(region.base, region.size))
            run.report(
                rule,
                location=region.label,
                description=(
                    f"Base address {format_address(region.base)} of '{region.label}' "
                    f"is not aligned to its size ({region.size} bytes)"
                ),
                suggestion=f"Move the base address to a {region.size}-byte boundary, e.g. {suggested}",
                components=(region.node_id,),
                details=AddressAlignmentDetails(
                    node=region.label,
                    base_address=format_address(region.base),
                    size=region.size,
                    suggested_address=suggested,
                ),
            )

    # ============================================================
    # TOPOLOGY
    # ============================================================

    def _check_fan_in(self, run: RuleRun, rule: RuleDefinition) -> None:
        masters_by_slave: Dict[Tuple[str, str], List[Tuple[str, str]]] = defaultdict(list)
        edges_by_slave: Dict[Tuple[str, str], List[str]] = defaultdict(list)
        slaves: Dict[Tuple[str, str], Tuple[Node, Interface]] = {}
        for link in run.role_edges():
            key = (link.slave_node.id, link.slave_intf.id)
            slaves.setdefault(key, (link.slave_node, link.slave_intf))
            master = (link.master_node.id, link.master_intf.id)
            if master not in masters_by_slave[key]:
                masters_by_slave[key].append(master)
            edges_by_slave[key].append(link.edge_id)

        for key, (node, intf) in slaves.items():
            if is_interconnect(node):
                continue
            run.evaluated()
            masters = masters_by_slave[key]
            if len(masters) < 2:
                continue
            master_nodes = tuple(dict.fromkeys(m[0] for m in masters))
            run.report(
                rule,
                location=f"{node.display_name}.{intf.name}",
                description=(
                    f"Slave interface '{intf.name}' on '{node.display_name}' is driven by "
                    f"{len(masters)} masters without an interconnect"
                ),
                suggestion="Put an AXI crossbar, arbiter or interconnect between the masters and this slave",
                components=(node.id,) + tuple(m for m in master_nodes if m != node.id),
                interfaces=(intf.id,) + tuple(m[1] for m in masters),
                connections=tuple(edges_by_slave[key]),
                details=FanInDetails(
                    node=node.display_name,
                    interface=intf.name,
                    masters=tuple(f"{m[0]}.{m[1]}" for m in masters),
                ),
            )

    def _check_cycles(self, run: RuleRun, rule: RuleDefinition) -> None:
        adjacency: Dict[str, List[str]] = defaultdict(list)
        edge_between: Dict[Tuple[str, str], str] = {}
        for link in run.role_edges():
            src, dst = link.master_node.id, link.slave_node.id
            if src == dst:
                continue
            if dst not in adjacency[src]:
                adjacency[src].append(dst)
            edge_between.setdefault((src, dst), link.edge_id)

        run.evaluated()
        for cycle in self._find_cycles([n.id for n in run.diagram.nodes], adjacency):
            labels = [self._label(run.diagram, node_id) for node_id in cycle]
            hops = zip(cycle, cycle[1:] + cycle[:1])
            run.report(
                rule,
                location=" -> ".join(labels + labels[:1]),
                description=f"Circular dependency through {len(cycle)} component(s): {' -> '.join(labels)}",
                suggestion="Remove one connection to break the cycle or restructure the design",
                components=tuple(cycle),
                connections=tuple(edge_between[hop] for hop in hops),
                details=CycleDetails(cycle_path=tuple(labels)),
            )

    @staticmethod
    def _find_cycles(node_order: List[str], adjacency: Mapping[str, List[str]]) -> List[List[str]]:
        """Back-edge cycles, one per node set (iterative DFS)."""
        visited = set()
        rec_stack = set()
        cycles: List[List[str]] = []
        seen = set()

        for root in node_order:
            if root in visited:
                continue
            visited.add(root)
            rec_stack.add(root)
            path = [root]
            pending = [iter(adjacency.get(root, []))]
            while pending:
                neighbor = next(pending[-1], None)
                if neighbor is None:
                    pending.pop()
                    rec_stack.remove(path.pop())
                elif neighbor in rec_stack:
                    cycle = path[path.index(neighbor):]
                    key = frozenset(cycle)
                    if key not in seen:
                        seen.add(key)
                        cycles.append(cycle)
                elif neighbor not in visited:
                    visited.add(neighbor)
                    rec_stack.add(neighbor)
                    path.append(neighbor)
                    pending.append(iter(adjacency.get(neighbor, [])))
        return cycles

    def _check_interconnect_fanout(self, run: RuleRun, rule: RuleDefinition) -> None:
        limit = run.options.interconnect_fanout_limit
        resolved = run.resolved_connections
        for node in run.diagram.nodes:
            if not is_interconnect(node):
                continue
            run.evaluated()
            fan_in = sum(1 for c in resolved if c.edge.target == node.id)
            fan_out = sum(1 for c in resolved if c.edge.source == node.id)
            if fan_in <= limit and fan_out <= limit:
                continue
            run.report(
                rule,
                location=node.display_name,
                description=f"Interconnect has {fan_in} inputs and {fan_out} outputs (limit {limit})",
                suggestion="Split it into several interconnects or use a hierarchical design",
                components=(node.id,),
                details=FanoutDetails(node=node.display_name, fan_in=fan_in, fan_out=fan_out, limit=limit),
            )

    # ============================================================
    # PERFORMANCE
    # ============================================================

    def _check_clock_domains(self, run: RuleRun, rule: RuleDefinition) -> None:
        for conn in run.resolved_connections:
            run.evaluated()
            source_domain = self._clock_domain(conn.source_node, conn.source_intf)
            target_domain = self._clock_domain(conn.target_node, conn.target_intf)
            if source_domain is None or target_domain is None or source_domain == target_domain:
                continue
            run.report(
                rule,
                location=conn.describe(),
                description=f"Clock domain crossing: {source_domain} -> {target_domain}",
                suggestion="Add clock domain crossing synchronisers (async FIFO or dual-clock FIFO)",
                components=(conn.edge.source, conn.edge.target),
                interfaces=tuple(i.id for i in (conn.source_intf, conn.target_intf) if i is not None),
                connections=(conn.edge.id,),
                details=ClockDomainDetails(
                    source_node=conn.source_node.display_name,
                    source_domain=source_domain,
                    target_node=conn.target_node.display_name,
                    target_domain=target_domain,
                ),
            )

    @staticmethod
    def _clock_domain(node: Node, intf: Optional[Interface]) -> Optional[str]:
        if intf is not None and intf.clock_domain:
            return intf.clock_domain
        return node.properties.clock_domain or None

    def _check_bandwidth(self, run: RuleRun, rule: RuleDefinition) -> None:
        resolved = run.resolved_connections
        for node in run.diagram.nodes:
            capacity = node.properties.bandwidth_capacity
            if capacity is None:
                continue
            run.evaluated()

            demand = 0.0
            sources: List[str] = []
            counted_nodes = set()
            for conn in resolved:
                if conn.edge.target != node.id:
                    continue
                if conn.source_intf is not None and conn.source_intf.bandwidth is not None:
                    demand += conn.source_intf.bandwidth
                elif conn.source_node.properties.bandwidth_demand is not None:
                    if conn.source_node.id in counted_nodes:
                        continue
                    counted_nodes.add(conn.source_node.id)
                    demand += conn.source_node.properties.bandwidth_demand
                else:
                    continue
                if conn.source_node.id not in sources:
                    sources.append(conn.source_node.id)

            if demand <= capacity:
                continue
            run.report(
                rule,
                location=node.display_name,
                description=(
                    f"Incoming bandwidth demand {demand:g} MB/s exceeds the "
                    f"{capacity:g} MB/s capacity of '{node.display_name}'"
                ),
                suggestion="Reduce the traffic into this component, widen its interface or raise its clock",
                components=(node.id,) + tuple(sources),
                details=BandwidthDetails(
                    node=node.display_name,
                    demand=demand,
                    capacity=capacity,
                    sources=tuple(sources),
                ),
            )

    # ============================================================
    # NAMING
    # ============================================================

    def _check_naming_convention(self, run: RuleRun, rule: RuleDefinition) -> None:
        pattern = re.compile(run.options.name_pattern)
        for node in run.diagram.nodes:
            run.evaluated()
            name = node.display_name
            if pattern.fullmatch(name):
                continue
            run.report(
                rule,
                location=name,
                description=f"Component name '{name}' does not follow the naming convention",
                suggestion=f"Rename the component to match {run.options.name_pattern}",
                components=(node.id,),
                details=NamingDetails(node=node.id, name=name, pattern=run.options.name_pattern),
            )

    def _check_duplicate_names(self, run: RuleRun, rule: RuleDefinition) -> None:
        nodes_by_label: Dict[str, List[str]] = defaultdict(list)
        for node in run.diagram.nodes:
            label = (node.properties.label or "").strip()
            if label:
                nodes_by_label[label].append(node.id)

        for label, node_ids in nodes_by_label.items():
            run.evaluated()
            if len(node_ids) < 2:
                continue
            run.report(
                rule,
                location=label,
                description=f"{len(node_ids)} components share the name '{label}'",
                suggestion="Give each instance a unique name (e.g. CPU_0, CPU_1)",
                components=tuple(node_ids),
                details=DuplicateNameDetails(name=label, node_ids=tuple(node_ids)),
            )

    @staticmethod
    def _label(diagram: Diagram, node_id: str) -> str:
        node = diagram.find_node(node_id)
        return node.display_name if node else node_id


def run_check(
    diagram: Union[Diagram, Mapping[str, Any]],
    options: Union[DRCOptions, Mapping[str, Any], None] = None,
    now: Optional[datetime] = None,
) -> DRCResult:
    """
    Guarded DRC entry point.

    Raises StructuralValidationError when the diagram still has error-severity
    structural issues; run validation and auto-fix first.
    """
    if not isinstance(diagram, Diagram):
        diagram = Diagram.from_dict(diagram)
    if options is None:
        options = DRCOptions.from_env()
    elif not isinstance(options, DRCOptions):
        options = DRCOptions.from_dict(dict(options), base=DRCOptions.from_env())

    raise_on_errors(diagram)
    return DRCChecker().check(diagram, options, now=now)
