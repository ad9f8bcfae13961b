"""
Rule Catalog - The fixed set of SoC design rules.

Order in RULE_CATALOG is the order the checker runs (and reports) them.
"""

from socdrc.drc.registry import (
    RuleCategory,
    RuleDefinition,
    RuleRegistry,
    ViolationSeverity,
)


# ============================================================
# CONNECTIVITY
# ============================================================

UNCONNECTED_INTERFACE = RuleDefinition(
    rule_id="CONN-001",
    name="Unconnected Interface",
    category=RuleCategory.CONNECTIVITY,
    severity=ViolationSeverity.WARNING,
    description="Every interface should have at least one connection unless it is marked optional.",
)

MISSING_ENDPOINT = RuleDefinition(
    rule_id="CONN-002",
    name="Missing Connection Endpoint",
    category=RuleCategory.CONNECTIVITY,
    severity=ViolationSeverity.WARNING,
    description="Both ends of a connection must resolve to an existing component and interface.",
)

BUS_TYPE_MATCHING = RuleDefinition(
    rule_id="CONN-003",
    name="Bus Type Matching",
    category=RuleCategory.CONNECTIVITY,
    severity=ViolationSeverity.WARNING,
    description="Connected interfaces should speak the same bus protocol.",
)

UNDECLARED_DIRECTION = RuleDefinition(
    rule_id="CONN-004",
    name="Undeclared Interface Direction",
    category=RuleCategory.CONNECTIVITY,
    severity=ViolationSeverity.WARNING,
    description="A connected interface should declare its direction so master/slave roles can be checked.",
)

ROLE_MATCHING = RuleDefinition(
    rule_id="CONN-005",
    name="Role Matching",
    category=RuleCategory.CONNECTIVITY,
    severity=ViolationSeverity.WARNING,
    description="Masters drive slaves and outputs drive inputs; like roles must not be wired together.",
)


# ============================================================
# AXI4 PARAMETERS
# ============================================================

DATA_WIDTH_MATCHING = RuleDefinition(
    rule_id="AXI-001",
    name="Data Width Matching",
    category=RuleCategory.AXI4_PARAMETERS,
    severity=ViolationSeverity.CRITICAL,
    description="Connected AXI interfaces must declare the same data width.",
)

ADDRESS_WIDTH_MATCHING = RuleDefinition(
    rule_id="AXI-002",
    name="Address Width Matching",
    category=RuleCategory.AXI4_PARAMETERS,
    severity=ViolationSeverity.CRITICAL,
    description="Connected AXI interfaces must declare the same address width.",
)

ID_WIDTH_MATCHING = RuleDefinition(
    rule_id="AXI-003",
    name="ID Width Matching",
    category=RuleCategory.AXI4_PARAMETERS,
    severity=ViolationSeverity.WARNING,
    description="Connected AXI interfaces should declare the same transaction ID width.",
)


# ============================================================
# ADDRESS SPACE
# ============================================================

ADDRESS_OVERLAP = RuleDefinition(
    rule_id="ADDR-001",
    name="Address Space Overlap",
    category=RuleCategory.ADDRESS_SPACE,
    severity=ViolationSeverity.CRITICAL,
    description="Memory-mapped components must not share any address.",
)

ADDRESS_FORMAT = RuleDefinition(
    rule_id="ADDR-002",
    name="Address Format",
    category=RuleCategory.ADDRESS_SPACE,
    severity=ViolationSeverity.WARNING,
    description="Declared addresses must be well-formed 0x-prefixed hexadecimal literals.",
)

ADDRESS_ALIGNMENT = RuleDefinition(
    rule_id="ADDR-003",
    name="Address Alignment",
    category=RuleCategory.ADDRESS_SPACE,
    severity=ViolationSeverity.INFO,
    description="A base address should be aligned to the size of its region.",
)


# ============================================================
# TOPOLOGY
# ============================================================

UNARBITRATED_FAN_IN = RuleDefinition(
    rule_id="TOPO-001",
    name="Unarbitrated Fan-In",
    category=RuleCategory.TOPOLOGY,
    severity=ViolationSeverity.WARNING,
    description="A slave interface driven by several masters needs an interconnect or arbiter in between.",
)

CIRCULAR_DEPENDENCY = RuleDefinition(
    rule_id="TOPO-002",
    name="Circular Dependency",
    category=RuleCategory.TOPOLOGY,
    severity=ViolationSeverity.CRITICAL,
    description="Master-to-slave connections must not form a cycle.",
)

INTERCONNECT_FANOUT = RuleDefinition(
    rule_id="TOPO-003",
    name="Interconnect Fanout",
    category=RuleCategory.TOPOLOGY,
    severity=ViolationSeverity.WARNING,
    description="An interconnect with very many connections is hard to close timing on.",
)


# ============================================================
# PERFORMANCE
# ============================================================

CLOCK_DOMAIN_CROSSING = RuleDefinition(
    rule_id="PERF-001",
    name="Clock Domain Crossing",
    category=RuleCategory.PERFORMANCE,
    severity=ViolationSeverity.WARNING,
    description="Connections between different clock domains need synchronisation logic.",
)

BANDWIDTH_OVERSUBSCRIPTION = RuleDefinition(
    rule_id="PERF-002",
    name="Bandwidth Oversubscription",
    category=RuleCategory.PERFORMANCE,
    severity=ViolationSeverity.INFO,
    description="Declared incoming bandwidth demand should not exceed a component's declared capacity.",
)


# ============================================================
# NAMING
# ============================================================

NAMING_CONVENTION = RuleDefinition(
    rule_id="NAME-001",
    name="Naming Convention",
    category=RuleCategory.NAMING,
    severity=ViolationSeverity.INFO,
    description="Component names should follow the configured naming convention.",
)

DUPLICATE_DISPLAY_NAME = RuleDefinition(
    rule_id="NAME-002",
    name="Duplicate Display Name",
    category=RuleCategory.NAMING,
    severity=ViolationSeverity.WARNING,
    description="Each component instance should have a unique display name.",
)


RULE_CATALOG = (
    UNCONNECTED_INTERFACE,
    MISSING_ENDPOINT,
    BUS_TYPE_MATCHING,
    UNDECLARED_DIRECTION,
    ROLE_MATCHING,
    DATA_WIDTH_MATCHING,
    ADDRESS_WIDTH_MATCHING,
    ID_WIDTH_MATCHING,
    ADDRESS_OVERLAP,
    ADDRESS_FORMAT,
    ADDRESS_ALIGNMENT,
    UNARBITRATED_FAN_IN,
    CIRCULAR_DEPENDENCY,
    INTERCONNECT_FANOUT,
    CLOCK_DOMAIN_CROSSING,
    BANDWIDTH_OVERSUBSCRIPTION,
    NAMING_CONVENTION,
    DUPLICATE_DISPLAY_NAME,
)


def register_all_rules(registry: RuleRegistry) -> None:
    """Register every catalog rule with the registry"""
    for rule in RULE_CATALOG:
        registry.register(rule)
