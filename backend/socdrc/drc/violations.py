"""
DRC violation types.

``details`` on a violation is one of the flat dataclasses below; each carries
a ``kind`` tag so the persisted JSON can be read back into the right type.
"""

from dataclasses import asdict, dataclass, fields
from typing import Any, ClassVar, Dict, Optional, Tuple, Type

from pydantic.alias_generators import to_camel, to_snake

from socdrc.drc.registry import RuleCategory, ViolationSeverity


@dataclass(frozen=True)
class ViolationDetails:
    kind: ClassVar[str] = ""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"kind": self.kind}
        for key, value in asdict(self).items():
            data[to_camel(key)] = list(value) if isinstance(value, tuple) else value
        return data

    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "ViolationDetails":
        kind = data.get("kind")
        details_type = DETAILS_BY_KIND.get(kind)
        if details_type is None:
            raise ValueError(f"Unknown violation details kind: {kind!r}")
        known = {f.name for f in fields(details_type)}
        values = {}
        for key, value in data.items():
            name = to_snake(key)
            if name in known:
                values[name] = tuple(value) if isinstance(value, list) else value
        return details_type(**values)


@dataclass(frozen=True)
class UnconnectedInterfaceDetails(ViolationDetails):
    kind: ClassVar[str] = "unconnected_interface"
    node: str
    interface: str
    direction: Optional[str] = None
    bus_type: Optional[str] = None
    optional: bool = False


@dataclass(frozen=True)
class MissingEndpointDetails(ViolationDetails):
    kind: ClassVar[str] = "missing_endpoint"
    edge_id: str
    end: str                     # "source" | "target"
    node_id: str
    interface_id: Optional[str] = None
    node_exists: bool = False


@dataclass(frozen=True)
class BusMismatchDetails(ViolationDetails):
    kind: ClassVar[str] = "bus_mismatch"
    source_node: str
    source_interface: str
    source_bus_type: str
    target_node: str
    target_interface: str
    target_bus_type: str


@dataclass(frozen=True)
class MissingDirectionDetails(ViolationDetails):
    kind: ClassVar[str] = "missing_direction"
    node: str
    interface: str
    edge_id: str


@dataclass(frozen=True)
class RoleMismatchDetails(ViolationDetails):
    kind: ClassVar[str] = "role_mismatch"
    source_node: str
    source_interface: str
    source_direction: str
    target_node: str
    target_interface: str
    target_direction: str


@dataclass(frozen=True)
class WidthMismatchDetails(ViolationDetails):
    kind: ClassVar[str] = "width_mismatch"
    parameter: str               # "dataWidth" | "addrWidth" | "idWidth"
    source_node: str
    source_interface: str
    source_width: int
    target_node: str
    target_interface: str
    target_width: int


@dataclass(frozen=True)
class AddressOverlapDetails(ViolationDetails):
    kind: ClassVar[str] = "address_overlap"
    first_node: str
    first_base: str
    first_end: str               # exclusive
    second_node: str
    second_base: str
    second_end: str              # exclusive


@dataclass(frozen=True)
class AddressFormatDetails(ViolationDetails):
    kind: ClassVar[str] = "address_format"
    node: str
    address_field: str           # "baseAddress" | "addressSize"
    value: str


@dataclass(frozen=True)
class AddressAlignmentDetails(ViolationDetails):
    kind: ClassVar[str] = "address_alignment"
    node: str
    base_address: str
    size: int
    suggested_address: str


@dataclass(frozen=True)
class FanInDetails(ViolationDetails):
    kind: ClassVar[str] = "fan_in"
    node: str
    interface: str
    masters: Tuple[str, ...] = ()


@dataclass(frozen=True)
class CycleDetails(ViolationDetails):
    kind: ClassVar[str] = "cycle"
    cycle_path: Tuple[str, ...] = ()


@dataclass(frozen=True)
class FanoutDetails(ViolationDetails):
    kind: ClassVar[str] = "fanout"
    node: str
    fan_in: int
    fan_out: int
    limit: int


@dataclass(frozen=True)
class ClockDomainDetails(ViolationDetails):
    kind: ClassVar[str] = "clock_domain"
    source_node: str
    source_domain: str
    target_node: str
    target_domain: str


@dataclass(frozen=True)
class BandwidthDetails(ViolationDetails):
    kind: ClassVar[str] = "bandwidth"
    node: str
    demand: float                # MB/s
    capacity: float              # MB/s
    sources: Tuple[str, ...] = ()


@dataclass(frozen=True)
class NamingDetails(ViolationDetails):
    kind: ClassVar[str] = "naming"
    node: str
    name: str
    pattern: str


@dataclass(frozen=True)
class DuplicateNameDetails(ViolationDetails):
    kind: ClassVar[str] = "duplicate_name"
    name: str
    node_ids: Tuple[str, ...] = ()


DETAILS_BY_KIND: Dict[str, Type[ViolationDetails]] = {
    cls.kind: cls
    for cls in (
        UnconnectedInterfaceDetails,
        MissingEndpointDetails,
        BusMismatchDetails,
        MissingDirectionDetails,
        RoleMismatchDetails,
        WidthMismatchDetails,
        AddressOverlapDetails,
        AddressFormatDetails,
        AddressAlignmentDetails,
        FanInDetails,
        CycleDetails,
        FanoutDetails,
        ClockDomainDetails,
        BandwidthDetails,
        NamingDetails,
        DuplicateNameDetails,
    )
}


@dataclass(frozen=True)
class DRCViolation:
    """A single failed rule evaluation"""
    id: str
    rule_id: str
    rule_name: str
    category: RuleCategory
    severity: ViolationSeverity
    location: str
    description: str
    suggestion: str
    affected_components: Tuple[str, ...] = ()
    affected_interfaces: Tuple[str, ...] = ()
    affected_connections: Tuple[str, ...] = ()
    details: Optional[ViolationDetails] = None

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "ruleId": self.rule_id,
            "ruleName": self.rule_name,
            "category": self.category.value,
            "severity": self.severity.value,
            "location": self.location,
            "description": self.description,
            "suggestion": self.suggestion,
            "affectedComponents": list(self.affected_components),
            "affectedInterfaces": list(self.affected_interfaces),
            "affectedConnections": list(self.affected_connections),
        }
        if self.details is not None:
            data["details"] = self.details.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DRCViolation":
        details = data.get("details")
        return cls(
            id=data["id"],
            rule_id=data["ruleId"],
            rule_name=data["ruleName"],
            category=RuleCategory(data["category"]),
            severity=ViolationSeverity(data["severity"]),
            location=data.get("location", ""),
            description=data.get("description", ""),
            suggestion=data.get("suggestion", ""),
            affected_components=tuple(data.get("affectedComponents") or ()),
            affected_interfaces=tuple(data.get("affectedInterfaces") or ()),
            affected_connections=tuple(data.get("affectedConnections") or ()),
            details=ViolationDetails.from_dict(details) if details else None,
        )
