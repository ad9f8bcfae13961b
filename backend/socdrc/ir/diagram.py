"""
Diagram IR - the SoC architecture graph consumed by validation and DRC.

Nodes are IP blocks, interfaces are their bus ports, edges connect an
interface on one node to an interface on another. Models are frozen:
anything that rewrites a diagram builds a new one with ``model_copy``.

Two input shapes are accepted:
- the flat shape ``{id, category, position, interfaces, properties}``
- the saved canvas shape ``{id, position, data: {label, model_type, interfaces, ...}}``
"""

import json
import re
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from socdrc.ir.errors import DiagramFormatError


class NodeCategory(Enum):
    CPU = "CPU"
    MEMORY = "Memory"
    IO = "IO"
    INTERCONNECT = "Interconnect"
    ACCELERATOR = "Accelerator"
    CUSTOM = "Custom"


class InterfaceDirection(Enum):
    MASTER = "master"
    SLAVE = "slave"
    INPUT = "input"
    OUTPUT = "output"
    BIDIRECTIONAL = "bidirectional"


class Placement(Enum):
    NORTH = "north"
    SOUTH = "south"
    EAST = "east"
    WEST = "west"


# Spellings found in older saved diagrams
_DIRECTION_ALIASES = {
    "in": "input",
    "out": "output",
    "inout": "bidirectional",
    "master & slave": "bidirectional",
    "master_slave": "bidirectional",
}

_BANDWIDTH_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*(MB/S|GB/S|TB/S)?\s*$", re.IGNORECASE)
_BANDWIDTH_SCALE = {"MB/S": 1.0, "GB/S": 1000.0, "TB/S": 1000000.0}


def _parse_bandwidth(value: Any) -> Any:
    """Bandwidth in MB/s. Accepts numbers and strings like '25.6 GB/s'."""
    if value is None or isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        if not value.strip():
            return None
        match = _BANDWIDTH_PATTERN.match(value)
        if match:
            unit = (match.group(2) or "MB/S").upper()
            return float(match.group(1)) * _BANDWIDTH_SCALE[unit]
    return value


def _address_text(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return f"0x{value:x}"
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _size_text(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, str) and not value.strip():
        return None
    return value


def edge_key_id(source: str, source_handle: Optional[str], target: str, target_handle: Optional[str]) -> str:
    """Default edge id, same layout the canvas uses: ``<src><srcHandle>-<tgt><tgtHandle>``."""
    return f"{source}{source_handle or ''}-{target}{target_handle or ''}"


class DiagramModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True, alias_generator=to_camel)


class Position(DiagramModel):
    x: float = 0.0
    y: float = 0.0


class Interface(DiagramModel):
    id: str
    name: str = ""
    bus_type: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("busType", "bus_type", "type"),
        serialization_alias="busType",
    )
    direction: Optional[InterfaceDirection] = None
    id_width: Optional[int] = None
    data_width: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("dataWidth", "data_width", "width"),
        serialization_alias="dataWidth",
    )
    addr_width: Optional[int] = Field(
        default=None,
        validation_alias=AliasChoices("addrWidth", "addr_width", "addressWidth"),
        serialization_alias="addrWidth",
    )
    optional: bool = False
    placement: Optional[Placement] = None
    clock_domain: Optional[str] = None
    bandwidth: Optional[float] = None  # MB/s

    @model_validator(mode="before")
    @classmethod
    def _default_name(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("name"):
            data = {**data, "name": data.get("id", "")}
        return data

    @field_validator("direction", mode="before")
    @classmethod
    def _normalise_direction(cls, value: Any) -> Any:
        if value is None or isinstance(value, InterfaceDirection):
            return value
        text = str(value).strip().lower()
        if not text:
            return None
        return _DIRECTION_ALIASES.get(text, text)

    @field_validator("placement", mode="before")
    @classmethod
    def _lenient_placement(cls, value: Any) -> Any:
        # rendering hint only, an unknown side is dropped rather than rejected
        if isinstance(value, str):
            text = value.strip().lower()
            return text if text in {p.value for p in Placement} else None
        return value

    @field_validator("bandwidth", mode="before")
    @classmethod
    def _bandwidth(cls, value: Any) -> Any:
        return _parse_bandwidth(value)


class NodeProperties(DiagramModel):
    """Typed node parameters read by the rule engine.

    Unknown keys (per-category parameters from the component library) are
    kept as extras so a diagram round-trips, but no rule reads them.
    """

    model_config = ConfigDict(extra="allow")

    label: Optional[str] = None
    type: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("type", "model_type", "modelType"),
        serialization_alias="type",
    )
    base_address: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("baseAddress", "base_address", "target_addr_base"),
        serialization_alias="baseAddress",
    )
    address_size: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("addressSize", "address_size", "target_addr_space", "addressSpace"),
        serialization_alias="addressSize",
    )
    clock_domain: Optional[str] = None
    bandwidth_demand: Optional[float] = None    # MB/s this node issues
    bandwidth_capacity: Optional[float] = None  # MB/s this node can absorb

    @field_validator("base_address", mode="before")
    @classmethod
    def _base_address(cls, value: Any) -> Any:
        return _address_text(value)

    @field_validator("address_size", mode="before")
    @classmethod
    def _address_size(cls, value: Any) -> Any:
        return _size_text(value)

    @field_validator("bandwidth_demand", "bandwidth_capacity", mode="before")
    @classmethod
    def _bandwidth(cls, value: Any) -> Any:
        return _parse_bandwidth(value)


class Node(DiagramModel):
    id: str
    category: NodeCategory = NodeCategory.CUSTOM
    position: Position = Field(default_factory=Position)
    interfaces: List[Interface] = Field(default_factory=list)
    properties: NodeProperties = Field(default_factory=NodeProperties)

    @model_validator(mode="before")
    @classmethod
    def _lift_canvas_data(cls, data: Any) -> Any:
        """Flatten the saved canvas shape (``node.data``) into the IR shape."""
        if not isinstance(data, dict) or not isinstance(data.get("data"), dict):
            return data

        payload = dict(data["data"])
        lifted = {k: v for k, v in data.items() if k != "data"}

        interfaces = payload.pop("interfaces", None)
        if interfaces is not None and "interfaces" not in lifted:
            lifted["interfaces"] = interfaces

        category = payload.pop("category", None) or payload.get("model_type")
        if category is not None and "category" not in lifted:
            lifted["category"] = category

        mapping = payload.pop("addressMapping", None)
        if isinstance(mapping, dict):
            payload.setdefault("baseAddress", mapping.get("baseAddress"))
            payload.setdefault("addressSize", mapping.get("addressSpace"))

        properties = dict(lifted.get("properties") or {})
        for key, value in payload.items():
            properties.setdefault(key, value)
        lifted["properties"] = properties
        return lifted

    @field_validator("category", mode="before")
    @classmethod
    def _coerce_category(cls, value: Any) -> Any:
        if isinstance(value, NodeCategory):
            return value
        if isinstance(value, str):
            wanted = value.strip().lower()
            for member in NodeCategory:
                if member.value.lower() == wanted:
                    return member
        return NodeCategory.CUSTOM

    @field_validator("position", mode="before")
    @classmethod
    def _default_position(cls, value: Any) -> Any:
        return {} if value is None else value

    @field_validator("properties", mode="before")
    @classmethod
    def _default_properties(cls, value: Any) -> Any:
        return {} if value is None else value

    @property
    def display_name(self) -> str:
        label = (self.properties.label or "").strip()
        return label or self.id

    def interface(self, interface_id: Optional[str]) -> Optional[Interface]:
        if interface_id is None:
            return None
        return next((i for i in self.interfaces if i.id == interface_id), None)

    def has_interface(self, interface_id: Optional[str]) -> bool:
        return self.interface(interface_id) is not None


class Edge(DiagramModel):
    id: str = ""
    source: str
    target: str
    source_handle: Optional[str] = None
    target_handle: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        for key in ("sourceHandle", "targetHandle", "source_handle", "target_handle"):
            if key in data and data[key] == "":
                data[key] = None
        if not data.get("id"):
            data["id"] = edge_key_id(
                str(data.get("source", "")),
                data.get("sourceHandle", data.get("source_handle")),
                str(data.get("target", "")),
                data.get("targetHandle", data.get("target_handle")),
            )
        return data

    def reversed(self) -> "Edge":
        """Same connection declared in the opposite direction.

        When the id follows the default ``<src><srcHandle>-<tgt><tgtHandle>``
        layout it is rewritten to match the new order.
        """
        old_key = edge_key_id(self.source, self.source_handle, self.target, self.target_handle)
        new_key = edge_key_id(self.target, self.target_handle, self.source, self.source_handle)
        return self.model_copy(update={
            "id": self.id.replace(old_key, new_key),
            "source": self.target,
            "target": self.source,
            "source_handle": self.target_handle,
            "target_handle": self.source_handle,
        })


class Diagram(DiagramModel):
    nodes: List[Node] = Field(default_factory=list)
    edges: List[Edge] = Field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Diagram":
        if not isinstance(data, Mapping):
            raise DiagramFormatError(
                f"Diagram must be a JSON object with 'nodes' and 'edges', got {type(data).__name__}"
            )
        try:
            return cls.model_validate(dict(data))
        except ValidationError as exc:
            raise DiagramFormatError(f"Invalid diagram: {exc}") from exc

    @classmethod
    def from_json(cls, text: str) -> "Diagram":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise DiagramFormatError(f"Diagram is not valid JSON: {exc}") from exc
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def to_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def instances(self, node_id: str) -> List[Node]:
        """Every node carrying ``node_id``, in list order (more than one only before auto-fix)."""
        return [n for n in self.nodes if n.id == node_id]

    def find_node(self, node_id: str) -> Optional[Node]:
        return next((n for n in self.nodes if n.id == node_id), None)

    def resolve_interface(self, node_id: str, interface_id: Optional[str]) -> Optional[Interface]:
        """Interface ``interface_id`` on the first instance of ``node_id`` that declares it."""
        for node in self.instances(node_id):
            intf = node.interface(interface_id)
            if intf is not None:
                return intf
        return None
