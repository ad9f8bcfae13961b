from socdrc.ir.diagram import (
    Diagram,
    Edge,
    Interface,
    InterfaceDirection,
    Node,
    NodeCategory,
    NodeProperties,
    Placement,
    Position,
)
from socdrc.ir.errors import DiagramFormatError, SocDrcError, StructuralValidationError
