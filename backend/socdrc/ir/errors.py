from typing import List, TYPE_CHECKING

if TYPE_CHECKING:
    from socdrc.validation.diagram_validator import ValidationIssue


class SocDrcError(Exception):
    """Base class for every error raised by the DRC core."""


class DiagramFormatError(SocDrcError, ValueError):
    """Input document is not a diagram (wrong shape, wrong field types)."""


class StructuralValidationError(SocDrcError, ValueError):
    """Diagram still has error-severity structural issues.

    Raised when DRC is requested on a diagram that has not been through
    validation and auto-fix. Carries the offending issues so the caller can
    show them or feed them to the reconciler.
    """

    def __init__(self, issues: List["ValidationIssue"]):
        self.issues = list(issues)
        lines = [f"[{i.type.value}] {i.description}" for i in self.issues]
        super().__init__(
            f"Diagram has {len(self.issues)} structural error(s); "
            f"run validation and auto-fix before DRC:\n" + "\n".join(lines)
        )
