"""
Report Aggregator - Folds violations into the persisted DRC result.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Sequence, Tuple

from socdrc.drc.registry import ViolationSeverity
from socdrc.drc.violations import DRCViolation


@dataclass(frozen=True)
class DRCSummary:
    critical: int = 0
    warning: int = 0
    info: int = 0

    def to_dict(self) -> dict:
        return {"critical": self.critical, "warning": self.warning, "info": self.info}


@dataclass(frozen=True)
class DRCResult:
    """Immutable outcome of one DRC run"""
    timestamp: str
    total_checks: int
    violations: Tuple[DRCViolation, ...]
    summary: DRCSummary
    passed: bool

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "totalChecks": self.total_checks,
            "violations": [v.to_dict() for v in self.violations],
            "summary": self.summary.to_dict(),
            "passed": self.passed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DRCResult":
        summary = data.get("summary") or {}
        return cls(
            timestamp=data["timestamp"],
            total_checks=int(data.get("totalChecks", 0)),
            violations=tuple(DRCViolation.from_dict(v) for v in data.get("violations") or []),
            summary=DRCSummary(
                critical=int(summary.get("critical", 0)),
                warning=int(summary.get("warning", 0)),
                info=int(summary.get("info", 0)),
            ),
            passed=bool(data["passed"]),
        )

    def get_summary(self) -> str:
        """Get human-readable summary"""
        status = "PASSED" if self.passed else "FAILED"
        return (
            f"DRC {status} | {self.total_checks} checks | "
            f"Critical: {self.summary.critical}, Warning: {self.summary.warning}, Info: {self.summary.info}"
        )


def aggregate(
    violations: Sequence[DRCViolation],
    total_checks: int,
    now: Optional[datetime] = None,
) -> DRCResult:
    """Build the DRC result. ``now`` pins the timestamp (defaults to the current UTC time)."""
    counts = {severity: 0 for severity in ViolationSeverity}
    for violation in violations:
        counts[violation.severity] += 1

    summary = DRCSummary(
        critical=counts[ViolationSeverity.CRITICAL],
        warning=counts[ViolationSeverity.WARNING],
        info=counts[ViolationSeverity.INFO],
    )
    stamp = (now or datetime.now(timezone.utc)).astimezone(timezone.utc)
    return DRCResult(
        timestamp=stamp.isoformat().replace("+00:00", "Z"),
        total_checks=total_checks,
        violations=tuple(violations),
        summary=summary,
        passed=summary.critical == 0,
    )
