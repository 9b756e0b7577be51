from __future__ import annotations

import enum
from dataclasses import dataclass, field

from leave_portal.services.conflict_index import ConflictType, Severity


class RejectionKind(str, enum.Enum):
    HIRE_DATE_VIOLATION = "HIRE_DATE_VIOLATION"
    TEMPORAL_CONFLICT = "TEMPORAL_CONFLICT"
    GEOFENCE_VIOLATION = "GEOFENCE_VIOLATION"
    DUPLICATE_ENTRY = "DUPLICATE_ENTRY"
    INVALID_RANGE = "INVALID_RANGE"
    CHECKIN_REQUIRED = "CHECKIN_REQUIRED"
    CHECKOUT_DISABLED = "CHECKOUT_DISABLED"
    ALREADY_CHECKED_OUT = "ALREADY_CHECKED_OUT"


@dataclass(frozen=True)
class Rejection:
    kind: RejectionKind
    message: str
    conflict_type: ConflictType | None = None
    severity: Severity = Severity.CRITICAL


@dataclass
class ValidationResult:
    reasons: list[Rejection] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.reasons

    @property
    def conflicts(self) -> list[str]:
        return [reason.message for reason in self.reasons]

    @property
    def primary_kind(self) -> RejectionKind | None:
        if not self.reasons:
            return None
        return self.reasons[0].kind

    def reject(self, kind: RejectionKind, message: str, conflict_type: ConflictType | None = None) -> None:
        self.reasons.append(Rejection(kind=kind, message=message, conflict_type=conflict_type))
