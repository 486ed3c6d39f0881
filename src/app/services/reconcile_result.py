"""원장 반영 결과 표현"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class ReconcileOutcome(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    # 필수 값이 없어 반영하지 않음 (재시도해도 결과가 같음)
    SKIPPED = "skipped"
    # 갱신 대상 행이 아직 없음
    NOT_FOUND = "not_found"
    IGNORED = "ignored"


@dataclass(slots=True)
class ReconcileResult:
    outcome: ReconcileOutcome
    reason: str | None = None
    detail: Dict[str, Any] = field(default_factory=dict)

    @property
    def applied(self) -> bool:
        return self.outcome in (ReconcileOutcome.CREATED, ReconcileOutcome.UPDATED)

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"outcome": self.outcome.value}
        if self.reason:
            payload["reason"] = self.reason
        if self.detail:
            payload.update(self.detail)
        return payload
