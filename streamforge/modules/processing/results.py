"""Typed outcomes of processing stages and of a whole processing run."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class StageOutcome(str, Enum):
    """How a stage ended.

    ``RETRYABLE`` and ``FATAL`` are reported by required stages. Optional
    stages report ``FAILED`` instead; that is logged and processing
    continues.
    """
    SUCCESS = "success"
    RETRYABLE = "retryable"
    FATAL = "fatal"
    FAILED = "failed"
    SKIPPED = "skipped"


@dataclass
class StageResult:
    """Result of one processing stage."""
    stage: str
    outcome: StageOutcome
    error: Optional[str] = None
    data: dict[str, Any] = field(default_factory=dict)
    duration: float = 0.0

    @property
    def ok(self) -> bool:
        return self.outcome == StageOutcome.SUCCESS

    @property
    def failed(self) -> bool:
        return self.outcome in (StageOutcome.RETRYABLE, StageOutcome.FATAL, StageOutcome.FAILED)

    @classmethod
    def success(cls, stage: str, **data: Any) -> "StageResult":
        return cls(stage=stage, outcome=StageOutcome.SUCCESS, data=data)

    @classmethod
    def retryable(cls, stage: str, error: str, **data: Any) -> "StageResult":
        return cls(stage=stage, outcome=StageOutcome.RETRYABLE, error=error, data=data)

    @classmethod
    def fatal(cls, stage: str, error: str, **data: Any) -> "StageResult":
        return cls(stage=stage, outcome=StageOutcome.FATAL, error=error, data=data)

    @classmethod
    def failure(cls, stage: str, error: str, **data: Any) -> "StageResult":
        """Non-fatal failure of an optional stage."""
        return cls(stage=stage, outcome=StageOutcome.FAILED, error=error, data=data)

    @classmethod
    def skipped(cls, stage: str, reason: Optional[str] = None) -> "StageResult":
        return cls(stage=stage, outcome=StageOutcome.SKIPPED, error=reason)


@dataclass
class ProcessingResult:
    """What the job runner needs to know about one processing run."""
    ok: bool
    error: Optional[str] = None
    retryable: bool = False
    duration: float = 0.0
    stages: list[StageResult] = field(default_factory=list)

    @classmethod
    def succeeded(cls, duration: float, stages: Optional[list[StageResult]] = None) -> "ProcessingResult":
        return cls(ok=True, duration=duration, stages=stages or [])

    @classmethod
    def from_stage_failure(cls, result: StageResult, stages: list[StageResult]) -> "ProcessingResult":
        return cls(
            ok=False,
            error=f"{result.stage}: {result.error}",
            retryable=result.outcome == StageOutcome.RETRYABLE,
            stages=stages,
        )
