"""Shared types for the detector module.

Every heuristic produces at most one DetectionResult. Scores accumulate in
a ScoreCard while the heuristic runs; the heuristic then either returns the
finished result or None when nothing matched.
"""

from dataclasses import dataclass, field
from typing import Optional

from apkbuilder.core.types import ProjectType, clamp_confidence

# Evidence paths recorded per file-listing signal and per result.
MAX_LISTING_EVIDENCE = 5
MAX_RESULT_EVIDENCE = 10


@dataclass(frozen=True)
class DetectionResult:
    """Output of one heuristic.

    `raw_score` is the unbounded sum of signal weights; `confidence` is the
    same value clamped into [0, 100].
    """

    type: ProjectType
    raw_score: int
    evidence: tuple[str, ...] = ()

    @property
    def confidence(self) -> int:
        return clamp_confidence(self.raw_score)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "confidence": self.confidence,
            "evidence": list(self.evidence),
        }


@dataclass
class ScoreCard:
    """Mutable accumulator private to a single heuristic invocation."""

    type: ProjectType
    score: int = 0
    evidence: list[str] = field(default_factory=list)

    def add(self, weight: int, *evidence: object) -> None:
        self.score += weight
        for item in evidence:
            text = str(item)
            if text not in self.evidence and len(self.evidence) < MAX_RESULT_EVIDENCE:
                self.evidence.append(text)

    def result(self) -> Optional[DetectionResult]:
        """Finished result, or None when no signal contributed."""
        if self.score <= 0:
            return None
        return DetectionResult(
            type=self.type,
            raw_score=self.score,
            evidence=tuple(self.evidence),
        )
