"""Type resolver: runs every heuristic and picks one classification.

Resolution flow:
1. Run each registered heuristic against the root. A heuristic that raises
   is logged and counts as no evidence; the others still run.
2. Rank the non-null results by confidence, highest first.
3. Break confidence ties with TYPE_PRIORITY (most specific ecosystem
   first) and log the tie so callers can see the runner-up.
4. Wrap the winner in a ProjectInfo whose `alternatives` lists the other
   candidate types in rank order.

Registration order never affects the outcome.
"""

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from apkbuilder.core.types import ProjectInfo, ProjectType, suggest_name
from apkbuilder.detector import crossjs, engine, managed, native, web
from apkbuilder.detector.types import DetectionResult

logger = logging.getLogger(__name__)

Detector = Callable[[Path], Optional[DetectionResult]]

DETECTORS: tuple[Detector, ...] = (
    web.detect,
    native.detect,
    managed.detect,
    crossjs.detect,
    engine.detect,
)

# Tie-break order, first wins. A cross-js project usually also looks like a
# web project, and an engine or managed project may carry native sources.
TYPE_PRIORITY: tuple[ProjectType, ...] = (
    ProjectType.CROSS_JS,
    ProjectType.ENGINE,
    ProjectType.MANAGED,
    ProjectType.NATIVE,
    ProjectType.WEB,
)


def _priority(project_type: ProjectType) -> int:
    try:
        return TYPE_PRIORITY.index(project_type)
    except ValueError:
        return len(TYPE_PRIORITY)


def rank_results(results: Iterable[DetectionResult]) -> list[DetectionResult]:
    """Sort by confidence descending, then by type priority."""
    return sorted(results, key=lambda r: (-r.confidence, _priority(r.type)))


def run_detectors(
    root: Path,
    detectors: Iterable[Detector] = DETECTORS,
) -> list[DetectionResult]:
    """Run every heuristic, isolating failures. Returns the non-null results."""
    results: list[DetectionResult] = []
    for detector in detectors:
        name = getattr(detector, "__module__", None) or repr(detector)
        try:
            result = detector(root)
        except Exception as exc:
            logger.warning("Detector %s failed on %s: %s", name, root, exc)
            continue
        if result is not None and result.confidence > 0:
            logger.debug("Detector %s: %s (%d)", name, result.type, result.confidence)
            results.append(result)
    return results


def resolve_type(
    root: Union[str, Path],
    detectors: Optional[Iterable[Detector]] = None,
) -> ProjectInfo:
    """Classify a project directory. Never raises."""
    path_text = str(root)
    try:
        root_path = Path(root).expanduser()
        if not root_path.is_dir():
            logger.warning("Project path %s is not a directory", path_text)
            return ProjectInfo.unknown(path_text)
        ranked = rank_results(run_detectors(root_path, detectors or DETECTORS))
    except Exception:
        logger.exception("Detection failed for %s", path_text)
        return ProjectInfo.unknown(path_text)

    if not ranked:
        logger.info("No project type recognised at %s", path_text)
        return ProjectInfo.unknown(path_text)

    best = ranked[0]
    tied = [r.type.value for r in ranked[1:] if r.confidence == best.confidence]
    if tied:
        logger.info(
            "Confidence tie at %d between %s and %s; preferring %s",
            best.confidence,
            best.type.value,
            ", ".join(tied),
            best.type.value,
        )

    alternatives: list[ProjectType] = []
    for result in ranked[1:]:
        if result.type != best.type and result.type not in alternatives:
            alternatives.append(result.type)

    info = ProjectInfo(
        path=path_text,
        type=best.type,
        confidence=best.confidence,
        evidence=best.evidence,
        suggested_name=suggest_name(path_text),
        alternatives=tuple(alternatives),
    )
    logger.info(
        "Detected %s project at %s (confidence=%d, evidence=%d)",
        info.type.value,
        path_text,
        info.confidence,
        len(info.evidence),
    )
    return info
