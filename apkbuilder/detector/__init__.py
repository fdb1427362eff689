from apkbuilder.detector.resolver import DETECTORS, TYPE_PRIORITY, resolve_type
from apkbuilder.detector.types import DetectionResult

__all__ = ["DETECTORS", "TYPE_PRIORITY", "DetectionResult", "resolve_type"]
