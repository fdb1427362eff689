"""Offline APK builder: project-type detection and build orchestration."""

from apkbuilder.core.types import BuildOptions, BuildResult, ProjectInfo, ProjectType
from apkbuilder.orchestrator import BuildOrchestrator

__version__ = "0.1.0"

__all__ = [
    "BuildOptions",
    "BuildOrchestrator",
    "BuildResult",
    "ProjectInfo",
    "ProjectType",
]
