"""Build pipelines, one per project type."""

from apkbuilder.core.types import ProjectType
from apkbuilder.pipelines.base import BasePipeline, BuildPipeline
from apkbuilder.pipelines.crossjs import CrossJsPipeline
from apkbuilder.pipelines.engine import EnginePipeline
from apkbuilder.pipelines.managed import ManagedPipeline
from apkbuilder.pipelines.native import NativePipeline
from apkbuilder.pipelines.web import WebPipeline

PIPELINES: dict[ProjectType, type[BasePipeline]] = {
    ProjectType.WEB: WebPipeline,
    ProjectType.NATIVE: NativePipeline,
    ProjectType.MANAGED: ManagedPipeline,
    ProjectType.CROSS_JS: CrossJsPipeline,
    ProjectType.ENGINE: EnginePipeline,
}

__all__ = [
    "PIPELINES",
    "BasePipeline",
    "BuildPipeline",
    "CrossJsPipeline",
    "EnginePipeline",
    "ManagedPipeline",
    "NativePipeline",
    "WebPipeline",
]
