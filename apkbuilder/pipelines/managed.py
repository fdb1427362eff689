"""Managed pipeline: .NET MAUI / Xamarin projects built with `dotnet build`."""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from apkbuilder.core.environment import OfflineEnvironment
from apkbuilder.core.errors import ConfigurationError
from apkbuilder.core.types import BuildOptions, BuildResult, ProjectType
from apkbuilder.detector.fs import read_text, walk_files
from apkbuilder.detector.managed import is_maui_project_file
from apkbuilder.pipelines.base import BasePipeline, copy_tree

logger = logging.getLogger(__name__)

TARGET_FRAMEWORK = "net8.0-android"
ARTIFACT_FRAMEWORKS = ("net8.0-android", "net7.0-android")
NUGET_CACHE_DIR = "nuget-cache"
COPY_IGNORE = (".git", "bin", "obj")


def find_project_file(root: Path) -> Path:
    """Pick the MAUI project file under `root`, else the first one found.

    Raises:
        ConfigurationError: if there is no .csproj at all.
    """
    candidates = [p for p in walk_files(root) if p.name.lower().endswith(".csproj")]
    if not candidates:
        raise ConfigurationError(f"No .csproj file found under {root}")
    for candidate in candidates:
        content = read_text(candidate)
        if content and is_maui_project_file(content):
            return candidate
    logger.warning("No MAUI project file found; using %s", candidates[0].name)
    return candidates[0]


def find_built_package(project_dir: Path, configuration: str) -> Optional[Path]:
    """First unsigned .apk under bin/<configuration>/<framework>."""
    for framework in ARTIFACT_FRAMEWORKS:
        out_dir = project_dir / "bin" / configuration / framework
        if not out_dir.is_dir():
            continue
        for path in sorted(out_dir.iterdir()):
            if path.suffix == ".apk" and "Signed" not in path.name:
                return path
    return None


class ManagedPipeline(BasePipeline):
    project_type = ProjectType.MANAGED

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.project_file: Optional[Path] = None

    async def prepare(self, source_path: Path) -> None:
        self.source_path = Path(source_path)
        build_dir = self.create_build_dir()
        logger.info("Preparing managed project: %s", self.source_path)

        await asyncio.to_thread(copy_tree, self.source_path, build_dir, COPY_IGNORE)
        self.project_file = find_project_file(build_dir)
        logger.info("Managed project file: %s", self.project_file.relative_to(build_dir))

    async def configure(self, options: BuildOptions) -> None:
        # Identifiers and versions are passed as MSBuild properties at build time.
        self.require_build_dir()
        self.options = options

    async def build(self, env: OfflineEnvironment) -> BuildResult:
        build_dir = self.require_build_dir()
        options = self.require_options()
        if self.project_file is None:
            raise ConfigurationError("No project file selected")

        configuration = "Release" if options.is_release else "Debug"

        restore_args = ["restore", str(self.project_file)]
        nuget_cache = env.dotnet_root / NUGET_CACHE_DIR
        if nuget_cache.is_dir():
            restore_args += ["--source", str(nuget_cache)]
        restore = await self.run(env.dotnet, restore_args, build_dir)
        if not restore.is_success:
            self.warn("dotnet restore failed; continuing with whatever packages are cached")

        build_args = [
            "build",
            str(self.project_file),
            "-c", configuration,
            "-f", TARGET_FRAMEWORK,
            "-p:AndroidPackageFormat=apk",
            f"-p:ApplicationId={options.package_name}",
            f"-p:ApplicationTitle={options.app_name}",
            f"-p:ApplicationDisplayVersion={options.version}",
            f"-p:ApplicationVersion={options.version_code}",
        ]
        result = await self.run(env.dotnet, build_args, build_dir)
        if not result.is_success:
            return self.tool_failure("dotnet", result)

        apk = find_built_package(self.project_file.parent, configuration)
        if apk is None:
            expected = self.project_file.parent / "bin" / configuration / TARGET_FRAMEWORK
            return self.artifact_missing("MAUI APK", expected)
        return self.artifact_found(apk)
