"""Build orchestrator: environment check, detection, and the pipeline stages.

Build flow:
1. Verify the offline toolchains (5%). Missing roles end the build before
   any pipeline is created.
2. Detect the project type (10-15%). `unknown` ends the build.
3. Create a fresh pipeline for the type and run prepare (20%),
   configure (30%) and build (50%). A failed build stops here: nothing is
   signed and no artifact path is reported.
4. Sign (90%) and copy the signed package to
   `<signed dir>/<AppName>/<AppName>.apk` (95%), then report done (100%).

Every path returns exactly one BuildResult. Exceptions raised inside a
stage become a failed result naming the stage; anything unexpected outside
the stages is caught at the top level.

Progress and log listeners are passed per call, so concurrent builds on
one orchestrator never see each other's events.
"""

import asyncio
import logging
import re
import shutil
import time
import uuid
from pathlib import Path
from typing import Awaitable, Callable, Optional, TypeVar, Union

from apkbuilder.core.config import Settings, get_settings
from apkbuilder.core.environment import (
    EnvironmentCheck,
    OfflineEnvironment,
    get_offline_environment,
    verify_environment,
)
from apkbuilder.core.errors import BuilderError, ConfigurationError, ToolchainError
from apkbuilder.core.logging import bind_build_id, reset_build_id
from apkbuilder.core.process import CommandRunner, OutputListener, run_command, truncate_output
from apkbuilder.core.types import (
    FALLBACK_APP_NAME,
    BuildOptions,
    BuildProgress,
    BuildResult,
    ProjectInfo,
)
from apkbuilder.detector.resolver import resolve_type
from apkbuilder.pipelines import PIPELINES
from apkbuilder.pipelines.base import BasePipeline, ConnectivityProbe

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[BuildProgress], None]
T = TypeVar("T")

STAGE_VERIFY = "verify"
STAGE_DETECT = "detect"
STAGE_PREPARE = "prepare"
STAGE_CONFIGURE = "configure"
STAGE_BUILD = "build"
STAGE_SIGN = "sign"
STAGE_OUTPUT = "output"
STAGE_DONE = "done"


class _StageFailed(Exception):
    """Internal: carries the BuildResult for a stage that raised."""

    def __init__(self, result: BuildResult):
        self.result = result
        super().__init__(result.errors[0] if result.errors else "stage failed")


class _ProgressReporter:
    """Per-build progress channel. Percent never goes backwards."""

    def __init__(self, callback: Optional[ProgressCallback]):
        self._callback = callback
        self._percent = 0

    def __call__(self, stage: str, percent: int, message: str) -> None:
        self._percent = max(self._percent, min(100, int(percent)))
        logger.info("[%d%%] %s: %s", self._percent, stage, message)
        if self._callback is None:
            return
        try:
            self._callback(BuildProgress(stage=stage, percent=self._percent, message=message))
        except Exception:
            logger.exception("Progress listener raised; continuing")


def output_file_name(app_name: str) -> str:
    """App name reduced to a safe file-name stem."""
    cleaned = re.sub(r"[^A-Za-z0-9._-]", "", app_name.replace(" ", ""))
    return cleaned.strip(".") or FALLBACK_APP_NAME


def place_output(signed_path: Path, app_name: str) -> Path:
    """Copy the signed package to `<dir>/<AppName>/<AppName>.apk`."""
    name = output_file_name(app_name)
    out_dir = signed_path.parent / name
    out_dir.mkdir(parents=True, exist_ok=True)
    final = out_dir / f"{name}.apk"
    shutil.copy2(signed_path, final)
    return final


class BuildOrchestrator:
    """Long-lived entry point for detection and builds.

    The offline environment is resolved once here and re-verified before
    every build. Each build gets its own pipeline instance.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        env: Optional[OfflineEnvironment] = None,
        pipelines: Optional[dict] = None,
        runner: CommandRunner = run_command,
        connectivity_probe: Optional[ConnectivityProbe] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.env = env or get_offline_environment(self.settings)
        self.pipelines = dict(pipelines if pipelines is not None else PIPELINES)
        self.runner = runner
        self.connectivity_probe = connectivity_probe

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def detect_project(
        self,
        path: Union[str, Path],
        on_progress: Optional[ProgressCallback] = None,
    ) -> ProjectInfo:
        """Classify a project directory. Never raises."""
        report = _ProgressReporter(on_progress)
        report(STAGE_DETECT, 0, "Analysing project structure...")
        info = await asyncio.to_thread(resolve_type, path)
        report(STAGE_DETECT, 10, f"Detected type: {info.type.value} ({info.confidence}% confidence)")
        return info

    def verify_environment(self) -> EnvironmentCheck:
        return verify_environment(self.env)

    def create_pipeline(self, info: ProjectInfo, on_log: Optional[OutputListener] = None) -> Optional[BasePipeline]:
        pipeline_cls = self.pipelines.get(info.type)
        if pipeline_cls is None:
            return None
        return pipeline_cls(
            self.env,
            settings=self.settings,
            runner=self.runner,
            connectivity_probe=self.connectivity_probe,
            on_log=on_log,
        )

    async def build(
        self,
        path: Union[str, Path],
        options: BuildOptions,
        on_progress: Optional[ProgressCallback] = None,
        on_log: Optional[OutputListener] = None,
    ) -> BuildResult:
        """Run a full build and return its single terminal result."""
        start = time.monotonic()
        build_id = uuid.uuid4().hex[:12]
        token = bind_build_id(build_id)
        report = _ProgressReporter(on_progress)
        logger.info("Build %s started for %s", build_id, path)

        try:
            result = await self._run_build(Path(path).expanduser(), options, report, on_log)
        except asyncio.CancelledError:
            logger.warning("Build %s cancelled", build_id)
            raise
        except Exception as exc:
            logger.exception("Unexpected error during build %s", build_id)
            result = BuildResult.failure(str(exc) or exc.__class__.__name__)
        finally:
            reset_build_id(token)

        result.elapsed_seconds = time.monotonic() - start
        if result.success:
            logger.info("Build %s succeeded in %.1fs: %s", build_id, result.elapsed_seconds, result.artifact_path)
        else:
            logger.warning("Build %s failed in %.1fs: %s", build_id, result.elapsed_seconds, result.errors[0])
        return result

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _run_build(
        self,
        path: Path,
        options: BuildOptions,
        report: _ProgressReporter,
        on_log: Optional[OutputListener],
    ) -> BuildResult:
        report(STAGE_VERIFY, 5, "Checking bundled toolchains...")
        check = self.verify_environment()
        if not check.valid:
            return BuildResult.failure(f"Missing toolchains: {', '.join(check.missing)}")

        try:
            options.validate()
        except ConfigurationError as exc:
            return BuildResult.failure(f"Invalid build options: {exc}")

        report(STAGE_DETECT, 10, "Analysing project structure...")
        info = await asyncio.to_thread(resolve_type, path)
        report(STAGE_DETECT, 15, f"Detected type: {info.type.value} ({info.confidence}% confidence)")
        if not info.is_known:
            return BuildResult.failure("Project type not recognised")

        pipeline = self.create_pipeline(info, on_log)
        if pipeline is None:
            return BuildResult.failure(f"No pipeline available for type: {info.type.value}")

        try:
            report(STAGE_PREPARE, 20, "Preparing project files...")
            await self._stage(STAGE_PREPARE, pipeline, pipeline.prepare(path))

            report(STAGE_CONFIGURE, 30, "Generating manifest, gradle files and icons...")
            await self._stage(STAGE_CONFIGURE, pipeline, pipeline.configure(options))

            report(STAGE_BUILD, 50, "Compiling project...")
            result = await self._stage(STAGE_BUILD, pipeline, pipeline.build(self.env))
            if not result.success:
                result.artifact_path = None
                result.warnings = _merge(result.warnings, pipeline.warnings)
                return result
            if not result.artifact_path:
                return BuildResult.failure(
                    "Build reported success without an artifact",
                    warnings=pipeline.warnings,
                )

            report(STAGE_SIGN, 90, "Signing package...")
            signed = await self._stage(STAGE_SIGN, pipeline, pipeline.sign(result.artifact_path, options))

            report(STAGE_OUTPUT, 95, "Placing output...")
            final = await self._stage(
                STAGE_OUTPUT, pipeline, asyncio.to_thread(place_output, Path(signed), options.app_name)
            )
        except _StageFailed as failed:
            return failed.result

        report(STAGE_DONE, 100, "Build finished successfully!")
        return BuildResult(
            success=True,
            artifact_path=str(final),
            secondary_artifact_path=result.secondary_artifact_path,
            warnings=_merge(result.warnings, pipeline.warnings),
        )

    async def _stage(self, stage: str, pipeline: BasePipeline, awaitable: Awaitable[T]) -> T:
        """Await one stage, converting exceptions into a failed BuildResult."""
        try:
            return await awaitable
        except asyncio.CancelledError:
            raise
        except ToolchainError as exc:
            logger.warning("Stage %s failed: %s", stage, exc)
            errors = [f"{stage} failed: {exc}"]
            if exc.output:
                errors.append(truncate_output(exc.output))
            raise _StageFailed(BuildResult.failure(*errors, warnings=pipeline.warnings)) from exc
        except BuilderError as exc:
            logger.warning("Stage %s failed: %s", stage, exc)
            raise _StageFailed(
                BuildResult.failure(f"{stage} failed: {exc}", warnings=pipeline.warnings)
            ) from exc
        except Exception as exc:
            logger.exception("Stage %s raised unexpectedly", stage)
            message = str(exc) or exc.__class__.__name__
            raise _StageFailed(
                BuildResult.failure(f"{stage} failed: {message}", warnings=pipeline.warnings)
            ) from exc


def _merge(*groups: list[str]) -> list[str]:
    merged: list[str] = []
    for group in groups:
        for item in group:
            if item not in merged:
                merged.append(item)
    return merged
