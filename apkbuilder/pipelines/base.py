"""Pipeline contract and shared pipeline machinery.

Every variant runs the same four stages:

  prepare(source)    materialise an isolated scratch copy
  configure(options) apply BuildOptions to the scratch copy
  build(env)         drive the external toolchain, return a BuildResult
  sign(artifact, options)  align and sign, return the signed path

BasePipeline owns the scratch directory, the command runner, the
connectivity-aware gradle invocation and the common signing step. A
pipeline instance serves exactly one build.
"""

import asyncio
import functools
import logging
import re
import secrets
import shutil
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Awaitable, Callable, Iterable, Optional, Protocol

from apkbuilder.core.config import Settings, get_settings
from apkbuilder.core.environment import OfflineEnvironment
from apkbuilder.core.errors import BuilderError, ConfigurationError
from apkbuilder.core.network import is_online
from apkbuilder.core.process import CommandResult, CommandRunner, OutputListener, run_command
from apkbuilder.core.types import BuildOptions, BuildResult, ProjectType
from apkbuilder.generators import signing

logger = logging.getLogger(__name__)

ConnectivityProbe = Callable[[], Awaitable[bool]]

GRADLE_BASE_ARGS = ("--no-daemon", "--stacktrace")
OFFLINE_FLAG = "--offline"


class BuildPipeline(Protocol):
    """The four-stage contract the orchestrator drives."""

    project_type: ProjectType
    warnings: list[str]

    async def prepare(self, source_path: Path) -> None:
        ...

    async def configure(self, options: BuildOptions) -> None:
        ...

    async def build(self, env: OfflineEnvironment) -> BuildResult:
        ...

    async def sign(self, artifact_path: str, options: BuildOptions) -> str:
        ...

    def cleanup(self) -> None:
        ...


class BasePipeline(ABC):
    """Shared scratch-dir, process, gradle and signing plumbing."""

    project_type: ProjectType = ProjectType.UNKNOWN

    def __init__(
        self,
        env: OfflineEnvironment,
        settings: Optional[Settings] = None,
        runner: CommandRunner = run_command,
        connectivity_probe: Optional[ConnectivityProbe] = None,
        on_log: Optional[OutputListener] = None,
    ) -> None:
        self.env = env
        self.settings = settings or get_settings()
        self.runner = runner
        self.connectivity_probe = connectivity_probe or functools.partial(
            is_online, self.settings.connectivity_probe_host
        )
        self.on_log = on_log
        self.build_dir: Optional[Path] = None
        self.source_path: Optional[Path] = None
        self.options: Optional[BuildOptions] = None
        self.warnings: list[str] = []

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    @abstractmethod
    async def prepare(self, source_path: Path) -> None:
        """Materialise the scratch copy of `source_path`."""

    @abstractmethod
    async def configure(self, options: BuildOptions) -> None:
        """Apply `options` to the scratch copy."""

    @abstractmethod
    async def build(self, env: OfflineEnvironment) -> BuildResult:
        """Drive the toolchain and report the unsigned artifact."""

    async def sign(self, artifact_path: str, options: BuildOptions) -> str:
        """Sign with the debug keystore or the caller's release credentials.

        Raises:
            ConfigurationError: release signing without all four credential
                fields, or with a keystore path that does not exist.
            ToolchainError: keytool or apksigner failed.
        """
        artifact = Path(artifact_path)
        if options.is_release:
            if not options.has_release_credentials:
                raise ConfigurationError(
                    "Release signing requires keystore path, keystore password, "
                    "key alias and key password"
                )
            keystore_path = Path(options.keystore_path).expanduser()
            if not keystore_path.exists():
                raise ConfigurationError(f"Keystore not found: {keystore_path}")
            keystore = signing.KeystoreInfo(
                path=keystore_path,
                password=options.keystore_password,
                alias=options.key_alias,
                key_password=options.key_password,
            )
        else:
            keystore = await signing.get_debug_keystore(
                self.env,
                self.settings.debug_keystore_dir,
                runner=self.runner,
                on_output=self._log,
            )

        output = signing.signed_output_path(artifact)
        await signing.sign_artifact(
            artifact,
            keystore,
            output,
            self.env,
            runner=self.runner,
            on_output=self._log,
            warnings=self.warnings,
        )
        verified = await signing.verify_signature(
            output, self.env, runner=self.runner, on_output=self._log
        )
        if not verified:
            self.warn(f"Signature verification failed for {output.name}")
        return str(output)

    def cleanup(self) -> None:
        """Remove the scratch directory. Errors are logged, not raised."""
        if self.build_dir is None or not self.build_dir.exists():
            return
        try:
            shutil.rmtree(self.build_dir)
        except OSError as exc:
            logger.warning("Could not remove scratch dir %s: %s", self.build_dir, exc)

    # ------------------------------------------------------------------
    # Scratch directory
    # ------------------------------------------------------------------

    def create_build_dir(self) -> Path:
        """Create a fresh uniquely named scratch dir, discarding any previous one."""
        self.cleanup()
        stamp = f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"
        build_dir = Path(self.settings.scratch_root) / self.project_type.value / stamp
        build_dir.mkdir(parents=True, exist_ok=False)
        self.build_dir = build_dir
        logger.info("Scratch dir for %s build: %s", self.project_type.value, build_dir)
        return build_dir

    def require_build_dir(self) -> Path:
        if self.build_dir is None:
            raise BuilderError("Pipeline has not been prepared")
        return self.build_dir

    def require_options(self) -> BuildOptions:
        if self.options is None:
            raise BuilderError("Pipeline has not been configured")
        return self.options

    # ------------------------------------------------------------------
    # Process helpers
    # ------------------------------------------------------------------

    def _log(self, text: str) -> None:
        if self.on_log is None:
            return
        try:
            self.on_log(text)
        except Exception:
            logger.exception("Log listener raised; continuing")

    def warn(self, message: str) -> None:
        logger.warning(message)
        self.warnings.append(message)

    async def run(
        self,
        command: Path | str,
        args: Iterable[str],
        cwd: Path,
        extra_env: Optional[dict[str, str]] = None,
    ) -> CommandResult:
        """Run a toolchain command with the offline environment overlay."""
        overlay = self.env.overlay()
        if extra_env:
            overlay.update(extra_env)
        return await self.runner(
            str(command),
            list(args),
            cwd,
            env_overlay=overlay,
            on_output=self._log,
        )

    async def run_gradle(self, task: str, project_dir: Path) -> CommandResult:
        """Run a gradle task, network-aware first.

        When the probe reports no connectivity the task runs with --offline.
        When it reports connectivity but the online attempt fails, the task
        is retried once with --offline against the local cache.
        """
        online = await self.connectivity_probe()
        args = [task, *GRADLE_BASE_ARGS]
        if not online:
            logger.info("No connectivity; running gradle offline")
            args.append(OFFLINE_FLAG)

        result = await self.run(self.env.gradle_executable, args, project_dir)
        if result.is_success or not online:
            return result

        logger.warning("Online gradle run failed (exit=%d); retrying offline", result.exit_code)
        self._log("Online gradle build failed, retrying in offline mode...\n")
        return await self.run(
            self.env.gradle_executable,
            [*args, OFFLINE_FLAG],
            project_dir,
        )

    def copy_gradle_wrapper(self, target_dir: Path) -> None:
        """Copy the bundled gradle wrapper into `target_dir`, best effort."""
        gradle_home = self.env.gradle_home
        try:
            wrapper = gradle_home / "wrapper"
            if wrapper.is_dir():
                shutil.copytree(wrapper, target_dir / "gradle" / "wrapper", dirs_exist_ok=True)
            for script in ("gradlew", "gradlew.bat"):
                source = gradle_home / script
                if source.exists():
                    shutil.copy2(source, target_dir / script)
        except OSError as exc:
            self.warn(f"Could not copy gradle wrapper: {exc}")

    # ------------------------------------------------------------------
    # Result helpers
    # ------------------------------------------------------------------

    def tool_failure(self, tool: str, result: CommandResult) -> BuildResult:
        failure = BuildResult.from_command_failure(f"{tool} build failed", result)
        failure.warnings = list(self.warnings)
        return failure

    def artifact_missing(self, artifact: str, expected: Path | str) -> BuildResult:
        return BuildResult.failure(
            f"{artifact} not found after build (expected {expected})",
            warnings=self.warnings,
        )

    def artifact_found(self, artifact: Path) -> BuildResult:
        logger.info("Build artifact: %s", artifact)
        return BuildResult(success=True, artifact_path=str(artifact), warnings=list(self.warnings))

    async def generate(self, description: str, func: Callable, *args, **kwargs):
        """Run a generator in a worker thread; any failure is a ConfigurationError."""
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except ConfigurationError:
            raise
        except Exception as exc:
            raise ConfigurationError(f"Failed to generate {description}: {exc}") from exc


# ----------------------------------------------------------------------
# Source tree helpers shared by variants
# ----------------------------------------------------------------------

_PACKAGE_LINE = re.compile(r"^package\s+[\w.]+", re.MULTILINE)
SOURCE_SUFFIXES = (".kt", ".java")


def rewrite_package_line(path: Path, package_name: str) -> None:
    content = path.read_text(encoding="utf-8")
    updated = _PACKAGE_LINE.sub(f"package {package_name}", content, count=1)
    if updated != content:
        path.write_text(updated, encoding="utf-8", newline="\n")


def relocate_package(java_root: Path, from_package: str, to_package: str) -> Path:
    """Move generated sources from `from_package` to `to_package`.

    Only source files directly inside the old package directory move; the
    old directory and any parents left empty are pruned up to `java_root`.
    Running again after a relocation is a no-op apart from re-asserting the
    package lines. Returns the new package directory.
    """
    old_dir = java_root / from_package.replace(".", "/")
    new_dir = java_root / to_package.replace(".", "/")

    if old_dir != new_dir and old_dir.is_dir():
        new_dir.mkdir(parents=True, exist_ok=True)
        for source in sorted(old_dir.iterdir()):
            if source.is_file() and source.suffix in SOURCE_SUFFIXES:
                shutil.move(str(source), str(new_dir / source.name))
        _prune_empty_dirs(old_dir, java_root)
        logger.info("Relocated sources %s -> %s", from_package, to_package)

    if new_dir.is_dir():
        for source in sorted(new_dir.iterdir()):
            if source.is_file() and source.suffix in SOURCE_SUFFIXES:
                rewrite_package_line(source, to_package)
    return new_dir


def _prune_empty_dirs(start: Path, stop: Path) -> None:
    current = start
    while current != stop and stop in current.parents:
        try:
            current.rmdir()
        except OSError:
            return
        current = current.parent


def copy_tree(
    source: Path,
    destination: Path,
    ignore: Iterable[str] = (".git",),
) -> None:
    """Copy a project tree, skipping the named directories anywhere in it."""
    shutil.copytree(
        source,
        destination,
        ignore=shutil.ignore_patterns(*ignore),
        dirs_exist_ok=True,
        symlinks=True,
    )
