"""Cross-platform JS pipeline: React Native and Expo projects.

Projects without an android/ subproject are scaffolded with
`expo prebuild` when they depend on expo; the option overrides are then
applied to the freshly generated files before gradle runs.
"""

import asyncio
import logging
import re
from pathlib import Path
from xml.sax.saxutils import escape

from apkbuilder.core.environment import OfflineEnvironment
from apkbuilder.core.types import BuildOptions, BuildResult, ProjectType
from apkbuilder.detector.crossjs import has_managed_build_marker
from apkbuilder.generators import gradle
from apkbuilder.pipelines.android import find_gradle_apk
from apkbuilder.pipelines.base import BasePipeline, copy_tree

logger = logging.getLogger(__name__)

COPY_IGNORE = (".git",)

_APPLICATION_ID = re.compile(r'applicationId\s+"[^"]*"')
_VERSION_CODE = re.compile(r"versionCode\s+\d+")
_VERSION_NAME = re.compile(r'versionName\s+"[^"]*"')
_APP_NAME = re.compile(r'<string name="app_name">[^<]*</string>')


def apply_android_overrides(android_dir: Path, options: BuildOptions) -> list[Path]:
    """Rewrite identifier, version and label in an existing android/ tree.

    Returns the files that were changed.
    """
    changed: list[Path] = []
    build_gradle = android_dir / "app" / "build.gradle"
    if build_gradle.exists():
        content = build_gradle.read_text(encoding="utf-8")
        updated = _APPLICATION_ID.sub(f'applicationId "{options.package_name}"', content, count=1)
        updated = _VERSION_CODE.sub(f"versionCode {options.version_code}", updated, count=1)
        updated = _VERSION_NAME.sub(f'versionName "{options.version}"', updated, count=1)
        if updated != content:
            build_gradle.write_text(updated, encoding="utf-8", newline="\n")
            changed.append(build_gradle)

    strings = android_dir / "app" / "src" / "main" / "res" / "values" / "strings.xml"
    if strings.exists():
        content = strings.read_text(encoding="utf-8")
        replacement = f'<string name="app_name">{escape(options.app_name)}</string>'
        updated = _APP_NAME.sub(lambda _: replacement, content, count=1)
        if updated != content:
            strings.write_text(updated, encoding="utf-8", newline="\n")
            changed.append(strings)
    return changed


class CrossJsPipeline(BasePipeline):
    project_type = ProjectType.CROSS_JS

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self.has_android_dir = False
        self.is_expo = False

    @property
    def android_dir(self) -> Path:
        return self.require_build_dir() / "android"

    async def prepare(self, source_path: Path) -> None:
        self.source_path = Path(source_path)
        build_dir = self.create_build_dir()
        logger.info("Preparing cross-platform JS project: %s", self.source_path)

        await asyncio.to_thread(copy_tree, self.source_path, build_dir, COPY_IGNORE)
        self.has_android_dir = self.android_dir.is_dir()
        self.is_expo = has_managed_build_marker(build_dir)
        if not self.has_android_dir:
            logger.info("No android/ directory; it must be generated before building")

    async def configure(self, options: BuildOptions) -> None:
        self.require_build_dir()
        self.options = options
        if self.has_android_dir:
            changed = apply_android_overrides(self.android_dir, options)
            logger.info("Applied overrides to %d file(s)", len(changed))
        elif self.is_expo:
            logger.info("Expo project; overrides are applied after prebuild")

    async def build(self, env: OfflineEnvironment) -> BuildResult:
        build_dir = self.require_build_dir()
        options = self.require_options()

        if not self.has_android_dir and self.is_expo:
            prebuild = await self.run(
                env.npx,
                ["expo", "prebuild", "--platform", "android", "--clean"],
                build_dir,
            )
            if not prebuild.is_success:
                failure = BuildResult.from_command_failure("Expo prebuild failed", prebuild)
                failure.warnings = list(self.warnings)
                return failure
            self.has_android_dir = self.android_dir.is_dir()
            apply_android_overrides(self.android_dir, options)

        if not self.android_dir.is_dir():
            return BuildResult.failure(
                "android/ directory not found. Run 'npx react-native eject' or "
                "'npx expo prebuild' first.",
                warnings=self.warnings,
            )

        install = await self.run(env.npm, ["install", "--offline", "--prefer-offline"], build_dir)
        if not install.is_success:
            self.warn("npm install failed; building with the dependencies already present")

        gradle.generate_local_properties(
            env.android_home, env.ndk_home, self.android_dir / "local.properties"
        )

        task = "assembleRelease" if options.is_release else "assembleDebug"
        result = await self.run_gradle(task, self.android_dir)
        if not result.is_success:
            return self.tool_failure("Gradle", result)

        apk = find_gradle_apk(self.android_dir / "app", options.build_type)
        if apk is None:
            return self.artifact_missing("React Native APK", self.android_dir / "app" / "build" / "outputs" / "apk")
        return self.artifact_found(apk)
