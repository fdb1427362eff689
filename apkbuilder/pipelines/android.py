"""Shared steps for pipelines that synthesise a gradle Android project.

The web and native variants both scaffold `app/src/main/...` under a
placeholder package, then on configure relocate it to the requested
package and emit manifest, icons, strings and gradle descriptors. Build
runs gradle from the scratch root and expects the standard APK location.
"""

import logging
from pathlib import Path
from typing import Iterable, Optional
from xml.sax.saxutils import escape

from apkbuilder.core.environment import OfflineEnvironment
from apkbuilder.core.types import BuildOptions, BuildResult
from apkbuilder.generators import gradle, icons, manifest
from apkbuilder.pipelines.base import BasePipeline

logger = logging.getLogger(__name__)


def strings_xml(app_name: str) -> str:
    return (
        '<?xml version="1.0" encoding="utf-8"?>\n'
        "<resources>\n"
        f'    <string name="app_name">{escape(app_name)}</string>\n'
        "</resources>\n"
    )


def write_file(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8", newline="\n")
    return path


class GradleProjectPipeline(BasePipeline):
    """Base for variants whose scratch dir is a generated gradle project."""

    # Package the scaffolded sources are written under during prepare.
    placeholder_package: str = "com.placeholder.app"
    native_build: bool = False

    @property
    def app_dir(self) -> Path:
        return self.require_build_dir() / "app"

    @property
    def main_dir(self) -> Path:
        return self.app_dir / "src" / "main"

    @property
    def res_dir(self) -> Path:
        return self.main_dir / "res"

    @property
    def java_dir(self) -> Path:
        return self.main_dir / "java"

    def placeholder_dir(self) -> Path:
        return self.java_dir / self.placeholder_package.replace(".", "/")

    async def write_android_project(
        self,
        options: BuildOptions,
        extra_permissions: Iterable[str] = (),
    ) -> None:
        """Emit manifest, icons, strings and gradle descriptors for `options`."""
        build_dir = self.require_build_dir()

        await self.generate(
            "AndroidManifest.xml",
            manifest.generate_manifest,
            options,
            self.main_dir / "AndroidManifest.xml",
            tuple(extra_permissions),
        )

        if options.icon_path and Path(options.icon_path).expanduser().exists():
            await self.generate("icons", icons.generate_icons, Path(options.icon_path).expanduser(), self.res_dir)
        else:
            if options.icon_path:
                self.warn(f"Icon not found at {options.icon_path}; using the default icon")
            await self.generate(
                "default icon",
                icons.generate_default_icon,
                self.res_dir,
                icons.icon_letter(options.app_name),
            )

        app_gradle = (
            gradle.generate_native_app_build_gradle
            if self.native_build
            else gradle.generate_app_build_gradle
        )
        await self.generate("app build.gradle", app_gradle, options, self.app_dir / "build.gradle")
        await self.generate("root build.gradle", gradle.generate_root_build_gradle, build_dir / "build.gradle")
        await self.generate(
            "settings.gradle", gradle.generate_settings_gradle, options.app_name, build_dir / "settings.gradle"
        )
        await self.generate(
            "gradle.properties", gradle.generate_gradle_properties, build_dir / "gradle.properties"
        )
        await self.generate(
            "proguard rules", gradle.generate_proguard_rules, self.app_dir / "proguard-rules.pro"
        )
        write_file(self.res_dir / "values" / "strings.xml", strings_xml(options.app_name))

    async def build(self, env: OfflineEnvironment) -> BuildResult:
        build_dir = self.require_build_dir()
        options = self.require_options()

        gradle.generate_local_properties(env.android_home, env.ndk_home, build_dir / "local.properties")
        self.copy_gradle_wrapper(build_dir)

        task = "assembleRelease" if options.is_release else "assembleDebug"
        result = await self.run_gradle(task, build_dir)
        if not result.is_success:
            return self.tool_failure("Gradle", result)

        apk = find_gradle_apk(build_dir / "app", options.build_type)
        if apk is None:
            expected = build_dir / "app" / APK_OUTPUT_DIR / options.build_type / f"app-{options.build_type}.apk"
            return self.artifact_missing("APK", expected)
        return self.artifact_found(apk)


APK_OUTPUT_DIR = Path("build") / "outputs" / "apk"


def find_gradle_apk(module_dir: Path, build_type: str) -> Optional[Path]:
    """Locate the APK gradle wrote for `build_type`.

    Release builds without a signing config are named `-unsigned`.
    """
    out_dir = module_dir / APK_OUTPUT_DIR / build_type
    for name in (f"app-{build_type}.apk", f"app-{build_type}-unsigned.apk"):
        candidate = out_dir / name
        if candidate.exists():
            return candidate
    return None
