"""Engine pipeline: Unity projects built by the editor in batch mode.

The editor build script is written into the scratch copy, never into the
user's project.
"""

import asyncio
import logging
from pathlib import Path
from typing import Optional

from apkbuilder.core.environment import OfflineEnvironment
from apkbuilder.core.errors import ConfigurationError
from apkbuilder.core.types import BuildOptions, BuildResult, ProjectType
from apkbuilder.pipelines.android import write_file
from apkbuilder.pipelines.base import BasePipeline, copy_tree

logger = logging.getLogger(__name__)

REQUIRED_DIRS = ("Assets", "ProjectSettings")
# Regenerated by the editor; copying them only slows prepare down.
COPY_IGNORE = (".git", "Library", "Temp", "Logs", "obj")

EXPORT_DIR = "android-export"
ARTIFACT_NAME = "game.apk"
BUILD_METHOD = "AndroidBuilder.Build"


def _cs_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def render_build_script(export_dir: Path, options: BuildOptions) -> str:
    """C# editor script building every enabled scene into `export_dir`."""
    output = _cs_string(export_dir.as_posix())
    return f"""using System.IO;
using UnityEditor;
using UnityEditor.Build.Reporting;

public class AndroidBuilder
{{
    public static void Build()
    {{
        PlayerSettings.productName = {_cs_string(options.app_name)};
        PlayerSettings.SetApplicationIdentifier(UnityEditor.Build.NamedBuildTarget.Android, {_cs_string(options.package_name)});
        PlayerSettings.bundleVersion = {_cs_string(options.version)};
        PlayerSettings.Android.bundleVersionCode = {options.version_code};
        PlayerSettings.Android.minSdkVersion = (AndroidSdkVersions){options.min_sdk};
        PlayerSettings.Android.targetSdkVersion = (AndroidSdkVersions){options.target_sdk};
        EditorUserBuildSettings.buildAppBundle = false;

        var buildOptions = new BuildPlayerOptions
        {{
            scenes = GetScenes(),
            locationPathName = Path.Combine({output}, "{ARTIFACT_NAME}"),
            target = BuildTarget.Android,
            options = BuildOptions.None
        }};

        BuildReport report = BuildPipeline.BuildPlayer(buildOptions);
        EditorApplication.Exit(report.summary.result == BuildResult.Succeeded ? 0 : 1);
    }}

    private static string[] GetScenes()
    {{
        var scenes = new System.Collections.Generic.List<string>();
        foreach (var scene in EditorBuildSettings.scenes)
        {{
            if (scene.enabled)
            {{
                scenes.Add(scene.path);
            }}
        }}
        return scenes.ToArray();
    }}
}}
"""


def find_exported_package(export_dir: Path) -> Optional[Path]:
    preferred = export_dir / ARTIFACT_NAME
    if preferred.exists():
        return preferred
    if not export_dir.is_dir():
        return None
    return next((p for p in sorted(export_dir.iterdir()) if p.suffix == ".apk"), None)


class EnginePipeline(BasePipeline):
    project_type = ProjectType.ENGINE

    @property
    def project_dir(self) -> Path:
        return self.require_build_dir() / "project"

    async def prepare(self, source_path: Path) -> None:
        """Validate the marker directories and copy the project to scratch.

        Raises:
            ConfigurationError: if Assets/ or ProjectSettings/ is missing.
        """
        self.source_path = Path(source_path)
        for name in REQUIRED_DIRS:
            if not (self.source_path / name).is_dir():
                raise ConfigurationError(
                    f"Directory {name}/ not found in {self.source_path}; not a valid Unity project"
                )

        self.create_build_dir()
        logger.info("Preparing Unity project: %s", self.source_path)
        await asyncio.to_thread(copy_tree, self.source_path, self.project_dir, COPY_IGNORE)

    async def configure(self, options: BuildOptions) -> None:
        # Player settings are applied by the editor script at build time.
        self.require_build_dir()
        self.options = options

    async def build(self, env: OfflineEnvironment) -> BuildResult:
        build_dir = self.require_build_dir()
        options = self.require_options()

        editor = env.engine_editor
        if not editor.exists():
            return BuildResult.failure(
                f"Unity Editor not found at {editor}",
                warnings=[*self.warnings, f"Install the Unity Editor under {env.unity_home}"],
            )

        export_dir = build_dir / EXPORT_DIR
        export_dir.mkdir(parents=True, exist_ok=True)
        write_file(
            self.project_dir / "Assets" / "Editor" / "AndroidBuilder.cs",
            render_build_script(export_dir, options),
        )

        result = await self.run(
            editor,
            [
                "-quit",
                "-batchmode",
                "-nographics",
                "-projectPath", str(self.project_dir),
                "-executeMethod", BUILD_METHOD,
                "-logFile", str(build_dir / "unity-build.log"),
            ],
            self.project_dir,
        )
        if not result.is_success:
            return self.tool_failure("Unity", result)

        apk = find_exported_package(export_dir)
        if apk is None:
            return self.artifact_missing("Unity APK", export_dir / ARTIFACT_NAME)
        return self.artifact_found(apk)
