"""Offline toolchain environment.

Resolves the bundled toolchain directories once per orchestrator and
checks that they exist before each build. Toolchain locations reach child
processes only through the explicit overlay returned by
OfflineEnvironment.overlay(); nothing here touches os.environ.
"""

import logging
import os
import sys
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Iterable, Optional

from apkbuilder.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class ToolchainRole(StrEnum):
    COMPILER_HOME = "compiler_home"
    PLATFORM_SDK = "platform_sdk"
    NATIVE_TOOLCHAIN = "native_toolchain"
    BUILD_TOOL_HOME = "build_tool_home"
    BUILD_TOOL_CACHE = "build_tool_cache"
    MANAGED_RUNTIME = "managed_runtime"
    SCRIPT_RUNTIME = "script_runtime"
    SCRIPT_CACHE = "script_cache"
    ENGINE_EDITOR = "engine_editor"


ROLE_LABELS: dict[ToolchainRole, str] = {
    ToolchainRole.COMPILER_HOME: "JDK",
    ToolchainRole.PLATFORM_SDK: "Android SDK",
    ToolchainRole.NATIVE_TOOLCHAIN: "Android NDK",
    ToolchainRole.BUILD_TOOL_HOME: "Gradle",
    ToolchainRole.BUILD_TOOL_CACHE: "Gradle Cache",
    ToolchainRole.MANAGED_RUNTIME: "dotnet SDK",
    ToolchainRole.SCRIPT_RUNTIME: "Node.js",
    ToolchainRole.SCRIPT_CACHE: "npm Cache",
    ToolchainRole.ENGINE_EDITOR: "Unity Editor",
}

# Roles every build needs, whatever the project type.
REQUIRED_ROLES: tuple[ToolchainRole, ...] = (
    ToolchainRole.COMPILER_HOME,
    ToolchainRole.PLATFORM_SDK,
    ToolchainRole.NATIVE_TOOLCHAIN,
    ToolchainRole.BUILD_TOOL_CACHE,
    ToolchainRole.SCRIPT_RUNTIME,
    ToolchainRole.MANAGED_RUNTIME,
)

_IS_WINDOWS = sys.platform == "win32"


@dataclass(frozen=True)
class OfflineEnvironment:
    """Absolute path per toolchain role."""

    paths: dict[ToolchainRole, Path]
    build_tools_version: str = "34.0.0"

    def path(self, role: ToolchainRole) -> Path:
        return self.paths[role]

    @property
    def java_home(self) -> Path:
        return self.paths[ToolchainRole.COMPILER_HOME]

    @property
    def android_home(self) -> Path:
        return self.paths[ToolchainRole.PLATFORM_SDK]

    @property
    def ndk_home(self) -> Path:
        return self.paths[ToolchainRole.NATIVE_TOOLCHAIN]

    @property
    def gradle_home(self) -> Path:
        return self.paths[ToolchainRole.BUILD_TOOL_HOME]

    @property
    def gradle_user_home(self) -> Path:
        return self.paths[ToolchainRole.BUILD_TOOL_CACHE]

    @property
    def dotnet_root(self) -> Path:
        return self.paths[ToolchainRole.MANAGED_RUNTIME]

    @property
    def node_home(self) -> Path:
        return self.paths[ToolchainRole.SCRIPT_RUNTIME]

    @property
    def npm_cache(self) -> Path:
        return self.paths[ToolchainRole.SCRIPT_CACHE]

    @property
    def unity_home(self) -> Path:
        return self.paths[ToolchainRole.ENGINE_EDITOR]

    # ------------------------------------------------------------------
    # Executables
    # ------------------------------------------------------------------

    @property
    def gradle_executable(self) -> Path:
        return self.gradle_home / "bin" / ("gradle.bat" if _IS_WINDOWS else "gradle")

    @property
    def keytool(self) -> Path:
        return self.java_home / "bin" / ("keytool.exe" if _IS_WINDOWS else "keytool")

    @property
    def dotnet(self) -> Path:
        return self.dotnet_root / ("dotnet.exe" if _IS_WINDOWS else "dotnet")

    @property
    def npm(self) -> Path:
        return self._node_tool("npm")

    @property
    def npx(self) -> Path:
        return self._node_tool("npx")

    @property
    def engine_editor(self) -> Path:
        if _IS_WINDOWS:
            return self.unity_home / "Unity.exe"
        if sys.platform == "darwin":
            return self.unity_home / "Unity.app" / "Contents" / "MacOS" / "Unity"
        return self.unity_home / "Unity"

    def build_tool(self, name: str) -> Path:
        """Path to apksigner / zipalign under the pinned build-tools version."""
        suffix = ".bat" if _IS_WINDOWS and name == "apksigner" else ""
        suffix = ".exe" if _IS_WINDOWS and name == "zipalign" else suffix
        return self.android_home / "build-tools" / self.build_tools_version / f"{name}{suffix}"

    def _node_tool(self, name: str) -> Path:
        if _IS_WINDOWS:
            return self.node_home / f"{name}.cmd"
        candidate = self.node_home / "bin" / name
        if candidate.exists():
            return candidate
        return self.node_home / name

    # ------------------------------------------------------------------
    # Child-process environment
    # ------------------------------------------------------------------

    def bin_dirs(self) -> list[Path]:
        return [
            self.java_home / "bin",
            self.android_home / "platform-tools",
            self.android_home / "cmdline-tools" / "latest" / "bin",
            self.android_home / "build-tools" / self.build_tools_version,
            self.node_home / "bin",
            self.node_home,
            self.dotnet_root,
        ]

    def overlay(self, base_path: Optional[str] = None) -> dict[str, str]:
        """Environment variables to pass to every toolchain invocation.

        PATH is the toolchain bin dirs followed by `base_path` (defaults to
        the current process PATH, read but never modified).
        """
        inherited = os.environ.get("PATH", "") if base_path is None else base_path
        path_entries = [str(p) for p in self.bin_dirs()]
        if inherited:
            path_entries.append(inherited)
        return {
            "JAVA_HOME": str(self.java_home),
            "ANDROID_HOME": str(self.android_home),
            "ANDROID_SDK_ROOT": str(self.android_home),
            "ANDROID_NDK_HOME": str(self.ndk_home),
            "GRADLE_USER_HOME": str(self.gradle_user_home),
            "DOTNET_ROOT": str(self.dotnet_root),
            "npm_config_cache": str(self.npm_cache),
            "PATH": os.pathsep.join(path_entries),
        }

    def to_dict(self) -> dict:
        return {role.value: str(path) for role, path in self.paths.items()}


@dataclass
class EnvironmentCheck:
    """Outcome of verify_environment(). Valid iff nothing is missing."""

    missing: list[str] = field(default_factory=list)
    missing_roles: list[ToolchainRole] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.missing

    def to_dict(self) -> dict:
        return {"valid": self.valid, "missing": self.missing}


def get_offline_environment(
    settings: Optional[Settings] = None,
    bundled_dir: Optional[Path] = None,
) -> OfflineEnvironment:
    """Resolve every toolchain role under the bundled base directory."""
    settings = settings or get_settings()
    base = Path(bundled_dir or settings.bundled_dir).expanduser().resolve()
    paths = {
        ToolchainRole.COMPILER_HOME: base / "jdk",
        ToolchainRole.PLATFORM_SDK: base / "android-sdk",
        ToolchainRole.NATIVE_TOOLCHAIN: base / "ndk" / settings.ndk_version,
        ToolchainRole.BUILD_TOOL_HOME: base / "gradle" / settings.gradle_version,
        ToolchainRole.BUILD_TOOL_CACHE: base / "gradle-cache",
        ToolchainRole.MANAGED_RUNTIME: base / "dotnet",
        ToolchainRole.SCRIPT_RUNTIME: base / "node",
        ToolchainRole.SCRIPT_CACHE: base / "npm-cache",
        ToolchainRole.ENGINE_EDITOR: base / "unity",
    }
    logger.debug("Resolved offline environment under %s", base)
    return OfflineEnvironment(paths=paths, build_tools_version=settings.build_tools_version)


def verify_environment(
    env: OfflineEnvironment,
    roles: Iterable[ToolchainRole] = REQUIRED_ROLES,
) -> EnvironmentCheck:
    """Existence check for each required toolchain root. No version probing."""
    check = EnvironmentCheck()
    for role in roles:
        path = env.paths.get(role)
        if path is None or not path.exists():
            check.missing.append(ROLE_LABELS[role])
            check.missing_roles.append(role)

    if check.valid:
        logger.info("Offline environment OK")
    else:
        logger.warning("Offline environment missing: %s", ", ".join(check.missing))
    return check
