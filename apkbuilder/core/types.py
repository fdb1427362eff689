"""Shared records for detection and building.

ProjectInfo is what detection hands to pipeline selection, BuildOptions is
the read-only build request, BuildResult is the single terminal value of a
build attempt and BuildProgress the ephemeral event broadcast while it
runs.
"""

import re
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import TYPE_CHECKING, Optional

from apkbuilder.core.errors import ConfigurationError

if TYPE_CHECKING:
    from apkbuilder.core.process import CommandResult

MAX_CONFIDENCE = 100

INTERNET_PERMISSION = "android.permission.INTERNET"

DEFAULT_MIN_SDK = 21
DEFAULT_TARGET_SDK = 34
DEFAULT_COMPILE_SDK = 34
DEFAULT_ABIS: tuple[str, ...] = ("arm64-v8a", "armeabi-v7a")
DEFAULT_PERMISSIONS: tuple[str, ...] = (INTERNET_PERMISSION,)

FALLBACK_APP_NAME = "MyApp"

_PACKAGE_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9_]*(\.[A-Za-z][A-Za-z0-9_]*)+$")


class ProjectType(StrEnum):
    """Project technologies the builder knows how to package."""

    WEB = "web"
    NATIVE = "native"
    MANAGED = "managed"
    CROSS_JS = "cross-js"
    ENGINE = "engine"
    UNKNOWN = "unknown"


class SignMode(StrEnum):
    DEBUG = "debug"
    RELEASE = "release"


def clamp_confidence(value: int) -> int:
    """Clamp an accumulated score into [0, 100]."""
    return max(0, min(MAX_CONFIDENCE, int(value)))


def suggest_name(path: str) -> str:
    """Derive an app name from the final path segment, alphanumerics only."""
    segments = [s for s in re.split(r"[/\\]", str(path)) if s]
    name = segments[-1] if segments else ""
    cleaned = re.sub(r"[^A-Za-z0-9]", "", name)
    return cleaned or FALLBACK_APP_NAME


@dataclass(frozen=True)
class ProjectInfo:
    """Canonical classification of a project directory.

    A zero confidence always means `unknown`, and `unknown` always carries
    zero confidence. `alternatives` lists the other candidate types that
    produced evidence, best first.
    """

    path: str
    type: ProjectType
    confidence: int
    evidence: tuple[str, ...] = ()
    suggested_name: str = FALLBACK_APP_NAME
    alternatives: tuple[ProjectType, ...] = ()

    def __post_init__(self) -> None:
        confidence = clamp_confidence(self.confidence)
        object.__setattr__(self, "confidence", confidence)
        if confidence == 0 and self.type != ProjectType.UNKNOWN:
            object.__setattr__(self, "type", ProjectType.UNKNOWN)
        if self.type == ProjectType.UNKNOWN and confidence != 0:
            object.__setattr__(self, "confidence", 0)

    @classmethod
    def unknown(cls, path: str) -> "ProjectInfo":
        return cls(
            path=str(path),
            type=ProjectType.UNKNOWN,
            confidence=0,
            evidence=(),
            suggested_name=suggest_name(path),
        )

    @property
    def is_known(self) -> bool:
        return self.type != ProjectType.UNKNOWN

    def to_dict(self) -> dict:
        return {
            "path": self.path,
            "type": self.type.value,
            "confidence": self.confidence,
            "evidence": list(self.evidence),
            "suggested_name": self.suggested_name,
            "alternatives": [a.value for a in self.alternatives],
        }


def default_package_name(name: str) -> str:
    """`com.<name>.app`, with the middle segment made a valid identifier."""
    segment = re.sub(r"[^a-z0-9_]", "", name.lower()) or FALLBACK_APP_NAME.lower()
    if not segment[0].isalpha():
        segment = f"app{segment}"
    return f"com.{segment}.app"


def _dedupe(values) -> tuple[str, ...]:
    seen: list[str] = []
    for value in values:
        if value and value not in seen:
            seen.append(value)
    return tuple(seen)


@dataclass(frozen=True)
class BuildOptions:
    """Read-only build request.

    Sequence fields keep first-seen order so that emitted descriptors are
    byte-for-byte reproducible.
    """

    app_name: str
    package_name: str
    version: str = "1.0.0"
    version_code: int = 1
    min_sdk: int = DEFAULT_MIN_SDK
    target_sdk: int = DEFAULT_TARGET_SDK
    compile_sdk: int = DEFAULT_COMPILE_SDK
    abis: tuple[str, ...] = DEFAULT_ABIS
    sign_mode: SignMode = SignMode.DEBUG
    keystore_path: Optional[str] = None
    keystore_password: Optional[str] = None
    key_alias: Optional[str] = None
    key_password: Optional[str] = None
    icon_path: Optional[str] = None
    permissions: tuple[str, ...] = DEFAULT_PERMISSIONS
    shrink_enabled: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "abis", _dedupe(self.abis))
        object.__setattr__(self, "permissions", _dedupe(self.permissions))
        object.__setattr__(self, "sign_mode", SignMode(self.sign_mode))

    @classmethod
    def for_project(cls, info: ProjectInfo, **overrides) -> "BuildOptions":
        """Build options with front-end defaults derived from a detection."""
        name = info.suggested_name or FALLBACK_APP_NAME
        values: dict = {
            "app_name": name,
            "package_name": default_package_name(name),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    @property
    def is_release(self) -> bool:
        return self.sign_mode == SignMode.RELEASE

    @property
    def build_type(self) -> str:
        return "release" if self.is_release else "debug"

    @property
    def package_path(self) -> str:
        """Reverse-domain identifier as a relative source directory."""
        return self.package_name.replace(".", "/")

    @property
    def has_release_credentials(self) -> bool:
        return all(
            (self.keystore_path, self.keystore_password, self.key_alias, self.key_password)
        )

    def with_permissions(self, *extra: str) -> "BuildOptions":
        """Return a copy whose permission list also contains `extra`."""
        return replace(self, permissions=_dedupe([*self.permissions, *extra]))

    def validate(self) -> None:
        """Raise ConfigurationError when the request cannot produce a package."""
        if not self.app_name or not self.app_name.strip():
            raise ConfigurationError("App name must not be empty")
        if not _PACKAGE_NAME_RE.match(self.package_name or ""):
            raise ConfigurationError(
                f"Invalid package name '{self.package_name}': expected a reverse-domain "
                "identifier such as com.example.app"
            )
        if self.version_code < 1:
            raise ConfigurationError(f"Version code must be positive (got {self.version_code})")
        if self.min_sdk > self.target_sdk:
            raise ConfigurationError(
                f"Minimum API level {self.min_sdk} exceeds target API level {self.target_sdk}"
            )
        if not self.abis:
            raise ConfigurationError("At least one target ABI is required")

    def to_dict(self) -> dict:
        return {
            "app_name": self.app_name,
            "package_name": self.package_name,
            "version": self.version,
            "version_code": self.version_code,
            "min_sdk": self.min_sdk,
            "target_sdk": self.target_sdk,
            "compile_sdk": self.compile_sdk,
            "abis": list(self.abis),
            "sign_mode": self.sign_mode.value,
            "keystore_path": self.keystore_path,
            "key_alias": self.key_alias,
            "icon_path": self.icon_path,
            "permissions": list(self.permissions),
            "shrink_enabled": self.shrink_enabled,
        }


@dataclass
class BuildResult:
    """Terminal value of one build attempt.

    A failed result always carries at least one error string.
    """

    success: bool
    artifact_path: Optional[str] = None
    secondary_artifact_path: Optional[str] = None
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @classmethod
    def failure(cls, *errors: str, warnings: Optional[list[str]] = None) -> "BuildResult":
        messages = [e for e in errors if e] or ["Build failed"]
        return cls(success=False, errors=messages, warnings=list(warnings or []))

    @classmethod
    def from_command_failure(
        cls,
        message: str,
        command_result: "CommandResult",
    ) -> "BuildResult":
        """Failure carrying the tool's captured output after the summary."""
        errors = [message]
        if command_result.output.strip():
            errors.append(command_result.output)
        return cls(success=False, errors=errors)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "artifact_path": self.artifact_path,
            "secondary_artifact_path": self.secondary_artifact_path,
            "errors": self.errors,
            "warnings": self.warnings,
            "elapsed_seconds": round(self.elapsed_seconds, 3),
        }


@dataclass(frozen=True)
class BuildProgress:
    """Progress event. Percent never decreases within one build."""

    stage: str
    percent: int
    message: str

    def to_dict(self) -> dict:
        return {"stage": self.stage, "percent": self.percent, "message": self.message}
