"""Core records, configuration and plumbing shared by detector and pipelines."""

from apkbuilder.core.config import Settings, get_settings
from apkbuilder.core.environment import (
    EnvironmentCheck,
    OfflineEnvironment,
    ToolchainRole,
    get_offline_environment,
    verify_environment,
)
from apkbuilder.core.errors import (
    BuilderError,
    ConfigurationError,
    EnvironmentNotReadyError,
    ToolchainError,
)
from apkbuilder.core.process import CommandResult, run_command
from apkbuilder.core.types import (
    BuildOptions,
    BuildProgress,
    BuildResult,
    ProjectInfo,
    ProjectType,
    SignMode,
)

__all__ = [
    "Settings",
    "get_settings",
    "EnvironmentCheck",
    "OfflineEnvironment",
    "ToolchainRole",
    "get_offline_environment",
    "verify_environment",
    "BuilderError",
    "ConfigurationError",
    "EnvironmentNotReadyError",
    "ToolchainError",
    "CommandResult",
    "run_command",
    "BuildOptions",
    "BuildProgress",
    "BuildResult",
    "ProjectInfo",
    "ProjectType",
    "SignMode",
]
